"""Exception types shared across the engraving pipeline."""


class EngravingError(Exception):
    """Base class for pipeline errors."""


class ImageDecodeError(EngravingError):
    """Raised when a payload contains no decodable pixels."""


class InvalidBoundingBoxError(EngravingError, ValueError):
    """Raised when a face bounding box is missing or degenerate."""


class TemplateNotFoundError(EngravingError, FileNotFoundError):
    """Raised when a pendant template background cannot be loaded."""


class UploadError(EngravingError):
    """Raised when the blob store rejects an upload."""


class DetectionError(EngravingError):
    """Raised when a face backend cannot produce a usable answer."""
