"""Central configuration for the pendant engraving pipeline.

All tunable parameters are defined here with descriptive names.
Deployment endpoints can be overridden through environment variables;
everything else is a plain constant that parameter dataclasses pick up
as their defaults.
"""

import os
from pathlib import Path

# =============================================================================
# PATHS
# =============================================================================

PROJECT_DIR = Path(__file__).parent

# Pendant template backgrounds (bg1.jpg, e2.jpg, ...)
TEMPLATE_DIR = Path(os.environ.get("PENDANT_TEMPLATE_DIR", PROJECT_DIR / "templates"))

# Root directory used by the local blob store
STORAGE_DIR = Path(os.environ.get("PENDANT_STORAGE_DIR", PROJECT_DIR / "output"))

# Blob store backend ("local" or "memory")
STORAGE_BACKEND = os.environ.get("PENDANT_STORAGE_BACKEND", "local")

# Folder prefix for every uploaded asset
STORAGE_ROOT_FOLDER = "pupring-ai"

# =============================================================================
# ENGRAVING (EDGE / LINE EXTRACTION)
# =============================================================================

# Long-edge working resolution; images are only shrunk, never enlarged
ENGRAVING_WORKING_SIZE = 1000
MIN_WORKING_SIZE = 64
MAX_WORKING_SIZE = 4096

# Engraving method used by the pipeline (see engraving.styles.METHODS)
ENGRAVING_METHOD = "clean_simple"

# PNG compression used for engravings (fixed for byte-identical output)
PNG_COMPRESSION_LEVEL = 9

# =============================================================================
# FACE DETECTION
# =============================================================================

# Face backend selection ("http", "opencv_haar" or "fallback")
FACE_BACKEND = os.environ.get("PET_FACE_BACKEND", "http")

# Roboflow-style detection endpoint
DETECTOR_ENDPOINT = os.environ.get("PET_DETECTOR_ENDPOINT", "")
DETECTOR_API_KEY = os.environ.get("PET_DETECTOR_API_KEY", "")

# HTTP timeout for a single detector request (seconds)
DETECTOR_REQUEST_TIMEOUT = 30

# Minimum confidence for accepting a pet face
MIN_DETECTION_CONFIDENCE = 0.65

# Deterministic fallback when the detector is unavailable:
# centered box sized as a fraction of the smaller image dimension
FALLBACK_FACE_FRACTION = 0.25
FALLBACK_CONFIDENCE = 0.75

# OpenCV Haar cascade parameters (cat faces ship with OpenCV)
HAAR_CASCADE_FILE = "haarcascade_frontalcatface_extended.xml"
HAAR_SCALE_FACTOR = 1.1
HAAR_MIN_NEIGHBORS = 4
HAAR_MIN_SIZE = (48, 48)
# Haar cascades do not report scores; detections get this confidence
HAAR_CONFIDENCE = 0.8

# =============================================================================
# FACE CROPPING
# =============================================================================

# Standard preset
CROP_BASE_PADDING = 1.4
CROP_SMALL_PADDING = 1.6
CROP_SMALL_SIZE_FACTOR = 0.25
CROP_VERTICAL_SHIFT = 0.08

# Professional preset (more headroom, upscales small crops)
PRO_CROP_BASE_PADDING = 1.35
PRO_CROP_SMALL_PADDING = 1.5
PRO_CROP_SMALL_SIZE_FACTOR = 0.3
PRO_CROP_VERTICAL_SHIFT = 0.20
PRO_CROP_MIN_OUTPUT_SIZE = 400

# =============================================================================
# BACKGROUND REMOVAL
# =============================================================================

BACKGROUND_SERVICE_URL = os.environ.get("BACKGROUND_SERVICE_URL", "http://localhost:5001")
BACKGROUND_SERVICE_TIMEOUT = 60

# Fraction of each side treated as certain background for the local cutout
LOCAL_CUTOUT_MARGIN = 0.05
LOCAL_CUTOUT_ITERATIONS = 3
LOCAL_CUTOUT_MIN_SIDE = 80

# =============================================================================
# COMPOSITING
# =============================================================================

LABEL_FONT = "DejaVuSerif.ttf"
LABEL_FONT_SIZE = 9
LABEL_HEIGHT = 20
LABEL_COLOR = (0x2C, 0x2C, 0x2C)
LABEL_OPACITY = 0.75

COMPOSITE_JPEG_QUALITY = 92

# =============================================================================
# PIPELINE
# =============================================================================

# Timeouts (seconds) for collaborator calls made by the orchestrator
DETECTION_TIMEOUT = 30
UPLOAD_TIMEOUT = 120
BACKGROUND_REMOVAL_TIMEOUT = 60

# Final optimization bound (fit inside, never enlarged)
OPTIMIZED_MAX_SIZE = (1200, 1200)

# Result cache capacity (entries); oldest entry is evicted first
RESULT_CACHE_CAPACITY = 10
