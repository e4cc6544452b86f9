"""External image services used by the pipeline."""

from .background_removal import BackgroundRemovalResult, BackgroundRemover, grabcut_foreground

__all__ = ["BackgroundRemovalResult", "BackgroundRemover", "grabcut_foreground"]
