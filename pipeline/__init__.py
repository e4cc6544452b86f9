"""
Pet photo processing pipeline.

Key components:
- config: PipelineSettings
- types: ImageFile, StepRecord, PipelineState, PipelineResult
- cache: ResultCache, a bounded LRU of successful results
- orchestrator: EngravingPipeline, which runs every stage for one photo
"""

from .cache import ResultCache
from .config import PipelineSettings
from .orchestrator import EngravingPipeline
from .types import ImageFile, PipelineResult, PipelineState, StepRecord

__all__ = [
    "EngravingPipeline",
    "ImageFile",
    "PipelineResult",
    "PipelineSettings",
    "PipelineState",
    "ResultCache",
    "StepRecord",
]
