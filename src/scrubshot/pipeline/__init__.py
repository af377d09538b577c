"""Composable building blocks for the scrubshot redaction pipeline."""

from .config import ImageFormat, PipelineConfig, PipelineDiagnostics
from .detection import DetectionResult, detect_hits, run_detection
from .orchestration import RedactionService

__all__ = [
    "ImageFormat",
    "PipelineConfig",
    "PipelineDiagnostics",
    "DetectionResult",
    "detect_hits",
    "run_detection",
    "RedactionService",
]
