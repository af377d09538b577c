"""Configuration primitives for the scrubshot pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from pydantic import BaseModel

from scrubshot.model import Pixelate, RedactionStyle

MAX_PIPELINE_SECONDS = 15.0
MAX_IMAGE_DIMENSION = 4000
DOWNSCALE_FACTOR = 1.2
MAX_FILENAME_ATTEMPTS = 100
JPEG_QUALITY = 90
# How long a timed-out worker may take to honour its own deadline before it is abandoned.
WORKER_GRACE_SECONDS = 1.0


class ImageFormat(str, Enum):
    PNG = "PNG"
    JPEG = "JPEG"
    UNKNOWN = "Unknown"

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageFormat.JPEG else "png"

    @property
    def pil_format(self) -> str:
        return "JPEG" if self is ImageFormat.JPEG else "PNG"


@dataclass(frozen=True)
class PipelineConfig:
    """Runtime configuration for detection, region building and redaction.

    Built once at process start and shared read-only by every request.
    """

    timeout: float = MAX_PIPELINE_SECONDS
    max_dimension: int = MAX_IMAGE_DIMENSION
    downscale_factor: float = DOWNSCALE_FACTOR
    max_filename_attempts: int = MAX_FILENAME_ATTEMPTS
    style: RedactionStyle = field(default_factory=lambda: Pixelate(scale=8))
    region_padding: float = 2.0
    custom_terms: Tuple[str, ...] = ()
    advanced_detection: bool = True
    phone_region: str = "US"
    jpeg_quality: int = JPEG_QUALITY
    worker_grace: float = WORKER_GRACE_SECONDS


class PipelineDiagnostics(BaseModel):
    """Per-invocation timings, counts and flags. Logged once, never persisted."""

    total_time: float = 0.0
    ocr_time: float = 0.0
    detection_time: float = 0.0
    region_merge_time: float = 0.0
    redaction_time: float = 0.0
    save_time: float = 0.0
    line_count: int = 0
    hit_count: int = 0
    merged_region_count: int = 0
    output_format: ImageFormat = ImageFormat.UNKNOWN
    output_path: str = ""
    was_downscaled: bool = False
    was_timed_out: bool = False


__all__ = [
    "MAX_PIPELINE_SECONDS",
    "WORKER_GRACE_SECONDS",
    "MAX_IMAGE_DIMENSION",
    "DOWNSCALE_FACTOR",
    "MAX_FILENAME_ATTEMPTS",
    "ImageFormat",
    "PipelineConfig",
    "PipelineDiagnostics",
]
