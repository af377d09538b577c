"""Environment-driven configuration.

Every ``SCRUBSHOT_*`` lookup lives here so the CLI and batch workers build
the same :class:`~scrubshot.pipeline.config.PipelineConfig` without scattered
``os.environ`` reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional
import os

from .model import Blur, Pixelate, RedactionStyle
from .pipeline.config import MAX_PIPELINE_SECONDS, PipelineConfig

STYLE_DEFAULTS = {"pixelate": 8.0, "blur": 12.0}


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _parse_float(value: str | None, *, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _split_csv(value: str | None) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def make_style(name: str, amount: Optional[float] = None) -> RedactionStyle:
    """Build a redaction style from its name (``pixelate`` or ``blur``)."""
    key = (name or "pixelate").strip().lower()
    if key not in STYLE_DEFAULTS:
        raise ValueError(f"unknown redaction style: {name!r}")
    value = STYLE_DEFAULTS[key] if amount is None else amount
    return Blur(radius=value) if key == "blur" else Pixelate(scale=value)


@dataclass
class ScrubSettings:
    """Runtime settings read from the environment."""

    custom_terms: List[str] = field(default_factory=list)
    style: str = "pixelate"
    style_amount: Optional[float] = None
    advanced_detection: bool = True
    timeout: float = MAX_PIPELINE_SECONDS
    ocr_lang: str = "eng"
    ocr_psm: int = 11
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> "ScrubSettings":
        amount_raw = os.environ.get("SCRUBSHOT_STYLE_AMOUNT")
        return ScrubSettings(
            custom_terms=_split_csv(os.environ.get("SCRUBSHOT_CUSTOM_TERMS")),
            style=os.environ.get("SCRUBSHOT_STYLE", "pixelate"),
            style_amount=_parse_float(amount_raw, default=0.0) or None,
            advanced_detection=_parse_bool(
                os.environ.get("SCRUBSHOT_ADVANCED_DETECTION"), default=True
            ),
            timeout=_parse_float(
                os.environ.get("SCRUBSHOT_TIMEOUT"), default=MAX_PIPELINE_SECONDS
            ),
            ocr_lang=os.environ.get("SCRUBSHOT_OCR_LANG", "eng"),
            ocr_psm=int(os.environ.get("SCRUBSHOT_OCR_PSM", "11")),
            log_level=os.environ.get("SCRUBSHOT_LOG_LEVEL", "INFO"),
        )

    def pipeline_config(self, **overrides) -> PipelineConfig:
        """Materialise a :class:`PipelineConfig`; keyword overrides win."""
        values = dict(
            timeout=self.timeout,
            style=make_style(self.style, self.style_amount),
            custom_terms=tuple(self.custom_terms),
            advanced_detection=self.advanced_detection,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return PipelineConfig(**values)


@lru_cache(maxsize=1)
def get_settings() -> ScrubSettings:
    """Return cached settings."""
    return ScrubSettings.from_env()


def reset_settings_cache() -> None:
    """Reset cached settings (useful in tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
