"""Core value types shared by detectors, the region builder and the redactor.

All geometry is expressed in image pixel space with a top-left origin. Text
spans are half-open ``[start, end)`` character offsets into a single OCR line.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple, Union


class KindTag(str, Enum):
    """Classification tags for detected sensitive text."""

    MENTION = "mention"
    CHANNEL = "channel"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    ADDRESS = "address"
    TRANSIT = "transit"
    PERSONAL_NAME = "personal_name"
    ORGANIZATION_NAME = "organization_name"
    CUSTOM_TERM = "custom_term"
    LONG_NUMERIC_ID = "long_numeric_id"
    CREDIT_CARD = "credit_card"
    PASSWORD = "password"
    API_KEY = "api_key"


_DESCRIPTIONS = {
    KindTag.MENTION: "Mention",
    KindTag.CHANNEL: "Channel",
    KindTag.EMAIL: "Email",
    KindTag.PHONE: "Phone",
    KindTag.URL: "URL",
    KindTag.ADDRESS: "Address",
    KindTag.TRANSIT: "Transit",
    KindTag.PERSONAL_NAME: "Personal Name",
    KindTag.ORGANIZATION_NAME: "Organization Name",
    KindTag.LONG_NUMERIC_ID: "Long Numeric ID",
    KindTag.CREDIT_CARD: "Credit Card",
    KindTag.PASSWORD: "Password",
    KindTag.API_KEY: "API Key",
}


@dataclass(frozen=True)
class Kind:
    """A hit classification. Only ``CUSTOM_TERM`` carries a payload (``term``).

    Equality compares the payload as well, so two custom terms with different
    names are different kinds.
    """

    tag: KindTag
    term: Optional[str] = None

    @classmethod
    def custom_term(cls, term: str) -> "Kind":
        return cls(KindTag.CUSTOM_TERM, term)

    def describe(self) -> str:
        if self.tag is KindTag.CUSTOM_TERM:
            return f"Custom Term ({self.term})"
        return _DESCRIPTIONS[self.tag]


MENTION = Kind(KindTag.MENTION)
CHANNEL = Kind(KindTag.CHANNEL)
EMAIL = Kind(KindTag.EMAIL)
PHONE = Kind(KindTag.PHONE)
URL = Kind(KindTag.URL)
ADDRESS = Kind(KindTag.ADDRESS)
TRANSIT = Kind(KindTag.TRANSIT)
PERSONAL_NAME = Kind(KindTag.PERSONAL_NAME)
ORGANIZATION_NAME = Kind(KindTag.ORGANIZATION_NAME)
LONG_NUMERIC_ID = Kind(KindTag.LONG_NUMERIC_ID)
CREDIT_CARD = Kind(KindTag.CREDIT_CARD)
PASSWORD = Kind(KindTag.PASSWORD)
API_KEY = Kind(KindTag.API_KEY)


@dataclass(frozen=True)
class Hit:
    """A detected sensitive span. Equality and hashing use the span only."""

    start: int
    end: int
    kind: Kind = field(compare=False)

    @property
    def span(self) -> Tuple[int, int]:
        return (self.start, self.end)

    def __len__(self) -> int:
        return self.end - self.start

    def text(self, line: str) -> str:
        return line[self.start : self.end]

    def overlaps(self, other: "Hit") -> bool:
        return self.start < other.end and other.start < self.end


def dedupe_hits(hits):
    """Drop hits whose span was already seen, keeping the first occurrence."""
    seen = set()
    unique = []
    for hit in hits:
        if hit.span in seen:
            continue
        seen.add(hit.span)
        unique.append(hit)
    return unique


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in pixel space (top-left origin)."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            object.__setattr__(self, "width", max(0.0, self.width))
            object.__setattr__(self, "height", max(0.0, self.height))

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @classmethod
    def from_edges(cls, x0: float, y0: float, x1: float, y1: float) -> "Region":
        return cls(x0, y0, x1 - x0, y1 - y0)

    def inflate(self, px: float) -> "Region":
        return Region(self.x - px, self.y - px, self.width + 2 * px, self.height + 2 * px)

    def intersection(self, other: "Region") -> "Region":
        x0 = max(self.min_x, other.min_x)
        y0 = max(self.min_y, other.min_y)
        x1 = min(self.max_x, other.max_x)
        y1 = min(self.max_y, other.max_y)
        if x1 <= x0 or y1 <= y0:
            return Region(x0, y0, 0.0, 0.0)
        return Region.from_edges(x0, y0, x1, y1)

    def clamp(self, bounds: "Region") -> "Region":
        return self.intersection(bounds)

    def union(self, other: "Region") -> "Region":
        return Region.from_edges(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def scaled(self, factor: float) -> "Region":
        return Region(self.x * factor, self.y * factor, self.width * factor, self.height * factor)

    def pixel_box(self) -> Tuple[int, int, int, int]:
        """Return ``(x0, y0, x1, y1)`` snapped outward to whole pixels."""
        return (
            int(math.floor(self.min_x)),
            int(math.floor(self.min_y)),
            int(math.ceil(self.max_x)),
            int(math.ceil(self.max_y)),
        )


PreciseBoxLookup = Callable[[int, int], Optional[Region]]


@dataclass
class TextLine:
    """One OCR line: recognised text, its pixel box and an optional precise
    per-span lookup supplied by the recognizer."""

    text: str
    box: Region
    lookup: Optional[PreciseBoxLookup] = field(default=None, repr=False)

    def precise_box(self, start: int, end: int) -> Optional[Region]:
        if self.lookup is None:
            return None
        return self.lookup(start, end)


@dataclass(frozen=True)
class Blur:
    radius: float = 12.0

    def __post_init__(self) -> None:
        if not self.radius > 0:
            raise ValueError("blur radius must be positive")


@dataclass(frozen=True)
class Pixelate:
    scale: float = 8.0

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ValueError("pixelate scale must be positive")


RedactionStyle = Union[Blur, Pixelate]


class RedactionError(Exception):
    """Base class for typed redaction failures."""

    message = "Redaction failed"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)

    @property
    def reason(self) -> str:
        return str(self)


class InvalidImage(RedactionError):
    message = "Invalid image provided"


class ReadOnlyDirectory(RedactionError):
    message = "Directory is read-only"


class FilterCreationFailed(RedactionError):
    message = "Failed to create image filter"


class FilterProcessingFailed(RedactionError):
    message = "Failed to process image with filter"


class ImageConversionFailed(RedactionError):
    message = "Failed to convert processed image"


class FileWriteFailed(RedactionError):
    message = "Failed to save redacted image"


class TimedOut(RedactionError):
    message = "Redaction timed out"


class DetectionFailed(RedactionError):
    message = "Text detection failed"


class UnexpectedFailure(RedactionError):
    """Any non-typed exception raised while a request was running."""

    message = "Unexpected redaction failure"


@dataclass(frozen=True)
class Success:
    output_path: Path
    timed_out: bool = False
    downscaled: bool = False

    ok = True


@dataclass(frozen=True)
class Failure:
    error: RedactionError

    ok = False

    @property
    def reason(self) -> str:
        return self.error.reason


PipelineOutcome = Union[Success, Failure]


__all__ = [
    "KindTag",
    "Kind",
    "MENTION",
    "CHANNEL",
    "EMAIL",
    "PHONE",
    "URL",
    "ADDRESS",
    "TRANSIT",
    "PERSONAL_NAME",
    "ORGANIZATION_NAME",
    "LONG_NUMERIC_ID",
    "CREDIT_CARD",
    "PASSWORD",
    "API_KEY",
    "Hit",
    "dedupe_hits",
    "Region",
    "TextLine",
    "Blur",
    "Pixelate",
    "RedactionStyle",
    "RedactionError",
    "InvalidImage",
    "ReadOnlyDirectory",
    "FilterCreationFailed",
    "FilterProcessingFailed",
    "ImageConversionFailed",
    "FileWriteFailed",
    "TimedOut",
    "DetectionFailed",
    "UnexpectedFailure",
    "Success",
    "Failure",
    "PipelineOutcome",
]
