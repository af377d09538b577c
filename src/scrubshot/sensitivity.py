"""Sensitivity Detector: runs every pattern detector over one OCR line.

The result is deduplicated by identical span (first occurrence wins, so the
detector order below is also a priority order) and sorted by span start.
Overlapping hits with different spans are kept; the region builder merges
them.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from scrubshot.card_detect import detect_credit_cards
from scrubshot.fuzzy import detect_custom_terms
from scrubshot.model import Hit, dedupe_hits
from scrubshot.regex_detect import (
    DEFAULT_PHONE_REGION,
    classify_data,
    detect_channels,
    detect_emails_fallback,
    detect_long_numeric,
    detect_mentions,
    detect_urls_fallback,
)
from scrubshot.secret_detect import detect_secrets


def detect(
    line: str,
    custom_terms: Sequence[str] = (),
    *,
    phone_region: str = DEFAULT_PHONE_REGION,
) -> List[Hit]:
    """Detect mentions, channels, contact data, IDs and custom terms in ``line``."""
    hits: List[Hit] = []
    hits.extend(detect_mentions(line))
    hits.extend(detect_channels(line))
    hits.extend(classify_data(line, phone_region))
    hits.extend(detect_emails_fallback(line))
    hits.extend(detect_urls_fallback(line, existing=hits))
    hits.extend(detect_long_numeric(line))
    hits.extend(detect_custom_terms(line, custom_terms))
    return sorted(dedupe_hits(hits), key=lambda h: h.start)


def detect_advanced(line: str) -> List[Hit]:
    """Credit cards, passwords and API keys."""
    return dedupe_hits(detect_credit_cards(line) + detect_secrets(line))


def detect_line(
    line: str,
    custom_terms: Sequence[str] = (),
    *,
    advanced: bool = True,
    phone_region: str = DEFAULT_PHONE_REGION,
) -> List[Hit]:
    """Full per-line scan used by the pipeline."""
    hits = detect(line, custom_terms, phone_region=phone_region)
    if advanced:
        hits = sorted(dedupe_hits(hits + detect_advanced(line)), key=lambda h: h.start)
    return hits


def detect_lines(lines: Iterable[str], custom_terms: Sequence[str] = (), **kwargs) -> List[List[Hit]]:
    return [detect_line(text, custom_terms, **kwargs) for text in lines]


__all__ = ["detect", "detect_advanced", "detect_line", "detect_lines"]
