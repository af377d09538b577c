"""Deterministic regex-based detectors for single OCR lines.

This module uses the third-party ``regex`` package for Unicode-aware patterns
and ``phonenumbers`` for phone classification. Every detector takes one line
of text and returns :class:`~scrubshot.model.Hit` objects with offsets into
that line. A detector that fails (bad pattern, matcher timeout, classifier
error) contributes no hits; it never aborts the caller.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import phonenumbers
import regex as re

from scrubshot.date_guard import has_date_context, is_likely_yyyymmdd, looks_like_date_or_time
from scrubshot.logging import get_logger
from scrubshot.model import (
    ADDRESS,
    CHANNEL,
    EMAIL,
    LONG_NUMERIC_ID,
    MENTION,
    PHONE,
    TRANSIT,
    URL,
    Hit,
    Kind,
)

logger = get_logger(__name__)

# Upper bound for a single pattern scan over one line.
MATCH_TIMEOUT = 1.0

MENTION_RE = re.compile(r"@[\p{L}\p{N}._-]+")
CHANNEL_RE = re.compile(r"#[\p{L}\p{N}_-]+")

EMAIL_FALLBACK_RE = re.compile(
    r"(?xi)[A-Z0-9._%+-]+\s*@\s*[A-Z0-9.-]+\s*\.[A-Z]{2,}"
)
URL_PROTOCOL_RE = re.compile(
    r"(?xi)https?://[a-z0-9][a-z0-9-]{0,61}[a-z0-9]\.[a-z]{2,}(?:/[^\s]*)?"
)
URL_BARE_RE = re.compile(
    r"(?xi)(?:www\.)?[a-z0-9][a-z0-9-]{0,61}[a-z0-9]\.[a-z]{2,}(?:/[^\s]*)?"
)
# Domains glued to trailing text by OCR, e.g. "docs.stripe.comltesting".
URL_OCR_GLUED_RE = re.compile(
    r"(?xi)(?:www\.)?[a-z0-9][a-z0-9-]{0,61}[a-z0-9]\.[a-z]{2,}[a-z0-9]+"
)

LONG_DIGITS_RE = re.compile(r"(?<!\d)\d{7,}(?!\d)")

# Generic data classifier: links, addresses, transit.
LINK_RE = re.compile(r"(?i)(?:(?:https?|ftp)://|www\.)[^\s<>\"']+")
MAILTO_RE = re.compile(r"(?i)mailto:[^\s<>\"']+")
BARE_EMAIL_RE = re.compile(
    r"(?<![A-Za-z0-9._%+-])[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}"
)
_TRAILING_PUNCT_RE = re.compile(r"[.,;:!?)\]}]+$")

_STREET_SUFFIX = (
    r"(?:St|Street|Ave|Avenue|Rd|Road|Blvd|Boulevard|Ln|Lane|Dr|Drive|Ct|Court|"
    r"Way|Pl|Place|Ter|Terrace|Pkwy|Parkway|Hwy|Highway|Cir|Circle|Sq|Square|"
    r"Plaza|Center|Centre)\.?"
)
_HOUSE_NUMBER = r"(?:\d{1,6}[A-Za-z]?|One|Two|Three|Four|Five|Six|Seven|Eight|Nine|Ten)"
_CAP_WORD = r"[\p{Lu}][\p{L}'.-]*"
_STATE_ZIP = r"[A-Z]{2}\s+\d{5}(?:-\d{4})?"

STREET_ADDRESS_RE = re.compile(
    rf"\b{_HOUSE_NUMBER}(?:\s+{_CAP_WORD}){{1,4}}\s+{_STREET_SUFFIX}(?![\p{{L}}])"
    rf"(?:(?:,\s*{_CAP_WORD}(?:\s+{_CAP_WORD})*)*,\s*{_STATE_ZIP})?"
)
CITY_STATE_ZIP_RE = re.compile(rf"\b{_CAP_WORD}(?:\s+{_CAP_WORD})*,\s*{_STATE_ZIP}\b")
TRANSIT_RE = re.compile(
    r"(?i:\bflight|\bflt\.?)\s*#?\s*((?:[A-Z]{2}|[A-Z]\d|\d[A-Z])\s?\d{1,4}[A-Z]?)\b"
)

DEFAULT_PHONE_REGION = "US"


def _scan(pattern, line: str, kind: Kind, group: int = 0) -> List[Hit]:
    hits: List[Hit] = []
    try:
        for m in pattern.finditer(line, timeout=MATCH_TIMEOUT):
            start, end = m.span(group)
            if start < 0 or end <= start:
                continue
            hits.append(Hit(start, end, kind))
    except (re.error, TimeoutError) as exc:
        logger.debug("pattern scan failed", extra={"extra": {"kind": kind.describe(), "error": str(exc)}})
        return []
    return hits


def _overlaps_any(hit: Hit, others: Iterable[Hit]) -> bool:
    return any(hit.overlaps(o) for o in others)


def detect_mentions(line: str) -> List[Hit]:
    """``@handle`` style mentions."""
    return _scan(MENTION_RE, line, MENTION)


def detect_channels(line: str) -> List[Hit]:
    """``#channel`` style references."""
    return _scan(CHANNEL_RE, line, CHANNEL)


def detect_phones(line: str, region: str = DEFAULT_PHONE_REGION) -> List[Hit]:
    """Phone numbers in any format ``phonenumbers`` accepts as possible.

    Bare digit runs (no ``+``, spaces or separators) are held to the same
    date and time guard as :func:`detect_long_numeric`.
    """
    hits: List[Hit] = []
    matcher = phonenumbers.PhoneNumberMatcher(
        line, region, leniency=phonenumbers.Leniency.POSSIBLE
    )
    for match in matcher:
        hit = Hit(match.start, match.end, PHONE)
        if hit.text(line).isdigit() and _date_like(line, hit):
            continue
        hits.append(hit)
    return hits


def _trimmed(m, line: str, kind: Kind) -> Optional[Hit]:
    start, end = m.span()
    tail = _TRAILING_PUNCT_RE.search(line[start:end])
    if tail:
        end = start + tail.start()
    if end <= start:
        return None
    return Hit(start, end, kind)


def detect_links(line: str) -> List[Hit]:
    """Scheme URLs, ``www.`` hosts and ``mailto:``/bare email addresses."""
    hits: List[Hit] = []
    for m in MAILTO_RE.finditer(line, timeout=MATCH_TIMEOUT):
        hit = _trimmed(m, line, EMAIL)
        if hit:
            hits.append(hit)
    for m in LINK_RE.finditer(line, timeout=MATCH_TIMEOUT):
        hit = _trimmed(m, line, URL)
        if hit and not _overlaps_any(hit, hits):
            hits.append(hit)
    for m in BARE_EMAIL_RE.finditer(line, timeout=MATCH_TIMEOUT):
        hit = Hit(m.start(), m.end(), EMAIL)
        if not _overlaps_any(hit, hits):
            hits.append(hit)
    return hits


def detect_addresses(line: str) -> List[Hit]:
    hits = _scan(STREET_ADDRESS_RE, line, ADDRESS)
    for hit in _scan(CITY_STATE_ZIP_RE, line, ADDRESS):
        if not any(h.start <= hit.start and hit.end <= h.end for h in hits):
            hits.append(hit)
    return hits


def detect_transit(line: str) -> List[Hit]:
    """Flight designators such as ``Flight AA1234`` (the designator is the hit)."""
    return _scan(TRANSIT_RE, line, TRANSIT, group=1)


def classify_data(line: str, region: str = DEFAULT_PHONE_REGION) -> List[Hit]:
    """Combined phone / link / address / transit classifier.

    Returns hits ordered by position. Any classifier error yields ``[]``.
    """
    try:
        hits = detect_phones(line, region)
        hits.extend(detect_links(line))
        hits.extend(detect_addresses(line))
        hits.extend(detect_transit(line))
    except Exception as exc:
        logger.debug("data classifier failed", extra={"extra": {"error": str(exc)}})
        return []
    return sorted(hits, key=lambda h: h.start)


def detect_emails_fallback(line: str) -> List[Hit]:
    """Looser email pattern that tolerates OCR spacing around ``@`` and ``.``."""
    return _scan(EMAIL_FALLBACK_RE, line, EMAIL)


def detect_urls_fallback(line: str, existing: Iterable[Hit] = ()) -> List[Hit]:
    """Protocol and protocol-less URLs, plus OCR-glued domains.

    Glued-domain matches are only kept when they overlap neither ``existing``
    hits nor the URL hits found here.
    """
    hits = _scan(URL_PROTOCOL_RE, line, URL)
    hits.extend(_scan(URL_BARE_RE, line, URL))
    taken = list(existing) + hits
    for glued in _scan(URL_OCR_GLUED_RE, line, URL):
        if not _overlaps_any(glued, taken):
            hits.append(glued)
            taken.append(glued)
    return hits


def detect_long_numeric(line: str) -> List[Hit]:
    """Runs of 7+ digits that are not dates, timestamps or clock times."""
    hits: List[Hit] = []
    for hit in _scan(LONG_DIGITS_RE, line, LONG_NUMERIC_ID):
        if not _date_like(line, hit):
            hits.append(hit)
    return hits


def _date_like(line: str, hit: Hit) -> bool:
    digits = hit.text(line)
    if looks_like_date_or_time(digits) or looks_like_date_or_time(_enclosing_token(line, hit)):
        return True
    if digits.isdigit():
        if len(digits) == 8 and is_likely_yyyymmdd(digits):
            return True
        if len(digits) in (7, 8) and has_date_context(line):
            return True
    return False


def _enclosing_token(line: str, hit: Hit) -> str:
    start, end = hit.start, hit.end
    while start > 0 and not line[start - 1].isspace():
        start -= 1
    while end < len(line) and not line[end].isspace():
        end += 1
    return line[start:end]


__all__ = [
    "detect_mentions",
    "detect_channels",
    "detect_phones",
    "detect_links",
    "detect_addresses",
    "detect_transit",
    "classify_data",
    "detect_emails_fallback",
    "detect_urls_fallback",
    "detect_long_numeric",
]
