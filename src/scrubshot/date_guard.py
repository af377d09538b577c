"""Date/time guard used to suppress date-shaped digit runs.

Long digit sequences are a strong signal for account numbers and IDs, but
screenshots are full of dates, timestamps and clock times. Every pattern here
is precompiled once; ``looks_like_date_or_time`` is the single entry point the
numeric detector uses.
"""

from __future__ import annotations

import regex as re

_MONTHS = (
    r"Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec|January|February|"
    r"March|April|June|July|August|September|October|November|December"
)

YMD_RE = re.compile(
    r"(?<!\d)(?:19|20)\d{2}[-/.](?:0?[1-9]|1[0-2])[-/.](?:0?[1-9]|[12]\d|3[01])(?!\d)"
)
DMY_RE = re.compile(
    r"(?<!\d)(?:0?[1-9]|[12]\d|3[01])[-/.](?:0?[1-9]|1[0-2])[-/.](?:19|20)\d{2}(?!\d)"
)
MDY_RE = re.compile(
    r"(?<!\d)(?:0?[1-9]|1[0-2])[-/.](?:0?[1-9]|[12]\d|3[01])[-/.](?:19|20)\d{2}(?!\d)"
)
COMPACT_YMD_RE = re.compile(r"(?<!\d)(?:19|20)\d{6}(?!\d)")
TIME_RE = re.compile(
    r"(?<!\d)(?:[01]?\d|2[0-3]):[0-5]\d(?::[0-5]\d)?(?:\s?(?:AM|PM))?(?!\d)", re.I
)
ISO8601_RE = re.compile(
    r"(?:19|20)\d{2}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+\-]\d{2}:\d{2})"
)
MONTH_WORDS_RE = re.compile(
    rf"(?:\b(?:{_MONTHS})\b\.?,?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+(?:19|20)\d{{2}})?)"
    rf"|(?:\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:{_MONTHS})\b\.?,?\s+(?:19|20)\d{{2}})",
    re.I,
)

_GUARDS = (YMD_RE, DMY_RE, MDY_RE, COMPACT_YMD_RE, ISO8601_RE, TIME_RE, MONTH_WORDS_RE)

# Substring checks over the whole line, not per-token proximity.
DATE_CONTEXT_WORDS = (
    "mon", "tue", "wed", "thu", "fri", "sat", "sun",
    "am", "pm", "utc", "ist", "gmt", "pst", "est",
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
    "january", "february", "march", "april", "june",
    "july", "august", "september", "october", "november", "december",
    "today", "yesterday", "tomorrow", "date", "time",
)

MAX_CONTEXT_LINE_LENGTH = 100


def looks_like_date_or_time(text: str) -> bool:
    """Return True if ``text`` contains any date, timestamp or time-of-day shape."""
    return any(guard.search(text) is not None for guard in _GUARDS)


def is_likely_yyyymmdd(text: str) -> bool:
    """Return True for 8-digit strings that parse as a plausible ``YYYYMMDD``."""
    if len(text) != 8 or not text.isdigit():
        return False
    year, month, day = int(text[:4]), int(text[4:6]), int(text[6:])
    return 1900 <= year <= 2100 and 1 <= month <= 12 and 1 <= day <= 31


def has_date_context(line: str) -> bool:
    """Coarse check: a short line mentioning any weekday/month/clock word."""
    if len(line) > MAX_CONTEXT_LINE_LENGTH:
        return False
    lowered = line.lower()
    return any(word in lowered for word in DATE_CONTEXT_WORDS)


__all__ = [
    "looks_like_date_or_time",
    "is_likely_yyyymmdd",
    "has_date_context",
    "DATE_CONTEXT_WORDS",
]
