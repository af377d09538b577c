"""Password and API-key heuristics.

Only lines that mention a credential keyword are inspected, which keeps the
false-positive rate tolerable on ordinary UI text.
"""

from __future__ import annotations

from typing import List

import regex as re

from scrubshot.model import API_KEY, PASSWORD, Hit, dedupe_hits

PASSWORD_KEYWORDS = (
    "password", "pwd", "pass", "passcode", "passphrase",
    "secret", "key", "token", "api key", "access key",
    "credential", "auth", "authentication",
)
NON_SECRET_WORDS = frozenset(
    {"true", "false", "yes", "no", "none", "null", "undefined", "example", "test"}
)

SEPARATOR_PATTERNS = (
    re.compile(r":\s*([^\s]+)", re.I),
    re.compile(r"=\s*([^\s]+)", re.I),
    re.compile(r"->\s*([^\s]+)", re.I),
    re.compile(r"is\s+([^\s]+)", re.I),
)
QUOTED_RE = re.compile(r"[\"']([^\"']{6,})[\"']")
API_KEY_RE = re.compile(r"\b[A-Za-z0-9_\-]{20,}\b")

MIN_SECRET_LENGTH = 6
LONG_SECRET_LENGTH = 16


def has_password_context(line: str) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in PASSWORD_KEYWORDS)


def looks_like_password(value: str) -> bool:
    if value.lower() in NON_SECRET_WORDS:
        return False
    if len(value) < MIN_SECRET_LENGTH:
        return False
    if value.isalpha() and len(value) < 20:
        return False
    has_letters = any(ch.isalpha() for ch in value)
    has_digits = any(ch.isdigit() for ch in value)
    has_symbols = any(not ch.isalnum() for ch in value)
    traits = sum((has_letters, has_digits, has_symbols))
    return traits >= 2 or len(value) >= LONG_SECRET_LENGTH


def _captured(pattern, line: str) -> List[tuple]:
    try:
        return [m.span(1) for m in pattern.finditer(line, timeout=1.0)]
    except (re.error, TimeoutError):
        return []


def detect_secrets(line: str) -> List[Hit]:
    """Return password-like values and API keys found on credential lines."""
    if not has_password_context(line):
        return []
    hits: List[Hit] = []
    for pattern in SEPARATOR_PATTERNS + (QUOTED_RE,):
        for start, end in _captured(pattern, line):
            if end > start and looks_like_password(line[start:end]):
                hits.append(Hit(start, end, PASSWORD))

    lowered = line.lower()
    if "api" in lowered or "token" in lowered or "key" in lowered:
        try:
            for m in API_KEY_RE.finditer(line, timeout=1.0):
                hits.append(Hit(m.start(), m.end(), API_KEY))
        except (re.error, TimeoutError):
            pass
    return dedupe_hits(hits)


__all__ = ["has_password_context", "looks_like_password", "detect_secrets"]
