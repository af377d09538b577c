"""Fuzzy matching of user-supplied custom terms (names, projects, codewords)."""

from __future__ import annotations

from typing import Iterable, List

import regex as re

from scrubshot.model import Hit, Kind

MAX_EDIT_DISTANCE = 1


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with a two-row dynamic programming table."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur[j] = prev[j - 1]
            else:
                cur[j] = 1 + min(prev[j], cur[j - 1], prev[j - 1])
        prev = cur
    return prev[-1]


def fuzzy_windows(term: str, line: str, max_distance: int = MAX_EDIT_DISTANCE) -> List[tuple]:
    """Return ``(start, end)`` of every term-length window within ``max_distance``."""
    size = len(term)
    if size == 0 or size > len(line):
        return []
    needle = term.lower()
    out = []
    for i in range(len(line) - size + 1):
        if edit_distance(needle, line[i : i + size].lower()) <= max_distance:
            out.append((i, i + size))
    return out


def detect_custom_terms(line: str, custom_terms: Iterable[str]) -> List[Hit]:
    """Case-insensitive exact match first; otherwise edit distance <= 1 windows.

    An exact match reports only the first occurrence of the term.
    """
    hits: List[Hit] = []
    for term in custom_terms:
        if not term:
            continue
        kind = Kind.custom_term(term)
        exact = re.search(re.escape(term), line, flags=re.IGNORECASE)
        if exact is not None:
            hits.append(Hit(exact.start(), exact.end(), kind))
            continue
        for start, end in fuzzy_windows(term, line):
            hits.append(Hit(start, end, kind))
    return hits


__all__ = ["edit_distance", "fuzzy_windows", "detect_custom_terms"]
