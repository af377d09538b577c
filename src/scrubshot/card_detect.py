"""Credit-card number detection with Luhn checksum validation."""

from __future__ import annotations

from typing import List

import regex as re

from scrubshot.model import CREDIT_CARD, Hit, dedupe_hits

# 4242424242424242, 4242-4242-4242-4242, 4242 4242 4242 4242
CARD_PATTERNS = (
    re.compile(r"\b(?:\d[ -]?){13,19}\b"),
    re.compile(r"\b\d{13,19}\b"),
)


def luhn_check(digits: str) -> bool:
    """Double every second digit from the right; the sum must be divisible by 10."""
    total = 0
    for index, ch in enumerate(reversed(digits)):
        if not ch.isdigit():
            return False
        d = int(ch)
        if index % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def is_valid_card_number(digits: str) -> bool:
    return 13 <= len(digits) <= 19 and digits.isdigit() and luhn_check(digits)


def detect_credit_cards(line: str) -> List[Hit]:
    """Return Luhn-valid card numbers of 13-19 digits."""
    hits: List[Hit] = []
    for pattern in CARD_PATTERNS:
        try:
            matches = list(pattern.finditer(line, timeout=1.0))
        except (re.error, TimeoutError):
            continue
        for m in matches:
            start, end = m.span()
            # The separator group can swallow one trailing space or dash.
            while end > start and line[end - 1] in " -":
                end -= 1
            digits = "".join(ch for ch in line[start:end] if ch.isdigit())
            if is_valid_card_number(digits):
                hits.append(Hit(start, end, CREDIT_CARD))
    return dedupe_hits(hits)


__all__ = ["luhn_check", "is_valid_card_number", "detect_credit_cards"]
