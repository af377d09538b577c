"""Align character spans to pixel rectangles and merge them into regions.

Each hit is mapped onto its OCR line either through the recognizer's precise
per-span lookup or, as a best-effort fallback, by slicing the line box in
proportion to character offsets. The resulting rectangles are then merged
across the whole image so neighbouring hits become a single redaction area.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from scrubshot.logging import get_logger
from scrubshot.model import MENTION, URL, Hit, Region, TextLine

logger = get_logger(__name__)

DEFAULT_PADDING = 2.0
MERGE_GAP = 4.0


def regions(
    lines: Sequence[TextLine],
    hits: Sequence[Sequence[Hit]],
    padding: float = DEFAULT_PADDING,
) -> List[Region]:
    """Build merged pixel regions from OCR lines and their per-line hits.

    Parameters
    ----------
    lines:
        Recognised lines with pixel boxes.
    hits:
        One hit list per line, in the same order as ``lines``.
    padding:
        Pixels added on every side of each token rectangle before clamping to
        the line box.

    Returns
    -------
    list[Region]
        Merged rectangles. Empty when ``lines`` and ``hits`` differ in length.
    """
    if len(lines) != len(hits):
        logger.debug(
            "line/hit length mismatch",
            extra={"extra": {"lines": len(lines), "hits": len(hits)}},
        )
        return []
    rects: List[Region] = []
    for line, line_hits in zip(lines, hits):
        rects.extend(line_regions(line, line_hits, padding))
    return merge_regions(rects)


def line_regions(line: TextLine, hits: Sequence[Hit], padding: float = DEFAULT_PADDING) -> List[Region]:
    if not hits:
        return []
    merged = merge_overlapping_hits(sorted(hits, key=lambda h: h.start))
    logger.debug(
        "line regions",
        extra={"extra": {"hits": len(hits), "merged": len(merged), "spans": [h.span for h in merged]}},
    )
    out: List[Region] = []
    for hit in merged:
        rect = line.precise_box(hit.start, hit.end)
        if rect is None:
            rect = approximate_rect(line.text, hit, line.box)
        out.append(rect.inflate(padding).clamp(line.box))
    return out


def approximate_rect(text: str, hit: Hit, line_box: Region) -> Region:
    """Slice ``line_box`` horizontally in proportion to the hit's offsets."""
    total = len(text)
    start_fraction = hit.start / total if total > 0 else 0.0
    width_fraction = len(hit) / total if total > 0 else 0.0
    return Region(
        line_box.min_x + start_fraction * line_box.width,
        line_box.min_y,
        width_fraction * line_box.width,
        line_box.height,
    )


def merge_overlapping_hits(hits: Sequence[Hit]) -> List[Hit]:
    """Merge start-sorted hits whose spans touch or overlap."""
    merged: List[Hit] = []
    for hit in hits:
        if merged:
            combined = _merge_pair(merged[-1], hit)
            if combined is not None:
                merged[-1] = combined
                continue
        merged.append(hit)
    return merged


def _merge_pair(lhs: Hit, rhs: Hit) -> Optional[Hit]:
    if lhs.end < rhs.start or rhs.end < lhs.start:
        return None
    # Mentions and URLs yield to a more specific co-located kind.
    if lhs.kind == MENTION:
        kind = rhs.kind
    elif rhs.kind == MENTION:
        kind = lhs.kind
    elif lhs.kind == URL:
        kind = rhs.kind
    elif rhs.kind == URL:
        kind = lhs.kind
    else:
        kind = lhs.kind
    return Hit(min(lhs.start, rhs.start), max(lhs.end, rhs.end), kind)


def should_merge(a: Region, b: Region, gap: float = MERGE_GAP) -> bool:
    horizontal = a.max_x >= b.min_x - gap and b.max_x >= a.min_x - gap
    vertical = a.max_y >= b.min_y - gap and b.max_y >= a.min_y - gap
    return horizontal and vertical


def merge_regions(rects: Sequence[Region], gap: float = MERGE_GAP) -> List[Region]:
    """Sweep-merge rectangles that overlap or sit within ``gap`` pixels.

    A single left-to-right pass can leave two rectangles apart that a later
    merge has bridged, so the sweep repeats until a pass merges nothing.
    """
    current = sorted(rects, key=lambda r: r.min_x)
    while True:
        merged: List[Region] = []
        changed = False
        for rect in current:
            for i, existing in enumerate(merged):
                if should_merge(existing, rect, gap):
                    merged[i] = existing.union(rect)
                    changed = True
                    break
            else:
                merged.append(rect)
        if not changed:
            return merged
        current = sorted(merged, key=lambda r: r.min_x)


__all__ = [
    "regions",
    "line_regions",
    "approximate_rect",
    "merge_overlapping_hits",
    "should_merge",
    "merge_regions",
]
