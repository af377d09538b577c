"""Detection stage: OCR, per-line scanning and region building, timed."""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Sequence

from PIL import Image

from scrubshot.align import regions as build_regions
from scrubshot.logging import get_logger
from scrubshot.model import DetectionFailed, Hit, Region, TextLine
from scrubshot.ocr import TextRecognizer
from scrubshot.sensitivity import detect_line
from scrubshot.vision import RegionSource, collect_regions

from .config import PipelineConfig

logger = get_logger(__name__)


@dataclass
class DetectionResult:
    lines: List[TextLine]
    hits: List[List[Hit]]
    regions: List[Region]
    ocr_time: float = 0.0
    detection_time: float = 0.0
    region_merge_time: float = 0.0
    summary: dict = field(default_factory=dict)

    @property
    def hit_count(self) -> int:
        return sum(len(h) for h in self.hits)


def detect_hits(lines: Sequence[TextLine], cfg: PipelineConfig) -> List[List[Hit]]:
    return [
        detect_line(
            line.text,
            cfg.custom_terms,
            advanced=cfg.advanced_detection,
            phone_region=cfg.phone_region,
        )
        for line in lines
    ]


def summarize_hits(hits: Sequence[Sequence[Hit]]) -> dict:
    """Count detected items per kind description."""
    counts: Counter = Counter()
    for line_hits in hits:
        for hit in line_hits:
            counts[hit.kind.describe()] += 1
    return dict(sorted(counts.items()))


def run_detection(
    image: Image.Image,
    recognizer: TextRecognizer,
    cfg: PipelineConfig,
    region_sources: Sequence[RegionSource] = (),
) -> DetectionResult:
    """Recognise text, scan every line and build merged pixel regions."""
    t0 = time.perf_counter()
    try:
        lines = list(recognizer.recognize(image))
    except Exception as exc:
        raise DetectionFailed(str(exc)) from exc
    t_ocr = time.perf_counter()

    hits = detect_hits(lines, cfg)
    t_detect = time.perf_counter()

    summary = summarize_hits(hits)
    logger.debug(
        "detected content",
        extra={"extra": {"lines": len(lines), "by_kind": summary}},
    )

    try:
        regions = build_regions(lines, hits, padding=cfg.region_padding)
        if region_sources:
            regions.extend(collect_regions(image, region_sources))
    except Exception as exc:
        raise DetectionFailed(f"region building failed: {exc}") from exc
    t_regions = time.perf_counter()

    return DetectionResult(
        lines=lines,
        hits=hits,
        regions=regions,
        ocr_time=t_ocr - t0,
        detection_time=t_detect - t_ocr,
        region_merge_time=t_regions - t_detect,
        summary=summary,
    )


__all__ = ["DetectionResult", "detect_hits", "summarize_hits", "run_detection"]
