"""Simple batch runner with multiprocessing concurrency.

Redacts every screenshot in a directory (or a list of paths), writing
``redact-<stem>`` siblings or overwriting in place. Inputs are deduplicated by
resolved path so no image is processed by two workers at once.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

from tqdm import tqdm

from .logging import get_logger
from .ocr import TesseractRecognizer
from .pipeline import PipelineConfig, RedactionService

logger = get_logger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg"}


@dataclass(frozen=True)
class BatchItem:
    input: str
    ok: bool
    detail: str


def collect_inputs(paths: Iterable[str]) -> List[str]:
    """Expand directories into image files and drop duplicate paths."""
    seen = set()
    files: List[str] = []
    for raw in paths:
        p = Path(raw)
        candidates = sorted(p.iterdir()) if p.is_dir() else [p]
        for fp in candidates:
            if fp.suffix.lower() not in IMAGE_SUFFIXES or fp.name.startswith("redact-"):
                continue
            key = fp.resolve()
            if key in seen:
                continue
            seen.add(key)
            files.append(str(fp))
    return files


def _one(args: Tuple[str, PipelineConfig, str, int, bool]) -> BatchItem:
    inp, cfg, lang, psm, in_place = args
    service = RedactionService(TesseractRecognizer(lang=lang, psm=psm, timeout=cfg.timeout), config=cfg)
    if in_place:
        outcome = service.redact_in_place_sync(inp)
    else:
        outcome = service.redact_and_save_sync(inp)
    if outcome.ok:
        return BatchItem(inp, True, str(outcome.output_path))
    return BatchItem(inp, False, outcome.reason)


def run_batch(
    inputs: List[str],
    cfg: PipelineConfig,
    *,
    lang: str = "eng",
    psm: int = 11,
    in_place: bool = False,
    workers: int = 2,
) -> List[BatchItem]:
    """Process multiple screenshots concurrently.

    Returns one :class:`BatchItem` per unique input, in completion order.
    """
    files = collect_inputs(inputs)
    results: List[BatchItem] = []
    with ProcessPoolExecutor(max_workers=max(1, int(workers))) as ex:
        futs = {ex.submit(_one, (i, cfg, lang, psm, in_place)): i for i in files}
        for f in tqdm(as_completed(futs), total=len(futs), desc="Redact"):
            try:
                results.append(f.result())
            except Exception as exc:
                logger.error(
                    "batch worker crashed",
                    exc_info=exc,
                    extra={"extra": {"input": futs[f]}},
                )
                results.append(BatchItem(futs[f], False, str(exc)))
    return results


__all__ = ["BatchItem", "IMAGE_SUFFIXES", "collect_inputs", "run_batch"]
