"""High-level orchestration for scrubshot redaction runs."""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from PIL import Image

from scrubshot.logging import get_logger
from scrubshot.model import (
    Failure,
    FileWriteFailed,
    PipelineOutcome,
    ReadOnlyDirectory,
    RedactionError,
    Success,
    TimedOut,
    UnexpectedFailure,
)
from scrubshot.ocr import TextRecognizer
from scrubshot.redact import ImageRedactor
from scrubshot.vision import RegionSource

from .config import ImageFormat, PipelineConfig, PipelineDiagnostics
from .detection import DetectionResult, run_detection
from .storage import (
    detect_format,
    downscale_if_needed,
    is_loadable,
    is_writable_dir,
    load_image,
    place_output,
    save_image_atomic,
    scratch_path,
)

logger = get_logger("scrubshot")


@dataclass
class _PipelineResult:
    image: Image.Image
    detection: DetectionResult
    redaction_time: float


class RedactionService:
    """Detect sensitive text in screenshots and write redacted images.

    Parameters
    ----------
    recognizer:
        OCR collaborator turning an image into text lines.
    redactor:
        Image redactor; a default :class:`ImageRedactor` is created if omitted.
    config:
        Pipeline configuration shared by every request.
    region_sources:
        Optional vision collaborators contributing extra pixel regions.

    The service holds no per-request state, so one instance can serve many
    images. Two requests for the *same* image must not run concurrently.
    """

    def __init__(
        self,
        recognizer: TextRecognizer,
        redactor: Optional[ImageRedactor] = None,
        config: Optional[PipelineConfig] = None,
        region_sources: Sequence[RegionSource] = (),
    ) -> None:
        self.recognizer = recognizer
        self.redactor = redactor or ImageRedactor()
        self.config = config or PipelineConfig()
        self.region_sources = tuple(region_sources)

    async def redact_in_place(self, path: Union[str, Path]) -> PipelineOutcome:
        """Redact ``path`` and overwrite it atomically."""
        return await self._run(Path(path), in_place=True)

    async def redact_and_save(self, path: Union[str, Path]) -> PipelineOutcome:
        """Redact ``path`` into a new ``redact-<stem>`` sibling file."""
        return await self._run(Path(path), in_place=False)

    def redact_in_place_sync(self, path: Union[str, Path]) -> PipelineOutcome:
        return asyncio.run(self.redact_in_place(path))

    def redact_and_save_sync(self, path: Union[str, Path]) -> PipelineOutcome:
        return asyncio.run(self.redact_and_save(path))

    async def _run(self, path: Path, in_place: bool) -> PipelineOutcome:
        diagnostics = PipelineDiagnostics()
        t0 = time.perf_counter()
        try:
            outcome: PipelineOutcome = await self._execute(path, in_place, diagnostics)
        except RedactionError as exc:
            _transition(path, "failed", reason=exc.reason)
            outcome = Failure(exc)
        except Exception as exc:
            logger.exception("unexpected pipeline error", extra={"extra": {"path": str(path)}})
            error = UnexpectedFailure(f"{type(exc).__name__}: {exc}")
            _transition(path, "failed", reason=error.reason)
            outcome = Failure(error)
        diagnostics.total_time = time.perf_counter() - t0
        logger.info(
            "pipeline diagnostics",
            extra={"extra": {"ok": outcome.ok, **diagnostics.model_dump(mode="json")}},
        )
        return outcome

    async def _execute(
        self, path: Path, in_place: bool, diagnostics: PipelineDiagnostics
    ) -> PipelineOutcome:
        cfg = self.config
        original = load_image(path)
        _transition(path, "loaded", width=original.width, height=original.height)

        fmt = detect_format(path)
        diagnostics.output_format = fmt
        _transition(path, "format_detected", format=fmt.value)

        if not is_writable_dir(path.parent):
            raise ReadOnlyDirectory(str(path.parent))
        _transition(path, "directory_checked")

        working, downscaled = downscale_if_needed(original, cfg.max_dimension, cfg.downscale_factor)
        diagnostics.was_downscaled = downscaled
        if downscaled:
            _transition(path, "downscaled", width=working.width, height=working.height)

        _transition(path, "pipeline_running", timeout=cfg.timeout)
        result = await self._race(working)

        if result is None:
            diagnostics.was_timed_out = True
            _transition(path, "timed_out", in_place=in_place)
            if in_place:
                raise TimedOut(f"no result within {cfg.timeout:g}s")
            dest = self._save_copy(original, path, fmt, diagnostics)
            return Success(dest, timed_out=True, downscaled=downscaled)

        detection = result.detection
        diagnostics.ocr_time = detection.ocr_time
        diagnostics.detection_time = detection.detection_time
        diagnostics.region_merge_time = detection.region_merge_time
        diagnostics.redaction_time = result.redaction_time
        diagnostics.line_count = len(detection.lines)
        diagnostics.hit_count = detection.hit_count
        diagnostics.merged_region_count = len(detection.regions)

        if in_place:
            dest = self._save_in_place(result.image, path, fmt, diagnostics)
        else:
            dest = self._save_copy(result.image, path, fmt, diagnostics)
        _transition(path, "succeeded", output=str(dest))
        return Success(dest, downscaled=downscaled)

    async def _race(self, image: Image.Image) -> Optional[_PipelineResult]:
        """Run the pipeline in a worker thread against the timeout.

        Returns ``None`` when the timer wins. A late worker result is dropped;
        the worker never touches the filesystem. Recognizers that honour the
        same deadline (``TesseractRecognizer(timeout=...)`` kills its
        subprocess) get ``worker_grace`` seconds to wind down so their thread
        is joined before this returns.
        """
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scrubshot")
        work = asyncio.ensure_future(loop.run_in_executor(executor, self._pipeline, image))
        timer = asyncio.ensure_future(asyncio.sleep(self.config.timeout))
        finished = False
        try:
            done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
            if work in done:
                finished = True
                return work.result()
            done, _ = await asyncio.wait({work}, timeout=self.config.worker_grace)
            finished = work in done
            if finished and not work.cancelled() and work.exception() is not None:
                logger.debug(
                    "late worker error dropped",
                    extra={"extra": {"error": str(work.exception())}},
                )
            return None
        finally:
            timer.cancel()
            if not finished:
                work.cancel()
            # Joining is instant once the worker is idle; a stuck one is abandoned.
            executor.shutdown(wait=finished, cancel_futures=True)

    def _pipeline(self, image: Image.Image) -> _PipelineResult:
        cfg = self.config
        detection = run_detection(image, self.recognizer, cfg, self.region_sources)
        t0 = time.perf_counter()
        redacted = self.redactor.redact(image, detection.regions, cfg.style)
        return _PipelineResult(redacted, detection, time.perf_counter() - t0)

    def _save_in_place(
        self, image: Image.Image, path: Path, fmt: ImageFormat, diagnostics: PipelineDiagnostics
    ) -> Path:
        t0 = time.perf_counter()
        save_image_atomic(image, path, fmt, self.config.jpeg_quality)
        if not is_loadable(path):
            raise FileWriteFailed(f"{path.name} could not be reloaded")
        diagnostics.save_time = time.perf_counter() - t0
        diagnostics.output_path = str(path)
        return path

    def _save_copy(
        self, image: Image.Image, path: Path, fmt: ImageFormat, diagnostics: PipelineDiagnostics
    ) -> Path:
        t0 = time.perf_counter()
        scratch = scratch_path(path.parent, fmt)
        save_image_atomic(image, scratch, fmt, self.config.jpeg_quality)
        if not is_loadable(scratch):
            scratch.unlink(missing_ok=True)
            raise FileWriteFailed("redacted image could not be reloaded")
        dest = place_output(scratch, path, fmt, self.config.max_filename_attempts)
        diagnostics.save_time = time.perf_counter() - t0
        diagnostics.output_path = str(dest)
        return dest


def _transition(path: Path, state: str, **fields) -> None:
    logger.debug("state", extra={"extra": {"state": state, "path": str(path), **fields}})


__all__ = ["RedactionService"]
