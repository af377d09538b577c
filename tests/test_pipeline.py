import asyncio
import errno
import logging
import os
import re
import threading

import numpy as np
import pytest
from PIL import Image

import scrubshot.pipeline.orchestration as orchestration
import scrubshot.pipeline.storage as storage
from scrubshot.model import (
    DetectionFailed,
    FileWriteFailed,
    ImageConversionFailed,
    InvalidImage,
    ReadOnlyDirectory,
    Region,
    TextLine,
    TimedOut,
    UnexpectedFailure,
)
from scrubshot.pipeline import PipelineConfig, RedactionService
from scrubshot.pipeline.config import ImageFormat
from scrubshot.pipeline.storage import detect_format, output_candidates, save_image_atomic

NAME_RE = re.compile(r"redact-shot(-\d+)?\.(png|jpg)")


def _save(img, path):
    img.save(path)
    return path


def test_end_to_end_copy(tmp_path, noise_image, contact_line, fake_recognizer):
    img = noise_image()
    src = _save(img, tmp_path / "shot.png")
    before = src.read_bytes()
    service = RedactionService(fake_recognizer([contact_line]))

    outcome = service.redact_and_save_sync(src)

    assert outcome.ok
    assert NAME_RE.fullmatch(outcome.output_path.name)
    assert outcome.output_path.parent == tmp_path
    assert src.read_bytes() == before
    out = np.asarray(Image.open(outcome.output_path).convert("RGB"))
    orig = np.asarray(img)
    # "a@b.com" sits roughly at x 137..211 on the 10..40 line box.
    assert (out[15:35, 140:205] != orig[15:35, 140:205]).any()
    # "+1-555-123-4567" sits roughly at x 232..390.
    assert (out[15:35, 240:380] != orig[15:35, 240:380]).any()
    assert not list(tmp_path.glob(".scrubshot-*"))


def test_copy_names_do_not_collide(tmp_path, noise_image, contact_line, fake_recognizer):
    src = _save(noise_image(), tmp_path / "shot.png")
    service = RedactionService(fake_recognizer([contact_line]))
    first = service.redact_and_save_sync(src)
    second = service.redact_and_save_sync(src)
    assert first.output_path.name == "redact-shot.png"
    assert second.output_path.name == "redact-shot-1.png"


def test_async_api(tmp_path, noise_image, contact_line, fake_recognizer):
    src = _save(noise_image(), tmp_path / "shot.jpg")
    service = RedactionService(fake_recognizer([contact_line]))
    outcome = asyncio.run(service.redact_and_save(src))
    assert outcome.ok
    assert outcome.output_path.name == "redact-shot.jpg"
    with Image.open(outcome.output_path) as im:
        assert im.format == "JPEG"


def test_unknown_extension_written_as_png(tmp_path, noise_image, fake_recognizer):
    src = tmp_path / "shot.bmp"
    noise_image(40, 40).save(src, format="BMP")
    outcome = RedactionService(fake_recognizer([])).redact_and_save_sync(src)
    assert outcome.output_path.name == "redact-shot.png"
    with Image.open(outcome.output_path) as im:
        assert im.format == "PNG"


def test_in_place(tmp_path, noise_image, contact_line, fake_recognizer):
    img = noise_image()
    src = _save(img, tmp_path / "shot.png")
    outcome = RedactionService(fake_recognizer([contact_line])).redact_in_place_sync(src)
    assert outcome.ok
    assert outcome.output_path == src
    assert sorted(p.name for p in tmp_path.iterdir()) == ["shot.png"]
    out = np.asarray(Image.open(src).convert("RGB"))
    assert (out != np.asarray(img)).any()


def test_zero_regions_still_writes(tmp_path, noise_image, fake_recognizer):
    img = noise_image()
    src = _save(img, tmp_path / "shot.png")
    outcome = RedactionService(fake_recognizer([])).redact_and_save_sync(src)
    assert outcome.ok
    out = np.asarray(Image.open(outcome.output_path).convert("RGB"))
    assert (out == np.asarray(img)).all()


def test_timeout_copy_saves_unredacted(tmp_path, noise_image, blocking_recognizer):
    img = noise_image(300, 100)
    src = _save(img, tmp_path / "shot.png")
    cfg = PipelineConfig(timeout=0.05, max_dimension=200)
    outcome = RedactionService(blocking_recognizer, config=cfg).redact_and_save_sync(src)

    assert outcome.ok
    assert outcome.timed_out
    with Image.open(outcome.output_path) as im:
        assert im.size == (300, 100)
        assert (np.asarray(im.convert("RGB")) == np.asarray(img)).all()


def test_timeout_in_place_leaves_original(tmp_path, noise_image, blocking_recognizer):
    src = _save(noise_image(), tmp_path / "shot.png")
    before = src.read_bytes()
    cfg = PipelineConfig(timeout=0.05)
    outcome = RedactionService(blocking_recognizer, config=cfg).redact_in_place_sync(src)

    assert not outcome.ok
    assert isinstance(outcome.error, TimedOut)
    assert src.read_bytes() == before


def test_read_only_directory(tmp_path, noise_image, fake_recognizer, monkeypatch: pytest.MonkeyPatch):
    src = _save(noise_image(), tmp_path / "shot.png")
    monkeypatch.setattr(orchestration, "is_writable_dir", lambda _dir: False)
    outcome = RedactionService(fake_recognizer([])).redact_and_save_sync(src)
    assert isinstance(outcome.error, ReadOnlyDirectory)
    assert outcome.reason.startswith("Directory is read-only")


def test_all_names_taken(tmp_path, noise_image, fake_recognizer):
    src = _save(noise_image(), tmp_path / "shot.png")
    (tmp_path / "redact-shot.png").write_bytes(b"taken")
    for n in range(1, 100):
        (tmp_path / f"redact-shot-{n}.png").write_bytes(b"taken")
    outcome = RedactionService(fake_recognizer([])).redact_and_save_sync(src)
    assert isinstance(outcome.error, FileWriteFailed)
    assert not list(tmp_path.glob(".scrubshot-*"))


def test_invalid_image(tmp_path, fake_recognizer):
    src = tmp_path / "shot.png"
    src.write_bytes(b"not an image")
    outcome = RedactionService(fake_recognizer([])).redact_and_save_sync(src)
    assert isinstance(outcome.error, InvalidImage)


def test_ocr_failure_is_typed(tmp_path, noise_image, failing_recognizer):
    src = _save(noise_image(), tmp_path / "shot.png")
    outcome = RedactionService(failing_recognizer).redact_and_save_sync(src)
    assert isinstance(outcome.error, DetectionFailed)
    assert "tesseract is not installed" in outcome.reason


def test_oversize_image_downscaled(tmp_path, noise_image, fake_recognizer):
    src = _save(noise_image(150, 80), tmp_path / "shot.png")
    cfg = PipelineConfig(max_dimension=100)
    outcome = RedactionService(fake_recognizer([]), config=cfg).redact_and_save_sync(src)
    assert outcome.downscaled
    with Image.open(outcome.output_path) as im:
        assert im.size == (125, 67)


def test_vision_regions_are_redacted(tmp_path, noise_image, fake_recognizer):
    img = noise_image(200, 120)
    src = _save(img, tmp_path / "shot.png")
    service = RedactionService(
        fake_recognizer([]), region_sources=[lambda im: [Region(60, 40, 30, 30)]]
    )
    outcome = service.redact_and_save_sync(src)
    out = np.asarray(Image.open(outcome.output_path).convert("RGB"))
    assert (out[40:70, 60:90] != np.asarray(img)[40:70, 60:90]).any()


def test_custom_terms_flow_through_config(tmp_path, noise_image, fake_recognizer):
    img = noise_image()
    src = _save(img, tmp_path / "shot.png")
    line = TextLine(text="Project Falcon status", box=Region(10, 10, 380, 30))
    rec = fake_recognizer([line])
    plain = RedactionService(rec).redact_and_save_sync(src)
    out = np.asarray(Image.open(plain.output_path).convert("RGB"))
    assert (out == np.asarray(img)).all()

    cfg = PipelineConfig(custom_terms=("falcon",))
    custom = RedactionService(rec, config=cfg).redact_and_save_sync(src)
    out = np.asarray(Image.open(custom.output_path).convert("RGB"))
    assert (out != np.asarray(img)).any()


def test_diagnostics_logged_once(tmp_path, noise_image, contact_line, fake_recognizer, caplog):
    caplog.set_level(logging.INFO, logger="scrubshot")
    src = _save(noise_image(), tmp_path / "shot.png")
    RedactionService(fake_recognizer([contact_line])).redact_and_save_sync(src)
    records = [r for r in caplog.records if r.getMessage() == "pipeline diagnostics"]
    assert len(records) == 1
    payload = records[0].extra
    assert payload["ok"] is True
    assert payload["line_count"] == 1
    assert payload["hit_count"] >= 2
    assert payload["output_format"] == "PNG"
    assert payload["was_timed_out"] is False


def test_format_and_naming_helpers(tmp_path):
    assert detect_format(tmp_path / "a.PNG") is ImageFormat.PNG
    assert detect_format(tmp_path / "a.jpeg") is ImageFormat.JPEG
    assert detect_format(tmp_path / "a.webp") is ImageFormat.UNKNOWN
    names = [p.name for p in output_candidates(tmp_path / "shot.jpeg", ImageFormat.JPEG, 3)]
    assert names == ["redact-shot.jpg", "redact-shot-1.jpg", "redact-shot-2.jpg"]


def test_timed_out_worker_does_not_outlive_call(tmp_path, noise_image, deadline_recognizer):
    src = _save(noise_image(), tmp_path / "shot.png")
    cfg = PipelineConfig(timeout=0.05)
    before = set(threading.enumerate())
    outcome = RedactionService(deadline_recognizer(0.2), config=cfg).redact_in_place_sync(src)

    assert isinstance(outcome.error, TimedOut)
    leftover = [
        t for t in threading.enumerate() if t not in before and t.name.startswith("scrubshot")
    ]
    assert leftover == []


def test_region_source_error_is_typed(tmp_path, noise_image, fake_recognizer):
    def broken(image):
        raise RuntimeError("face detector crashed")

    src = _save(noise_image(), tmp_path / "shot.png")
    outcome = RedactionService(fake_recognizer([]), region_sources=[broken]).redact_and_save_sync(src)
    assert isinstance(outcome.error, DetectionFailed)
    assert "face detector crashed" in outcome.reason
    assert sorted(p.name for p in tmp_path.iterdir()) == ["shot.png"]


def test_untyped_error_becomes_failure(tmp_path, noise_image, fake_recognizer, monkeypatch):
    def explode(*args, **kwargs):
        raise ValueError("resize exploded")

    monkeypatch.setattr(orchestration, "downscale_if_needed", explode)
    src = _save(noise_image(), tmp_path / "shot.png")
    outcome = RedactionService(fake_recognizer([])).redact_and_save_sync(src)
    assert isinstance(outcome.error, UnexpectedFailure)
    assert outcome.reason == "Unexpected redaction failure: ValueError: resize exploded"


def test_encoding_conversion_error_is_typed(tmp_path, noise_image, monkeypatch):
    def bad_convert(*args, **kwargs):
        raise ValueError("conversion not supported")

    monkeypatch.setattr(storage, "_encode_kwargs", bad_convert)
    with pytest.raises(ImageConversionFailed):
        save_image_atomic(noise_image(), tmp_path / "out.jpg", ImageFormat.JPEG)
    assert list(tmp_path.iterdir()) == []


def test_copy_without_hard_links(tmp_path, noise_image, contact_line, fake_recognizer, monkeypatch):
    def no_links(src, dst):
        raise PermissionError(errno.EPERM, "Operation not permitted")

    monkeypatch.setattr(os, "link", no_links)
    src = _save(noise_image(), tmp_path / "shot.png")
    service = RedactionService(fake_recognizer([contact_line]))
    first = service.redact_and_save_sync(src)
    second = service.redact_and_save_sync(src)

    assert first.ok and second.ok
    assert first.output_path.name == "redact-shot.png"
    assert second.output_path.name == "redact-shot-1.png"
    with Image.open(first.output_path) as im:
        assert im.size == (400, 60)
    assert not list(tmp_path.glob(".scrubshot-*"))


def test_name_taken_during_move_is_skipped(tmp_path, noise_image, fake_recognizer, monkeypatch):
    real_link = os.link

    def racing_link(src, dst):
        if os.path.basename(dst) == "redact-shot.png":
            with open(dst, "wb") as fh:
                fh.write(b"racer")
            raise FileExistsError(errno.EEXIST, "File exists", dst)
        return real_link(src, dst)

    monkeypatch.setattr(os, "link", racing_link)
    src = _save(noise_image(), tmp_path / "shot.png")
    outcome = RedactionService(fake_recognizer([])).redact_and_save_sync(src)

    assert outcome.output_path.name == "redact-shot-1.png"
    assert (tmp_path / "redact-shot.png").read_bytes() == b"racer"
    assert not list(tmp_path.glob(".scrubshot-*"))
