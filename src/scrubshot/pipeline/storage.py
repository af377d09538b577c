"""Filesystem helpers: format detection, collision-free naming and atomic writes."""

from __future__ import annotations

import os
import tempfile
import uuid
from pathlib import Path
from typing import Iterator, Tuple

from PIL import Image

from scrubshot.model import FileWriteFailed, ImageConversionFailed, InvalidImage

from .config import (
    DOWNSCALE_FACTOR,
    JPEG_QUALITY,
    MAX_FILENAME_ATTEMPTS,
    MAX_IMAGE_DIMENSION,
    ImageFormat,
)


def detect_format(path: Path) -> ImageFormat:
    ext = path.suffix.lower().lstrip(".")
    if ext == "png":
        return ImageFormat.PNG
    if ext in ("jpg", "jpeg"):
        return ImageFormat.JPEG
    return ImageFormat.UNKNOWN


def load_image(path: Path) -> Image.Image:
    """Open and fully decode an image, raising :class:`InvalidImage` on failure."""
    try:
        with Image.open(path) as im:
            im.load()
            out = im.copy()
            out.info.update(im.info)
            return out
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise InvalidImage(f"{path.name}: {exc}") from exc


def is_loadable(path: Path) -> bool:
    try:
        with Image.open(path) as im:
            im.verify()
        return True
    except Exception:
        return False


def is_writable_dir(directory: Path) -> bool:
    return directory.is_dir() and os.access(directory, os.W_OK | os.X_OK)


def downscale_if_needed(
    image: Image.Image,
    max_dimension: int = MAX_IMAGE_DIMENSION,
    factor: float = DOWNSCALE_FACTOR,
) -> Tuple[Image.Image, bool]:
    width, height = image.size
    if width <= max_dimension and height <= max_dimension:
        return image, False
    size = (max(1, int(round(width / factor))), max(1, int(round(height / factor))))
    resized = image.resize(size, Image.Resampling.LANCZOS)
    resized.info.update(image.info)
    return resized, True


def output_candidates(
    original: Path,
    fmt: ImageFormat,
    max_attempts: int = MAX_FILENAME_ATTEMPTS,
) -> Iterator[Path]:
    """Yield ``redact-<stem>.<ext>``, then ``redact-<stem>-1.<ext>`` and so on."""
    directory = original.parent
    for counter in range(max_attempts):
        suffix = "" if counter == 0 else f"-{counter}"
        yield directory / f"redact-{original.stem}{suffix}.{fmt.extension}"


def _encode_kwargs(image: Image.Image, fmt: ImageFormat, jpeg_quality: int) -> Tuple[Image.Image, dict]:
    kwargs: dict = {"format": fmt.pil_format}
    dpi = image.info.get("dpi")
    if dpi:
        kwargs["dpi"] = dpi
    if fmt is ImageFormat.JPEG:
        kwargs["quality"] = jpeg_quality
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
    return image, kwargs


def save_image_atomic(
    image: Image.Image,
    dest: Path,
    fmt: ImageFormat,
    jpeg_quality: int = JPEG_QUALITY,
) -> None:
    """Encode to a temp file beside ``dest`` and atomically replace ``dest``."""
    try:
        image, kwargs = _encode_kwargs(image, fmt, jpeg_quality)
    except Exception as exc:
        raise ImageConversionFailed(f"{image.mode} -> {fmt.value}: {exc}") from exc
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    except OSError as exc:
        raise FileWriteFailed(str(exc)) from exc
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            image.save(fh, **kwargs)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, dest)
    except Exception as exc:
        tmp.unlink(missing_ok=True)
        raise FileWriteFailed(str(exc)) from exc


def scratch_path(directory: Path, fmt: ImageFormat) -> Path:
    return directory / f".scrubshot-{uuid.uuid4().hex}.{fmt.extension}"


def _claim(src: Path, dest: Path) -> bool:
    """Move ``src`` to ``dest`` unless ``dest`` exists. Returns ``False`` if taken.

    Hard links give an atomic no-clobber move. Filesystems without them
    (FAT, SMB, some FUSE mounts) get an ``O_EXCL`` reservation followed by a
    rename over the reserved empty file.
    """
    try:
        os.link(src, dest)
        return True
    except FileExistsError:
        return False
    except OSError:
        pass
    try:
        fd = os.open(dest, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return False
    except OSError as exc:
        raise FileWriteFailed(str(exc)) from exc
    os.close(fd)
    try:
        os.replace(src, dest)
    except OSError as exc:
        dest.unlink(missing_ok=True)
        raise FileWriteFailed(str(exc)) from exc
    return True


def place_output(
    src: Path,
    original: Path,
    fmt: ImageFormat,
    max_attempts: int = MAX_FILENAME_ATTEMPTS,
) -> Path:
    """Move ``src`` to the first output name for ``original`` nobody else holds.

    A name taken between the existence check and the move is skipped. ``src``
    is always gone afterwards.
    """
    try:
        for candidate in output_candidates(original, fmt, max_attempts):
            if candidate.exists():
                continue
            if _claim(src, candidate):
                return candidate
    finally:
        src.unlink(missing_ok=True)
    raise FileWriteFailed(f"no free output name after {max_attempts} attempts")


__all__ = [
    "detect_format",
    "load_image",
    "is_loadable",
    "is_writable_dir",
    "downscale_if_needed",
    "output_candidates",
    "save_image_atomic",
    "scratch_path",
    "place_output",
]
