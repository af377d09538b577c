"""Redaction routines.

The redactor filters the *whole* image once (Gaussian blur or block
pixelation) and composites the filtered copy over the original through a
white-on-black mask, so only masked pixels change and everything else stays
bit-identical to the source.

RGB, RGBA and L images are filtered as they are. LA and 1-bit images are
widened for filtering and narrowed back afterwards, which is exact. Any
other mode (palette, 16-bit, CMYK, ...) comes back as RGB or RGBA; for those
the untouched pixels match the source only after the same conversion.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFilter

from scrubshot.logging import get_logger
from scrubshot.model import (
    Blur,
    FilterCreationFailed,
    FilterProcessingFailed,
    ImageConversionFailed,
    InvalidImage,
    Pixelate,
    Region,
    RedactionStyle,
)

logger = get_logger(__name__)

MASK_PADDING = 16
_WORKING_MODES = ("RGB", "RGBA", "L")
# Modes restored after compositing; the round trip through the working mode is exact.
_RESTORED_MODES = {"LA": {}, "1": {"dither": Image.Dither.NONE}}

Box = Tuple[int, int, int, int]


def to_filter_space(region: Region, image_height: float) -> Region:
    """Map a top-left-origin region into the filter engine's pixel space.

    Pillow addresses pixels from the top-left corner, so this is the identity;
    engines with a bottom-left origin would use
    ``y' = image_height - y - height`` here instead.
    """
    return region


def _snap(region: Region, width: int, height: int) -> Optional[Box]:
    x0, y0, x1, y1 = region.pixel_box()
    x0, y0 = max(0, x0), max(0, y0)
    x1, y1 = min(width, x1), min(height, y1)
    if x1 <= x0 or y1 <= y0:
        return None
    return (x0, y0, x1, y1)


def _expand(box: Box, padding: int, width: int, height: int) -> Box:
    x0, y0, x1, y1 = box
    return (
        max(0, x0 - padding),
        max(0, y0 - padding),
        min(width, x1 + padding),
        min(height, y1 + padding),
    )


def build_mask(size: Tuple[int, int], boxes: Sequence[Box], padding: int = MASK_PADDING) -> Image.Image:
    """White (255) where pixels are redacted, black (0) elsewhere."""
    width, height = size
    mask = Image.new("L", size, 0)
    draw = ImageDraw.Draw(mask)
    for box in boxes:
        x0, y0, x1, y1 = _expand(box, padding, width, height)
        # PIL rectangles include their far edge.
        draw.rectangle([x0, y0, x1 - 1, y1 - 1], fill=255)
    return mask


def _make_filter(style: RedactionStyle):
    if isinstance(style, Blur):
        try:
            return ImageFilter.GaussianBlur(radius=float(style.radius))
        except Exception as exc:
            raise FilterCreationFailed(str(exc)) from exc
    if isinstance(style, Pixelate):
        cell = int(round(float(style.scale)))
        if cell < 1:
            raise FilterCreationFailed(f"pixelate scale {style.scale} is below one pixel")
        return cell
    raise FilterCreationFailed(f"unknown redaction style: {style!r}")


def _pixelate(img: Image.Image, cell: int) -> Image.Image:
    width, height = img.size
    small = img.resize(
        (max(1, math.ceil(width / cell)), max(1, math.ceil(height / cell))),
        Image.Resampling.BOX,
    )
    blocks = small.resize((small.width * cell, small.height * cell), Image.Resampling.NEAREST)
    return blocks.crop((0, 0, width, height))


def apply_style(img: Image.Image, style: RedactionStyle) -> Image.Image:
    """Filter the entire image and crop the result back to its extent."""
    flt = _make_filter(style)
    try:
        if isinstance(flt, int):
            filtered = _pixelate(img, flt)
        else:
            filtered = img.filter(flt)
    except Exception as exc:
        raise FilterProcessingFailed(str(exc)) from exc
    if filtered.size != img.size:
        filtered = filtered.crop((0, 0) + img.size)
    return filtered


class ImageRedactor:
    """Blur or pixelate rectangular regions of an image.

    Parameters
    ----------
    mask_padding:
        Extra pixels painted into the mask around every region. This is a
        second, coarser margin on top of the region builder's own padding.
    """

    def __init__(self, mask_padding: int = MASK_PADDING) -> None:
        self.mask_padding = mask_padding

    def redact(
        self,
        image: Image.Image,
        regions: Sequence[Region],
        style: RedactionStyle,
    ) -> Image.Image:
        """Return a redacted copy of ``image`` (or ``image`` itself if nothing applies).

        Raises
        ------
        InvalidImage, FilterCreationFailed, FilterProcessingFailed, ImageConversionFailed
        """
        if not regions:
            return image
        if not isinstance(image, Image.Image) or image.width <= 0 or image.height <= 0:
            raise InvalidImage("image has no pixels")

        width, height = image.size
        boxes: List[Box] = []
        for index, region in enumerate(regions):
            box = _snap(to_filter_space(region, height), width, height)
            if box is None:
                logger.debug("region empty after clamping", extra={"extra": {"index": index}})
                continue
            boxes.append(box)
        if not boxes:
            return image

        logger.debug("redacting", extra={"extra": {"regions": len(boxes), "style": repr(style)}})
        try:
            source = image if image.mode in _WORKING_MODES else image.convert(
                "RGBA" if "A" in image.getbands() or "transparency" in image.info else "RGB"
            )
        except Exception as exc:
            raise InvalidImage(str(exc)) from exc

        mask = build_mask(source.size, boxes, self.mask_padding)
        filtered = apply_style(source, style)
        try:
            result = Image.composite(filtered, source, mask)
        except Exception as exc:
            raise ImageConversionFailed(str(exc)) from exc
        return self._finalize(result, image)

    @staticmethod
    def _finalize(result: Image.Image, original: Image.Image) -> Image.Image:
        if result.size != original.size:
            raise ImageConversionFailed(
                f"result size {result.size} differs from source size {original.size}"
            )
        if original.mode in _RESTORED_MODES and result.mode != original.mode:
            try:
                result = result.convert(original.mode, **_RESTORED_MODES[original.mode])
            except Exception as exc:
                raise ImageConversionFailed(f"{result.mode} -> {original.mode}: {exc}") from exc
        result.info.update({k: v for k, v in original.info.items() if k in ("dpi", "icc_profile", "exif")})
        return result


def redact_image(image: Image.Image, regions: Sequence[Region], style: RedactionStyle) -> Image.Image:
    """Convenience wrapper around :class:`ImageRedactor` with default padding."""
    return ImageRedactor().redact(image, regions, style)


__all__ = [
    "MASK_PADDING",
    "ImageRedactor",
    "apply_style",
    "build_mask",
    "redact_image",
    "to_filter_space",
]
