import numpy as np
import pytest
from PIL import Image

from scrubshot.model import Blur, FilterCreationFailed, Pixelate, Region
from scrubshot.redact import ImageRedactor, build_mask, redact_image, to_filter_space


def _outside_mask(shape, box, padding):
    x0, y0, x1, y1 = box
    keep = np.ones(shape[:2], dtype=bool)
    keep[max(0, y0 - padding) : y1 + padding, max(0, x0 - padding) : x1 + padding] = False
    return keep


def test_no_regions_returns_same_image(noise_image):
    img = noise_image()
    assert redact_image(img, [], Pixelate()) is img
    assert redact_image(img, [Region(900, 900, 10, 10)], Pixelate()) is img


@pytest.mark.parametrize("style", [Pixelate(scale=8), Blur(radius=4)])
def test_only_masked_pixels_change(noise_image, style):
    img = noise_image(200, 120)
    src = np.asarray(img)
    out = np.asarray(ImageRedactor(mask_padding=16).redact(img, [Region(50, 40, 30, 20)], style))

    assert out.shape == src.shape
    keep = _outside_mask(src.shape, (50, 40, 80, 60), 16)
    assert (out[keep] == src[keep]).all()
    assert (out[40:60, 50:80] != src[40:60, 50:80]).any()


def test_metadata_and_mode_preserved(noise_image):
    img = noise_image(64, 64, mode="RGBA")
    img.info["dpi"] = (144, 144)
    out = redact_image(img, [Region(10, 10, 20, 20)], Pixelate(scale=4))
    assert out.mode == "RGBA"
    assert out.size == img.size
    assert out.info["dpi"] == (144, 144)


def test_palette_image_converted():
    img = Image.new("P", (50, 40))
    out = redact_image(img, [Region(5, 5, 10, 10)], Blur(radius=2))
    assert out.size == (50, 40)
    assert out.mode == "RGB"


@pytest.mark.parametrize("mode", ["LA", "1"])
def test_narrow_modes_restored_exactly(mode):
    rng = np.random.default_rng(3)
    if mode == "LA":
        img = Image.fromarray(rng.integers(0, 256, (80, 120, 2), dtype=np.uint8))
    else:
        img = Image.fromarray(rng.integers(0, 2, (80, 120), dtype=np.uint8).astype(bool))
    assert img.mode == mode
    src = np.asarray(img)
    out = ImageRedactor(mask_padding=8).redact(img, [Region(40, 30, 30, 20)], Pixelate(scale=6))

    assert out.mode == mode
    res = np.asarray(out)
    keep = _outside_mask(src.shape, (40, 30, 70, 50), 8)
    assert (res[keep] == src[keep]).all()
    assert (res[30:50, 40:70] != src[30:50, 40:70]).any()


def test_unknown_style_fails(noise_image):
    with pytest.raises(FilterCreationFailed):
        ImageRedactor().redact(noise_image(), [Region(0, 0, 10, 10)], "sparkle")


def test_style_validation():
    with pytest.raises(ValueError):
        Pixelate(scale=0)
    with pytest.raises(ValueError):
        Blur(radius=-1)


def test_mask_and_filter_space():
    mask = build_mask((20, 10), [(2, 2, 5, 5)], padding=0)
    assert int((np.asarray(mask) == 255).sum()) == 9
    region = Region(1, 2, 3, 4)
    assert to_filter_space(region, 100) == region
