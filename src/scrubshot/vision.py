"""Region sources from vision collaborators (faces, QR codes, embedded photos).

Detection itself happens elsewhere; collaborators hand back normalized boxes
(0-1, bottom-left origin, as most vision services report them). These helpers
convert them into padded pixel :class:`~scrubshot.model.Region` objects so the
pipeline can union them with text-derived regions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from PIL import Image

from scrubshot.model import Region

RegionSource = Callable[[Image.Image], List[Region]]


@dataclass(frozen=True)
class PaddingPolicy:
    """Padding as a fraction of the box's longer side, with a pixel floor."""

    ratio: float
    minimum: float = 0.0

    def padding_for(self, width: float, height: float) -> float:
        return max(max(width, height) * self.ratio, self.minimum)


FACE_PADDING = PaddingPolicy(ratio=0.4, minimum=50.0)
BARCODE_PADDING = PaddingPolicy(ratio=0.25)
SALIENCY_PADDING = PaddingPolicy(ratio=0.1, minimum=8.0)


def detector_box_to_pixels(
    normalized_box: Tuple[float, float, float, float],
    image_size: Tuple[int, int],
    policy: PaddingPolicy,
) -> Region:
    """Convert a normalized ``(x, y, w, h)`` bottom-left box to a padded pixel region."""
    nx, ny, nw, nh = normalized_box
    img_w, img_h = image_size
    flipped_y = 1.0 - ny - nh
    px, py = nx * img_w, flipped_y * img_h
    pw, ph = nw * img_w, nh * img_h
    pad = policy.padding_for(pw, ph)
    return Region(px - pad, py - pad, pw + 2 * pad, ph + 2 * pad).clamp(Region(0, 0, img_w, img_h))


def collect_regions(image: Image.Image, sources: Sequence[RegionSource]) -> List[Region]:
    out: List[Region] = []
    for source in sources:
        out.extend(r for r in source(image) if not r.is_empty)
    return out


__all__ = [
    "RegionSource",
    "PaddingPolicy",
    "FACE_PADDING",
    "BARCODE_PADDING",
    "SALIENCY_PADDING",
    "detector_box_to_pixels",
    "collect_regions",
]
