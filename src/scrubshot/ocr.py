"""OCR utilities.

The pipeline only depends on the :class:`TextRecognizer` protocol: anything
that turns an image into :class:`~scrubshot.model.TextLine` objects works.
:class:`TesseractRecognizer` is the bundled implementation; it reads
word-level TSV from Tesseract, groups words into lines, and exposes a precise
per-span box lookup built from the word geometry.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import pandas as pd
import pytesseract
from PIL import Image

from scrubshot.model import Region, TextLine

# Tesseract confidences are 0-100; words below this floor are dropped.
MIN_CONFIDENCE = 25.0


class TextRecognizer(Protocol):
    def recognize(self, image: Image.Image) -> List[TextLine]:
        """Return recognised lines with pixel boxes (top-left origin)."""
        ...


@dataclass
class _Word:
    text: str
    start: int
    end: int
    box: Region


@dataclass
class WordBoxLookup:
    """Precise span → pixel box lookup over a line's word boxes.

    Words partially covered by a span contribute a horizontal slice in
    proportion to the covered characters.
    """

    words: List[_Word] = field(default_factory=list)

    def __call__(self, start: int, end: int) -> Optional[Region]:
        rect: Optional[Region] = None
        for w in self.words:
            if end <= w.start or start >= w.end:
                continue
            length = max(1, w.end - w.start)
            s = max(start, w.start) - w.start
            e = min(end, w.end) - w.start
            part = Region(
                w.box.x + w.box.width * s / length,
                w.box.y,
                w.box.width * (e - s) / length,
                w.box.height,
            )
            rect = part if rect is None else rect.union(part)
        return rect


def read_tsv(data: str) -> pd.DataFrame:
    """Parse Tesseract TSV output, keeping every word as a string.

    Structural rows (levels 1-4) carry empty text; left to type inference, a
    page whose only words are numbers would get a float ``text`` column and
    long IDs would come back as ``4.2e+15``. Words such as ``NA`` or ``null``
    are kept as text too.
    """
    if not data.strip():
        return pd.DataFrame()
    return pd.read_csv(
        io.StringIO(data),
        sep="\t",
        quoting=csv.QUOTE_NONE,
        dtype={"text": str},
        keep_default_na=False,
        na_values=[""],
    )


def lines_from_tsv(tsv: pd.DataFrame, min_confidence: float = MIN_CONFIDENCE) -> List[TextLine]:
    """Group a Tesseract word DataFrame into :class:`TextLine` objects.

    Expects the columns of Tesseract's TSV output, as parsed by
    :func:`read_tsv`.
    """
    if tsv.empty:
        return []
    words = tsv.dropna(subset=["text"])
    if "level" in words.columns:
        words = words[words["level"] == 5]
    words = words[words["conf"].astype(float) >= min_confidence]
    words = words.assign(text=words["text"].astype(str).str.strip())
    words = words[words["text"] != ""]

    lines: List[TextLine] = []
    keys = ["block_num", "par_num", "line_num"]
    for _, group in words.groupby(keys, sort=True):
        group = group.sort_values("word_num")
        lookup = WordBoxLookup()
        parts: List[str] = []
        cursor = 0
        for _, row in group.iterrows():
            token = row["text"]
            box = Region(float(row["left"]), float(row["top"]), float(row["width"]), float(row["height"]))
            lookup.words.append(_Word(token, cursor, cursor + len(token), box))
            parts.append(token)
            cursor += len(token) + 1
        line_box = lookup.words[0].box
        for w in lookup.words[1:]:
            line_box = line_box.union(w.box)
        lines.append(TextLine(text=" ".join(parts), box=line_box, lookup=lookup))
    return lines


class TesseractRecognizer:
    """Word-level OCR via Tesseract, grouped into lines.

    Parameters
    ----------
    lang:
        Tesseract language code.
    psm:
        Page segmentation mode (0-13). Screenshots do best with 11 or 3.
    timeout:
        Seconds before the Tesseract subprocess is killed; ``0`` waits forever.
        A killed run raises ``RuntimeError``.
    tess_configs:
        Extra ``-c key=value`` options.
    """

    def __init__(
        self,
        lang: str = "eng",
        psm: int = 3,
        min_confidence: float = MIN_CONFIDENCE,
        timeout: float = 0,
        tess_configs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.lang = lang
        self.psm = psm
        self.min_confidence = min_confidence
        self.timeout = timeout
        self.tess_configs = tess_configs or {}

    def _config(self) -> str:
        cfg = f"--oem 1 --psm {self.psm}"
        opts = {"preserve_interword_spaces": 1}
        opts.update(self.tess_configs)
        for k, v in opts.items():
            cfg += f" -c {k}={v}"
        return cfg

    def recognize(self, image: Image.Image) -> List[TextLine]:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        data = pytesseract.image_to_data(
            image,
            lang=self.lang,
            config=self._config(),
            timeout=self.timeout,
            output_type=pytesseract.Output.STRING,
        )
        return lines_from_tsv(read_tsv(data), self.min_confidence)


__all__ = [
    "MIN_CONFIDENCE",
    "TextRecognizer",
    "TesseractRecognizer",
    "WordBoxLookup",
    "lines_from_tsv",
    "read_tsv",
]
