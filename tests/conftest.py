import threading
import time
from typing import List

import numpy as np
import pytest
from PIL import Image

from scrubshot.model import Region, TextLine
import scrubshot.settings as settings


class FakeRecognizer:
    def __init__(self, lines: List[TextLine]):
        self.lines = lines
        self.calls = 0

    def recognize(self, image):
        self.calls += 1
        return list(self.lines)


class BlockingRecognizer:
    """Blocks until released so the timeout always wins."""

    def __init__(self):
        self.release = threading.Event()

    def recognize(self, image):
        self.release.wait(timeout=5)
        return []


class FailingRecognizer:
    def recognize(self, image):
        raise RuntimeError("tesseract is not installed")


class DeadlineRecognizer:
    """Gives up after its own deadline, like Tesseract with a timeout."""

    def __init__(self, deadline: float):
        self.deadline = deadline

    def recognize(self, image):
        time.sleep(self.deadline)
        raise RuntimeError("Tesseract process timeout")


@pytest.fixture
def noise_image():
    def make(width=400, height=60, mode="RGB", seed=0):
        rng = np.random.default_rng(seed)
        channels = 3 if mode == "RGB" else 4
        arr = rng.integers(0, 256, (height, width, channels), dtype=np.uint8)
        return Image.fromarray(arr)

    return make


@pytest.fixture
def contact_line():
    text = "Contact me: a@b.com, +1-555-123-4567"
    return TextLine(text=text, box=Region(10, 10, 380, 30))


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer


@pytest.fixture
def blocking_recognizer():
    rec = BlockingRecognizer()
    yield rec
    rec.release.set()


@pytest.fixture
def failing_recognizer():
    return FailingRecognizer()


@pytest.fixture
def deadline_recognizer():
    return DeadlineRecognizer


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch):
    for key in (
        "SCRUBSHOT_CUSTOM_TERMS",
        "SCRUBSHOT_STYLE",
        "SCRUBSHOT_STYLE_AMOUNT",
        "SCRUBSHOT_ADVANCED_DETECTION",
        "SCRUBSHOT_TIMEOUT",
        "SCRUBSHOT_OCR_LANG",
        "SCRUBSHOT_OCR_PSM",
    ):
        monkeypatch.delenv(key, raising=False)
    settings.reset_settings_cache()
    yield
    settings.reset_settings_cache()
