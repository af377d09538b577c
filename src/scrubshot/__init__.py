"""scrubshot

Offline screenshot PII scrubber: OCR the image, detect sensitive text spans,
map them to pixel regions and blur or pixelate them in place. See
``scrubshot.pipeline`` for the orchestrator and ``scrubshot.cli`` for the
command-line entrypoint.
"""

__all__ = [
    "model",
    "date_guard",
    "regex_detect",
    "fuzzy",
    "card_detect",
    "secret_detect",
    "sensitivity",
    "align",
    "redact",
    "ocr",
    "vision",
    "pipeline",
    "settings",
    "batch",
    "logging",
    "cli",
]

__version__ = "0.1.0"
