"""Command-line interface for scrubshot.

Provides:
- `redact`: Redact one screenshot to a new file or in place.
- `scan`: Print the sensitive spans found in a piece of text.
- `batch`: Redact every screenshot in a directory concurrently.
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.table import Table

from .batch import run_batch
from .ocr import TesseractRecognizer
from .pipeline import RedactionService
from .sensitivity import detect_line
from .settings import get_settings, make_style

app = typer.Typer(add_completion=False, help="scrubshot screenshot PII scrubber")


@app.command()
def redact(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Screenshot to redact"),
    in_place: bool = typer.Option(False, "--in-place", help="Overwrite the input file"),
    style: Optional[str] = typer.Option(None, help="Redaction style: pixelate | blur"),
    amount: Optional[float] = typer.Option(
        None, help="Pixel cell size (pixelate) or blur radius"
    ),
    term: Optional[List[str]] = typer.Option(
        None, "--term", "-t", help="Custom term to redact (repeatable)"
    ),
    advanced: bool = typer.Option(
        True, "--advanced/--no-advanced", help="Detect card numbers and secrets"
    ),
):
    """Redact sensitive text from a PNG or JPEG screenshot.

    Parameters
    ----------
    path:
        Input image.
    in_place:
        Overwrite ``path`` instead of writing ``redact-<stem>``.
    style:
        ``pixelate`` or ``blur``; defaults to ``SCRUBSHOT_STYLE``.
    amount:
        Style strength; defaults to ``SCRUBSHOT_STYLE_AMOUNT`` or the style default.
    term:
        Extra custom terms, added to ``SCRUBSHOT_CUSTOM_TERMS``.
    """
    settings = get_settings()
    try:
        chosen_style = make_style(style or settings.style, amount or settings.style_amount)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--style")
    cfg = settings.pipeline_config(
        style=chosen_style,
        custom_terms=tuple(settings.custom_terms) + tuple(term or ()),
        advanced_detection=advanced,
    )
    service = RedactionService(
        TesseractRecognizer(lang=settings.ocr_lang, psm=settings.ocr_psm, timeout=cfg.timeout),
        config=cfg,
    )
    outcome = (
        service.redact_in_place_sync(path) if in_place else service.redact_and_save_sync(path)
    )
    if not outcome.ok:
        print(f"[red]Failed:[/red] {outcome.reason}")
        raise typer.Exit(code=1)
    if outcome.timed_out:
        print("[yellow]Timed out; saved an unredacted copy.[/yellow]")
    print(f"[green]Redacted image:[/green] {outcome.output_path}")


@app.command()
def scan(
    text: str = typer.Argument(..., help="Text to scan"),
    term: Optional[List[str]] = typer.Option(None, "--term", "-t", help="Custom term"),
    advanced: bool = typer.Option(True, "--advanced/--no-advanced"),
):
    """Print the sensitive spans detected in ``text``."""
    settings = get_settings()
    terms = tuple(settings.custom_terms) + tuple(term or ())
    hits = detect_line(text, terms, advanced=advanced)
    if not hits:
        print("[green]No sensitive content found[/green]")
        return
    table = Table("start", "end", "kind", "text")
    for hit in hits:
        table.add_row(str(hit.start), str(hit.end), hit.kind.describe(), hit.text(text))
    print(table)


@app.command()
def batch(
    input_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory of screenshots"),
    workers: int = typer.Option(2, help="Concurrent workers"),
    in_place: bool = typer.Option(False, "--in-place", help="Overwrite inputs"),
):
    """Batch redact every PNG/JPEG screenshot in a directory."""
    settings = get_settings()
    results = run_batch(
        [str(input_dir)],
        settings.pipeline_config(),
        lang=settings.ocr_lang,
        psm=settings.ocr_psm,
        in_place=in_place,
        workers=workers,
    )
    if not results:
        print("[red]No inputs found[/red]")
        raise typer.Exit(code=1)
    failed = [r for r in results if not r.ok]
    for item in failed:
        print(f"[red]{item.input}:[/red] {item.detail}")
    print(f"[green]Completed {len(results) - len(failed)}/{len(results)} files[/green]")


if __name__ == "__main__":
    app()
