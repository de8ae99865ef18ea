"""Romanian ID card extraction CLI."""

import mimetypes
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from idextract.config import settings
from idextract.errors import IdExtractError
from idextract.extraction import (
    ExtractionOptions,
    ExtractionRunner,
    OllamaClient,
    RetryPolicy,
    check_health,
    quality_hint_from_metrics,
)
from idextract.fields import FIELD_KINDS, FIELD_RULES
from idextract.logging_config import configure_logging
from idextract.models import Cancelled, ProcessingOptions
from idextract.pipeline import ImageProcessor, detect_mime_type
from idextract.pipeline.stage_validate import EXTENSIONS

SUPPORTED_SUFFIXES = {suffix for suffixes in EXTENSIONS.values() for suffix in suffixes}

app = typer.Typer(
    name="idextract",
    help="Preprocess Romanian ID card images and extract their fields with a vision model",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, help="Logging level"),
    json_logs: bool = typer.Option(settings.log_json, help="Emit JSON log lines"),
) -> None:
    configure_logging(log_level, json_logs)


def _options(
    rotate: bool, enhance: bool, binarize: bool, exposure: bool, grayscale: bool
) -> ProcessingOptions:
    return ProcessingOptions(
        auto_rotate=rotate,
        enhance_quality=enhance,
        binarize=binarize,
        correct_exposure=exposure,
        grayscale=grayscale,
    )


def _fail(exc: IdExtractError) -> typer.Exit:
    console.print(f"[bold red]{exc.code.value}:[/bold red] {exc.message}")
    return typer.Exit(code=1)


@app.command()
def process(
    image_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Image or PDF to process"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the processed image"),
    rotate: bool = typer.Option(True, help="Detect and correct orientation"),
    enhance: bool = typer.Option(True, help="Enhance low-quality images"),
    binarize: bool = typer.Option(False, help="Apply adaptive thresholding after enhancement"),
    exposure: bool = typer.Option(True, help="Correct dark or overexposed images"),
    grayscale: bool = typer.Option(False, help="Convert the output to grayscale"),
) -> None:
    """Run the preprocessing pipeline on one file."""
    console.print(f"[bold blue]Processing:[/bold blue] {image_path}")
    processor = ImageProcessor()
    try:
        result = processor.process_file(image_path, _options(rotate, enhance, binarize, exposure, grayscale))
    except IdExtractError as exc:
        raise _fail(exc) from exc

    table = Table(title="Processing result")
    table.add_column("Property")
    table.add_column("Value")
    table.add_row("Original", f"{result.original.width}x{result.original.height}")
    table.add_row("Processed", f"{result.processed.width}x{result.processed.height}")
    table.add_row("Transformations", ", ".join(result.transformations))
    table.add_row("Quality", f"{result.quality.overall_score:.2f} ({result.quality.assessment})")
    table.add_row("Time", f"{result.performance.total_ms:.0f} ms")
    console.print(table)
    for recommendation in result.quality.recommendations:
        console.print(f"[dim]- {recommendation}[/dim]")

    if output is not None:
        output.write_bytes(result.image)
        console.print(f"[green]Wrote {output}[/green]")


@app.command()
def batch(
    directory: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory of images"),
    output_dir: Optional[Path] = typer.Option(None, help="Directory for processed images"),
    workers: int = typer.Option(settings.max_workers, help="Number of parallel workers"),
) -> None:
    """Process every supported file in a directory."""
    paths = sorted(p for p in directory.iterdir() if p.suffix.lower() in SUPPORTED_SUFFIXES)
    console.print(f"[bold blue]Batch processing:[/bold blue] {len(paths)} files in {directory}")
    if not paths:
        return

    items = ImageProcessor().process_batch(paths, max_workers=workers)
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)

    table = Table(title="Batch result")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Detail")
    for item in items:
        name = Path(item.path).name
        if item.succeeded:
            if output_dir is not None:
                suffix = "." + item.result.processed.format.value.replace("jpeg", "jpg")
                (output_dir / Path(name).with_suffix(suffix)).write_bytes(item.result.image)
            table.add_row(name, "[green]ok[/green]", ", ".join(item.result.transformations))
        else:
            table.add_row(name, f"[red]{item.error_code}[/red]", item.error or "")
    console.print(table)

    failed = sum(1 for item in items if not item.succeeded)
    console.print(f"[dim]{len(items) - failed} succeeded, {failed} failed[/dim]")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def extract(
    image_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="ID card image or PDF"),
    model: Optional[str] = typer.Option(None, help="Model identifier"),
    retries: int = typer.Option(settings.max_retries, help="Extra attempts for weak results"),
    focus: Optional[list[str]] = typer.Option(None, help="Fields to re-read with focus"),
    json_output: bool = typer.Option(False, "--json", help="Print the full response as JSON"),
) -> None:
    """Preprocess an image and extract its fields."""
    processor = ImageProcessor()
    try:
        processed = processor.process_file(image_path)
    except IdExtractError as exc:
        raise _fail(exc) from exc

    runner = ExtractionRunner(
        OllamaClient(model=model),
        RetryPolicy(
            max_retries=retries,
            acceptance_score=settings.acceptance_score,
            backoff_seconds=settings.retry_backoff_seconds,
        ),
    )
    options = ExtractionOptions(
        quality_hint=quality_hint_from_metrics(processed.quality),
        focus_fields=focus or [],
    )
    console.print(f"[bold blue]Extracting:[/bold blue] {image_path} with {runner.client.model}")
    response = runner.respond(processed.image, options)

    if isinstance(response, Cancelled):
        console.print(f"[yellow]Cancelled: {response.reason}[/yellow]")
        raise typer.Exit(code=1)
    if json_output:
        console.print_json(response.model_dump_json())
        if not response.success:
            raise typer.Exit(code=1)
        return
    if not response.success:
        console.print(f"[bold red]{response.error.code.value}:[/bold red] {response.error.message}")
        raise typer.Exit(code=1)

    result = response.data
    table = Table(title="Extracted fields")
    table.add_column("Field")
    table.add_column("Value")
    table.add_column("Confidence")
    for name in FIELD_KINDS:
        confidence = result.confidence[name]
        table.add_row(name, getattr(result.fields, name) or "[dim]-[/dim]", confidence.level.value)
    console.print(table)
    console.print(
        f"Overall: {result.overall_confidence.score:.2f} ({result.overall_confidence.reason}), "
        f"attempts: {result.metadata.attempts}, template: {result.metadata.prompt_template}"
    )
    for error in result.validation.errors:
        console.print(f"[red]error:[/red] {error}")
    for warning in [*result.validation.warnings, *result.metadata.warnings]:
        console.print(f"[yellow]warning:[/yellow] {warning}")


@app.command()
def validate(
    image_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to check"),
) -> None:
    """Run the structural file checks only."""
    data = image_path.read_bytes()
    mime_type = mimetypes.guess_type(image_path.name)[0] or detect_mime_type(data) or ""
    result = ImageProcessor().validate(data, mime_type, len(data), image_path.name)
    if result.is_valid:
        console.print(f"[green]Valid[/green] {result.detected_mime_type}")
        return
    console.print(f"[bold red]{result.failed_check.value}:[/bold red] {result.message}")
    raise typer.Exit(code=1)


@app.command()
def health(
    model: Optional[str] = typer.Option(None, help="Model identifier"),
) -> None:
    """Check the AI service and model availability."""
    report = check_health(OllamaClient(model=model))
    colour = {200: "green", 206: "yellow", 503: "red"}[report.http_status]
    console.print(f"[bold {colour}]{report.status.value}[/bold {colour}] {report.message}")
    if report.available_models:
        console.print(f"[dim]Installed: {', '.join(report.available_models)}[/dim]")
    if report.http_status == 503:
        raise typer.Exit(code=1)


@app.command()
def fields() -> None:
    """List the extracted fields and their formats."""
    table = Table(title="ID card fields")
    table.add_column("Field")
    table.add_column("Format")
    for name, kind in FIELD_KINDS.items():
        table.add_row(name, FIELD_RULES[kind].description)
    console.print(table)


if __name__ == "__main__":
    app()
