"""
CLI Interface
=============
Command-line interface for the analysis engine.

Usage:
    python -m docsig analyze <response_json> --time-ms <ms> [options]
    python -m docsig report [--results-dir DIR]
    python -m docsig compare <signature_id> <signature_id>
    python -m docsig list [--category CAT] [--provider ID]
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .engine import AnalysisEngine, EngineConfig
from .models import InputCategory
from .signatures import SignatureStore, compare as compare_signatures
from .storage import get_results_dir

console = Console()

_results_dir_option = click.option(
    "--results-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="Signature directory (default: $DOCSIG_RESULTS_DIR or ./results)",
)


def _open_store(results_dir) -> SignatureStore:
    store = SignatureStore(results_dir or get_results_dir(), persist=False)
    store.load()
    return store


def _bool_icon(value: bool) -> str:
    return "[green]✓[/]" if value else "[dim]✗[/]"


@click.group()
@click.version_option(version=__version__, prog_name="docsig")
def cli():
    """Document Parser Signature Engine: heuristic backend analysis."""
    pass


@cli.command()
@click.argument("response_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--time-ms", "-t",
    required=True,
    type=float,
    help="Measured processing time of the provider call (ms)",
)
@click.option(
    "--size-bytes",
    default=None,
    type=int,
    help="Response size in bytes (defaults to the JSON file size)",
)
@click.option(
    "--provider", "-p",
    default="unknown",
    help="Provider identifier",
)
@click.option(
    "--filename", "-f",
    default=None,
    help="Original document filename (defaults to the JSON file name)",
)
@click.option(
    "--file-size",
    default=0,
    type=int,
    help="Original document size in bytes",
)
@click.option(
    "--reference-file", "-r",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Ground-truth text file for CER/WER/similarity",
)
@click.option(
    "--save/--no-save",
    default=True,
    help="Record a signature for this run",
)
@_results_dir_option
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def analyze(
    response_path: str,
    time_ms: float,
    size_bytes: int,
    provider: str,
    filename: str,
    file_size: int,
    reference_file: str,
    save: bool,
    results_dir: str,
    log_level: str,
    json_output: bool,
):
    """Analyze a saved provider response (JSON file)."""

    if json_output:
        log_level = "ERROR"

    try:
        with open(response_path, "r", encoding="utf-8") as f:
            response = json.load(f)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/] {response_path} is not valid JSON: {e}")
        sys.exit(1)

    reference_text = None
    if reference_file:
        reference_text = Path(reference_file).read_text(encoding="utf-8")

    if size_bytes is None:
        size_bytes = os.path.getsize(response_path)

    config = EngineConfig(
        results_dir=Path(results_dir) if results_dir else get_results_dir(),
        persist_signatures=save,
        load_existing=False,
        log_level=log_level,
    )
    engine = AnalysisEngine(config)
    result = engine.analyze(
        response,
        processing_time_ms=time_ms,
        response_size_bytes=size_bytes,
        reference_text=reference_text,
    )

    signature = None
    if save:
        signature = engine.record(
            result,
            filename=filename or os.path.basename(response_path),
            provider_id=provider,
            file_size_bytes=file_size,
        )

    if json_output:
        payload = result.model_dump(mode="json")
        if signature is not None:
            payload["signature_id"] = signature.id
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]docsig v{__version__}[/]\n"
            f"[dim]Analyzing: {os.path.basename(response_path)} ({provider})[/]",
            border_style="cyan",
        )
    )
    _display_analysis(result)
    if signature is not None:
        console.print(f"[dim]Signature recorded: {signature.id}[/]")
        console.print()


@cli.command()
@_results_dir_option
@click.option("--json-output", is_flag=True, default=False, help="JSON to stdout")
def report(results_dir: str, json_output: bool):
    """Summarize all recorded signatures."""

    store = _open_store(results_dir)
    summary = store.report()

    if json_output:
        print(json.dumps(summary.model_dump(mode="json"), indent=2))
        return

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Signature Report[/]\n"
            f"[dim]{summary.total_signatures} signatures in {store.results_dir}[/]",
            border_style="cyan",
        )
    )

    table = Table(title="By Category", border_style="green")
    table.add_column("Category", style="bold")
    table.add_column("Signatures", justify="right")
    for entry in summary.categories:
        table.add_row(entry.category.value, str(entry.count))
    console.print(table)
    console.print()

    table = Table(title="By Provider", border_style="cyan")
    table.add_column("Provider", style="bold")
    table.add_column("Signatures", justify="right")
    table.add_column("Avg Time (ms)", justify="right")
    table.add_column("Architecture (first seen)")
    for entry in summary.providers:
        table.add_row(
            entry.provider_id,
            str(entry.count),
            f"{entry.avg_processing_time_ms:.2f}",
            entry.architecture_type.value,
        )
    console.print(table)
    console.print()


@cli.command()
@click.argument("first_id")
@click.argument("second_id")
@_results_dir_option
@click.option("--json-output", is_flag=True, default=False, help="JSON to stdout")
def compare(first_id: str, second_id: str, results_dir: str, json_output: bool):
    """Compare two recorded signatures."""

    store = _open_store(results_dir)
    first = store.get(first_id)
    second = store.get(second_id)
    for signature_id, signature in ((first_id, first), (second_id, second)):
        if signature is None:
            console.print(f"[red]Error:[/] signature not found: {signature_id}")
            sys.exit(1)

    diff = compare_signatures(first, second)

    if json_output:
        print(json.dumps(diff.model_dump(mode="json"), indent=2))
        return

    table = Table(title="Signature Comparison", border_style="cyan")
    table.add_column("Metric", style="bold")
    table.add_column(first.provider_id)
    table.add_column(second.provider_id)
    table.add_row("File", first.input.filename, second.input.filename)
    table.add_row(
        "Processing Time (ms)",
        f"{first.performance.processing_time_ms:.0f}",
        f"{second.performance.processing_time_ms:.0f}",
    )
    table.add_row(
        "Response Size (B)",
        str(first.performance.response_size_bytes),
        str(second.performance.response_size_bytes),
    )
    table.add_row(
        "Elements Array",
        _bool_icon(diff.has_elements_array[0]),
        _bool_icon(diff.has_elements_array[1]),
    )
    table.add_row(
        "Structure Depth",
        str(diff.structure_depth[0]),
        str(diff.structure_depth[1]),
    )
    table.add_row(
        "Element Types",
        ", ".join(diff.element_types[0]) or "-",
        ", ".join(diff.element_types[1]) or "-",
    )
    table.add_row(
        "Architecture",
        diff.model_types[0].value,
        diff.model_types[1].value,
    )

    console.print()
    console.print(table)
    console.print(
        f"[bold]Same input:[/] {_bool_icon(diff.input_matches)}  "
        f"[bold]Time diff:[/] {diff.processing_time_diff:.0f}ms  "
        f"[bold]Size diff:[/] {diff.response_size_diff}B  "
        f"[bold]Architectures differ:[/] {_bool_icon(diff.different)}"
    )
    console.print()


@cli.command(name="list")
@_results_dir_option
@click.option(
    "--category", "-c",
    default=None,
    type=click.Choice([c.value for c in InputCategory]),
    help="Only signatures of this input category",
)
@click.option("--provider", "-p", default=None, help="Only this provider")
def list_signatures(results_dir: str, category: str, provider: str):
    """List recorded signatures."""

    store = _open_store(results_dir)
    category_filter = InputCategory(category) if category else None
    groups = store.group_by_provider(category_filter)
    if provider:
        groups = {provider: groups.get(provider, [])}

    table = Table(title="Signatures", border_style="cyan")
    table.add_column("ID", style="bold")
    table.add_column("File")
    table.add_column("Category")
    table.add_column("Latency")
    table.add_column("Complexity")
    table.add_column("Architecture")

    count = 0
    for group in groups.values():
        for signature in group:
            count += 1
            table.add_row(
                signature.id,
                signature.input.filename,
                signature.input.category.value,
                signature.performance.latency_category.value,
                signature.tokens.complexity.value,
                signature.architecture.model_type.value,
            )

    console.print()
    if count:
        console.print(table)
    else:
        console.print("[yellow]No signatures found[/]")
    console.print()


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_analysis(result):
    """Display an AnalysisResult as rich tables."""
    console.print()

    perf = result.performance
    tokens = result.tokens
    table = Table(title="Performance", border_style="cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Category", justify="center")
    table.add_row(
        "Processing Time",
        f"{perf.processing_time_ms:.0f} ms",
        perf.latency_category.value,
    )
    table.add_row(
        "Response Size",
        f"{perf.response_size_bytes / 1024:.1f} KB",
        perf.size_category.value,
    )
    table.add_row("Efficiency Score", f"{perf.efficiency_score}", "")
    table.add_row(
        "Complexity",
        f"{tokens.complexity_score}",
        tokens.complexity.value,
    )
    console.print(table)
    console.print()

    pattern = result.pattern
    table = Table(title="Output Pattern", border_style="green")
    table.add_column("Feature", style="bold")
    table.add_column("Detected", justify="center")
    table.add_row("Elements Array", _bool_icon(pattern.has_elements_array))
    table.add_row("Pages Array", _bool_icon(pattern.has_pages_array))
    table.add_row("Coordinates", _bool_icon(pattern.has_coordinates))
    table.add_row("Hierarchy", _bool_icon(pattern.has_hierarchy))
    table.add_row("Tables", _bool_icon(pattern.table_detection))
    table.add_row("Images", _bool_icon(pattern.image_detection))
    table.add_row("Charts", _bool_icon(pattern.chart_detection))
    table.add_row("Structure Depth", str(pattern.structure_depth))
    table.add_row(
        "Element Types",
        ", ".join(sorted(pattern.element_types)) or "-",
    )
    console.print(table)
    console.print()

    for warning in pattern.warnings + tokens.warnings:
        console.print(f"[yellow]⚠ {warning}[/]")

    arch = result.architecture
    strategy = result.strategy
    console.print(
        f"[bold]Architecture:[/] {arch.model_type.value} "
        f"[dim](confidence {arch.confidence})[/]"
    )
    for characteristic in arch.characteristics:
        console.print(f"  • {characteristic}")
    if arch.likely_components:
        console.print(f"  [dim]Components: {', '.join(arch.likely_components)}[/]")
    console.print(f"[bold]Strategy:[/] {strategy.strategy.value}")
    for reason in strategy.reasoning:
        console.print(f"  • {reason}")
    console.print()

    evaluation = result.evaluation
    if evaluation is not None:
        table = Table(title="Evaluation", border_style="yellow")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        for label, value in (
            ("CER", evaluation.cer),
            ("WER", evaluation.wer),
            ("Similarity", evaluation.text_similarity),
        ):
            table.add_row(label, "n/a" if value is None else f"{value}%")
        for name, count in evaluation.structure_counts.model_dump().items():
            table.add_row(name.title(), str(count))
        console.print(table)
        console.print()


# ─── Entry point (for python -m docsig.cli) ───────────────────────────────────


if __name__ == "__main__":
    cli()
