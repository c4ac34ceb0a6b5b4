"""CLI entry point for visual regression checks."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vrt.compare.comparator import compare_screenshots, local_baseline
from vrt.context import derive_context
from vrt.exceptions import VRTError
from vrt.models.comparison import ComparisonReport
from vrt.models.config import CompareConfig
from vrt.models.context import GitContext
from vrt.models.outputs import RunOutputs
from vrt.orchestrator import Orchestrator, build_outputs, write_github_outputs
from vrt.reporter.json_report import write_report

console = Console()

_STATUS_STYLE = {"pass": "green", "fail": "red", "new": "cyan", "missing": "yellow"}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def print_report(report: ComparisonReport) -> None:
    table = Table(title="Visual Regression Results")
    table.add_column("Screenshot", style="bold")
    table.add_column("Status")
    table.add_column("Diff %", justify="right")
    for r in report.results:
        style = _STATUS_STYLE[r.status]
        pct = f"{r.diff_percentage:.3f}%" if r.diff_percentage is not None else "-"
        table.add_row(r.name, f"[{style}]{r.status}[/{style}]", pct)
    console.print(table)

    s = report.summary
    console.print(
        f"Total: {s.total}  [green]Passed: {s.passed}[/green]  [red]Failed: {s.failed}[/red]  "
        f"[cyan]New: {s.new}[/cyan]  [yellow]Missing: {s.missing}[/yellow]"
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual regression testing against stored screenshot baselines"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default=None, help="Config file path (default: INPUT_* environment)")
def run(config: str | None) -> None:
    """Download the baseline, compare, report and upload results."""
    try:
        cfg = CompareConfig.load(config) if config else CompareConfig.from_env()
        context = derive_context()
        outputs = Orchestrator(cfg, context).run()
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Run 'vrt init' to create a default config.")
        write_github_outputs(RunOutputs(result="error"))
        sys.exit(1)
    except (VRTError, ValidationError) as e:
        console.print(f"[red]{e}[/red]")
        write_github_outputs(RunOutputs(result="error"))
        sys.exit(1)

    write_github_outputs(outputs)
    print_report(ComparisonReport.model_validate_json(outputs.report))
    if outputs.screenshots_url:
        console.print(f"  Screenshots: [blue]{outputs.screenshots_url}[/blue]")
    if outputs.diffs_url:
        console.print(f"  Diffs: [blue]{outputs.diffs_url}[/blue]")

    if cfg.fail_on_difference and outputs.result == "fail":
        console.print(
            f"[red]Visual regression detected: {outputs.failed} failed, {outputs.missing} missing[/red]"
        )
        sys.exit(1)


@cli.command()
@click.argument("baseline_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("current_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--threshold", "-t", default=0.1, show_default=True, help="Allowed diff percentage (0-100)")
@click.option("--pixel-threshold", default=0.1, show_default=True, help="Per-pixel color tolerance (0-1)")
@click.option("--include-anti-aliasing", is_flag=True, help="Count anti-aliased pixels as differences")
@click.option("--output-dir", "-o", default="./screenshot-diffs", show_default=True, help="Where diff images go")
@click.option("--report", "report_path", default=None, help="Write the JSON report to this path")
def compare(
    baseline_dir: str,
    current_dir: str,
    threshold: float,
    pixel_threshold: float,
    include_anti_aliasing: bool,
    output_dir: str,
    report_path: str | None,
) -> None:
    """Compare two local screenshot directories without contacting the artifact store."""
    try:
        cfg = CompareConfig(
            path=current_dir,
            baseline_alias=str(Path(baseline_dir)),
            threshold=threshold,
            pixel_threshold=pixel_threshold,
            include_anti_aliasing=include_anti_aliasing,
            output_dir=output_dir,
        )
        report = compare_screenshots(cfg, local_baseline(baseline_dir), GitContext(repository="", commit_sha="local"))
    except (VRTError, ValidationError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if report_path:
        console.print(f"Report written to [blue]{write_report(report, report_path)}[/blue]")
    print_report(report)
    if build_outputs(report).result == "fail":
        sys.exit(1)


@cli.command()
@click.option("--path", "-p", prompt="Screenshots directory", help="Directory holding the screenshots")
@click.option("--baseline-alias", "-a", prompt="Baseline alias", default="production", help="Alias to compare against")
@click.option("--output", "-o", default="vrt-config.json", show_default=True, help="Config file to create")
def init(path: str, baseline_alias: str, output: str) -> None:
    """Create a default configuration file."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{output} already exists. Overwrite?"):
            return

    data = CompareConfig(path=path, baseline_alias=baseline_alias).model_dump()
    # Resolved from the environment at load time
    data["api_key"] = "env:VRT_API_KEY"
    with open(config_path, "w") as f:
        json.dump(data, f, indent=2)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nSet api_url in the file, export VRT_API_KEY, then run:")
    console.print(f"  [blue]vrt run --config {config_path}[/blue]")


if __name__ == "__main__":
    cli()
