"""CLI entry point for the verification harness."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sitecheck.baselines.visual_baseline_registry import VisualBaselineRegistryManager
from sitecheck.catalogue.api import api_workflows
from sitecheck.catalogue.pages import page_scenarios
from sitecheck.catalogue.visual import visual_scenarios
from sitecheck.models.config import HarnessConfig
from sitecheck.models.scenario import PageScenario
from sitecheck.models.workflow import Workflow
from sitecheck.reporter.reporter import Reporter
from sitecheck.runner.runner import ScenarioRunner

console = Console()

_OUTCOME_STYLE = {"pass": "green", "fail": "red", "timeout": "yellow", "error": "red"}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def select_scenarios(
    only: str | None = None, names: tuple[str, ...] = (),
) -> tuple[list[PageScenario], list[Workflow]]:
    """Pick catalogue entries by group and by (case-insensitive) name substring."""
    pages = page_scenarios() if only in (None, "pages") else []
    pages += visual_scenarios() if only in (None, "visual") else []
    workflows = api_workflows() if only in (None, "api") else []
    if names:
        wanted = [n.lower() for n in names]
        pages = [s for s in pages if any(w in s.name.lower() for w in wanted)]
        workflows = [w for w in workflows if any(n in w.name.lower() for n in wanted)]
    return pages, workflows


def _load_config(path: str) -> HarnessConfig:
    try:
        return HarnessConfig.load(path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {path}[/red]")
        console.print("Run 'sitecheck init' to create a default config.")
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Availability, content, visual and API checks for a public website"""
    setup_logging(verbose)


@cli.command()
@click.option("--base-url", "-u", default="https://www.mercedes-benz.de", help="Site under test")
@click.option("--config", "-c", default="sitecheck.json", help="Config file path")
def init(base_url: str, config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return
    HarnessConfig(base_url=base_url).save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("Set GOREST_TOKEN in the environment before running the account workflows.")


@cli.command("list")
@click.option("--only", type=click.Choice(["pages", "visual", "api"]), default=None)
def list_scenarios(only: str | None) -> None:
    """List the scenario catalogue."""
    pages, workflows = select_scenarios(only)
    table = Table(title="Scenarios")
    table.add_column("Kind", style="bold")
    table.add_column("Name")
    for scenario in pages:
        table.add_row(scenario.kind, scenario.name)
    for workflow in workflows:
        table.add_row("api", workflow.name)
    console.print(table)


@cli.command()
@click.option("--config", "-c", default="sitecheck.json", help="Config file path")
@click.option("--only", type=click.Choice(["pages", "visual", "api"]), default=None)
@click.option("--scenario", "-s", "names", multiple=True, help="Run scenarios whose name contains this")
@click.option("--headed", is_flag=True, help="Show the browser window")
def run(config: str, only: str | None, names: tuple[str, ...], headed: bool) -> None:
    """Run scenarios and write a report."""
    cfg = _load_config(config)
    if headed:
        cfg.headless = False
    pages, workflows = select_scenarios(only, names)
    if not pages and not workflows:
        console.print("[yellow]No scenarios selected[/yellow]")
        return

    runner = ScenarioRunner(cfg)
    result = asyncio.run(runner.run(pages, workflows))
    reports = Reporter(Path(cfg.report_output_dir)).generate_reports(result)

    table = Table(title=f"Run {result.run_id}")
    table.add_column("Scenario", style="bold")
    table.add_column("Outcome")
    table.add_column("Details")
    for r in result.scenario_results:
        style = _OUTCOME_STYLE.get(r.outcome, "white")
        table.add_row(r.name, f"[{style}]{r.outcome}[/{style}]", r.details[:120])
    console.print(table)
    console.print(Reporter.summary(result))
    for fmt, path in reports.items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")

    if result.passed != result.total:
        sys.exit(1)


@cli.group()
def baselines() -> None:
    """Inspect or rebase visual baselines."""
    pass


@baselines.command("list")
@click.option("--config", "-c", default="sitecheck.json", help="Config file path")
def baselines_list(config: str) -> None:
    """List stored baselines."""
    cfg = _load_config(config)
    baselines_dir = Path(cfg.baselines_dir)
    manager = VisualBaselineRegistryManager(baselines_dir / "registry.json", baselines_dir, cfg.base_url)
    registry = manager.load()
    if not registry.baselines:
        console.print("[yellow]No baselines stored yet[/yellow]")
        return
    table = Table(title="Visual baselines")
    table.add_column("Key", style="bold")
    table.add_column("Version")
    table.add_column("Size")
    table.add_column("Tolerance")
    table.add_column("Captured")
    for key, entry in sorted(registry.baselines.items()):
        table.add_row(key, str(entry.version), f"{entry.width}x{entry.height}",
                      f"{entry.tolerance:.2%}", entry.captured_at)
    console.print(table)


@baselines.command("rebase")
@click.argument("name")
@click.option("--config", "-c", default="sitecheck.json", help="Config file path")
def baselines_rebase(name: str, config: str) -> None:
    """Re-capture the baselines of visual scenarios whose name contains NAME."""
    cfg = _load_config(config)
    pages, _ = select_scenarios("visual", (name,))
    if not pages:
        console.print(f"[red]No visual scenario matches '{name}'[/red]")
        sys.exit(1)
    runner = ScenarioRunner(cfg, rebase=True)
    result = asyncio.run(runner.run(pages, []))
    for r in result.scenario_results:
        style = _OUTCOME_STYLE.get(r.outcome, "white")
        console.print(f"  [{style}]{r.outcome}[/{style}] {r.name}: {r.details}")


if __name__ == "__main__":
    cli()
