"""
Run reports: a per-category summary, JSON files under ``RESULTS_DIR`` and a
console rendering.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from common.utils import utc_now_iso

from .cache import write_json_atomic
from .models import AnalysisRecord, AnalyzerStats, Report


def generate_report(records: Iterable[AnalysisRecord], stats: AnalyzerStats) -> Report:
    records = list(records)
    categories: dict[str, dict] = {}
    failed_repos = []

    for record in records:
        if record.failed:
            failed_repos.append({"name": record.repo.full_name, "error": record.error or ""})
            continue
        entry = categories.setdefault(
            record.categorization.category, {"count": 0, "repos": []}
        )
        entry["count"] += 1
        entry["repos"].append(record.repo.full_name)

    for entry in categories.values():
        entry["repos"].sort()
    failed_repos.sort(key=lambda item: item["name"])

    return Report(
        timestamp=utc_now_iso(),
        total_repos=len(records),
        categories=categories,
        stats=stats.copy(),
        failed_repos=failed_repos,
    )


def _file_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def save_summary(report: Report, results_dir: str | Path) -> Path:
    path = Path(results_dir) / f"report-{_file_stamp()}.json"
    write_json_atomic(path, report.to_dict())
    return path


def save_details(records: Iterable[AnalysisRecord], results_dir: str | Path) -> Path:
    ordered = sorted(records, key=lambda r: r.repo.full_name)
    path = Path(results_dir) / f"detailed-{_file_stamp()}.json"
    write_json_atomic(path, [record.to_dict() for record in ordered])
    return path


def print_report(report: Report, console: Console | None = None) -> None:
    console = console or Console()
    stats = report.stats

    console.print("\n[bold cyan]Analysis Summary[/bold cyan]\n")

    summary = Table(show_header=False, box=None)
    summary.add_column("Metric", style="dim")
    summary.add_column("Value", justify="right")
    summary.add_row("Total repositories", str(report.total_repos))
    summary.add_row("Analyzed (new)", str(stats.analyzed))
    summary.add_row("From cache", str(stats.cached))
    summary.add_row("Failed", str(stats.failed))
    summary.add_row("Total tokens", f"{stats.total_tokens:,}")
    summary.add_row("Web searches", str(stats.total_web_searches))
    console.print(summary)

    if report.categories:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Category", style="cyan")
        table.add_column("Repos", justify="right")
        table.add_column("Share", justify="right")
        ordered = sorted(report.categories.items(), key=lambda kv: (-kv[1]["count"], kv[0]))
        for category, data in ordered:
            share = data["count"] / report.total_repos * 100 if report.total_repos else 0
            table.add_row(category, str(data["count"]), f"{share:.1f}%")
        console.print(table)

    if report.failed_repos:
        console.print(f"\n[bold red]Failed ({len(report.failed_repos)}):[/bold red]")
        for failed in report.failed_repos:
            console.print(
                f"  [red]- {escape(failed['name'])}[/red] [dim]{escape(failed['error'])}[/dim]"
            )
    console.print()
