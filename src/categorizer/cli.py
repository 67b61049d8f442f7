"""
GitHub Stars Categorizer
========================

Command-line entry point. A run has four phases:

1. Fetch the starred repositories (or reuse the cached list).
2. Categorize them with the analysis pipeline.
3. Write the summary and detailed JSON reports and print the summary.
4. Unless ``--dry-run``, mirror the categories onto GitHub Lists.

Configuration comes from environment variables (a ``.env`` file in the
working directory is loaded first); see `common.config.Settings`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from common.config import Settings, setup_libraries
from common.logging_config import configure_logging

from .cache import RepoListCache
from .errors import CacheError, ConfigurationError
from .github import GitHubClient
from .models import AnalyzerProgress, Report
from .pipeline import AnalysisPipeline
from .reporter import generate_report, print_report, save_details, save_summary
from .sync import ListSynchronizer

log = structlog.get_logger(__name__)

app = typer.Typer(
    help="Categorize your GitHub stars with an LLM and sync them to GitHub Lists.",
    add_completion=False,
)
console = Console()

EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2


@dataclass(frozen=True)
class RunOptions:
    skip_cache: bool = False
    dry_run: bool = False
    limit: int | None = None
    keep_lists: bool = False


def _progress_description(progress: AnalyzerProgress) -> str:
    if progress.category is None:
        return f"[red]failed[/red] {escape(progress.repo)}"
    source = "cache" if progress.cached else "new"
    return (
        f"{escape(progress.repo)} [dim]({source})[/dim] → "
        f"{escape(progress.category)} [dim]{progress.confidence}%[/dim]"
    )


def run(settings: Settings, options: RunOptions, console: Console = console) -> Report:
    """Execute one full categorization run and return its report."""
    repo_cache = RepoListCache(settings.CACHE_DIR, settings.CACHE_MAX_AGE_HOURS)
    github: GitHubClient | None = None
    pipeline: AnalysisPipeline | None = None
    try:
        # Phase 1: fetch
        repos = None if options.skip_cache else repo_cache.load()
        if repos is None:
            github = GitHubClient(settings)
            with console.status("Fetching starred repositories from GitHub..."):
                repos = github.fetch_starred_repos()
            try:
                repo_cache.save(repos)
            except CacheError as e:
                log.warning("Could not cache repository list", error=str(e))
        else:
            log.info("Using cached repository list", age=repo_cache.age(), repo_count=len(repos))

        if options.limit:
            repos = repos[: options.limit]

        # Phase 2: analyze
        pipeline = AnalysisPipeline.from_settings(settings)
        log.info(
            "Starting analysis",
            repo_count=len(repos),
            model=pipeline.classifier.model,
            concurrency=pipeline.concurrency,
        )
        with Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Analyzing repositories", total=len(repos))

            def on_progress(update: AnalyzerProgress) -> None:
                progress.update(
                    task,
                    completed=update.current,
                    description=_progress_description(update),
                )

            records = pipeline.analyze_all(repos, options.skip_cache, on_progress)

        # Phase 3: report
        report = generate_report(records, pipeline.get_stats())
        summary_path = save_summary(report, settings.RESULTS_DIR)
        details_path = save_details(records, settings.RESULTS_DIR)
        print_report(report, console)
        log.info("Reports saved", summary=str(summary_path), details=str(details_path))

        # Phase 4: sync
        if options.dry_run:
            log.info("Dry run; GitHub Lists left untouched")
            return report

        if github is None:
            github = GitHubClient(settings)
        log.info("Syncing GitHub Lists", user=github.get_username())
        sync = ListSynchronizer(github, settings.SYNC_BATCH_SIZE, settings.SYNC_CONCURRENCY)
        with console.status("Syncing GitHub Lists..."):
            if not options.keep_lists:
                deleted = sync.clear_all_lists()
                log.info("Cleared lists", deleted=deleted)
            lists = sync.create_lists()
            assigned = sync.assign_repos_to_lists(records, lists)
        console.print(f"[green]Assigned {assigned} repositories to {len(lists)} lists.[/green]")
        return report
    finally:
        if pipeline is not None:
            pipeline.shutdown()
        if github is not None:
            github.close()


@app.command()
def main(
    skip_cache: bool = typer.Option(
        False, "--skip-cache", "-s", help="Skip caches and re-analyze all repositories."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d", help="Analyze without updating GitHub Lists."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", min=1, help="Limit the number of repositories to process."
    ),
    keep_lists: bool = typer.Option(
        False, "--keep-lists", help="Keep existing GitHub Lists instead of recreating them."
    ),
    fast: bool = typer.Option(False, "--fast", "-f", help="Use the provider's fast model."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Classifier model to use."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Categorize starred repositories and sync them to GitHub Lists."""
    load_dotenv()
    try:
        settings = Settings()
        if debug:
            settings.LOG_LEVEL = "DEBUG"
        if model:
            settings.CLASSIFY_MODEL = model
        elif fast:
            settings.CLASSIFY_MODEL = settings.FAST_MODEL
        configure_logging(settings)
        setup_libraries(settings)
    except ValueError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    options = RunOptions(
        skip_cache=skip_cache, dry_run=dry_run, limit=limit, keep_lists=keep_lists
    )
    try:
        run(settings, options)
    except KeyboardInterrupt:
        log.info("Ctrl-C received; exiting")
        raise typer.Exit(130)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except Exception as e:
        log.exception("Run failed")
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(EXIT_ERROR)


if __name__ == "__main__":
    app()
