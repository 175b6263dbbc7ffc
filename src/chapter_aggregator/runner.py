"""Terminal front end that drives a download run."""

import asyncio
import logging
import signal
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from chapter_aggregator.config import AppConfig
from chapter_aggregator.extractor import ChapterExtractor
from chapter_aggregator.fetcher import BaseFetcher, HttpFetcher, PlaywrightFetcher
from chapter_aggregator.output import SingleFileOutput, assemble
from chapter_aggregator.pipeline import FailureKind, Pipeline, PipelineResult, ProgressEvent
from chapter_aggregator.settings_store import SettingsStore
from chapter_aggregator.worklist import WorkItem

logger = logging.getLogger(__name__)

FAILED_REPORT_NAME = ".failed-urls.txt"

_FAILURE_SUGGESTIONS: dict[FailureKind, str] = {
    FailureKind.CHALLENGE: "Open the chapter in your browser to pass the check, or rerun with --headful",
    FailureKind.TRANSPORT: "Try a larger delay: chapter-aggregator settings set base_delay_ms 4000",
    FailureKind.EXTRACTION: "The page layout was not recognised; check the URL opens a chapter",
    FailureKind.CANCELLED: "Rerun to fetch the remaining chapters",
}


@dataclass
class DownloadReport:
    """What a download run produced."""

    result: PipelineResult
    total: int
    output_path: Path | None = None
    failed_report: Path | None = None
    duration: float = 0.0

    @property
    def exit_code(self) -> int:
        if self.result.cancelled:
            return 130
        return 1 if self.result.failures else 0


class DownloadRunner:
    """Wire settings, fetchers, pipeline and output for one download."""

    def __init__(
        self,
        config: AppConfig,
        store: SettingsStore,
        console: Console | None = None,
        primary: BaseFetcher | None = None,
        fallback: BaseFetcher | None = None,
    ):
        self.config = config
        self.store = store
        self.console = console or Console()
        settings = store.snapshot()
        self.pipeline = Pipeline(
            store,
            primary or HttpFetcher(config.fetcher),
            fallback or PlaywrightFetcher(config.fetcher, pool_size=settings.batch_size),
            extractor=ChapterExtractor(config.extractor),
            on_challenge=self._on_challenge,
        )

    async def run(self, items: list[WorkItem]) -> DownloadReport:
        """Download ``items``, write the reader document and print a summary."""
        start = time.monotonic()
        settings = self.store.snapshot()
        self.console.print(
            f"[blue]Downloading {len(items)} chapters[/blue]"
            f" [dim](batch {settings.batch_size}, delay {settings.base_delay_ms} ms,"
            f" {settings.max_retries} retries)[/dim]"
        )

        progress = self._build_progress(settings.compact_ui)
        task_id = progress.add_task("Downloading...", total=len(items))

        def on_progress(event: ProgressEvent) -> None:
            if event.cancelled:
                description = "[red]Cancelling...[/red]"
            elif event.completed_count == event.total_count:
                description = "[green]Processing complete[/green]"
            else:
                description = f"Processing {event.completed_count}/{event.total_count}"
            progress.update(task_id, advance=1, description=description)

        with progress:
            self._install_cancel_handler()
            try:
                result = await self.pipeline.run(items, on_progress)
            finally:
                self._remove_cancel_handler()

        report = DownloadReport(result=result, total=len(items))
        if result.results:
            document = assemble(result.results)
            writer = SingleFileOutput(self.config.output.directory)
            report.output_path = await writer.write(document)
            size = report.output_path.stat().st_size
            self.console.print(
                f"[green]Written to {report.output_path}"
                f" ({_format_size(size)}, {document.chapter_count} chapters)[/green]"
            )

        remaining = _not_downloaded(items, result)
        if remaining and self.config.output.write_failed_report:
            report.failed_report = self._write_failed_report(remaining)

        report.duration = time.monotonic() - start
        self._print_summary(report)
        return report

    def _build_progress(self, compact: bool) -> Progress:
        if compact:
            return Progress(
                TextColumn("{task.description}"),
                BarColumn(bar_width=20),
                MofNCompleteColumn(),
                console=self.console,
                transient=True,
            )
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=self.console,
        )

    def _install_cancel_handler(self) -> None:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, self.pipeline.cancel)
        except (NotImplementedError, RuntimeError):
            logger.debug("SIGINT handler not supported; Ctrl+C will abort instead of cancel")

    def _remove_cancel_handler(self) -> None:
        try:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    def _on_challenge(self, item: WorkItem) -> None:
        self.console.print(
            f"[bold yellow]Anti-bot challenge detected on {item.url}[/bold yellow]\n"
            "[yellow]Switching to the browser strategy for the rest of this run."
            " If chapters keep failing, open the page in your browser to pass the"
            " check, or rerun with --headful.[/yellow]"
        )

    def _write_failed_report(self, remaining: list[WorkItem]) -> Path:
        directory = self.config.output.directory
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / FAILED_REPORT_NAME
        with open(path, "w", encoding="utf-8") as f:
            f.write("# Chapters not downloaded by chapter-aggregator run\n")
            f.write(f"# {datetime.now().isoformat()}\n")
            for item in remaining:
                f.write(f"{item.title}\t{item.url}\n")
        return path

    def _print_summary(self, report: DownloadReport) -> None:
        result = report.result
        self.console.print()
        if result.cancelled:
            self.console.print(
                f"[bold yellow]Download cancelled[/bold yellow]"
                f" ({result.success_count}/{report.total} chapters finished)"
            )
        elif result.failures:
            self.console.print(
                f"[bold]Downloaded {result.success_count}/{report.total} chapters."
                f" {result.failure_count} failed.[/bold]"
            )
        else:
            self.console.print(
                f"[bold green]Successfully downloaded {result.success_count} chapters![/bold green]"
            )
        self.console.print(f"  Time: {report.duration:.1f}s")
        if result.challenge_detected:
            self.console.print("  [yellow]Anti-bot challenge encountered; browser strategy used[/yellow]")
        if report.failed_report:
            self.console.print(f"  [yellow]Chapters not downloaded: {report.failed_report}[/yellow]")
            self.console.print(
                f"  [dim]Retry them with: chapter-aggregator download {report.failed_report}[/dim]"
            )

        if not result.failures:
            return

        kind_counts: Counter[FailureKind] = Counter(f.kind for f in result.failures)
        self.console.print()
        self.console.print("[bold red]Failures[/bold red]")
        for kind, count in kind_counts.most_common():
            self.console.print(f"  {kind.value:<15s} {count}")
        top_kind = kind_counts.most_common(1)[0][0]
        suggestion = _FAILURE_SUGGESTIONS.get(top_kind)
        if suggestion:
            self.console.print(f"  [dim]Suggestion: {suggestion}[/dim]")
        self.console.print()
        for failure in result.failures[:10]:
            self.console.print(f"  [red]{failure.item.title}[/red]: {failure.reason}")
        if len(result.failures) > 10:
            self.console.print(f"  [dim]... and {len(result.failures) - 10} more failures[/dim]")


def _format_size(size_bytes: int) -> str:
    """Format a byte size as a human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.1f} MB"


def _not_downloaded(items: list[WorkItem], result: PipelineResult) -> list[WorkItem]:
    """Items without a downloaded chapter, including ones a cancel never started."""
    done = {chapter.source_url for chapter in result.results}
    return [item for item in items if item.url not in done]
