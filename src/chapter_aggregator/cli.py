"""Command-line interface for chapter-aggregator."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from chapter_aggregator import __version__
from chapter_aggregator.config import AppConfig, Settings
from chapter_aggregator.errors import EmptyWorkListError, SettingsError
from chapter_aggregator.event_log import EventLog, EventLogHandler
from chapter_aggregator.runner import DownloadRunner
from chapter_aggregator.settings_store import SettingsStore, default_store_path
from chapter_aggregator.worklist import load_work_items, select_range

app = typer.Typer(
    name="chapter-aggregator",
    help="Download serialized-fiction chapters into one offline HTML reader.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
settings_app = typer.Typer(help="Show or change the persisted download settings.")
app.add_typer(settings_app, name="settings")

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"chapter-aggregator version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Chapter aggregation tool for offline reading."""
    pass


def setup_logging(event_log: EventLog, verbose: bool) -> None:
    """Route package logs into the event log, and to the console when verbose."""
    package_logger = logging.getLogger("chapter_aggregator")
    package_logger.setLevel(logging.DEBUG)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.addHandler(EventLogHandler(event_log))
    console_handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.addHandler(console_handler)


@app.command()
def download(
    worklist: Path = typer.Argument(
        ..., help="Work list: JSON array or one 'title<TAB>url' per line"
    ),
    start: Optional[int] = typer.Option(
        None,
        "--from",
        help="First chapter to download (1-based)",
        min=1,
    ),
    end: Optional[int] = typer.Option(
        None,
        "--to",
        help="Last chapter to download (1-based, inclusive)",
        min=1,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory for the reader document",
    ),
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Base URL for relative chapter links",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="TOML configuration file",
    ),
    cookies: Optional[Path] = typer.Option(
        None,
        "--cookies",
        help="Netscape cookies.txt sent with plain HTTP requests",
    ),
    headful: bool = typer.Option(
        False,
        "--headful",
        help="Show the fallback browser so anti-bot checks can be solved by hand",
    ),
    export_logs: Optional[Path] = typer.Option(
        None,
        "--export-logs",
        help="Directory to write the run's event log to",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
):
    """
    Download chapters from a work list and build one HTML reader.

    Examples:

        chapter-aggregator download chapters.txt

        chapter-aggregator download chapters.json --from 10 --to 25 -o ./books

        chapter-aggregator download chapters.txt --cookies cookies.txt --headful
    """
    try:
        config = AppConfig.from_toml(config_file) if config_file else AppConfig()
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read config {config_file}: {e}[/red]")
        raise typer.Exit(1)

    if output:
        config.output.directory = output
    if base_url:
        config.base_url = base_url
    if cookies:
        config.fetcher.cookies_file = cookies
    if headful:
        config.fetcher.headful_fallback = True
    config.verbose = config.verbose or verbose

    store = SettingsStore(default_store_path())
    event_log = EventLog(enabled=store.get("logging_enabled"))
    setup_logging(event_log, config.verbose)

    try:
        items = select_range(load_work_items(worklist, config.base_url), start, end)
    except (FileNotFoundError, EmptyWorkListError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    runner = DownloadRunner(config, store, console)
    try:
        report = asyncio.run(runner.run(items))
    except KeyboardInterrupt:
        console.print("\n[yellow]Download cancelled.[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if config.verbose:
            console.print_exception()
        raise typer.Exit(1)
    finally:
        if export_logs:
            path = asyncio.run(event_log.export(export_logs))
            console.print(f"[dim]Event log written to {path}[/dim]")

    raise typer.Exit(report.exit_code)


@settings_app.command("show")
def settings_show():
    """Show the current settings."""
    store = SettingsStore(default_store_path())
    settings = store.snapshot()

    table = Table(title="Download Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Default", style="dim")

    defaults = Settings()
    for key in Settings.model_fields:
        table.add_row(key, str(getattr(settings, key)), str(getattr(defaults, key)))

    console.print(table)
    console.print(f"[dim]Stored in {store.path}[/dim]")


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting name, e.g. batch_size"),
    value: str = typer.Argument(..., help="New value"),
):
    """Change one setting and save it."""
    store = SettingsStore(default_store_path())
    key = key.replace("-", "_")
    try:
        store.set(key, value)
    except SettingsError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{key} = {store.get(key)}[/green]")


@settings_app.command("reset")
def settings_reset():
    """Restore the default settings."""
    store = SettingsStore(default_store_path())
    store.reset()
    console.print("[green]Settings reset to defaults.[/green]")


if __name__ == "__main__":
    app()
