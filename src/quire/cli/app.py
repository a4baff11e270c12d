"""Command line interface for Quire."""

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from quire.core.config import QuireConfig
from quire.core.exceptions import ConfigError
from quire.core.logging import setup_logging
from quire.core.types import BuildReport
from quire.features.pipeline import build as build_generation
from quire.features.pipeline import make_renderer
from quire.features.trigger import PublishTrigger
from quire.features.watch import GitBranchWatcher, GitError
from quire.infra.sinks.filesystem import GenerationCounter, GenerationSink

app = typer.Typer(
    name="quire",
    help="Build and publish a static site from post and project collections.",
    add_completion=False,
)

console = Console()
logger = logging.getLogger(__name__)

SiteRootOption = Annotated[
    Path,
    typer.Option("--site-root", "-C", help="Directory holding .quire.toml and the content tree."),
]


@contextmanager
def handle_cli_errors() -> Generator[None, None, None]:
    """Turn configuration and git errors into a readable message and exit code 1."""
    try:
        yield
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1) from e
    except GitError as e:
        console.print(f"[bold red]Git error:[/bold red] {e}")
        raise typer.Exit(1) from e


def _load(site_root: Path) -> QuireConfig:
    config = QuireConfig.load(site_root)
    setup_logging(config.logging.level, config.logging.file, console=Console(stderr=True))
    return config


def _print_report(report: BuildReport) -> None:
    if report.ok:
        console.print(f"[bold green]✔[/bold green] {report.summary()}")
        return
    failure = report.failure
    console.print(f"[bold red]✘ Build {report.generation_id} failed[/bold red]")
    if failure is not None:
        console.print(f"  stage: {failure.stage.value}")
        console.print(f"  error: {failure.error_kind}")
        if failure.slug:
            console.print(f"  item:  {failure.slug}")
        console.print(f"  {failure.message}")


@app.command()
def build(site_root: SiteRootOption = Path(".")) -> None:
    """
    Build the site and publish it as a new generation.
    """
    with handle_cli_errors():
        config = _load(site_root)
        report = PublishTrigger(config).run_once()
    _print_report(report)
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def check(site_root: SiteRootOption = Path(".")) -> None:
    """
    Build the site in memory without writing or publishing anything.
    """
    with handle_cli_errors():
        config = _load(site_root)
        paths = config.paths
        sink = GenerationSink(paths.abs_state_dir, paths.abs_serve_root, paths.abs_static_dir)
        generation_id = GenerationCounter(paths.abs_state_dir).peek() + 1
        output = build_generation(config, generation_id, renderer=make_renderer(config, assets=sink.static_assets()))

    if output.failure is not None:
        _print_report(BuildReport(generation_id=generation_id, status=output.status, failure=output.failure))
        raise typer.Exit(1)
    console.print(f"[bold green]✔[/bold green] {len(output.pages)} page(s) build cleanly")


@app.command()
def watch(
    site_root: SiteRootOption = Path("."),
    interval: Annotated[
        float | None, typer.Option("--interval", help="Seconds between polls (default from config).")
    ] = None,
    fetch: Annotated[
        bool | None, typer.Option("--fetch/--no-fetch", help="Fetch and fast-forward before each poll.")
    ] = None,
) -> None:
    """
    Watch the primary branch and publish a new generation on every change.
    """
    with handle_cli_errors():
        config = _load(site_root)
        settings = config.trigger
        trigger = PublishTrigger(config)
        trigger.add_listener(_print_report)
        watcher = GitBranchWatcher(
            config.paths.site_root,
            branch=settings.branch,
            remote=settings.remote,
            fetch=settings.fetch if fetch is None else fetch,
        )
        console.print(f"👀 Watching [bold]{settings.branch}[/bold] in {config.paths.site_root}")
        stop = threading.Event()
        try:
            watcher.watch(trigger, interval or settings.poll_interval, stop)
        except KeyboardInterrupt:
            stop.set()
            console.print("Stopping; waiting for the running build to finish...")
            trigger.wait_idle()


@app.command()
def status(site_root: SiteRootOption = Path(".")) -> None:
    """
    Show the live generation and the generations kept on disk.
    """
    with handle_cli_errors():
        config = _load(site_root)
    paths = config.paths
    sink = GenerationSink(paths.abs_state_dir, paths.abs_serve_root, paths.abs_static_dir)

    current = sink.current_generation()
    if current is None:
        console.print("Nothing published yet.")
    else:
        console.print(
            f"Live: generation [bold]{current.generation_id}[/bold] "
            f"({current.page_count} pages, published {current.published_at:%Y-%m-%d %H:%M:%S} UTC)"
        )

    live = sink.live_dir()
    table = Table(title="Generations")
    table.add_column("Id", style="bold cyan", justify="right")
    table.add_column("Directory")
    table.add_column("Live", justify="center")
    for generation_id, path in sink.list_generations():
        is_live = live is not None and path.resolve() == live
        table.add_row(str(generation_id), path.name, "[bold green]✔[/bold green]" if is_live else "")
    console.print(table)


if __name__ == "__main__":
    app()
