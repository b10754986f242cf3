"""
Command Line Interface

``treemirror SOURCE DEST`` scans both trees, shows what would change, asks
for confirmation and applies the changes. Exit code 0 on success (including
nothing to do), 1 on any fatal error.

Author: treemirror Project
License: MIT
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from . import __version__
from .config.config_loader import load_config
from .config.schema import MirrorConfig
from .core.errors import MirrorError
from .core.models import Changeset, Snapshot, SyncReport
from .core.orchestrator import Orchestrator
from .utils.file_ops import format_size
from .utils.logger import get_logger, setup_logging
from .utils.progress import ProgressSink, RichProgress

logger = get_logger(__name__)

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

app = typer.Typer(
    name="treemirror",
    help="One-way directory mirroring with content fingerprints and rename detection.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"treemirror version: {__version__}")
        raise typer.Exit()


def display_changes(changeset: Changeset, delete_removed: bool) -> None:
    """Display the individual changes as a tree."""
    tree = Tree("[bold]Changes[/bold]")
    if changeset.added:
        branch = tree.add("[green]Added[/green]")
        for record in sorted(changeset.added, key=lambda r: r.path):
            branch.add(f"[green]{escape(record.path)}[/green] ({format_size(record.size)})")
    if changeset.modified:
        branch = tree.add("[yellow]Modified[/yellow]")
        for record in sorted(changeset.modified, key=lambda r: r.path):
            branch.add(f"[yellow]{escape(record.path)}[/yellow] ({record.fingerprint[:8]})")
    if changeset.renamed:
        branch = tree.add("[cyan]Renamed[/cyan]")
        for pair in sorted(changeset.renamed, key=lambda p: p.new.path):
            branch.add(f"[cyan]{escape(pair.old.path)}[/cyan] -> [cyan]{escape(pair.new.path)}[/cyan]")
    if changeset.removed:
        label = "[red]Delete[/red]" if delete_removed else "[dim]Only in destination (kept)[/dim]"
        branch = tree.add(label)
        for record in sorted(changeset.removed, key=lambda r: r.path):
            branch.add(escape(record.path))
    console.print(tree)


def display_report(report: SyncReport) -> None:
    """Display a one-line summary of an applied run."""
    parts = [
        f"{report.copied} copied",
        f"{report.renamed} renamed",
        f"{report.deleted} deleted",
    ]
    if report.verified:
        parts.append(f"{report.verified} verified")
    console.print(f"Done: {', '.join(parts)} ({format_size(report.bytes_copied)} transferred)")


def _apply_overrides(
    config: MirrorConfig,
    delete: bool,
    verify: bool,
    threads: Optional[int],
    verbose: bool,
    quiet: bool,
    json_logs: bool
) -> MirrorConfig:
    """Layer command-line flags over the loaded configuration."""
    if delete:
        config.sync.delete_removed = True
    if verify:
        config.sync.verify_after_copy = True
    if threads is not None:
        config.scan.workers = threads
        config.sync.workers = threads
    if verbose:
        config.logging.log_level = "DEBUG"
    elif quiet:
        config.logging.log_level = "ERROR"
    if json_logs:
        config.logging.json_format = True
    return config


@app.command()
def sync(
    source: Path = typer.Argument(..., help="Source directory"),
    dest: Path = typer.Argument(..., help="Destination directory"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show changes without applying them"),
    delete: bool = typer.Option(False, "--delete", "-d", help="Delete files in dest that are not in source"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No progress or summaries"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and per-file listing"),
    threads: Optional[int] = typer.Option(
        None, "--threads", "-j", min=1, help="Worker threads (default: CPU count)"
    ),
    verify: bool = typer.Option(False, "--verify", help="Compare every copied file with its source"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="YAML configuration file", envvar="TREEMIRROR_CONFIG"
    ),
    save_snapshot: Optional[Path] = typer.Option(
        None, "--save-snapshot", help="Write the source snapshot to this file"
    ),
    dest_snapshot: Optional[Path] = typer.Option(
        None, "--dest-snapshot", help="Compare against a saved destination snapshot instead of rescanning"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Mirror SOURCE into DEST."""
    try:
        config = load_config(str(config_path) if config_path else None)
        config = _apply_overrides(config, delete, verify, threads, verbose, quiet, json_logs)

        setup_logging(
            log_level=config.logging.log_level,
            log_to_file=config.logging.log_to_file,
            log_file_path=config.logging.log_file_path,
            log_rotation_size=config.logging.log_rotation_size,
            log_retention_count=config.logging.log_retention_count,
            json_format=config.logging.json_format,
        )

        progress = ProgressSink() if quiet else RichProgress(console=err_console, transient=True)
        orchestrator = Orchestrator(config, progress=progress)

        cached = Snapshot.load(dest_snapshot) if dest_snapshot else None
        plan = orchestrator.plan(source, dest, dest_snapshot=cached)

        if save_snapshot:
            plan.source.save(save_snapshot)

        if plan.skipped and not quiet:
            err_console.print(f"[yellow]Warning:[/yellow] {plan.skipped} files could not be read and were skipped")

        delete_removed = config.sync.delete_removed
        if not plan.has_work(delete_removed):
            if not quiet:
                console.print("[green]In sync[/green]")
            return

        if not quiet:
            console.print(f"Changes: {plan.changeset.summary(delete_removed)}")
            if verbose or dry_run:
                display_changes(plan.changeset, delete_removed)

        if dry_run:
            return

        if not yes and not typer.confirm("Proceed?", default=False):
            console.print("Aborted")
            return

        report = orchestrator.execute(plan, dest)

        if not quiet:
            display_report(report)

    except MirrorError as e:
        logger.debug("Run failed", exc_info=True)
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
