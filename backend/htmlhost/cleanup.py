"""Maintenance commands for the hosting store: expiry sweeps, stats and orphan cleanup."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import Session

from htmlhost import crud
from htmlhost.core.clock import utcnow
from htmlhost.core.db import engine, init_db
from htmlhost.lifecycle import LifecycleReaper

app = typer.Typer(
    name="htmlhost-cleanup",
    help="Remove expired uploads and inspect storage usage.",
)

console = Console()

UploadsDirOption = Annotated[
    Optional[Path],
    typer.Option("--uploads-dir", help="Upload directory root (defaults to UPLOADS_DIR)."),
]


def format_size(size: int) -> str:
    """Human readable byte count, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    for unit in ["Bytes", "KB", "MB", "GB"]:
        if value < 1024:
            break
        value /= 1024
    else:
        unit = "TB"
    return f"{round(value, 2):g} {unit}"


def _open_session() -> Session:
    init_db(engine)
    return Session(engine)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every step.")] = False,
) -> None:
    """htmlhost maintenance."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)


@app.command()
def sweep(uploads_dir: UploadsDirOption = None) -> None:
    """Delete expired records and their upload directories."""
    with _open_session() as session:
        report = LifecycleReaper(session, uploads_dir=uploads_dir).sweep()

    if report.found == 0:
        console.print("No expired files found.")
        return
    console.print(
        f"Cleanup completed: [green]{report.directories_removed}[/green] directories deleted, "
        f"[green]{report.deleted}[/green] records removed, "
        f"[red]{report.errors}[/red] errors."
    )
    if report.errors:
        raise typer.Exit(code=1)


@app.command()
def stats() -> None:
    """Show storage statistics."""
    with _open_session() as session:
        result = crud.get_storage_stats(session=session, now=utcnow())

    table = Table(title="Storage Statistics")
    table.add_column("", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Size", justify="right")
    table.add_row("Total", str(result.total_files), format_size(result.total_size))
    table.add_row("Active", str(result.active_files), format_size(result.active_size))
    table.add_row("Expired", str(result.expired_files), format_size(result.expired_size))
    console.print(table)


@app.command()
def reconcile(
    uploads_dir: UploadsDirOption = None,
    grace: Annotated[
        Optional[int],
        typer.Option("--grace", help="Minimum directory age in seconds before removal."),
    ] = None,
) -> None:
    """Remove upload directories that no record references."""
    with _open_session() as session:
        report = LifecycleReaper(session, uploads_dir=uploads_dir).reconcile(grace)

    console.print(
        f"Orphaned directories: {report.orphans}, removed: {report.removed}, "
        f"errors: {report.errors}"
    )
    if report.errors:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
