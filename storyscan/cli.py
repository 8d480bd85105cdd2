from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from storyscan.config import load_config
from storyscan.errors import StoryScanError
from storyscan.history import SnapshotRecorder, count_nodes
from storyscan.log import configure_logging, get_logger
from storyscan.models import Snapshot, TrackedPath
from storyscan.query import DEFAULT_RANGE, VALID_RANGES, HistoryQueryService
from storyscan.registry import TrackedPathRegistry
from storyscan.scanner import scan_directory_with_progress


app = typer.Typer(help="StoryScan CLI")
track_app = typer.Typer(help="Manage tracked paths.")
app.add_typer(track_app, name="track")
console = Console()


def _db_path() -> Path:
    config = load_config()
    configure_logging(config.log_level, console)
    return config.db_file


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def _render_tracked_paths(tracked_paths: list[TrackedPath]) -> None:
    if not tracked_paths:
        console.print("[yellow]No tracked paths.[/yellow]")
        return

    table = Table(title="Tracked paths")
    table.add_column("ID", justify="right")
    table.add_column("Label")
    table.add_column("Path")
    table.add_column("Active")
    table.add_column("Created")

    for tracked in tracked_paths:
        table.add_row(
            str(tracked.id),
            tracked.label,
            tracked.path,
            "yes" if tracked.is_active else "no",
            tracked.created_at,
        )
    console.print(table)


def _render_snapshots(snapshots: list[Snapshot]) -> None:
    if not snapshots:
        console.print("[yellow]No snapshots in range.[/yellow]")
        return

    table = Table(title="History")
    table.add_column("Path ID", justify="right")
    table.add_column("Recorded")
    table.add_column("Size", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Folders", justify="right")

    for snapshot in snapshots:
        table.add_row(
            str(snapshot.tracked_path_id),
            snapshot.timestamp,
            _format_size(snapshot.size_bytes),
            str(snapshot.file_count),
            str(snapshot.folder_count),
        )
    console.print(table)


async def _run(coro) -> int:
    try:
        await coro
    except StoryScanError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    return 0


@track_app.command("list")
def track_list() -> None:
    """List tracked paths."""
    registry = TrackedPathRegistry(_db_path())

    async def _impl() -> None:
        _render_tracked_paths(await registry.list())

    raise typer.Exit(code=asyncio.run(_run(_impl())))


@track_app.command("add")
def track_add(
    path: str,
    label: str | None = typer.Option(None, "--label", help="Display label. Defaults to the directory name."),
    directory_config_id: str | None = typer.Option(None, "--directory-config-id"),
) -> None:
    """Start tracking a directory."""
    registry = TrackedPathRegistry(_db_path())
    resolved = str(Path(path).expanduser().resolve())

    async def _impl() -> None:
        tracked = await registry.add(resolved, label or Path(resolved).name or resolved, directory_config_id)
        console.print(f"[green]Tracking[/green] {tracked.path} as #{tracked.id} ({tracked.label})")

    raise typer.Exit(code=asyncio.run(_run(_impl())))


@track_app.command("update")
def track_update(
    tracked_path_id: int,
    label: str | None = typer.Option(None, "--label"),
    activate: bool = typer.Option(False, "--activate", help="Resume recording snapshots."),
    deactivate: bool = typer.Option(False, "--deactivate", help="Pause recording snapshots."),
) -> None:
    """Change the label or active flag of a tracked path."""
    if activate and deactivate:
        console.print("[red]Use either --activate or --deactivate, not both.[/red]")
        raise typer.Exit(code=1)
    active = activate if (activate or deactivate) else None
    registry = TrackedPathRegistry(_db_path())

    async def _impl() -> None:
        await registry.update(tracked_path_id, label=label, is_active=active)
        console.print(f"[green]Updated[/green] tracked path #{tracked_path_id}")

    raise typer.Exit(code=asyncio.run(_run(_impl())))


@track_app.command("remove")
def track_remove(tracked_path_id: int) -> None:
    """Stop tracking a path and delete its history."""
    registry = TrackedPathRegistry(_db_path())

    async def _impl() -> None:
        await registry.remove(tracked_path_id)
        console.print(f"[yellow]Removed[/yellow] tracked path #{tracked_path_id}")

    raise typer.Exit(code=asyncio.run(_run(_impl())))


@app.command()
def scan(
    directory: str,
    record: bool = typer.Option(True, "--record/--no-record", help="Record snapshots for tracked paths."),
) -> None:
    """Scan a directory and record snapshots for the tracked paths inside it."""
    db_path = _db_path()
    target = Path(directory).expanduser()
    if not target.exists():
        console.print(f"[red]Directory does not exist: {target}[/red]")
        raise typer.Exit(code=1)

    root = scan_directory_with_progress(target, console=console)
    stats = count_nodes(root)
    console.print(
        f"Scanned [bold]{root.path}[/bold]: {_format_size(stats.size_bytes)}, "
        f"{stats.file_count} file(s), {stats.folder_count} folder(s)"
    )
    if not record:
        raise typer.Exit(code=0)

    recorder = SnapshotRecorder(db_path, logger=get_logger("history"))

    async def _impl() -> None:
        result = await recorder.record(root)
        console.print(f"Recorded {result.recorded}/{result.total} snapshot(s)")

    raise typer.Exit(code=asyncio.run(_run(_impl())))


@app.command()
def history(
    path_ids: str = typer.Argument(..., help="Comma-separated tracked path ids."),
    range_: str = typer.Option(
        DEFAULT_RANGE,
        "--range",
        help=f"Time range: {', '.join(VALID_RANGES)}.",
    ),
) -> None:
    """Show recorded snapshots for tracked paths."""
    service = HistoryQueryService(_db_path())

    async def _impl() -> None:
        _render_snapshots(await service.get_snapshots(path_ids, range_.upper()))

    raise typer.Exit(code=asyncio.run(_run(_impl())))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(3000, "--port"),
) -> None:
    """Run the HTTP API and the scan scheduler."""
    import uvicorn

    from storyscan.api import create_app

    config = load_config()
    configure_logging(config.log_level, console)
    uvicorn.run(create_app(config), host=host, port=port)


def main() -> None:
    app()
