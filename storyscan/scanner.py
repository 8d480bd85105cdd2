from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Callable

from storyscan.config import StoryScanConfig
from storyscan.log import get_logger
from storyscan.models import FileNode


logger = get_logger("scanner")


def configured_directories(config: StoryScanConfig) -> list[str]:
    return [directory for directory in config.scan_directories if directory]


def _extension(name: str) -> str | None:
    suffix = Path(name).suffix
    return suffix[1:].lower() or None


def _scan(path: Path, on_entry: Callable[[str], None] | None) -> FileNode:
    # lstat so that symlinked directories are never descended into.
    info = path.lstat()
    name = path.name or str(path)
    modified_time = info.st_mtime_ns / 1_000_000
    if on_entry is not None:
        on_entry(str(path))

    if stat.S_ISREG(info.st_mode):
        return FileNode(
            type="file",
            name=name,
            path=str(path),
            size=info.st_size,
            extension=_extension(name),
            modified_time=modified_time,
        )

    if not stat.S_ISDIR(info.st_mode):
        return FileNode(
            type="file",
            name=name,
            path=str(path),
            size=0,
            modified_time=modified_time,
        )

    children: list[FileNode] = []
    total_size = 0
    try:
        entries = sorted(os.scandir(path), key=lambda entry: entry.name)
    except OSError as exc:
        logger.warning("Cannot read directory %s: %s", path, exc)
        entries = []

    for entry in entries:
        child_path = path / entry.name
        try:
            child = _scan(child_path, on_entry)
        except OSError as exc:
            logger.warning("Skipping %s: %s", child_path, exc)
            continue
        children.append(child)
        total_size += child.size

    children.sort(key=lambda child: child.size, reverse=True)
    return FileNode(
        type="directory",
        name=name,
        path=str(path),
        size=total_size,
        children=children,
        modified_time=modified_time,
    )


def scan_directory(
    root: Path | str,
    *,
    on_entry: Callable[[str], None] | None = None,
) -> FileNode:
    """Build a ``FileNode`` tree for ``root``.

    Directory sizes are the sum of their children. Entries that cannot be
    read are logged and left out.
    """
    return _scan(Path(root).expanduser().resolve(), on_entry)


def scan_directory_with_progress(root: Path | str, *, console=None) -> FileNode:
    from rich.console import Console

    console = console or Console()
    scanned = 0

    with console.status("Scanning...") as status:

        def _on_entry(path: str) -> None:
            nonlocal scanned
            scanned += 1
            if scanned % 500 == 0:
                status.update(f"Scanning... {scanned} entries ({path})")

        return scan_directory(root, on_entry=_on_entry)
