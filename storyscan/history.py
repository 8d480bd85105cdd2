"""Snapshot recording for tracked paths.

A recording pass takes the tree produced by one scan, finds every active
tracked path in it and stores one aggregate snapshot per path found.
"""

from __future__ import annotations

import logging
from pathlib import Path

from storyscan.log import get_logger
from storyscan.models import FileNode, NodeStats, RecordResult
from storyscan.state_db import insert_snapshot, load_active_tracked_paths


def count_nodes(node: FileNode) -> NodeStats:
    """Aggregate a subtree.

    A directory's ``size`` is taken as reported by the scanner and is not
    re-summed from its children.
    """
    if not node.is_directory:
        return NodeStats(size_bytes=node.size, file_count=1, folder_count=0)

    file_count = 0
    folder_count = 1
    for child in node.children:
        if child.is_directory:
            child_stats = count_nodes(child)
            file_count += child_stats.file_count
            folder_count += child_stats.folder_count
        else:
            file_count += 1

    return NodeStats(size_bytes=node.size, file_count=file_count, folder_count=folder_count)


def find_node_by_path(root: FileNode, target_path: str) -> FileNode | None:
    if root.path == target_path:
        return root
    for child in root.children:
        found = find_node_by_path(child, target_path)
        if found is not None:
            return found
    return None


class SnapshotRecorder:
    def __init__(self, db_path: Path, *, logger: logging.Logger | None = None) -> None:
        self._db_path = db_path
        self._logger = logger or get_logger("history")

    async def record(self, root: FileNode) -> RecordResult:
        active_paths = await load_active_tracked_paths(self._db_path)
        total = len(active_paths)
        if total == 0:
            return RecordResult(recorded=0, total=0)

        recorded = 0
        for tracked in active_paths:
            node = find_node_by_path(root, tracked.path)
            if node is None:
                continue
            stats = count_nodes(node)
            await insert_snapshot(
                self._db_path,
                tracked.id,
                stats.size_bytes,
                stats.file_count,
                stats.folder_count,
            )
            recorded += 1
            self._logger.debug(
                'Recorded snapshot for "%s": %d bytes', tracked.path, stats.size_bytes
            )

        self._logger.info("Recorded %d/%d snapshots", recorded, total)
        return RecordResult(recorded=recorded, total=total)


async def record_history_snapshots(
    db_path: Path,
    root: FileNode,
    *,
    logger: logging.Logger | None = None,
) -> RecordResult:
    return await SnapshotRecorder(db_path, logger=logger).record(root)
