from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

import storyscan.history as history
from storyscan.errors import StorageError
from storyscan.history import SnapshotRecorder, count_nodes, find_node_by_path, record_history_snapshots
from storyscan.models import FileNode, NodeStats, RecordResult
from storyscan.state_db import insert_tracked_path, load_snapshots, update_tracked_path


def _deep_tree() -> FileNode:
    def _dir(path: str, children: list[FileNode]) -> FileNode:
        return FileNode(
            type="directory",
            name=path.rsplit("/", 1)[-1],
            path=path,
            size=sum(child.size for child in children),
            children=children,
        )

    def _file(path: str, size: int) -> FileNode:
        return FileNode(type="file", name=path.rsplit("/", 1)[-1], path=path, size=size)

    return _dir(
        "/r",
        [
            _dir("/r/x", [_file("/r/x/1", 1), _file("/r/x/2", 2), _dir("/r/x/empty", [])]),
            _dir("/r/y", [_dir("/r/y/z", [_file("/r/y/z/3", 3)])]),
            _file("/r/4", 4),
        ],
    )


def _walk(node: FileNode):
    yield node
    for child in node.children:
        yield from _walk(child)


def test_count_nodes_example_tree(sample_tree: FileNode) -> None:
    assert count_nodes(sample_tree) == NodeStats(size_bytes=300, file_count=2, folder_count=2)


def test_count_nodes_single_file() -> None:
    node = FileNode(type="file", name="f", path="/f", size=42)
    assert count_nodes(node) == NodeStats(size_bytes=42, file_count=1, folder_count=0)


def test_count_nodes_matches_leaf_and_directory_totals() -> None:
    tree = _deep_tree()
    nodes = list(_walk(tree))
    stats = count_nodes(tree)

    assert stats.file_count == sum(1 for node in nodes if not node.is_directory)
    assert stats.folder_count == sum(1 for node in nodes if node.is_directory)


def test_count_nodes_trusts_reported_directory_size() -> None:
    node = FileNode(
        type="directory",
        name="d",
        path="/d",
        size=7,
        children=[FileNode(type="file", name="f", path="/d/f", size=1000)],
    )
    assert count_nodes(node).size_bytes == 7


def test_find_node_by_path() -> None:
    tree = _deep_tree()
    assert find_node_by_path(tree, "/r") is tree
    assert find_node_by_path(tree, "/r/y/z/3").size == 3
    assert find_node_by_path(tree, "/r/y/z").is_directory
    assert find_node_by_path(tree, "/r/missing") is None
    assert find_node_by_path(tree, "/r/y/z/") is None


def test_record_with_no_active_paths_writes_nothing(
    db_path: Path, sample_tree: FileNode, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[tuple] = []

    async def _fake_insert(*args, **kwargs):
        calls.append(args)

    monkeypatch.setattr(history, "insert_snapshot", _fake_insert)

    result = asyncio.run(record_history_snapshots(db_path, sample_tree))

    assert result == RecordResult(recorded=0, total=0)
    assert calls == []


def test_record_skips_paths_missing_from_tree(db_path: Path, sample_tree: FileNode) -> None:
    async def _scenario():
        root = await insert_tracked_path(db_path, "/", "Root")
        missing = await insert_tracked_path(db_path, "/missing", "Gone")
        result = await record_history_snapshots(db_path, sample_tree)
        snapshots = await load_snapshots(db_path, [root.id, missing.id])
        return root, result, snapshots

    root, result, snapshots = asyncio.run(_scenario())

    assert result == RecordResult(recorded=1, total=2)
    assert result.skipped == 1
    assert len(snapshots) == 1
    assert snapshots[0].tracked_path_id == root.id
    assert (snapshots[0].size_bytes, snapshots[0].file_count, snapshots[0].folder_count) == (300, 2, 2)


def test_record_ignores_inactive_paths(db_path: Path, sample_tree: FileNode) -> None:
    async def _scenario():
        active = await insert_tracked_path(db_path, "/b", "B")
        inactive = await insert_tracked_path(db_path, "/a.txt", "A")
        await update_tracked_path(db_path, inactive.id, is_active=False)
        result = await record_history_snapshots(db_path, sample_tree)
        return active, inactive, result, await load_snapshots(db_path, [active.id, inactive.id])

    active, inactive, result, snapshots = asyncio.run(_scenario())

    assert result == RecordResult(recorded=1, total=1)
    assert [s.tracked_path_id for s in snapshots] == [active.id]
    assert (snapshots[0].size_bytes, snapshots[0].file_count, snapshots[0].folder_count) == (200, 1, 1)


def test_each_pass_adds_one_snapshot_per_path(db_path: Path, sample_tree: FileNode) -> None:
    async def _scenario():
        tracked = await insert_tracked_path(db_path, "/a.txt", "A")
        recorder = SnapshotRecorder(db_path)
        await recorder.record(sample_tree)
        await recorder.record(sample_tree)
        return await load_snapshots(db_path, [tracked.id])

    snapshots = asyncio.run(_scenario())
    assert len(snapshots) == 2
    assert all(s.file_count == 1 and s.folder_count == 0 for s in snapshots)


def test_recorder_logs_through_injected_logger(
    db_path: Path, sample_tree: FileNode, caplog: pytest.LogCaptureFixture
) -> None:
    logger = logging.getLogger("tests.recorder")

    async def _scenario():
        await insert_tracked_path(db_path, "/b", "B")
        await insert_tracked_path(db_path, "/nope", "Nope")
        return await SnapshotRecorder(db_path, logger=logger).record(sample_tree)

    with caplog.at_level(logging.DEBUG, logger="tests.recorder"):
        asyncio.run(_scenario())

    messages = [record.getMessage() for record in caplog.records if record.name == "tests.recorder"]
    assert messages == ['Recorded snapshot for "/b": 200 bytes', "Recorded 1/2 snapshots"]


def test_storage_fault_mid_pass_keeps_earlier_snapshots(
    db_path: Path, sample_tree: FileNode, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_insert = history.insert_snapshot
    calls = 0

    async def _failing_second_insert(*args, **kwargs):
        nonlocal calls
        calls += 1
        if calls == 2:
            raise StorageError("Database operation failed", "disk I/O error")
        await real_insert(*args, **kwargs)

    async def _seed():
        return [
            await insert_tracked_path(db_path, "/", "Root"),
            await insert_tracked_path(db_path, "/b", "B"),
            await insert_tracked_path(db_path, "/a.txt", "A"),
        ]

    tracked = asyncio.run(_seed())
    monkeypatch.setattr(history, "insert_snapshot", _failing_second_insert)

    with pytest.raises(StorageError):
        asyncio.run(record_history_snapshots(db_path, sample_tree))

    snapshots = asyncio.run(load_snapshots(db_path, [t.id for t in tracked]))
    assert calls == 2
    assert [s.tracked_path_id for s in snapshots] == [tracked[0].id]
