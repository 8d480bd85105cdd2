from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from storyscan.errors import ValidationError
from storyscan.query import HistoryQueryService, parse_path_ids, parse_range
from storyscan.state_db import insert_snapshot, insert_tracked_path


NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


def test_parse_path_ids_filters_invalid_entries() -> None:
    assert parse_path_ids("1, 2,abc,,3") == [1, 2, 3]
    assert parse_path_ids("4,4,5") == [4, 5]
    assert parse_path_ids([7, "8", "x", True]) == [7, 8]


@pytest.mark.parametrize("raw", [None, "", "abc", "a,b, ", []])
def test_parse_path_ids_rejects_empty_result(raw) -> None:
    with pytest.raises(ValidationError):
        parse_path_ids(raw)


def test_parse_range() -> None:
    assert parse_range(None) == "ALL"
    assert parse_range("") == "ALL"
    assert parse_range("3M") == "3M"
    for bad in ("2W", "1w", "all", "1D"):
        with pytest.raises(ValidationError):
            parse_range(bad)


def _seed(db_path: Path) -> tuple[int, int]:
    async def _impl():
        first = await insert_tracked_path(db_path, "/data", "Data")
        second = await insert_tracked_path(db_path, "/other", "Other")
        # Inserted newest first so ordering comes from the query.
        for days, size in ((1, 100), (3, 90), (10, 80), (40, 70), (200, 60), (400, 50)):
            await insert_snapshot(
                db_path, first.id, size, 1, 1, recorded_at=NOW - timedelta(days=days)
            )
        await insert_snapshot(db_path, second.id, 5, 1, 1, recorded_at=NOW - timedelta(days=2))
        return first.id, second.id

    return asyncio.run(_impl())


def _sizes(db_path: Path, ids, range_value) -> list[int]:
    service = HistoryQueryService(db_path)
    snapshots = asyncio.run(service.get_snapshots(ids, range_value, now=NOW))
    return [snapshot.size_bytes for snapshot in snapshots]


def test_all_returns_every_row_in_ascending_order(db_path: Path) -> None:
    first, _ = _seed(db_path)
    assert _sizes(db_path, [first], "ALL") == [50, 60, 70, 80, 90, 100]
    assert _sizes(db_path, [first], None) == [50, 60, 70, 80, 90, 100]


@pytest.mark.parametrize(
    ("range_value", "expected"),
    [
        ("1W", [90, 100]),
        ("1M", [80, 90, 100]),
        ("3M", [70, 80, 90, 100]),
        ("6M", [70, 80, 90, 100]),
        ("1Y", [60, 70, 80, 90, 100]),
    ],
)
def test_ranges_apply_lower_bound(db_path: Path, range_value: str, expected: list[int]) -> None:
    first, _ = _seed(db_path)
    assert _sizes(db_path, [first], range_value) == expected


def test_results_interleave_paths_by_time(db_path: Path) -> None:
    first, second = _seed(db_path)
    service = HistoryQueryService(db_path)
    snapshots = asyncio.run(service.get_snapshots(f"{first},{second},junk", "1W", now=NOW))

    assert [(s.tracked_path_id, s.size_bytes) for s in snapshots] == [
        (first, 90),
        (second, 5),
        (first, 100),
    ]
    timestamps = [s.timestamp for s in snapshots]
    assert timestamps == sorted(timestamps)


def test_no_upper_bound(db_path: Path) -> None:
    first, _ = _seed(db_path)
    asyncio.run(insert_snapshot(db_path, first, 999, 1, 1, recorded_at=NOW + timedelta(days=1)))
    assert _sizes(db_path, [first], "1W")[-1] == 999


def test_invalid_input_never_queries(db_path: Path) -> None:
    service = HistoryQueryService(db_path)
    with pytest.raises(ValidationError):
        asyncio.run(service.get_snapshots("x,y", "ALL"))
    with pytest.raises(ValidationError):
        asyncio.run(service.get_snapshots("1", "2Y"))
    assert not db_path.exists()


def test_ids_outside_sqlite_integer_range_are_dropped() -> None:
    assert parse_path_ids(f"1,{2**63},99999999999999999999999,{-(2**63) - 1}") == [1]
    assert parse_path_ids([2**63 - 1]) == [2**63 - 1]
    with pytest.raises(ValidationError):
        parse_path_ids([2**63])


def test_oversized_id_alone_is_rejected_before_querying(db_path: Path) -> None:
    service = HistoryQueryService(db_path)
    with pytest.raises(ValidationError):
        asyncio.run(service.get_snapshots("99999999999999999999999", "ALL"))
    assert not db_path.exists()
