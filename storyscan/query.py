from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable

from storyscan.errors import ValidationError
from storyscan.models import Snapshot
from storyscan.state_db import is_storable_integer, load_snapshots


DEFAULT_RANGE = "ALL"

# SQLite date modifiers; ALL has no lower bound.
RANGE_MODIFIERS: dict[str, str | None] = {
    "1W": "-7 days",
    "1M": "-1 month",
    "3M": "-3 months",
    "6M": "-6 months",
    "1Y": "-1 year",
    "ALL": None,
}
VALID_RANGES = tuple(RANGE_MODIFIERS)


def parse_range(value: str | None) -> str:
    if not value:
        return DEFAULT_RANGE
    if value not in RANGE_MODIFIERS:
        raise ValidationError(f"Invalid range. Must be one of: {', '.join(VALID_RANGES)}")
    return value


def parse_id(value: object) -> int | None:
    """Parse one tracked-path id, or return None if it cannot be an id."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    else:
        try:
            parsed = int(str(value).strip())
        except ValueError:
            return None
    return parsed if is_storable_integer(parsed) else None


def parse_path_ids(raw: str | Iterable[object] | None) -> list[int]:
    """Parse tracked-path ids, dropping anything that is not an integer."""
    if raw is None or raw == "":
        raise ValidationError("pathIds query parameter is required")

    items = raw.split(",") if isinstance(raw, str) else list(raw)
    ids: list[int] = []
    for item in items:
        parsed = parse_id(item)
        if parsed is not None and parsed not in ids:
            ids.append(parsed)

    if not ids:
        raise ValidationError("At least one valid pathId is required")
    return ids


class HistoryQueryService:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    async def get_snapshots(
        self,
        path_ids: str | Iterable[object] | None,
        range: str | None = DEFAULT_RANGE,
        *,
        now: datetime | None = None,
    ) -> list[Snapshot]:
        ids = parse_path_ids(path_ids)
        selected = parse_range(range)
        return await load_snapshots(self._db_path, ids, RANGE_MODIFIERS[selected], now=now)
