from __future__ import annotations

from pathlib import Path

from storyscan.errors import NotFoundError, ValidationError
from storyscan.models import TrackedPath
from storyscan.state_db import (
    delete_tracked_path,
    insert_tracked_path,
    is_storable_integer,
    load_active_tracked_paths,
    load_tracked_path,
    load_tracked_paths,
    update_tracked_path,
)


def _require_text(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value


def _optional_text(value: object, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return value or None


def _require_known_id(tracked_path_id: int) -> int:
    # Ids outside SQLite's integer range can never have been assigned.
    if not is_storable_integer(tracked_path_id):
        raise NotFoundError(tracked_path_id)
    return tracked_path_id


class TrackedPathRegistry:
    """CRUD over the set of monitored paths."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    async def list(self) -> list[TrackedPath]:
        return await load_tracked_paths(self._db_path)

    async def active_paths(self) -> list[TrackedPath]:
        return await load_active_tracked_paths(self._db_path)

    async def get(self, tracked_path_id: int) -> TrackedPath:
        tracked = await load_tracked_path(self._db_path, _require_known_id(tracked_path_id))
        if tracked is None:
            raise NotFoundError(tracked_path_id)
        return tracked

    async def add(
        self,
        path: str | None,
        label: str | None,
        directory_config_id: str | None = None,
    ) -> TrackedPath:
        path = _require_text(path, "path")
        label = _require_text(label, "label")
        directory_config_id = _optional_text(directory_config_id, "directoryConfigId")
        return await insert_tracked_path(self._db_path, path, label, directory_config_id)

    async def update(
        self,
        tracked_path_id: int,
        *,
        label: str | None = None,
        is_active: bool | None = None,
    ) -> None:
        if label is not None:
            _require_text(label, "label")
        found = await update_tracked_path(
            self._db_path, _require_known_id(tracked_path_id), label=label, is_active=is_active
        )
        if not found:
            raise NotFoundError(tracked_path_id)

    async def remove(self, tracked_path_id: int) -> None:
        if not await delete_tracked_path(self._db_path, _require_known_id(tracked_path_id)):
            raise NotFoundError(tracked_path_id)
