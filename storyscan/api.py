"""HTTP surface for tracked paths and snapshot history."""

from __future__ import annotations

import asyncio
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storyscan.config import StoryScanConfig, load_config
from storyscan.errors import (
    ConflictError,
    NotFoundError,
    ScanError,
    StorageError,
    StoryScanError,
    ValidationError,
)
from storyscan.history import SnapshotRecorder
from storyscan.log import get_logger
from storyscan.models import FileNode
from storyscan.query import HistoryQueryService, parse_id
from storyscan.registry import TrackedPathRegistry
from storyscan.scanner import configured_directories, scan_directory
from storyscan.scheduler import ScanScheduler


logger = get_logger("api")

STATUS_BY_ERROR: dict[type[StoryScanError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StorageError: 500,
    ScanError: 500,
}


def _status_code_for(exc: StoryScanError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def _error_body(exc: StoryScanError) -> dict[str, Any]:
    body: dict[str, Any] = {"error": exc.message}
    if exc.details:
        body["details"] = exc.details
    return body


def _parse_id(raw: str) -> int:
    numeric_id = parse_id(raw)
    if numeric_id is None:
        raise ValidationError("Invalid ID")
    return numeric_id


def _directory_entry(index: int, directory: str) -> dict[str, str]:
    return {"id": str(index), "name": PurePath(directory).name or directory, "path": directory}


def build_router(
    *,
    config: StoryScanConfig,
    registry: TrackedPathRegistry,
    query: HistoryQueryService,
    recorder: SnapshotRecorder,
    scheduler: ScanScheduler,
) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.get("/history/snapshots")
    async def get_snapshots(
        path_ids: str | None = Query(None, alias="pathIds"),
        range_: str | None = Query(None, alias="range"),
    ):
        snapshots = await query.get_snapshots(path_ids, range_)
        return {"snapshots": [snapshot.to_dict() for snapshot in snapshots]}

    @router.get("/history/tracked-paths")
    async def list_tracked_paths():
        tracked_paths = await registry.list()
        return {"trackedPaths": [tracked.to_dict() for tracked in tracked_paths]}

    @router.post("/history/tracked-paths")
    async def add_tracked_path(body: dict[str, Any]):
        tracked = await registry.add(
            body.get("path"),
            body.get("label"),
            body.get("directoryConfigId"),
        )
        return JSONResponse(status_code=201, content={"trackedPath": tracked.to_dict()})

    @router.patch("/history/tracked-paths/{tracked_path_id}")
    async def update_tracked_path(tracked_path_id: str, body: dict[str, Any]):
        numeric_id = _parse_id(tracked_path_id)
        label = body.get("label")
        is_active = body.get("isActive")
        if label is not None and not isinstance(label, str):
            raise ValidationError("label must be a string")
        if is_active is not None and not isinstance(is_active, bool):
            raise ValidationError("isActive must be a boolean")
        await registry.update(numeric_id, label=label, is_active=is_active)
        return {"success": True}

    @router.delete("/history/tracked-paths/{tracked_path_id}")
    async def delete_tracked_path(tracked_path_id: str):
        await registry.remove(_parse_id(tracked_path_id))
        return {"success": True}

    @router.post("/history/record")
    async def record_snapshots(body: dict[str, Any]):
        scan_result = body.get("scanResult")
        if not isinstance(scan_result, dict) or not scan_result.get("root"):
            raise ValidationError("scanResult with root is required")
        root = FileNode.from_dict(scan_result["root"])
        result = await recorder.record(root)
        return {"recorded": result.recorded, "total": result.total}

    @router.get("/scan")
    async def scan(dir_: str | None = Query(None, alias="dir")):
        directories = configured_directories(config)
        if dir_ is None:
            return {
                "directories": [
                    _directory_entry(index, directory)
                    for index, directory in enumerate(directories)
                ]
            }

        if not re.fullmatch(r"[0-9]+", dir_):
            raise ValidationError(
                "Invalid query parameters", "Directory index must be a number"
            )
        index = int(dir_)
        if index >= len(directories):
            raise ValidationError("Directory index out of range")

        target = directories[index]
        try:
            root = await asyncio.to_thread(scan_directory, target)
        except OSError as exc:
            raise ScanError("Failed to scan directory", str(exc)) from exc
        return {
            "directory": _directory_entry(index, target),
            "root": root.to_dict(),
            "totalSize": root.size,
            "scannedAt": datetime.now(timezone.utc).isoformat(),
        }

    @router.get("/scheduler")
    async def scheduler_status():
        return scheduler.status()

    return router


def create_app(config: StoryScanConfig | None = None) -> FastAPI:
    config = config or load_config()
    db_path = config.db_file
    scheduler = ScanScheduler(config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()

    app = FastAPI(title="StoryScan", lifespan=lifespan)
    app.state.config = config
    app.state.scheduler = scheduler

    @app.exception_handler(StoryScanError)
    async def _handle_storyscan_error(_request: Request, exc: StoryScanError):
        status_code = _status_code_for(exc)
        if status_code >= 500:
            logger.error("Request failed: %s", exc)
        return JSONResponse(status_code=status_code, content=_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": str(exc.errors())},
        )

    app.include_router(
        build_router(
            config=config,
            registry=TrackedPathRegistry(db_path),
            query=HistoryQueryService(db_path),
            recorder=SnapshotRecorder(db_path, logger=get_logger("history")),
            scheduler=scheduler,
        )
    )
    return app
