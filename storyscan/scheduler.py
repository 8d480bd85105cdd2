from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Callable

from storyscan.config import StoryScanConfig
from storyscan.history import SnapshotRecorder
from storyscan.log import get_logger
from storyscan.models import FileNode, RecordResult
from storyscan.scanner import configured_directories, scan_directory


def hours_to_interval_seconds(hours: float) -> int:
    """Round a scan interval the way a cron schedule would.

    Sub-hour intervals round to whole minutes, intervals under a day to whole
    hours and longer ones to whole days. Zero or less disables scheduling.
    """
    if hours <= 0:
        return 0
    if hours < 1:
        return max(1, round(hours * 60)) * 60
    if hours < 24:
        return max(1, round(hours)) * 3600
    return max(1, round(hours / 24)) * 86400


class ScanScheduler:
    def __init__(
        self,
        config: StoryScanConfig,
        *,
        logger: logging.Logger | None = None,
        scan: Callable[[str], FileNode] = scan_directory,
    ) -> None:
        self._config = config
        self._logger = logger or get_logger("scheduler")
        self._scan = scan
        self._recorder = SnapshotRecorder(config.db_file, logger=get_logger("history"))
        self._task: asyncio.Task[None] | None = None
        self._scanning = False

    @property
    def interval_seconds(self) -> int:
        return hours_to_interval_seconds(self._config.scan_interval_hours)

    @property
    def scanning(self) -> bool:
        return self._scanning

    def status(self) -> dict[str, bool]:
        return {"running": self._task is not None, "scanning": self._scanning}

    async def run_scheduled_scan(self) -> dict[str, RecordResult]:
        if self._scanning:
            self._logger.info("Scan already in progress, skipping")
            return {}

        self._scanning = True
        started = time.monotonic()
        results: dict[str, RecordResult] = {}
        try:
            directories = configured_directories(self._config)
            self._logger.info("Starting scheduled scan of %d directories", len(directories))
            for directory in directories:
                try:
                    self._logger.info("Scanning: %s", directory)
                    root = await asyncio.to_thread(self._scan, directory)
                    result = await self._recorder.record(root)
                except Exception:
                    self._logger.exception("Failed to scan %s", directory)
                    continue
                results[directory] = result
                self._logger.info(
                    "Scanned %s: %d bytes, recorded %d/%d snapshots",
                    directory,
                    root.size,
                    result.recorded,
                    result.total,
                )
            self._logger.info(
                "Scheduled scan completed in %.1fs", time.monotonic() - started
            )
        finally:
            self._scanning = False
        return results

    async def _loop(self, interval: int) -> None:
        if self._config.scan_on_start:
            self._logger.info("Running initial scan on startup")
            await self.run_scheduled_scan()
        while True:
            await asyncio.sleep(interval)
            await self.run_scheduled_scan()

    def start(self) -> bool:
        interval = self.interval_seconds
        if os.getenv("SCAN_CRON_EXPRESSION"):
            self._logger.warning(
                "SCAN_CRON_EXPRESSION is not supported and is ignored; set SCAN_INTERVAL_HOURS instead"
            )
        if not self._config.scheduler_enabled or interval <= 0:
            self._logger.info("Scheduler is disabled")
            return False
        if self._task is not None:
            return True

        self._task = asyncio.get_running_loop().create_task(self._loop(interval))
        self._logger.info(
            "Scheduler started: every %ds (%sh)", interval, self._config.scan_interval_hours
        )
        return True

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("Scheduler stopped")
