"""Error types shared by the store, the services and the request surface."""

from __future__ import annotations


class StoryScanError(Exception):
    """Base exception for all StoryScan errors."""

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ValidationError(StoryScanError):
    """Missing or malformed input."""


class ConflictError(StoryScanError):
    """The tracked path already exists."""


class NotFoundError(StoryScanError):
    """No tracked path with the requested id."""

    def __init__(self, tracked_path_id: int) -> None:
        self.tracked_path_id = tracked_path_id
        super().__init__(f"Tracked path {tracked_path_id} not found")


class StorageError(StoryScanError):
    """The underlying SQLite store failed."""


class ScanError(StoryScanError):
    """A configured directory could not be scanned."""
