from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from storyscan.errors import ValidationError


NodeType = Literal["file", "directory"]
NODE_TYPES = ("file", "directory")


@dataclass(slots=True)
class FileNode:
    type: NodeType
    name: str
    path: str
    size: int
    children: list[FileNode] = field(default_factory=list)
    extension: str | None = None
    modified_time: float | None = None

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileNode:
        if not isinstance(data, dict):
            raise ValidationError("File node must be an object")

        node_type = data.get("type")
        if node_type not in NODE_TYPES:
            raise ValidationError(f"Invalid node type: {node_type!r}")

        path = data.get("path")
        if not isinstance(path, str) or not path:
            raise ValidationError("File node path is required")

        size = data.get("size", 0)
        if isinstance(size, bool) or not isinstance(size, (int, float)) or size < 0:
            raise ValidationError(f"Invalid size for {path}: {size!r}")

        children: list[FileNode] = []
        if node_type == "directory":
            children = [cls.from_dict(child) for child in data.get("children") or []]

        return cls(
            type=node_type,
            name=str(data.get("name") or path.rstrip("/").rsplit("/", 1)[-1] or path),
            path=path,
            size=int(size),
            children=children,
            extension=data.get("extension"),
            modified_time=data.get("modifiedTime"),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "path": self.path,
            "size": self.size,
        }
        if self.is_directory:
            payload["children"] = [child.to_dict() for child in self.children]
        if self.extension is not None:
            payload["extension"] = self.extension
        if self.modified_time is not None:
            payload["modifiedTime"] = self.modified_time
        return payload


@dataclass(slots=True, frozen=True)
class NodeStats:
    size_bytes: int
    file_count: int
    folder_count: int


@dataclass(slots=True)
class TrackedPath:
    id: int
    path: str
    label: str
    directory_config_id: str | None
    is_active: bool
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "label": self.label,
            "directoryConfigId": self.directory_config_id,
            "isActive": self.is_active,
            "createdAt": self.created_at,
        }


@dataclass(slots=True, frozen=True)
class Snapshot:
    id: int
    tracked_path_id: int
    timestamp: str
    size_bytes: int
    file_count: int
    folder_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "trackedPathId": self.tracked_path_id,
            "timestamp": self.timestamp,
            "sizeBytes": self.size_bytes,
            "fileCount": self.file_count,
            "folderCount": self.folder_count,
        }


@dataclass(slots=True, frozen=True)
class RecordResult:
    recorded: int
    total: int

    @property
    def skipped(self) -> int:
        return self.total - self.recorded
