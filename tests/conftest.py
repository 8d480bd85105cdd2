"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from storyscan.models import FileNode


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "storyscan.db"


@pytest.fixture
def sample_tree() -> FileNode:
    """/ (300) -> [/a.txt (100), /b (200) -> [/b/c.txt (200)]]"""
    return FileNode(
        type="directory",
        name="/",
        path="/",
        size=300,
        children=[
            FileNode(type="file", name="a.txt", path="/a.txt", size=100),
            FileNode(
                type="directory",
                name="b",
                path="/b",
                size=200,
                children=[FileNode(type="file", name="c.txt", path="/b/c.txt", size=200)],
            ),
        ],
    )
