"""Shared test fixtures for jestwatch tests."""

import io
from pathlib import Path

import pytest
from fakes import FakeLauncher, RecordingSink
from rich.console import Console

from jestwatch.process import ProjectWorkspace


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def workspace(tmp_path: Path) -> ProjectWorkspace:
    """Workspace rooted in a temporary directory."""
    return ProjectWorkspace(root_path=tmp_path, path_to_jest="jest")


@pytest.fixture
def launcher() -> FakeLauncher:
    """Launcher whose processes run until a test finishes them."""
    return FakeLauncher()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def console() -> Console:
    """Console writing plain text to an in-memory buffer."""
    return Console(file=io.StringIO(), width=200, color_system=None)
