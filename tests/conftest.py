"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from tests.utils import FakeStorage

# Redundant with pyproject.toml but ensures the plugin is loaded
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def storage() -> FakeStorage:
    """In-memory storage with notifications fired by hand."""
    return FakeStorage()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep tests away from real user/system config and env overrides."""
    from treewatch.config import reset_config

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in ("TREEWATCH_LOG", "TREEWATCH_LOG_LEVEL", "TREEWATCH_THROTTLE_MS"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()
