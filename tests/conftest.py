"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from deckr41.config import clear_secret_cache
from deckr41.logging import reset_logging

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)

_ENV_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "D41_LOG", "D41_BACKEND", "D41_MODEL")


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep real credentials, user settings and log handlers out of tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    xdg = tmp_path / "xdg"
    xdg.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))

    # .env.secrets is looked up in the working directory
    workdir = tmp_path / "workdir"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    clear_secret_cache()
    yield
    clear_secret_cache()
    reset_logging()


@pytest.fixture
def user_config_dir(tmp_path: Path) -> Path:
    """The user-level deckr41 directory under the isolated XDG root."""
    path = tmp_path / "xdg" / "deckr41"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path
