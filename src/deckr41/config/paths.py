"""Platform-aware configuration path resolution.

Handles file locations for:
- Settings: /etc/deckr41/ (system), ~/.config/deckr41/ or ~/.d41/ (user),
  $project/.d41/ (project). Windows uses %PROGRAMDATA% and %APPDATA%.
- Node files: the built-in defaults shipped in the package and the
  optional user-level override next to the user settings.
"""

from __future__ import annotations

import os
import sys
from importlib.resources import as_file, files
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "deckr41"
SHORT_NAME = ".d41"

# Node file names, checked in this order at every directory level
RC_FILENAMES = (".d41rc", ".d41rc.json", ".d41rc.yaml", ".d41rc.yml")

DEFAULT_RC_RESOURCE = "default.d41rc.yaml"


def get_system_config_path() -> Path | None:
    """Get system-level settings path. The file may not exist."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
    else:
        return Path("/etc") / APP_NAME / CONFIG_FILENAME
    return None


def get_user_config_dir() -> Path | None:
    """Get the user-level config directory. It may not exist."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME

    home = Path.home()
    xdg_default = home / ".config"
    if xdg_default.exists():
        return xdg_default / APP_NAME

    return home / SHORT_NAME


def get_user_config_path() -> Path | None:
    """Get user-level settings path. The file may not exist."""
    user_dir = get_user_config_dir()
    return user_dir / CONFIG_FILENAME if user_dir else None


def get_project_config_path(project_root: str | Path) -> Path:
    """Get project-level settings path (may not exist)."""
    return Path(project_root) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(project_root: str | Path | None = None) -> list[Path]:
    """Get all settings paths in priority order (lowest to highest).

    Args:
        project_root: Optional project directory for project-level settings.

    Returns:
        List of paths in order: system, user, project.
    """
    paths: list[Path] = []

    system_path = get_system_config_path()
    if system_path:
        paths.append(system_path)

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if project_root:
        paths.append(get_project_config_path(project_root))

    return paths


def get_user_rc_path() -> Path | None:
    """User-level node file, consulted before the built-in defaults."""
    user_dir = get_user_config_dir()
    return user_dir / RC_FILENAMES[0] if user_dir else None


def get_default_rc_path() -> Path:
    """Absolute path of the node file shipped with the package."""
    resource = files("deckr41.config").joinpath(DEFAULT_RC_RESOURCE)
    with as_file(resource) as path:
        return Path(path).resolve()


def rc_candidates(directory: Path) -> list[Path]:
    """All node file names that could live in `directory`."""
    return [directory / name for name in RC_FILENAMES]
