"""Settings file loading.

Handles:
- YAML settings file parsing
- Environment variable overrides
- Conversion from merged dict to typed Settings

There is no module-level cache: callers keep the returned Settings and
pass it where it is needed.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from deckr41.config.merge import merge_configs
from deckr41.config.paths import get_config_paths
from deckr41.config.schema import LoggingConfig, Settings, WatchConfig
from deckr41.logging import get_logger

log = get_logger("config")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML settings file, returning {} if missing or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build a settings dict from D41_* environment variables.

    Credentials are NOT read here, see fetch_secret().
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("D41_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    backend = os.environ.get("D41_BACKEND")
    if backend:
        overrides["active_backend"] = backend

    model = os.environ.get("D41_MODEL")
    if model:
        overrides["active_model"] = model

    return overrides


def dict_to_settings(data: dict[str, Any]) -> Settings:
    """Convert a merged dict to typed Settings."""
    backends_data = data.get("backends", {})
    backends = {
        str(name): dict(values)
        for name, values in backends_data.items()
        if isinstance(values, dict)
    } if isinstance(backends_data, dict) else {}

    log_data = data.get("logging", {}) or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    watch_data = data.get("watch", {}) or {}
    defaults = WatchConfig()
    watch = WatchConfig(
        enabled=bool(watch_data.get("enabled", defaults.enabled)),
        poll_interval=float(watch_data.get("poll_interval", defaults.poll_interval)),
        debounce=float(watch_data.get("debounce", defaults.debounce)),
    )

    known_keys = {"backends", "active_backend", "active_model", "logging", "watch"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Settings(
        backends=backends,
        active_backend=data.get("active_backend"),
        active_model=data.get("active_model"),
        logging=logging_config,
        watch=watch,
        extra=extra,
    )


def load_settings(project_root: str | Path | None = None) -> Settings:
    """Load and merge settings from all sources.

    Priority order (highest to lowest):
    1. Environment variables (D41_LOG, D41_BACKEND, D41_MODEL)
    2. Project settings ($project_root/.d41/config.yaml)
    3. User settings (~/.config/deckr41/config.yaml or %APPDATA%)
    4. System settings (/etc/deckr41/ or %PROGRAMDATA%)

    Args:
        project_root: Project directory for project-level settings.

    Returns:
        Merged Settings object.
    """
    layers: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        data = load_yaml_file(path)
        if data:
            log.debug("Loaded settings from %s", path)
            layers.append(data)

    layers.append(env_overrides())

    return dict_to_settings(merge_configs(*layers))
