"""Settings schema dataclasses for deckr41.

Settings describe how the plugin runs (backends, logging, file watching).
Commands themselves live in `.d41rc` node files, see deckr41.rc_nodes.
All fields are optional so partial files merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class WatchConfig:
    """Node file watching.

    Example config.yaml:
        watch:
          enabled: true
          poll_interval: 0.5
          debounce: 0.1
    """

    enabled: bool = True
    poll_interval: float = 0.5  # Seconds between mtime checks
    debounce: float = 0.1  # Quiet period before a changed file is reloaded


@dataclass
class Settings:
    """Top-level settings.

    Example config.yaml:
        active_backend: anthropic
        active_model: claude-3-5-sonnet-latest
        backends:
          openai:
            url: http://localhost:8080/v1/chat/completions
            temperature: 0.1
    """

    # Raw per-backend overrides, deep-merged onto the built-in profiles
    backends: dict[str, dict[str, Any]] = field(default_factory=dict)
    active_backend: str | None = None
    active_model: str | None = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    extra: dict[str, Any] = field(default_factory=dict)
