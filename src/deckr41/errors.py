"""Exception types raised by deckr41."""

from __future__ import annotations

from pathlib import Path


class Deckr41Error(Exception):
    """Base class for all deckr41 errors."""


class ConfigLoadError(Deckr41Error):
    """A node file could not be read or is malformed.

    Non-fatal: the loader logs it and keeps the tree's previous state.
    """

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class CommandNotFound(Deckr41Error):
    """No node defines the requested command."""

    def __init__(self, name: str, node_id: str | None = None) -> None:
        self.name = name
        self.node_id = node_id
        where = f" in {node_id}" if node_id else ""
        super().__init__(f"Command not found: {name!r}{where}")


class BackendConfigError(Deckr41Error):
    """Backend settings are unusable (unknown backend/model, no credential)."""


class StreamDecodeError(Deckr41Error):
    """A streamed frame could not be decoded.

    Recovered locally as an empty delta.
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Cannot decode frame ({reason}): {line[:80]!r}")
