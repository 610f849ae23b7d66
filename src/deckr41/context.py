"""Read-only inputs handed to the core by the editor."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class Position:
    """Cursor position: 1-based row, 0-based column."""

    row: int
    col: int


@dataclass(frozen=True, slots=True)
class Range:
    """Selection with an inclusive end column."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class RunContext:
    """Snapshot of editor state at the moment a command is run.

    The core never mutates it; it only reads it to resolve variables.

    Attributes:
        buffer_id: Editor buffer handle (opaque).
        window_id: Editor window handle (opaque).
        file_path: Path of the buffer's file, used to pick nodes.
        cursor: Cursor position.
        selection: Optional visual selection.
        syntax: Language/filetype tag.
        lines: Buffer contents, one entry per line, when the editor
            provides them up front.
    """

    cursor: Position = Position(1, 0)
    file_path: str | None = None
    buffer_id: int | str | None = None
    window_id: int | str | None = None
    selection: Range | None = None
    syntax: str | None = None
    lines: tuple[str, ...] | None = None

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        row: int = 1,
        col: int = 0,
        syntax: str | None = None,
        selection: Range | None = None,
    ) -> RunContext:
        """Build a context by reading a file from disk."""
        file_path = Path(path)
        text = file_path.read_text(encoding="utf-8")
        return cls(
            cursor=Position(row, col),
            file_path=str(file_path.absolute()),
            buffer_id=str(file_path),
            syntax=syntax or file_path.suffix.lstrip(".") or None,
            selection=selection,
            lines=tuple(text.split("\n")),
        )


@dataclass(frozen=True, slots=True)
class CommandRef:
    """Reference to a command: its id plus, optionally, the owning node."""

    name: str
    node_id: str | None = None
