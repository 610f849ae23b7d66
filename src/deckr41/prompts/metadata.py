"""Buffer-derived template variables.

BufferMetadataProvider answers `get_metadata` from the lines carried by a
RunContext. Editors that keep buffers elsewhere implement the same
MetadataProvider protocol themselves.

Known names:
    FILE_PATH             path of the buffer's file
    FILE_CONTENT          whole buffer
    FILE_SYNTAX           language/filetype tag
    TEXT                  selection if any, else the whole buffer
    TEXT_BEFORE_CURSOR    current line up to the cursor
    TEXT_AFTER_CURSOR     current line from the cursor on
    LINES_BEFORE_CURRENT  lines above the cursor line
    LINES_AFTER_CURRENT   lines below the cursor line
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from deckr41.context import Range, RunContext
from deckr41.logging import get_logger

log = get_logger("prompts.metadata")


def _lines(ctx: RunContext) -> tuple[str, ...]:
    return ctx.lines or ()


def _row_index(ctx: RunContext) -> int:
    """0-based index of the cursor line, clamped to the buffer."""
    lines = _lines(ctx)
    return max(0, min(ctx.cursor.row - 1, len(lines) - 1)) if lines else 0


def _current_line(ctx: RunContext) -> str:
    lines = _lines(ctx)
    return lines[_row_index(ctx)] if lines else ""


def text_in_range(lines: tuple[str, ...], selection: Range) -> str:
    """Text covered by `selection`, end column inclusive."""
    start_row = max(selection.start.row - 1, 0)
    end_row = min(selection.end.row - 1, len(lines) - 1)
    if end_row < start_row:
        return ""

    if start_row == end_row:
        return lines[start_row][selection.start.col : selection.end.col + 1]

    first = lines[start_row][selection.start.col :]
    last = lines[end_row][: selection.end.col + 1]
    return "\n".join([first, *lines[start_row + 1 : end_row], last])


def _text(ctx: RunContext) -> str:
    if ctx.selection is not None:
        return text_in_range(_lines(ctx), ctx.selection)
    return "\n".join(_lines(ctx))


GETTERS: dict[str, Callable[[RunContext], str]] = {
    "FILE_PATH": lambda ctx: ctx.file_path or "",
    "FILE_CONTENT": lambda ctx: "\n".join(_lines(ctx)),
    "FILE_SYNTAX": lambda ctx: ctx.syntax or "",
    "TEXT": _text,
    "TEXT_BEFORE_CURSOR": lambda ctx: _current_line(ctx)[: ctx.cursor.col],
    "TEXT_AFTER_CURSOR": lambda ctx: _current_line(ctx)[ctx.cursor.col :],
    "LINES_BEFORE_CURRENT": lambda ctx: "\n".join(_lines(ctx)[: _row_index(ctx)]),
    "LINES_AFTER_CURRENT": lambda ctx: "\n".join(_lines(ctx)[_row_index(ctx) + 1 :]),
}


class BufferMetadataProvider:
    """MetadataProvider over RunContext.lines.

    Args:
        extra_getters: Additional or overriding getters by name.
    """

    def __init__(
        self, extra_getters: Mapping[str, Callable[[RunContext], str]] | None = None
    ) -> None:
        self._getters = {**GETTERS, **(extra_getters or {})}

    @property
    def known_names(self) -> set[str]:
        return set(self._getters)

    def get_metadata(self, names: set[str], run_context: RunContext) -> dict[str, str]:
        values: dict[str, str] = {}
        for name in names:
            getter = self._getters.get(name)
            if getter is not None:
                values[name] = getter(run_context)
        unknown = names - values.keys()
        if unknown:
            log.debug("No metadata for %s", sorted(unknown))
        return values
