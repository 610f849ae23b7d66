"""Reload node files when they change on disk.

Uses polling of modification times, like the rest of the settings layer,
for cross-platform behaviour without extra dependencies. Bursts of
changes to one file are coalesced by a Debouncer so the file is parsed
once, after it has been quiet for the debounce delay.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from deckr41.logging import get_logger

if TYPE_CHECKING:
    from deckr41.rc_nodes.store import RCNodes

log = get_logger("rc_nodes.watcher")

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_DEBOUNCE = 0.1


class Debouncer:
    """Per-key delayed calls where each trigger restarts the delay.

    Must be used from a running event loop.
    """

    def __init__(self, delay: float, callback: Callable[[str], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._handles: dict[str, asyncio.TimerHandle] = {}

    @property
    def pending(self) -> set[str]:
        return set(self._handles)

    def trigger(self, key: str) -> None:
        """Schedule `callback(key)`, restarting any pending delay for key."""
        self.reset(key)
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(self._delay, self._fire, key)

    def reset(self, key: str) -> None:
        """Drop the pending call for `key`, if any."""
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def stop(self) -> None:
        """Drop every pending call."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def _fire(self, key: str) -> None:
        self._handles.pop(key, None)
        try:
            self._callback(key)
        except Exception as e:
            log.error("Debounced callback failed for %s: %s", key, e)


class RCWatcher:
    """Watches node files and reloads them through RCNodes.load_one()."""

    def __init__(
        self,
        nodes: RCNodes,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        self._nodes = nodes
        self._poll_interval = poll_interval
        self._debouncer = Debouncer(debounce, self._reload)
        self._mtimes: dict[Path, float | None] = {}
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def watched(self) -> list[Path]:
        return list(self._mtimes)

    def watch(self, paths: Iterable[str | Path]) -> None:
        """Start tracking `paths`; their current mtimes are the baseline."""
        for path in paths:
            p = Path(path)
            if p not in self._mtimes:
                self._mtimes[p] = self._mtime(p)

    @staticmethod
    def _mtime(path: Path) -> float | None:
        with contextlib.suppress(OSError):
            return path.stat().st_mtime_ns / 1e9
        return None

    def detect_changes(self) -> list[Path]:
        """Paths whose mtime changed (or that appeared/disappeared)."""
        changed: list[Path] = []
        for path, old in self._mtimes.items():
            new = self._mtime(path)
            if new != old:
                self._mtimes[path] = new
                changed.append(path)
        return changed

    def notify(self, path: str | Path) -> None:
        """Feed one change notification; reloads are debounced per file."""
        self._debouncer.trigger(str(path))

    def _reload(self, path: str) -> None:
        if not Path(path).exists():
            log.info("Node file removed, keeping last known state: %s", path)
            return
        self._nodes.load_one(path)

    async def _poll_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._poll_interval)
            if not self._running:
                break
            for path in self.detect_changes():
                log.debug("Node file changed: %s", path)
                self.notify(path)

    def start(self) -> None:
        """Start polling. Must be called from within a running event loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        log.debug(
            "Node watcher started (%d files, interval=%.2fs)",
            len(self._mtimes),
            self._poll_interval,
        )

    def stop(self) -> None:
        self._running = False
        self._debouncer.stop()
        if self._task:
            self._task.cancel()
            self._task = None
        log.debug("Node watcher stopped")

    async def __aenter__(self) -> RCWatcher:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()
