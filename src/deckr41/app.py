"""Application context tying settings, nodes, backend and runs together.

Everything the editor integration needs lives on one Deckr41 instance;
there is no module-level state, so several instances (or tests) can run
side by side.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from deckr41.backend import BackendClient, StreamCallbacks
from deckr41.config import Settings, load_settings
from deckr41.context import CommandRef, RunContext
from deckr41.logging import get_logger, setup_logging
from deckr41.orchestrator import Orchestrator, ParameterPrompter, RunHandle
from deckr41.prompts import BufferMetadataProvider, MetadataProvider
from deckr41.rc_nodes import RCNodes, RCWatcher

log = get_logger("app")


class Deckr41:
    """One configured deckr41 instance.

    Usage:
        app = Deckr41(cwd="/path/to/project")
        app.setup()
        handle = app.run_command(CommandRef("finish-line"), ctx, callbacks)
        ...
        app.refuse()  # user moved the cursor

    Args:
        cwd: Project directory; node discovery starts here.
        settings: Settings; loaded from disk when omitted.
        metadata: Editor metadata provider; BufferMetadataProvider by default.
        prompter: Optional interactive parameter prompter.
        backend: Optional preconfigured BackendClient.
        nodes: Optional preloaded RCNodes.
    """

    def __init__(
        self,
        cwd: str | Path,
        *,
        settings: Settings | None = None,
        metadata: MetadataProvider | None = None,
        prompter: ParameterPrompter | None = None,
        backend: BackendClient | None = None,
        nodes: RCNodes | None = None,
    ) -> None:
        self.cwd = Path(cwd)
        self.settings = settings if settings is not None else load_settings(self.cwd)
        self.nodes = nodes if nodes is not None else RCNodes(self.cwd)
        self.backend = backend if backend is not None else BackendClient()
        self.orchestrator = Orchestrator(
            self.nodes,
            self.backend,
            metadata or BufferMetadataProvider(),
            prompter=prompter,
        )
        self.watcher: RCWatcher | None = None
        self.running: RunHandle | None = None

    def setup(self, *, watch: bool | None = None) -> None:
        """Configure logging and the backend, then load all node files.

        Args:
            watch: Start the node watcher (needs a running event loop).
                Defaults to settings.watch.enabled when a loop is running.

        Raises:
            BackendConfigError: The backend settings are unusable.
        """
        setup_logging(self.settings.logging)

        self.backend.setup(
            self.settings.backends or None,
            active_backend=self.settings.active_backend,
            active_model=self.settings.active_model,
        )

        files = self.nodes.load_all()

        if watch is None:
            watch = self.settings.watch.enabled and _loop_running()
        if watch:
            self.watcher = RCWatcher(
                self.nodes,
                poll_interval=self.settings.watch.poll_interval,
                debounce=self.settings.watch.debounce,
            )
            self.watcher.watch(files)
            self.watcher.start()

    @property
    def is_running(self) -> bool:
        return self.running is not None and not self.running.state.is_terminal

    def run_command(
        self,
        ref: CommandRef | str,
        run_context: RunContext,
        callbacks: StreamCallbacks | None = None,
        *,
        extra_vars: Mapping[str, Any] | None = None,
    ) -> RunHandle | None:
        """Run a command unless another one is still streaming.

        Returns:
            The run handle, or None when a command is already running.

        Raises:
            CommandNotFound: The command does not resolve.
        """
        if self.is_running:
            log.info("A command is already running, ignoring %s", ref)
            return None

        if isinstance(ref, str):
            ref = CommandRef(ref)
        self.running = self.orchestrator.run(
            ref, run_context, callbacks, extra_vars=extra_vars
        )
        return self.running

    def refuse(self) -> None:
        """Cancel the running command, if any."""
        if self.running is not None:
            self.running.shutdown()
            self.running = None

    def shutdown(self) -> None:
        """Stop the watcher and cancel the running command."""
        self.refuse()
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
