"""Run a command end to end: resolve, compile, dispatch.

    RESOLVING -> COMPILING -> STREAMING -> DONE | CANCELLED | ERRORED
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol

from deckr41.backend import (
    AskOptions,
    BackendClient,
    Completed,
    Failed,
    Job,
    JobEvent,
    StreamCallbacks,
)
from deckr41.backend.events import TerminalEvent
from deckr41.context import CommandRef, RunContext
from deckr41.logging import get_logger
from deckr41.prompts import MetadataProvider, PromptCompiler, find_variable_names
from deckr41.prompts.compiler import CompiledPrompt
from deckr41.rc_nodes import (
    CommandDef,
    CommandParameter,
    ConfigNode,
    RCNodes,
    ResolvedCommand,
)

log = get_logger("orchestrator")

PARAMETERS_PREFIX = "PARAMETERS."


class RunState(Enum):
    RESOLVING = "resolving"
    COMPILING = "compiling"
    STREAMING = "streaming"
    DONE = "done"
    CANCELLED = "cancelled"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.CANCELLED, RunState.ERRORED)


class ParameterPrompter(Protocol):
    """Editor-side capability asking the user for an interactive parameter."""

    def request(
        self, name: str, parameter: CommandParameter, run_context: RunContext
    ) -> str: ...


def node_variables(node: ConfigNode) -> dict[str, str]:
    """PROJECT.* and AGENT.* values taken from the command's node."""
    data = node.data
    values = {"PROJECT.NAME": data.project.name}
    if data.project.icon:
        values["PROJECT.ICON"] = data.project.icon
    if data.agent is not None:
        for key in ("id", "identity", "domain", "mission"):
            value = getattr(data.agent, key)
            if value:
                values[f"AGENT.{key.upper()}"] = value
    return values


class RunHandle:
    """Caller's handle to one command run."""

    def __init__(self, resolved: ResolvedCommand, compiled: CompiledPrompt) -> None:
        self.resolved = resolved
        self.compiled = compiled
        self.job: Job | None = None
        self._state = RunState.COMPILING

    @property
    def command(self) -> CommandDef:
        return self.resolved.command

    @property
    def state(self) -> RunState:
        return self._state

    def _attach(self, job: Job) -> None:
        self.job = job
        self._state = RunState.STREAMING

    def _track(self, event: JobEvent) -> None:
        if isinstance(event, Completed):
            self._state = RunState.DONE
        elif isinstance(event, Failed):
            self._state = RunState.CANCELLED if event.cancelled else RunState.ERRORED

    def shutdown(self) -> None:
        """Cancel the underlying backend job."""
        if self.job is not None:
            self.job.shutdown()

    async def wait(self) -> TerminalEvent:
        if self.job is None:
            raise RuntimeError(f"Command {self.command.id!r} has no backend job yet")
        return await self.job.wait()

    @property
    def text(self) -> str:
        return self.job.text if self.job is not None else ""


class Orchestrator:
    """Composes node resolution, prompt compilation and the backend."""

    def __init__(
        self,
        nodes: RCNodes,
        backend: BackendClient,
        metadata: MetadataProvider,
        *,
        prompter: ParameterPrompter | None = None,
    ) -> None:
        self._nodes = nodes
        self._backend = backend
        self._compiler = PromptCompiler(metadata)
        self._prompter = prompter

    def resolve(self, ref: CommandRef, run_context: RunContext) -> ResolvedCommand:
        """Find the command for `ref` as seen from the context's file.

        Raises:
            CommandNotFound: No node defines it.
        """
        return self._nodes.get_command(ref, run_context.file_path)

    def _parameter_values(
        self, resolved: ResolvedCommand, names: list[str], run_context: RunContext
    ) -> dict[str, Any]:
        values: dict[str, Any] = {}
        parameters = resolved.command.parameters
        for name in names:
            if not name.startswith(PARAMETERS_PREFIX):
                continue
            param = parameters.get(name[len(PARAMETERS_PREFIX) :])
            if param is None:
                continue
            value = param.default
            if param.is_interactive and self._prompter is not None:
                value = self._prompter.request(param.name, param, run_context)
            if value is not None:
                values[name] = value
        return values

    def compile(
        self,
        resolved: ResolvedCommand,
        run_context: RunContext,
        extra_vars: Mapping[str, Any] | None = None,
    ) -> CompiledPrompt:
        """Compile a command's templates, computing only referenced values."""
        command = resolved.command
        names = find_variable_names((command.system_prompt or "") + "\n" + command.prompt)

        extra: dict[str, Any] = {
            k: v for k, v in node_variables(resolved.node).items() if k in names
        }
        extra.update(self._parameter_values(resolved, names, run_context))
        extra.update(extra_vars or {})

        return self._compiler.compile(
            command.prompt,
            run_context,
            system_prompt=command.system_prompt,
            extra=extra,
        )

    def run(
        self,
        ref: CommandRef,
        run_context: RunContext,
        callbacks: StreamCallbacks | None = None,
        *,
        extra_vars: Mapping[str, Any] | None = None,
    ) -> RunHandle:
        """Resolve, compile and dispatch a command.

        Must be called from inside a running event loop. Backend events
        are forwarded to `callbacks` unchanged.

        Raises:
            CommandNotFound: Raised before anything is dispatched.
            BackendConfigError: No usable backend.
        """
        resolved = self.resolve(ref, run_context)
        log.debug("Resolved %s in %s", ref.name, resolved.node.path)

        compiled = self.compile(resolved, run_context, extra_vars)
        handle = RunHandle(resolved, compiled)

        user = callbacks or StreamCallbacks()

        def on_done(body: str, status: int) -> None:
            handle._track(Completed(status, body))
            if user.on_done:
                user.on_done(body, status)

        def on_error(event: Failed) -> None:
            handle._track(event)
            if user.on_error:
                user.on_error(event)

        command = resolved.command
        job = self._backend.ask(
            AskOptions.for_prompt(
                compiled.prompt,
                system_prompt=compiled.system_prompt,
                temperature=command.temperature,
                max_tokens=command.max_tokens,
                callbacks=StreamCallbacks(
                    on_start=user.on_start,
                    on_data=user.on_data,
                    on_done=on_done,
                    on_error=on_error,
                ),
            )
        )
        handle._attach(job)
        return handle
