"""One in-flight streaming request.

A Job runs as an asyncio task on the caller's event loop. Its events
can be consumed through StreamCallbacks, `async for event in job`, or
`await job.wait()` for the terminal event only.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import httpx

from deckr41.backend.events import (
    Completed,
    Delta,
    Failed,
    FailureReason,
    JobEvent,
    JobState,
    Started,
    StreamCallbacks,
    TerminalEvent,
)
from deckr41.backend.profiles import BackendFamily
from deckr41.backend.wire import PreparedRequest, extract_delta
from deckr41.logging import get_logger

log = get_logger("backend.job")

DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


class Job:
    """Handle to one streaming backend request.

    Must be created from inside a running event loop. Callbacks for one
    job run one at a time on that loop, in event order.
    """

    def __init__(
        self,
        request: PreparedRequest,
        *,
        family: BackendFamily,
        started: Started,
        callbacks: StreamCallbacks | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._request = request
        self._family = family
        self._started = started
        self._callbacks = callbacks or StreamCallbacks()
        self._transport = transport
        self._timeout = timeout

        self._state = JobState.PENDING
        self._cancel_requested = False
        self._chunks: list[str] = []
        self._terminal: TerminalEvent | None = None
        self._queue: asyncio.Queue[JobEvent] = asyncio.Queue()
        self._finished = asyncio.Event()

        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_task_done)

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def started(self) -> Started:
        return self._started

    @property
    def text(self) -> str:
        """All deltas received so far, concatenated."""
        return "".join(self._chunks)

    @property
    def result(self) -> TerminalEvent | None:
        return self._terminal

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def shutdown(self) -> None:
        """Cancel the request.

        The flag is set immediately; from now on deltas and completion
        are dropped and the job ends with Failed(CANCELLED). No-op once
        the job has finished.
        """
        if self._terminal is not None or self._cancel_requested:
            return
        self._cancel_requested = True
        log.debug("Cancelling job (%s/%s)", self._started.backend, self._started.model)
        self._task.cancel()

    cancel = shutdown

    async def wait(self) -> TerminalEvent:
        """Wait for and return the terminal event."""
        await self._finished.wait()
        if self._terminal is None:
            raise RuntimeError("Job finished without a terminal event")
        return self._terminal

    def __aiter__(self) -> AsyncIterator[JobEvent]:
        return self._iter_events()

    async def _iter_events(self) -> AsyncIterator[JobEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if isinstance(event, (Completed, Failed)):
                return

    def _emit(self, event: JobEvent) -> None:
        if self._terminal is not None:
            return

        if isinstance(event, Started) and self._state is not JobState.PENDING:
            return

        if self._cancel_requested and not isinstance(event, (Started, Failed)):
            if not isinstance(event, Completed):
                log.debug("Dropping %s after cancellation", type(event).__name__)
                return
            event = Failed(FailureReason.CANCELLED)

        if isinstance(event, Started):
            self._state = JobState.STREAMING
        elif isinstance(event, Delta):
            self._chunks.append(event.text)
        elif isinstance(event, Completed):
            self._state = JobState.DONE
            self._terminal = event
        else:
            self._state = JobState.CANCELLED if event.cancelled else JobState.ERRORED
            self._terminal = event

        self._queue.put_nowait(event)
        if self._terminal is not None:
            self._finished.set()

        try:
            self._callbacks.dispatch(event)
        except Exception:
            log.exception("Error in %s callback", type(event).__name__)

    async def _run(self) -> None:
        self._emit(self._started)
        request = self._request
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                async with client.stream(
                    "POST", request.url, headers=request.headers, json=request.body
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        log.warning("Backend returned HTTP %d", response.status_code)
                        self._emit(Completed(response.status_code, response.text))
                        return

                    lines: list[str] = []
                    async for line in response.aiter_lines():
                        lines.append(line)
                        text = extract_delta(line, self._family)
                        if text:
                            self._emit(Delta(text))
                    self._emit(Completed(response.status_code, "\n".join(lines)))
        except asyncio.CancelledError:
            self._emit(Failed(FailureReason.CANCELLED))
            raise
        except httpx.HTTPError as e:
            log.warning("Request to %s failed: %s", request.url, e)
            self._emit(Failed(FailureReason.TRANSPORT, str(e) or type(e).__name__))

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        # Covers cancellation before the task ever ran, and unexpected errors
        if self._terminal is not None:
            return
        if task.cancelled():
            # Started is owed even when _run never got its first step
            self._emit(self._started)
            self._emit(Failed(FailureReason.CANCELLED))
            return
        exc = task.exception()
        log.error("Job crashed: %r", exc)
        self._emit(Failed(FailureReason.TRANSPORT, repr(exc)))
