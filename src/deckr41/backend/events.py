"""Events emitted by a streaming Job.

A Job emits `Started` once, then zero or more `Delta`, then exactly one
terminal event: `Completed` or `Failed`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class FailureReason(Enum):
    """Why a job ended without completing."""

    CANCELLED = "cancelled"  # user moved on; callers usually ignore it
    TRANSPORT = "transport"  # network or protocol failure


class JobState(Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    DONE = "done"
    CANCELLED = "cancelled"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.CANCELLED, JobState.ERRORED)


@dataclass(frozen=True, slots=True)
class Started:
    backend: str
    model: str
    temperature: float


@dataclass(frozen=True, slots=True)
class Delta:
    text: str


@dataclass(frozen=True, slots=True)
class Completed:
    """The response ended. `status` >= 400 means `body` holds the error."""

    status: int
    body: str

    @property
    def ok(self) -> bool:
        return self.status < 400


@dataclass(frozen=True, slots=True)
class Failed:
    reason: FailureReason
    message: str = ""

    @property
    def cancelled(self) -> bool:
        return self.reason is FailureReason.CANCELLED


JobEvent = Started | Delta | Completed | Failed
TerminalEvent = Completed | Failed


@dataclass(slots=True)
class StreamCallbacks:
    """Optional callback form of the event stream.

    on_start(Started), on_data(text), on_done(body, status), on_error(Failed)
    """

    on_start: Callable[[Started], None] | None = None
    on_data: Callable[[str], None] | None = None
    on_done: Callable[[str, int], None] | None = None
    on_error: Callable[[Failed], None] | None = None

    def dispatch(self, event: JobEvent) -> None:
        if isinstance(event, Started):
            if self.on_start:
                self.on_start(event)
        elif isinstance(event, Delta):
            if self.on_data:
                self.on_data(event.text)
        elif isinstance(event, Completed):
            if self.on_done:
                self.on_done(event.body, event.status)
        elif self.on_error:
            self.on_error(event)
