"""Streaming LLM backends behind one cancellable event contract."""

from deckr41.backend.client import AskOptions, BackendClient
from deckr41.backend.events import (
    Completed,
    Delta,
    Failed,
    FailureReason,
    JobEvent,
    JobState,
    Started,
    StreamCallbacks,
)
from deckr41.backend.job import Job
from deckr41.backend.profiles import BackendFamily, BackendProfile, build_profiles
from deckr41.backend.wire import build_request, extract_delta

__all__ = [
    "AskOptions",
    "BackendClient",
    "BackendFamily",
    "BackendProfile",
    "Completed",
    "Delta",
    "Failed",
    "FailureReason",
    "Job",
    "JobEvent",
    "JobState",
    "Started",
    "StreamCallbacks",
    "build_profiles",
    "build_request",
    "extract_delta",
]
