"""deckr41: per-directory prompt commands streamed from LLM backends."""

__version__ = "0.1.0"

# Public API
from deckr41.app import Deckr41
from deckr41.backend import (
    AskOptions,
    BackendClient,
    Completed,
    Delta,
    Failed,
    FailureReason,
    Job,
    Started,
    StreamCallbacks,
)
from deckr41.config import Settings, load_settings
from deckr41.context import CommandRef, Position, Range, RunContext
from deckr41.errors import (
    BackendConfigError,
    CommandNotFound,
    ConfigLoadError,
    Deckr41Error,
)
from deckr41.orchestrator import Orchestrator, RunHandle, RunState
from deckr41.prompts import BufferMetadataProvider, PromptCompiler
from deckr41.rc_nodes import CommandDef, ConfigNode, ConfigTree, RCNodes

__all__ = [
    # Main entry points
    "Deckr41",
    "Orchestrator",
    "RunHandle",
    "RunState",
    # Inputs
    "CommandRef",
    "Position",
    "Range",
    "RunContext",
    # Nodes
    "CommandDef",
    "ConfigNode",
    "ConfigTree",
    "RCNodes",
    # Prompts
    "BufferMetadataProvider",
    "PromptCompiler",
    # Backend
    "AskOptions",
    "BackendClient",
    "Completed",
    "Delta",
    "Failed",
    "FailureReason",
    "Job",
    "Started",
    "StreamCallbacks",
    # Settings
    "Settings",
    "load_settings",
    # Errors
    "BackendConfigError",
    "CommandNotFound",
    "ConfigLoadError",
    "Deckr41Error",
]
