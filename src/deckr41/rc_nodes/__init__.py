"""Per-directory `.d41rc` node files and the tree built from them."""

from deckr41.rc_nodes.reader import read_rc_file
from deckr41.rc_nodes.schema import (
    AgentInfo,
    CommandDef,
    CommandParameter,
    ConfigNode,
    NodeData,
    OnAccept,
    ParameterType,
    ProjectInfo,
)
from deckr41.rc_nodes.store import RCNodes, ResolvedCommand
from deckr41.rc_nodes.tree import ConfigTree
from deckr41.rc_nodes.watcher import Debouncer, RCWatcher

__all__ = [
    "AgentInfo",
    "CommandDef",
    "CommandParameter",
    "ConfigNode",
    "ConfigTree",
    "Debouncer",
    "NodeData",
    "OnAccept",
    "ParameterType",
    "ProjectInfo",
    "RCNodes",
    "RCWatcher",
    "ResolvedCommand",
    "read_rc_file",
]
