"""Data model for `.d41rc` node files.

A node file looks like this (JSON or YAML):

    root: false
    project:
      name: backend
      icon: "B"
    agent:
      id: reviewer
      identity: You are a strict code reviewer.
      domain: Python services
      mission: Catch bugs before they ship.
    commands:
      - id: review
        name: Review selection
        system_prompt: ["{{AGENT.IDENTITY}}", "{{AGENT.MISSION}}"]
        prompt: "Review this code: {{TEXT}}"
        parameters:
          focus:
            type: select
            label: Focus on
            options: [{label: Bugs, value: bugs}, {label: Style, value: style}]
            default: [bugs]
        temperature: 0.2
        max_tokens: 1024
        on_accept: insert
"""

from __future__ import annotations

import weakref
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_TEMPERATURE = 0.7


class OnAccept(Enum):
    """What the editor does with an accepted suggestion."""

    INSERT = "insert"
    REPLACE = "replace"


class ParameterType(Enum):
    """How a command parameter gets its value."""

    TEXTAREA = "textarea"  # asked interactively
    SELECT = "select"
    FILE_PICKER = "file-picker"


@dataclass(frozen=True, slots=True)
class CommandParameter:
    """A named command input, referenced as {{PARAMETERS.<name>}}."""

    name: str
    type: ParameterType
    label: str
    default: Any = None
    options: tuple[dict[str, Any], ...] = ()

    @property
    def is_interactive(self) -> bool:
        return self.type is ParameterType.TEXTAREA


@dataclass(frozen=True, slots=True)
class CommandDef:
    """A prompt template bound to LLM parameters.

    Attributes:
        id: Unique within the owning node.
        name: Display name, defaults to the id.
        prompt: User prompt template, lines joined with newlines.
        system_prompt: Optional system prompt template.
        parameters: Named inputs by name.
        temperature: Sampling temperature in [0, 1].
        max_tokens: Requested output cap; clamped by the model's maximum.
        response_syntax: Syntax hint for rendering the reply.
        on_accept: Insert at cursor or replace the selection.
        source: Raw source text of this command, for preview/debugging.
    """

    id: str
    prompt: str
    name: str = ""
    system_prompt: str | None = None
    parameters: dict[str, CommandParameter] = field(default_factory=dict)
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int | None = None
    response_syntax: str | None = None
    on_accept: OnAccept = OnAccept.INSERT
    source: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True, slots=True)
class ProjectInfo:
    name: str
    icon: str | None = None


@dataclass(frozen=True, slots=True)
class AgentInfo:
    id: str | None = None
    identity: str | None = None
    domain: str | None = None
    mission: str | None = None


@dataclass(frozen=True, slots=True)
class NodeData:
    """Parsed contents of one node file."""

    project: ProjectInfo
    commands: dict[str, CommandDef] = field(default_factory=dict)
    agent: AgentInfo | None = None
    root: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


class ConfigNode:
    """One node file in the tree.

    The tree owns nodes root-to-leaf through `children`; `parent` is a
    weak back-reference so ownership cannot form cycles.
    """

    def __init__(self, path: str | Path, data: NodeData) -> None:
        self.path = str(path)
        self.data = data
        self.children: list[ConfigNode] = []
        self._parent: weakref.ref[ConfigNode] | None = None

    @property
    def parent(self) -> ConfigNode | None:
        return self._parent() if self._parent is not None else None

    @parent.setter
    def parent(self, node: ConfigNode | None) -> None:
        self._parent = weakref.ref(node) if node is not None else None

    @property
    def directory(self) -> Path:
        """Directory this node is responsible for."""
        return Path(self.path).parent

    @property
    def commands(self) -> dict[str, CommandDef]:
        return self.data.commands

    def iter_ancestors(self) -> Iterator[ConfigNode]:
        """Yield the parent, grandparent, ... up to the root."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def __repr__(self) -> str:
        return f"ConfigNode({self.path!r}, commands={len(self.data.commands)})"
