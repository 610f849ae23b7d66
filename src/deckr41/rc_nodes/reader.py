"""Parse one `.d41rc` node file into NodeData.

Both JSON and YAML documents are accepted; JSON is read through PyYAML
as well. Any problem raises ConfigLoadError so the caller can skip the
file and keep the previous tree state.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from deckr41.errors import ConfigLoadError
from deckr41.logging import get_logger
from deckr41.rc_nodes.schema import (
    DEFAULT_TEMPERATURE,
    AgentInfo,
    CommandDef,
    CommandParameter,
    NodeData,
    OnAccept,
    ParameterType,
    ProjectInfo,
)

log = get_logger("rc_nodes.reader")

_NODE_KEYS = {"root", "project", "agent", "commands", "$schema"}


def join_lines(value: Any, *, field_name: str) -> str:
    """Accept a string or a list of lines; lists are joined with newlines."""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(line, str) for line in value):
        return "\n".join(value)
    raise ValueError(f"'{field_name}' must be a string or a list of strings")


def parse_parameter(name: str, raw: Any) -> CommandParameter:
    if not isinstance(raw, dict):
        raise ValueError(f"parameter '{name}' must be a mapping")

    type_str = raw.get("type", ParameterType.TEXTAREA.value)
    try:
        param_type = ParameterType(type_str)
    except ValueError:
        allowed = ", ".join(t.value for t in ParameterType)
        raise ValueError(
            f"parameter '{name}' has unknown type {type_str!r} (expected {allowed})"
        ) from None

    options = raw.get("options", [])
    if not isinstance(options, list):
        raise ValueError(f"parameter '{name}' options must be a list")

    return CommandParameter(
        name=name,
        type=param_type,
        label=str(raw.get("label") or name),
        default=raw.get("default"),
        options=tuple(o for o in options if isinstance(o, dict)),
    )


def parse_command(raw: Any) -> CommandDef:
    """Validate and normalize one entry of `commands[]`."""
    if not isinstance(raw, dict):
        raise ValueError("each command must be a mapping")

    command_id = raw.get("id") or raw.get("name")
    if not command_id or not isinstance(command_id, str):
        raise ValueError("command is missing 'id' (or 'name')")

    if "prompt" not in raw:
        raise ValueError(f"command '{command_id}' is missing 'prompt'")
    prompt = join_lines(raw["prompt"], field_name="prompt")

    system_prompt = None
    if raw.get("system_prompt") is not None:
        system_prompt = join_lines(raw["system_prompt"], field_name="system_prompt")

    temperature = raw.get("temperature", DEFAULT_TEMPERATURE)
    if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
        raise ValueError(f"command '{command_id}' temperature must be a number")
    if not 0 <= temperature <= 1:
        raise ValueError(f"command '{command_id}' temperature must be within [0, 1]")

    max_tokens = raw.get("max_tokens")
    if max_tokens is not None and (
        isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0
    ):
        raise ValueError(f"command '{command_id}' max_tokens must be a positive integer")

    try:
        on_accept = OnAccept(raw.get("on_accept", OnAccept.INSERT.value))
    except ValueError:
        raise ValueError(
            f"command '{command_id}' on_accept must be 'insert' or 'replace'"
        ) from None

    params_raw = raw.get("parameters") or {}
    if not isinstance(params_raw, dict):
        raise ValueError(f"command '{command_id}' parameters must be a mapping")
    parameters = {
        str(name): parse_parameter(str(name), value) for name, value in params_raw.items()
    }

    return CommandDef(
        id=command_id,
        name=str(raw.get("name") or command_id),
        prompt=prompt,
        system_prompt=system_prompt,
        parameters=parameters,
        temperature=float(temperature),
        max_tokens=max_tokens,
        response_syntax=raw.get("response_syntax"),
        on_accept=on_accept,
        source=json.dumps(raw, indent=2, ensure_ascii=False, default=str),
    )


def parse_node_data(raw: dict[str, Any], path: Path, *, cwd: Path | None = None) -> NodeData:
    """Build NodeData from an already-decoded document."""
    folder = path.parent

    project_raw = raw.get("project") or {}
    if not isinstance(project_raw, dict):
        raise ValueError("'project' must be a mapping")
    is_cwd = cwd is not None and folder == cwd
    project = ProjectInfo(
        name=str(project_raw.get("name") or folder.name),
        icon=project_raw.get("icon") or ("@" if is_cwd else None),
    )

    agent = None
    agent_raw = raw.get("agent")
    if agent_raw is not None:
        if not isinstance(agent_raw, dict):
            raise ValueError("'agent' must be a mapping")
        agent = AgentInfo(
            id=agent_raw.get("id") or agent_raw.get("name"),
            identity=agent_raw.get("identity"),
            domain=agent_raw.get("domain"),
            mission=agent_raw.get("mission"),
        )

    commands_raw = raw.get("commands") or []
    if not isinstance(commands_raw, list):
        raise ValueError("'commands' must be a list")

    commands: dict[str, CommandDef] = {}
    for entry in commands_raw:
        command = parse_command(entry)
        if command.id in commands:
            raise ValueError(f"duplicate command id '{command.id}'")
        commands[command.id] = command

    return NodeData(
        project=project,
        commands=commands,
        agent=agent,
        root=bool(raw.get("root", False)),
        extra={k: v for k, v in raw.items() if k not in _NODE_KEYS},
    )


def read_rc_file(path: str | Path, *, cwd: Path | None = None) -> NodeData:
    """Read and parse a node file.

    Args:
        path: Node file to read.
        cwd: Working directory; the node living there gets the "@" icon
            unless it sets one.

    Raises:
        ConfigLoadError: The file is unreadable or malformed.
    """
    file_path = Path(path)

    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(file_path, f"cannot read file: {e}") from e

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigLoadError(file_path, f"invalid document: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigLoadError(file_path, "top level must be a mapping")

    try:
        data = parse_node_data(raw, file_path, cwd=cwd)
    except ValueError as e:
        raise ConfigLoadError(file_path, str(e)) from e

    if not data.commands:
        log.info("No commands found in %s", file_path)
    return data
