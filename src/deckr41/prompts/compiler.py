"""Template variable discovery and substitution.

Templates use flat `{{NAME}}` placeholders; names are word characters
and dots (`{{FILE_PATH}}`, `{{PARAMETERS.focus}}`). There is no logic,
escaping or nesting.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from deckr41.context import RunContext

# Inner whitespace is tolerated: {{ NAME }} == {{NAME}}
_VARIABLE_PATTERN = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


class MetadataProvider(Protocol):
    """Editor-side capability returning values for the names it knows.

    Unknown names are simply absent from the result.
    """

    def get_metadata(self, names: set[str], run_context: RunContext) -> dict[str, str]: ...


def find_variable_names(text: str) -> list[str]:
    """Placeholder names in `text`, deduplicated, in order of first use."""
    return list(dict.fromkeys(_VARIABLE_PATTERN.findall(text)))


def _serialize(value: Any) -> str:
    return value if isinstance(value, str) else repr(value)


def interpolate(text: str, values: Mapping[str, Any]) -> str:
    """Replace each placeholder whose name is in `values`.

    Placeholders with no value are left as written, so
    interpolate("{{A}}-{{B}}", {"A": "x"}) == "x-{{B}}".
    """
    if not values or "{{" not in text:
        return text

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in values:
            return _serialize(values[name])
        return match.group(0)

    return _VARIABLE_PATTERN.sub(replace, text)


@dataclass(frozen=True, slots=True)
class CompiledPrompt:
    system_prompt: str | None
    prompt: str
    variables: dict[str, Any]


class PromptCompiler:
    """Resolves a command's placeholders lazily and substitutes them.

    Only names that actually appear in the templates are requested from
    the metadata provider; values passed in `extra` are never requested.
    """

    def __init__(self, provider: MetadataProvider) -> None:
        self._provider = provider

    def compile(
        self,
        prompt: str,
        run_context: RunContext,
        *,
        system_prompt: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> CompiledPrompt:
        extra = dict(extra or {})
        names = find_variable_names((system_prompt or "") + "\n" + prompt)

        wanted = {name for name in names if name not in extra}
        variables: dict[str, Any] = {}
        if wanted:
            provided = self._provider.get_metadata(wanted, run_context)
            variables.update({k: v for k, v in provided.items() if k in wanted})
        variables.update({k: v for k, v in extra.items() if k in names})

        return CompiledPrompt(
            system_prompt=interpolate(system_prompt, variables) if system_prompt is not None else None,
            prompt=interpolate(prompt, variables),
            variables=variables,
        )
