"""Provider wire formats: request bodies and streamed frame decoding.

Family "openai" (OpenAI-style chat completions):
    body    {messages: [{role: system, ...}, ...], model, temperature,
             stream: true, max_tokens}
    frames  data: {"choices":[{"delta":{"content":"<text>"}}]}
            data: [DONE]

Family "anthropic" (Anthropic-style messages):
    body    {system, messages, model, temperature, stream: true, max_tokens}
    frames  data: {"delta":{"text":"<text>"}}
            data: {"type":"message_stop"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from deckr41.backend.profiles import BackendFamily, BackendProfile
from deckr41.errors import StreamDecodeError
from deckr41.logging import TRACE, get_logger

log = get_logger("backend.wire")

ANTHROPIC_VERSION = "2023-06-01"

_DATA_PREFIX = "data: "
_DONE = "[DONE]"


@dataclass(frozen=True, slots=True)
class PreparedRequest:
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


def clamp_max_tokens(requested: int | None, model_max: int) -> int:
    """min(requested, model maximum); the model maximum when not requested."""
    if requested is None:
        return model_max
    return min(requested, model_max)


def build_request(
    profile: BackendProfile,
    model: str,
    *,
    messages: list[dict[str, str]],
    system_prompt: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> PreparedRequest:
    """Build url, headers and JSON body for one streaming call."""
    max_output_tokens = clamp_max_tokens(max_tokens, profile.max_output_tokens(model))
    temp = temperature if temperature is not None else profile.default_temperature

    if profile.family is BackendFamily.OPENAI:
        headers = {
            "Authorization": f"Bearer {profile.credential or ''}",
            "Content-Type": "application/json",
        }
        body: dict[str, Any] = {
            "messages": [{"role": "system", "content": system_prompt or ""}, *messages],
            "model": model,
            "temperature": temp,
            "stream": True,
            "max_tokens": max_output_tokens,
        }
    else:
        headers = {
            "x-api-key": profile.credential or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        body = {
            "system": system_prompt or "",
            "messages": list(messages),
            "model": model,
            "temperature": temp,
            "stream": True,
            "max_tokens": max_output_tokens,
        }

    return PreparedRequest(url=profile.url, headers=headers, body=body)


def decode_frame(line: str) -> dict[str, Any] | None:
    """JSON payload of a `data: ...` line; None for non-data lines or [DONE].

    Raises:
        StreamDecodeError: The payload is not valid JSON (e.g. the
            transport closed mid-frame).
    """
    if not line.startswith(_DATA_PREFIX):
        return None
    payload = line[len(_DATA_PREFIX) :].strip()
    if not payload or payload == _DONE:
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(line, str(e)) from e
    return data if isinstance(data, dict) else None


def _dig(data: Any, *keys: str | int) -> Any:
    for key in keys:
        if isinstance(key, int):
            if not isinstance(data, list) or len(data) <= key:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[key] if isinstance(key, int) else data.get(key)
    return data


def extract_delta(line: str, family: BackendFamily | str | None = None) -> str:
    """Text delta carried by one streamed line, "" when there is none.

    Without a family both known JSON paths are tried.
    """
    try:
        data = decode_frame(line)
    except StreamDecodeError as e:
        log.debug("%s", e)
        return ""

    if data is None or data.get("type") == "message_stop":
        return ""

    family = BackendFamily(family) if isinstance(family, str) else family
    text = None
    if family in (BackendFamily.OPENAI, None):
        text = _dig(data, "choices", 0, "delta", "content")
    if text is None and family in (BackendFamily.ANTHROPIC, None):
        text = _dig(data, "delta", "text")

    log.log(TRACE, "frame %r -> %r", line[:120], text)
    return text if isinstance(text, str) else ""
