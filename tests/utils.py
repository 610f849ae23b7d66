"""Shared test utilities for deckr41 tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import httpx

from deckr41.backend import BackendClient


def write_rc(directory: Path, data: dict[str, Any], filename: str = ".d41rc") -> Path:
    """Write a JSON node file into `directory` (created if needed).

    Returns:
        Path of the written file.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def make_command(command_id: str, prompt: str | list[str] = "Say hi", **fields: Any) -> dict[str, Any]:
    """Raw command entry as it appears in `commands[]`."""
    return {"id": command_id, "prompt": prompt, **fields}


def openai_frame(text: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]})


def anthropic_frame(text: str) -> str:
    return "data: " + json.dumps(
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}}
    )


def sse_body(*frames: str, done: str | None = "data: [DONE]") -> bytes:
    """One response body holding every frame, SSE style."""
    lines = list(frames) + ([done] if done else [])
    return "".join(f"{line}\n\n" for line in lines).encode("utf-8")


async def chunked(*chunks: bytes, delay: float = 0.0, hang: bool = False) -> AsyncIterator[bytes]:
    """Async response body yielding chunks one by one.

    Args:
        delay: Sleep before each chunk after the first.
        hang: Block forever after the last chunk (until cancelled).
    """
    for i, chunk in enumerate(chunks):
        if i and delay:
            await asyncio.sleep(delay)
        yield chunk
    if hang:
        await asyncio.sleep(3600)


def streaming_handler(
    body: Callable[[], AsyncIterator[bytes]] | bytes,
    *,
    status: int = 200,
    seen: list[httpx.Request] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler answering every request with `body`."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        content = body if isinstance(body, bytes) else body()
        return httpx.Response(status, content=content)

    return handler


def make_client(
    handler: Callable[[httpx.Request], Any],
    backend: str = "openai",
    model: str | None = None,
) -> BackendClient:
    """BackendClient set up against a MockTransport with a fake key."""
    client = BackendClient(transport=httpx.MockTransport(handler))
    client.setup({backend: {"api_key": "sk-test"}}, active_backend=backend, active_model=model)
    return client


def request_json(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content)
