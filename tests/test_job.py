"""Tests for streaming jobs against a mocked HTTP transport."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from deckr41.backend import (
    AskOptions,
    Completed,
    Delta,
    Failed,
    FailureReason,
    JobState,
    Started,
    StreamCallbacks,
)
from tests.utils import (
    anthropic_frame,
    chunked,
    make_client,
    openai_frame,
    request_json,
    sse_body,
    streaming_handler,
)


class Recorder:
    """StreamCallbacks that record every call."""

    def __init__(self) -> None:
        self.starts: list[Started] = []
        self.data: list[str] = []
        self.done: list[tuple[str, int]] = []
        self.errors: list[Failed] = []

    def callbacks(self, **overrides) -> StreamCallbacks:
        callbacks = StreamCallbacks(
            on_start=self.starts.append,
            on_data=self.data.append,
            on_done=lambda body, status: self.done.append((body, status)),
            on_error=self.errors.append,
        )
        for name, fn in overrides.items():
            setattr(callbacks, name, fn)
        return callbacks


class TestJobStreaming:
    @pytest.mark.asyncio
    async def test_openai_stream(self) -> None:
        seen: list[httpx.Request] = []
        client = make_client(
            streaming_handler(sse_body(openai_frame("Hel"), openai_frame("lo")), seen=seen)
        )
        recorder = Recorder()

        job = client.ask(AskOptions.for_prompt("hi", system_prompt="sys", callbacks=recorder.callbacks()))
        result = await job.wait()

        assert isinstance(result, Completed)
        assert result.ok
        assert recorder.data == ["Hel", "lo"]
        assert job.text == "Hello"
        assert job.state is JobState.DONE
        assert len(recorder.starts) == 1
        assert recorder.starts[0].backend == "openai"
        assert recorder.errors == []

        body, status = recorder.done[0]
        assert status == 200
        assert "[DONE]" in body

        sent = request_json(seen[0])
        assert sent["stream"] is True
        assert sent["messages"][0] == {"role": "system", "content": "sys"}
        assert seen[0].headers["authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_max_tokens_clamped_in_request(self) -> None:
        seen: list[httpx.Request] = []
        client = make_client(streaming_handler(sse_body(), seen=seen), model="gpt-4o")

        job = client.ask(AskOptions.for_prompt("hi", max_tokens=100000))
        await job.wait()

        assert request_json(seen[0])["max_tokens"] == 4096
        assert job.started.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_anthropic_stream(self) -> None:
        seen: list[httpx.Request] = []
        body = sse_body(
            anthropic_frame("Hi"),
            anthropic_frame(" there"),
            done='data: {"type":"message_stop"}',
        )
        client = make_client(streaming_handler(body, seen=seen), backend="anthropic")

        job = client.ask(AskOptions.for_prompt("hi"))
        await job.wait()

        assert job.text == "Hi there"
        assert seen[0].headers["x-api-key"] == "sk-test"
        assert request_json(seen[0])["model"] == "claude-3-5-sonnet-latest"

    @pytest.mark.asyncio
    async def test_async_iteration(self) -> None:
        client = make_client(streaming_handler(sse_body(openai_frame("a"), openai_frame("b"))))

        events = [event async for event in client.ask(AskOptions.for_prompt("hi"))]

        assert isinstance(events[0], Started)
        assert events[1:3] == [Delta("a"), Delta("b")]
        assert isinstance(events[-1], Completed)
        assert len(events) == 4

    @pytest.mark.asyncio
    async def test_bad_frames_are_skipped(self) -> None:
        body = sse_body(openai_frame("a"), "data: {broken", ": ping", openai_frame("b"))
        client = make_client(streaming_handler(body))

        job = client.ask(AskOptions.for_prompt("hi"))
        assert isinstance(await job.wait(), Completed)
        assert job.text == "ab"

    @pytest.mark.asyncio
    async def test_frames_split_across_chunks(self) -> None:
        frame = openai_frame("split").encode()
        client = make_client(
            streaming_handler(lambda: chunked(frame[:10], frame[10:] + b"\n\n", delay=0.01))
        )

        job = client.ask(AskOptions.for_prompt("hi"))
        await job.wait()
        assert job.text == "split"


class TestJobErrors:
    @pytest.mark.asyncio
    async def test_http_error_completes_with_body(self) -> None:
        error = b'{"error": {"message": "invalid api key"}}'
        client = make_client(streaming_handler(error, status=401))
        recorder = Recorder()

        job = client.ask(AskOptions.for_prompt("hi", callbacks=recorder.callbacks()))
        result = await job.wait()

        assert isinstance(result, Completed)
        assert not result.ok
        assert recorder.done == [(error.decode(), 401)]
        assert recorder.data == []
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        recorder = Recorder()

        job = client.ask(AskOptions.for_prompt("hi", callbacks=recorder.callbacks()))
        result = await job.wait()

        assert isinstance(result, Failed)
        assert result.reason is FailureReason.TRANSPORT
        assert "connection refused" in result.message
        assert job.state is JobState.ERRORED
        assert recorder.errors == [result]
        assert recorder.done == []

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_break_stream(self) -> None:
        client = make_client(streaming_handler(sse_body(openai_frame("a"), openai_frame("b"))))
        recorder = Recorder()

        def bad_on_data(text: str) -> None:
            raise ValueError("editor went away")

        job = client.ask(
            AskOptions.for_prompt("hi", callbacks=recorder.callbacks(on_data=bad_on_data))
        )
        assert isinstance(await job.wait(), Completed)
        assert job.text == "ab"


class TestJobCancellation:
    @pytest.mark.asyncio
    async def test_shutdown_mid_stream(self) -> None:
        client = make_client(
            streaming_handler(lambda: chunked(sse_body(openai_frame("Hel"), done=None), hang=True))
        )
        recorder = Recorder()
        job = client.ask(AskOptions.for_prompt("hi", callbacks=recorder.callbacks()))

        async for event in job:
            if isinstance(event, Delta):
                job.shutdown()

        result = await job.wait()
        assert isinstance(result, Failed)
        assert result.cancelled
        assert job.state is JobState.CANCELLED
        assert job.cancel_requested
        assert recorder.data == ["Hel"]
        assert recorder.errors == [result]
        assert recorder.done == []

    @pytest.mark.asyncio
    async def test_shutdown_from_callback_drops_buffered_data(self) -> None:
        body = sse_body(openai_frame("one"), openai_frame("two"), openai_frame("three"))
        client = make_client(streaming_handler(body))
        recorder = Recorder()
        holder: dict[str, object] = {}

        def on_data(text: str) -> None:
            recorder.data.append(text)
            holder["job"].shutdown()

        job = client.ask(AskOptions.for_prompt("hi", callbacks=recorder.callbacks(on_data=on_data)))
        holder["job"] = job
        result = await job.wait()

        assert recorder.data == ["one"]
        assert recorder.done == []
        assert len(recorder.errors) == 1
        assert recorder.errors[0].reason is FailureReason.CANCELLED
        assert isinstance(result, Failed) and result.cancelled

    @pytest.mark.asyncio
    async def test_shutdown_before_start(self) -> None:
        client = make_client(streaming_handler(sse_body(openai_frame("never"))))
        recorder = Recorder()

        job = client.ask(AskOptions.for_prompt("hi", callbacks=recorder.callbacks()))
        job.shutdown()
        result = await job.wait()

        assert isinstance(result, Failed) and result.cancelled
        assert recorder.starts == [job.started]
        assert recorder.data == []
        assert recorder.errors == [result]
        assert job.state is JobState.CANCELLED

    @pytest.mark.asyncio
    async def test_shutdown_before_start_orders_events(self) -> None:
        client = make_client(streaming_handler(sse_body(openai_frame("never"))))

        job = client.ask(AskOptions.for_prompt("hi"))
        job.shutdown()
        events = [event async for event in job]

        assert isinstance(events[0], Started)
        assert isinstance(events[1], Failed) and events[1].cancelled
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_shutdown_after_finish_is_noop(self) -> None:
        client = make_client(streaming_handler(sse_body(openai_frame("a"))))
        recorder = Recorder()

        job = client.ask(AskOptions.for_prompt("hi", callbacks=recorder.callbacks()))
        await job.wait()
        job.shutdown()
        await asyncio.sleep(0)

        assert isinstance(job.result, Completed)
        assert job.state is JobState.DONE
        assert recorder.errors == []
        assert not job.cancel_requested
