"""End-to-end tests through the public Edgee client."""

from contextlib import aclosing

import pytest

from edgee import Edgee, InputObject, MaxIterationsError
from edgee.errors import ConfigurationError
from edgee.events import ChunkEvent, StreamEvent
from edgee.streaming import StreamChunk
from edgee.transport import HttpxTransport

from tests.conftest import (
    echo,
    make_text_response,
    make_tool_call_response,
    make_usage,
    sse_body,
    text_frames,
    tool_call_frames,
)


@pytest.fixture
def client(transport):
    return Edgee("sk-test", transport=transport)


class TestConstruction:
    def test_default_transport(self, monkeypatch):
        monkeypatch.delenv("EDGEE_BASE_URL", raising=False)
        client = Edgee(api_key="sk-test")
        assert isinstance(client.transport, HttpxTransport)
        assert client.transport.url == "https://api.edgee.ai/v1/chat/completions"

    def test_base_url_override(self):
        client = Edgee({"api_key": "sk-test"}, base_url="http://localhost:9000/")
        assert client.transport.url == "http://localhost:9000/v1/chat/completions"

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("EDGEE_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            Edgee()

    @pytest.mark.asyncio
    async def test_async_context_closes_transport(self, transport):
        async with Edgee("sk-test", transport=transport):
            pass
        assert transport.closed


class TestSend:
    @pytest.mark.asyncio
    async def test_simple_mode(self, client, transport):
        transport.responses = [make_text_response("Paris.", usage=make_usage())]
        response = await client.send("gpt-4o", "What is the capital of France?")

        assert response.text == "Paris."
        assert response.usage.total_tokens == 15
        assert transport.call_log[0]["messages"] == [
            {"role": "user", "content": "What is the capital of France?"},
        ]

    @pytest.mark.asyncio
    async def test_simple_mode_runs_tools(self, client, transport):
        transport.responses = [
            make_tool_call_response("echo", {"text": "hi"}),
            make_text_response("done"),
        ]
        response = await client.send("gpt-4o", "echo hi", tools=[echo])

        assert response.text == "done"
        assert transport.call_log[1]["messages"][2]["content"] == "hi"

    @pytest.mark.asyncio
    async def test_per_call_cap_overrides_config(self, transport):
        client = Edgee("sk-test", transport=transport, max_tool_iterations=5)
        transport.responses = [
            make_tool_call_response("echo", {"text": "x"}, call_id=f"c{i}") for i in range(5)
        ]
        with pytest.raises(MaxIterationsError) as exc_info:
            await client.send("gpt-4o", "loop", tools=[echo], max_tool_iterations=2)
        assert exc_info.value.max_iterations == 2
        assert len(transport.call_log) == 2

    @pytest.mark.asyncio
    async def test_per_call_zero_cap_rejected(self, transport):
        client = Edgee("sk-test", transport=transport, max_tool_iterations=5)
        with pytest.raises(ValueError):
            await client.send("gpt-4o", "loop", tools=[echo], max_tool_iterations=0)
        assert transport.call_log == []

    @pytest.mark.asyncio
    async def test_advanced_mode_single_round_trip(self, client, transport):
        transport.responses = [make_tool_call_response("get_weather", {"location": "Paris"})]
        tool_decl = {
            "type": "function",
            "function": {
                "name": "get_weather",
                "parameters": {"type": "object", "properties": {"location": {"type": "string"}}},
            },
        }
        response = await client.send("gpt-4o", {
            "messages": [{"role": "user", "content": "Weather in Paris?"}],
            "tools": [tool_decl],
            "tool_choice": "auto",
        })

        assert len(transport.call_log) == 1
        assert response.finish_reason == "tool_calls"
        assert response.tool_calls[0].name == "get_weather"
        body = transport.call_log[0]
        assert body["tools"] == [tool_decl]
        assert body["tool_choice"] == "auto"
        assert body["stream"] is False

    @pytest.mark.asyncio
    async def test_advanced_mode_with_compression(self, client, transport):
        data = make_text_response("summary")
        data["compression"] = {"input_tokens": 900, "saved_tokens": 450, "rate": 0.5}
        transport.responses = [data]

        response = await client.send("gpt-4o", InputObject(
            messages=[{"role": "user", "content": "Summarize."}],
            enable_compression=True,
            compression_rate=0.5,
        ))

        assert transport.call_log[0]["enable_compression"] is True
        assert response.compression.saved_tokens == 450

    @pytest.mark.asyncio
    async def test_tools_with_advanced_input_rejected(self, client):
        with pytest.raises(TypeError):
            await client.send("gpt-4o", {"messages": []}, tools=[echo])


class TestStream:
    @pytest.mark.asyncio
    async def test_simple_mode_yields_events(self, client, transport):
        transport.streams = [
            [sse_body(*tool_call_frames("echo", '{"text": "hi"}'))],
            [sse_body(*text_frames("done"))],
        ]
        events = [e async for e in client.stream("gpt-4o", "echo hi", tools=[echo])]

        assert all(isinstance(e, StreamEvent) for e in events)
        assert [e.type for e in events if e.type != "chunk"] == [
            "tool_start", "tool_result", "iteration_complete",
        ]

    @pytest.mark.asyncio
    async def test_advanced_mode_yields_raw_chunks(self, client, transport):
        transport.streams = [[sse_body(*text_frames("Hel", "lo"))]]
        chunks = [c async for c in client.stream("gpt-4o", {
            "messages": [{"role": "user", "content": "Hi"}],
        })]

        assert all(isinstance(c, StreamChunk) for c in chunks)
        assert "".join(c.text or "" for c in chunks) == "Hello"
        assert transport.call_log[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_aclosing_releases_connection(self, client, transport):
        transport.streams = [[sse_body(*text_frames("a", "b", "c"))]]
        async with aclosing(client.stream("gpt-4o", "hi")) as events:
            async for event in events:
                assert isinstance(event, ChunkEvent)
                break
        assert transport.closed_streams == 1
