import json
from contextlib import asynccontextmanager

import pytest
from pydantic import BaseModel

from edgee.tools import Tool, tool
from edgee.transport import Transport


# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------

class MockTransport(Transport):
    """Transport that replays pre-queued bodies. No network calls.

    ``responses`` feeds ``send()``; ``streams`` feeds ``stream()`` with a
    list of byte chunks per request.  Queue an exception instance to have
    it raised instead, either in place of a whole response or in place of
    a single chunk.
    """

    def __init__(self):
        self.responses: list = []
        self.streams: list = []
        self.call_log: list[dict] = []
        self.opened_streams = 0
        self.closed_streams = 0
        self.chunks_read = 0
        self.closed = False

    async def send(self, body):
        self.call_log.append(body)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @asynccontextmanager
    async def stream(self, body):
        self.call_log.append(body)
        item = self.streams.pop(0)
        if isinstance(item, Exception):
            raise item
        self.opened_streams += 1
        try:
            yield self._body(item)
        finally:
            self.closed_streams += 1

    async def _body(self, chunks):
        for chunk in chunks:
            if isinstance(chunk, Exception):
                raise chunk
            self.chunks_read += 1
            yield chunk

    async def aclose(self):
        self.closed = True


# ---------------------------------------------------------------------------
# Buffered response builders
# ---------------------------------------------------------------------------

def make_usage(prompt=10, completion=5, cached=0, reasoning=0) -> dict:
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
        "input_tokens_details": {"cached_tokens": cached},
        "output_tokens_details": {"reasoning_tokens": reasoning},
    }


def make_text_response(content: str, finish_reason="stop", usage=None) -> dict:
    """Fake endpoint response with text only (no tool calls)."""
    data = {
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": finish_reason,
        }],
    }
    if usage is not None:
        data["usage"] = usage
    return data


def make_tool_call_response(
    name: str,
    args: dict,
    call_id: str = "call_1",
    content: str | None = None,
    usage=None,
) -> dict:
    """Fake endpoint response containing a single tool call."""
    return make_multi_tool_call_response([(name, args, call_id)], content, usage)


def make_multi_tool_call_response(calls, content=None, usage=None) -> dict:
    """Fake endpoint response containing several tool calls.

    Each item in *calls* is ``(func_name, args_dict, call_id)``.
    """
    data = {
        "choices": [{
            "index": 0,
            "message": {
                "role": "assistant",
                "content": content,
                "tool_calls": [
                    {
                        "id": call_id,
                        "type": "function",
                        "function": {"name": name, "arguments": json.dumps(args)},
                    }
                    for name, args, call_id in calls
                ],
            },
            "finish_reason": "tool_calls",
        }],
    }
    if usage is not None:
        data["usage"] = usage
    return data


# ---------------------------------------------------------------------------
# Streaming builders
# ---------------------------------------------------------------------------

def sse_body(*frames, done=True) -> bytes:
    """Encode frames as an SSE body, optionally ending with ``[DONE]``."""
    parts = [f"data: {json.dumps(frame)}\n\n" for frame in frames]
    if done:
        parts.append("data: [DONE]\n\n")
    return "".join(parts).encode()


def delta_frame(finish_reason=None, usage=None, **delta) -> dict:
    frame = {"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}
    if usage is not None:
        frame["usage"] = usage
    return frame


def text_frames(*pieces, usage=None) -> list[dict]:
    """Frames streaming ``pieces`` as assistant content, then ``stop``."""
    frames = [delta_frame(role="assistant", content="")]
    frames += [delta_frame(content=p) for p in pieces]
    frames.append(delta_frame(finish_reason="stop", usage=usage))
    return frames


def tool_call_frames(name, arguments: str, call_id="call_1", index=0, pieces=3, usage=None):
    """Frames streaming one tool call with its arguments split in ``pieces``."""
    size = max(1, -(-len(arguments) // pieces))
    fragments = [arguments[i:i + size] for i in range(0, len(arguments), size)]
    frames = [delta_frame(role="assistant", tool_calls=[{
        "index": index, "id": call_id, "type": "function",
        "function": {"name": name, "arguments": ""},
    }])]
    frames += [
        delta_frame(tool_calls=[{"index": index, "function": {"arguments": f}}])
        for f in fragments
    ]
    frames.append(delta_frame(finish_reason="tool_calls", usage=usage))
    return frames


def split_bytes(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


async def aiter_chunks(chunks):
    for chunk in chunks:
        yield chunk


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

class WeatherArgs(BaseModel):
    location: str


def _weather(args: WeatherArgs):
    return {"location": args.location, "temperature": 18, "conditions": "cloudy"}


@tool
def echo(text: str):
    """Echo text back."""
    return text


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
def weather_tool():
    return Tool(
        name="get_weather",
        description="Get the current weather for a location",
        schema=WeatherArgs,
        handler=_weather,
    )


@pytest.fixture
def sample_async_tool():
    @tool
    async def async_greet(name: str):
        """Async greeting."""
        return f"Hello async {name}"
    return async_greet
