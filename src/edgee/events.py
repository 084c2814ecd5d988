"""Events emitted while streaming a tool-enabled call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from edgee.message import ToolCall
from edgee.response import Usage
from edgee.streaming import StreamChunk


@dataclass
class StreamEvent:
    """Base for all streaming events; ``type`` names the variant."""

    type: str = field(default="", init=False)


@dataclass
class ChunkEvent(StreamEvent):
    """A decoded frame, surfaced as soon as it arrives."""

    chunk: StreamChunk | None = None
    type: str = field(default="chunk", init=False)


@dataclass
class ToolStartEvent(StreamEvent):
    tool_call: ToolCall | None = None
    type: str = field(default="tool_start", init=False)


@dataclass
class ToolResultEvent(StreamEvent):
    """A tool finished.

    ``result`` is the handler's return value or an ``{"error": ...}``
    dict; ``content`` is the text appended to the conversation.
    """

    tool_call_id: str = ""
    tool_name: str = ""
    result: Any = None
    content: str = ""
    is_error: bool = False
    type: str = field(default="tool_result", init=False)


@dataclass
class IterationCompleteEvent(StreamEvent):
    """All tool calls of an iteration ran; the next request follows.

    ``usage`` holds the totals accumulated so far, if any were reported.
    """

    iteration: int = 0
    usage: Usage | None = None
    type: str = field(default="iteration_complete", init=False)
