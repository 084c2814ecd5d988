"""Streaming primitives for chat-completion responses.

Each ``data:`` frame decodes into a :class:`StreamChunk`.  The
:class:`ToolCallAccumulator` reassembles tool calls whose arguments
arrive in fragments across multiple chunks, and the
:class:`DeltaAccumulator` folds a whole stream into an
:class:`IterationResult`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from edgee.message import FunctionCall, ToolCall
from edgee.response import Compression, SendResponse, Usage


class FunctionDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ToolCallDelta(BaseModel):
    """A fragment of a tool call, keyed by its position ``index``."""

    index: int
    id: str | None = None
    type: str | None = None
    function: FunctionDelta | None = None


class StreamDelta(BaseModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None


class StreamChoice(BaseModel):
    index: int = 0
    delta: StreamDelta = Field(default_factory=StreamDelta)
    finish_reason: str | None = None


class StreamChunk(BaseModel):
    """One decoded frame of a streamed response."""

    choices: list[StreamChoice] = Field(default_factory=list)
    usage: Usage | None = None
    compression: Compression | None = None

    @property
    def _delta(self) -> StreamDelta | None:
        if not self.choices:
            return None
        return self.choices[0].delta

    @property
    def text(self) -> str | None:
        delta = self._delta
        if delta is None or not delta.content:
            return None
        return delta.content

    @property
    def role(self) -> str | None:
        delta = self._delta
        if delta is None or not delta.role:
            return None
        return delta.role

    @property
    def finish_reason(self) -> str | None:
        if not self.choices or not self.choices[0].finish_reason:
            return None
        return self.choices[0].finish_reason

    @property
    def tool_call_deltas(self) -> list[ToolCallDelta] | None:
        delta = self._delta
        if delta is None:
            return None
        return delta.tool_calls


@dataclass
class _PendingCall:
    id: str
    name: str
    arguments: list[str] = field(default_factory=list)


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    The first fragment seen for an index fixes the call's id and name;
    later fragments for that index only contribute argument text.
    """

    def __init__(self) -> None:
        self._pending: dict[int, _PendingCall] = {}

    def feed(self, delta: ToolCallDelta) -> None:
        function = delta.function or FunctionDelta()
        pending = self._pending.get(delta.index)
        if pending is None:
            pending = _PendingCall(id=delta.id or "", name=function.name or "")
            self._pending[delta.index] = pending
        if function.arguments:
            pending.arguments.append(function.arguments)

    def __len__(self) -> int:
        return len(self._pending)

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order."""
        calls = []
        for index in sorted(self._pending):
            pending = self._pending[index]
            calls.append(ToolCall(
                id=pending.id or f"call_{uuid.uuid4().hex[:24]}",
                function=FunctionCall(
                    name=pending.name,
                    arguments="".join(pending.arguments),
                ),
            ))
        return calls


@dataclass
class IterationResult:
    """The finalized outcome of one model round trip."""

    role: str = "assistant"
    content: str | None = None
    finish_reason: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: Usage | None = None
    compression: Compression | None = None

    @classmethod
    def from_response(cls, response: SendResponse) -> IterationResult:
        message = response.message
        if message is None:
            return cls(usage=response.usage, compression=response.compression)
        return cls(
            role=message.role or "assistant",
            content=message.content,
            finish_reason=response.finish_reason,
            tool_calls=list(message.tool_calls or []),
            usage=response.usage,
            compression=response.compression,
        )


class DeltaAccumulator:
    """Folds the chunks of one streamed response into an IterationResult."""

    def __init__(self) -> None:
        self._role: str | None = None
        self._content: list[str] = []
        self._finish_reason: str | None = None
        self._usage: Usage | None = None
        self._compression: Compression | None = None
        self._tool_calls = ToolCallAccumulator()

    def feed(self, chunk: StreamChunk) -> None:
        # Any non-empty role replaces the previous one.
        if chunk.role:
            self._role = chunk.role
        if chunk.text:
            self._content.append(chunk.text)
        if chunk.finish_reason:
            self._finish_reason = chunk.finish_reason
        if chunk.usage is not None:
            self._usage = chunk.usage
        if chunk.compression is not None:
            self._compression = chunk.compression
        for delta in chunk.tool_call_deltas or []:
            self._tool_calls.feed(delta)

    def finalize(self) -> IterationResult:
        return IterationResult(
            role=self._role or "assistant",
            content="".join(self._content) or None,
            finish_reason=self._finish_reason,
            tool_calls=self._tool_calls.finalize(),
            usage=self._usage,
            compression=self._compression,
        )
