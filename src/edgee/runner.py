import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass

from pydantic import ValidationError

from edgee.config import DEFAULT_MAX_TOOL_ITERATIONS
from edgee.errors import EdgeeError, MaxIterationsError, TransportError
from edgee.events import (
    ChunkEvent,
    IterationCompleteEvent,
    StreamEvent,
    ToolResultEvent,
    ToolStartEvent,
)
from edgee.instrumentation import (
    agent_span,
    completion_span,
    record_error,
    record_usage,
    tool_span,
)
from edgee.message import (
    Message,
    MessageRole,
    ToolCall,
    ToolCallRequestMessage,
    ToolCallResultMessage,
)
from edgee.request import build_body
from edgee.response import SendResponse, Usage
from edgee.sse import decode_sse
from edgee.streaming import DeltaAccumulator, IterationResult, StreamChunk
from edgee.tools import ToolOutcome, ToolRegistry
from edgee.transport import Transport

logger = logging.getLogger(__name__)

_ROLES = {r.value for r in MessageRole}


async def complete(transport: Transport, body: dict) -> SendResponse:
    """Issue one buffered request and parse the response."""
    data = await transport.send(body)
    try:
        return SendResponse.model_validate(data)
    except ValidationError as e:
        raise TransportError(f"Malformed response body: {e}") from e


async def stream_chunks(transport: Transport, body: dict) -> AsyncIterator[StreamChunk]:
    """Issue one streaming request and yield its decoded frames.

    The response is held open only while this generator runs; closing
    the generator early releases the connection.
    """
    async with transport.stream(body) as byte_chunks:
        async with aclosing(decode_sse(byte_chunks)) as frames:
            async for frame in frames:
                try:
                    chunk = StreamChunk.model_validate(frame)
                except ValidationError as e:
                    logger.debug(f"Skipping frame with unexpected shape: {e}")
                    continue
                yield chunk


@dataclass
class _LoopDone:
    """Internal marker carrying the buffered result; never surfaced."""

    response: SendResponse | None = None


class Runner:
    """Drives the tool-calling loop for one prompt.

    Each iteration sends the whole conversation, and either finishes
    (no tool calls in the reply) or runs every requested tool, appends
    the results and asks again.  The conversation lives only as long as
    one ``run()`` or ``iter()`` call.

    ``run()`` uses buffered requests and returns the final response.
    ``iter()`` uses streamed requests and yields events as they happen.

    Args:
        transport: Carrier for completion requests.
        max_tool_iterations: Maximum number of model round trips before
            :class:`MaxIterationsError` is raised.
        parallel_tool_calls: Run the tool calls of one iteration
            concurrently. Results are still recorded in call order.
    """

    def __init__(
        self,
        transport: Transport,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
        parallel_tool_calls: bool = False,
    ):
        if max_tool_iterations < 1:
            raise ValueError("max_tool_iterations must be at least 1")
        self.transport = transport
        self.max_tool_iterations = max_tool_iterations
        self.parallel_tool_calls = parallel_tool_calls

    async def run(self, model: str, prompt: str, registry: ToolRegistry) -> SendResponse:
        """Run the loop with buffered requests until a final answer."""
        result: SendResponse | None = None
        async with aclosing(self._loop(model, prompt, registry, streaming=False)) as events:
            async for event in events:
                if isinstance(event, _LoopDone):
                    result = event.response
        if result is None:
            raise RuntimeError("loop ended without a final response")
        return result

    async def iter(
        self, model: str, prompt: str, registry: ToolRegistry,
    ) -> AsyncIterator[StreamEvent]:
        """Run the loop with streamed requests, yielding events."""
        async with aclosing(self._loop(model, prompt, registry, streaming=True)) as events:
            async for event in events:
                if isinstance(event, _LoopDone):
                    return
                yield event

    async def _loop(self, model, prompt, registry, streaming):
        messages: list[Message] = [Message(role=MessageRole.USER, content=prompt)]
        tools = registry.definitions()
        total_usage: Usage | None = None

        async with agent_span(model, self.max_tool_iterations) as span:
            try:
                for iteration in range(1, self.max_tool_iterations + 1):
                    body = build_body(model, messages, stream=streaming, tools=tools)
                    response: SendResponse | None = None

                    async with completion_span(model, streaming, parent=span) as chat_span:
                        if streaming:
                            acc = DeltaAccumulator()
                            async with aclosing(stream_chunks(self.transport, body)) as chunks:
                                async for chunk in chunks:
                                    acc.feed(chunk)
                                    yield ChunkEvent(chunk=chunk)
                            result = acc.finalize()
                        else:
                            response = await complete(self.transport, body)
                            result = IterationResult.from_response(response)
                        record_usage(chat_span, result.usage)

                    if result.usage is not None:
                        if total_usage is None:
                            total_usage = result.usage.model_copy(deep=True)
                        else:
                            total_usage = total_usage + result.usage

                    if not result.tool_calls:
                        logger.info(f"Completed after {iteration} iteration(s)")
                        if response is not None:
                            response = SendResponse(
                                choices=response.choices,
                                usage=total_usage,
                                compression=response.compression,
                            )
                        yield _LoopDone(response=response)
                        return

                    messages.append(ToolCallRequestMessage(
                        role=MessageRole(result.role) if result.role in _ROLES else MessageRole.ASSISTANT,
                        content=result.content or None,
                        tool_calls=result.tool_calls,
                    ))
                    tool_events = self._execute_tools(result.tool_calls, registry, messages, span)
                    async with aclosing(tool_events) as events:
                        async for event in events:
                            yield event
                    yield IterationCompleteEvent(iteration=iteration, usage=total_usage)

                logger.warning(f"Giving up after {self.max_tool_iterations} iterations")
                raise MaxIterationsError(self.max_tool_iterations)
            except EdgeeError as e:
                record_error(span, e)
                raise

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    def _execute_tools(self, calls, registry, messages, span):
        if self.parallel_tool_calls and len(calls) > 1:
            return self._execute_parallel(calls, registry, messages, span)
        return self._execute_sequential(calls, registry, messages, span)

    async def _execute_sequential(self, calls, registry, messages, span):
        for tc in calls:
            yield ToolStartEvent(tool_call=tc)
            outcome = await self._execute_one(tc, registry, span)
            yield _result_event(tc, outcome)
            messages.append(ToolCallResultMessage(content=outcome.content, tool_call_id=tc.id))

    async def _execute_parallel(self, calls, registry, messages, span):
        for tc in calls:
            yield ToolStartEvent(tool_call=tc)
        outcomes = await asyncio.gather(
            *(self._execute_one(tc, registry, span) for tc in calls)
        )
        # gather preserves argument order, so results follow call order.
        for tc, outcome in zip(calls, outcomes):
            yield _result_event(tc, outcome)
            messages.append(ToolCallResultMessage(content=outcome.content, tool_call_id=tc.id))

    async def _execute_one(self, tc: ToolCall, registry: ToolRegistry, parent) -> ToolOutcome:
        async with tool_span(tc.name, tc.id, parent=parent) as span:
            outcome = await registry.execute(tc)
            if span is not None and outcome.is_error:
                span.set_attribute("error.type", outcome.error.value)
        return outcome


def _result_event(tc: ToolCall, outcome: ToolOutcome) -> ToolResultEvent:
    return ToolResultEvent(
        tool_call_id=tc.id,
        tool_name=tc.name,
        result=outcome.output,
        content=outcome.content,
        is_error=outcome.is_error,
    )
