import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from edgee.config import ClientConfig
from edgee.events import StreamEvent
from edgee.request import (
    AdvancedRequest,
    InputObject,
    SimpleRequest,
    advanced_body,
    resolve_request,
)
from edgee.response import SendResponse
from edgee.runner import Runner, complete, stream_chunks
from edgee.streaming import StreamChunk
from edgee.tools import Tool
from edgee.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)


class Edgee:
    """Client for the Edgee chat-completions gateway.

    ``input`` decides the mode of every call.  A plain string starts a
    *simple* call: it becomes the user message and any ``tools`` passed
    alongside are executed locally until the model stops asking for
    them.  An :class:`InputObject` (or an equivalent dict) starts an
    *advanced* call: one request, sent as-is, with tool calls handed
    back untouched.

    Args:
        config: An API key, a dict of :class:`ClientConfig` fields, or a
            ``ClientConfig``.  Missing values fall back to the
            ``EDGEE_API_KEY`` and ``EDGEE_BASE_URL`` environment
            variables.
        api_key: Overrides the key from ``config``.
        base_url: Overrides the endpoint from ``config``.
        max_tool_iterations: Overrides the default iteration cap.
        transport: Custom request carrier; defaults to
            :class:`HttpxTransport`.

    Example::

        async with Edgee() as client:
            response = await client.send("gpt-4o", "What's the weather in Paris?",
                                         tools=[get_weather])
            print(response.text)
    """

    def __init__(
        self,
        config: str | dict | ClientConfig | None = None,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        max_tool_iterations: int | None = None,
        transport: Transport | None = None,
    ):
        self.config = ClientConfig.resolve(
            config,
            api_key=api_key,
            base_url=base_url,
            max_tool_iterations=max_tool_iterations,
        )
        self.transport = transport or HttpxTransport(
            base_url=self.config.base_url,
            api_key=self.config.api_key,
            timeout=self.config.timeout,
        )

    async def __aenter__(self) -> "Edgee":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    def _runner(self, request: SimpleRequest) -> Runner:
        return Runner(
            self.transport,
            max_tool_iterations=request.max_tool_iterations,
            parallel_tool_calls=self.config.parallel_tool_calls,
        )

    def _resolve(self, model, input, tools, max_tool_iterations):
        return resolve_request(
            model,
            input,
            tools,
            self.config.max_tool_iterations if max_tool_iterations is None else max_tool_iterations,
        )

    async def send(
        self,
        model: str,
        input: str | dict | InputObject,
        tools: list[Tool] | None = None,
        max_tool_iterations: int | None = None,
    ) -> SendResponse:
        """Send a buffered request and return the final response.

        In simple mode the returned usage is summed over every round
        trip of the tool loop.

        Raises:
            RequestError: The endpoint returned a non-success status.
            TransportError: The connection failed.
            MaxIterationsError: The model was still calling tools when
                the iteration cap was reached.
        """
        request = self._resolve(model, input, tools, max_tool_iterations)
        if isinstance(request, AdvancedRequest):
            return await complete(self.transport, advanced_body(request, stream=False))
        return await self._runner(request).run(request.model, request.prompt, request.registry)

    async def stream(
        self,
        model: str,
        input: str | dict | InputObject,
        tools: list[Tool] | None = None,
        max_tool_iterations: int | None = None,
    ) -> AsyncIterator[StreamEvent | StreamChunk]:
        """Stream a response.

        Simple mode yields :class:`StreamEvent` objects (``chunk``,
        ``tool_start``, ``tool_result``, ``iteration_complete``); advanced
        mode yields the raw :class:`StreamChunk` frames.

        Wrap the iterator in :func:`contextlib.aclosing` when you may stop
        early, so the connection is released right away.
        """
        request = self._resolve(model, input, tools, max_tool_iterations)
        if isinstance(request, AdvancedRequest):
            source = stream_chunks(self.transport, advanced_body(request, stream=True))
        else:
            source = self._runner(request).iter(request.model, request.prompt, request.registry)
        async with aclosing(source) as items:
            async for item in items:
                yield item
