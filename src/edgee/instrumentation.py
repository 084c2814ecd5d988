"""Optional OpenTelemetry instrumentation for edgee.

Call ``edgee.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the client
works identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None

GATEWAY_NAME = "edgee"


def instrument(*, tracer_name: str = "edgee") -> None:
    """Enable OpenTelemetry tracing for all edgee calls.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install edgee[otel]``

    Spans are started without becoming the current span, so they stay
    valid across the suspension points of streamed calls; children are
    parented explicitly.

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install edgee[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("Edgee instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing.

    Subsequent calls will not emit spans.
    """
    global _tracer
    _tracer = None


@asynccontextmanager
async def _span(name: str, attributes: dict, parent=None, client: bool = False):
    if _tracer is None:
        yield None
        return
    from opentelemetry import trace

    context = trace.set_span_in_context(parent) if parent is not None else None
    kind = trace.SpanKind.CLIENT if client else trace.SpanKind.INTERNAL
    span = _tracer.start_span(name, context=context, kind=kind, attributes=attributes)
    try:
        yield span
    finally:
        span.end()


def agent_span(model: str, max_iterations: int):
    """Wrap one simple-mode call in an ``invoke_agent`` span."""
    return _span(
        f"invoke_agent {model}",
        attributes={
            "gen_ai.operation.name": "invoke_agent",
            "gen_ai.request.model": model,
            "edgee.max_tool_iterations": max_iterations,
        },
    )


def completion_span(model: str, streaming: bool, parent=None):
    """Wrap one completion request in a ``chat`` span."""
    return _span(
        f"chat {model}",
        parent=parent,
        client=True,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": GATEWAY_NAME,
            "gen_ai.request.model": model,
            "edgee.streaming": streaming,
        },
    )


def tool_span(tool_name: str, call_id: str, parent=None):
    """Wrap a tool execution in an ``execute_tool`` span."""
    return _span(
        f"execute_tool {tool_name}",
        parent=parent,
        attributes={
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
            "gen_ai.tool.call.id": call_id,
        },
    )


def record_usage(span, usage) -> None:
    """Set token-usage attributes on a span."""
    if span is None or usage is None:
        return
    span.set_attribute("gen_ai.usage.input_tokens", usage.prompt_tokens)
    span.set_attribute("gen_ai.usage.output_tokens", usage.completion_tokens)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    Sets ``error.type`` per GenAI semantic conventions.
    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
