from edgee.client import Edgee
from edgee.config import ClientConfig
from edgee.errors import (
    ConfigurationError,
    EdgeeError,
    MaxIterationsError,
    RequestError,
    TransportError,
)
from edgee.events import (
    ChunkEvent,
    IterationCompleteEvent,
    StreamEvent,
    ToolResultEvent,
    ToolStartEvent,
)
from edgee.instrumentation import instrument, uninstrument
from edgee.message import FunctionCall, Message, MessageRole, ToolCall
from edgee.request import InputObject
from edgee.response import Compression, SendResponse, Usage
from edgee.streaming import StreamChunk
from edgee.tools import PydanticValidator, Tool, ToolRegistry, Validator, tool

__all__ = [
    "ChunkEvent",
    "ClientConfig",
    "Compression",
    "ConfigurationError",
    "Edgee",
    "EdgeeError",
    "FunctionCall",
    "InputObject",
    "IterationCompleteEvent",
    "MaxIterationsError",
    "Message",
    "MessageRole",
    "PydanticValidator",
    "RequestError",
    "SendResponse",
    "StreamChunk",
    "StreamEvent",
    "Tool",
    "ToolCall",
    "ToolRegistry",
    "ToolResultEvent",
    "ToolStartEvent",
    "TransportError",
    "Usage",
    "Validator",
    "instrument",
    "tool",
    "uninstrument",
]
