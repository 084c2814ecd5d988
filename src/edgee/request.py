"""Call inputs and the wire request body.

A call is resolved exactly once, at entry, into either a
:class:`SimpleRequest` (a prompt string driven through the tool loop)
or an :class:`AdvancedRequest` (a caller-built conversation sent as-is).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from edgee.message import Message
from edgee.tools import Tool, ToolRegistry

COMPLETIONS_PATH = "/v1/chat/completions"

ToolChoice = Union[Literal["none", "auto", "required"], dict]


class InputObject(BaseModel):
    """A fully specified conversation for advanced mode.

    Tools listed here are only declared to the model; their calls are
    returned to the caller, never executed locally.
    """

    messages: list[Message]
    tools: list[dict] | None = None
    tool_choice: ToolChoice | None = None
    enable_compression: bool | None = None
    compression_rate: float | None = Field(default=None, ge=0, le=1)


@dataclass(frozen=True)
class SimpleRequest:
    model: str
    prompt: str
    registry: ToolRegistry
    max_tool_iterations: int


@dataclass(frozen=True)
class AdvancedRequest:
    model: str
    input: InputObject


def resolve_request(
    model: str,
    input: str | dict | InputObject,
    tools: list[Tool] | None,
    max_tool_iterations: int,
) -> SimpleRequest | AdvancedRequest:
    """Pick the call mode from the shape of ``input``."""
    if isinstance(input, str):
        return SimpleRequest(
            model=model,
            prompt=input,
            registry=ToolRegistry(tools),
            max_tool_iterations=max_tool_iterations,
        )
    if tools:
        raise TypeError(
            "tools= only applies to string input; declare tools in the input object instead"
        )
    if isinstance(input, dict):
        input = InputObject.model_validate(input)
    if not isinstance(input, InputObject):
        raise TypeError(f"input must be a str, dict or InputObject, got {type(input).__name__}")
    return AdvancedRequest(model=model, input=input)


def build_body(
    model: str,
    messages: list[Message],
    stream: bool,
    tools: list[dict] | None = None,
    tool_choice: ToolChoice | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Assemble a chat-completions request body, leaving out unset options."""
    body: dict[str, Any] = {
        "model": model,
        "messages": [m.to_wire() for m in messages],
        "stream": stream,
    }
    if tools:
        body["tools"] = tools
    if tool_choice is not None:
        body["tool_choice"] = tool_choice
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


def advanced_body(request: AdvancedRequest, stream: bool) -> dict[str, Any]:
    data = request.input
    return build_body(
        request.model,
        data.messages,
        stream=stream,
        tools=data.tools,
        tool_choice=data.tool_choice,
        enable_compression=data.enable_compression,
        compression_rate=data.compression_rate,
    )
