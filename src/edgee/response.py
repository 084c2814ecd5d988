"""Buffered response model and token accounting."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from edgee.message import ToolCall


class InputTokenDetails(BaseModel):
    cached_tokens: int = Field(default=0, ge=0)


class OutputTokenDetails(BaseModel):
    reasoning_tokens: int = Field(default=0, ge=0)


class Usage(BaseModel):
    """Token counters reported for one response.

    ``Usage`` objects are combined with ``+``, which returns a new
    object and leaves both operands untouched.
    """

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    input_tokens_details: InputTokenDetails = Field(default_factory=InputTokenDetails)
    output_tokens_details: OutputTokenDetails = Field(default_factory=OutputTokenDetails)

    @field_validator("input_tokens_details", "output_tokens_details", mode="before")
    @classmethod
    def _null_details(cls, value):
        return {} if value is None else value

    @property
    def cached_input_tokens(self) -> int:
        return self.input_tokens_details.cached_tokens

    @property
    def reasoning_tokens(self) -> int:
        return self.output_tokens_details.reasoning_tokens

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            input_tokens_details=InputTokenDetails(
                cached_tokens=self.cached_input_tokens + other.cached_input_tokens,
            ),
            output_tokens_details=OutputTokenDetails(
                reasoning_tokens=self.reasoning_tokens + other.reasoning_tokens,
            ),
        )


class Compression(BaseModel):
    """Input compression metrics, present when compression was enabled."""

    input_tokens: int = Field(default=0, ge=0)
    saved_tokens: int = Field(default=0, ge=0)
    rate: float = 0.0


class ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None
    tool_calls: list[ToolCall] | None = None


class Choice(BaseModel):
    index: int = 0
    message: ChoiceMessage = Field(default_factory=ChoiceMessage)
    finish_reason: str | None = None


class SendResponse(BaseModel):
    """Result of :meth:`Edgee.send`.

    Only the first choice is surfaced through the convenience
    properties; the full list stays available as ``choices``.
    """

    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None
    compression: Compression | None = None

    @property
    def message(self) -> ChoiceMessage | None:
        if not self.choices:
            return None
        return self.choices[0].message

    @property
    def text(self) -> str | None:
        message = self.message
        if message is None or not message.content:
            return None
        return message.content

    @property
    def finish_reason(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].finish_reason

    @property
    def tool_calls(self) -> list[ToolCall] | None:
        message = self.message
        if message is None:
            return None
        return message.tool_calls
