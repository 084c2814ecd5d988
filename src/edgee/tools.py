import inspect
import json
from abc import ABC, abstractmethod
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field, TypeAdapter, create_model
from pydantic_core import to_jsonable_python

from edgee.message import ToolCall

logger = logging.getLogger(__name__)


class Validator(ABC):
    """Turns raw, model-supplied arguments into a handler's input.

    ``validate`` raises :class:`ValueError` (``pydantic.ValidationError``
    qualifies) with a readable description when the arguments do not
    fit.  The registry treats any other exception from ``validate`` as
    a validation failure too.  ``describe`` returns the JSON schema advertised to the model.
    """

    @abstractmethod
    def validate(self, raw: Any) -> Any:
        ...

    @abstractmethod
    def describe(self) -> dict:
        ...


class PydanticValidator(Validator):
    """Validates against any type pydantic understands, usually a model."""

    def __init__(self, schema: Any):
        self.schema = schema
        self._adapter = TypeAdapter(schema)

    def validate(self, raw: Any) -> Any:
        return self._adapter.validate_python(raw)

    def describe(self) -> dict:
        return self._adapter.json_schema()


_GOOGLE_SECTION = re.compile(r"^\s*(Args|Arguments|Parameters)\s*:\s*$")
_GOOGLE_PARAM = re.compile(r"^(\s*)(\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$")
_REST_PARAM = re.compile(r"^\s*:param\s+(?:\w+\s+)?(\w+)\s*:\s*(.*)$")


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Pull per-parameter descriptions out of a Google or reST docstring."""
    doc = inspect.getdoc(func)
    if not doc:
        return {}

    descriptions: dict[str, str] = {}
    for line in doc.splitlines():
        match = _REST_PARAM.match(line)
        if match:
            descriptions[match.group(1)] = match.group(2).strip()
    if descriptions:
        return descriptions

    in_section = False
    param_indent = None
    current = None
    for line in doc.splitlines():
        if not in_section:
            in_section = bool(_GOOGLE_SECTION.match(line))
            continue
        if not line.strip():
            current = None
            continue
        indent = len(line) - len(line.lstrip())
        if indent == 0:
            break
        match = _GOOGLE_PARAM.match(line)
        if match and (param_indent is None or indent == param_indent):
            param_indent = indent
            current = match.group(2)
            descriptions[current] = match.group(3).strip()
        elif current is not None:
            descriptions[current] += "\n" + line.strip()
    return descriptions


class SignatureValidator(Validator):
    """Builds a pydantic model from a function signature.

    Validated arguments come back as a keyword dict ready to be splatted
    into the function.  Unannotated parameters are treated as strings.
    """

    def __init__(self, func: Callable):
        self.func = func
        descriptions = _parse_param_descriptions(func)
        fields = {}
        for name, param in inspect.signature(func).parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            annotation = str if param.annotation is param.empty else param.annotation
            default = ... if param.default is param.empty else param.default
            fields[name] = (
                annotation,
                Field(default=default, description=descriptions.get(name, "")),
            )
        self.model = create_model(f"{func.__name__}_arguments", **fields)

    def validate(self, raw: Any) -> dict[str, Any]:
        parsed = self.model.model_validate(raw)
        return {name: getattr(parsed, name) for name in type(parsed).model_fields}

    def describe(self) -> dict:
        schema = self.model.model_json_schema()
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
            prop.setdefault("description", "")
        schema.setdefault("required", [])
        return schema


class Tool(BaseModel):
    """A locally executed function the model may call.

    Args:
        name: Name advertised to the model.
        handler: Callable receiving the validated arguments; may be a
            coroutine function.
        schema: Type the arguments are validated against; wrapped in a
            :class:`PydanticValidator`.
        description: Human-readable purpose, sent to the model.
        validator: A ready-made :class:`Validator`, instead of ``schema``.
    """

    name: str
    description: str | None = None
    # Define as fields but exclude from serialization
    handler: Callable = Field(exclude=True)
    validator: Any = Field(exclude=True)
    model_config = {"arbitrary_types_allowed": True}

    def __init__(
        self,
        name: str,
        handler: Callable,
        schema: Any = None,
        description: str | None = None,
        validator: Validator | None = None,
    ):
        if validator is None:
            if schema is None:
                raise ValueError(f"Tool {name!r} needs a schema or a validator")
            validator = PydanticValidator(schema)
        super().__init__(
            name=name,
            description=description,
            handler=handler,
            validator=validator,
        )

    @property
    def parameters_schema(self) -> dict:
        return self.validator.describe()

    def model_dump(self, **kwargs):
        """Return the wire declaration instead of internal attributes."""
        function = {"name": self.name}
        if self.description:
            function["description"] = self.description
        function["parameters"] = self.parameters_schema
        return {"type": "function", "function": function}

    def model_dump_json(self, **kwargs):
        return json.dumps(self.model_dump())

    async def __call__(self, arguments: Any) -> Any:
        """Validate ``arguments`` and run the handler on the result."""
        value = self.validator.validate(arguments)
        result = self.handler(value)
        if inspect.isawaitable(result):
            result = await result
        return result


def tool(func: Callable | None = None, *, name: str | None = None, description: str | None = None):
    """Turn a function into a :class:`Tool`, deriving its schema from the signature.

    Usable bare (``@tool``) or with overrides
    (``@tool(name="lookup", description="...")``).  The description
    defaults to the first paragraph of the docstring.
    """

    def wrap(f: Callable) -> Tool:
        doc = inspect.getdoc(f) or ""
        summary = doc.split("\n\n", 1)[0].strip() or None

        def handler(kwargs: dict[str, Any]):
            return f(**kwargs)

        return Tool(
            name=name or f.__name__,
            description=description or summary,
            handler=handler,
            validator=SignatureValidator(f),
        )

    if func is not None:
        return wrap(func)
    return wrap


class ToolErrorKind(Enum):
    UNKNOWN_TOOL = "unknown_tool"
    ARGUMENT_DECODE_ERROR = "argument_decode_error"
    VALIDATION_ERROR = "validation_error"
    HANDLER_ERROR = "handler_error"


@dataclass
class ToolOutcome:
    """Result of executing a single tool call.

    ``output`` is the handler's return value, or an ``{"error": ...}``
    dict when something went wrong; ``content`` is its text form as
    sent back to the model.
    """

    output: Any
    content: str
    error: ToolErrorKind | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def failure(cls, kind: ToolErrorKind, message: str) -> "ToolOutcome":
        output = {"error": message}
        return cls(output=output, content=json.dumps(output), error=kind)


class ToolRegistry:
    """The tools available to one call, looked up by name.

    When two tools share a name the one registered last wins.
    """

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for t in tools or []:
            if t.name in self._tools:
                logger.warning(f"Duplicate tool name {t.name!r}, keeping the last one")
            self._tools[t.name] = t

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def definitions(self) -> list[dict] | None:
        """Wire declarations for every tool, or ``None`` when empty."""
        if not self._tools:
            return None
        return [t.model_dump() for t in self._tools.values()]

    async def execute(self, tc: ToolCall) -> ToolOutcome:
        """Run one tool call; failures come back as error outcomes."""
        tool_obj = self._tools.get(tc.name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {tc.name}")
            return ToolOutcome.failure(ToolErrorKind.UNKNOWN_TOOL, f"Unknown tool: {tc.name}")

        try:
            raw = json.loads(tc.arguments)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.warning(f"Invalid JSON in arguments for {tc.name}: {e}")
            return ToolOutcome.failure(
                ToolErrorKind.ARGUMENT_DECODE_ERROR, f"Invalid JSON arguments: {e}",
            )

        # Validators may run user code, so any exception counts as a failed validation.
        try:
            value = tool_obj.validator.validate(raw)
        except Exception as e:
            logger.warning(f"Arguments for {tc.name} failed validation: {e}")
            return ToolOutcome.failure(ToolErrorKind.VALIDATION_ERROR, f"Invalid arguments: {e}")

        logger.info(f"Calling {tc.name} with {raw}")
        try:
            result = tool_obj.handler(value)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"Tool {tc.name} raised: {e}")
            return ToolOutcome.failure(ToolErrorKind.HANDLER_ERROR, f"Tool execution failed: {e}")

        if isinstance(result, str):
            return ToolOutcome(output=result, content=result)
        try:
            content = json.dumps(to_jsonable_python(result))
        except (TypeError, ValueError) as e:
            logger.error(f"Tool {tc.name} returned an unserializable value: {e}")
            return ToolOutcome.failure(
                ToolErrorKind.HANDLER_ERROR, f"Tool execution failed: unserializable result ({e})",
            )
        return ToolOutcome(output=result, content=content)
