import logging
import os

from pydantic import BaseModel, Field

from edgee.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.edgee.ai"
DEFAULT_MAX_TOOL_ITERATIONS = 10
DEFAULT_TIMEOUT = 600.0

API_KEY_ENV = "EDGEE_API_KEY"
BASE_URL_ENV = "EDGEE_BASE_URL"


class ClientConfig(BaseModel):
    """Settings held by one :class:`~edgee.client.Edgee` instance.

    The iteration loop only ever reads a resolved ``ClientConfig``; the
    environment is consulted once, in :meth:`resolve`.

    Args:
        api_key: Bearer credential sent with every request.
        base_url: Gateway root; the completions path is appended to it.
        max_tool_iterations: Default cap on model round trips for
            tool-enabled calls.
        timeout: Per-request timeout in seconds.
        parallel_tool_calls: Run the tool calls of one iteration
            concurrently instead of one at a time.
    """

    model_config = {"frozen": True}

    api_key: str = Field(min_length=1)
    base_url: str = DEFAULT_BASE_URL
    max_tool_iterations: int = Field(default=DEFAULT_MAX_TOOL_ITERATIONS, ge=1)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    parallel_tool_calls: bool = False

    @classmethod
    def resolve(
        cls,
        config: "str | dict | ClientConfig | None" = None,
        **overrides,
    ) -> "ClientConfig":
        """Build a config from explicit values, then the environment.

        ``config`` may be a bare API key, a dict of fields, an existing
        ``ClientConfig`` or ``None``. Keyword ``overrides`` that are not
        ``None`` take precedence over everything else.
        """
        if isinstance(config, ClientConfig):
            values = config.model_dump()
        elif isinstance(config, str):
            values = {"api_key": config}
        elif isinstance(config, dict):
            values = dict(config)
        elif config is None:
            values = {}
        else:
            raise TypeError(
                f"config must be a str, dict or ClientConfig, got {type(config).__name__}"
            )
        values.update({k: v for k, v in overrides.items() if v is not None})

        if not values.get("api_key"):
            values["api_key"] = os.getenv(API_KEY_ENV, "")
        if not values.get("api_key"):
            raise ConfigurationError(f"{API_KEY_ENV} is not set")
        if not values.get("base_url"):
            values["base_url"] = os.getenv(BASE_URL_ENV) or DEFAULT_BASE_URL

        logger.debug(f"Resolved client config for {values['base_url']}")
        return cls(**values)
