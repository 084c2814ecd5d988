"""Exceptions that escape an :class:`~edgee.client.Edgee` call.

Tool failures and malformed stream frames never show up here: the former
become tool-role content the model can react to, the latter are skipped.
"""


class EdgeeError(Exception):
    """Base class for all errors raised by edgee."""


class ConfigurationError(EdgeeError):
    """No usable client configuration could be resolved."""


class RequestError(EdgeeError):
    """The endpoint answered with a non-success status.

    Args:
        status_code: HTTP status returned by the endpoint.
        body: Raw response body, decoded as text.
    """

    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class TransportError(EdgeeError):
    """The connection failed while sending or reading a response."""


class MaxIterationsError(EdgeeError):
    """The model kept requesting tools past the iteration cap."""

    def __init__(self, max_iterations: int):
        super().__init__(f"Max tool iterations ({max_iterations}) reached")
        self.max_iterations = max_iterations
