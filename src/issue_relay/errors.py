"""Typed error taxonomy shared by adapters, the engine and the surfaces.

Adapters raise these instead of returning error values. The engine decides
isolation (per record, per mapping) based on where the error surfaces, and
the HTTP/MCP surfaces translate them into structured responses.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""

    error_type = "server_error"
    retryable = False


class AuthError(RelayError):
    """Credentials were rejected, or a request signature did not verify."""

    error_type = "auth_error"


class NotFoundError(RelayError):
    """The remote object (page, message, channel) does not exist."""

    error_type = "not_found"


class ValidationError(RelayError):
    """Input or remote schema did not have the expected shape."""

    error_type = "validation_error"


class TransientError(RelayError):
    """Rate limited, timed out, or a 5xx from the remote side.

    Attributes:
        retry_after: Seconds the remote asked us to wait, when it said so.
    """

    error_type = "transient_error"
    retryable = True

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after
