"""Typed failures produced by ``RequestExecutor``.

Every exchange either decodes successfully or raises exactly one of these. The
``transient`` flag drives the sync engine's retry policy.
"""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar


class ErrorKind(StrEnum):
    OFFLINE = "offline"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    TRANSPORT_ERROR = "transport_error"
    DECODING_ERROR = "decoding_error"
    ENCODING_ERROR = "encoding_error"
    CLIENT_ERROR = "client_error"
    API_RESPONSE_ERROR = "api_response_error"


class RequestError(RuntimeError):
    """Base class for classified request failures."""

    kind: ClassVar[ErrorKind]
    transient: ClassVar[bool] = False


class OfflineError(RequestError):
    kind = ErrorKind.OFFLINE
    transient = True

    def __init__(self, message: str = "You appear to be offline") -> None:
        super().__init__(message)


class UnauthorizedError(RequestError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, status_code: int = 401, message: str | None = None) -> None:
        if message is None:
            message = (
                "Your session has expired. Please log in again."
                if status_code == 401
                else "You don't have permission to access this resource"
            )
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(RequestError):
    kind = ErrorKind.RATE_LIMITED
    transient = True

    def __init__(self, retry_after: float | None = None) -> None:
        if retry_after is not None:
            message = f"Too many requests. Please wait {retry_after:g} seconds."
        else:
            message = "Too many requests. Please try again later."
        super().__init__(message)
        self.retry_after = retry_after


class ServerError(RequestError):
    kind = ErrorKind.SERVER_ERROR
    transient = True

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(message or "Server error. Please try again later.")
        self.status_code = status_code


class TransportError(RequestError):
    """Connection, TLS or timeout failure below the HTTP layer."""

    kind = ErrorKind.TRANSPORT_ERROR
    transient = True


class DecodingError(RequestError):
    kind = ErrorKind.DECODING_ERROR


class EncodingError(RequestError):
    kind = ErrorKind.ENCODING_ERROR


class ClientError(RequestError):
    """Any other non-success status (404, 409, 422, ...)."""

    kind = ErrorKind.CLIENT_ERROR

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(message or f"HTTP Error {status_code}")
        self.status_code = status_code


class ApiResponseError(RequestError):
    """The API envelope reported ``success: false``."""

    kind = ErrorKind.API_RESPONSE_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Request failed")


class UnroutableMutationError(LookupError):
    """Raised when no API route is registered for a mutation's entity type."""
