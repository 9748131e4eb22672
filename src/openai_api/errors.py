"""Exception taxonomy for the API client.

Transport failures surface as ``APIError`` (with the HTTP status and raw
body when there is one); malformed stream payloads surface as
``StreamDecodeError``.  Nothing in this package retries.
"""

from __future__ import annotations


class OpenAIError(Exception):
    """Base class for every error raised by this package."""


class APIError(OpenAIError):
    """The API answered with a non-success HTTP status.

    Attributes
    ----------
    status_code:
        HTTP status, or ``None`` when no response was received.
    body:
        Raw response body (may be empty).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthenticationError(APIError):
    """Missing credentials, or the API rejected them (HTTP 401)."""


class APIConnectionError(APIError):
    """The request never produced a response (connect/read failure, timeout)."""


class StreamDecodeError(OpenAIError):
    """A stream line could not be decoded into the expected result type."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line
