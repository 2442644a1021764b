"""Exceptions raised by apisig."""

from typing import Optional


class ApiRequestError(Exception):
    """Base class for every error raised by apisig."""


class InvalidURLError(ApiRequestError):
    """The endpoint cannot be parsed into an absolute http(s) URL."""


class SigningError(ApiRequestError):
    """The request could not be signed (no host, no method, bad headers)."""


class NetworkError(ApiRequestError):
    """The transport failed before a response was received."""


class InvalidResponseError(ApiRequestError):
    """The response body is missing or cannot be decoded as requested."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidHeaderError(ApiRequestError):
    """A header name or value cannot be sent (HTTP headers are ASCII)."""
