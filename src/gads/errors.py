"""Exception types raised by the API-access layer.

Callers branch on the class: a TransportError means the service was never
reached, an ApiError means it answered with a non-2xx status.
"""
from __future__ import annotations


class GadsError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigurationError(GadsError):
    """Required credentials are missing or unreadable. No request was sent."""


class TransportError(GadsError):
    """The remote service could not be reached (DNS, refused, timeout, TLS)."""


class ApiError(GadsError):
    """The remote service rejected the request with a non-2xx status."""

    def __init__(self, status_code: int, message: str, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body = body

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code}, message={self.message!r})"


class ResponseParseError(GadsError):
    """A 2xx response body did not have the expected structure."""


class TokenRefreshError(GadsError):
    """The identity provider refused to mint a new access token."""


class AuthorizationError(GadsError):
    """The interactive authorization flow ended without a code."""


class AuthorizationDenied(AuthorizationError):
    def __init__(self, reason: str = "") -> None:
        msg = "authorization denied or failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.reason = reason


class AuthorizationTimeout(AuthorizationError):
    def __init__(self, seconds: float) -> None:
        super().__init__(f"authorization timed out after {_fmt_seconds(seconds)}")
        self.seconds = seconds


class ListenerError(AuthorizationError):
    """The local callback listener could not bind its port."""


def _fmt_seconds(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"
