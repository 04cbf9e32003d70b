"""
gdc_webdav exception hierarchy.

All exceptions inherit from WebDavError for easy catching.
"""

from collections.abc import Collection
from typing import Any


class WebDavError(Exception):
    """Base exception for all gdc_webdav errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class AuthenticationError(WebDavError):
    """Token exchange failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(message, status_code=status_code)
        self.status_code = status_code


class InvalidCredentialsError(AuthenticationError):
    """The long-lived token was rejected by the token endpoint."""

    def __init__(self, message: str = "invalid credentials") -> None:
        super().__init__(message, status_code=401)


class MissingSessionTokenError(AuthenticationError):
    """Token endpoint answered successfully but did not set the session token cookie."""

    def __init__(self, message: str = "missing session token", *, status_code: int) -> None:
        super().__init__(message, status_code=status_code)


class DavRequestError(WebDavError):
    """A WebDAV request returned an unexpected status or failed in transport."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        path: str,
        expected: Collection[int],
        actual: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(
            message,
            operation=operation,
            path=path,
            expected=sorted(map(int, expected)),
            actual=actual,
        )
        self.operation = operation
        self.path = path
        self.expected = frozenset(map(int, expected))
        self.actual = actual
        self.body = body


class UploadError(DavRequestError):
    """Directory creation or resource upload failed."""


class ListingError(DavRequestError):
    """Directory listing failed."""
