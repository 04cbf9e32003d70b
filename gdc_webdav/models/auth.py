"""
Authentication-related domain models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class AuthMode(StrEnum):
    """How a session authenticates against WebDAV."""

    STATIC = "static"
    TOKEN = "token"


@dataclass(frozen=True, kw_only=True)
class UserLogin:
    """
    Structure produced by a successful token exchange.

    Two logins are equal when their profile URIs are equal, regardless of
    the tokens they carry.

    Attributes:
        profile_uri: The user's profile URI, None if not known.
        state: The user's state URI, None if not known.
        long_lived_token: Token presented for the exchange (GDCAuthSST).
        session_token: Short-lived token obtained from the exchange (GDCAuthTT).
        created_at: When the login was obtained.
    """

    profile_uri: str | None = None
    state: str | None = field(default=None, compare=False)
    long_lived_token: str = field(repr=False, compare=False)
    session_token: str = field(repr=False, compare=False)
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self) -> None:
        if not self.long_lived_token:
            msg = "the long-lived token must not be empty"
            raise ValueError(msg)
        if not self.session_token:
            msg = "the session token must not be empty"
            raise ValueError(msg)


@dataclass(frozen=True, kw_only=True)
class StaticCredentials:
    """Username and password for HTTP basic authentication."""

    username: str
    password: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.username or not self.password:
            msg = "Username and password required"
            raise ValueError(msg)
