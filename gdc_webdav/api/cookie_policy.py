"""
Cookie validation policies.

A policy is a plain predicate deciding whether a cookie set by the server may
be stored for the request it arrived on. The token endpoint scopes the
session-token cookie to a path other than the one the exchange request was
issued against, so the token exchange uses an override that accepts it anyway.
"""

from collections.abc import Callable
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Protocol
from urllib.parse import urlsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


class _HasPath(Protocol):
    path: str


CookiePredicate = Callable[[_HasPath, str, int, str, bool], bool]


def path_prefix_match(cookie_path: str, request_path: str) -> bool:
    """
    Check whether a cookie path applies to a request path.

    The cookie path must equal the request path, or be a prefix of it that
    ends on a "/" boundary ("/a" matches "/a/b" but not "/ab").
    """
    if not cookie_path:
        cookie_path = "/"
    if not request_path.startswith(cookie_path):
        return False
    if len(request_path) == len(cookie_path) or cookie_path.endswith("/"):
        return True
    return request_path[len(cookie_path)] == "/"


def default_accept(
    cookie: _HasPath,
    request_host: str,
    request_port: int,
    request_path: str,
    is_secure: bool,
) -> bool:
    """Standard policy: accept a cookie only if its path matches the request path."""
    return path_prefix_match(cookie.path, request_path)


def accept_token_path(token_path: str) -> CookiePredicate:
    """
    Build a policy that always accepts cookies scoped to `token_path`.

    Any other cookie is validated by `default_accept`.

    Args:
        token_path: Path the server scopes the session-token cookie to.
    """

    def accept(
        cookie: _HasPath,
        request_host: str,
        request_port: int,
        request_path: str,
        is_secure: bool,
    ) -> bool:
        if cookie.path == token_path:
            return True
        return default_accept(cookie, request_host, request_port, request_path, is_secure)

    return accept


class PredicateCookiePolicy(DefaultCookiePolicy):
    """Adapter plugging a cookie predicate into http.cookiejar (used by httpx)."""

    def __init__(self, predicate: CookiePredicate) -> None:
        super().__init__()
        self._predicate = predicate

    def set_ok_path(self, cookie: Any, request: Any) -> bool:
        url = urlsplit(request.get_full_url())
        scheme = url.scheme.lower()
        port = url.port or _DEFAULT_PORTS.get(scheme, 80)
        return self._predicate(
            cookie,
            url.hostname or "",
            port,
            url.path or "/",
            scheme == "https",
        )
