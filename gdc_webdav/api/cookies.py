"""
In-memory cookie jar shared by all requests of a session.

Cookies are keyed by (name, domain): setting a cookie replaces any previous
cookie with the same name for that domain, whatever its path.
"""

import threading
from collections.abc import Iterator
from dataclasses import dataclass
from http.cookiejar import CookieJar as _StdlibCookieJar

import httpx
import structlog

from gdc_webdav.api.cookie_policy import (
    CookiePredicate,
    PredicateCookiePolicy,
    default_accept,
    path_prefix_match,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Cookie:
    """A session cookie. Domains are stored lower-cased without a leading dot."""

    name: str
    value: str
    domain: str
    path: str = "/"

    def __post_init__(self) -> None:
        if not self.name:
            msg = "cookie name must not be empty"
            raise ValueError(msg)
        object.__setattr__(self, "domain", self.domain.lower().lstrip("."))
        object.__setattr__(self, "path", self.path or "/")

    @property
    def key(self) -> tuple[str, str]:
        return self.name, self.domain

    def matches(self, host: str, path: str) -> bool:
        """Check whether the cookie should be sent with a request to host/path."""
        host = host.lower()
        if host != self.domain and not host.endswith(f".{self.domain}"):
            return False
        return path_prefix_match(self.path, path)

    def __repr__(self) -> str:
        return (
            f"Cookie(name={self.name!r}, value='***', domain={self.domain!r}, path={self.path!r})"
        )


class CookieJar:
    """
    Thread-safe cookie jar.

    Every operation takes a short internal lock; nothing here performs I/O.
    """

    def __init__(self) -> None:
        self._cookies: dict[tuple[str, str], Cookie] = {}
        self._lock = threading.Lock()

    def set(self, cookie: Cookie) -> None:
        """Store a cookie, replacing any cookie with the same name and domain."""
        with self._lock:
            self._cookies[cookie.key] = cookie

    def get(self, name: str, domain: str) -> Cookie | None:
        with self._lock:
            return self._cookies.get((name, domain.lower().lstrip(".")))

    def remove(self, name: str, domain: str) -> Cookie | None:
        with self._lock:
            return self._cookies.pop((name, domain.lower().lstrip(".")), None)

    def clear(self) -> None:
        with self._lock:
            self._cookies.clear()

    def for_request(self, host: str, path: str) -> list[Cookie]:
        """Return the cookies to send with a request, most specific path first."""
        with self._lock:
            cookies = [c for c in self._cookies.values() if c.matches(host, path)]
        return sorted(cookies, key=lambda c: len(c.path), reverse=True)

    def header_for(self, host: str, path: str) -> str | None:
        """
        Build a Cookie header value for a request.

        Returns:
            Header value, or None if no cookie applies.
        """
        cookies = self.for_request(host, path)
        if len(cookies) == 0:
            return None
        return "; ".join(f"{c.name}={c.value}" for c in cookies)

    def extract(
        self,
        response: httpx.Response,
        predicate: CookiePredicate = default_accept,
    ) -> list[Cookie]:
        """
        Store the cookies set by a response.

        Each Set-Cookie is validated against the request it answers using
        `predicate`; rejected cookies are dropped.

        Args:
            response: Response carrying Set-Cookie headers (with its request attached).
            predicate: Cookie validation policy.

        Returns:
            The cookies that were accepted.
        """
        staging = _StdlibCookieJar(policy=PredicateCookiePolicy(predicate))
        httpx.Cookies(staging).extract_cookies(response)

        accepted = [
            Cookie(name=c.name, value=c.value or "", domain=c.domain, path=c.path)
            for c in staging
        ]
        for cookie in accepted:
            self.set(cookie)
        logger.debug(
            "Extracted response cookies",
            names=[c.name for c in accepted],
            url=str(response.request.url),
        )
        return accepted

    def __len__(self) -> int:
        with self._lock:
            return len(self._cookies)

    def __iter__(self) -> Iterator[Cookie]:
        with self._lock:
            snapshot = list(self._cookies.values())
        return iter(snapshot)
