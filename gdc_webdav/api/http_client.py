"""
Async HTTP client for WebDAV and token exchange requests.

Every call sends one request, reads the response body and releases the
underlying connection before returning. Callers therefore never hold a
pooled connection while they issue another request, which is what keeps
reauthentication from exhausting a small pool.
"""

import asyncio
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from http.cookiejar import CookieJar as _StdlibCookieJar
from http.cookiejar import DefaultCookiePolicy
from typing import Any

import httpx
import structlog

from gdc_webdav.api.cookie_policy import CookiePredicate, default_accept
from gdc_webdav.api.cookies import CookieJar

logger = structlog.get_logger(__name__)

SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "gdcauthsst",
        "gdcauthtt",
        "password",
        "long_lived_token",
        "session_token",
    }
)


def sanitize_for_log(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive fields from a mapping before logging.

    Keys are compared case-insensitively. Recursively sanitizes nested
    dictionaries and lists.

    Args:
        data: Mapping that may contain sensitive values.

    Returns:
        Copy with sensitive values replaced by "***".
    """
    result = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_KEYS:
            result[key] = "***"
        elif isinstance(value, Mapping):
            result[key] = sanitize_for_log(value)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_log(item) if isinstance(item, Mapping) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _disabled_cookies() -> httpx.Cookies:
    # Cookies are managed by CookieJar; httpx's own jar must stay empty.
    return httpx.Cookies(_StdlibCookieJar(policy=DefaultCookiePolicy(allowed_domains=[])))


@dataclass(frozen=True, slots=True)
class DavResponse:
    """Detached response: the connection it came from has already been released."""

    method: str
    path: str
    status_code: int
    body: bytes = b""
    headers: httpx.Headers = field(default_factory=httpx.Headers)

    def text(self, limit: int | None = None) -> str:
        """Decode the body, truncated to `limit` characters."""
        text = self.body.decode("utf-8", errors="replace")
        if limit is not None and len(text) > limit:
            return text[:limit] + "..."
        return text


class AsyncHttpClient:
    """Async HTTP client bound to a single base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        cookies: CookieJar | None = None,
        auth: httpx.Auth | tuple[str, str] | None = None,
        timeout: float = 30.0,
        max_connections: int = 10,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Scheme, host and port requests are sent to.
            cookies: Cookie jar attached to every request.
            auth: Optional httpx authentication (basic credentials).
            timeout: Request timeout in seconds.
            max_connections: Connection pool size.
            headers: Default headers sent with every request.
            transport: Optional transport for testing (mock transport).
        """
        self._base_url = base_url
        self._cookies = cookies if cookies is not None else CookieJar()
        self._auth = auth
        self._timeout = timeout
        self._max_connections = max_connections
        self._headers = dict(headers or {})
        self._transport = transport

        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def __aenter__(self) -> "AsyncHttpClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def cookies(self) -> CookieJar:
        return self._cookies

    @property
    def host(self) -> str:
        return httpx.URL(self._base_url).host

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._base_url,
                    auth=self._auth,
                    timeout=self._timeout,
                    limits=httpx.Limits(max_connections=self._max_connections),
                    cookies=_disabled_cookies(),
                    transport=self._transport,
                    headers=self._headers,
                )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client. Safe to call more than once."""
        async with self._client_lock:
            if self._client is None:
                logger.debug("Client not open.")
                return
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        method: str,
        path: str,
        *,
        content: bytes | AsyncIterator[bytes] | None = None,
        headers: Mapping[str, str] | None = None,
        cookies: CookieJar | None = None,
        cookie_policy: CookiePredicate = default_accept,
    ) -> DavResponse:
        """
        Send a request and return its detached response.

        Cookies matching the request are taken from the jar, cookies set by the
        response are validated with `cookie_policy` and stored back. The
        connection is released before this method returns, on success and on
        failure alike.

        Args:
            method: HTTP method (GET, MKCOL, PUT, PROPFIND...).
            path: Request path relative to the base URL.
            content: Request body.
            headers: Extra request headers.
            cookies: Jar to use instead of the client's own jar.
            cookie_policy: Validation policy for response cookies.

        Returns:
            The response with its body fully read.

        Raises:
            RuntimeError: If the client has not been opened.
            httpx.HTTPError: If the request fails due to network issues or times out.
        """
        if self._client is None:
            msg = "HTTP client not initialized. Use 'async with' first."
            raise RuntimeError(msg)

        jar = cookies if cookies is not None else self._cookies
        request = self._client.build_request(method, path, content=content, headers=headers)
        cookie_header = jar.header_for(request.url.host, request.url.path)
        if cookie_header is not None:
            request.headers["Cookie"] = cookie_header

        logger.debug(
            "Sending request",
            method=method,
            path=path,
            headers=sanitize_for_log(dict(request.headers)),
        )
        response = await self._client.send(request, stream=True)
        try:
            body = await response.aread()
            jar.extract(response, cookie_policy)
        finally:
            await response.aclose()

        logger.debug("Received response", method=method, path=path, status=response.status_code)
        return DavResponse(
            method=method,
            path=path,
            status_code=response.status_code,
            body=body,
            headers=response.headers,
        )
