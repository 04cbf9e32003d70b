"""
Token authentication service.

Exchanges a long-lived security token (GDCAuthSST) for a short-lived session
token (GDCAuthTT) against the REST API token endpoint.
"""

from typing import Any

import httpx
import structlog

from gdc_webdav.api.cookie_policy import accept_token_path
from gdc_webdav.api.cookies import Cookie, CookieJar
from gdc_webdav.api.http_client import AsyncHttpClient
from gdc_webdav.config import WebDavConfig
from gdc_webdav.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    MissingSessionTokenError,
)
from gdc_webdav.models.auth import UserLogin

logger = structlog.get_logger(__name__)

LONG_LIVED_TOKEN_COOKIE = "GDCAuthSST"
SESSION_TOKEN_COOKIE = "GDCAuthTT"


class TokenAuthenticator:
    """
    Performs the long-lived token to session token exchange.

    The authenticator has no state besides its own HTTP client: it never
    touches the WebDAV session, callers decide what to do with the returned
    login. It uses a connection pool separate from the WebDAV one.
    """

    def __init__(
        self,
        config: WebDavConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: Client configuration, `gdc_host` must be set.
            transport: Optional transport for testing (mock transport).

        Raises:
            ValueError: If the configuration has no gdc host.
        """
        if config.gdc_url is None:
            msg = "gdc host is required for token authentication"
            raise ValueError(msg)

        self._config = config
        self._http = AsyncHttpClient(
            config.gdc_url,
            timeout=config.timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": config.user_agent,
            },
            transport=transport,
        )
        self._accept_cookie = accept_token_path(config.token_path)

    async def __aenter__(self) -> "TokenAuthenticator":
        await self._http.__aenter__()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.close()

    async def authenticate(self, long_lived_token: str) -> UserLogin:
        """
        Exchange a long-lived token for a session token.

        Args:
            long_lived_token: Token used for authentication.

        Returns:
            UserLogin carrying both tokens; profile URI and state are unset.

        Raises:
            ValueError: If the token is empty.
            InvalidCredentialsError: If the token endpoint answers 401.
            MissingSessionTokenError: If a successful response sets no session token.
            AuthenticationError: On any other status or a transport failure.
        """
        if not long_lived_token:
            msg = "Long-lived token must not be empty"
            raise ValueError(msg)

        # A fresh jar per exchange: the long-lived token never leaks into the
        # WebDAV jar and no stale session token is ever read back.
        jar = CookieJar()
        jar.set(
            Cookie(
                name=LONG_LIVED_TOKEN_COOKIE,
                value=long_lived_token,
                domain=self._http.host,
                path=self._config.token_cookie_path,
            )
        )

        path = self._config.token_path
        try:
            response = await self._http.send(
                "GET", path, cookies=jar, cookie_policy=self._accept_cookie
            )
        except httpx.HTTPError as e:
            msg = f"Token exchange request to {path} failed"
            logger.warning(msg, error_type=type(e).__name__)
            raise AuthenticationError(msg) from e

        status = response.status_code
        if status == httpx.codes.UNAUTHORIZED:
            raise InvalidCredentialsError()
        if status >= 400:
            msg = f"unexpected status {status}"
            raise AuthenticationError(msg, status_code=status)

        session_cookie = next((c for c in jar if c.name == SESSION_TOKEN_COOKIE), None)
        if session_cookie is None or not session_cookie.value:
            raise MissingSessionTokenError(status_code=status)

        logger.info("Session token obtained", status=status)
        return UserLogin(
            profile_uri=None,
            state=None,
            long_lived_token=long_lived_token,
            session_token=session_cookie.value,
        )
