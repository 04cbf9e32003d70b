"""
Session state shared by concurrent uploads.

Holds the authentication mode and the current UserLogin. The login is only
ever replaced as a whole, and session token refreshes are coalesced so that
concurrent requests noticing an expired token trigger a single exchange.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable

import structlog

from gdc_webdav.models.auth import AuthMode, StaticCredentials, UserLogin

logger = structlog.get_logger(__name__)


class SessionState:
    """
    Authentication state of one uploader session.

    Exactly one of `credentials` or `long_lived_token` is set for the lifetime
    of the session.

    Concurrency:
    - Reads and writes of the current login take a short internal lock and
      never span an await.
    - `refresh` is single-flight: the first caller starts the exchange, later
      callers await the same result. All callers must share one event loop.
    """

    def __init__(
        self,
        *,
        credentials: StaticCredentials | None = None,
        long_lived_token: str | None = None,
        login: UserLogin | None = None,
    ) -> None:
        """
        Args:
            credentials: Static credentials (basic authentication mode).
            long_lived_token: Long-lived token (token authentication mode).
            login: Optional login obtained earlier with the same token.

        Raises:
            ValueError: If not exactly one authentication mode is configured.
        """
        if (credentials is None) == (long_lived_token is None):
            msg = "Exactly one of static credentials or long-lived token must be set"
            raise ValueError(msg)
        if long_lived_token is not None and len(long_lived_token) == 0:
            msg = "Long-lived token must not be empty to be able to authenticate against webdav"
            raise ValueError(msg)
        if login is not None and long_lived_token is None:
            msg = "A login can only be attached to a token session"
            raise ValueError(msg)

        self._credentials = credentials
        self._long_lived_token = long_lived_token
        self._current_login = login

        self._lock = threading.Lock()
        self._refresh_task: asyncio.Task[UserLogin] | None = None

    @property
    def auth_mode(self) -> AuthMode:
        return AuthMode.TOKEN if self._long_lived_token is not None else AuthMode.STATIC

    @property
    def is_token_mode(self) -> bool:
        """True iff a long-lived token was configured, whether or not a login succeeded yet."""
        return self._long_lived_token is not None

    @property
    def credentials(self) -> StaticCredentials | None:
        return self._credentials

    @property
    def long_lived_token(self) -> str | None:
        return self._long_lived_token

    @property
    def current_login(self) -> UserLogin | None:
        with self._lock:
            return self._current_login

    def set_current_login(self, login: UserLogin) -> None:
        """Replace the current login."""
        if not self.is_token_mode:
            msg = "Static credential sessions have no login"
            raise RuntimeError(msg)
        with self._lock:
            self._current_login = login

    async def refresh(
        self,
        stale: UserLogin | None,
        fetch: Callable[[], Awaitable[UserLogin]],
    ) -> UserLogin:
        """
        Replace a stale login, coalescing concurrent refreshes.

        Logins are compared by identity: if the current login is no longer
        `stale`, another caller already refreshed it and it is returned as-is.

        Args:
            stale: The login the failed request was sent with.
            fetch: Coroutine factory performing the token exchange.

        Returns:
            The fresh login.

        Raises:
            RuntimeError: If the session uses static credentials.
            AuthenticationError: If the token exchange fails.
        """
        if not self.is_token_mode:
            msg = "Static credential sessions cannot be refreshed"
            raise RuntimeError(msg)

        with self._lock:
            current = self._current_login
            if current is not None and current is not stale:
                logger.debug("Session token already refreshed by another task")
                return current

            task = self._refresh_task
            if task is None:
                task = asyncio.ensure_future(self._run_refresh(fetch))
                self._refresh_task = task
            else:
                logger.debug("Joining in-flight session token refresh")

        return await asyncio.shield(task)

    async def _run_refresh(self, fetch: Callable[[], Awaitable[UserLogin]]) -> UserLogin:
        try:
            login = await fetch()
            with self._lock:
                self._current_login = login
            return login
        except Exception as e:
            logger.warning("Session token refresh failed", error_type=type(e).__name__)
            raise
        finally:
            with self._lock:
                self._refresh_task = None
