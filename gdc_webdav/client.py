"""
WebDAV uploader facade.

This is the main entry point for users of the library. It wires the HTTP
client, the session state, the token authenticator and the upload service
for one of the two authentication modes.
"""

import asyncio
from pathlib import Path
from typing import BinaryIO, Self

import httpx
import structlog

from gdc_webdav.api.cookies import CookieJar
from gdc_webdav.api.http_client import AsyncHttpClient
from gdc_webdav.config import WebDavConfig
from gdc_webdav.models.auth import AuthMode, StaticCredentials, UserLogin
from gdc_webdav.models.upload import UploadTarget, split_remote_dir
from gdc_webdav.services.auth_service import TokenAuthenticator
from gdc_webdav.services.session import SessionState
from gdc_webdav.services.upload_service import UploadService

logger = structlog.get_logger(__name__)


class WebDavUploader:
    """
    Async uploader for WebDAV storage.

    Authenticates either with static credentials (HTTP basic) or with a
    long-lived token exchanged for short-lived session tokens, which are
    refreshed transparently when they expire mid-session.

    Example:
        ```python
        async with WebDavUploader.with_token(
            "secure-di.gooddata.com", "secure.gooddata.com", sst_token
        ) as uploader:
            await uploader.transfer_file(
                "data.csv", "tmp/exports", "data.csv", "text/csv"
            )
        ```

    Args:
        config: Client configuration.
        credentials: Static credentials, for basic authentication.
        long_lived_token: Long-lived token, for token authentication.
        transport: Optional httpx transport for WebDAV requests (testing).
        token_transport: Optional httpx transport for token exchange (testing).
    """

    def __init__(
        self,
        config: WebDavConfig,
        *,
        credentials: StaticCredentials | None = None,
        long_lived_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        token_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._session = SessionState(credentials=credentials, long_lived_token=long_lived_token)

        self._authenticator: TokenAuthenticator | None = None
        if self._session.is_token_mode:
            self._authenticator = TokenAuthenticator(config, transport=token_transport)

        auth = None
        if credentials is not None:
            auth = httpx.BasicAuth(credentials.username, credentials.password)
        self._http = AsyncHttpClient(
            config.webdav_url,
            cookies=CookieJar(),
            auth=auth,
            timeout=config.timeout,
            max_connections=config.max_connections,
            headers={"User-Agent": config.user_agent},
            transport=transport,
        )
        self._upload_service = UploadService(
            self._http, self._session, config, authenticator=self._authenticator
        )

        self._initialized = False
        self._init_lock = asyncio.Lock()
        logger.debug("Uploader created", auth_mode=str(self._session.auth_mode))

    @classmethod
    def with_credentials(
        cls,
        webdav_host: str,
        username: str,
        password: str,
        *,
        webdav_port: int = 443,
        webdav_scheme: str = "https",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        """Create an uploader using HTTP basic authentication."""
        config = WebDavConfig(
            webdav_host=webdav_host, webdav_port=webdav_port, webdav_scheme=webdav_scheme
        )
        return cls(
            config,
            credentials=StaticCredentials(username=username, password=password),
            transport=transport,
        )

    @classmethod
    def with_token(
        cls,
        webdav_host: str,
        gdc_host: str,
        long_lived_token: str,
        *,
        webdav_port: int = 443,
        webdav_scheme: str = "https",
        gdc_port: int = 443,
        gdc_scheme: str = "https",
        transport: httpx.AsyncBaseTransport | None = None,
        token_transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        """Create an uploader authenticating with a long-lived token."""
        config = WebDavConfig(
            webdav_host=webdav_host,
            webdav_port=webdav_port,
            webdav_scheme=webdav_scheme,
            gdc_host=gdc_host,
            gdc_port=gdc_port,
            gdc_scheme=gdc_scheme,
        )
        return cls(
            config,
            long_lived_token=long_lived_token,
            transport=transport,
            token_transport=token_transport,
        )

    async def __aenter__(self) -> Self:
        """Enter async context."""
        await self._ensure_initialized()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        """Exit async context."""
        await self.close()

    async def _ensure_initialized(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            await self._http.__aenter__()
            if self._authenticator is not None:
                await self._authenticator.__aenter__()
            self._initialized = True
            logger.debug("Uploader initialized")

    async def close(self) -> None:
        """Close the HTTP clients and release pooled connections."""
        async with self._init_lock:
            await self._http.close()
            if self._authenticator is not None:
                await self._authenticator.close()
            self._initialized = False
            logger.debug("Uploader closed")

    @property
    def auth_mode(self) -> AuthMode:
        return self._session.auth_mode

    @property
    def current_login(self) -> UserLogin | None:
        """The login whose session token is currently in use, if any."""
        return self._session.current_login

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def cookies(self) -> CookieJar:
        return self._http.cookies

    async def login(self) -> UserLogin:
        """
        Obtain a session token eagerly.

        Without this call the first WebDAV request is sent without a session
        token and the exchange happens on its 401.

        Returns:
            The new login.

        Raises:
            RuntimeError: If the uploader uses static credentials.
            AuthenticationError: If the token exchange fails.
        """
        if self._authenticator is None or self._session.long_lived_token is None:
            msg = "login() requires token authentication"
            raise RuntimeError(msg)
        await self._ensure_initialized()
        return await self._session.refresh(
            self._session.current_login,
            lambda: self._authenticator.authenticate(self._session.long_lived_token),
        )

    async def upload(self, target: UploadTarget) -> None:
        """
        Upload a prepared target.

        Raises:
            UploadError: If a directory cannot be created or the upload fails.
            AuthenticationError: If the session token cannot be refreshed.
        """
        await self._ensure_initialized()
        await self._upload_service.upload(target)

    async def transfer_file(
        self,
        file_to_upload: Path | str,
        remote_dir: str,
        remote_file_name: str,
        content_type: str,
    ) -> None:
        """
        Upload a local file to `remote_dir/remote_file_name`.

        Args:
            file_to_upload: Local file, must exist.
            remote_dir: Remote directory such as "tmp" or "a/b", created if missing.
            remote_file_name: Name of the uploaded resource.
            content_type: Content-Type of the resource.
        """
        target = UploadTarget.from_file(file_to_upload, remote_dir, remote_file_name, content_type)
        await self.upload(target)

    async def transfer_stream(
        self,
        stream: BinaryIO,
        remote_dir: str,
        remote_file_name: str,
        content_type: str,
    ) -> None:
        """Upload the rest of a binary stream. See `transfer_file`."""
        target = UploadTarget.from_stream(stream, remote_dir, remote_file_name, content_type)
        await self.upload(target)

    async def transfer_bytes(
        self,
        data: bytes,
        remote_dir: str,
        remote_file_name: str,
        content_type: str,
    ) -> None:
        """Upload in-memory bytes. See `transfer_file`."""
        target = UploadTarget.from_bytes(data, remote_dir, remote_file_name, content_type)
        await self.upload(target)

    async def make_directories(self, remote_dir: str) -> str:
        """
        Create a remote directory and all its parents.

        Returns:
            Path of the created directory.
        """
        await self._ensure_initialized()
        return await self._upload_service.make_directories(split_remote_dir(remote_dir))

    async def list_directory(self, remote_dir: str = "") -> list[str]:
        """
        List a remote directory under the uploads root.

        Args:
            remote_dir: Remote directory, empty for the uploads root.

        Returns:
            Hrefs of the directory and its direct children.
        """
        await self._ensure_initialized()
        segments = split_remote_dir(remote_dir) if remote_dir.strip("/") else ()
        return await self._upload_service.list_directory(segments)
