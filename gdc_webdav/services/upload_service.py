"""
Upload service for WebDAV.

Creates the remote directory hierarchy, uploads resources and owns the
resend-after-reauthentication flow shared by every WebDAV request.
"""

from collections.abc import AsyncIterator, Callable, Collection, Mapping, Sequence
from urllib.parse import quote

import httpx
import structlog

from gdc_webdav.api.cookies import Cookie
from gdc_webdav.api.http_client import AsyncHttpClient, DavResponse
from gdc_webdav.api.multistatus import parse_multistatus
from gdc_webdav.config import WebDavConfig
from gdc_webdav.exceptions import DavRequestError, ListingError, UploadError
from gdc_webdav.models.auth import UserLogin
from gdc_webdav.models.upload import UploadTarget
from gdc_webdav.services.auth_service import SESSION_TOKEN_COOKIE, TokenAuthenticator
from gdc_webdav.services.session import SessionState

logger = structlog.get_logger(__name__)

# An existing collection is reported as a redirect.
MKCOL_ACCEPTED = frozenset({httpx.codes.CREATED, httpx.codes.MOVED_PERMANENTLY})
# 204 when the resource already existed and was replaced.
PUT_ACCEPTED = frozenset({httpx.codes.CREATED, httpx.codes.NO_CONTENT})
PROPFIND_ACCEPTED = frozenset({httpx.codes.MULTI_STATUS})

_PROPFIND_BODY = (
    b'<?xml version="1.0" encoding="utf-8"?>'
    b'<D:propfind xmlns:D="DAV:"><D:prop><D:resourcetype/></D:prop></D:propfind>'
)

ContentFactory = Callable[[], tuple[bytes | AsyncIterator[bytes], int]]


class UploadService:
    """
    Uploads resources to WebDAV.

    In token mode, a request answered with 401 triggers exactly one session
    token refresh followed by exactly one resend of the same request. In
    static credential mode a 401 is final.
    """

    def __init__(
        self,
        http: AsyncHttpClient,
        session: SessionState,
        config: WebDavConfig,
        authenticator: TokenAuthenticator | None = None,
    ) -> None:
        """
        Args:
            http: HTTP client bound to the WebDAV host.
            session: Shared session state.
            config: Client configuration.
            authenticator: Token authenticator, required in token mode.

        Raises:
            ValueError: If the session uses a token but no authenticator is given.
        """
        if session.is_token_mode and authenticator is None:
            msg = "A token authenticator must be set for authentication via long-lived token"
            raise ValueError(msg)

        self._http = http
        self._session = session
        self._config = config
        self._authenticator = authenticator

    async def upload(self, target: UploadTarget) -> None:
        """
        Create the target directories and upload the resource.

        Args:
            target: What to upload and where.

        Raises:
            UploadError: If a directory cannot be created or the upload fails.
            AuthenticationError: If the session token cannot be refreshed.
        """
        await self.make_directories(target.remote_directory_path)

        path = self._resource_path(target.remote_directory_path, target.remote_file_name)
        logger.info("Upload started", path=path, content_type=target.content_type)
        try:
            await self._execute(
                "upload",
                "PUT",
                path,
                accepted=PUT_ACCEPTED,
                content=target.open_content,
                headers={"Content-Type": target.content_type},
            )
        except UploadError:
            logger.info("Upload failed", path=path)
            raise
        logger.info("Upload finished", path=path)

    async def make_directories(self, segments: Sequence[str]) -> str:
        """
        Create every prefix of a directory path, one segment at a time.

        Already existing directories are accepted, so concurrent callers may
        create overlapping paths. The first failure aborts the remaining
        segments.

        Args:
            segments: Directory segments under the uploads root.

        Returns:
            Path of the deepest directory.

        Raises:
            UploadError: If a directory cannot be created.
        """
        path = self._config.uploads_path.rstrip("/")
        for segment in segments:
            path = f"{path}/{quote(segment, safe='')}"
            await self._execute("create directory", "MKCOL", path, accepted=MKCOL_ACCEPTED)
        return path

    async def list_directory(self, segments: Sequence[str]) -> list[str]:
        """
        List the resources of a remote directory.

        Args:
            segments: Directory segments under the uploads root.

        Returns:
            Hrefs reported by the server, the directory itself included.

        Raises:
            ListingError: If the request fails or the response cannot be parsed.
        """
        path = self._collection_path(segments) + "/"
        response = await self._execute(
            "list directory",
            "PROPFIND",
            path,
            accepted=PROPFIND_ACCEPTED,
            content=lambda: (_PROPFIND_BODY, len(_PROPFIND_BODY)),
            headers={"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
            error_cls=ListingError,
        )
        try:
            return parse_multistatus(response.body)
        except ValueError as e:
            msg = "A problem occurred while retrieving the multi-status body"
            raise ListingError(
                msg,
                operation="list directory",
                path=path,
                expected=PROPFIND_ACCEPTED,
                actual=response.status_code,
                body=response.text(self._config.error_body_limit),
            ) from e

    async def _execute(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        accepted: Collection[int],
        content: ContentFactory | None = None,
        headers: Mapping[str, str] | None = None,
        error_cls: type[DavRequestError] = UploadError,
    ) -> DavResponse:
        login, response = await self._send(
            operation, method, path, accepted, content, headers, error_cls
        )

        # The first response is already released here: reauthentication
        # opens its own connection.
        if response.status_code == httpx.codes.UNAUTHORIZED and self._session.is_token_mode:
            logger.info(
                "Session token expired, reauthenticating with long-lived token",
                operation=operation,
                path=path,
            )
            await self._session.refresh(login, self._fetch_login)
            logger.debug("Resending request", method=method, path=path)
            _, response = await self._send(
                operation, method, path, accepted, content, headers, error_cls
            )

        if response.status_code not in accepted:
            msg = (
                f"Something went wrong while executing {method} on {path}. "
                f"{sorted(map(int, accepted))} expected, {response.status_code} returned instead"
            )
            raise error_cls(
                msg,
                operation=operation,
                path=path,
                expected=accepted,
                actual=response.status_code,
                body=response.text(self._config.error_body_limit),
            )
        return response

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        accepted: Collection[int],
        content: ContentFactory | None,
        headers: Mapping[str, str] | None,
        error_cls: type[DavRequestError],
    ) -> tuple[UserLogin | None, DavResponse]:
        login = self._pre_authenticate()

        request_headers = dict(headers or {})
        body = None
        if content is not None:
            body, length = content()
            request_headers["Content-Length"] = str(length)

        try:
            response = await self._http.send(method, path, content=body, headers=request_headers)
        except httpx.HTTPError as e:
            msg = f"A problem occurred while executing {method} on {path}"
            raise error_cls(msg, operation=operation, path=path, expected=accepted) from e
        return login, response

    def _pre_authenticate(self) -> UserLogin | None:
        """Attach the current session token cookie and return the login it came from."""
        if not self._session.is_token_mode:
            return None
        login = self._session.current_login
        if login is not None:
            self._http.cookies.set(
                Cookie(
                    name=SESSION_TOKEN_COOKIE,
                    value=login.session_token,
                    domain=self._http.host,
                    path="/",
                )
            )
        return login

    async def _fetch_login(self) -> UserLogin:
        if self._authenticator is None or self._session.long_lived_token is None:
            msg = "Token authentication is not configured"
            raise RuntimeError(msg)
        return await self._authenticator.authenticate(self._session.long_lived_token)

    def _collection_path(self, segments: Sequence[str]) -> str:
        quoted = [quote(segment, safe="") for segment in segments]
        return "/".join([self._config.uploads_path.rstrip("/"), *quoted])

    def _resource_path(self, segments: Sequence[str], file_name: str) -> str:
        return f"{self._collection_path(segments)}/{quote(file_name, safe='')}"
