import asyncio
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from unittest.mock import Mock

import httpx
import pytest
import pytest_asyncio

from gdc_webdav.api.http_client import AsyncHttpClient
from gdc_webdav.config import WebDavConfig
from gdc_webdav.exceptions import InvalidCredentialsError, ListingError, UploadError
from gdc_webdav.models.auth import StaticCredentials, UserLogin
from gdc_webdav.models.upload import UploadTarget
from gdc_webdav.services.auth_service import TokenAuthenticator
from gdc_webdav.services.session import SessionState
from gdc_webdav.services.upload_service import UploadService
from gdc_webdav.tests.conftest import LONG_LIVED_TOKEN, SESSION_TOKEN, WEBDAV_HOST
from gdc_webdav.tests.utils.transports import (
    FakeDavServer,
    FakeTokenEndpoint,
    parse_cookie_header,
)

TEXT = b"JUST A PLAIN TEXT!"


class RaisingTransport(httpx.AsyncBaseTransport):
    def __init__(self, error: type[httpx.TransportError]) -> None:
        self._error = error

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        raise self._error("transport failure", request=request)


def text_target(remote_dir: str = "tmp", name: str = "x.txt") -> UploadTarget:
    return UploadTarget.from_bytes(TEXT, remote_dir, name, "text/plain")


@pytest_asyncio.fixture
async def authenticator(
    config: WebDavConfig, token_endpoint: FakeTokenEndpoint
) -> AsyncIterator[TokenAuthenticator]:
    async with TokenAuthenticator(config, transport=token_endpoint) as authenticator:
        yield authenticator


@pytest.fixture
def make_service(
    config: WebDavConfig, dav_http: AsyncHttpClient, authenticator: TokenAuthenticator
) -> Callable[..., UploadService]:
    """Token mode service over the fake WebDAV server and token endpoint."""

    def _make(
        login: UserLogin | None = None, token_authenticator: Mock | None = None
    ) -> UploadService:
        session = SessionState(long_lived_token=LONG_LIVED_TOKEN, login=login)
        return UploadService(dav_http, session, config, token_authenticator or authenticator)

    return _make


@pytest.mark.asyncio
async def test_upload_with_valid_session_token(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
    token_endpoint: FakeTokenEndpoint,
) -> None:
    service = make_service(make_login())

    await service.upload(text_target())

    assert dav_server.resources["/uploads/tmp/x.txt"] == TEXT
    assert dav_server.content_types["/uploads/tmp/x.txt"] == "text/plain"
    assert token_endpoint.call_count == 0
    assert parse_cookie_header(dav_server.requests[0]) == {"GDCAuthTT": SESSION_TOKEN}


@pytest.mark.asyncio
async def test_upload_with_static_credentials(config: WebDavConfig) -> None:
    server = FakeDavServer(basic_auth=("user", "pass"))
    session = SessionState(credentials=StaticCredentials(username="user", password="pass"))

    async with AsyncHttpClient(
        config.webdav_url, auth=httpx.BasicAuth("user", "pass"), transport=server
    ) as http:
        await UploadService(http, session, config).upload(text_target("a/b"))

    assert [(m, p) for m, p, _ in server.statuses] == [
        ("MKCOL", "/uploads/a"),
        ("MKCOL", "/uploads/a/b"),
        ("PUT", "/uploads/a/b/x.txt"),
    ]
    assert server.resources["/uploads/a/b/x.txt"] == TEXT


@pytest.mark.asyncio
async def test_static_credentials_401_is_final(config: WebDavConfig) -> None:
    server = FakeDavServer(basic_auth=("user", "other"))
    session = SessionState(credentials=StaticCredentials(username="user", password="pass"))

    async with AsyncHttpClient(
        config.webdav_url, auth=httpx.BasicAuth("user", "pass"), transport=server
    ) as http:
        with pytest.raises(UploadError) as exc_info:
            await UploadService(http, session, config).upload(text_target())

    assert exc_info.value.actual == 401
    assert exc_info.value.operation == "create directory"
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_once_and_request_resent(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
    token_endpoint: FakeTokenEndpoint,
) -> None:
    service = make_service(make_login("TT-expired"))

    await service.upload(text_target())

    assert token_endpoint.call_count == 1
    assert dav_server.statuses == [
        ("MKCOL", "/uploads/tmp", 401),
        ("MKCOL", "/uploads/tmp", 201),
        ("PUT", "/uploads/tmp/x.txt", 201),
    ]
    resent = dav_server.calls("MKCOL")[1]
    assert parse_cookie_header(resent) == {"GDCAuthTT": "TT-1"}


@pytest.mark.asyncio
async def test_connection_released_before_reauthentication(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    service = make_service(make_login("TT-expired"))

    await service.make_directories(["tmp"])

    assert dav_server.events == [
        "sent:MKCOL /uploads/tmp",
        "released:MKCOL /uploads/tmp",
        "token-exchange",
        "sent:MKCOL /uploads/tmp",
        "released:MKCOL /uploads/tmp",
    ]


@pytest.mark.asyncio
async def test_refreshed_token_replaces_cookie_in_jar(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_http: AsyncHttpClient,
) -> None:
    service = make_service(make_login("TT-expired"))

    await service.upload(text_target())

    cookies = [c for c in dav_http.cookies if c.name == "GDCAuthTT"]
    assert len(cookies) == 1
    assert cookies[0].value == "TT-1"
    assert cookies[0].domain == WEBDAV_HOST


@pytest.mark.asyncio
async def test_401_without_initial_login_triggers_exchange(
    make_service: Callable[..., UploadService],
    dav_server: FakeDavServer,
    token_endpoint: FakeTokenEndpoint,
) -> None:
    service = make_service()

    await service.upload(text_target())

    assert "cookie" not in dav_server.requests[0].headers
    assert dav_server.statuses[0] == ("MKCOL", "/uploads/tmp", 401)
    assert token_endpoint.call_count == 1
    assert dav_server.resources["/uploads/tmp/x.txt"] == TEXT


@pytest.mark.asyncio
async def test_401_on_put_refreshes_and_resends(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
    mock_authenticator: Mock,
) -> None:
    dav_server.force_status("PUT", "/uploads/tmp/x.txt", 401, 204)
    service = make_service(make_login(), token_authenticator=mock_authenticator)

    await service.upload(text_target())

    mock_authenticator.authenticate.assert_awaited_once_with(LONG_LIVED_TOKEN)
    assert [status for _, _, status in dav_server.statuses] == [201, 401, 204]


@pytest.mark.asyncio
async def test_second_401_after_refresh_fails(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
    mock_authenticator: Mock,
) -> None:
    """One refresh, one resend: a second 401 is reported as an upload error."""
    dav_server.force_status("PUT", "/uploads/tmp/x.txt", 401, 401, 201)
    service = make_service(make_login(), token_authenticator=mock_authenticator)

    with pytest.raises(UploadError) as exc_info:
        await service.upload(text_target())

    assert exc_info.value.actual == 401
    assert exc_info.value.operation == "upload"
    assert exc_info.value.expected == frozenset({201, 204})
    assert mock_authenticator.authenticate.await_count == 1
    assert len(dav_server.calls("PUT")) == 2


@pytest.mark.asyncio
async def test_resent_file_body_is_identical(
    tmp_path: Path,
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
    mock_authenticator: Mock,
) -> None:
    data = bytes(range(256)) * 1024
    path = tmp_path / "data.bin"
    path.write_bytes(data)
    dav_server.valid_tokens = {SESSION_TOKEN, "TT-fresh"}
    dav_server.force_status("PUT", "/uploads/tmp/data.bin", 401)
    service = make_service(make_login(), token_authenticator=mock_authenticator)

    await service.upload(
        UploadTarget.from_file(path, "tmp", "data.bin", "application/octet-stream")
    )

    first, second = dav_server.calls("PUT")
    assert first.content == second.content == data
    assert second.headers["content-length"] == str(len(data))
    assert dav_server.resources["/uploads/tmp/data.bin"] == data


@pytest.mark.asyncio
async def test_concurrent_expiry_triggers_single_exchange(
    config: WebDavConfig,
    dav_http: AsyncHttpClient,
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    endpoint = FakeTokenEndpoint(
        LONG_LIVED_TOKEN, dav_server=dav_server, delay=0.05, events=dav_server.events
    )
    session = SessionState(long_lived_token=LONG_LIVED_TOKEN, login=make_login("TT-expired"))

    async with TokenAuthenticator(config, transport=endpoint) as authenticator:
        service = UploadService(dav_http, session, config, authenticator)
        await asyncio.gather(*(service.upload(text_target(name=f"{i}.txt")) for i in range(5)))

    assert endpoint.call_count == 1
    assert session.current_login.session_token == "TT-1"
    assert len(dav_server.resources) == 5


@pytest.mark.asyncio
async def test_reauthentication_failure_propagates(
    config: WebDavConfig,
    dav_http: AsyncHttpClient,
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    endpoint = FakeTokenEndpoint("another-token", dav_server=dav_server)
    session = SessionState(long_lived_token=LONG_LIVED_TOKEN, login=make_login("TT-expired"))

    async with TokenAuthenticator(config, transport=endpoint) as authenticator:
        with pytest.raises(InvalidCredentialsError):
            await UploadService(dav_http, session, config, authenticator).upload(text_target())

    assert len(dav_server.requests) == 1
    assert dav_server.calls("PUT") == []


@pytest.mark.asyncio
async def test_directory_failure_aborts_remaining_requests(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    dav_server.force_status("MKCOL", "/uploads/a", 500)
    service = make_service(make_login())

    with pytest.raises(UploadError) as exc_info:
        await service.upload(text_target("a/b"))

    assert exc_info.value.path == "/uploads/a"
    assert exc_info.value.actual == 500
    assert "[201, 301] expected, 500 returned instead" in str(exc_info.value)
    assert len(dav_server.requests) == 1


@pytest.mark.asyncio
async def test_existing_directories_are_accepted(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    service = make_service(make_login())

    await service.upload(text_target())
    await service.upload(text_target())

    assert [status for _, _, status in dav_server.statuses] == [201, 201, 301, 204]


@pytest.mark.asyncio
async def test_error_body_is_truncated(
    dav_http: AsyncHttpClient,
    authenticator: TokenAuthenticator,
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    config = WebDavConfig(
        webdav_host=WEBDAV_HOST, gdc_host="secure.gooddata.com", error_body_limit=5
    )
    session = SessionState(long_lived_token=LONG_LIVED_TOKEN, login=make_login())
    dav_server.force_status("PUT", "/uploads/tmp/x.txt", 500)

    with pytest.raises(UploadError) as exc_info:
        await UploadService(dav_http, session, config, authenticator).upload(text_target())

    assert exc_info.value.body == "force..."


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [httpx.ConnectError, httpx.ReadTimeout])
async def test_transport_failure_is_upload_error(
    config: WebDavConfig,
    error: type[httpx.TransportError],
) -> None:
    session = SessionState(credentials=StaticCredentials(username="user", password="pass"))

    async with AsyncHttpClient(config.webdav_url, transport=RaisingTransport(error)) as http:
        with pytest.raises(UploadError) as exc_info:
            await UploadService(http, session, config).upload(text_target())

    assert exc_info.value.actual is None
    assert isinstance(exc_info.value.__cause__, error)


@pytest.mark.asyncio
async def test_paths_are_percent_encoded(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    service = make_service(make_login())

    await service.upload(text_target("my dir", "a b#1.csv"))

    put = dav_server.calls("PUT")[0]
    assert put.url.raw_path == b"/uploads/my%20dir/a%20b%231.csv"


@pytest.mark.asyncio
async def test_list_directory(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    service = make_service(make_login())
    await service.upload(text_target("tmp/sub"))
    await service.upload(text_target("tmp", "y.txt"))

    hrefs = await service.list_directory(["tmp"])

    assert hrefs == ["/uploads/tmp/", "/uploads/tmp/sub/", "/uploads/tmp/y.txt"]
    propfind = dav_server.calls("PROPFIND")[0]
    assert propfind.headers["depth"] == "1"


@pytest.mark.asyncio
async def test_list_directory_refreshes_expired_token(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    token_endpoint: FakeTokenEndpoint,
) -> None:
    service = make_service(make_login("TT-expired"))

    assert await service.list_directory([]) == ["/uploads/"]
    assert token_endpoint.call_count == 1


@pytest.mark.asyncio
async def test_list_missing_directory(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
) -> None:
    service = make_service(make_login())

    with pytest.raises(ListingError) as exc_info:
        await service.list_directory(["missing"])

    assert exc_info.value.actual == 404


@pytest.mark.asyncio
async def test_list_invalid_multistatus(
    make_service: Callable[..., UploadService],
    make_login: Callable[..., UserLogin],
    dav_server: FakeDavServer,
) -> None:
    dav_server.force_status("PROPFIND", "/uploads/", 207)
    service = make_service(make_login())

    with pytest.raises(ListingError) as exc_info:
        await service.list_directory([])

    assert isinstance(exc_info.value.__cause__, ValueError)


def test_token_mode_requires_authenticator(config: WebDavConfig) -> None:
    http = AsyncHttpClient(config.webdav_url)
    session = SessionState(long_lived_token=LONG_LIVED_TOKEN)

    with pytest.raises(ValueError, match="authenticator"):
        UploadService(http, session, config)
