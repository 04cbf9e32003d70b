from collections.abc import AsyncIterator, Callable
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from gdc_webdav.api.cookies import CookieJar
from gdc_webdav.api.http_client import AsyncHttpClient
from gdc_webdav.config import WebDavConfig
from gdc_webdav.models.auth import UserLogin
from gdc_webdav.services.auth_service import TokenAuthenticator
from gdc_webdav.tests.utils.transports import FakeDavServer, FakeTokenEndpoint

WEBDAV_HOST = "secure-di.gooddata.com"
GDC_HOST = "secure.gooddata.com"
LONG_LIVED_TOKEN = "T1"
SESSION_TOKEN = "TT-initial"


@pytest.fixture
def config() -> WebDavConfig:
    return WebDavConfig(webdav_host=WEBDAV_HOST, gdc_host=GDC_HOST)


@pytest.fixture
def dav_server() -> FakeDavServer:
    return FakeDavServer(valid_tokens={SESSION_TOKEN})


@pytest.fixture
def token_endpoint(dav_server: FakeDavServer) -> FakeTokenEndpoint:
    # Shares the event log so ordering across both hosts can be asserted.
    return FakeTokenEndpoint(LONG_LIVED_TOKEN, dav_server=dav_server, events=dav_server.events)


@pytest.fixture
def make_login() -> Callable[..., UserLogin]:
    def _make(session_token: str = SESSION_TOKEN, profile_uri: str | None = None) -> UserLogin:
        return UserLogin(
            profile_uri=profile_uri,
            long_lived_token=LONG_LIVED_TOKEN,
            session_token=session_token,
        )

    return _make


@pytest.fixture
def mock_authenticator(make_login: Callable[..., UserLogin]) -> Mock:
    authenticator = Mock(spec=TokenAuthenticator)
    authenticator.authenticate = AsyncMock(return_value=make_login("TT-fresh"))
    return authenticator


@pytest_asyncio.fixture
async def dav_http(
    config: WebDavConfig, dav_server: FakeDavServer
) -> AsyncIterator[AsyncHttpClient]:
    client = AsyncHttpClient(config.webdav_url, cookies=CookieJar(), transport=dav_server)
    async with client:
        yield client
