import os

import pytest

REQUIRED_ENV = ("GDC_WEBDAV_HOST", "GDC_HOST", "GDC_SST_TOKEN")


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    missing = not all(os.getenv(name) for name in REQUIRED_ENV)
    if not missing:
        return
    mark_expr = getattr(config.option, "markexpr", "")
    if "integration" in mark_expr:
        return
    skip = pytest.mark.skip(reason="GDC_WEBDAV_HOST / GDC_HOST / GDC_SST_TOKEN not set")
    for item in items:
        if item.get_closest_marker("integration"):
            item.add_marker(skip)


@pytest.fixture(scope="session")
def gdc_environment() -> dict[str, str]:
    values = {name: os.getenv(name, "") for name in REQUIRED_ENV}
    if not all(values.values()):
        pytest.fail(f"{', '.join(REQUIRED_ENV)} must be set to run integration tests.")
    return values


@pytest.fixture(scope="session")
def webdav_credentials() -> tuple[str, str]:
    username = os.getenv("GDC_WEBDAV_USERNAME")
    password = os.getenv("GDC_WEBDAV_PASSWORD")
    if not username or not password:
        pytest.skip("GDC_WEBDAV_USERNAME / GDC_WEBDAV_PASSWORD not set")
    return username, password
