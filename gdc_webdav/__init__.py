"""
GoodData WebDAV uploader.

An async Python client uploading files to WebDAV storage, authenticated either
with static credentials or with a long-lived token whose short-lived session
tokens are refreshed transparently.

Example:
    ```python
    from gdc_webdav import WebDavUploader

    async with WebDavUploader.with_token(
        "secure-di.gooddata.com", "secure.gooddata.com", sst_token
    ) as uploader:
        await uploader.transfer_file("report.csv", "tmp", "report.csv", "text/csv")
    ```
"""

from gdc_webdav.client import WebDavUploader
from gdc_webdav.config import WebDavConfig
from gdc_webdav.exceptions import (
    AuthenticationError,
    DavRequestError,
    InvalidCredentialsError,
    ListingError,
    MissingSessionTokenError,
    UploadError,
    WebDavError,
)
from gdc_webdav.models.auth import AuthMode, StaticCredentials, UserLogin
from gdc_webdav.models.upload import UploadTarget

__version__ = "0.1.0"

__all__ = [
    # Main client
    "WebDavUploader",
    "WebDavConfig",
    # Models
    "AuthMode",
    "StaticCredentials",
    "UploadTarget",
    "UserLogin",
    # Exceptions
    "WebDavError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "MissingSessionTokenError",
    "DavRequestError",
    "UploadError",
    "ListingError",
]
