"""
Business logic services for gdc_webdav.
"""

from gdc_webdav.services.auth_service import (
    LONG_LIVED_TOKEN_COOKIE,
    SESSION_TOKEN_COOKIE,
    TokenAuthenticator,
)
from gdc_webdav.services.session import SessionState
from gdc_webdav.services.upload_service import UploadService

__all__ = [
    "LONG_LIVED_TOKEN_COOKIE",
    "SESSION_TOKEN_COOKIE",
    "SessionState",
    "TokenAuthenticator",
    "UploadService",
]
