"""
Domain models for gdc_webdav.

Login, credentials and upload targets, all frozen dataclasses.
"""

from gdc_webdav.models.auth import AuthMode, StaticCredentials, UserLogin
from gdc_webdav.models.upload import UploadTarget, split_remote_dir

__all__ = [
    # Auth
    "AuthMode",
    "StaticCredentials",
    "UserLogin",
    # Upload
    "UploadTarget",
    "split_remote_dir",
]
