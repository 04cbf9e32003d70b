"""
HTTP plumbing layer.

Provides the async HTTP client, the session cookie jar, cookie validation
policies and the multi-status parser.
"""

from gdc_webdav.api.cookie_policy import (
    CookiePredicate,
    PredicateCookiePolicy,
    accept_token_path,
    default_accept,
    path_prefix_match,
)
from gdc_webdav.api.cookies import Cookie, CookieJar
from gdc_webdav.api.http_client import AsyncHttpClient, DavResponse, sanitize_for_log
from gdc_webdav.api.multistatus import parse_multistatus

__all__ = [
    "AsyncHttpClient",
    "Cookie",
    "CookieJar",
    "CookiePredicate",
    "DavResponse",
    "PredicateCookiePolicy",
    "accept_token_path",
    "default_accept",
    "parse_multistatus",
    "path_prefix_match",
    "sanitize_for_log",
]
