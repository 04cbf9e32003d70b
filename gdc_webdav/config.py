"""
WebDAV uploader configuration.
"""

from dataclasses import dataclass

_SCHEMES = frozenset({"http", "https"})


@dataclass(frozen=True, kw_only=True)
class WebDavConfig:
    """
    Attributes:
        webdav_host: Hostname of the WebDAV storage.
        webdav_port: WebDAV port, typically 443.
        webdav_scheme: WebDAV scheme, typically https.
        gdc_host: Hostname of the REST API used for token exchange.
            Only needed when authenticating with a long-lived token.
        gdc_port: REST API port.
        gdc_scheme: REST API scheme.
        uploads_path: Root collection under which uploads are created.
        token_path: Token exchange endpoint path.
        token_cookie_path: Path the long-lived token cookie is scoped to.
        timeout: Request timeout in seconds.
        max_connections: Connection pool size for WebDAV requests.
        user_agent: User-Agent header value.
        error_body_limit: Maximum number of response body characters kept on errors.
    """

    webdav_host: str
    webdav_port: int = 443
    webdav_scheme: str = "https"
    gdc_host: str | None = None
    gdc_port: int = 443
    gdc_scheme: str = "https"
    uploads_path: str = "/uploads"
    token_path: str = "/gdc/account/token"
    token_cookie_path: str = "/gdc/account"
    timeout: float = 30.0
    max_connections: int = 10
    user_agent: str = "gdc-webdav-python/0.1"
    error_body_limit: int = 1024

    def __post_init__(self) -> None:
        if not self.webdav_host:
            msg = "webdav host cannot be empty"
            raise ValueError(msg)
        if self.gdc_host is not None and not self.gdc_host:
            msg = "gdc host cannot be empty"
            raise ValueError(msg)
        for name in ("webdav_port", "gdc_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                msg = f"{name} must be a valid port"
                raise ValueError(msg)
        for name in ("webdav_scheme", "gdc_scheme"):
            if getattr(self, name) not in _SCHEMES:
                msg = f"{name} must be one of {sorted(_SCHEMES)}"
                raise ValueError(msg)
        for name in ("uploads_path", "token_path", "token_cookie_path"):
            if not getattr(self, name).startswith("/"):
                msg = f"{name} must be an absolute path"
                raise ValueError(msg)
        if self.timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if self.max_connections <= 0:
            msg = "max_connections must be positive"
            raise ValueError(msg)
        if self.error_body_limit < 0:
            msg = "error_body_limit must be non-negative"
            raise ValueError(msg)

    @property
    def webdav_url(self) -> str:
        return f"{self.webdav_scheme}://{self.webdav_host}:{self.webdav_port}"

    @property
    def gdc_url(self) -> str | None:
        if self.gdc_host is None:
            return None
        return f"{self.gdc_scheme}://{self.gdc_host}:{self.gdc_port}"
