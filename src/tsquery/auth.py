"""Authentication providers that attach credentials to outgoing requests."""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class AuthProvider(ABC):
    """
    Attaches credentials and headers to a request.

    Providers are shared by every adapter cloned from the same base, so
    set_headers must be safe to call concurrently and must not keep
    per-request state.
    """

    @abstractmethod
    def set_headers(self, request: httpx.Request, set_auth_header: bool) -> None:
        """
        Add headers to the request.

        Args:
            request: Request about to be sent
            set_auth_header: Whether the Authorization header should be set
        """
        pass


@dataclass
class AuthConfig(AuthProvider):
    """
    Static credentials for a datasource.

    Supports basic auth, bearer tokens (inline or read from a file) and
    arbitrary extra headers. Basic auth and bearer tokens are exclusive.
    """

    username: Optional[str] = None
    password: Optional[str] = None
    bearer_token: Optional[str] = None
    bearer_token_file: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        has_basic = bool(self.username or self.password)
        has_bearer = bool(self.bearer_token or self.bearer_token_file)
        if has_basic and has_bearer:
            raise ValueError("basic auth and bearer token cannot be set at the same time")
        if self.bearer_token and self.bearer_token_file:
            raise ValueError("bearer_token and bearer_token_file cannot be set at the same time")

    def set_headers(self, request: httpx.Request, set_auth_header: bool) -> None:
        for name, value in self.headers.items():
            request.headers[name] = value
        if not set_auth_header:
            return
        auth_header = self.authorization_header()
        if auth_header:
            request.headers["Authorization"] = auth_header

    def authorization_header(self) -> Optional[str]:
        """Build the Authorization header value, if any credentials are set."""
        if self.username or self.password:
            raw = f"{self.username or ''}:{self.password or ''}".encode()
            return "Basic " + base64.b64encode(raw).decode("ascii")

        token = self.bearer_token
        if self.bearer_token_file:
            # Re-read on every request so rotated tokens are picked up
            try:
                token = Path(self.bearer_token_file).read_text().strip()
            except OSError as e:
                logger.warning(f"Cannot read bearer token file {self.bearer_token_file}: {e}")
                return None
        if token:
            return f"Bearer {token}"
        return None
