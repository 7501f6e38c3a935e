"""Server connection configuration."""

from __future__ import annotations

import base64

from pydantic import BaseModel

DEFAULT_PORT = 4096
DEFAULT_USERNAME = "opencode"


class ServerConfig(BaseModel, frozen=True):
    """Connection details for one server. Replaced wholesale, never mutated."""

    host: str = ""
    port: int = DEFAULT_PORT
    username: str = DEFAULT_USERNAME
    password: str = ""

    @property
    def is_valid(self) -> bool:
        """Return True when every field needed to connect is usable."""
        return (
            bool(self.host.strip())
            and 1 <= self.port <= 65535
            and bool(self.username.strip())
            and bool(self.password.strip())
        )

    @property
    def base_url(self) -> str:
        """Return the server root URL."""
        return f"http://{self.host}:{self.port}"

    def authorization(self) -> str:
        """Return the Basic-Auth header value for these credentials."""
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode("ascii")
        return f"Basic {token}"

    def redacted(self) -> str:
        """Describe the config for logs without leaking the password."""
        return f"{self.username}@{self.host}:{self.port}"
