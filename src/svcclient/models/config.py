"""Pydantic configuration models for svcclient."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

# Deadline applied when no timeout is configured
DEFAULT_TIMEOUT = 60.0


class HttpMethod(str, Enum):
    """HTTP verbs accepted by the client."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @property
    def has_body(self) -> bool:
        """Whether a payload is sent as the request body rather than the query string."""
        return self not in (HttpMethod.GET, HttpMethod.DELETE)


def _expand_env_var(value: Optional[str]) -> Optional[str]:
    """Expand environment variable references in a string.

    Supports $VAR and ${VAR} syntax. Returns original value if
    the env var is not set.
    """
    import os
    import re

    if value is None:
        return None

    pattern = r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)"

    def replace(match: re.Match) -> str:
        var_name = match.group(1) or match.group(2)
        return os.environ.get(var_name, match.group(0))

    return re.sub(pattern, replace, value)


class CredentialsConfig(BaseModel):
    """Username/password pair used to answer an authentication challenge.

    The password supports environment variable expansion, e.g.
        --password '${API_PASSWORD}'
    """

    username: Optional[str] = Field(None, description="Username for basic auth")
    password: Optional[str] = Field(None, description="Password for basic auth")

    model_config = {"extra": "forbid"}

    def model_post_init(self, __context: object) -> None:
        """Expand environment variables in the password after init."""
        if self.password:
            object.__setattr__(self, "password", _expand_env_var(self.password))

    @property
    def is_configured(self) -> bool:
        """True when a challenge can be answered (non-empty username, any password)."""
        return bool(self.username) and self.password is not None


class ClientConfig(BaseModel):
    """
    Root configuration model for AsyncServiceClient.

    Example:
        config = ClientConfig(
            base_url="https://api.example.com",
            timeout=15,
            credentials=CredentialsConfig(username="svc", password="$SVC_PASSWORD"),
        )

    YAML format:
        base_url: https://api.example.com
        timeout: 15
        credentials:
          username: svc
          password: ${SVC_PASSWORD}
    """

    base_url: Optional[str] = Field(None, description="Base URL for relative request paths")
    content_type: str = Field("application/json", description="Wire content type for Accept/Content-Type")
    timeout: Optional[float] = Field(
        None,
        gt=0,
        description="Per-call deadline in seconds (None = 60s)",
    )
    user_agent: Optional[str] = Field(None, description="Custom User-Agent header")
    proxy: Optional[str] = Field(None, description="HTTP/HTTPS proxy URL")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Static headers included in every request",
    )
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO",
        description="Logging level",
    )
    log_file: Optional[Path] = Field(None, description="Log file path")

    model_config = {"extra": "forbid"}

    @property
    def effective_timeout(self) -> float:
        """Deadline in seconds, falling back to DEFAULT_TIMEOUT."""
        return self.timeout if self.timeout is not None else DEFAULT_TIMEOUT

    def to_yaml(self) -> str:
        """Serialize config to YAML string."""
        import yaml

        return yaml.dump(self.model_dump(mode="json", exclude_none=True), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> ClientConfig:
        """Load config from YAML string."""
        import yaml

        data = yaml.safe_load(yaml_str) or {}
        return cls.model_validate(data)

    @classmethod
    def from_yaml_file(cls, path: Path) -> ClientConfig:
        """Load config from a YAML file."""
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))
