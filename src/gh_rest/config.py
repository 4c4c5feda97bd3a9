"""Configuration loading and validation."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_BASE_URL = "https://api.github.com/"


class AuthConfig(BaseModel):
    """GitHub authentication configuration."""

    kind: str = Field(default="token", pattern=r"^(anonymous|token|bearer)$")
    token_env: str = "GITHUB_TOKEN"
    use_gh_cli: bool = True


class CacheConfig(BaseModel):
    """Response cache configuration."""

    enabled: bool = False
    max_entries: int = Field(default=1000, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    verbose: bool = False
    json_format: bool = False


class ClientConfig(BaseModel):
    """Root configuration model."""

    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = Field(default=30.0, gt=0)
    user_agent: str | None = None
    auth: AuthConfig = Field(default_factory=AuthConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        if not v.startswith(("http://", "https://")):
            msg = f"base_url must be an absolute http(s) URL, got '{v}'"
            raise ValueError(msg)
        return v


def load_config(path: Path) -> ClientConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Validated ClientConfig object.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValidationError: If the config is invalid.
    """
    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open() as f:
        raw_config: dict[str, Any] = yaml.safe_load(f) or {}

    return ClientConfig.model_validate(raw_config)
