"""Configuration for the mcpd client.

Settings come from MCPD_-prefixed environment variables, an optional
.env file, or a YAML file. Values passed directly to McpdClient take
precedence over all of them.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CONFIG_PATH = "config/mcpd.yaml"


class ClientSettings(BaseSettings):
    """mcpd client configuration."""
    api_endpoint: str = Field(default="http://localhost:8090", description="mcpd daemon base URL")
    api_key: Optional[str] = Field(default=None, description="Bearer token for the daemon")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")

    # Caching
    health_cache_ttl: float = Field(default=10.0, ge=0, description="Health cache TTL in seconds")
    health_cache_max: int = Field(default=100, gt=0)
    function_cache_max: int = Field(default=1000, gt=0)

    # Retries apply to idempotent GET requests only
    retry_attempts: int = Field(default=3, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="MCPD_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ClientSettings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)


@lru_cache
def get_settings() -> ClientSettings:
    """Get cached client settings."""
    config_path = os.environ.get("MCPD_CONFIG_PATH", DEFAULT_CONFIG_PATH)
    return ClientSettings.from_yaml(config_path)
