"""
Configuration management for tfectl.

Non-secret defaults may come from a YAML file, credentials from environment
variables or command-line flags. Settings are built once per invocation and
passed explicitly; there is no module-level instance.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tfectl.api.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "~/.config/tfectl/config.yaml"


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(os.environ.get("TFECTL_CONFIG", DEFAULT_CONFIG_PATH)).expanduser()
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


class Settings(BaseSettings):
    """Connection and client behaviour settings."""

    model_config = SettingsConfigDict(
        env_prefix="TFE_",
        extra="ignore",
        frozen=True,
    )

    # Service
    url: str = Field(default="", description="Service address, e.g. https://app.terraform.io")
    token: str = Field(default="", description="API token")
    org: str = Field(default="", description="Organization all operations are scoped to")

    # Logging
    log_level: str = Field(default="WARNING")
    json_logs: bool = Field(default=False, description="Render log lines as JSON")

    # Transport
    page_size: int = Field(default=100, description="page[size] sent with list requests")
    request_timeout_seconds: float = Field(default=30.0)
    retry_server_errors: bool = Field(
        default=True, description="Retry requests that fail with a 5xx status"
    )
    retry_max_attempts: int = Field(default=10)
    retry_wait_min_seconds: float = Field(default=0.1)
    retry_wait_max_seconds: float = Field(default=0.4)

    # Log streaming
    log_poll_min_seconds: float = Field(
        default=0.5, description="Initial wait when a log stream has no new data"
    )
    log_poll_max_seconds: float = Field(default=2.0)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: flags, then env vars, then YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )

    @property
    def api_url(self) -> str:
        """Base URL of the v2 API."""
        return f"{self.url.rstrip('/')}/api/v2"

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless both address and token are set."""
        missing = [name for name in ("url", "token") if not getattr(self, name).strip()]
        if missing:
            names = " or ".join(f"TFE_{name.upper()}" for name in missing)
            raise ConfigurationError(f"{names} are missing")


def load_settings(**overrides: Any) -> Settings:
    """Build Settings, letting non-empty overrides (CLI flags) win over the environment."""
    return Settings(**{k: v for k, v in overrides.items() if v not in (None, "")})
