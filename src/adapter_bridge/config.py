"""Configuration management for Adapter Bridge using Pydantic.

This module provides type-safe configuration models for the service
connection, fetch and deploy behaviour, performance tuning and logging.
Configuration objects are passed explicitly to the components that need
them.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from adapter_bridge.resources import load_definitions_from_yaml


class ServiceConfig(BaseModel):
    """Connection settings for the SaaS service."""

    url: str = Field(..., description="Service base URL")
    token: str = Field(..., description="API authentication token")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    timeout: int = Field(default=30, ge=1, le=1200, description="API request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        if not v.startswith("https://"):
            raise ValueError("URL should use HTTPS for security")
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate token is not empty."""
        if not v or v.strip() == "":
            raise ValueError("Token cannot be empty")
        return v


class FetchConfig(BaseModel):
    """Fetch options."""

    include_types: list[str] | None = Field(
        default=None, description="Kinds to fetch (default: every kind with a listing endpoint)"
    )
    hide_types: bool = Field(
        default=True, description="Mark synthetic order records as hidden"
    )


class DeployConfig(BaseModel):
    """Deploy options."""

    max_concurrent: int = Field(
        default=10, ge=1, le=50, description="Maximum changes deployed concurrently"
    )


class PerformanceConfig(BaseModel):
    """Performance tuning configuration."""

    max_concurrent_kinds: int = Field(
        default=5, ge=1, le=20, description="Maximum resource kinds fetched concurrently"
    )
    rate_limit: int = Field(default=20, ge=1, le=100, description="Requests per second limit")
    http_max_connections: int = Field(
        default=50,
        ge=10,
        le=200,
        description="Maximum number of connections in the connection pool",
    )
    http_max_keepalive_connections: int = Field(
        default=20,
        ge=5,
        le=100,
        description="Maximum number of keepalive connections",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(
        default="DEBUG",
        description="File log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(default="console", description="Log format (json or console)")
    file: str | None = Field(default=None, description="Log file path")

    # Payload logging options (for debugging)
    log_payloads: bool = Field(
        default=False,
        description=(
            "Enable request/response payload logging at DEBUG level. "
            "WARNING: May log sensitive data (tokens will be redacted)."
        ),
    )
    max_payload_size: int = Field(
        default=10000,
        ge=100,
        le=1000000,
        description="Maximum payload size (characters) to log. Larger payloads will be truncated.",
    )

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class AdapterConfig(BaseSettings):
    """Main adapter configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ADAPTER_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    adapter: str = Field(..., description="Adapter name (zendesk, jira, salesforce)")
    service: ServiceConfig = Field(..., description="Service connection")

    fetch: FetchConfig = Field(default_factory=FetchConfig, description="Fetch configuration")
    deploy: DeployConfig = Field(default_factory=DeployConfig, description="Deploy configuration")
    performance: PerformanceConfig = Field(
        default_factory=PerformanceConfig, description="Performance configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    # Resource definition overrides (YAML, same keys as the adapter tables)
    definitions_file: str | None = Field(
        default=None, description="YAML file overriding resource definitions"
    )

    @field_validator("adapter")
    @classmethod
    def validate_adapter(cls, v: str) -> str:
        return v.strip().lower()

    def load_definition_overrides(self) -> dict[str, dict[str, Any]]:
        """Read ``definitions_file``; empty when none is configured.

        Raises:
            ConfigurationError: If the configured file is missing or malformed
        """
        if not self.definitions_file:
            return {}
        return load_definitions_from_yaml(self.definitions_file)


def load_config_from_yaml(config_path: str | Path) -> AdapterConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        AdapterConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ValueError(f"Empty configuration file: {config_path}")

    config_data = _expand_env_vars(config_data)

    return AdapterConfig(**config_data)


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config data.

    Supports ${VAR_NAME} syntax for environment variable substitution.
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data
