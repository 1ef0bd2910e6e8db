"""
Shared configuration management for the Salesforce connector.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", validation_alias=AliasChoices("CONNECTOR_ENV", "env"))
    log_level: str = Field(default="info", validation_alias=AliasChoices("CONNECTOR_LOG_LEVEL", "log_level"))

    # Observability
    metrics_enabled: bool = Field(default=True, validation_alias=AliasChoices("CONNECTOR_METRICS_ENABLED", "metrics_enabled"))


class ConnectorConfig(BaseConfig):
    """Credential cache, token exchange and REST client settings."""

    # Remote API
    api_version: str = Field(default="58.0", validation_alias=AliasChoices("CONNECTOR_API_VERSION", "api_version"))
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("CONNECTOR_HTTP_TIMEOUT_SECONDS", "http_timeout_seconds"),
    )

    # Credential lifetime policy
    assertion_lifetime_seconds: int = Field(
        default=180,
        gt=0,
        validation_alias=AliasChoices("CONNECTOR_ASSERTION_LIFETIME_SECONDS", "assertion_lifetime_seconds"),
    )
    refresh_lifetime_seconds: int = Field(
        default=7200,
        gt=0,
        validation_alias=AliasChoices("CONNECTOR_REFRESH_LIFETIME_SECONDS", "refresh_lifetime_seconds"),
    )
    safety_buffer_seconds: int = Field(
        default=30,
        ge=0,
        validation_alias=AliasChoices("CONNECTOR_SAFETY_BUFFER_SECONDS", "safety_buffer_seconds"),
    )

    # Descriptor source
    use_aws_secrets: bool = Field(default=False, validation_alias=AliasChoices("USE_AWS_SECRETS", "use_aws_secrets"))
    secret_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("SF_SECRET_NAME", "secret_name"))
    aws_region: str = Field(default="us-east-1", validation_alias=AliasChoices("AWS_REGION", "aws_region"))


def get_config(**overrides) -> ConnectorConfig:
    """Get connector configuration, applying explicit overrides on top of the environment."""
    return ConnectorConfig(**overrides)
