"""
DelayHook Configuration Management

Uses Pydantic v2 BaseSettings for type-safe configuration with support for
environment variables, .env files, and validation.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DelayHookSettings(BaseSettings):
    """
    DelayHook configuration with environment variable support and validation.

    Configuration priority:
    1. Explicit keyword arguments
    2. Environment variables (DELAYHOOK_*)
    3. .env file
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="DELAYHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # HTTP Listener
    host: str = Field(default="0.0.0.0", description="Address the HTTP API binds to")
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP API port")

    # Request Validation
    min_delay: float = Field(
        default=60.0,
        ge=0.0,
        description="Minimum accepted callback delay in seconds",
    )

    # Storage
    publish_buffer_size: int = Field(
        default=10,
        ge=1,
        le=100000,
        description="Capacity of the subscription buffer (save waits when full)",
    )
    id_strategy: str = Field(
        default="sequence", description="Callback id generation: 'sequence' or 'uuid'"
    )

    # Delivery
    request_timeout: float = Field(
        default=30.0,
        ge=0.1,
        le=600.0,
        description="Timeout for a single callback POST (seconds)",
    )
    delivery_retry_delay: float = Field(
        default=0.0,
        ge=0.0,
        le=3600.0,
        description="Base delay between delivery attempts (0 = retry immediately)",
    )
    delivery_retry_backoff: bool = Field(
        default=False, description="Apply exponential backoff to delivery retries"
    )
    delivery_retry_max_delay: Optional[float] = Field(
        default=None, ge=0.0, description="Upper bound for delivery retry delay (seconds)"
    )
    max_in_flight: int = Field(
        default=0,
        ge=0,
        description="Maximum concurrent callback executions (0 = unbounded)",
    )

    # Scheduler Intervals
    subscribe_retry_delay: float = Field(
        default=5.0,
        ge=0.0,
        le=300.0,
        description="Delay between attempts to subscribe to new callbacks (seconds)",
    )
    finalize_max_retries: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Additional attempts to mark a delivered callback as done",
    )
    finalize_retry_delay: float = Field(
        default=5.0,
        ge=0.0,
        le=300.0,
        description="Delay between finalization attempts (seconds)",
    )
    shutdown_timeout: float = Field(
        default=5.0,
        ge=0.0,
        le=300.0,
        description="Grace period for in-flight callbacks when stopping (seconds)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="simple", description="Log format: 'simple' or 'structured'"
    )
    log_file: Optional[str] = Field(
        default=None, description="Optional path of a rotating log file"
    )

    # Development/Testing
    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v):
        """Parse debug value from environment variables, handling empty strings."""
        if isinstance(v, str):
            if v.lower() in ("", "0", "false", "f", "no", "n"):
                return False
            elif v.lower() in ("1", "true", "t", "yes", "y"):
                return True
        return v

    environment: str = Field(
        default="production",
        description="Environment name (development, testing, production)",
    )

    @field_validator("delivery_retry_max_delay", mode="before")
    @classmethod
    def parse_max_delay(cls, v):
        """Treat an empty value as no upper bound."""
        if v == "":
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        valid_formats = ["simple", "structured"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of {valid_formats}")
        return v.lower()

    @field_validator("id_strategy")
    @classmethod
    def validate_id_strategy(cls, v):
        valid_strategies = ["sequence", "uuid"]
        if v.lower() not in valid_strategies:
            raise ValueError(f"id_strategy must be one of {valid_strategies}")
        return v.lower()


# Global settings instance
_settings: Optional[DelayHookSettings] = None


def get_settings(
    config_file: Optional[Path] = None, reload: bool = False
) -> DelayHookSettings:
    """
    Get DelayHook settings with caching.

    Args:
        config_file: Optional path to a .env style config file
        reload: Force reload settings from environment

    Returns:
        DelayHookSettings instance
    """
    global _settings

    if _settings is None or reload:
        try:
            if config_file and config_file.exists():
                _settings = DelayHookSettings(_env_file=str(config_file))
            else:
                _settings = DelayHookSettings()

        except ValidationError as e:
            raise ValueError(f"Invalid DelayHook configuration: {e}")

    return _settings


def configure(**kwargs) -> DelayHookSettings:
    """
    Configure DelayHook settings programmatically.

    Validates the provided settings, exports them as DELAYHOOK_* environment
    variables and reloads the settings cache.
    """
    if not kwargs:
        return get_settings()

    unknown = [key for key in kwargs if key not in DelayHookSettings.model_fields]
    if unknown:
        raise ValueError(f"Unknown DelayHook settings: {', '.join(unknown)}")

    # Validate settings upfront
    DelayHookSettings(**kwargs)

    for key, value in kwargs.items():
        env_key = f"DELAYHOOK_{key.upper()}"
        if value is None:
            os.environ.pop(env_key, None)
            continue
        os.environ[env_key] = str(value)

    return get_settings(reload=True)
