"""
Centralized configuration for objectschema.

Uses Pydantic BaseSettings for environment variable integration
and validation.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (OBJECTSCHEMA_*)
3. .env file
4. Default values

Example:
    from objectschema.config import get_config

    config = get_config()
    print(config.max_resolution_depth)  # From OBJECTSCHEMA_MAX_RESOLUTION_DEPTH or 64

    # Override at runtime
    config = get_config(log_format="text")
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObjectSchemaConfig(BaseSettings):
    """
    Central configuration for objectschema.

    Example:
        export OBJECTSCHEMA_LOG_LEVEL=debug
        export OBJECTSCHEMA_MAX_RESOLUTION_DEPTH=16
    """

    model_config = SettingsConfigDict(
        env_prefix="OBJECTSCHEMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level for objectschema",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format (json for log shippers, text for console)",
    )

    # Validation
    max_resolution_depth: int = Field(
        default=64,
        ge=1,
        le=128,
        description="Maximum nesting of cross-schema reference resolution per validate call",
    )


# Global singleton
_config: Optional[ObjectSchemaConfig] = None


def get_config(**overrides) -> ObjectSchemaConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.
    """
    global _config

    if overrides or _config is None:
        _config = ObjectSchemaConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
