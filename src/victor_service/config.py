"""
Configuration management for the marketplace service.

Loads configuration from YAML with ZERO defaults.
Every value must be explicitly specified or startup fails.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from victor_commons.config import (
    REDACTION_MARKER,
    StrictModel,
    create_settings_loader,
    get_safe_model_config,
)
from victor_commons.config import (
    get_config_path as resolve_config_path,
)

if TYPE_CHECKING:
    from pathlib import Path


class ServiceConfig(StrictModel):
    """Service identity configuration."""

    name: str
    version: str


class ServerConfig(StrictModel):
    """HTTP server configuration."""

    host: str
    port: int
    log_level: str


class LoggingConfig(StrictModel):
    """Logging configuration."""

    level: str
    directory: str


class DatabaseConfig(StrictModel):
    """Database configuration."""

    path: str


class AuthConfig(StrictModel):
    """Password hashing and session token configuration."""

    jwt_secret: str
    jwt_algorithm: str
    token_expiry_seconds: int
    min_password_length: int
    scrypt_n: int
    scrypt_r: int
    scrypt_p: int


class RequestConfig(StrictModel):
    """Request handling configuration."""

    max_body_size: int


class LimitsConfig(StrictModel):
    """Field length limits."""

    max_title_length: int
    max_description_length: int
    max_message_length: int
    max_comment_length: int
    max_offer_message_length: int


class CorsConfig(StrictModel):
    """Cross-origin configuration for the browser frontend."""

    allowed_origins: list[str]


class Settings(StrictModel):
    """
    Root configuration container.

    All fields are REQUIRED. No defaults exist.
    Missing fields cause immediate startup failure.
    """

    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    database: DatabaseConfig
    auth: AuthConfig
    request: RequestConfig
    limits: LimitsConfig
    cors: CorsConfig


def get_config_path() -> Path:
    """Determine configuration file path."""
    return resolve_config_path(
        env_var_name="CONFIG_PATH",
        default_filename="config.yaml",
    )


get_settings, clear_settings_cache = create_settings_loader(Settings, get_config_path)  # nosemgrep


def get_safe_config() -> dict[str, Any]:
    """Get configuration with sensitive values redacted."""
    return get_safe_model_config(get_settings(), REDACTION_MARKER)
