"""Client configuration loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

from victor_commons.config import StrictModel, get_config_path, load_yaml_config

if TYPE_CHECKING:
    from pathlib import Path


class ApiConfig(StrictModel):
    """API endpoint discovery and retry configuration."""

    endpoints: list[str]
    probe_path: str
    probe_timeout_seconds: float
    request_timeout_seconds: float
    retries: int
    retry_backoff_seconds: float
    check_interval_seconds: float


class NetworkConfig(StrictModel):
    """Connectivity monitoring configuration."""

    probe_url: str
    check_interval_seconds: float
    timeout_seconds: float


class StorageConfig(StrictModel):
    """Local client state persistence."""

    state_path: str | None


class ClientSettings(StrictModel):
    """Root client configuration. Every section is required."""

    api: ApiConfig
    network: NetworkConfig
    storage: StorageConfig


def load_client_settings(config_path: Path | None = None) -> ClientSettings:
    """Load ClientSettings from YAML (``VICTOR_CLIENT_CONFIG`` or ./client.yaml)."""
    if config_path is None:
        config_path = get_config_path(
            env_var_name="VICTOR_CLIENT_CONFIG",
            default_filename="client.yaml",
        )
    return ClientSettings(**load_yaml_config(config_path))
