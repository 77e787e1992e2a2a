"""
Shared YAML configuration loading.

Settings models carry ZERO defaults. A missing key fails at load time.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from collections.abc import Callable

REDACTION_MARKER = "***REDACTED***"

_SENSITIVE_KEYS: frozenset[str] = frozenset({"jwt_secret", "password", "secret", "token"})

SettingsT = TypeVar("SettingsT", bound=BaseModel)


class StrictModel(BaseModel):
    """Settings section that rejects unknown keys."""

    model_config = ConfigDict(extra="forbid")


def get_config_path(env_var_name: str, default_filename: str) -> Path:
    """Resolve the config file path from an environment variable or the working directory."""
    configured = os.environ.get(env_var_name)
    if configured:
        return Path(configured)
    return Path.cwd() / default_filename


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Read a YAML mapping from disk."""
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise FileNotFoundError(msg)
    with path.open() as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        msg = f"Configuration file must contain a mapping: {path}"
        raise ValueError(msg)
    return raw


def create_settings_loader(
    settings_cls: type[SettingsT],
    path_resolver: Callable[[], Path],
) -> tuple[Callable[[], SettingsT], Callable[[], None]]:
    """
    Build a cached settings getter and its cache-clearing companion.

    Returns:
        ``(get_settings, clear_settings_cache)``
    """
    cache: dict[str, SettingsT | None] = {"settings": None}

    def get_settings() -> SettingsT:
        cached = cache["settings"]
        if cached is None:
            cached = settings_cls(**load_yaml_config(path_resolver()))
            cache["settings"] = cached
        return cached

    def clear_settings_cache() -> None:
        cache["settings"] = None

    return get_settings, clear_settings_cache


def _redact(value: Any, marker: str) -> Any:
    if isinstance(value, dict):
        return {
            key: marker if key in _SENSITIVE_KEYS else _redact(item, marker)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item, marker) for item in value]
    return value


def get_safe_model_config(settings: BaseModel, marker: str) -> dict[str, Any]:
    """Dump a settings model with sensitive values replaced by marker."""
    return _redact(settings.model_dump(), marker)
