"""Shared helpers for marketplace tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

TEST_JWT_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"


def make_config_yaml(tmp_path: Path, **overrides: Any) -> str:
    """Render a complete service config rooted in tmp_path."""
    values: dict[str, Any] = {
        "db_path": tmp_path / "victor.db",
        "log_dir": tmp_path / "logs",
        "token_expiry_seconds": 86400,
        "max_body_size": 1048576,
        "max_title_length": 200,
        "max_message_length": 2000,
    }
    values.update(overrides)
    return f"""\
service:
  name: "victor-marketplace"
  version: "0.1.0"
server:
  host: "0.0.0.0"
  port: 9000
  log_level: "info"
logging:
  level: "WARNING"
  directory: "{values["log_dir"]}"
database:
  path: "{values["db_path"]}"
auth:
  jwt_secret: "{TEST_JWT_SECRET}"
  jwt_algorithm: "HS256"
  token_expiry_seconds: {values["token_expiry_seconds"]}
  min_password_length: 6
  scrypt_n: 1024
  scrypt_r: 8
  scrypt_p: 1
request:
  max_body_size: {values["max_body_size"]}
limits:
  max_title_length: {values["max_title_length"]}
  max_description_length: 5000
  max_message_length: {values["max_message_length"]}
  max_comment_length: 500
  max_offer_message_length: 500
cors:
  allowed_origins:
    - "http://localhost:3000"
"""


def auth_header(token: str) -> dict[str, str]:
    """Build a bearer Authorization header."""
    return {"Authorization": f"Bearer {token}"}


def task_payload(**overrides: Any) -> dict[str, Any]:
    """A valid task creation body."""
    payload: dict[str, Any] = {
        "title": "Fix garden fence",
        "description": "Two broken panels need replacing before the weekend.",
        "category": "Home",
        "location": "Leeds",
        "budget": 120,
    }
    payload.update(overrides)
    return payload
