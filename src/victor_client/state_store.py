"""Small JSON file for client state kept between runs."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import RLock
from typing import Any

logger = logging.getLogger(__name__)


class StateStore:
    """
    Key/value state persisted as a JSON object.

    Holds the last working API URL, the session token and cached offers.
    With no path the state lives in memory only. A missing or unreadable
    file starts empty.
    """

    def __init__(self, path: str | Path | None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = RLock()
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable client state %s: %s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring client state %s: not a JSON object", self._path)
            return {}
        return raw

    def _flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True))
        os.replace(tmp_path, self._path)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value."""
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Write a value and persist."""
        with self._lock:
            self._data[key] = value
            self._flush()

    def delete(self, key: str) -> None:
        """Remove a value if present and persist."""
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()
