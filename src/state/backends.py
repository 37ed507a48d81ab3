from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol


logger = logging.getLogger(__name__)

DEFAULT_SESSION_DIR_ENV = "STOREFRONT_SESSION_DIR"


class BackendError(RuntimeError):
    """Base error for session backends."""


class BackendFullError(BackendError):
    """The backend refused a value because it exceeds its capacity."""


class SessionBackend(Protocol):
    """Session-scoped string key/value medium. All calls are synchronous."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemorySessionBackend:
    """
    Process-local backend, lost when the process exits.

    - `max_value_bytes` bounds the UTF-8 size of a single value; larger values
      raise `BackendFullError` and leave the previous value in place.
    """

    def __init__(self, *, max_value_bytes: Optional[int] = None) -> None:
        if max_value_bytes is not None and max_value_bytes <= 0:
            raise ValueError("max_value_bytes must be > 0")
        self._max_value_bytes = max_value_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._max_value_bytes is not None:
            size = len(value.encode("utf-8", errors="surrogatepass"))
            if size > self._max_value_bytes:
                raise BackendFullError(
                    f"value for '{key}' is {size} bytes; limit is {self._max_value_bytes}"
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def _default_session_file() -> Path:
    base = os.environ.get(DEFAULT_SESSION_DIR_ENV)
    if base:
        return Path(base) / "session.json"
    return Path(".cache") / "session.json"


class JsonFileSessionBackend:
    """
    Backend persisted to a single JSON file: { key: value, ... }.

    - Loaded lazily on first access; a missing or corrupt file starts empty.
    - Every `set`/`remove` rewrites the file. Write failures raise `BackendError`.
    - Useful for a CLI session that should survive restarts of the same
      process group; delete the file to end the session.
    """

    def __init__(self, path: Optional[os.PathLike[str] | str] = None) -> None:
        self._path = Path(path) if path else _default_session_file()
        self._data: Dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        except (OSError, ValueError):
            logger.warning("Session file %s is unreadable; starting empty", self._path)
            self._data = {}

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
        except OSError as ex:
            raise BackendError(f"Failed to write session file {self._path}") from ex

    def get(self, key: str) -> Optional[str]:
        self._ensure_loaded()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._ensure_loaded()
        previous = self._data.get(key)
        self._data[key] = value
        try:
            self._save()
        except BackendError:
            if previous is None:
                self._data.pop(key, None)
            else:
                self._data[key] = previous
            raise

    def remove(self, key: str) -> None:
        self._ensure_loaded()
        if self._data.pop(key, None) is not None:
            self._save()


__all__ = [
    "BackendError",
    "BackendFullError",
    "SessionBackend",
    "InMemorySessionBackend",
    "JsonFileSessionBackend",
]
