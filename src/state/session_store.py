from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Callable, Optional, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from common.checksum import checksum
from common.obfuscation import Base64Transform, FernetTransform, PayloadTransform

from .backends import BackendError, SessionBackend
from .models import StoredEnvelope


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Environment variable names for convenience configuration
ENV_TTL_MS = "STOREFRONT_SESSION_TTL_MS"
ENV_FERNET_KEY = "STOREFRONT_FERNET_KEY"

DEFAULT_TTL_MS = 60 * 60 * 1000  # 1 hour


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dump_value_json(value: Any) -> str:
    # Canonical JSON: compact, non-ASCII kept as-is, NaN/Infinity rejected
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


class SecureSessionStore:
    """
    Tamper-evident, expiring key/value store over a session backend.

    Each value is written as a `StoredEnvelope`:
        payload     = transform.obfuscate(json(value))
        fingerprint = checksum(payload)
        timestamp   = now() in epoch ms

    Reads check, in order: expiry (`now - timestamp > ttl_ms`), fingerprint,
    then decode. Any failure removes the key and reads as None, so callers
    never see a decode error.

    Writes never raise. `write()` returns False when the value could not be
    serialized or the backend rejected it; callers that don't care may ignore
    the result.

    The default transform and checksum detect accidental corruption only. Use
    `FernetTransform` when payloads must not be readable without a key.

    Environment variables (optional, see `from_env`)
    - `STOREFRONT_SESSION_TTL_MS`: envelope lifetime in milliseconds
    - `STOREFRONT_FERNET_KEY`:     switch to the Fernet transform with this key
    """

    def __init__(
        self,
        backend: SessionBackend,
        *,
        transform: Optional[PayloadTransform] = None,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if ttl_ms < 0:
            raise ValueError("ttl_ms must be >= 0")
        self._backend = backend
        self._transform = transform or Base64Transform()
        self._ttl_ms = ttl_ms
        self._clock = clock

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls, backend: SessionBackend, **kwargs: Any) -> "SecureSessionStore":
        raw_ttl = os.environ.get(ENV_TTL_MS)
        if raw_ttl not in (None, ""):
            try:
                ttl_ms = int(raw_ttl)
            except ValueError as ex:
                raise RuntimeError(f"{ENV_TTL_MS} must be an integer, got {raw_ttl!r}") from ex
            if ttl_ms < 0:
                raise RuntimeError(f"{ENV_TTL_MS} must be >= 0, got {raw_ttl!r}")
            kwargs.setdefault("ttl_ms", ttl_ms)
        fkey = os.environ.get(ENV_FERNET_KEY)
        if fkey and "transform" not in kwargs:
            try:
                kwargs["transform"] = FernetTransform(fkey)
            except ValueError as ex:
                raise RuntimeError(f"{ENV_FERNET_KEY} is not a valid Fernet key") from ex
        return cls(backend, **kwargs)

    # -------- Core operations --------
    def write(self, key: str, value: Any) -> bool:
        """Persist `value` under `key`, replacing any prior envelope.

        Returns True when the envelope reached the backend.
        """
        try:
            serialized = _dump_value_json(value)
        except (TypeError, ValueError, RecursionError):
            logger.exception("Error serializing item '%s' for session storage", key)
            return False

        payload = self._transform.obfuscate(serialized)
        if not payload:
            logger.error("Error saving item '%s': payload could not be obfuscated", key)
            return False

        envelope = StoredEnvelope(
            payload=payload,
            fingerprint=checksum(payload),
            timestamp=self._clock(),
        )
        try:
            self._backend.set(key, envelope.model_dump_json())
        except BackendError:
            logger.exception("Error saving item '%s' to session storage", key)
            return False
        return True

    def read(self, key: str, type_: Optional[Type[T]] = None) -> Optional[Any]:
        """Return the value stored under `key`, or None.

        If `type_` is given, the decoded value is validated into that type
        (e.g. `list[CartItem]`); a mismatch counts as a decode failure.
        """
        raw = self._backend.get(key)
        if raw is None:
            return None

        try:
            envelope = StoredEnvelope.model_validate_json(raw)
        except ValidationError:
            logger.error("Stored item '%s' is not a valid envelope; discarding", key)
            self._discard(key)
            return None

        # 1. Expiry
        if self.is_expired(envelope):
            logger.warning("Data for key '%s' has expired.", key)
            self._discard(key)
            return None

        # 2. Integrity
        if checksum(envelope.payload) != envelope.fingerprint:
            logger.error(
                "Data integrity check failed for key '%s'. Data may have been tampered with or corrupted.",
                key,
            )
            self._discard(key)
            return None

        # 3. Decode
        try:
            value = json.loads(self._transform.deobfuscate(envelope.payload))
            if type_ is not None:
                value = TypeAdapter(type_).validate_python(value)
        except (ValueError, ValidationError, RecursionError):
            # JSONDecodeError is a ValueError; empty deobfuscation lands here too
            logger.error("Error decoding item '%s' from session storage; discarding", key)
            self._discard(key)
            return None
        return value

    def remove(self, key: str) -> None:
        """Delete any envelope for `key`; absent keys are a no-op."""
        self._backend.remove(key)

    def _discard(self, key: str) -> None:
        # Cleanup after a failed read; the read itself still reports None
        try:
            self._backend.remove(key)
        except BackendError:
            logger.exception("Error removing item '%s' from session storage", key)

    def is_expired(self, envelope: StoredEnvelope) -> bool:
        # Age equal to the TTL is still valid
        return self._clock() - envelope.timestamp > self._ttl_ms


__all__ = [
    "SecureSessionStore",
    "DEFAULT_TTL_MS",
    "ENV_TTL_MS",
    "ENV_FERNET_KEY",
]
