from __future__ import annotations

import base64
import logging
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken


logger = logging.getLogger(__name__)


class PayloadTransform(Protocol):
    def obfuscate(self, text: str) -> str: ...

    def deobfuscate(self, data: str) -> str: ...


def obfuscate(text: str) -> str:
    """Encode `text` as base64 over its UTF-8 bytes.

    This is an obfuscation layer only. Anyone holding the stored value can
    reverse it; it provides no confidentiality.

    Returns "" when `text` cannot be encoded (e.g. lone surrogates).
    """
    try:
        return base64.b64encode(text.encode("utf-8")).decode("ascii")
    except UnicodeEncodeError:
        logger.exception("Obfuscation failed")
        return ""


def deobfuscate(data: str) -> str:
    """Reverse `obfuscate`. Returns "" on malformed input."""
    try:
        return base64.b64decode(data, validate=True).decode("utf-8")
    except (ValueError, TypeError):
        # binascii.Error and UnicodeDecodeError are both ValueErrors
        logger.error("Deobfuscation failed: malformed payload")
        return ""


class Base64Transform:
    """Default payload transform wrapping `obfuscate`/`deobfuscate`."""

    def obfuscate(self, text: str) -> str:
        return obfuscate(text)

    def deobfuscate(self, data: str) -> str:
        return deobfuscate(data)


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


class FernetTransform:
    """
    Opt-in payload transform using Fernet (AES-CBC + HMAC-SHA256).

    Unlike the default transform, payloads cannot be reversed without the key
    and a payload written under another key reads back as "". Same failure
    contract as `deobfuscate`: never raises on bad input.
    """

    def __init__(self, key: str | bytes) -> None:
        self._fernet = _to_fernet(key)

    def obfuscate(self, text: str) -> str:
        try:
            return self._fernet.encrypt(text.encode("utf-8")).decode("ascii")
        except UnicodeEncodeError:
            logger.exception("Encryption failed")
            return ""

    def deobfuscate(self, data: str) -> str:
        try:
            return self._fernet.decrypt(data.encode("ascii")).decode("utf-8")
        except (InvalidToken, ValueError, TypeError, AttributeError):
            logger.error("Decryption failed: invalid Fernet token")
            return ""


__all__ = [
    "PayloadTransform",
    "Base64Transform",
    "FernetTransform",
    "obfuscate",
    "deobfuscate",
]
