from __future__ import annotations

from typing import Iterator


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def _code_units(text: str) -> Iterator[int]:
    # Iterate UTF-16 code units so astral characters hash as surrogate pairs
    raw = text.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(raw), 2):
        yield raw[i] | (raw[i + 1] << 8)


def checksum(text: str) -> str:
    """Return a 32-bit rolling checksum of `text` as a decimal string.

    h = int32(h * 31 + c) over every UTF-16 code unit, starting at 0.
    Used to detect accidental corruption of stored payloads. It is not a
    cryptographic hash and collisions are expected.
    """
    h = 0
    for c in _code_units(text):
        h = _to_int32(h * 31 + c)
    return str(h)


__all__ = ["checksum"]
