from __future__ import annotations

import json
import logging
import shutil
from typing import List

import pytest
from cryptography.fernet import Fernet

from common.checksum import checksum
from common.obfuscation import FernetTransform, obfuscate
from state.backends import InMemorySessionBackend, JsonFileSessionBackend
from state.models import CartItem
from state.session_store import DEFAULT_TTL_MS, SecureSessionStore


T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, t: int = T0) -> None:
        self.t = t

    def __call__(self) -> int:  # epoch milliseconds
        return self.t

    def advance(self, dt: int) -> None:
        self.t += dt


def _make(ttl_ms: int = DEFAULT_TTL_MS):
    backend = InMemorySessionBackend()
    clock = FakeClock()
    store = SecureSessionStore(backend, ttl_ms=ttl_ms, clock=clock)
    return store, backend, clock


def _raw(backend: InMemorySessionBackend, key: str) -> dict:
    return json.loads(backend.get(key))


def test_cart_scenario_roundtrip():
    store, _, _ = _make()
    cart = [{"id": 1, "name": "Filet", "price": 52.99, "quantity": 2}]

    assert store.write("cart", cart) is True
    assert store.read("cart") == [{"id": 1, "name": "Filet", "price": 52.99, "quantity": 2}]


@pytest.mark.parametrize(
    "value",
    [
        None,
        0,
        "plain",
        "ünïcødé \U0001F969",
        [1, 2.5, True, None],
        {"nested": {"list": [{"a": 1}], "empty": {}}},
    ],
)
def test_roundtrip_json_values(value):
    store, _, _ = _make()
    store.write("k", value)
    assert store.read("k") == value


def test_envelope_shape_on_the_wire():
    store, backend, _ = _make()
    store.write("k", {"a": 1})

    raw = _raw(backend, "k")
    assert set(raw) == {"payload", "fingerprint", "timestamp"}
    assert raw["payload"] == obfuscate('{"a":1}')
    assert raw["fingerprint"] == checksum(raw["payload"])
    assert raw["timestamp"] == T0


def test_read_missing_returns_none():
    store, _, _ = _make()
    assert store.read("nope") is None


def test_expired_is_removed(caplog):
    store, backend, clock = _make(ttl_ms=1000)
    store.write("k", [1])

    clock.advance(1001)
    with caplog.at_level(logging.WARNING):
        assert store.read("k") is None
    assert "expired" in caplog.text
    assert "k" not in backend
    assert store.read("k") is None


def test_age_equal_to_ttl_is_still_valid():
    store, _, clock = _make(ttl_ms=1000)
    store.write("k", [1])

    clock.advance(1000)
    assert store.read("k") == [1]


def test_expiry_checked_before_integrity(caplog):
    store, backend, clock = _make(ttl_ms=1000)
    store.write("k", [1])
    raw = _raw(backend, "k")
    raw["fingerprint"] = "0"
    backend.set("k", json.dumps(raw))

    clock.advance(5000)
    with caplog.at_level(logging.WARNING):
        assert store.read("k") is None
    assert "expired" in caplog.text
    assert "tampered" not in caplog.text


def test_tampered_payload_is_rejected(caplog):
    store, backend, _ = _make()
    store.write("cart", [{"id": 1, "quantity": 2}])
    raw = _raw(backend, "cart")
    raw["payload"] = obfuscate('[{"id":1,"quantity":10}]')
    backend.set("cart", json.dumps(raw))

    with caplog.at_level(logging.ERROR):
        assert store.read("cart") is None
    assert "tampered" in caplog.text
    assert "cart" not in backend


def test_tampered_fingerprint_is_rejected():
    store, backend, _ = _make()
    store.write("cart", [1, 2, 3])
    raw = _raw(backend, "cart")
    raw["fingerprint"] = str(int(raw["fingerprint"]) + 1)
    backend.set("cart", json.dumps(raw))

    assert store.read("cart") is None
    assert "cart" not in backend


def test_undecodable_payload_with_matching_fingerprint_is_removed():
    store, backend, clock = _make()
    for payload in ("%%%not-base64%%%", obfuscate("not json")):
        env = {"payload": payload, "fingerprint": checksum(payload), "timestamp": clock()}
        backend.set("k", json.dumps(env))
        assert store.read("k") is None
        assert "k" not in backend


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        json.dumps({"payload": "W10=", "fingerprint": "0"}),
        json.dumps({"payload": 1, "fingerprint": "0", "timestamp": T0}),
        json.dumps([1, 2, 3]),
    ],
)
def test_malformed_envelope_is_removed(raw):
    store, backend, _ = _make()
    backend.set("k", raw)
    assert store.read("k") is None
    assert "k" not in backend


def test_typed_read_validates_and_discards_mismatch():
    store, backend, _ = _make()
    store.write("cart", [{"id": 1, "name": "Filet", "price": 52.99, "quantity": 2}])
    items = store.read("cart", List[CartItem])
    assert items == [CartItem(id=1, name="Filet", price=52.99, quantity=2)]

    store.write("cart", {"not": "a list"})
    assert store.read("cart", List[CartItem]) is None
    assert "cart" not in backend


def test_unserializable_value_keeps_prior_envelope(caplog):
    store, backend, clock = _make()
    store.write("k", {"v": 1})
    before = backend.get("k")

    clock.advance(10)
    assert store.write("k", {"v": object()}) is False
    assert store.write("k", float("nan")) is False
    assert backend.get("k") == before
    assert store.read("k") == {"v": 1}
    assert "Error serializing" in caplog.text


def test_unobfuscatable_value_is_a_write_failure():
    store, backend, _ = _make()
    assert store.write("k", "\ud800") is False
    assert "k" not in backend


def test_backend_capacity_error_is_a_write_failure():
    backend = InMemorySessionBackend(max_value_bytes=200)
    store = SecureSessionStore(backend, clock=FakeClock())
    assert store.write("k", "small") is True

    assert store.write("k", "x" * 1000) is False
    assert store.read("k") == "small"


def test_overwrite_replaces_value_and_timestamp():
    store, backend, clock = _make()
    store.write("k", "v1")
    clock.advance(250)
    store.write("k", "v2")

    assert store.read("k") == "v2"
    assert _raw(backend, "k")["timestamp"] == T0 + 250


def test_remove_is_idempotent():
    store, backend, _ = _make()
    backend.set("other", "untouched")

    store.remove("missing")
    store.remove("missing")
    assert len(backend) == 1
    assert backend.get("other") == "untouched"


def test_operations_touch_only_their_key():
    store, backend, clock = _make(ttl_ms=10)
    store.write("a", 1)
    store.write("b", 2)
    clock.advance(11)

    assert store.read("a") is None
    assert backend.get("b") is not None


def test_fernet_transform_store():
    backend = InMemorySessionBackend()
    store = SecureSessionStore(backend, transform=FernetTransform(Fernet.generate_key()), clock=FakeClock())
    store.write("k", {"secret": "sauce"})

    raw = _raw(backend, "k")
    assert "sauce" not in raw["payload"]
    assert store.read("k") == {"secret": "sauce"}

    # Same backend, different key: payload fails to decode and is discarded
    other = SecureSessionStore(backend, transform=FernetTransform(Fernet.generate_key()), clock=FakeClock())
    assert other.read("k") is None
    assert "k" not in backend


def test_from_env(monkeypatch):
    monkeypatch.setenv("STOREFRONT_SESSION_TTL_MS", "500")
    monkeypatch.delenv("STOREFRONT_FERNET_KEY", raising=False)
    store = SecureSessionStore.from_env(InMemorySessionBackend())
    assert store.ttl_ms == 500


def test_from_env_invalid_values_raise(monkeypatch):
    monkeypatch.setenv("STOREFRONT_SESSION_TTL_MS", "an hour")
    with pytest.raises(RuntimeError):
        SecureSessionStore.from_env(InMemorySessionBackend())

    monkeypatch.delenv("STOREFRONT_SESSION_TTL_MS")
    monkeypatch.setenv("STOREFRONT_FERNET_KEY", "too-short")
    with pytest.raises(RuntimeError):
        SecureSessionStore.from_env(InMemorySessionBackend())


def test_negative_ttl_rejected():
    with pytest.raises(ValueError):
        SecureSessionStore(InMemorySessionBackend(), ttl_ms=-1)


def _deeply_nested(depth: int = 100_000) -> list:
    value: list = []
    for _ in range(depth):
        value = [value]
    return value


def test_write_of_deeply_nested_value_fails_without_raising():
    store, backend, _ = _make()
    store.write("k", "prior")

    assert store.write("k", _deeply_nested()) is False
    assert store.read("k") == "prior"


def test_read_of_deeply_nested_payload_is_discarded():
    store, backend, clock = _make()
    payload = obfuscate("[" * 100_000 + "]" * 100_000)
    env = {"payload": payload, "fingerprint": checksum(payload), "timestamp": clock()}
    backend.set("k", json.dumps(env))

    assert store.read("k") is None
    assert "k" not in backend


def test_read_cleanup_failure_still_reads_as_none(tmp_path, caplog):
    session_dir = tmp_path / "session"
    backend = JsonFileSessionBackend(session_dir / "session.json")
    clock = FakeClock()
    store = SecureSessionStore(backend, ttl_ms=1000, clock=clock)
    assert store.write("k", [1]) is True

    # Make the session file unwritable by turning its directory into a plain file
    shutil.rmtree(session_dir)
    session_dir.write_text("not a directory", encoding="utf-8")
    clock.advance(1001)

    with caplog.at_level(logging.ERROR):
        assert store.read("k") is None
    assert "Error removing item 'k'" in caplog.text
    assert store.read("k") is None


def test_from_env_negative_ttl_raises(monkeypatch):
    monkeypatch.delenv("STOREFRONT_FERNET_KEY", raising=False)
    monkeypatch.setenv("STOREFRONT_SESSION_TTL_MS", "-5")
    with pytest.raises(RuntimeError):
        SecureSessionStore.from_env(InMemorySessionBackend())
