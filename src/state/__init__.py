"""
Session state: models, backends and the secure session store.

Values are serialized to JSON, obfuscated, fingerprinted and timestamped
before they reach a session-scoped key/value backend.
"""

from .models import ApiResponse, CartItem, MenuItem, Order, StoredEnvelope

__all__ = ["ApiResponse", "CartItem", "MenuItem", "Order", "StoredEnvelope"]
