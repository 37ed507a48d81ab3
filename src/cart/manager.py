from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional

from state.models import CartItem, MenuItem
from state.session_store import SecureSessionStore

from .menu import CART_STORAGE_KEY, MAX_CART_ITEMS, MAX_ITEM_QUANTITY


logger = logging.getLogger(__name__)

# notify(message, level) where level is "info" | "warning" | "error"
Notifier = Callable[[str, str], None]


class CartManager:
    """
    In-memory cart mirrored to a `SecureSessionStore`.

    - The stored cart is loaded once at construction; anything unusable
      (missing, expired, tampered, wrong shape) yields an empty cart.
    - After each mutation a non-empty cart is written and an empty cart
      removes the key.
    - Quantities stay within [1, MAX_ITEM_QUANTITY] and the cart holds at
      most MAX_CART_ITEMS distinct lines. Limit hits are reported through
      `notify` rather than raised.
    """

    def __init__(
        self,
        store: SecureSessionStore,
        *,
        notify: Optional[Notifier] = None,
        storage_key: str = CART_STORAGE_KEY,
    ) -> None:
        self._store = store
        self._notify = notify
        self._key = storage_key
        self._items: List[CartItem] = self._load()

    def _load(self) -> List[CartItem]:
        stored = self._store.read(self._key, List[CartItem])
        if not stored:
            return []
        # Re-apply the quantity cap in case the limit was lowered since the write
        return [
            item.model_copy(update={"quantity": min(item.quantity, MAX_ITEM_QUANTITY)})
            for item in stored
        ][:MAX_CART_ITEMS]

    def _persist(self) -> None:
        if self._items:
            data = [item.model_dump() for item in self._items]
            if not self._store.write(self._key, data):
                logger.warning("Cart could not be persisted; keeping in-memory copy only")
        else:
            self._store.remove(self._key)

    def _emit(self, message: str, level: str) -> None:
        if self._notify is not None:
            self._notify(message, level)

    def _find(self, item_id: int) -> Optional[CartItem]:
        for line in self._items:
            if line.id == item_id:
                return line
        return None

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: MenuItem) -> None:
        existing = self._find(item.id)
        if existing is not None:
            new_quantity = min(existing.quantity + 1, MAX_ITEM_QUANTITY)
            if new_quantity == existing.quantity:
                self._emit(f"Maximum quantity of {MAX_ITEM_QUANTITY} for {item.name} reached.", "warning")
            self._items = [
                line.model_copy(update={"quantity": new_quantity}) if line.id == item.id else line
                for line in self._items
            ]
        else:
            if len(self._items) >= MAX_CART_ITEMS:
                self._emit(f"Cannot add more than {MAX_CART_ITEMS} different items to the cart.", "warning")
                return
            self._items = self._items + [CartItem(**item.model_dump(exclude={"quantity"}), quantity=1)]
        self._persist()

    def remove(self, item_id: int) -> None:
        self._items = [line for line in self._items if line.id != item_id]
        self._persist()

    def update_quantity(self, item_id: int, quantity: float) -> None:
        if isinstance(quantity, float) and math.isnan(quantity):
            return
        if quantity <= 0:
            self.remove(item_id)
            return
        new_quantity = max(1, int(min(quantity, MAX_ITEM_QUANTITY)))
        self._items = [
            line.model_copy(update={"quantity": new_quantity}) if line.id == item_id else line
            for line in self._items
        ]
        self._persist()

    def clear(self) -> None:
        self._items = []
        self._store.remove(self._key)


__all__ = ["CartManager", "Notifier"]
