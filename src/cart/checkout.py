from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

from common.validation import sanitize_field
from state.models import CartItem, Order

from .menu import SHIPPING_FEE


def cart_subtotal(items: Sequence[CartItem]) -> float:
    return sum(item.price * item.quantity for item in items)


def cart_total(items: Sequence[CartItem]) -> float:
    return cart_subtotal(items) + SHIPPING_FEE


def build_order(
    items: Sequence[CartItem],
    form: Mapping[str, Optional[str]],
    *,
    now_ms: int,
) -> Order:
    """Assemble the order payload for the current cart.

    Form fields are clipped with `sanitize_field`; validate the form with
    `validate_checkout_form` before calling. The order number is derived from
    `now_ms` ("SS-<epoch ms>").
    """
    if not items:
        raise ValueError("cannot build an order from an empty cart")
    order_time = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)
    lines = [{"name": i.name, "quantity": i.quantity, "price": i.price} for i in items]
    notes = sanitize_field(form.get("orderNotes"))
    return Order(
        orderNumber=f"SS-{now_ms}",
        orderTime=order_time.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        customerName=sanitize_field(form.get("customerName")),
        customerPhone=sanitize_field(form.get("customerPhone")),
        deliveryAddress=sanitize_field(form.get("deliveryAddress")),
        paymentMethod=form.get("paymentMethod") or "Credit Card",
        orderNotes=notes or None,
        items=json.dumps(lines, separators=(",", ":")),
        subtotal=cart_subtotal(items),
        shippingFee=SHIPPING_FEE,
        total=cart_total(items),
    )


__all__ = ["cart_subtotal", "cart_total", "build_order"]
