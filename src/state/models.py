from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class StoredEnvelope(BaseModel):
    """
    The only shape written to a session backend.

    Fields
    - payload: obfuscated JSON serialization of the stored value.
    - fingerprint: checksum of `payload` (not of the plaintext).
    - timestamp: epoch milliseconds of the most recent successful write.

    Serialized as a JSON object with exactly these three fields.
    """

    model_config = ConfigDict(extra="forbid")

    payload: StrictStr
    fingerprint: StrictStr
    timestamp: StrictInt


class MenuItem(BaseModel):
    id: int
    name: str
    description: str = ""
    price: float
    imageUrl: str = ""


class CartItem(MenuItem):
    quantity: int = Field(..., ge=1, description="Requested quantity, capped by the cart manager")


PaymentMethod = Literal["Credit Card", "Cash on Delivery"]


class Order(BaseModel):
    """
    Order payload submitted to the order endpoint.

    Field names follow the endpoint's camelCase contract. `items` is itself a
    JSON string of `[{name, quantity, price}]`.
    """

    orderNumber: str
    orderTime: str
    customerName: str
    customerPhone: str
    deliveryAddress: str
    paymentMethod: PaymentMethod = "Credit Card"
    orderNotes: Optional[str] = None
    items: str
    subtotal: float
    shippingFee: float
    total: float


class ApiResponse(BaseModel):
    success: bool
    message: str = ""
    orderNumber: Optional[str] = None
