# cartsync/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Known order statuses. The column is a plain string, other values pass through."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"


# rows as read from the store


class ProductRow(BaseModel):
    id: str
    name: str
    price: Decimal = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    description: str = ""
    image_url: str = ""
    category: str = ""
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CartItemRow(BaseModel):
    id: str
    owner_id: str
    product_id: str
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class OrderRow(BaseModel):
    id: str
    owner_id: str
    total_amount: Decimal
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderItemRow(BaseModel):
    id: str
    order_id: str
    product_id: str
    quantity: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class NewOrderItem(BaseModel):
    """Order line before it is written; price is the snapshot taken at checkout."""

    product_id: str
    quantity: int
    price: Decimal


# aggregated views


class CartLine(BaseModel):
    item_id: str
    quantity: int
    product: ProductRow

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity


class CartSummary(BaseModel):
    items: List[CartLine] = []
    total: Decimal = Decimal("0")
    count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.items


class CheckoutResult(BaseModel):
    order_id: str
    total_amount: Decimal
    item_count: int
    payment_method: str


# change feed


class ChangeEvent(BaseModel):
    """Row-level change notification; carries no row payload."""

    table: str
    type: Literal["INSERT", "UPDATE", "DELETE"]
    owner_id: str


# API payloads


class ItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, gt=0, description="Units to add (must be > 0)")


class QuantityIn(BaseModel):
    """Schema for overwriting a cart line quantity."""

    quantity: int


class CartLineOut(BaseModel):
    item_id: str
    product_id: str
    name: str
    image_url: str
    price: Decimal
    stock: int
    quantity: int
    line_total: Decimal


class CartOut(BaseModel):
    """Cart summary (response)."""

    owner_id: str
    items: List[CartLineOut]
    total: Decimal
    count: int

    @classmethod
    def from_summary(cls, owner_id: str, summary: CartSummary) -> "CartOut":
        return cls(
            owner_id=owner_id,
            items=[
                CartLineOut(
                    item_id=line.item_id,
                    product_id=line.product.id,
                    name=line.product.name,
                    image_url=line.product.image_url,
                    price=line.product.price,
                    stock=line.product.stock,
                    quantity=line.quantity,
                    line_total=line.line_total,
                )
                for line in summary.items
            ],
            total=summary.total,
            count=summary.count,
        )


class CartCountOut(BaseModel):
    owner_id: str
    count: int


class OrderOut(BaseModel):
    """Order (response)."""

    id: str
    owner_id: str
    total_amount: Decimal
    status: str
    created_at: datetime
    items: List[OrderItemRow] = []

    model_config = ConfigDict(from_attributes=True)
