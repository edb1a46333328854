"""
Cart Domain Models

A cart item is unique per (customer_id, product_id) and keeps a snapshot of
the product price at the time it was added.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CartItem(BaseModel):
    """
    Cart item domain model

    Fields:
        id: Cart item ID
        customer_id: Owning customer
        product_id: Product in the cart
        quantity: Units (>= 1)
        price: Unit price snapshot
    """

    id: str = Field(..., description="Cart item ID")
    customer_id: str = Field(..., description="Customer ID")
    product_id: str = Field(..., description="Product ID")
    quantity: int = Field(..., description="Quantity", ge=1)
    price: Decimal = Field(..., description="Unit price snapshot", ge=0)
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data['price'] = float(self.price)
        data['line_total'] = float(self.line_total)
        return data


class CartItemCreate(BaseModel):
    customer_id: str
    product_id: str
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")


class CartItemUpdate(BaseModel):
    quantity: Optional[int] = Field(None, ge=1)
    price: Optional[Decimal] = Field(None, ge=0)

    model_config = ConfigDict(extra="forbid")


class CartSummary(BaseModel):
    """Recomputed totals returned after every cart mutation"""

    item_count: int = 0
    total_quantity: int = 0
    subtotal: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "itemCount": self.item_count,
            "totalQuantity": self.total_quantity,
            "subtotal": float(self.subtotal),
            "shipping": float(self.shipping),
            "tax": float(self.tax),
            "total": float(self.total),
        }


class CartView(BaseModel):
    items: List[dict] = Field(default_factory=list)
    summary: CartSummary = Field(default_factory=CartSummary)

    def to_dict(self) -> dict:
        return {"items": self.items, "summary": self.summary.to_dict()}
