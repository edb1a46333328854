"""
Order Domain Models

Represents orders and their line items.
The order total is always derived from the items, never set directly.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Order lifecycle statuses"""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    """
    Order Item domain model - represents a line item in an order

    Fields:
        id: Order item ID
        order_id: Parent order ID
        product_id: Reference to product catalog
        product_name: Product name at time of order
        quantity: Number of units ordered
        unit_price: Price per unit at time of order (immutable snapshot)
    """

    id: str = Field(..., description="Order item ID")
    order_id: str = Field(..., description="Parent order ID")
    product_id: str = Field(..., description="Product catalog ID")
    product_name: Optional[str] = Field(None, description="Product name at order time")
    quantity: int = Field(..., description="Quantity ordered", gt=0)
    unit_price: Decimal = Field(..., description="Price per unit at order time", ge=0)

    model_config = ConfigDict(from_attributes=True)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data['unit_price'] = float(self.unit_price)
        data['subtotal'] = float(self.subtotal)
        return data


class CustomerSummary(BaseModel):
    """Lightweight customer embedded in order reads"""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class Order(BaseModel):
    """
    Order domain model - represents a customer order

    Fields:
        id: Order ID (uuid)
        order_number: Human-readable order number (ARZ...)
        customer_id: Reference to customer
        status: Order status (pending, processing, shipped, delivered, cancelled)
        total: Sum of item subtotals
        shipping_address: Free-form address payload
        notes: Customer notes
        created_at: When order was created
        updated_at: When order was last updated

        # Related data (embedded on reads)
        customer: Customer summary
        items: Order items
    """

    id: str = Field(..., description="Order ID")
    order_number: str = Field(..., description="Order number")
    customer_id: str = Field(..., description="Customer ID")
    status: OrderStatus = Field(..., description="Order status")
    total: Decimal = Field(..., description="Total order amount", ge=0)
    shipping_address: Dict[str, Any] = Field(default_factory=dict, description="Shipping address")
    notes: Optional[str] = Field(None, description="Customer notes")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    customer: Optional[CustomerSummary] = Field(None, description="Customer (embedded)")
    items: List[OrderItem] = Field(default_factory=list, description="Order items")

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @field_validator("shipping_address", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return value or {}

    # Computed properties
    @property
    def item_count(self) -> int:
        """Total number of items in order"""
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        """Total quantity of all items"""
        return sum(item.quantity for item in self.items)

    @property
    def items_total(self) -> Decimal:
        """Sum of item subtotals (what total must equal)"""
        return compute_order_total(self.items)

    def to_dict(self) -> dict:
        """
        Convert to dictionary with computed fields

        Returns dict with all fields plus computed properties
        """
        data = self.model_dump(mode="json", exclude={"items"})
        data['total'] = float(self.total)
        data['item_count'] = self.item_count
        data['total_quantity'] = self.total_quantity
        data['items'] = [item.to_dict() for item in self.items]
        return data


def compute_order_total(items) -> Decimal:
    """Sum of quantity * unit_price over items (dicts or OrderItem)"""
    total = Decimal("0")
    for item in items:
        if isinstance(item, OrderItem):
            total += item.subtotal
        else:
            total += Decimal(str(item["unit_price"])) * int(item["quantity"])
    return total


class OrderItemCreate(BaseModel):
    """Line item requested by the caller; the price is snapshotted by the repository"""
    product_id: str
    quantity: int = Field(..., gt=0)

    model_config = ConfigDict(extra="forbid")


class OrderCreate(BaseModel):
    """Schema for creating a new order"""
    customer_id: str
    items: List[OrderItemCreate] = Field(..., min_length=1)
    shipping_address: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class OrderUpdate(BaseModel):
    """
    Schema for updating an existing order

    total and items are not accepted: the total is derived from the items.
    """
    status: Optional[OrderStatus] = None
    shipping_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None

    model_config = ConfigDict(extra="forbid", use_enum_values=True)
