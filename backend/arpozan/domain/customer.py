"""
Customer Domain Model

total_orders and total_spent are derived counters maintained by the
order repository; callers cannot set them.
"""
import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CustomerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CustomerTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


def normalize_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("invalid email format")
    return email


class Customer(BaseModel):
    """
    Customer domain model

    Fields:
        id: Customer ID (uuid)
        user_id: External identity reference (identity provider user id)
        email: Unique email (lowercase)
        first_name / last_name: Name fields
        phone: Contact phone
        status: active or inactive (inactive = soft deleted)
        tier: Loyalty tier
        total_orders: Derived count of non-cancelled orders
        total_spent: Derived sum of non-cancelled order totals
    """

    id: str = Field(..., description="Customer ID")
    user_id: Optional[str] = Field(None, description="External identity reference")
    email: str = Field(..., description="Customer email")
    first_name: Optional[str] = Field(None, description="First name")
    last_name: Optional[str] = Field(None, description="Last name")
    phone: Optional[str] = Field(None, description="Customer phone")
    status: CustomerStatus = Field(CustomerStatus.ACTIVE, description="Customer status")
    tier: CustomerTier = Field(CustomerTier.BRONZE, description="Loyalty tier")

    # Derived, not authoritative
    total_orders: int = Field(0, description="Number of orders", ge=0)
    total_spent: Decimal = Field(Decimal("0"), description="Total spent", ge=0)

    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def is_active(self) -> bool:
        return self.status == CustomerStatus.ACTIVE.value

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data['total_spent'] = float(self.total_spent)
        data['full_name'] = self.full_name
        return data


class CustomerCreate(BaseModel):
    """Schema for creating a new customer"""
    email: str
    user_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    tier: CustomerTier = CustomerTier.BRONZE

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    check_email = field_validator("email")(normalize_email)


class CustomerUpdate(BaseModel):
    """Schema for updating an existing customer"""
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[CustomerStatus] = None
    tier: Optional[CustomerTier] = None

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    check_email = field_validator("email")(normalize_email)
