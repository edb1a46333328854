"""
Product Domain Model

Represents a product in the Arpozan catalog.
This is the single source of truth for product data structure.
"""
import re
import unicodedata
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

# Transliteration for Cyrillic product names
_CYRILLIC = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "e",
    "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m",
    "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "h", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "sch", "ъ": "",
    "ы": "y", "ь": "", "э": "e", "ю": "yu", "я": "ya",
}


def slugify(value: str) -> str:
    """Build a URL-safe slug from a product name"""
    text = "".join(_CYRILLIC.get(char, char) for char in value.lower())
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def _validate_slug(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not SLUG_PATTERN.match(value):
        raise ValueError("slug must contain lowercase letters, digits and single hyphens")
    return value


class Product(BaseModel):
    """
    Product domain model - represents a product in our catalog

    Fields:
        id: Product ID (uuid)
        name: Product name
        slug: Unique URL-safe identifier
        description: Product description (optional)
        price: Current selling price
        original_price: Price before discount (optional, marks a sale)
        stock_quantity: Units in stock (never negative)
        category: Product category
        is_active: Whether product is visible in the storefront
        is_featured: Whether product is featured on the home page
        tags: Free-form tags
        images: Image URLs
        created_at: When product was created
        updated_at: When product was last updated
    """

    id: str = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    slug: str = Field(..., description="Unique URL-safe slug")
    description: Optional[str] = Field(None, description="Product description")

    # Pricing
    price: Decimal = Field(..., description="Selling price", ge=0)
    original_price: Optional[Decimal] = Field(None, description="Price before discount", ge=0)

    # Inventory
    stock_quantity: int = Field(0, description="Units in stock", ge=0)

    category: Optional[str] = Field(None, description="Product category")
    is_active: bool = Field(True, description="Whether product is active")
    is_featured: bool = Field(False, description="Whether product is featured")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")
    images: List[str] = Field(default_factory=list, description="Image URLs")

    # Metadata
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("tags", "images", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return value or []

    # Computed properties
    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0

    @property
    def on_sale(self) -> bool:
        return self.original_price is not None and self.original_price > self.price

    @property
    def discount_percent(self) -> int:
        """Rounded discount against original_price (0 when not on sale)"""
        if not self.on_sale:
            return 0
        return int(round((1 - self.price / self.original_price) * 100))

    def to_dict(self) -> dict:
        """
        Convert to dictionary with computed fields

        Decimals become floats for JSON compatibility.
        """
        data = self.model_dump(mode="json")
        data['price'] = float(self.price)
        if self.original_price is not None:
            data['original_price'] = float(self.original_price)

        data['in_stock'] = self.in_stock
        data['on_sale'] = self.on_sale
        data['discount_percent'] = self.discount_percent
        return data


class ProductCreate(BaseModel):
    """Schema for creating a new product"""
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    stock_quantity: int = Field(0, ge=0)
    category: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    check_slug = field_validator("slug")(_validate_slug)

    def resolved_slug(self) -> str:
        return self.slug or slugify(self.name)


class ProductUpdate(BaseModel):
    """Schema for updating an existing product"""
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")

    check_slug = field_validator("slug")(_validate_slug)
