"""
Query Descriptor - what a caller wants from a collection

An immutable value object consumed identically by the live backend and the
fallback dataset: equality filters, multi-field text search, numeric
ranges, sort field/direction and pagination.

Out-of-range pagination input is silently clamped, never rejected:
page_size into [1, 100] and page to >= 1.
"""
import math
import re
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20

# Characters with meaning inside PostgREST filter strings
_RESERVED_SEARCH_CHARS = re.compile(r'[,()*%"\\]')


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class NumericRange(BaseModel):
    """Inclusive numeric bounds; either side may be open"""

    min: Optional[float] = None
    max: Optional[float] = None

    model_config = ConfigDict(frozen=True)

    def contains(self, value: Any) -> bool:
        if value is None:
            return False
        number = float(value)
        if self.min is not None and number < self.min:
            return False
        if self.max is not None and number > self.max:
            return False
        return True


class QueryDescriptor(BaseModel):
    """
    Filter/sort/page descriptor

    Fields:
        equality_filters: field -> value. A list/tuple value means membership,
                          None means the column IS NULL.
        search_text: Case-insensitive substring to look for
        search_fields: Fields searched with search_text (any may match)
        numeric_range: field -> NumericRange (inclusive)
        sort_field: Field to order by (ties always broken by id ascending)
        sort_direction: asc or desc
        page: 1-based page number (clamped to >= 1)
        page_size: Items per page (clamped to [1, 100])
    """

    equality_filters: Dict[str, Any] = Field(default_factory=dict)
    search_text: Optional[str] = None
    search_fields: Tuple[str, ...] = ()
    numeric_range: Dict[str, NumericRange] = Field(default_factory=dict)
    sort_field: Optional[str] = None
    sort_direction: SortDirection = SortDirection.DESC
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    model_config = ConfigDict(frozen=True)

    @field_validator("page", mode="before")
    @classmethod
    def clamp_page(cls, value: Any) -> int:
        try:
            page = int(value)
        except (TypeError, ValueError):
            return 1
        return max(1, page)

    @field_validator("page_size", mode="before")
    @classmethod
    def clamp_page_size(cls, value: Any) -> int:
        try:
            size = int(value)
        except (TypeError, ValueError):
            return DEFAULT_PAGE_SIZE
        return min(MAX_PAGE_SIZE, max(1, size))

    @field_validator("search_text", mode="before")
    @classmethod
    def normalize_search_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        cleaned = _RESERVED_SEARCH_CHARS.sub("", str(value))
        cleaned = " ".join(cleaned.split())
        return cleaned or None

    @field_validator("sort_direction", mode="before")
    @classmethod
    def normalize_sort_direction(cls, value: Any) -> Any:
        if isinstance(value, str):
            return "asc" if value.strip().lower() == "asc" else "desc"
        return value

    @field_validator("search_fields", mode="before")
    @classmethod
    def coerce_search_fields(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return tuple(value or ())

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def is_ascending(self) -> bool:
        return self.sort_direction == SortDirection.ASC

    @property
    def has_search(self) -> bool:
        return bool(self.search_text and self.search_fields)

    def total_pages(self, total: int) -> int:
        """ceil(total / page_size); 0 when nothing matched"""
        if total <= 0:
            return 0
        return math.ceil(total / self.page_size)

    def with_page(self, page: int) -> "QueryDescriptor":
        return self.model_copy(update={"page": max(1, int(page))})

    def referenced_fields(self) -> set:
        """Every column name this descriptor touches"""
        fields = set(self.equality_filters) | set(self.numeric_range)
        if self.has_search:
            fields |= set(self.search_fields)
        if self.sort_field:
            fields.add(self.sort_field)
        return fields
