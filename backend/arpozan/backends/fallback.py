"""
Fallback Dataset - deterministic in-memory substitute for the live backend

Seeded once per process from backends/seed.py and honouring the same
descriptor semantics as the live path:
- equality filters (scalar, None = IS NULL, list = membership)
- case-insensitive substring search across several fields (any may match)
- inclusive numeric ranges
- ORDER BY sort_field (asc: NULLS LAST, desc: NULLS FIRST), then id ASC
- OFFSET/LIMIT pagination with the total taken from the filtered rows

Unique constraints mirror the live schema so conflicts surface the same way.
"""
import copy
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from arpozan.backends.base import BackendKind, DataBackend, QueryResult
from arpozan.backends import seed
from arpozan.core.errors import ConflictError, NotFoundError, ValidationError
from arpozan.domain import tables
from arpozan.domain.query import QueryDescriptor

logger = logging.getLogger(__name__)

UNIQUE_CONSTRAINTS = {
    tables.PRODUCTS: [("slug",)],
    tables.CUSTOMERS: [("email",)],
    tables.ADMIN_USERS: [("user_id",)],
    tables.CART_ITEMS: [("customer_id", "product_id")],
}


def _normalize(value: Any) -> Any:
    """Comparable form of a column value (numbers compare as Decimal)"""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return value
    if isinstance(value, UUID):
        return str(value)
    return value


def _matches_equality(row_value: Any, expected: Any) -> bool:
    if expected is None:
        return row_value is None
    if isinstance(expected, (list, tuple, set, frozenset)):
        return any(_matches_equality(row_value, option) for option in expected)
    return _normalize(row_value) == _normalize(expected)


def _matches_filters(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(_matches_equality(row.get(field), expected) for field, expected in filters.items())


def _matches_search(row: Dict[str, Any], term: str, fields) -> bool:
    needle = term.lower()
    for field in fields:
        value = row.get(field)
        if value is not None and needle in str(_normalize_text(value)).lower():
            return True
    return False


def _normalize_text(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _sort_rows(rows: List[Dict[str, Any]], sort_field: Optional[str], ascending: bool) -> List[Dict[str, Any]]:
    ordered = sorted(rows, key=lambda row: str(row.get("id")))
    if not sort_field:
        return ordered

    present = [row for row in ordered if row.get(sort_field) is not None]
    missing = [row for row in ordered if row.get(sort_field) is None]
    # sorted() is stable with reverse=True, so id ASC survives as tie-breaker
    present = sorted(present, key=lambda row: _normalize(row[sort_field]), reverse=not ascending)
    return present + missing if ascending else missing + present


class FallbackDataset(DataBackend):
    """In-memory backend used when the live connection is unavailable"""

    kind = BackendKind.FALLBACK

    def __init__(self, seeded: bool = True):
        self._seeded = seeded
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self.reset()

    def reset(self) -> None:
        """Drop every change and reload the seed"""
        data = seed.build_seed() if self._seeded else {}
        self._tables = {name: copy.deepcopy(data.get(name, [])) for name in tables.ALL_TABLES}
        logger.debug(
            "Fallback dataset loaded: "
            + ", ".join(f"{name}={len(rows)}" for name, rows in self._tables.items())
        )

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self._tables.setdefault(table, [])

    def _find_index(self, table: str, row_id: str) -> Optional[int]:
        for index, row in enumerate(self._rows(table)):
            if str(row.get("id")) == str(row_id):
                return index
        return None

    def _check_unique(self, table: str, candidate: Dict[str, Any], ignore_id: Optional[str] = None) -> None:
        for row in self._rows(table):
            if ignore_id is not None and str(row.get("id")) == str(ignore_id):
                continue
            if str(row.get("id")) == str(candidate.get("id")) and ignore_id is None:
                raise ConflictError("id")
            for columns in UNIQUE_CONSTRAINTS.get(table, []):
                # NULLs never collide, as in SQL
                if any(candidate.get(column) is None for column in columns):
                    continue
                if all(_matches_equality(row.get(column), candidate.get(column)) for column in columns):
                    raise ConflictError(",".join(columns))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def execute(self, table: str, descriptor: QueryDescriptor) -> QueryResult:
        rows = [row for row in self._rows(table) if _matches_filters(row, descriptor.equality_filters)]

        if descriptor.has_search:
            rows = [
                row for row in rows
                if _matches_search(row, descriptor.search_text, descriptor.search_fields)
            ]

        for field, bounds in descriptor.numeric_range.items():
            rows = [row for row in rows if bounds.contains(row.get(field))]

        rows = _sort_rows(rows, descriptor.sort_field, descriptor.is_ascending)
        total = len(rows)
        page = rows[descriptor.offset:descriptor.offset + descriptor.limit]
        return QueryResult(rows=copy.deepcopy(page), total=total)

    def find_where(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = [row for row in self._rows(table) if _matches_filters(row, filters)]
        return copy.deepcopy(_sort_rows(rows, None, True))

    def fetch_by_id(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        index = self._find_index(table, row_id)
        if index is None:
            return None
        return copy.deepcopy(self._rows(table)[index])

    def count(self, table: str, filters: Dict[str, Any]) -> int:
        return sum(1 for row in self._rows(table) if _matches_filters(row, filters))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self._check_unique(table, row)
        stored = copy.deepcopy(row)
        self._rows(table).append(stored)
        return copy.deepcopy(stored)

    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        index = self._find_index(table, row_id)
        if index is None:
            return None
        merged = {**self._rows(table)[index], **copy.deepcopy(changes)}
        self._check_unique(table, merged, ignore_id=row_id)
        self._rows(table)[index] = merged
        return copy.deepcopy(merged)

    def delete(self, table: str, row_id: str) -> bool:
        index = self._find_index(table, row_id)
        if index is None:
            return False
        del self._rows(table)[index]
        return True

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        kept = [row for row in self._rows(table) if not _matches_filters(row, filters)]
        removed = len(self._rows(table)) - len(kept)
        self._tables[table] = kept
        return removed

    def create_order(
        self,
        order_row: Dict[str, Any],
        item_rows: List[Dict[str, Any]],
        final_status: str,
        stock_deductions: Optional[Dict[str, int]] = None,
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        # Everything is checked before the first write, so nothing is ever half stored
        self._check_unique(tables.ORDERS, order_row)
        for item in item_rows:
            self._check_unique(tables.ORDER_ITEMS, item)

        deductions = dict(stock_deductions or {})
        products = {}
        for product_id, units in deductions.items():
            index = self._find_index(tables.PRODUCTS, product_id)
            if index is None:
                raise NotFoundError("Product", product_id)
            product = self._rows(tables.PRODUCTS)[index]
            if int(product.get("stock_quantity") or 0) < units:
                raise ValidationError(f"Insufficient stock for {product.get('name')}")
            products[product_id] = product

        now = datetime.now(timezone.utc)
        for product_id, units in deductions.items():
            products[product_id]["stock_quantity"] = int(products[product_id].get("stock_quantity") or 0) - units
            products[product_id]["updated_at"] = now

        header = {**copy.deepcopy(order_row), "status": final_status}
        items = copy.deepcopy(item_rows)
        self._rows(tables.ORDERS).append(header)
        self._rows(tables.ORDER_ITEMS).extend(items)
        return copy.deepcopy(header), copy.deepcopy(items)
