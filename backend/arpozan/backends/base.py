"""
Backend contract

Both the live Supabase backend and the in-memory fallback dataset implement
this interface, so repositories never know which one they are talking to.
Rows travel as plain dicts keyed by column name.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from arpozan.domain.query import QueryDescriptor


class BackendKind(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


@dataclass
class QueryResult:
    """One page of rows plus the total count of rows matching the filters"""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0


class DataBackend(ABC):
    """Storage operations shared by the live backend and the fallback dataset"""

    kind: BackendKind

    @abstractmethod
    def execute(self, table: str, descriptor: QueryDescriptor) -> QueryResult:
        """Run a descriptor query: filter, search, range, sort, paginate"""

    @abstractmethod
    def find_where(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """All rows matching equality filters, ordered by id (no pagination)"""

    @abstractmethod
    def fetch_by_id(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        """Single row by primary key, or None"""

    @abstractmethod
    def count(self, table: str, filters: Dict[str, Any]) -> int:
        """Number of rows matching equality filters"""

    @abstractmethod
    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored"""

    @abstractmethod
    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply changes to one row; None when the row does not exist"""

    @abstractmethod
    def delete(self, table: str, row_id: str) -> bool:
        """Physically remove one row; False when it did not exist"""

    @abstractmethod
    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Physically remove every row matching equality filters"""

    @abstractmethod
    def create_order(
        self,
        order_row: Dict[str, Any],
        item_rows: List[Dict[str, Any]],
        final_status: str,
        stock_deductions: Optional[Dict[str, int]] = None,
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """
        Write an order header and its items as one logical unit

        The header arrives in 'pending' status and ends in final_status once
        every item is stored and every product in stock_deductions
        (product_id -> units) has had its stock_quantity lowered. A product
        without enough stock fails the write; stock never goes negative.
        """
