"""
Live backend - Supabase (PostgREST) with an optional psycopg2 transaction path

Descriptor translation:
    equality   -> eq / is_(null) / in_
    search     -> or_(f1.ilike.*term*,f2.ilike.*term*)
    ranges     -> gte / lte
    ordering   -> order(sort_field) then order(id)
    pagination -> range(offset, offset + limit - 1) with count=exact

Store errors are translated into the layer's taxonomy here so the selector
and repositories only ever see DataAccessError subclasses.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json
from postgrest.exceptions import APIError
from pydantic_core import to_jsonable_python

from arpozan.backends.base import BackendKind, DataBackend, QueryResult
from arpozan.core import database
from arpozan.core.errors import BackendError, ConflictError, DataAccessError, PartialOrderError, ValidationError
from arpozan.domain import tables
from arpozan.domain.query import QueryDescriptor

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
INVALID_DATA_CODES = {"23502", "22P02", "23514", "22003"}
RANGE_NOT_SATISFIABLE = "PGRST103"


def _postgrest_error(exc: APIError) -> DataAccessError:
    code = str(getattr(exc, "code", "") or "")
    message = getattr(exc, "message", None) or str(exc)
    if code == UNIQUE_VIOLATION:
        return ConflictError(getattr(exc, "details", None))
    if code in INVALID_DATA_CODES:
        return ValidationError(message)
    return BackendError(f"Supabase error {code or 'unknown'}: {message}")


def _postgres_error(exc: psycopg2.Error) -> DataAccessError:
    code = getattr(exc, "pgcode", None)
    if code == UNIQUE_VIOLATION:
        return ConflictError()
    if code in INVALID_DATA_CODES:
        return ValidationError(str(getattr(exc, "pgerror", None) or exc).strip())
    return BackendError(f"Database error: {str(exc).strip()}")


@contextmanager
def translate_errors():
    try:
        yield
    except APIError as e:
        raise _postgrest_error(e) from e
    except httpx.HTTPError as e:
        # includes every timeout
        raise BackendError(f"Supabase unreachable: {e.__class__.__name__}") from e


def _wire(value: Any) -> Any:
    """JSON-ready form of a value sent to PostgREST"""
    return to_jsonable_python(value)


def _filter_value(value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    return _wire(value)


def apply_filters(query, filters: Dict[str, Any]):
    for field, expected in filters.items():
        if expected is None:
            query = query.is_(field, "null")
        elif isinstance(expected, (list, tuple, set, frozenset)):
            query = query.in_(field, [_filter_value(option) for option in expected])
        else:
            query = query.eq(field, _filter_value(expected))
    return query


def apply_descriptor_filters(query, descriptor: QueryDescriptor):
    """Equality, search and range parts of a descriptor (everything but order/page)"""
    query = apply_filters(query, descriptor.equality_filters)

    if descriptor.has_search:
        term = descriptor.search_text
        query = query.or_(",".join(f"{field}.ilike.*{term}*" for field in descriptor.search_fields))

    for field, bounds in descriptor.numeric_range.items():
        if bounds.min is not None:
            query = query.gte(field, bounds.min)
        if bounds.max is not None:
            query = query.lte(field, bounds.max)
    return query


class SupabaseBackend(DataBackend):
    """
    Backend talking to the live Supabase project

    Args:
        anon_client: Client built from the public key
        service_client: Client built from the service role key, or None
        connection_factory: Callable returning a psycopg2 connection for
                            transactional order writes, or None to use the
                            two-phase PostgREST write
    """

    kind = BackendKind.LIVE

    def __init__(self, anon_client, service_client=None, connection_factory: Optional[Callable] = None):
        self._anon = anon_client
        self._service = service_client
        self._connection_factory = connection_factory

    @classmethod
    def from_settings(cls) -> "SupabaseBackend":
        factory = database.get_db_connection_dict_with_retry if database.has_direct_connection() else None
        return cls(
            anon_client=database.get_anon_client(),
            service_client=database.get_service_client(),
            connection_factory=factory,
        )

    @property
    def has_transactions(self) -> bool:
        return self._connection_factory is not None

    def _client(self, table: str, write: bool = False):
        if (write or table in tables.PRIVILEGED_TABLES) and self._service is not None:
            return self._service
        return self._anon

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def execute(self, table: str, descriptor: QueryDescriptor) -> QueryResult:
        client = self._client(table)
        query = apply_descriptor_filters(client.table(table).select("*", count="exact"), descriptor)

        if descriptor.sort_field:
            descending = not descriptor.is_ascending
            query = query.order(descriptor.sort_field, desc=descending, nullsfirst=descending)
        query = query.order("id")
        query = query.range(descriptor.offset, descriptor.offset + descriptor.limit - 1)

        try:
            with translate_errors():
                response = query.execute()
        except BackendError as e:
            if RANGE_NOT_SATISFIABLE not in str(e.message):
                raise
            # Page past the end: no rows, but the total is still required
            logger.debug(f"Page {descriptor.page} of {table} is past the end, counting only")
            return QueryResult(rows=[], total=self._count_descriptor(table, descriptor))

        return QueryResult(rows=list(response.data or []), total=response.count or 0)

    def _count_descriptor(self, table: str, descriptor: QueryDescriptor) -> int:
        query = self._client(table).table(table).select("id", count="exact", head=True)
        with translate_errors():
            response = apply_descriptor_filters(query, descriptor).execute()
        return response.count or 0

    def find_where(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = apply_filters(self._client(table).table(table).select("*"), filters)
        with translate_errors():
            response = query.order("id").execute()
        return list(response.data or [])

    def fetch_by_id(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        query = self._client(table).table(table).select("*").eq("id", str(row_id)).limit(1)
        with translate_errors():
            response = query.execute()
        rows = response.data or []
        return rows[0] if rows else None

    def count(self, table: str, filters: Dict[str, Any]) -> int:
        query = self._client(table).table(table).select("id", count="exact", head=True)
        with translate_errors():
            response = apply_filters(query, filters).execute()
        return response.count or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        client = self._client(table, write=True)
        with translate_errors():
            response = client.table(table).insert(_wire(row)).execute()
        if not response.data:
            raise BackendError(f"Insert into {table} returned no row")
        return response.data[0]

    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        client = self._client(table, write=True)
        with translate_errors():
            response = client.table(table).update(_wire(changes)).eq("id", str(row_id)).execute()
        rows = response.data or []
        return rows[0] if rows else None

    def delete(self, table: str, row_id: str) -> bool:
        client = self._client(table, write=True)
        with translate_errors():
            response = client.table(table).delete().eq("id", str(row_id)).execute()
        return bool(response.data)

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        if not filters:
            raise ValidationError("Refusing to delete without filters")
        client = self._client(table, write=True)
        with translate_errors():
            response = apply_filters(client.table(table).delete(), filters).execute()
        return len(response.data or [])

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        order_row: Dict[str, Any],
        item_rows: List[Dict[str, Any]],
        final_status: str,
        stock_deductions: Optional[Dict[str, int]] = None,
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        deductions = dict(stock_deductions or {})
        if self.has_transactions:
            return self._create_order_transaction(order_row, item_rows, final_status, deductions)
        return self._create_order_two_phase(order_row, item_rows, final_status, deductions)

    def _create_order_transaction(self, order_row, item_rows, final_status, deductions):
        """Header, items, stock and final status in a single psycopg2 transaction"""
        conn = self._connection_factory()
        now = datetime.now(timezone.utc)
        try:
            with conn.cursor() as cursor:
                _insert_returning(cursor, tables.ORDERS, order_row)
                items = [_insert_returning(cursor, tables.ORDER_ITEMS, item) for item in item_rows]
                for product_id, units in deductions.items():
                    cursor.execute(
                        sql.SQL(
                            "UPDATE {} SET stock_quantity = stock_quantity - %s, updated_at = %s "
                            "WHERE id = %s AND stock_quantity >= %s RETURNING id"
                        ).format(sql.Identifier(tables.PRODUCTS)),
                        (units, now, str(product_id), units),
                    )
                    if cursor.fetchone() is None:
                        raise ValidationError(f"Insufficient stock for product {product_id}")
                cursor.execute(
                    sql.SQL("UPDATE {} SET status = %s, updated_at = %s WHERE id = %s RETURNING *").format(
                        sql.Identifier(tables.ORDERS)
                    ),
                    (final_status, now, str(order_row["id"])),
                )
                header = cursor.fetchone()
            conn.commit()
            logger.info(f"Order {order_row['id']} committed with {len(items)} items")
            return dict(header), [dict(item) for item in items]
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Order transaction rolled back: {e}")
            raise _postgres_error(e) from e
        except DataAccessError as e:
            conn.rollback()
            logger.warning(f"Order transaction rolled back: {e.message}")
            raise
        finally:
            conn.close()

    def _create_order_two_phase(self, order_row, item_rows, final_status, deductions):
        """
        Header as 'pending', then items, then stock, then the final status

        A failure before the header exists is an ordinary error. Any failure
        after it becomes a PartialOrderError and is never retried; stock
        already taken for the order is given back first.
        """
        order_id = str(order_row["id"])
        client = self._client(tables.ORDERS, write=True)
        pending = {**order_row, "status": "pending"}

        with translate_errors():
            response = client.table(tables.ORDERS).insert(_wire(pending)).execute()
        if not response.data:
            raise BackendError("Order header insert returned no row")

        taken: Dict[str, int] = {}
        try:
            with translate_errors():
                written = client.table(tables.ORDER_ITEMS).insert(_wire(item_rows)).execute().data or []
                if len(written) != len(item_rows):
                    raise BackendError(f"Only {len(written)} of {len(item_rows)} order items were stored")

                for product_id, units in deductions.items():
                    self._adjust_stock(client, product_id, -units)
                    taken[product_id] = units

                changes = {"status": final_status, "updated_at": datetime.now(timezone.utc)}
                updated = client.table(tables.ORDERS).update(_wire(changes)).eq("id", order_id).execute().data
                if not updated:
                    raise BackendError("Order status could not be finalised")
        except DataAccessError as e:
            logger.error(f"Order {order_id} left pending after a partial write: {e.message}")
            self._discard_items(client, order_id)
            self._return_stock(client, taken)
            raise PartialOrderError(order_id, e.message) from e

        return updated[0], written

    def _adjust_stock(self, client, product_id: str, delta: int) -> None:
        """
        Compare-and-set stock change; only applies when stock is still what was read

        Raises ValidationError when a deduction would take stock below zero.
        """
        rows = (
            client.table(tables.PRODUCTS).select("id, stock_quantity").eq("id", str(product_id)).limit(1).execute().data
            or []
        )
        if not rows:
            raise BackendError(f"Product {product_id} disappeared during order write")
        current = int(rows[0].get("stock_quantity") or 0)
        if current + delta < 0:
            raise ValidationError(f"Insufficient stock for product {product_id}")

        changes = {"stock_quantity": current + delta, "updated_at": datetime.now(timezone.utc)}
        updated = (
            client.table(tables.PRODUCTS).update(_wire(changes))
            .eq("id", str(product_id)).eq("stock_quantity", current).execute().data
        )
        if not updated:
            raise BackendError(f"Stock of product {product_id} changed during order write")

    def _return_stock(self, client, taken: Dict[str, int]) -> None:
        for product_id, units in taken.items():
            try:
                with translate_errors():
                    self._adjust_stock(client, product_id, units)
            except DataAccessError as e:
                logger.warning(f"Could not return {units} units of product {product_id}: {e.message}")

    def _discard_items(self, client, order_id: str) -> None:
        try:
            with translate_errors():
                client.table(tables.ORDER_ITEMS).delete().eq("order_id", order_id).execute()
        except DataAccessError as e:
            logger.warning(f"Could not remove items of partial order {order_id}: {e.message}")


def _insert_returning(cursor, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    columns = list(row)
    values = [Json(value) if isinstance(value, (dict, list)) else _sql_value(value) for value in row.values()]
    statement = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
        sql.Identifier(table),
        sql.SQL(", ").join(sql.Identifier(column) for column in columns),
        sql.SQL(", ").join(sql.Placeholder() * len(columns)),
    )
    cursor.execute(statement, values)
    return cursor.fetchone()


def _sql_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value
