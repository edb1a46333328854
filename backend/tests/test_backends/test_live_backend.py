"""
Unit tests for SupabaseBackend with a mocked Supabase client and psycopg2 connection
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import psycopg2
import pytest
from postgrest.exceptions import APIError

from arpozan.backends.live import SupabaseBackend
from arpozan.core.errors import BackendError, ConflictError, PartialOrderError, ValidationError
from arpozan.domain.query import NumericRange, QueryDescriptor


class FakeQuery:
    """Records every builder call and returns itself, like the PostgREST request builder"""

    def __init__(self, data=None, count=None, error=None):
        self.calls = []
        self._response = SimpleNamespace(data=data if data is not None else [], count=count)
        self._error = error

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return record

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._response

    def names(self):
        return [name for name, _, _ in self.calls]

    def args_of(self, name):
        return [args for call_name, args, _ in self.calls if call_name == name]


def client_with(*queries):
    client = MagicMock()
    client.table.side_effect = list(queries)
    return client


def api_error(code, message="boom", details=None):
    return APIError({"code": code, "message": message, "details": details, "hint": None})


class TestExecuteTranslation:

    def test_descriptor_becomes_builder_calls(self):
        query = FakeQuery(data=[{"id": "p1"}], count=7)
        backend = SupabaseBackend(client_with(query))
        descriptor = QueryDescriptor(
            equality_filters={"category": "vitamins", "is_active": True, "phone": None, "status": ["a", "b"]},
            search_text="zinc",
            search_fields=("name", "description"),
            numeric_range={"price": NumericRange(min=100, max=2000)},
            sort_field="price",
            sort_direction="asc",
            page=2,
            page_size=10,
        )

        result = backend.execute("products", descriptor)

        assert result.rows == [{"id": "p1"}]
        assert result.total == 7
        assert ("category", "vitamins") in query.args_of("eq")
        assert ("is_active", "true") in query.args_of("eq")
        assert query.args_of("is_") == [("phone", "null")]
        assert query.args_of("in_") == [("status", ["a", "b"])]
        assert query.args_of("or_") == [("name.ilike.*zinc*,description.ilike.*zinc*",)]
        assert query.args_of("gte") == [("price", 100)]
        assert query.args_of("lte") == [("price", 2000)]
        assert query.args_of("order") == [("price",), ("id",)]
        assert query.args_of("range") == [(10, 19)]

    def test_descending_sort_puts_nulls_first(self):
        query = FakeQuery()
        SupabaseBackend(client_with(query)).execute("products", QueryDescriptor(sort_field="price"))
        sort_call = next(call for call in query.calls if call[0] == "order")
        assert sort_call[2] == {"desc": True, "nullsfirst": True}

    def test_select_asks_for_exact_count(self):
        query = FakeQuery()
        SupabaseBackend(client_with(query)).execute("products", QueryDescriptor())
        assert query.calls[0] == ("select", ("*",), {"count": "exact"})

    def test_page_past_the_end_falls_back_to_count(self):
        failing = FakeQuery(error=api_error("PGRST103", "Requested range not satisfiable"))
        counting = FakeQuery(count=12)
        backend = SupabaseBackend(client_with(failing, counting))

        result = backend.execute("products", QueryDescriptor(page=50))

        assert result.rows == []
        assert result.total == 12
        assert counting.calls[0] == ("select", ("id",), {"count": "exact", "head": True})


class TestErrorTranslation:

    def test_unique_violation_is_conflict(self):
        query = FakeQuery(error=api_error("23505", "duplicate key", details="slug"))
        with pytest.raises(ConflictError):
            SupabaseBackend(client_with(query)).insert("products", {"id": "p", "slug": "zinc"})

    @pytest.mark.parametrize("code", ["23502", "22P02", "23514", "22003"])
    def test_invalid_data_is_validation(self, code):
        query = FakeQuery(error=api_error(code))
        with pytest.raises(ValidationError):
            SupabaseBackend(client_with(query)).insert("products", {"id": "p"})

    def test_other_api_errors_are_backend_errors(self):
        query = FakeQuery(error=api_error("PGRST301", "JWT expired"))
        with pytest.raises(BackendError):
            SupabaseBackend(client_with(query)).fetch_by_id("products", "p")

    def test_timeout_is_backend_error(self):
        query = FakeQuery(error=httpx.ReadTimeout("timed out"))
        with pytest.raises(BackendError):
            SupabaseBackend(client_with(query)).find_where("products", {})


class TestClientChoice:

    def test_privileged_tables_use_service_client(self):
        anon = MagicMock()
        service = client_with(FakeQuery(count=3))
        assert SupabaseBackend(anon, service).count("orders", {}) == 3
        anon.table.assert_not_called()

    def test_public_reads_use_anon_client(self):
        anon = client_with(FakeQuery(data=[{"id": "p"}]))
        service = MagicMock()
        assert SupabaseBackend(anon, service).fetch_by_id("products", "p") == {"id": "p"}
        service.table.assert_not_called()

    def test_writes_use_service_client(self):
        anon = MagicMock()
        service = client_with(FakeQuery(data=[{"id": "p", "name": "Zinc"}]))
        SupabaseBackend(anon, service).update("products", "p", {"name": "Zinc"})
        anon.table.assert_not_called()

    def test_delete_where_requires_filters(self):
        with pytest.raises(ValidationError):
            SupabaseBackend(MagicMock()).delete_where("cart_items", {})


class TestTwoPhaseOrder:

    ORDER = {"id": "o-1", "order_number": "ARZ-1", "status": "pending", "total": "10.00"}
    ITEMS = [{"id": "i-1", "order_id": "o-1", "quantity": 1}, {"id": "i-2", "order_id": "o-1", "quantity": 2}]

    def test_success_finalises_status(self):
        header = FakeQuery(data=[self.ORDER])
        items = FakeQuery(data=self.ITEMS)
        final = FakeQuery(data=[{**self.ORDER, "status": "processing"}])
        backend = SupabaseBackend(client_with(header, items, final))

        order, written = backend.create_order(self.ORDER, self.ITEMS, "processing")

        assert order["status"] == "processing"
        assert len(written) == 2
        assert header.args_of("insert")[0][0]["status"] == "pending"
        assert final.args_of("update")[0][0]["status"] == "processing"

    def test_header_failure_is_an_ordinary_error(self):
        header = FakeQuery(error=api_error("23505", details="order_number"))
        with pytest.raises(ConflictError):
            SupabaseBackend(client_with(header)).create_order(self.ORDER, self.ITEMS, "processing")

    def test_item_failure_after_header_is_partial(self):
        header = FakeQuery(data=[self.ORDER])
        items = FakeQuery(error=httpx.ConnectError("connection reset"))
        cleanup = FakeQuery()
        backend = SupabaseBackend(client_with(header, items, cleanup))

        with pytest.raises(PartialOrderError) as raised:
            backend.create_order(self.ORDER, self.ITEMS, "processing")

        assert raised.value.order_id == "o-1"
        assert cleanup.args_of("eq") == [("order_id", "o-1")]

    def test_short_item_write_is_partial(self):
        header = FakeQuery(data=[self.ORDER])
        items = FakeQuery(data=self.ITEMS[:1])
        cleanup = FakeQuery()
        backend = SupabaseBackend(client_with(header, items, cleanup))

        with pytest.raises(PartialOrderError):
            backend.create_order(self.ORDER, self.ITEMS, "processing")


    def test_stock_is_taken_with_compare_and_set(self):
        header = FakeQuery(data=[self.ORDER])
        items = FakeQuery(data=self.ITEMS)
        stock_read = FakeQuery(data=[{"id": "p-1", "stock_quantity": 10}])
        stock_write = FakeQuery(data=[{"id": "p-1", "stock_quantity": 7}])
        final = FakeQuery(data=[{**self.ORDER, "status": "processing"}])
        backend = SupabaseBackend(client_with(header, items, stock_read, stock_write, final))

        order, _ = backend.create_order(self.ORDER, self.ITEMS, "processing", stock_deductions={"p-1": 3})

        assert order["status"] == "processing"
        assert stock_write.args_of("update")[0][0]["stock_quantity"] == 7
        assert stock_write.args_of("eq") == [("id", "p-1"), ("stock_quantity", 10)]

    def test_concurrent_stock_change_is_partial_and_gives_stock_back(self):
        header = FakeQuery(data=[self.ORDER])
        items = FakeQuery(data=self.ITEMS)
        first_read = FakeQuery(data=[{"id": "p-1", "stock_quantity": 10}])
        first_write = FakeQuery(data=[{"id": "p-1", "stock_quantity": 9}])
        second_read = FakeQuery(data=[{"id": "p-2", "stock_quantity": 4}])
        second_write = FakeQuery(data=[])
        cleanup = FakeQuery()
        restore_read = FakeQuery(data=[{"id": "p-1", "stock_quantity": 9}])
        restore_write = FakeQuery(data=[{"id": "p-1", "stock_quantity": 10}])
        backend = SupabaseBackend(client_with(
            header, items, first_read, first_write, second_read, second_write, cleanup, restore_read, restore_write,
        ))

        with pytest.raises(PartialOrderError):
            backend.create_order(self.ORDER, self.ITEMS, "processing", stock_deductions={"p-1": 1, "p-2": 2})

        assert cleanup.args_of("eq") == [("order_id", "o-1")]
        assert restore_write.args_of("update")[0][0]["stock_quantity"] == 10


class TestTransactionalOrder:

    ORDER = {"id": "o-1", "order_number": "ARZ-1", "status": "pending", "total": "10.00"}
    ITEMS = [{"id": "i-1", "order_id": "o-1", "quantity": 1, "product_snapshot": {"name": "Zinc"}}]

    def connection(self):
        conn = MagicMock()
        cursor = conn.cursor.return_value.__enter__.return_value
        return conn, cursor

    def test_commit_on_success(self):
        conn, cursor = self.connection()
        cursor.fetchone.side_effect = [self.ORDER, self.ITEMS[0], {**self.ORDER, "status": "processing"}]
        backend = SupabaseBackend(MagicMock(), connection_factory=lambda: conn)

        order, items = backend.create_order(self.ORDER, self.ITEMS, "processing")

        assert backend.has_transactions
        assert order["status"] == "processing"
        assert len(items) == 1
        assert cursor.execute.call_count == 3
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once()

    def test_rollback_on_database_error(self):
        conn, cursor = self.connection()
        cursor.fetchone.return_value = self.ORDER
        cursor.execute.side_effect = [None, psycopg2.OperationalError("server closed the connection")]
        backend = SupabaseBackend(MagicMock(), connection_factory=lambda: conn)

        with pytest.raises(BackendError):
            backend.create_order(self.ORDER, self.ITEMS, "processing")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()

    def test_stock_is_lowered_inside_the_transaction(self):
        conn, cursor = self.connection()
        cursor.fetchone.side_effect = [
            self.ORDER, self.ITEMS[0], {"id": "p-1"}, {**self.ORDER, "status": "processing"},
        ]
        backend = SupabaseBackend(MagicMock(), connection_factory=lambda: conn)

        backend.create_order(self.ORDER, self.ITEMS, "processing", stock_deductions={"p-1": 2})

        stock_params = cursor.execute.call_args_list[2].args[1]
        assert stock_params[0] == 2 and stock_params[2:] == ("p-1", 2)
        conn.commit.assert_called_once()

    def test_insufficient_stock_rolls_back(self):
        conn, cursor = self.connection()
        cursor.fetchone.side_effect = [self.ORDER, self.ITEMS[0], None]
        backend = SupabaseBackend(MagicMock(), connection_factory=lambda: conn)

        with pytest.raises(ValidationError):
            backend.create_order(self.ORDER, self.ITEMS, "processing", stock_deductions={"p-1": 2})

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()
