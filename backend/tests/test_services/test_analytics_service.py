"""
Unit tests for the dashboard aggregation
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from arpozan.core.errors import BackendError
from arpozan.domain.envelope import Envelope
from arpozan.domain.query import QueryDescriptor
from arpozan.repositories.product_repository import ProductRepository
from arpozan.services.analytics_service import DashboardService, collect_all, compute_dashboard_metrics


class TestComputeDashboardMetrics:

    def test_only_revenue_statuses_count(self):
        """Cancelled orders are counted as orders but never as revenue"""
        # Arrange
        orders = [
            {"id": "1", "total": 100, "status": "delivered", "customer_id": "c1"},
            {"id": "2", "total": 50, "status": "cancelled", "customer_id": "c1"},
        ]

        # Act
        result = compute_dashboard_metrics(orders, [], [])

        # Assert
        assert result.success
        assert result.data["total_revenue"] == 100
        assert result.data["order_count"] == 2
        assert result.data["distinct_customer_count"] == 1
        assert result.data["conversion_rate"] == 0.5
        assert result.data["orders_by_status"] == {"cancelled": 1, "delivered": 1}

    def test_no_orders_means_zero_rates(self):
        result = compute_dashboard_metrics([], [], [])

        assert result.data["conversion_rate"] == 0
        assert result.data["average_order_value"] == 0
        assert result.data["recent_orders"] == []

    def test_failed_input_is_returned_unchanged(self):
        failed = Envelope.fail(BackendError("Supabase unreachable"))

        result = compute_dashboard_metrics([], failed, [])

        assert result is failed

    def test_custom_revenue_statuses(self):
        orders = [{"id": "1", "total": 40, "status": "shipped"}, {"id": "2", "total": 60, "status": "delivered"}]
        result = compute_dashboard_metrics(orders, [], [], revenue_statuses={"shipped", "delivered"})
        assert result.data["total_revenue"] == 100

    def test_stock_counters_ignore_inactive_products(self):
        products = [
            {"stock_quantity": 0, "is_active": True},
            {"stock_quantity": 3, "is_active": True},
            {"stock_quantity": 50, "is_active": True},
            {"stock_quantity": 0, "is_active": False},
        ]
        result = compute_dashboard_metrics([], [], products, low_stock_threshold=10)
        assert result.data["active_product_count"] == 3
        assert result.data["low_stock_count"] == 2
        assert result.data["out_of_stock_count"] == 1

    def test_daily_revenue_and_recent_orders(self):
        orders = [
            {"id": "a", "total": 10, "status": "delivered", "created_at": "2025-09-01T10:00:00Z"},
            {"id": "b", "total": 15, "status": "delivered", "created_at": "2025-09-01T18:00:00Z"},
            {"id": "c", "total": 20, "status": "delivered", "created_at": datetime(2025, 9, 3, tzinfo=timezone.utc)},
        ]

        data = compute_dashboard_metrics(orders, [], []).data

        assert data["daily_revenue"] == [
            {"date": "2025-09-01", "revenue": 25.0},
            {"date": "2025-09-03", "revenue": 20.0},
        ]
        assert [order["id"] for order in data["recent_orders"]] == ["c", "b", "a"]

    def test_malformed_totals_fail_cleanly(self):
        result = compute_dashboard_metrics([{"id": "1", "total": "lots", "status": "delivered"}], [], [])
        assert not result.success
        assert result.kind == "internal"


class TestCollectAll:

    def test_collects_every_page(self, selector):
        repo = ProductRepository(selector)
        result = collect_all(repo, QueryDescriptor(sort_field="name", sort_direction="asc", page_size=5))
        assert len(result.data) == 12

    def test_stops_at_first_failed_page(self):
        repo = MagicMock()
        failed = Envelope.fail(BackendError("down"))
        repo.get_all.side_effect = [Envelope.ok({"items": [1], "total": 200, "total_pages": 2}), failed]

        assert collect_all(repo) is failed
        assert repo.get_all.call_count == 2


class TestDashboardService:

    def test_metrics_over_seed(self, selector):
        data = DashboardService().get_metrics().data

        assert data["total_revenue"] == 6560.0
        assert data["order_count"] == 6
        assert data["customer_count"] == 5
        assert data["active_product_count"] == 11
        assert data["low_stock_count"] == 4
        assert data["out_of_stock_count"] == 1
        assert data["conversion_rate"] == pytest.approx(0.3333)
        assert data["recent_orders"][0]["order_number"] == "ARZ-006"
