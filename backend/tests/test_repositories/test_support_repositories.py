"""
Unit tests for the admin user, cart item and analytics metric repositories
"""
from decimal import Decimal

import pytest

from arpozan.repositories.admin_user_repository import AdminUserRepository
from arpozan.repositories.analytics_repository import AnalyticsMetricRepository
from arpozan.repositories.cart_repository import CartItemRepository


class TestAdminUserRepository:

    @pytest.fixture
    def repo(self, selector):
        return AdminUserRepository(selector)

    def test_active_admin_is_found(self, repo):
        admin = repo.get_by_user_id("admin-user").data
        assert admin.role == "super_admin"
        assert admin.has_permission("orders:delete")

    def test_deactivated_admin_is_ignored(self, repo):
        manager = repo.get_by_user_id("manager-user").data
        repo.update(manager.id, {"is_active": False})
        assert repo.get_by_user_id("manager-user").data is None

    def test_user_id_is_unique(self, repo):
        assert repo.create({"user_id": "admin-user", "role": "viewer"}).kind == "conflict"

    def test_unknown_role_rejected(self, repo):
        assert repo.create({"user_id": "new-admin", "role": "overlord"}).kind == "validation"


class TestCartItemRepository:

    @pytest.fixture
    def repo(self, selector):
        return CartItemRepository(selector)

    def test_lines_of_one_customer(self, repo, seeded_ids):
        lines = repo.get_for_customer(seeded_ids["sergey"]).data
        assert {line.product_id for line in lines} == {seeded_ids["starter"], seeded_ids["omega"]}
        assert sum(line.line_total for line in lines) == Decimal("7470.00")

    def test_same_product_twice_conflicts(self, repo, seeded_ids):
        result = repo.create({
            "customer_id": seeded_ids["sergey"], "product_id": seeded_ids["omega"], "quantity": 1, "price": "1490.00",
        })
        assert result.kind == "conflict"

    def test_find_and_clear(self, repo, seeded_ids):
        assert repo.find_item(seeded_ids["sergey"], seeded_ids["omega"]).data.quantity == 2
        assert repo.find_item(seeded_ids["sergey"], seeded_ids["zinc"]).data is None
        assert repo.clear(seeded_ids["sergey"]).data == 2
        assert repo.get_for_customer(seeded_ids["sergey"]).data == []

    def test_zero_quantity_rejected(self, repo, seeded_ids):
        line = repo.find_item(seeded_ids["sergey"], seeded_ids["omega"]).data
        assert repo.update(line.id, {"quantity": 0}).kind == "validation"


class TestAnalyticsMetricRepository:

    @pytest.fixture
    def repo(self, selector):
        return AnalyticsMetricRepository(selector)

    def test_record_sets_timestamp(self, repo):
        metric = repo.record("checkout_started", 3, {"source": "cart"}).data
        assert metric.metric_name == "checkout_started"
        assert metric.metric_data == {"source": "cart"}
        assert metric.recorded_at is not None

    def test_metrics_are_append_only(self, repo):
        metric = repo.record("page_views", 1).data
        assert repo.update(metric.id, {"metric_value": 2}).kind == "validation"
        assert repo.delete(metric.id).kind == "validation"
        assert repo.get_by_id(metric.id).data.metric_value == 1
