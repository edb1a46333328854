"""
Unit tests for CustomerRepository and its delete policy
"""
import pytest

from arpozan.domain import tables
from arpozan.domain.query import QueryDescriptor
from arpozan.repositories.customer_repository import CustomerRepository


@pytest.fixture
def repo(selector):
    return CustomerRepository(selector)


class TestCustomerRepository:

    def test_create_lowercases_email(self, repo):
        result = repo.create({"email": "Olga@Example.com", "first_name": "Olga"})
        assert result.success
        assert result.data.email == "olga@example.com"
        assert result.data.total_orders == 0

    def test_duplicate_email_is_conflict(self, repo):
        assert repo.create({"email": "ALEXEY@example.com"}).kind == "conflict"

    def test_counters_cannot_be_set(self, repo, seeded_ids):
        assert repo.create({"email": "x@y.io", "total_spent": 10}).kind == "validation"
        assert repo.update(seeded_ids["sergey"], {"total_orders": 5}).kind == "validation"

    def test_lookup_by_email_and_user(self, repo, seeded_ids):
        assert repo.get_by_email("  SERGEY@example.com").data.id == seeded_ids["sergey"]
        assert repo.get_by_email("nobody@example.com").data is None
        assert repo.get_by_email("broken").kind == "validation"

        sergey = repo.get_by_id(seeded_ids["sergey"]).data
        assert repo.get_by_user_id(sergey.user_id).data.id == sergey.id

    def test_search_over_names(self, repo):
        result = repo.get_all(QueryDescriptor(search_text="volkov")).data
        assert [customer.first_name for customer in result["items"]] == ["Sergey"]

    def test_customer_with_orders_is_deactivated(self, repo, dataset, seeded_ids):
        """Soft delete: row stays, status becomes inactive, orders untouched"""
        # Arrange
        orders_before = dataset.count(tables.ORDERS, {"customer_id": seeded_ids["alexey"]})

        # Act
        result = repo.delete(seeded_ids["alexey"])

        # Assert
        assert result.success
        customer = repo.get_by_id(seeded_ids["alexey"]).data
        assert customer is not None
        assert customer.status == "inactive"
        assert dataset.count(tables.ORDERS, {"customer_id": seeded_ids["alexey"]}) == orders_before

    def test_customer_without_orders_is_removed_with_cart(self, repo, dataset, seeded_ids):
        """Hard delete: the row and its cart lines disappear"""
        assert dataset.count(tables.CART_ITEMS, {"customer_id": seeded_ids["sergey"]}) == 2

        assert repo.delete(seeded_ids["sergey"]).success

        assert repo.get_by_id(seeded_ids["sergey"]).data is None
        assert dataset.count(tables.CART_ITEMS, {"customer_id": seeded_ids["sergey"]}) == 0

    def test_delete_missing_customer(self, repo):
        assert repo.delete("missing").kind == "not_found"
