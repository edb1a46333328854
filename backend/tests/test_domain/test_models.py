"""
Unit tests for the entity models and their input schemas
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from arpozan.domain.admin_user import AdminUser
from arpozan.domain.customer import CustomerCreate, normalize_email
from arpozan.domain.order import Order, OrderCreate, compute_order_total
from arpozan.domain.product import Product, ProductCreate, ProductUpdate, slugify

NOW = datetime(2025, 9, 1, tzinfo=timezone.utc)


class TestProduct:

    def test_slugify_latin_and_cyrillic(self):
        assert slugify("Ultimate Men's Pack") == "ultimate-men-s-pack"
        assert slugify("Мака перуанская") == "maka-peruanskaya"

    def test_resolved_slug_prefers_explicit_slug(self):
        assert ProductCreate(name="Zinc", price=1, slug="zinc-25").resolved_slug() == "zinc-25"
        assert ProductCreate(name="Long Jack 200", price=1).resolved_slug() == "long-jack-200"

    def test_invalid_slug_rejected(self):
        with pytest.raises(ValidationError):
            ProductUpdate(slug="Not A Slug")

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            ProductCreate(name="X", price=1, colour="red")

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            ProductCreate(name="X", price=1, stock_quantity=-1)

    def test_sale_fields(self):
        product = Product(
            id="p1", name="Maca", slug="maca", price=Decimal("1990"),
            original_price=Decimal("2490"), stock_quantity=0, created_at=NOW,
        )
        assert product.on_sale
        assert product.discount_percent == 20
        assert not product.in_stock
        data = product.to_dict()
        assert data["price"] == 1990.0
        assert data["original_price"] == 2490.0


class TestOrder:

    def test_total_is_sum_of_item_subtotals(self):
        items = [
            {"unit_price": Decimal("10.50"), "quantity": 2},
            {"unit_price": "4.00", "quantity": 1},
        ]
        assert compute_order_total(items) == Decimal("25.00")

    def test_order_create_needs_items(self):
        with pytest.raises(ValidationError):
            OrderCreate(customer_id="c1", items=[])

    def test_order_create_rejects_total_from_caller(self):
        with pytest.raises(ValidationError):
            OrderCreate(customer_id="c1", items=[{"product_id": "p", "quantity": 1}], total=5)

    def test_computed_fields(self):
        order = Order.model_validate({
            "id": "o1", "order_number": "ARZ1", "customer_id": "c1", "status": "pending",
            "total": "30", "created_at": NOW,
            "items": [
                {"id": "i1", "order_id": "o1", "product_id": "p1", "quantity": 2, "unit_price": "10"},
                {"id": "i2", "order_id": "o1", "product_id": "p2", "quantity": 1, "unit_price": "10"},
            ],
        })
        assert order.item_count == 2
        assert order.total_quantity == 3
        assert order.items_total == Decimal("30")
        assert order.to_dict()["items"][0]["subtotal"] == 20.0


class TestCustomerAndAdmin:

    def test_email_is_lowercased(self):
        assert normalize_email("  Alexey@Example.COM ") == "alexey@example.com"
        assert CustomerCreate(email="A@B.io").email == "a@b.io"

    def test_bad_email_rejected(self):
        with pytest.raises(ValidationError):
            CustomerCreate(email="not-an-email")

    def test_admin_permissions(self):
        admin = AdminUser(id="a", user_id="u", role="manager", permissions=["orders:read"], created_at=NOW)
        assert admin.has_permission("orders:read")
        assert not admin.has_permission("products:write")
        wildcard = AdminUser(id="b", user_id="v", permissions=["*"], created_at=NOW)
        assert wildcard.has_permission("anything")
        inactive = AdminUser(id="c", user_id="w", permissions=["*"], is_active=False, created_at=NOW)
        assert not inactive.has_permission("anything")
