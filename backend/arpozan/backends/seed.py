"""
Seed data for the fallback dataset

Identifiers are uuid5 values derived from stable names and timestamps are
fixed, so every process builds exactly the same dataset and pagination is
reproducible.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List
from uuid import NAMESPACE_URL, uuid5

from arpozan.domain import tables

SEED_NAMESPACE = uuid5(NAMESPACE_URL, "https://arpozan.com/seed")
SEED_EPOCH = datetime(2025, 9, 1, 9, 0, tzinfo=timezone.utc)


def seed_id(kind: str, key: str) -> str:
    return str(uuid5(SEED_NAMESPACE, f"{kind}:{key}"))


def _at(days: int, hours: int = 0) -> datetime:
    return SEED_EPOCH + timedelta(days=days, hours=hours)


# slug, name, category, price, original_price, stock, featured, active, tags
_PRODUCTS = [
    ("zinc-picolinate", "Zinc Picolinate", "supplements", "1990.00", None, 45, True, True, ["zinc", "immunity"]),
    ("maca-peruvian", "Peruvian Maca", "supplements", "1990.00", "2490.00", 8, True, True, ["maca", "energy"]),
    ("tongkat-ali", "Tongkat Ali", "supplements", "2990.00", None, 32, True, True, ["testosterone", "energy"]),
    ("yohimbine-hcl", "Yohimbine HCl", "supplements", "1990.00", None, 0, False, True, ["fat-burning"]),
    ("long-jack", "Long Jack", "supplements", "2490.00", "2990.00", 5, False, True, ["energy"]),
    ("ultimate-mens-pack", "Ultimate Men's Pack", "bundles", "7990.00", "9470.00", 15, True, True, ["bundle", "bestseller"]),
    ("starter-pack", "Starter Pack", "bundles", "4490.00", None, 22, False, True, ["bundle"]),
    ("magnesium-glycinate", "Magnesium Glycinate", "vitamins", "1290.00", None, 60, False, True, ["sleep", "recovery"]),
    ("vitamin-d3-k2", "Vitamin D3 + K2", "vitamins", "990.00", None, 3, False, True, ["immunity"]),
    ("omega-3", "Omega-3 Ultra", "vitamins", "1490.00", "1690.00", 27, False, True, ["heart"]),
    ("ashwagandha-ksm66", "Ashwagandha KSM-66", "supplements", "1790.00", None, 12, False, True, ["stress", "sleep"]),
    ("shilajit-resin", "Shilajit Resin", "supplements", "3490.00", None, 0, False, False, ["energy"]),
]

# key, email, first_name, last_name, phone, tier, status
_CUSTOMERS = [
    ("alexey", "alexey@example.com", "Alexey", "Petrov", "+7 912 345-67-01", "gold", "active"),
    ("dmitry", "dmitry@example.com", "Dmitry", "Ivanov", "+7 912 345-67-02", "silver", "active"),
    ("mikhail", "mikhail@example.com", "Mikhail", "Sidorov", "+7 912 345-67-03", "bronze", "active"),
    ("sergey", "sergey@example.com", "Sergey", "Volkov", None, "bronze", "active"),
    ("ivan", "ivan@example.com", "Ivan", "Smirnov", "+7 912 345-67-05", "bronze", "inactive"),
]

# number, customer key, status, day offset, [(product slug, quantity)]
_ORDERS = [
    ("ARZ-001", "alexey", "delivered", 11, [("tongkat-ali", 1)]),
    ("ARZ-002", "dmitry", "pending", 13, [("ultimate-mens-pack", 1)]),
    ("ARZ-003", "mikhail", "shipped", 12, [("zinc-picolinate", 1), ("maca-peruvian", 1)]),
    ("ARZ-004", "alexey", "delivered", 15, [("magnesium-glycinate", 2), ("vitamin-d3-k2", 1)]),
    ("ARZ-005", "dmitry", "cancelled", 16, [("long-jack", 1)]),
    ("ARZ-006", "mikhail", "processing", 18, [("omega-3", 3)]),
]

_ADMINS = [
    ("admin-user", "admin@arpozan.com", "super_admin", ["*"], True),
    ("manager-user", "manager@arpozan.com", "manager", ["products:write", "orders:read"], True),
]

# customer key, product slug, quantity
_CART = [
    ("sergey", "starter-pack", 1),
    ("sergey", "omega-3", 2),
    ("mikhail", "ashwagandha-ksm66", 1),
]

# name, value, data, day offset
_METRICS = [
    ("page_views", 1240.0, {"page": "home"}, 10),
    ("page_views", 860.0, {"page": "catalog"}, 10),
    ("checkout_started", 42.0, {}, 11),
    ("checkout_completed", 17.0, {}, 11),
]


def _build_products() -> List[Dict[str, Any]]:
    rows = []
    for index, (slug, name, category, price, original, stock, featured, active, tags) in enumerate(_PRODUCTS):
        rows.append({
            "id": seed_id("product", slug),
            "name": name,
            "slug": slug,
            "description": f"{name} by Arpozan",
            "price": Decimal(price),
            "original_price": Decimal(original) if original else None,
            "stock_quantity": stock,
            "category": category,
            "is_active": active,
            "is_featured": featured,
            "tags": list(tags),
            "images": [f"/assets/imgs/{slug}.png"],
            "created_at": _at(index),
            "updated_at": _at(index),
        })
    return rows


def _build_orders(products: Dict[str, Dict[str, Any]]):
    orders, items = [], []
    for number, customer_key, status, day, lines in _ORDERS:
        order_id = seed_id("order", number)
        total = Decimal("0")
        for line_no, (slug, quantity) in enumerate(lines):
            product = products[slug]
            total += product["price"] * quantity
            items.append({
                "id": seed_id("order_item", f"{number}:{line_no}"),
                "order_id": order_id,
                "product_id": product["id"],
                "product_name": product["name"],
                "quantity": quantity,
                "unit_price": product["price"],
            })
        orders.append({
            "id": order_id,
            "order_number": number,
            "customer_id": seed_id("customer", customer_key),
            "status": status,
            "total": total,
            "shipping_address": {"city": "Moscow", "line1": f"Tverskaya {day}"},
            "notes": None,
            "created_at": _at(day),
            "updated_at": _at(day, 6),
        })
    return orders, items


def _build_customers(orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for index, (key, email, first, last, phone, tier, status) in enumerate(_CUSTOMERS):
        customer_id = seed_id("customer", key)
        counted = [
            order for order in orders
            if order["customer_id"] == customer_id and order["status"] != "cancelled"
        ]
        rows.append({
            "id": customer_id,
            "user_id": seed_id("auth_user", key),
            "email": email,
            "first_name": first,
            "last_name": last,
            "phone": phone,
            "status": status,
            "tier": tier,
            "total_orders": len(counted),
            "total_spent": sum((order["total"] for order in counted), Decimal("0")),
            "created_at": _at(index),
            "updated_at": _at(index),
        })
    return rows


def build_seed() -> Dict[str, List[Dict[str, Any]]]:
    """Fresh copy of the full seed, keyed by table name"""
    products = _build_products()
    by_slug = {row["slug"]: row for row in products}
    orders, order_items = _build_orders(by_slug)
    customers = _build_customers(orders)

    admin_users = [
        {
            "id": seed_id("admin", user_key),
            "user_id": user_key,
            "email": email,
            "role": role,
            "permissions": list(permissions),
            "is_active": active,
            "created_at": _at(0),
            "updated_at": _at(0),
        }
        for user_key, email, role, permissions, active in _ADMINS
    ]

    cart_items = [
        {
            "id": seed_id("cart_item", f"{customer_key}:{slug}"),
            "customer_id": seed_id("customer", customer_key),
            "product_id": by_slug[slug]["id"],
            "quantity": quantity,
            "price": by_slug[slug]["price"],
            "created_at": _at(20),
            "updated_at": _at(20),
        }
        for customer_key, slug, quantity in _CART
    ]

    analytics = [
        {
            "id": seed_id("metric", f"{name}:{index}"),
            "metric_name": name,
            "metric_value": value,
            "metric_data": dict(data),
            "recorded_at": _at(day),
        }
        for index, (name, value, data, day) in enumerate(_METRICS)
    ]

    return {
        tables.PRODUCTS: products,
        tables.CUSTOMERS: customers,
        tables.ORDERS: orders,
        tables.ORDER_ITEMS: order_items,
        tables.ADMIN_USERS: admin_users,
        tables.CART_ITEMS: cart_items,
        tables.ANALYTICS: analytics,
    }
