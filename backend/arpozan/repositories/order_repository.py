"""
Order Repository - Data Access Layer for Orders

Orders come back with their customer and items embedded. Creation
validates the customer and every product, snapshots name and price into
each item and delegates the header+items+stock write to the backend's
create_order (transaction, two-phase write or in-memory). Cart lines of
the ordered products are removed afterwards.

Author: Arpozan
"""
import logging
import secrets
import time
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Optional

from arpozan.backends.base import DataBackend
from arpozan.core.errors import DataAccessError, NotFoundError, ValidationError
from arpozan.domain import tables
from arpozan.domain.customer import CustomerStatus
from arpozan.domain.envelope import Envelope
from arpozan.domain.order import (
    CustomerSummary,
    Order,
    OrderCreate,
    OrderItem,
    OrderStatus,
    OrderUpdate,
    compute_order_total,
)
from arpozan.domain.query import QueryDescriptor
from arpozan.repositories.base import BaseRepository, new_id, utc_now
from arpozan.repositories.product_repository import load_products

logger = logging.getLogger(__name__)


def generate_order_number() -> str:
    """ARZ + epoch milliseconds + 5 random base-36 characters"""
    alphabet = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    suffix = "".join(secrets.choice(alphabet) for _ in range(5))
    return f"ARZ{int(time.time() * 1000)}{suffix}"


def refresh_customer_counters(backend: DataBackend, customer_id: str) -> Optional[Dict[str, Any]]:
    """Recompute total_orders/total_spent from the customer's non-cancelled orders"""
    orders = backend.find_where(tables.ORDERS, {"customer_id": customer_id})
    counted = [order for order in orders if order.get("status") != OrderStatus.CANCELLED.value]
    total_spent = sum((Decimal(str(order.get("total") or 0)) for order in counted), Decimal("0"))
    return backend.update(
        tables.CUSTOMERS,
        customer_id,
        {"total_orders": len(counted), "total_spent": total_spent, "updated_at": utc_now()},
    )


class OrderRepository(BaseRepository):
    """
    Repository for Order data access

    Deleting an order that has items cancels it instead of removing it.
    """

    table = tables.ORDERS
    entity_name = "Order"
    model = Order
    create_schema = OrderCreate
    update_schema = OrderUpdate
    search_fields = ("order_number",)
    embedded_fields = frozenset({"customer", "items"})

    def _hydrate(self, backend: DataBackend, rows: List[Dict[str, Any]]) -> List[Order]:
        if not rows:
            return []
        order_ids = [str(row["id"]) for row in rows]
        customer_ids = sorted({str(row["customer_id"]) for row in rows if row.get("customer_id")})

        items_by_order = defaultdict(list)
        for item in backend.find_where(tables.ORDER_ITEMS, {"order_id": order_ids}):
            items_by_order[str(item["order_id"])].append(OrderItem.model_validate(item))

        customers = {}
        if customer_ids:
            for customer in backend.find_where(tables.CUSTOMERS, {"id": customer_ids}):
                customers[str(customer["id"])] = CustomerSummary.model_validate(customer)

        orders = []
        for row in rows:
            order = Order.model_validate({
                **row,
                "items": items_by_order.get(str(row["id"]), []),
                "customer": customers.get(str(row.get("customer_id"))),
            })
            orders.append(order)
        return orders

    def get_for_customer(self, customer_id: str, descriptor: Optional[QueryDescriptor] = None) -> Envelope:
        """Orders of one customer (same shape as get_all)"""
        if not customer_id:
            return Envelope.fail(ValidationError("Customer id is required"))
        descriptor = descriptor or QueryDescriptor(sort_field="created_at")
        scoped = descriptor.model_copy(
            update={"equality_filters": {**descriptor.equality_filters, "customer_id": str(customer_id)}}
        )
        return self.get_all(scoped)

    def create(self, attributes: Any) -> Envelope:
        """
        Create an order with its items

        Args:
            attributes: customer_id, items [{product_id, quantity}],
                        shipping_address, notes

        Returns:
            Envelope with the stored Order (status 'processing'), or a failed
            Envelope. A 'partial_order' failure names the order whose header
            was written without all of its items.
        """
        def work():
            payload = self._validate(OrderCreate, attributes)
            order = self._run(lambda backend: self._create_order(backend, payload))
            logger.info(f"Order {order.order_number} created with {order.item_count} items")
            return order

        return self._guard("create", work)

    def _create_order(self, backend: DataBackend, payload: OrderCreate) -> Order:
        customer = backend.fetch_by_id(tables.CUSTOMERS, payload.customer_id)
        if customer is None:
            raise NotFoundError("Customer", payload.customer_id)
        if customer.get("status") != CustomerStatus.ACTIVE.value:
            raise ValidationError(f"Customer {payload.customer_id} is not active")

        requested = defaultdict(int)
        for line in payload.items:
            requested[line.product_id] += line.quantity

        products = load_products(backend, list(requested))
        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                raise NotFoundError("Product", product_id)
            if not product.is_active:
                raise ValidationError(f"Product {product.name} is not available")
            if product.stock_quantity < quantity:
                raise ValidationError(
                    f"Insufficient stock for {product.name}: {product.stock_quantity} available, {quantity} requested"
                )

        order_id = new_id()
        now = utc_now()
        item_rows = [
            {
                "id": new_id(),
                "order_id": order_id,
                "product_id": line.product_id,
                "product_name": products[line.product_id].name,
                "quantity": line.quantity,
                "unit_price": products[line.product_id].price,
            }
            for line in payload.items
        ]
        order_row = {
            "id": order_id,
            "order_number": generate_order_number(),
            "customer_id": payload.customer_id,
            "status": OrderStatus.PENDING.value,
            "total": compute_order_total(item_rows),
            "shipping_address": payload.shipping_address,
            "notes": payload.notes,
            "created_at": now,
            "updated_at": now,
        }

        header, items = backend.create_order(
            order_row, item_rows, OrderStatus.PROCESSING.value, stock_deductions=dict(requested)
        )
        self._refresh_counters(backend, payload.customer_id)
        self._clear_ordered_cart_lines(backend, payload.customer_id, list(requested))
        return Order.model_validate({
            **header,
            "items": items,
            "customer": CustomerSummary.model_validate(customer),
        })

    def _refresh_counters(self, backend: DataBackend, customer_id: Optional[str]) -> None:
        # failures are logged only, the order write already happened
        if not customer_id:
            return
        try:
            refresh_customer_counters(backend, str(customer_id))
        except DataAccessError as e:
            logger.warning(f"Could not refresh counters for customer {customer_id}: {e.message}")

    def _clear_ordered_cart_lines(self, backend: DataBackend, customer_id: str, product_ids: List[str]) -> None:
        # failures are logged only, the order write already happened
        try:
            removed = backend.delete_where(
                tables.CART_ITEMS, {"customer_id": str(customer_id), "product_id": product_ids}
            )
            logger.debug(f"Removed {removed} ordered cart lines of customer {customer_id}")
        except DataAccessError as e:
            logger.warning(f"Could not clear cart of customer {customer_id}: {e.message}")

    def _after_update(self, backend: DataBackend, record: Order) -> None:
        self._refresh_counters(backend, record.customer_id)

    def _delete(self, backend: DataBackend, record_id: str) -> None:
        row = backend.fetch_by_id(self.table, record_id)
        if row is None:
            raise NotFoundError(self.entity_name, record_id)

        if backend.count(tables.ORDER_ITEMS, {"order_id": record_id}) > 0:
            backend.update(
                self.table,
                record_id,
                {"status": OrderStatus.CANCELLED.value, "updated_at": utc_now()},
            )
            logger.info(f"Order {record_id} has items, cancelled instead of deleted")
        else:
            backend.delete(self.table, record_id)
        self._refresh_counters(backend, row.get("customer_id"))
