"""
Cart Item Repository - persistent per-customer cart lines

One line per (customer, product); adding the same product again is a
conflict at this level, CartService merges quantities instead.
"""
from typing import List

from arpozan.core.errors import ValidationError
from arpozan.domain import tables
from arpozan.domain.cart import CartItem, CartItemCreate, CartItemUpdate
from arpozan.domain.envelope import Envelope
from arpozan.repositories.base import BaseRepository


class CartItemRepository(BaseRepository):
    table = tables.CART_ITEMS
    entity_name = "Cart item"
    model = CartItem
    create_schema = CartItemCreate
    update_schema = CartItemUpdate

    def get_for_customer(self, customer_id: str) -> Envelope:
        """Every cart line of a customer, oldest first"""
        def work() -> List[CartItem]:
            if not customer_id:
                raise ValidationError("Customer id is required")
            rows = self._run(lambda backend: backend.find_where(self.table, {"customer_id": str(customer_id)}))
            items = [self._to_model(row) for row in rows]
            return sorted(items, key=lambda item: (item.created_at, item.id))

        return self._guard("get_for_customer", work)

    def find_item(self, customer_id: str, product_id: str) -> Envelope:
        def work():
            if not customer_id or not product_id:
                raise ValidationError("Customer id and product id are required")
            return self._find_one({"customer_id": str(customer_id), "product_id": str(product_id)})

        return self._guard("find_item", work)

    def clear(self, customer_id: str) -> Envelope:
        """Remove every line of a customer; data is the number removed"""
        def work():
            if not customer_id:
                raise ValidationError("Customer id is required")
            return self._run(lambda backend: backend.delete_where(self.table, {"customer_id": str(customer_id)}))

        return self._guard("clear", work)
