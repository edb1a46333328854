"""
Customer Repository - Data Access Layer for Customers

Customers that have ever ordered are deactivated rather than deleted, so
order history keeps pointing at a real row.

Author: Arpozan
"""
import logging

from arpozan.backends.base import DataBackend
from arpozan.core.errors import NotFoundError, ValidationError
from arpozan.domain import tables
from arpozan.domain.customer import Customer, CustomerCreate, CustomerStatus, CustomerUpdate, normalize_email
from arpozan.domain.envelope import Envelope
from arpozan.repositories.base import BaseRepository, utc_now

logger = logging.getLogger(__name__)


class CustomerRepository(BaseRepository):
    table = tables.CUSTOMERS
    entity_name = "Customer"
    model = Customer
    create_schema = CustomerCreate
    update_schema = CustomerUpdate
    search_fields = ("email", "first_name", "last_name", "phone")

    def get_by_user_id(self, user_id: str) -> Envelope:
        """Customer linked to an external identity, or None"""
        def work():
            if not user_id:
                raise ValidationError("User id is required")
            return self._find_one({"user_id": str(user_id)})

        return self._guard("get_by_user_id", work)

    def get_by_email(self, email: str) -> Envelope:
        def work():
            try:
                normalized = normalize_email(email)
            except ValueError as e:
                raise ValidationError(str(e))
            if not normalized:
                raise ValidationError("Email is required")
            return self._find_one({"email": normalized})

        return self._guard("get_by_email", work)

    def _delete(self, backend: DataBackend, record_id: str) -> None:
        if backend.fetch_by_id(self.table, record_id) is None:
            raise NotFoundError(self.entity_name, record_id)

        order_count = backend.count(tables.ORDERS, {"customer_id": record_id})
        if order_count > 0:
            backend.update(
                self.table,
                record_id,
                {"status": CustomerStatus.INACTIVE.value, "updated_at": utc_now()},
            )
            logger.info(f"Customer {record_id} has {order_count} orders, deactivated instead of deleted")
            return

        removed = backend.delete_where(tables.CART_ITEMS, {"customer_id": record_id})
        backend.delete(self.table, record_id)
        logger.debug(f"Customer {record_id} deleted with {removed} cart items")
