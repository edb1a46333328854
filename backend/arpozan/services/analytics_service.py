"""
Analytics Service - dashboard metrics over orders, customers and products

compute_dashboard_metrics is a pure function: it only looks at the records
it is given. DashboardService gathers every page of those records through
the repositories and hands them over.
"""
import logging
from collections import Counter, defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from arpozan.core.config import get_settings
from arpozan.core.errors import DataAccessError
from arpozan.domain.envelope import Envelope
from arpozan.domain.query import MAX_PAGE_SIZE, QueryDescriptor
from arpozan.repositories.base import BaseRepository
from arpozan.repositories.customer_repository import CustomerRepository
from arpozan.repositories.order_repository import OrderRepository
from arpozan.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

RECENT_ORDER_LIMIT = 10


class _FailedInput(Exception):
    def __init__(self, envelope: Envelope):
        super().__init__(envelope.error)
        self.envelope = envelope


def _records(source: Any) -> List[Any]:
    """Plain list out of a list, a get_all Envelope or a list Envelope"""
    if isinstance(source, Envelope):
        if not source.success:
            raise _FailedInput(source)
        source = source.data
    if isinstance(source, dict) and "items" in source:
        source = source["items"]
    return list(source or [])


def _get(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _status(record: Any) -> Optional[str]:
    status = _get(record, "status")
    return getattr(status, "value", status)


def _amount(record: Any) -> Decimal:
    value = _get(record, "total")
    return Decimal(str(value)) if value is not None else Decimal("0")


def _timestamp(record: Any) -> Optional[datetime]:
    value = _get(record, "created_at")
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


def compute_dashboard_metrics(
    orders: Any,
    customers: Any,
    products: Any,
    revenue_statuses: Optional[Iterable[str]] = None,
    low_stock_threshold: Optional[int] = None,
) -> Envelope:
    """
    Dashboard metrics

    Args:
        orders: Orders (list, or Envelope from get_all / collect_all)
        customers: Customers (same forms)
        products: Products (same forms)
        revenue_statuses: Statuses whose totals count as revenue
                          (default from settings: delivered)
        low_stock_threshold: stock_quantity below this is low stock

    Returns:
        Envelope with the metrics dict, or the first failed input Envelope
    """
    settings = get_settings()
    if revenue_statuses is None:
        revenue_statuses = settings.get_revenue_statuses()
    if low_stock_threshold is None:
        low_stock_threshold = settings.LOW_STOCK_THRESHOLD
    revenue_statuses = {getattr(status, "value", status) for status in revenue_statuses}

    try:
        order_list = _records(orders)
        customer_list = _records(customers)
        product_list = _records(products)
    except _FailedInput as e:
        return e.envelope

    try:
        revenue_orders = [order for order in order_list if _status(order) in revenue_statuses]
        total_revenue = sum((_amount(order) for order in revenue_orders), Decimal("0"))
        order_count = len(order_list)

        status_counts = Counter(_status(order) for order in order_list)
        delivered = status_counts.get("delivered", 0)

        daily = defaultdict(lambda: Decimal("0"))
        for order in revenue_orders:
            created = _timestamp(order)
            if created is not None:
                daily[created.date().isoformat()] += _amount(order)

        newest = sorted(
            (order for order in order_list if _timestamp(order) is not None),
            key=lambda order: (_timestamp(order), str(_get(order, "id"))),
            reverse=True,
        )[:RECENT_ORDER_LIMIT]

        active_products = [product for product in product_list if _get(product, "is_active", True)]
        stock_levels = [int(_get(product, "stock_quantity", 0) or 0) for product in active_products]

        metrics = {
            "total_revenue": float(total_revenue),
            "order_count": order_count,
            "distinct_customer_count": len({
                str(_get(order, "customer_id")) for order in order_list if _get(order, "customer_id")
            }),
            "customer_count": len(customer_list),
            "active_product_count": len(active_products),
            "low_stock_count": sum(1 for stock in stock_levels if stock < low_stock_threshold),
            "out_of_stock_count": sum(1 for stock in stock_levels if stock == 0),
            "conversion_rate": round(delivered / order_count, 4) if order_count else 0,
            "average_order_value": round(float(total_revenue) / order_count, 2) if order_count else 0,
            "orders_by_status": dict(sorted(status_counts.items(), key=lambda pair: str(pair[0]))),
            "daily_revenue": [
                {"date": day, "revenue": float(amount)} for day, amount in sorted(daily.items())
            ],
            "recent_orders": [
                {
                    "id": str(_get(order, "id")),
                    "order_number": _get(order, "order_number"),
                    "customer_id": _get(order, "customer_id"),
                    "status": _status(order),
                    "total": float(_amount(order)),
                    "created_at": _timestamp(order).isoformat(),
                }
                for order in newest
            ],
        }
    except (TypeError, ValueError, ArithmeticError) as e:
        logger.exception("Dashboard metrics could not be computed")
        return Envelope.fail(DataAccessError(f"Malformed analytics input: {e}"))

    return Envelope.ok(metrics)


def collect_all(repository: BaseRepository, descriptor: Optional[QueryDescriptor] = None) -> Envelope:
    """
    Every record matching descriptor, fetched page by page

    Returns:
        Envelope with the full list, or the first failed page Envelope
    """
    base = (descriptor or QueryDescriptor(sort_field="created_at")).model_copy(update={"page_size": MAX_PAGE_SIZE})
    items: List[Any] = []
    page = 1
    while True:
        envelope = repository.get_all(base.with_page(page))
        if not envelope.success:
            return envelope
        items.extend(envelope.data["items"])
        if page >= envelope.data["total_pages"]:
            return Envelope.ok(items)
        page += 1


class DashboardService:
    """Admin dashboard numbers"""

    def __init__(
        self,
        order_repository: Optional[OrderRepository] = None,
        customer_repository: Optional[CustomerRepository] = None,
        product_repository: Optional[ProductRepository] = None,
    ):
        self.orders = order_repository or OrderRepository()
        self.customers = customer_repository or CustomerRepository()
        self.products = product_repository or ProductRepository()

    def get_metrics(self) -> Envelope:
        logger.debug("Collecting dashboard inputs")
        return compute_dashboard_metrics(
            collect_all(self.orders),
            collect_all(self.customers),
            collect_all(self.products),
        )
