"""
Admin API Endpoints
Dashboard management of orders, products and customers plus analytics

Every route requires an admin caller.

Author: Arpozan
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from arpozan.api.responses import descriptor_from_params, envelope_response, paged_payload
from arpozan.core.auth import CallerIdentity, require_admin
from arpozan.core.errors import NotFoundError
from arpozan.domain.envelope import Envelope
from arpozan.repositories.customer_repository import CustomerRepository
from arpozan.repositories.order_repository import OrderRepository
from arpozan.repositories.product_repository import ProductRepository
from arpozan.services.analytics_service import DashboardService

router = APIRouter()


def _found_or_404(envelope: Envelope, entity: str, entity_id: str) -> Envelope:
    if envelope.success and envelope.data is None:
        return Envelope.fail(NotFoundError(entity, entity_id))
    return envelope


# ============================================================================
# Orders
# ============================================================================

@router.get("/orders")
async def list_orders(
    status: Optional[str] = Query(None, description="Filter by order status"),
    search: Optional[str] = Query(None, description="Search by order number"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(require_admin),
):
    """Paginated orders, newest first, with customer and items embedded"""
    filters = {"status": status} if status else {}
    descriptor = descriptor_from_params(
        page, limit,
        equality_filters=filters,
        search_text=search,
        sort_field="created_at",
    )
    return envelope_response(paged_payload(OrderRepository().get_all(descriptor), descriptor, "orders"))


@router.get("/orders/{order_id}")
async def get_order(order_id: str, caller: CallerIdentity = Depends(require_admin)):
    return envelope_response(_found_or_404(OrderRepository().get_by_id(order_id), "Order", order_id))


@router.put("/orders/{order_id}")
async def update_order(
    order_id: str,
    changes: Dict[str, Any] = Body(...),
    caller: CallerIdentity = Depends(require_admin),
):
    """Update status, shipping address or notes of an order"""
    return envelope_response(OrderRepository().update(order_id, changes))


# ============================================================================
# Products
# ============================================================================

@router.get("/products")
async def list_products(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    sortBy: str = Query("created_at"),
    sortOrder: str = Query("desc"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(require_admin),
):
    """Every product (active or not) with filters and pagination"""
    filters = {}
    if category:
        filters["category"] = category
    if is_active is not None:
        filters["is_active"] = is_active

    descriptor = descriptor_from_params(
        page, limit,
        equality_filters=filters,
        search_text=search,
        sort_field=sortBy,
        sort_direction=sortOrder,
    )
    return envelope_response(paged_payload(ProductRepository().get_all(descriptor), descriptor, "products"))


@router.post("/products")
async def create_product(
    attributes: Dict[str, Any] = Body(...),
    caller: CallerIdentity = Depends(require_admin),
):
    return envelope_response(ProductRepository().create(attributes), success_status=201)


@router.put("/products/{product_id}")
async def update_product(
    product_id: str,
    changes: Dict[str, Any] = Body(...),
    caller: CallerIdentity = Depends(require_admin),
):
    return envelope_response(ProductRepository().update(product_id, changes))


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, caller: CallerIdentity = Depends(require_admin)):
    return envelope_response(ProductRepository().delete(product_id))


# ============================================================================
# Customers
# ============================================================================

@router.get("/customers")
async def list_customers(
    search: Optional[str] = Query(None, description="Search by email, name or phone"),
    status: Optional[str] = Query(None, description="active or inactive"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(require_admin),
):
    filters = {"status": status} if status else {}
    descriptor = descriptor_from_params(
        page, limit,
        equality_filters=filters,
        search_text=search,
        sort_field="created_at",
    )
    return envelope_response(paged_payload(CustomerRepository().get_all(descriptor), descriptor, "customers"))


@router.get("/customers/{customer_id}")
async def get_customer(customer_id: str, caller: CallerIdentity = Depends(require_admin)):
    return envelope_response(_found_or_404(CustomerRepository().get_by_id(customer_id), "Customer", customer_id))


@router.put("/customers/{customer_id}")
async def update_customer(
    customer_id: str,
    changes: Dict[str, Any] = Body(...),
    caller: CallerIdentity = Depends(require_admin),
):
    return envelope_response(CustomerRepository().update(customer_id, changes))


@router.delete("/customers/{customer_id}")
async def delete_customer(customer_id: str, caller: CallerIdentity = Depends(require_admin)):
    """Deactivates customers with orders, removes the others"""
    return envelope_response(CustomerRepository().delete(customer_id))


# ============================================================================
# Analytics
# ============================================================================

@router.get("/analytics")
async def get_analytics(caller: CallerIdentity = Depends(require_admin)):
    """Dashboard metrics over every order, customer and product"""
    return envelope_response(DashboardService().get_metrics())
