"""
Orders API Endpoints
Customers place orders and list their own order history

Author: Arpozan
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from arpozan.api.responses import descriptor_from_params, envelope_response, paged_payload
from arpozan.core.auth import get_current_customer
from arpozan.core.errors import NotFoundError
from arpozan.domain.customer import Customer
from arpozan.domain.envelope import Envelope
from arpozan.repositories.order_repository import OrderRepository

router = APIRouter()


@router.get("")
async def list_my_orders(
    status: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    customer: Customer = Depends(get_current_customer),
):
    filters = {"status": status} if status else {}
    descriptor = descriptor_from_params(page, limit, equality_filters=filters, sort_field="created_at")
    envelope = OrderRepository().get_for_customer(customer.id, descriptor)
    return envelope_response(paged_payload(envelope, descriptor, "orders"))


@router.get("/{order_id}")
async def get_my_order(order_id: str, customer: Customer = Depends(get_current_customer)):
    envelope = OrderRepository().get_by_id(order_id)
    if envelope.success and (envelope.data is None or envelope.data.customer_id != customer.id):
        # other customers' orders look exactly like missing ones
        envelope = Envelope.fail(NotFoundError("Order", order_id))
    return envelope_response(envelope)


@router.post("")
async def create_order(
    attributes: Dict[str, Any] = Body(...),
    customer: Customer = Depends(get_current_customer),
):
    """
    Place an order for the calling customer

    Body: {"items": [{"product_id", "quantity"}], "shipping_address": {...}, "notes"}
    """
    payload = {key: value for key, value in attributes.items() if key != "customer_id"}
    payload["customer_id"] = customer.id
    return envelope_response(OrderRepository().create(payload), success_status=201)
