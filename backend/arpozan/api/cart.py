"""
Cart API Endpoints
Customer-scoped cart; every response is the full cart with its summary
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from arpozan.api.responses import envelope_response
from arpozan.domain.customer import Customer
from arpozan.core.auth import get_current_customer
from arpozan.services.cart_service import CartService

router = APIRouter()


# Request models
class CartAdd(BaseModel):
    productId: str = Field(..., min_length=1)
    quantity: int = 1


class CartUpdate(BaseModel):
    productId: str = Field(..., min_length=1)
    quantity: int


@router.get("")
async def get_cart(customer: Customer = Depends(get_current_customer)):
    return envelope_response(CartService().get_cart(customer.id))


@router.post("/add")
async def add_to_cart(body: CartAdd, customer: Customer = Depends(get_current_customer)):
    return envelope_response(CartService().add_item(customer.id, body.productId, body.quantity))


@router.put("/update")
async def update_cart_item(body: CartUpdate, customer: Customer = Depends(get_current_customer)):
    """Set the quantity of a line; quantity 0 removes it"""
    return envelope_response(CartService().update_item(customer.id, body.productId, body.quantity))


@router.delete("/remove")
async def remove_from_cart(
    productId: str = Query(..., min_length=1),
    customer: Customer = Depends(get_current_customer),
):
    return envelope_response(CartService().remove_item(customer.id, productId))


@router.delete("/clear")
async def clear_cart(customer: Customer = Depends(get_current_customer)):
    return envelope_response(CartService().clear(customer.id))
