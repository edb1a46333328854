"""
Cart Service - cart mutations plus the recomputed summary

Every operation returns the whole cart ({items, summary}) so the client
never recomputes totals itself.

Summary rules:
- shipping is free when the subtotal is above FREE_SHIPPING_THRESHOLD,
  otherwise SHIPPING_FLAT_RATE (0 for an empty cart)
- tax is TAX_RATE of the subtotal
- every amount is rounded half-up to 2 decimals
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional

from arpozan.core.config import Settings, get_settings
from arpozan.core.errors import DataAccessError, NotFoundError, ValidationError
from arpozan.domain.cart import CartItem, CartSummary, CartView
from arpozan.domain.envelope import Envelope
from arpozan.domain.product import Product
from arpozan.repositories.cart_repository import CartItemRepository
from arpozan.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_cart_summary(
    items: Iterable[CartItem],
    free_shipping_threshold: float = 100.0,
    shipping_flat_rate: float = 10.0,
    tax_rate: float = 0.08,
) -> CartSummary:
    """
    Totals for a list of cart lines

    Args:
        items: Cart lines (price is the snapshot taken when added)
        free_shipping_threshold: Subtotal above which shipping is free
        shipping_flat_rate: Shipping charged below the threshold
        tax_rate: Fraction of the subtotal charged as tax

    Returns:
        CartSummary with money fields rounded half-up to cents
    """
    items = list(items)
    subtotal = sum((item.line_total for item in items), Decimal("0"))

    if not items:
        shipping = Decimal("0")
    elif subtotal > Decimal(str(free_shipping_threshold)):
        shipping = Decimal("0")
    else:
        shipping = Decimal(str(shipping_flat_rate))

    tax = subtotal * Decimal(str(tax_rate))
    total = subtotal + shipping + tax

    return CartSummary(
        item_count=len(items),
        total_quantity=sum(item.quantity for item in items),
        subtotal=_money(subtotal),
        shipping=_money(shipping),
        tax=_money(tax),
        total=_money(total),
    )


def _line_view(item: CartItem, product: Optional[Product]) -> dict:
    return {
        "id": item.id,
        "productId": item.product_id,
        "product": {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "price": float(product.price),
            "image": product.images[0] if product.images else None,
            "stock": product.stock_quantity,
        } if product else None,
        "quantity": item.quantity,
        "price": float(item.price),
        "total": float(_money(item.line_total)),
        "addedAt": item.created_at.isoformat(),
    }


class CartService:
    """Customer-scoped cart operations"""

    def __init__(
        self,
        cart_repository: Optional[CartItemRepository] = None,
        product_repository: Optional[ProductRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.carts = cart_repository or CartItemRepository()
        self.products = product_repository or ProductRepository()
        self.settings = settings or get_settings()

    def _guard(self, action: str, work) -> Envelope:
        try:
            return Envelope.ok(work())
        except DataAccessError as e:
            logger.warning(f"Cart {action} failed ({e.kind}): {e.message}")
            return Envelope.fail(e)
        except Exception:
            logger.exception(f"Unexpected error during cart {action}")
            return Envelope.fail(DataAccessError("Internal error"))

    def _build_view(self, customer_id: str) -> CartView:
        lines = self.carts.get_for_customer(customer_id).unwrap()
        products: Dict[str, Product] = self.products.get_many([line.product_id for line in lines]).unwrap()
        summary = compute_cart_summary(
            lines,
            free_shipping_threshold=self.settings.FREE_SHIPPING_THRESHOLD,
            shipping_flat_rate=self.settings.SHIPPING_FLAT_RATE,
            tax_rate=self.settings.TAX_RATE,
        )
        return CartView(
            items=[_line_view(line, products.get(line.product_id)) for line in lines],
            summary=summary,
        )

    def _available_product(self, product_id: str) -> Product:
        if not product_id:
            raise ValidationError("Product ID is required")
        product = self.products.get_by_id(product_id).unwrap()
        if product is None:
            raise NotFoundError("Product", product_id)
        if not product.is_active:
            raise ValidationError("Product is not available")
        return product

    def get_cart(self, customer_id: str) -> Envelope:
        return self._guard("get", lambda: self._build_view(customer_id))

    def add_item(self, customer_id: str, product_id: str, quantity: int = 1) -> Envelope:
        """Add a product, merging with an existing line for the same product"""
        def work():
            if quantity is None or quantity < 1:
                raise ValidationError("Quantity must be at least 1")
            product = self._available_product(product_id)

            existing = self.carts.find_item(customer_id, product_id).unwrap()
            wanted = quantity + (existing.quantity if existing else 0)
            if product.stock_quantity < wanted:
                raise ValidationError("Insufficient stock")

            if existing:
                self.carts.update(existing.id, {"quantity": wanted, "price": product.price}).unwrap()
            else:
                self.carts.create({
                    "customer_id": customer_id,
                    "product_id": product_id,
                    "quantity": quantity,
                    "price": product.price,
                }).unwrap()
            return self._build_view(customer_id)

        return self._guard("add", work)

    def update_item(self, customer_id: str, product_id: str, quantity: int) -> Envelope:
        """Set a line's quantity; 0 removes the line"""
        def work():
            if quantity is None or quantity < 0:
                raise ValidationError("Quantity cannot be negative")
            existing = self.carts.find_item(customer_id, product_id).unwrap()
            if existing is None:
                raise NotFoundError("Cart item", product_id)

            if quantity == 0:
                self.carts.delete(existing.id).unwrap()
            else:
                product = self._available_product(product_id)
                if product.stock_quantity < quantity:
                    raise ValidationError("Insufficient stock")
                self.carts.update(existing.id, {"quantity": quantity}).unwrap()
            return self._build_view(customer_id)

        return self._guard("update", work)

    def remove_item(self, customer_id: str, product_id: str) -> Envelope:
        def work():
            existing = self.carts.find_item(customer_id, product_id).unwrap()
            if existing is None:
                raise NotFoundError("Cart item", product_id)
            self.carts.delete(existing.id).unwrap()
            return self._build_view(customer_id)

        return self._guard("remove", work)

    def clear(self, customer_id: str) -> Envelope:
        def work():
            removed = self.carts.clear(customer_id).unwrap()
            logger.info(f"Cleared {removed} cart items for customer {customer_id}")
            return self._build_view(customer_id)

        return self._guard("clear", work)
