"""
Products API Endpoints
Storefront catalog: listing with filters/pagination and product detail

Only active products are ever visible here.

Author: Arpozan
"""
from typing import Optional

from fastapi import APIRouter, Query

from arpozan.api.responses import descriptor_from_params, envelope_response, pagination
from arpozan.core.errors import NotFoundError
from arpozan.domain.envelope import Envelope
from arpozan.domain.query import NumericRange
from arpozan.repositories.product_repository import ProductRepository

router = APIRouter()


@router.get("")
async def get_products(
    page: Optional[str] = Query(None, description="Page number (1-based)"),
    limit: Optional[str] = Query(None, description="Products per page (max 100)"),
    search: Optional[str] = Query(None, description="Search in name, description and category"),
    category: Optional[str] = Query(None, description="Filter by category"),
    sortBy: str = Query("created_at", description="Sort field"),
    sortOrder: str = Query("desc", description="asc or desc"),
    minPrice: Optional[float] = Query(None, ge=0),
    maxPrice: Optional[float] = Query(None, ge=0),
    inStock: Optional[bool] = Query(None, description="Only products with stock"),
):
    """
    Get active products with optional filters

    Returns products, pagination (page, limit, total, totalPages, hasNext,
    hasPrev) and the list of categories.
    """
    repo = ProductRepository()

    filters = {"is_active": True}
    if category:
        filters["category"] = category

    ranges = {}
    if minPrice is not None or maxPrice is not None:
        ranges["price"] = NumericRange(min=minPrice, max=maxPrice)
    if inStock:
        ranges["stock_quantity"] = NumericRange(min=1)

    descriptor = descriptor_from_params(
        page,
        limit,
        equality_filters=filters,
        search_text=search,
        numeric_range=ranges,
        sort_field=sortBy,
        sort_direction=sortOrder,
    )

    listing = repo.get_all(descriptor)
    if not listing.success:
        return envelope_response(listing)

    categories = repo.list_categories()
    if not categories.success:
        return envelope_response(categories)

    return envelope_response(Envelope.ok({
        "products": listing.data["items"],
        "pagination": pagination(descriptor, listing.data["total"], listing.data["total_pages"]),
        "categories": categories.data,
    }))


@router.get("/{slug}")
async def get_product(slug: str):
    """
    Get one active product by slug plus up to 4 related products
    """
    repo = ProductRepository()

    found = repo.get_by_slug(slug)
    if not found.success:
        return envelope_response(found)

    product = found.data
    if product is None or not product.is_active:
        return envelope_response(Envelope.fail(NotFoundError("Product", slug)))

    related = repo.get_related(product, limit=4)
    if not related.success:
        return envelope_response(related)

    return envelope_response(Envelope.ok({"product": product, "relatedProducts": related.data}))
