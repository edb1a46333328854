"""
Product Repository - Data Access Layer for Products

Catalog reads for the storefront (by slug, related products, categories)
plus the admin CRUD inherited from BaseRepository.

Author: Arpozan
"""
from typing import Any, Dict, List, Optional, Union

from arpozan.backends.base import DataBackend
from arpozan.core.errors import NotFoundError, ValidationError
from arpozan.domain import tables
from arpozan.domain.envelope import Envelope
from arpozan.domain.product import Product, ProductCreate, ProductUpdate
from arpozan.domain.query import NumericRange, QueryDescriptor, SortDirection
from arpozan.repositories.base import BaseRepository


class ProductRepository(BaseRepository):
    """
    Repository for Product data access

    Slugs are unique; when a product is created without one it is derived
    from the name.
    """

    table = tables.PRODUCTS
    entity_name = "Product"
    model = Product
    create_schema = ProductCreate
    update_schema = ProductUpdate
    search_fields = ("name", "description", "category")

    def _prepare_create(self, payload: ProductCreate) -> Dict[str, Any]:
        row = super()._prepare_create(payload)
        row["slug"] = payload.resolved_slug()
        if not row["slug"]:
            raise ValidationError("slug: could not be derived from the name")
        return row

    def _prepare_update(self, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if "slug" in changes and not changes["slug"]:
            raise ValidationError("slug: cannot be empty")
        return changes

    def get_by_slug(self, slug: str) -> Envelope:
        """
        Find product by slug

        Returns:
            Envelope with the Product, or None when no product has that slug
        """
        def work():
            if not slug:
                raise ValidationError("Product slug is required")
            return self._find_one({"slug": slug})

        return self._guard("get_by_slug", work)

    def get_related(self, product: Union[Product, str], limit: int = 4) -> Envelope:
        """
        Active, in-stock products from the same category

        Args:
            product: Product (or its id) to find neighbours for
            limit: Maximum number of products returned

        Returns:
            Envelope with a list of Products, newest first, never including
            the product itself
        """
        def work():
            source = product
            if isinstance(source, str):
                source = self.get_by_id(source).unwrap()
                if source is None:
                    raise NotFoundError(self.entity_name, product)
            if not source.category or limit <= 0:
                return []

            descriptor = QueryDescriptor(
                equality_filters={"category": source.category, "is_active": True},
                numeric_range={"stock_quantity": NumericRange(min=1)},
                sort_field="created_at",
                sort_direction=SortDirection.DESC,
                page_size=limit + 1,
            )
            result = self._run(lambda backend: backend.execute(self.table, descriptor))
            related = [self._to_model(row) for row in result.rows if str(row["id"]) != source.id]
            return related[:limit]

        return self._guard("get_related", work)

    def list_categories(self) -> Envelope:
        """Sorted distinct categories of active products"""
        def work():
            rows = self._run(lambda backend: backend.find_where(self.table, {"is_active": True}))
            return sorted({row["category"] for row in rows if row.get("category")})

        return self._guard("list_categories", work)

    def get_many(self, product_ids: List[str]) -> Envelope:
        """Products by id, keyed by id (missing ids are simply absent)"""
        def work():
            if not product_ids:
                return {}
            ids = sorted({str(product_id) for product_id in product_ids})
            rows = self._run(lambda backend: backend.find_where(self.table, {"id": ids}))
            return {str(row["id"]): self._to_model(row) for row in rows}

        return self._guard("get_many", work)


def load_products(backend: DataBackend, product_ids: List[str]) -> Dict[str, Optional[Product]]:
    """Products keyed by id from an already selected backend"""
    if not product_ids:
        return {}
    rows = backend.find_where(tables.PRODUCTS, {"id": sorted({str(pid) for pid in product_ids})})
    return {str(row["id"]): Product.model_validate(row) for row in rows}
