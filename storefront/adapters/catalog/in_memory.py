"""In-memory product catalog seeded from bundled sample data."""

from __future__ import annotations

from typing import Iterable

from storefront.adapters.catalog.base import AbstractProductCatalog
from storefront.adapters.catalog.sample_data import SAMPLE_PRODUCTS
from storefront.core.errors import NotFoundAppError
from storefront.schemas.product import Product


class InMemoryProductCatalog(AbstractProductCatalog):
    """Catalog backed by a dict keyed by slug. Listing keeps insertion order."""

    def __init__(self, products: Iterable[Product] | None = None) -> None:
        source = SAMPLE_PRODUCTS if products is None else products
        self._products: dict[str, Product] = {product.slug: product for product in source}

    async def get_product(self, slug: str) -> Product:
        product = self._products.get(slug)
        if product is None:
            raise NotFoundAppError(
                code="product_not_found",
                message="Product not found",
                details={"slug": slug},
            )
        return product

    async def list_products(self, search: str | None = None) -> list[Product]:
        products = list(self._products.values())
        if not search or not search.strip():
            return products

        query = search.strip().lower()
        return [
            product
            for product in products
            if query in product.name.lower() or query in product.description.lower()
        ]
