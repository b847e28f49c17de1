"""Product catalog interface.

The AI endpoints only need to resolve a slug to a product (to validate it
before spending model tokens) and to list candidates for recommendations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.schemas.product import Product


class AbstractProductCatalog(ABC):
    """Interface for product lookups."""

    @abstractmethod
    async def get_product(self, slug: str) -> Product:
        """Return the product for ``slug``.

        Raises:
            NotFoundAppError: If no product has that slug.
        """
        raise NotImplementedError

    @abstractmethod
    async def list_products(self, search: str | None = None) -> list[Product]:
        """Return catalog products, optionally filtered by a search term."""
        raise NotImplementedError
