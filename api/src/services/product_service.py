"""
Product service.

Sits between the HTTP router and the repository: turns "not found"
results into domain errors and guards the destructive delete paths.
"""

import structlog
from typing import List, Tuple

from api.src.exceptions import InvalidFilterError, ProductNotFoundError
from api.src.models.product import (
    CreateProductRequest,
    Product,
    ProductFilter,
    UpdateProductRequest,
)
from api.src.repositories.product_repo import ProductRepository

logger = structlog.get_logger(__name__)


class ProductService:
    """Business operations on the product catalog."""

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    async def create_product(self, request: CreateProductRequest) -> Product:
        return await self.product_repo.create_product(request)

    async def get_product(self, product_id: str) -> Product:
        """
        Get a product or fail.

        Raises:
            ProductNotFoundError: If the id is unknown or malformed
        """
        product = await self.product_repo.get_product_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def list_products(self, filter: ProductFilter) -> Tuple[List[Product], int]:
        return await self.product_repo.list_products(filter)

    async def update_product(self, product_id: str, request: UpdateProductRequest) -> None:
        """
        Replace a product.

        Raises:
            ProductNotFoundError: If the id is unknown or malformed
        """
        if not await self.product_repo.replace_product(product_id, request):
            raise ProductNotFoundError(product_id)

    async def delete_product(self, product_id: str) -> None:
        """
        Delete a product.

        Raises:
            ProductNotFoundError: If the id is unknown or malformed
        """
        if not await self.product_repo.delete_product(product_id):
            raise ProductNotFoundError(product_id)

    async def delete_products(self, filter: ProductFilter, delete_all: bool = False) -> int:
        """
        Delete many products.

        With a filter, deletes the matching documents. Without one, the
        whole collection is dropped, but only when ``delete_all`` is set.

        Args:
            filter: Filter parameters
            delete_all: Explicit opt-in for dropping the collection

        Returns:
            Number of deleted documents

        Raises:
            InvalidFilterError: If no filter is given and delete_all is False
        """
        if not filter.is_empty:
            return await self.product_repo.delete_products(filter)

        if not delete_all:
            raise InvalidFilterError(
                "Refusing to delete every product without all=true; "
                "pass a name or category filter instead"
            )

        existing = await self.product_repo.count_products(filter)
        await self.product_repo.drop_collection()
        await self.product_repo.ensure_indexes()
        logger.warning("product_catalog_cleared", deleted_count=existing)
        return existing
