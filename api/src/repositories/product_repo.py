"""
Product repository for database operations.

Provides async CRUD operations for products using pymongo's asyncio API
against a single MongoDB collection. Includes index management, filtered
multi-document deletes, and error logging.
"""

import structlog
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from api.src.models.product import (
    FIELD_CATEGORY,
    FIELD_ID,
    FIELD_NAME,
    CreateProductRequest,
    Product,
    ProductFilter,
    UpdateProductRequest,
    is_valid_product_id,
)
from shared.metrics.prometheus_metrics import get_catalog_metrics

logger = structlog.get_logger(__name__)


class ProductRepository:
    """Repository for product document operations."""

    def __init__(self, collection: AsyncCollection):
        """
        Initialize product repository.

        Args:
            collection: pymongo async collection holding product documents
        """
        self.collection = collection
        self.metrics = get_catalog_metrics()

    @property
    def collection_name(self) -> str:
        return self.collection.name

    def _record_failure(self, operation: str, error: Exception) -> None:
        self.metrics.operation_failures.labels(
            collection=self.collection_name,
            operation=operation,
            error_type=type(error).__name__
        ).inc()

    async def ensure_indexes(self) -> None:
        """Create the secondary indexes used by filtered queries and deletes."""
        try:
            await self.collection.create_index([(FIELD_CATEGORY, ASCENDING)], name="category_idx")
            await self.collection.create_index([(FIELD_NAME, ASCENDING)], name="name_idx")
            logger.info("product_indexes_ensured", collection=self.collection_name)
        except PyMongoError as e:
            logger.error("product_indexes_failed", error=str(e), collection=self.collection_name)
            raise

    async def ping(self) -> bool:
        """
        Check database connectivity.

        Returns:
            True if the server answered a ping, False otherwise
        """
        try:
            await self.collection.database.command("ping")
            self.metrics.database_up.set(1)
            return True
        except PyMongoError as e:
            logger.error("database_ping_failed", error=str(e))
            self.metrics.database_up.set(0)
            return False

    async def create_product(self, request: CreateProductRequest) -> Product:
        """
        Insert a new product.

        Args:
            request: Product fields

        Returns:
            Created product with its generated id
        """
        document = request.to_document()
        try:
            with self.metrics.operation_duration.labels(
                collection=self.collection_name, operation="create"
            ).time():
                result = await self.collection.insert_one(document)

            self.metrics.products_written.labels(
                collection=self.collection_name, operation="create"
            ).inc()
            logger.info(
                "product_created",
                product_id=str(result.inserted_id),
                name=request.name,
                category=request.category
            )
            return Product.from_document({**document, FIELD_ID: result.inserted_id})

        except PyMongoError as e:
            self._record_failure("create", e)
            logger.error("product_create_failed", error=str(e), name=request.name)
            raise

    async def get_product_by_id(self, product_id: str) -> Optional[Product]:
        """
        Get product by ID.

        Args:
            product_id: Product ObjectId as a hex string

        Returns:
            Product or None if not found (malformed ids are never found)
        """
        if not is_valid_product_id(product_id):
            logger.debug("product_id_malformed", product_id=product_id)
            return None

        try:
            document = await self.collection.find_one({FIELD_ID: ObjectId(product_id)})
        except PyMongoError as e:
            self._record_failure("get", e)
            logger.error("product_get_failed", error=str(e), product_id=product_id)
            raise

        if document is None:
            logger.debug("product_not_found", product_id=product_id)
            return None

        return Product.from_document(document)

    async def count_products(self, filter: ProductFilter) -> int:
        """
        Count products matching a filter.

        Args:
            filter: Filter parameters (paging ignored)

        Returns:
            Number of matching documents
        """
        try:
            return await self.collection.count_documents(filter.to_query())
        except PyMongoError as e:
            self._record_failure("count", e)
            logger.error("product_count_failed", error=str(e))
            raise

    async def list_products(self, filter: ProductFilter) -> Tuple[List[Product], int]:
        """
        List products with filtering and pagination.

        Args:
            filter: Filter parameters

        Returns:
            Tuple of (list of products, total count before paging)
        """
        query = filter.to_query()
        try:
            total = await self.collection.count_documents(query)
            cursor = (
                self.collection.find(query)
                .sort(FIELD_ID, ASCENDING)
                .skip(filter.skip)
                .limit(filter.limit)
            )
            documents = await cursor.to_list(length=filter.limit)
        except PyMongoError as e:
            self._record_failure("list", e)
            logger.error("product_list_failed", error=str(e), query=query)
            raise

        logger.debug("products_listed", count=len(documents), total=total, query=query)
        return [Product.from_document(doc) for doc in documents], total

    async def replace_product(self, product_id: str, request: UpdateProductRequest) -> bool:
        """
        Replace every field of an existing product.

        Args:
            product_id: Product ObjectId as a hex string
            request: New product fields

        Returns:
            True if a document matched, False otherwise
        """
        if not is_valid_product_id(product_id):
            return False

        try:
            result = await self.collection.replace_one(
                {FIELD_ID: ObjectId(product_id)},
                request.to_document()
            )
        except PyMongoError as e:
            self._record_failure("replace", e)
            logger.error("product_replace_failed", error=str(e), product_id=product_id)
            raise

        if result.matched_count == 0:
            logger.debug("product_replace_no_match", product_id=product_id)
            return False

        self.metrics.products_written.labels(
            collection=self.collection_name, operation="replace"
        ).inc()
        logger.info("product_replaced", product_id=product_id)
        return True

    async def delete_product(self, product_id: str) -> bool:
        """
        Delete a single product.

        Args:
            product_id: Product ObjectId as a hex string

        Returns:
            True if a document was deleted, False otherwise
        """
        if not is_valid_product_id(product_id):
            return False

        try:
            result = await self.collection.delete_one({FIELD_ID: ObjectId(product_id)})
        except PyMongoError as e:
            self._record_failure("delete", e)
            logger.error("product_delete_failed", error=str(e), product_id=product_id)
            raise

        if result.deleted_count == 0:
            return False

        self.metrics.products_written.labels(
            collection=self.collection_name, operation="delete"
        ).inc()
        logger.info("product_deleted", product_id=product_id)
        return True

    async def delete_products(self, filter: ProductFilter) -> int:
        """
        Delete every product matching a filter.

        Args:
            filter: Filter parameters; must set at least one field

        Returns:
            Number of deleted documents

        Raises:
            ValueError: If the filter is empty (use drop_collection instead)
        """
        if filter.is_empty:
            raise ValueError("delete_products requires a non-empty filter")

        query: Dict[str, Any] = filter.to_query()
        try:
            result = await self.collection.delete_many(query)
        except PyMongoError as e:
            self._record_failure("delete_many", e)
            logger.error("products_delete_failed", error=str(e), query=query)
            raise

        self.metrics.products_written.labels(
            collection=self.collection_name, operation="delete"
        ).inc(result.deleted_count)
        logger.info("products_deleted", deleted_count=result.deleted_count, query=query)
        return result.deleted_count

    async def drop_collection(self) -> None:
        """Drop the whole collection, including its indexes."""
        try:
            await self.collection.drop()
        except PyMongoError as e:
            self._record_failure("drop", e)
            logger.error("collection_drop_failed", error=str(e), collection=self.collection_name)
            raise

        logger.warning("collection_dropped", collection=self.collection_name)
