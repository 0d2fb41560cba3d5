"""
FastAPI dependency injection for database access and services.

Provides injectable dependencies for:
- The MongoDB client (pymongo asyncio API)
- Repository and service instances
- Product query/filter parameters
- Request metadata (client IP)

All dependencies use FastAPI's dependency injection system and can be
replaced through ``app.dependency_overrides`` in tests.
"""

import structlog
from typing import Optional
from fastapi import Depends, Query, Request
from pymongo import AsyncMongoClient

from api.src.config import get_settings, Settings
from api.src.models.product import ProductFilter
from api.src.repositories.product_repo import ProductRepository
from api.src.services.product_service import ProductService

logger = structlog.get_logger(__name__)


# ============================================================================
# DATABASE CLIENT
# ============================================================================

_client: Optional[AsyncMongoClient] = None


async def init_mongo_client(settings: Optional[Settings] = None) -> AsyncMongoClient:
    """
    Initialize the MongoDB client and verify connectivity.

    Should be called during application startup.

    Returns:
        Connected async client
    """
    global _client

    if _client is not None:
        return _client

    settings = settings or get_settings()
    mongo = settings.mongodb

    try:
        client = AsyncMongoClient(mongo.connection_string, **mongo.client_kwargs())
        await client.admin.command("ping")
    except Exception as e:
        logger.error(
            "database_client_init_failed",
            error=str(e),
            database=mongo.database
        )
        raise

    _client = client
    logger.info(
        "database_client_initialized",
        host=mongo.connection_string.split("@")[-1],
        database=mongo.database,
        collection=mongo.collection
    )
    return _client


async def close_mongo_client():
    """
    Close the MongoDB client.

    Should be called during application shutdown.
    """
    global _client

    if _client is not None:
        await _client.close()
        logger.info("database_client_closed")
        _client = None


def get_mongo_client() -> AsyncMongoClient:
    """
    Get the MongoDB client.

    Raises:
        RuntimeError: If the client is not initialized
    """
    if _client is None:
        logger.error("database_client_not_initialized")
        raise RuntimeError(
            "Database client not initialized. Call init_mongo_client() during startup."
        )
    return _client


# ============================================================================
# REPOSITORY AND SERVICE DEPENDENCIES
# ============================================================================


def get_product_repository(
    client: AsyncMongoClient = Depends(get_mongo_client),
    settings: Settings = Depends(get_settings)
) -> ProductRepository:
    """Product repository bound to the configured collection."""
    collection = client[settings.mongodb_database][settings.mongodb_collection]
    return ProductRepository(collection)


def get_optional_product_repository(
    settings: Settings = Depends(get_settings)
) -> Optional[ProductRepository]:
    """Like get_product_repository, but None before the client is up (readiness probe)."""
    if _client is None:
        return None
    return ProductRepository(_client[settings.mongodb_database][settings.mongodb_collection])


def get_product_service(
    product_repo: ProductRepository = Depends(get_product_repository)
) -> ProductService:
    return ProductService(product_repo)


# ============================================================================
# QUERY DEPENDENCIES
# ============================================================================


async def get_product_filter(
    name: Optional[str] = Query(None, min_length=1, description="Exact product name"),
    category: Optional[str] = Query(None, min_length=1, description="Exact category"),
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of items"),
) -> ProductFilter:
    """
    Build a product filter from the query string.

    ``limit`` falls back to the configured default page size and is capped
    at the configured maximum.
    """
    settings = get_settings()

    if limit is None:
        limit = settings.pagination_default_limit
    elif limit > settings.pagination_max_limit:
        limit = settings.pagination_max_limit

    return ProductFilter(name=name, category=category, skip=skip, limit=limit)


# ============================================================================
# REQUEST METADATA
# ============================================================================


async def get_client_ip(request: Request) -> str:
    """
    Get client IP address from request.

    Checks X-Forwarded-For first (set by the container host's proxy, if
    any), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
