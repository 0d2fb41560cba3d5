"""
Products router.

Provides REST API endpoints for the ``Products`` collection:
- List with exact-match filters and paging
- Get, create, replace, and delete single products
- Filtered multi-delete and explicit whole-collection clear
"""

import structlog
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, Response, status

from api.src.models.product import (
    CreateProductRequest,
    DeleteResult,
    ErrorResponse,
    Product,
    ProductFilter,
    ProductListResponse,
    UpdateProductRequest,
)
from api.src.services.product_service import ProductService
from api.src.dependencies import (
    get_client_ip,
    get_product_filter,
    get_product_service,
)

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/products",
    tags=["Products"],
    responses={
        422: {"description": "Validation Error"}
    }
)


@router.get(
    "",
    response_model=ProductListResponse,
    summary="List Products",
)
async def list_products(
    filter: ProductFilter = Depends(get_product_filter),
    service: ProductService = Depends(get_product_service)
) -> ProductListResponse:
    """
    List products, optionally filtered by exact ``name`` and ``category``.

    Results are ordered by insertion (ObjectId) and paged with ``skip`` and
    ``limit``; ``total`` counts every match before paging.
    """
    items, total = await service.list_products(filter)
    return ProductListResponse(items=items, total=total)


@router.get(
    "/{product_id}",
    response_model=Product,
    summary="Get Product",
    responses={404: {"model": ErrorResponse, "description": "Not Found"}}
)
async def get_product(
    product_id: str,
    service: ProductService = Depends(get_product_service)
) -> Product:
    return await service.get_product(product_id)


@router.post(
    "",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    summary="Create Product",
)
async def create_product(
    request: Request,
    create_request: CreateProductRequest,
    response: Response,
    service: ProductService = Depends(get_product_service),
    client_ip: str = Depends(get_client_ip)
) -> Product:
    """Create a product; the ``Location`` header points at the new resource."""
    product = await service.create_product(create_request)
    response.headers["Location"] = str(request.url_for("get_product", product_id=product.id))
    logger.info("product_create_request", product_id=product.id, client_ip=client_ip)
    return product


@router.put(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Replace Product",
    responses={404: {"model": ErrorResponse, "description": "Not Found"}}
)
async def update_product(
    product_id: str,
    update_request: UpdateProductRequest,
    service: ProductService = Depends(get_product_service)
) -> Response:
    await service.update_product(product_id, update_request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Product",
    responses={404: {"model": ErrorResponse, "description": "Not Found"}}
)
async def delete_product(
    product_id: str,
    service: ProductService = Depends(get_product_service)
) -> Response:
    await service.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "",
    response_model=DeleteResult,
    summary="Delete Products",
    responses={400: {"model": ErrorResponse, "description": "Missing filter"}}
)
async def delete_products(
    name: Optional[str] = Query(None, min_length=1),
    category: Optional[str] = Query(None, min_length=1),
    all: bool = Query(False, description="Drop every product when no filter is given"),
    service: ProductService = Depends(get_product_service)
) -> DeleteResult:
    """
    Delete every product matching ``name`` and/or ``category``.

    Without a filter the request is rejected unless ``all=true``, in which
    case the collection is dropped.
    """
    filter = ProductFilter(name=name, category=category)
    deleted = await service.delete_products(filter, delete_all=all)
    return DeleteResult(deleted_count=deleted)
