"""
Domain exceptions for the product catalog.

Each exception carries an ``error_code`` that is echoed in JSON error
responses, and a ``status_code`` used by the FastAPI exception handler.
"""

from fastapi import status


class CatalogError(Exception):
    """Base class for catalog domain errors."""

    error_code = "CATALOG_000"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProductNotFoundError(CatalogError):
    """Raised when no product exists for the given id."""

    error_code = "CATALOG_404"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class InvalidFilterError(CatalogError):
    """Raised when a multi-document delete has no filter and no explicit opt-in."""

    error_code = "CATALOG_400"
    status_code = status.HTTP_400_BAD_REQUEST
