"""
Product models.

Provides Pydantic schemas for:
- Product entities (API representation)
- Create / replace requests
- List filtering and pagination
- Error responses

Documents in the ``Products`` collection use PascalCase field names
(``Name``, ``Category``, ``Price``) with an ObjectId ``_id``; the API uses
lowercase names and a string ``id``.
"""

from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Document field names
# ============================================================================

FIELD_ID = "_id"
FIELD_NAME = "Name"
FIELD_CATEGORY = "Category"
FIELD_PRICE = "Price"


def is_valid_product_id(product_id: str) -> bool:
    """Check that a product id is a 24-character hex ObjectId."""
    return ObjectId.is_valid(product_id) and len(product_id) == 24


# ============================================================================
# Request Schemas
# ============================================================================


class ProductBase(BaseModel):
    """Fields shared by every product schema."""
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Product name"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Product category"
    )
    price: float = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Unit price (finite, non-negative)"
    )

    @field_validator("name", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank text."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def to_document(self) -> Dict[str, Any]:
        """Map to the collection's document shape (without ``_id``)."""
        return {
            FIELD_NAME: self.name,
            FIELD_CATEGORY: self.category,
            FIELD_PRICE: self.price,
        }


class CreateProductRequest(ProductBase):
    """Create product request schema."""

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Espresso Machine",
                "category": "Kitchen",
                "price": 249.99
            }
        }
    }


class UpdateProductRequest(ProductBase):
    """Replace product request schema; every field is required."""


# ============================================================================
# Response Schemas
# ============================================================================


class Product(ProductBase):
    """Product as returned by the API."""
    id: str = Field(..., description="Product identifier (ObjectId hex)")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Product":
        """
        Build a product from a stored document.

        Args:
            document: Raw document from the ``Products`` collection

        Returns:
            Product instance
        """
        return cls(
            id=str(document[FIELD_ID]),
            name=document[FIELD_NAME],
            category=document[FIELD_CATEGORY],
            price=float(document[FIELD_PRICE]),
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "65f1c2a4e13b5a0f9c8d7e61",
                "name": "Espresso Machine",
                "category": "Kitchen",
                "price": 249.99
            }
        }
    }


class ProductListResponse(BaseModel):
    """Paged list of products."""
    items: List[Product] = Field(default_factory=list)
    total: int = Field(..., ge=0, description="Matching documents before paging")


class DeleteResult(BaseModel):
    """Outcome of a multi-document delete."""
    deleted_count: int = Field(..., ge=0)


class ErrorResponse(BaseModel):
    """Error response schema."""
    detail: str = Field(..., min_length=1)
    error_code: Optional[str] = None


# ============================================================================
# Query Schemas
# ============================================================================


class ProductFilter(BaseModel):
    """Filter and paging parameters for product queries."""
    name: Optional[str] = Field(None, description="Exact product name")
    category: Optional[str] = Field(None, description="Exact category")
    skip: int = Field(0, ge=0)
    limit: int = Field(100, ge=1, le=10000)

    @property
    def is_empty(self) -> bool:
        """True when no field filter is set (paging is ignored)."""
        return self.name is None and self.category is None

    def to_query(self) -> Dict[str, Any]:
        """Translate to a MongoDB query document."""
        query: Dict[str, Any] = {}
        if self.name is not None:
            query[FIELD_NAME] = self.name
        if self.category is not None:
            query[FIELD_CATEGORY] = self.category
        return query
