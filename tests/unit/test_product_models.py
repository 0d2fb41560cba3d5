"""
Unit tests for product models.

Tests cover:
- Request validation (required fields, blank text, negative or non-finite prices)
- Mapping between API shape and stored PascalCase documents
- Filter translation to MongoDB queries
"""

import pytest
from bson import ObjectId
from pydantic import ValidationError

from api.src.models.product import (
    CreateProductRequest,
    Product,
    ProductFilter,
    UpdateProductRequest,
    is_valid_product_id,
)


class TestProductRequests:
    """Tests for create/replace request schemas."""

    def test_create_request_valid(self):
        request = CreateProductRequest(name="Espresso Machine", category="Kitchen", price=249.99)
        assert request.name == "Espresso Machine"
        assert request.price == 249.99

    def test_create_request_strips_whitespace(self):
        request = CreateProductRequest(name="  Kettle ", category=" Kitchen", price=20)
        assert request.name == "Kettle"
        assert request.category == "Kitchen"

    def test_create_request_rejects_blank_name(self):
        with pytest.raises(ValidationError):
            CreateProductRequest(name="   ", category="Kitchen", price=1)

    def test_create_request_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            CreateProductRequest(name="Kettle", category="Kitchen", price=-0.01)

    @pytest.mark.parametrize("price", [float("inf"), float("-inf"), float("nan")])
    def test_create_request_rejects_non_finite_price(self, price):
        with pytest.raises(ValidationError):
            CreateProductRequest(name="Kettle", category="Kitchen", price=price)

    def test_zero_price_allowed(self):
        assert CreateProductRequest(name="Sample", category="Promo", price=0).price == 0

    def test_update_request_requires_every_field(self):
        with pytest.raises(ValidationError):
            UpdateProductRequest(name="Kettle", price=10)

    def test_to_document_uses_pascal_case(self):
        request = CreateProductRequest(name="Kettle", category="Kitchen", price=19.5)
        assert request.to_document() == {"Name": "Kettle", "Category": "Kitchen", "Price": 19.5}


class TestProductMapping:
    """Tests for document to API mapping."""

    def test_from_document(self):
        oid = ObjectId()
        product = Product.from_document(
            {"_id": oid, "Name": "Kettle", "Category": "Kitchen", "Price": 19}
        )
        assert product.id == str(oid)
        assert product.price == 19.0
        assert isinstance(product.price, float)

    def test_serialized_product_uses_lowercase_fields(self):
        product = Product(id=str(ObjectId()), name="Kettle", category="Kitchen", price=1.0)
        assert set(product.model_dump()) == {"id", "name", "category", "price"}


class TestProductIds:
    """Tests for ObjectId validation."""

    def test_valid_id(self):
        assert is_valid_product_id(str(ObjectId()))

    @pytest.mark.parametrize("value", ["", "abc", "z" * 24, "65f1c2a4e13b5a0f9c8d7e6"])
    def test_invalid_ids(self, value):
        assert not is_valid_product_id(value)


class TestProductFilter:
    """Tests for filter translation."""

    def test_empty_filter(self):
        filter = ProductFilter()
        assert filter.is_empty
        assert filter.to_query() == {}

    def test_category_filter(self):
        filter = ProductFilter(category="Books")
        assert not filter.is_empty
        assert filter.to_query() == {"Category": "Books"}

    def test_name_and_category_filter(self):
        filter = ProductFilter(name="Dune", category="Books")
        assert filter.to_query() == {"Name": "Dune", "Category": "Books"}

    def test_paging_does_not_make_filter_non_empty(self):
        assert ProductFilter(skip=10, limit=5).is_empty

    def test_rejects_negative_skip(self):
        with pytest.raises(ValidationError):
            ProductFilter(skip=-1)
