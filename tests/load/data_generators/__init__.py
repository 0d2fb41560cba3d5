"""Data generators for load testing."""

from .products_seeder import ProductsSeeder, generate_product_document

__all__ = [
    "ProductsSeeder",
    "generate_product_document",
]
