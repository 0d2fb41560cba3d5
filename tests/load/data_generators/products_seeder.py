"""Products data seeder using Faker.

Generates realistic product documents in the ``Products`` collection's
stored shape (``Name``, ``Category``, ``Price``).
"""

import random
from typing import Any, Dict, List, Optional

from faker import Faker
from pymongo import MongoClient
from pymongo.collection import Collection

from api.src.models.product import FIELD_CATEGORY, FIELD_NAME, FIELD_PRICE

CATEGORIES = [
    "Electronics",
    "Kitchen",
    "Books",
    "Garden",
    "Toys",
    "Sports",
    "Office",
]


def generate_product_document(fake: Optional[Faker] = None) -> Dict[str, Any]:
    """Generate a realistic product document.

    Args:
        fake: Faker instance (creates new one if not provided)

    Returns:
        Product document dictionary
    """
    if fake is None:
        fake = Faker()

    return {
        FIELD_NAME: fake.catch_phrase(),
        FIELD_CATEGORY: random.choice(CATEGORIES),
        FIELD_PRICE: round(random.uniform(1, 2000), 2),
    }


class ProductsSeeder:
    """Seeds the Products collection for load tests and local development."""

    def __init__(
        self,
        connection_string: str,
        database: str = "ProductDb",
        collection_name: str = "Products",
        seed: Optional[int] = None,
    ) -> None:
        """Initialize the seeder.

        Args:
            connection_string: MongoDB connection string
            database: Database name
            collection_name: Collection name
            seed: Random seed for reproducible data
        """
        self.client = MongoClient(connection_string)
        self.db = self.client[database]
        self.collection: Collection = self.db[collection_name]

        self.fake = Faker()
        if seed is not None:
            Faker.seed(seed)
            random.seed(seed)

    def generate_batch(self, count: int) -> List[Dict[str, Any]]:
        return [generate_product_document(self.fake) for _ in range(count)]

    def seed_products(self, count: int, batch_size: int = 1000) -> int:
        """Seed product documents in batches.

        Args:
            count: Total number of documents to insert
            batch_size: Batch size for bulk inserts

        Returns:
            Number of documents inserted
        """
        inserted = 0

        for i in range(0, count, batch_size):
            batch_count = min(batch_size, count - i)
            result = self.collection.insert_many(self.generate_batch(batch_count), ordered=False)
            inserted += len(result.inserted_ids)

        return inserted

    def clear_collection(self) -> int:
        """Clear all documents from collection.

        Returns:
            Number of documents deleted
        """
        result = self.collection.delete_many({})
        return result.deleted_count

    def close(self) -> None:
        """Close MongoDB connection."""
        self.client.close()

    def __enter__(self) -> "ProductsSeeder":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
