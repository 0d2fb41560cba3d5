"""Testcontainers for integration testing."""

from .containers import (
    MongoDBContainer,
    docker_available,
)

__all__ = [
    "MongoDBContainer",
    "docker_available",
]
