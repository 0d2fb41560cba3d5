"""Shared Pydantic models for the product catalog."""

from .common import (
    HealthStatus,
    MongoDBConfig,
    ServiceInfo,
)

__all__ = [
    "HealthStatus",
    "MongoDBConfig",
    "ServiceInfo",
]
