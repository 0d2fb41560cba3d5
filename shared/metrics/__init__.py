"""Metrics module using Prometheus."""

from .prometheus_metrics import (
    CatalogMetrics,
    PublishMetrics,
    get_catalog_metrics,
    get_publish_metrics,
    get_metrics_handler,
)

__all__ = [
    "CatalogMetrics",
    "PublishMetrics",
    "get_catalog_metrics",
    "get_publish_metrics",
    "get_metrics_handler",
]
