"""Prometheus metrics definitions and helpers.

Provides metric definitions for the product catalog service and the
publish pipeline.
"""

from functools import lru_cache
from typing import Callable

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    REGISTRY,
    CollectorRegistry,
)


class CatalogMetrics:
    """Product catalog data-access metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize catalog metrics.

        Args:
            registry: Prometheus registry to use
        """
        # Documents written, per operation
        self.products_written = Counter(
            "catalog_products_written_total",
            "Total number of product documents written",
            ["collection", "operation"],
            registry=registry,
        )

        self.operation_failures = Counter(
            "catalog_operation_failures_total",
            "Total number of failed data-access operations",
            ["collection", "operation", "error_type"],
            registry=registry,
        )

        self.operation_duration = Histogram(
            "catalog_operation_duration_seconds",
            "Time spent in data-access operations",
            ["collection", "operation"],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=registry,
        )

        self.database_up = Gauge(
            "catalog_database_up",
            "Whether the last database ping succeeded (1=up, 0=down)",
            registry=registry,
        )


class PublishMetrics:
    """Build tool metrics, exposed when publishing runs inside a long-lived process."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize publish metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.modules_compiled = Counter(
            "publish_modules_compiled_total",
            "Modules byte-compiled during publish",
            ["configuration", "outcome"],
            registry=registry,
        )

        self.publish_duration = Histogram(
            "publish_duration_seconds",
            "Wall time of publish runs",
            ["configuration"],
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
            registry=registry,
        )


@lru_cache()
def get_catalog_metrics() -> CatalogMetrics:
    """Shared CatalogMetrics bound to the default registry."""
    return CatalogMetrics()


@lru_cache()
def get_publish_metrics() -> PublishMetrics:
    """Shared PublishMetrics bound to the default registry."""
    return PublishMetrics()


def get_metrics_handler() -> Callable[[], bytes]:
    """Get metrics handler for HTTP endpoint.

    Returns:
        Function that generates Prometheus metrics output
    """

    def metrics_handler() -> bytes:
        return generate_latest(REGISTRY)

    return metrics_handler
