"""FastAPI service for the product catalog.

This package provides REST API endpoints for create/read/update/delete
operations on the ``Products`` collection, and the runtime host that
serves published builds of it.
"""

__version__ = "1.0.0"
