"""Load tests and data generators."""
