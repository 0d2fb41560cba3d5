"""Test suite for the product catalog."""
