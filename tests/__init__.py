"""Test suite for routes_to_openapi_generator."""
