"""
Tests Package

Unit and integration tests for the Vault Import service.

Structure:
    - Unit tests: backoff, capacity, resolver, retry rounds, schemas, logger
    - Integration tests: coordinator scenarios and the HTTP handler
    - conftest.py: Shared fixtures, failure scripts and batch builders
"""

__all__ = []
