"""
API Module

aiohttp request handling for the bulk-import endpoint.
"""

from vault_import.api.handler import create_app, create_memory_app

__all__ = [
    "create_app",
    "create_memory_app",
]
