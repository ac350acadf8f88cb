"""
Vault Import - Bulk Import Reconciliation Engine

Creates a batch of folders and the ciphers that reference them against a
throughput-limited store, retrying only failed records and reporting an
accurate summary under partial failure.

Modules:
    engine: Backoff, capacity scaling, dependency resolution, retry rounds, coordination
    models: Request schemas and engine bookkeeping types
    backends: Collaborator protocols and the in-memory reference backend
    api: aiohttp request handler for the import endpoint
    utils: Logging and exceptions
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
