"""
Backends Module

Collaborator protocols consumed by the engine and the in-memory reference
implementation used by the demo server, the CLI and the tests.
"""

from vault_import.backends.base import (
    ContextLoader,
    ImportContext,
    RecordStore,
    ResourceControl,
    UserDirectory,
)
from vault_import.backends.memory import InMemoryBackend, InMemoryTable

__all__ = [
    "ContextLoader",
    "ImportContext",
    "RecordStore",
    "ResourceControl",
    "UserDirectory",
    "InMemoryBackend",
    "InMemoryTable",
]
