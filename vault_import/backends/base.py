"""
Collaborator interfaces consumed by the import engine.

The engine never talks to a concrete database; it is handed objects that
satisfy these protocols.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable


@dataclass(frozen=True)
class ImportContext:
    """Authenticated context of one import request."""

    owner_id: str
    email: str = ""


@runtime_checkable
class ContextLoader(Protocol):
    """Resolves the bearer token of a request to its owner."""

    async def load_context(self, token: str) -> ImportContext:
        """Raises AuthError if the token is missing or invalid."""
        ...


@runtime_checkable
class RecordStore(Protocol):
    """Creates records of one kind in one storage resource."""

    resource: str

    async def create(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """
        Create one record and return it with its backend-assigned ``uuid``.

        Raises CreationError when the write is rejected.
        """
        ...


@runtime_checkable
class ResourceControl(Protocol):
    """Reads and changes the provisioned write throughput of resources."""

    async def describe_status(self, resource: str) -> Mapping[str, Any]:
        """Return at least ``{"status": ...}``; ``write_units`` when known."""
        ...

    async def update_throughput(self, resource: str, units: int) -> None:
        """Request a new write throughput. Raises CapacityError when rejected."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    """Owner metadata updates."""

    async def touch(self, owner_id: str) -> None:
        """Mark the owner's vault as modified."""
        ...
