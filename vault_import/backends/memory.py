"""
In-memory reference backend.

Implements every collaborator protocol against process memory, with
provisioned throughput that settles after a number of status polls and
optional injected write failures. Used by the demo server, the CLI and tests.
"""

import asyncio
import logging
import random
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from vault_import.backends.base import ImportContext
from vault_import.config import CapacityConfig, StorageConfig
from vault_import.utils.exceptions import AuthError, CapacityError, CreationError

logger = logging.getLogger(__name__)

FailureHook = Callable[[Mapping[str, Any]], Optional[CreationError]]


class InMemoryTable:
    """
    One storage resource holding records of one kind.

    Attributes:
        resource: Resource identifier
        write_units: Provisioned write throughput
        status: ``ACTIVE`` or ``UPDATING``
        records: Stored records by uuid
        attempts: Number of create calls received
    """

    def __init__(
        self,
        resource: str,
        write_units: int = CapacityConfig.BASELINE_UNITS,
        fail_rate: float = 0.0,
        failure_hook: Optional[FailureHook] = None,
        latency: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        self.resource = resource
        self.write_units = write_units
        self.status = "ACTIVE"
        self.fail_rate = fail_rate
        self.failure_hook = failure_hook
        self.latency = latency
        self._rng = rng or random.Random()
        self._polls_until_active = 0

        self.records: Dict[str, Dict[str, Any]] = {}
        self.attempts = 0

    async def create(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        """Store a copy of ``document`` under a new uuid."""
        self.attempts += 1

        if self.latency > 0:
            await asyncio.sleep(self.latency)

        if self.failure_hook is not None:
            error = self.failure_hook(document)
            if error is not None:
                raise error

        if self.fail_rate > 0 and self._rng.random() < self.fail_rate:
            raise CreationError(
                "ProvisionedThroughputExceededException",
                resource=self.resource,
                write_units=self.write_units,
            )

        now = datetime.now().isoformat()
        record = {**document, "uuid": str(uuid4()), "creationDate": now, "revisionDate": now}
        self.records[record["uuid"]] = record
        return dict(record)

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return (
            f"InMemoryTable(resource={self.resource}, records={len(self.records)}, "
            f"write_units={self.write_units}, status={self.status})"
        )


class InMemoryBackend:
    """
    Process-local backend: record stores, throughput control, users and auth.

    Example:
        >>> backend = InMemoryBackend(tokens={"token-1": "user-1"})
        >>> folders = backend.table(StorageConfig.FOLDERS_TABLE)
        >>> await backend.update_throughput(folders.resource, 3)
        >>> (await backend.describe_status(folders.resource))["status"]
        'UPDATING'
    """

    def __init__(
        self,
        tokens: Optional[Mapping[str, str]] = None,
        settle_polls: int = 1,
        fail_rate: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize backend.

        Args:
            tokens: Bearer token → owner id
            settle_polls: Status polls reporting UPDATING after each change
            fail_rate: Probability that a create call is rejected
            rng: Random source for injected failures
        """
        self.tokens = dict(tokens or {})
        self.settle_polls = settle_polls
        self.fail_rate = fail_rate
        self._rng = rng or random.Random()

        self.tables: Dict[str, InMemoryTable] = {}
        self.touched: Counter = Counter()
        self.throughput_history: List[Dict[str, Any]] = []

    @property
    def folders(self) -> InMemoryTable:
        return self.table(StorageConfig.FOLDERS_TABLE)

    @property
    def ciphers(self) -> InMemoryTable:
        return self.table(StorageConfig.CIPHERS_TABLE)

    def table(self, resource: str) -> InMemoryTable:
        """Get a table, creating it at baseline throughput on first use."""
        if resource not in self.tables:
            self.tables[resource] = InMemoryTable(resource, fail_rate=self.fail_rate, rng=self._rng)
        return self.tables[resource]

    async def describe_status(self, resource: str) -> Dict[str, Any]:
        table = self.table(resource)
        if table._polls_until_active > 0:
            table._polls_until_active -= 1
        else:
            table.status = "ACTIVE"
        return {"status": table.status, "write_units": table.write_units}

    async def update_throughput(self, resource: str, units: int) -> None:
        table = self.table(resource)

        if table.status != "ACTIVE":
            raise CapacityError(
                "Resource is being updated", resource=resource, target_units=units
            )
        if units < 1:
            raise CapacityError(
                "Write units must be at least 1", resource=resource, target_units=units
            )

        self.throughput_history.append(
            {
                "timestamp": datetime.now().isoformat(),
                "resource": resource,
                "from_units": table.write_units,
                "to_units": units,
            }
        )
        table.write_units = units
        table.status = "UPDATING"
        table._polls_until_active = self.settle_polls

    async def touch(self, owner_id: str) -> None:
        self.touched[owner_id] += 1

    async def load_context(self, token: str) -> ImportContext:
        if not token:
            raise AuthError("Missing token")

        if token.lower().startswith("bearer "):
            token = token[7:]

        owner_id = self.tokens.get(token.strip())
        if owner_id is None:
            raise AuthError("Invalid token")
        return ImportContext(owner_id=owner_id)

    def __repr__(self) -> str:
        return f"InMemoryBackend(tables={list(self.tables.values())})"
