"""
Write Throughput Capacity Controller.

Temporarily raises the provisioned write throughput of storage resources for
the duration of a bulk write and always restores the baseline afterwards.
"""

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Sequence, Type

from vault_import.backends.base import ResourceControl
from vault_import.config import CapacityConfig
from vault_import.models.schemas import CapacityState, ResourceStatus
from vault_import.utils.exceptions import CapacityError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacityRequest:
    """Elevated throughput wanted for one resource during a batch.

    Attributes:
        resource: Storage resource identifier
        base_units: Units granted regardless of batch size
        batch_size: Records about to be written to the resource
    """

    resource: str
    base_units: int
    batch_size: int


class CapacityController:
    """
    Raises and restores write throughput, waiting for the backend to settle.

    Every change is followed by polling ``describe_status`` at a fixed
    interval until the resource reports ``ACTIVE``. Status queries that fail
    while the backend is scaling are logged and retried indefinitely, so a
    change only ever delays the caller. A rejected throughput update raises
    CapacityError, which callers treat as non-fatal.

    State Transitions (per resource):
        ACTIVE → PENDING: throughput update accepted
        PENDING → ACTIVE: backend reports the change applied

    Example:
        >>> controller = CapacityController(backend)
        >>> requests = [CapacityRequest("ciphers", base_units=2, batch_size=450)]
        >>> async with controller.elevated(requests):
        ...     await write_everything()
    """

    def __init__(
        self,
        control: ResourceControl,
        poll_interval: float = CapacityConfig.POLL_INTERVAL_SECONDS,
        records_per_unit: int = CapacityConfig.RECORDS_PER_UNIT,
        baseline_units: int = CapacityConfig.BASELINE_UNITS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize capacity controller.

        Args:
            control: Backend able to describe and update resources
            poll_interval: Seconds between status polls (default: 1)
            records_per_unit: Records covered by one extra unit (default: 200)
            baseline_units: Units restored after the batch (default: 1)
            sleep: Awaitable sleep, replaceable in tests
        """
        self.control = control
        self.poll_interval = poll_interval
        self.records_per_unit = records_per_unit
        self.baseline_units = baseline_units
        self._sleep = sleep
        self.states: Dict[str, CapacityState] = {}

    def target_units(self, base_units: int, batch_size: int) -> int:
        """Units for a batch: ``base + ceil(batch_size / records_per_unit)``."""
        return base_units + math.ceil(batch_size / self.records_per_unit)

    async def raise_capacity(self, resource: str, target_units: int) -> CapacityState:
        """
        Raise a resource to ``target_units`` and wait until it is ACTIVE.

        Raises:
            CapacityError: If the backend rejects the update
        """
        logger.info(f"Raising write capacity of {resource} to {target_units} units")
        return await self._change(resource, target_units)

    async def restore(self, resource: str) -> CapacityState:
        """
        Restore a resource to the baseline and wait until it is ACTIVE.

        Raises:
            CapacityError: If the backend rejects the update
        """
        logger.info(f"Restoring write capacity of {resource} to {self.baseline_units} units")
        return await self._change(resource, self.baseline_units)

    @asynccontextmanager
    async def elevated(self, requests: Sequence[CapacityRequest]) -> AsyncIterator["CapacityController"]:
        """
        Hold elevated throughput for the body of the ``async with`` block.

        Any raising failure is logged and ignored. The baseline is restored on
        every exit path, including a failed raise and exceptions raised inside
        the block.
        """
        try:
            await self._apply_all(
                "raise",
                [
                    self.raise_capacity(r.resource, self.target_units(r.base_units, r.batch_size))
                    for r in requests
                ],
                tolerated=Exception,
            )
            yield self
        finally:
            await self._apply_all("restore", [self.restore(r.resource) for r in requests])

    async def _apply_all(
        self, action: str, changes: list, tolerated: Type[BaseException] = CapacityError
    ) -> None:
        # Every change runs to completion before any error is raised
        results = await asyncio.gather(*changes, return_exceptions=True)
        for result in results:
            if isinstance(result, tolerated):
                logger.warning(
                    f"Capacity {action} failed, continuing at current throughput: {result}",
                    extra={
                        "resource": getattr(result, "resource", None),
                        "target_units": getattr(result, "target_units", None),
                    },
                )
            elif isinstance(result, BaseException):
                raise result

    async def _change(self, resource: str, units: int) -> CapacityState:
        # The backend only accepts updates on a settled resource
        state = await self._wait_until_active(resource)

        if state.write_units == units:
            logger.debug(f"{resource} already at {units} write units, skipping update")
            return state

        try:
            await self.control.update_throughput(resource, units)
        except CapacityError as e:
            if e.resource is None:
                e.resource = resource
            if e.target_units is None:
                e.target_units = units
            raise

        previous = state.write_units
        state.write_units = units
        state.observe(ResourceStatus.PENDING)
        logger.debug(f"{resource}: {previous} -> {units} write units requested")

        return await self._wait_until_active(resource)

    async def _wait_until_active(self, resource: str) -> CapacityState:
        state = self.states.get(resource)
        if state is None:
            state = CapacityState(resource=resource, write_units=0)
            self.states[resource] = state

        polls = 0
        while True:
            polls += 1
            try:
                description = await self.control.describe_status(resource)
            except Exception as e:
                # Status queries are expected to fail transiently while scaling
                logger.warning(
                    f"Status query for {resource} failed, retrying in {self.poll_interval}s: {e}",
                    extra={"resource": resource, "poll": polls},
                )
            else:
                if description.get("write_units") is not None:
                    state.write_units = int(description["write_units"])
                state.observe(ResourceStatus.from_backend(description.get("status")))
                if state.is_active:
                    logger.debug(f"{resource} is ACTIVE after {polls} poll(s)")
                    return state

            await self._sleep(self.poll_interval)

    def get_statistics(self) -> dict:
        """Current units, status and recent transitions per resource."""
        return {
            resource: {
                "write_units": state.write_units,
                "status": state.status.value,
                "transitions": state.transitions[-10:],
            }
            for resource, state in self.states.items()
        }
