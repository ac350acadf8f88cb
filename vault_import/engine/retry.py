"""
Retry Orchestrator.

Creates a set of records concurrently and resubmits only the failed ones,
with randomized backoff, for a bounded number of rounds.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from vault_import.config import RetryConfig
from vault_import.engine.backoff import BackoffScheduler
from vault_import.models.schemas import CreationOutcome, RetryRound
from vault_import.utils.exceptions import CreationError

logger = logging.getLogger(__name__)

SpecT = TypeVar("SpecT")

CreateFn = Callable[[int, SpecT], Awaitable[Dict[str, Any]]]


@dataclass
class RetryResult:
    """Outcome of running a batch of specs through the orchestrator.

    Attributes:
        records: Created records by batch position
        residual: One failed outcome per record that was never created
        final_round: Bookkeeping of the last round run
        lines: Summary lines for the client report
    """

    records: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    residual: List[CreationOutcome] = field(default_factory=list)
    final_round: RetryRound = field(default_factory=RetryRound)
    lines: List[str] = field(default_factory=list)

    @property
    def rounds(self) -> int:
        return self.final_round.number

    @property
    def complete(self) -> bool:
        return not self.residual


class RetryOrchestrator(Generic[SpecT]):
    """
    Bounded-round creation with retry of failures only.

    Each round submits every pending spec concurrently and waits for all of
    them before partitioning outcomes (a barrier between rounds). Failed specs
    wait a random backoff delay and are resubmitted alone. Creation errors
    never abort the batch; anything other than a CreationError does.

    Retries on:
        - CreationError with ``retryable=True``

    Does not retry on:
        - CreationError with ``retryable=False`` (goes straight to residual)

    Example:
        >>> orchestrator = RetryOrchestrator(BackoffScheduler(3.0))
        >>> result = await orchestrator.run(specs, create_folder, label="folders")
        >>> print(result.rounds, len(result.residual))
    """

    def __init__(
        self,
        backoff: Optional[BackoffScheduler] = None,
        max_rounds: int = RetryConfig.MAX_ROUNDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            backoff: Delay source for retries (default: 0-3s uniform)
            max_rounds: Total rounds including the first attempt (default: 4)
            sleep: Awaitable sleep, replaceable in tests
        """
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")

        self.backoff = backoff or BackoffScheduler()
        self.max_rounds = max_rounds
        self._sleep = sleep

    async def run(
        self,
        specs: Sequence[SpecT],
        create: CreateFn,
        label: str = "records",
        on_success: Optional[Callable[[int, Dict[str, Any]], None]] = None,
        on_give_up: Optional[Callable[[CreationOutcome], None]] = None,
    ) -> RetryResult:
        """
        Create every spec, retrying failures until success or the round ceiling.

        Args:
            specs: Specs to create; positions are their keys
            create: ``create(key, spec)`` returning the created record
            label: Record kind used in log messages
            on_success: Called as soon as a record is created
            on_give_up: Called once per record that will not be retried again

        Returns:
            RetryResult with created records and the residual failures
        """
        result = RetryResult(final_round=RetryRound(pending=tuple(range(len(specs)))))
        given_up: Dict[int, CreationOutcome] = {}

        attempts = [
            self._attempt(key, spec, create, on_success) for key, spec in enumerate(specs)
        ]

        while attempts:
            outcomes: List[CreationOutcome] = await asyncio.gather(*attempts)
            round_ = result.final_round.advance(outcomes)
            result.final_round = round_

            failures = []
            for outcome in outcomes:
                if outcome.success:
                    result.records[outcome.key] = outcome.record
                else:
                    result.lines.append(f"ERR: {outcome.cause.cause}")
                    failures.append(outcome)

            msg = f"DONE, total: {len(outcomes)}, error: {len(failures)}, rounds: {round_.number}"
            result.lines.append(msg)
            logger.info(
                f"{label}: {msg}",
                extra={
                    "label": label,
                    "round": round_.number,
                    "pending": len(round_.pending),
                    "succeeded": round_.succeeded,
                    "failed_attempts": round_.failed_attempts,
                },
            )

            retryable = []
            for outcome in failures:
                if outcome.retryable and round_.number < self.max_rounds:
                    retryable.append(outcome)
                else:
                    given_up[outcome.key] = outcome
                    if on_give_up:
                        on_give_up(outcome)

            attempts = []
            for outcome in retryable:
                delay = self.backoff.delay(round_.number)
                attempts.append(
                    self._attempt(outcome.key, outcome.spec, create, on_success, delay)
                )

            if attempts:
                logger.debug(f"{label}: retrying {len(attempts)} record(s)")

        result.residual = [given_up[key] for key in sorted(given_up)]

        if result.residual:
            logger.warning(
                f"{label}: {len(result.residual)} record(s) unresolved after "
                f"{result.rounds} round(s)",
                extra={"label": label, "unresolved": len(result.residual)},
            )

        return result

    async def _attempt(
        self,
        key: int,
        spec: SpecT,
        create: CreateFn,
        on_success: Optional[Callable[[int, Dict[str, Any]], None]],
        delay: float = 0.0,
    ) -> CreationOutcome:
        if delay > 0:
            await self._sleep(delay)

        try:
            record = await create(key, spec)
        except CreationError as e:
            logger.debug(f"Creation of record {key} failed: {e}")
            return CreationOutcome.failed(key, spec, e)

        if on_success:
            on_success(key, record)
        return CreationOutcome.succeeded(key, spec, record)
