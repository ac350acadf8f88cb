"""
Import Coordinator.

Top-level sequencing of one bulk import: validation, elevated capacity,
folder and cipher creation with retries, guaranteed capacity restore, owner
touch and the final report.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from vault_import.backends.base import ImportContext, RecordStore, ResourceControl, UserDirectory
from vault_import.config import CapacityConfig, RetryConfig
from vault_import.engine.backoff import BackoffScheduler
from vault_import.engine.capacity import CapacityController, CapacityRequest
from vault_import.engine.resolver import DependencyResolver
from vault_import.engine.retry import RetryOrchestrator, RetryResult
from vault_import.models.schemas import (
    FolderSpec,
    ImportBatch,
    ImportReport,
    ImportStage,
    ItemSpec,
    RecordKind,
    build_cipher_document,
    build_folder_document,
)
from vault_import.utils.exceptions import AuthError

logger = logging.getLogger(__name__)


@dataclass
class ImportSettings:
    """Engine settings for one coordinator.

    Attributes:
        max_rounds: Total creation rounds per record kind
        backoff_max_seconds: Upper bound of the random retry delay
        capacity_enabled: Raise throughput for the duration of the batch
        poll_interval: Seconds between status polls after a capacity change
        records_per_unit: Records covered by one extra write unit
        folder_base_units: Base write units for the folder resource
        cipher_base_units: Base write units for the cipher resource
        baseline_units: Write units restored after the batch
    """

    max_rounds: int = 4
    backoff_max_seconds: float = 3.0
    capacity_enabled: bool = True
    poll_interval: float = 1.0
    records_per_unit: int = 200
    folder_base_units: int = 1
    cipher_base_units: int = 2
    baseline_units: int = 1

    @classmethod
    def from_env(cls) -> "ImportSettings":
        """Create settings from environment variables."""
        return cls(
            max_rounds=RetryConfig.MAX_ROUNDS,
            backoff_max_seconds=RetryConfig.BACKOFF_MAX_SECONDS,
            capacity_enabled=CapacityConfig.ENABLED,
            poll_interval=CapacityConfig.POLL_INTERVAL_SECONDS,
            records_per_unit=CapacityConfig.RECORDS_PER_UNIT,
            folder_base_units=CapacityConfig.FOLDER_BASE_UNITS,
            cipher_base_units=CapacityConfig.ITEM_BASE_UNITS,
            baseline_units=CapacityConfig.BASELINE_UNITS,
        )


@asynccontextmanager
async def _unchanged_capacity() -> AsyncIterator[None]:
    yield None


class ImportCoordinator:
    """
    Runs one import request end to end.

    Stages:
        VALIDATING → CAPACITY_RAISING → CREATING_PARENTS → CREATING_ITEMS
        → CAPACITY_RESTORING → DONE, or FAILED from any stage

    Folder and cipher creation overlap: a cipher is submitted as soon as its
    own folder exists, and ciphers without a folder are submitted at once.
    Capacity is restored on every exit path. The owner is touched exactly
    once whenever writes were attempted, even if some records failed.

    Example:
        >>> coordinator = ImportCoordinator(folders, ciphers, users, control=backend)
        >>> report = await coordinator.run(batch, ImportContext(owner_id="u-1"))
        >>> print(report.summary)
    """

    def __init__(
        self,
        folders: RecordStore,
        ciphers: RecordStore,
        users: UserDirectory,
        control: Optional[ResourceControl] = None,
        settings: Optional[ImportSettings] = None,
        orchestrator: Optional[RetryOrchestrator] = None,
        capacity: Optional[CapacityController] = None,
    ):
        """
        Initialize coordinator.

        Args:
            folders: Store for folder records
            ciphers: Store for cipher records
            users: Owner metadata collaborator
            control: Throughput control; capacity is left alone when None
            settings: Engine settings (default: from environment)
            orchestrator: Custom retry orchestrator (built from settings if None)
            capacity: Custom capacity controller (built from settings if None)
        """
        self.folders = folders
        self.ciphers = ciphers
        self.users = users
        self.settings = settings or ImportSettings.from_env()

        self.orchestrator = orchestrator or RetryOrchestrator(
            backoff=BackoffScheduler(self.settings.backoff_max_seconds),
            max_rounds=self.settings.max_rounds,
        )

        if capacity is None and control is not None and self.settings.capacity_enabled:
            capacity = CapacityController(
                control,
                poll_interval=self.settings.poll_interval,
                records_per_unit=self.settings.records_per_unit,
                baseline_units=self.settings.baseline_units,
            )
        self.capacity = capacity

        self.stage = ImportStage.VALIDATING
        self.stage_history: List[Dict[str, Any]] = []

    def _transition(self, stage: ImportStage) -> None:
        self.stage_history.append(
            {
                "timestamp": datetime.now().isoformat(),
                "from_stage": self.stage.value,
                "to_stage": stage.value,
            }
        )
        logger.debug(f"Import stage: {self.stage.value} → {stage.value}")
        self.stage = stage

    def _capacity_scope(self, batch: ImportBatch):
        if self.capacity is None:
            return _unchanged_capacity()
        return self.capacity.elevated(
            [
                CapacityRequest(
                    resource=self.folders.resource,
                    base_units=self.settings.folder_base_units,
                    batch_size=len(batch.folders),
                ),
                CapacityRequest(
                    resource=self.ciphers.resource,
                    base_units=self.settings.cipher_base_units,
                    batch_size=len(batch.ciphers),
                ),
            ]
        )

    async def run(self, batch: ImportBatch, context: Optional[ImportContext]) -> ImportReport:
        """
        Import a batch for the authenticated owner.

        Args:
            batch: Validated request batch
            context: Authenticated context of the request

        Returns:
            ImportReport; partial failure is reported, never raised

        Raises:
            AuthError: If the owner cannot be established (no writes made)
            ValidationError: If a relationship is invalid (no writes made)
        """
        self.stage = ImportStage.VALIDATING
        self.stage_history = []

        if context is None or not context.owner_id:
            self._transition(ImportStage.FAILED)
            raise AuthError("User not found")

        resolver = DependencyResolver(
            batch.folder_relationships, len(batch.folders), len(batch.ciphers)
        )
        try:
            resolver.validate()
        except Exception:
            self._transition(ImportStage.FAILED)
            raise

        owner_id = context.owner_id
        logger.info(
            f"Importing {len(batch.folders)} folders and {len(batch.ciphers)} ciphers",
            extra={
                "owner_id": owner_id,
                "folders": len(batch.folders),
                "ciphers": len(batch.ciphers),
                "relationships": len(batch.folder_relationships),
            },
        )

        writes_started = False
        try:
            self._transition(ImportStage.CAPACITY_RAISING)
            async with self._capacity_scope(batch):
                writes_started = True
                try:
                    folder_result, cipher_result = await self._create_all(
                        batch, owner_id, resolver
                    )
                finally:
                    self._transition(ImportStage.CAPACITY_RESTORING)
        except Exception:
            self._transition(ImportStage.FAILED)
            if writes_started:
                await self._touch_after_failure(owner_id)
            raise

        await self.users.touch(owner_id)

        report = self._build_report(batch, folder_result, cipher_result)
        self._transition(ImportStage.DONE)

        log = logger.info if report.complete else logger.warning
        log(
            f"Import finished: {report.folders_created}/{report.folders_total} folders, "
            f"{report.ciphers_created}/{report.ciphers_total} ciphers",
            extra={"owner_id": owner_id, **report.to_dict()},
        )
        return report

    async def _create_all(
        self, batch: ImportBatch, owner_id: str, resolver: DependencyResolver
    ) -> Tuple[RetryResult, RetryResult]:
        async def create_folder(key: int, spec: FolderSpec) -> Dict[str, Any]:
            return await self.folders.create(build_folder_document(spec, owner_id))

        async def create_cipher(key: int, spec: ItemSpec) -> Dict[str, Any]:
            folder_id = await resolver.resolve(key)
            return await self.ciphers.create(build_cipher_document(spec, owner_id, folder_id))

        self._transition(ImportStage.CREATING_PARENTS)
        folder_task = asyncio.ensure_future(
            self.orchestrator.run(
                batch.folders,
                create_folder,
                label=RecordKind.FOLDER.plural,
                on_success=resolver.parent_created,
                on_give_up=lambda outcome: resolver.parent_failed(outcome.key, outcome.cause),
            )
        )

        self._transition(ImportStage.CREATING_ITEMS)
        cipher_task = asyncio.ensure_future(
            self.orchestrator.run(batch.ciphers, create_cipher, label=RecordKind.CIPHER.plural)
        )

        try:
            folder_result, cipher_result = await asyncio.gather(folder_task, cipher_task)
        except BaseException:
            # Ciphers may be parked on folders that will never settle
            folder_task.cancel()
            cipher_task.cancel()
            await asyncio.gather(folder_task, cipher_task, return_exceptions=True)
            raise

        return folder_result, cipher_result

    async def _touch_after_failure(self, owner_id: str) -> None:
        try:
            await self.users.touch(owner_id)
        except Exception as e:
            logger.error(f"Failed to touch owner {owner_id} after a failed import: {e}")

    def _build_report(
        self, batch: ImportBatch, folders: RetryResult, ciphers: RetryResult
    ) -> ImportReport:
        # Folder rounds first, then cipher rounds, then the unresolved counts
        lines = list(folders.lines) + list(ciphers.lines)
        if folders.residual:
            lines.append(f"Unable to complete for {len(folders.residual)} folders")
        if ciphers.residual:
            lines.append(f"Unable to complete for {len(ciphers.residual)} ciphers")

        return ImportReport(
            lines=tuple(lines),
            folders_total=len(batch.folders),
            folders_created=len(folders.records),
            folder_rounds=folders.rounds,
            ciphers_total=len(batch.ciphers),
            ciphers_created=len(ciphers.records),
            cipher_rounds=ciphers.rounds,
            folder_ids=tuple(
                folders.records[i].get("uuid") if i in folders.records else None
                for i in range(len(batch.folders))
            ),
            cipher_ids=tuple(
                ciphers.records[i].get("uuid") if i in ciphers.records else None
                for i in range(len(batch.ciphers))
            ),
        )
