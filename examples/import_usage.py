"""
Bulk import usage examples.

Demonstrates a full import against the in-memory backend, retry rounds
against a flaky store and temporary capacity elevation.
"""

import asyncio
import random

from vault_import.backends.base import ImportContext
from vault_import.backends.memory import InMemoryBackend
from vault_import.engine.capacity import CapacityController, CapacityRequest
from vault_import.engine.coordinator import ImportCoordinator, ImportSettings
from vault_import.models.schemas import ImportBatch, normalize_keys

DEMO_SETTINGS = ImportSettings(backoff_max_seconds=0.2, poll_interval=0.1)


def sample_batch(folders: int = 3, ciphers: int = 5) -> ImportBatch:
    body = {
        "Folders": [{"Name": f"Folder {i}"} for i in range(folders)],
        "Ciphers": [
            {"Type": 1, "Name": f"Login {i}", "Login": {"Username": f"user{i}"}}
            for i in range(ciphers)
        ],
        "FolderRelationships": [{"Key": i, "Value": i % folders} for i in range(0, ciphers, 2)],
    }
    return ImportBatch.from_body(normalize_keys(body))


async def example_basic_import():
    """Import a small batch into a healthy store."""
    print("=== Basic Import ===\n")

    backend = InMemoryBackend()
    coordinator = ImportCoordinator(
        backend.folders, backend.ciphers, backend, control=backend, settings=DEMO_SETTINGS
    )

    report = await coordinator.run(sample_batch(), ImportContext(owner_id="demo-user"))

    for line in report.lines:
        print(f"   {line}")
    print(f"\n   ✓ Complete: {report.complete}")

    for record in backend.ciphers.records.values():
        print(f"   {record['data']['name']:<10} → folder {record['folderUuid']}")
    print()


async def example_flaky_store():
    """Import into a store rejecting 40% of writes."""
    print("=== Flaky Store ===\n")

    backend = InMemoryBackend(fail_rate=0.4, rng=random.Random(11))
    coordinator = ImportCoordinator(
        backend.folders, backend.ciphers, backend, control=backend, settings=DEMO_SETTINGS
    )

    report = await coordinator.run(
        sample_batch(folders=4, ciphers=20), ImportContext(owner_id="demo-user")
    )

    print(f"   Folders: {report.folders_created}/{report.folders_total} "
          f"in {report.folder_rounds} round(s)")
    print(f"   Ciphers: {report.ciphers_created}/{report.ciphers_total} "
          f"in {report.cipher_rounds} round(s)")
    if not report.complete:
        print(f"   ✗ {report.lines[-1]}")
    print(f"   Write attempts: {backend.ciphers.attempts}\n")


async def example_capacity_scope():
    """Raise throughput for a block of work and restore it afterwards."""
    print("=== Capacity Scope ===\n")

    backend = InMemoryBackend(settle_polls=2)
    controller = CapacityController(backend, poll_interval=0.1)

    async with controller.elevated([CapacityRequest("ciphers", base_units=2, batch_size=650)]):
        print(f"   Inside scope: {backend.ciphers.write_units} write units")

    print(f"   After scope: {backend.ciphers.write_units} write units")
    for change in backend.throughput_history:
        print(f"   {change['resource']}: {change['from_units']} → {change['to_units']}")
    print()


async def main():
    await example_basic_import()
    await example_flaky_store()
    await example_capacity_scope()


if __name__ == "__main__":
    asyncio.run(main())
