"""
Integration tests for the import coordinator.

Runs full imports against the in-memory backend with scripted failures.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from tests.conftest import FailureScript, build_batch, find_cipher
from vault_import.backends.base import ImportContext
from vault_import.engine.coordinator import ImportCoordinator
from vault_import.models.schemas import ImportStage
from vault_import.utils.exceptions import AuthError, CapacityError, ValidationError

OWNER = ImportContext(owner_id="user-1")


class TestSuccessfulImports:
    """Test imports against a healthy store."""

    @pytest.mark.asyncio
    async def test_independent_records(self, backend, make_coordinator):
        """Test a batch without relationships creates everything once."""
        coordinator = make_coordinator()

        report = await coordinator.run(build_batch(folders=2, ciphers=3), OWNER)

        assert report.complete
        assert report.unresolved_folders == 0
        assert report.unresolved_ciphers == 0
        assert len(backend.folders) == 2
        assert len(backend.ciphers) == 3
        assert all(r["folderUuid"] is None for r in backend.ciphers.records.values())
        assert all(r["userUuid"] == "user-1" for r in backend.ciphers.records.values())
        assert coordinator.stage == ImportStage.DONE

    @pytest.mark.asyncio
    async def test_item_linked_to_its_parent(self, backend, make_coordinator):
        """Test 3 folders, 5 ciphers, cipher 2 → folder 1."""
        report = await make_coordinator().run(
            build_batch(folders=3, ciphers=5, relationships=[(2, 1)]), OWNER
        )

        assert report.complete
        assert report.folder_rounds == 1
        assert report.cipher_rounds == 1

        folder_1 = report.folder_ids[1]
        assert folder_1 in backend.folders.records
        assert backend.folders.records[folder_1]["name"] == "folder-1"
        assert find_cipher(backend, "cipher-2")["folderUuid"] == folder_1

        others = [find_cipher(backend, f"cipher-{i}") for i in (0, 1, 3, 4)]
        assert all(c["folderUuid"] is None for c in others)

    @pytest.mark.asyncio
    async def test_each_item_gets_its_own_parent(self, backend, make_coordinator):
        """Test several links never cross folders."""
        links = [(0, 2), (1, 0), (2, 1), (3, 2)]

        report = await make_coordinator().run(
            build_batch(folders=3, ciphers=4, relationships=links), OWNER
        )

        for cipher_index, folder_index in links:
            cipher = find_cipher(backend, f"cipher-{cipher_index}")
            assert cipher["folderUuid"] == report.folder_ids[folder_index]

    @pytest.mark.asyncio
    async def test_report_lines(self, make_coordinator):
        """Test the summary lists folder rounds then cipher rounds."""
        report = await make_coordinator().run(build_batch(folders=1, ciphers=2), OWNER)

        assert report.lines == (
            "DONE, total: 1, error: 0, rounds: 1",
            "DONE, total: 2, error: 0, rounds: 1",
        )
        assert report.summary == (
            "DONE, total: 1, error: 0, rounds: 1 DONE, total: 2, error: 0, rounds: 1"
        )

    @pytest.mark.asyncio
    async def test_owner_touched_once(self, backend, make_coordinator):
        """Test the owner is touched exactly once per import."""
        await make_coordinator().run(build_batch(folders=1, ciphers=1), OWNER)

        assert backend.touched == {"user-1": 1}


class TestPartialFailure:
    """Test retry rounds and residual reporting."""

    @pytest.mark.asyncio
    async def test_fail_twice_and_fail_always(self, backend, make_coordinator):
        """Test cipher 0 recovering in round 3 while cipher 1 never does."""
        backend.ciphers.failure_hook = FailureScript({"cipher-0": 2, "cipher-1": -1})

        report = await make_coordinator().run(build_batch(ciphers=2), OWNER)

        assert report.cipher_rounds == 4
        assert report.unresolved_ciphers == 1
        assert not report.complete
        assert report.cipher_ids[0] is not None
        assert report.cipher_ids[1] is None
        assert find_cipher(backend, "cipher-0")
        assert report.lines[-1] == "Unable to complete for 1 ciphers"
        assert "DONE, total: 1, error: 1, rounds: 4" in report.lines

    @pytest.mark.asyncio
    async def test_rounds_are_bounded(self, backend, make_coordinator):
        """Test an always-failing store stops after four rounds."""
        script = FailureScript({f"cipher-{i}": -1 for i in range(3)})
        backend.ciphers.failure_hook = script

        report = await make_coordinator().run(build_batch(ciphers=3), OWNER)

        assert report.cipher_rounds == 4
        assert report.unresolved_ciphers == 3
        assert all(count == 4 for count in script.calls.values())
        assert report.lines.count("Unable to complete for 3 ciphers") == 1

    @pytest.mark.asyncio
    async def test_items_of_failed_parent(self, backend, make_coordinator):
        """Test ciphers of a folder that never got created are not written."""
        backend.folders.failure_hook = FailureScript({"folder-0": -1})

        report = await make_coordinator().run(
            build_batch(folders=2, ciphers=3, relationships=[(0, 0), (1, 1)]), OWNER
        )

        assert report.unresolved_folders == 1
        assert report.unresolved_ciphers == 1
        assert report.cipher_ids[0] is None
        assert find_cipher(backend, "cipher-1")["folderUuid"] == report.folder_ids[1]
        assert "Unable to complete for 1 folders" in report.lines
        assert "Unable to complete for 1 ciphers" in report.lines
        assert backend.ciphers.attempts == 2

    @pytest.mark.asyncio
    async def test_owner_touched_despite_failures(self, backend, make_coordinator):
        """Test the owner is touched once even when records are left behind."""
        backend.ciphers.failure_hook = FailureScript({"cipher-0": -1})

        await make_coordinator().run(build_batch(ciphers=1), OWNER)

        assert backend.touched == {"user-1": 1}


class TestFatalErrors:
    """Test validation, auth and cleanup guarantees."""

    @pytest.mark.asyncio
    async def test_out_of_range_parent_rejected_before_writes(self, backend, make_coordinator):
        """Test a relationship to folder 9 of 3 makes no write at all."""
        coordinator = make_coordinator()

        with pytest.raises(ValidationError, match="Folder defined in folder relationships was missing"):
            await coordinator.run(
                build_batch(folders=3, ciphers=5, relationships=[(2, 9)]), OWNER
            )

        assert backend.folders.attempts == 0
        assert backend.ciphers.attempts == 0
        assert backend.throughput_history == []
        assert not backend.touched
        assert coordinator.stage == ImportStage.FAILED

    @pytest.mark.asyncio
    async def test_missing_owner(self, backend, make_coordinator):
        """Test an import without an owner is rejected."""
        with pytest.raises(AuthError):
            await make_coordinator().run(build_batch(folders=1), ImportContext(owner_id=""))

        assert backend.folders.attempts == 0

    @pytest.mark.asyncio
    async def test_capacity_restored_after_fatal_error(self, backend, make_coordinator):
        """Test throughput returns to baseline when a write raises a fatal error."""
        backend.ciphers.failure_hook = FailureScript(
            {"cipher-0": -1}, error=ValidationError("Cipher payload rejected")
        )
        coordinator = make_coordinator()

        with pytest.raises(ValidationError):
            await coordinator.run(build_batch(folders=1, ciphers=1), OWNER)

        assert backend.folders.write_units == 1
        assert backend.ciphers.write_units == 1
        raised = [h for h in backend.throughput_history if h["to_units"] > 1]
        restored = [h for h in backend.throughput_history if h["to_units"] == 1]
        assert len(raised) == 2
        assert len(restored) == 2
        assert coordinator.stage == ImportStage.FAILED
        stages = [s["to_stage"] for s in coordinator.stage_history]
        assert "capacity_restoring" in stages

    @pytest.mark.asyncio
    async def test_capacity_failure_is_not_fatal(self, backend, make_coordinator):
        """Test a rejected throughput change does not stop the import."""
        backend.update_throughput = AsyncMock(side_effect=CapacityError("LimitExceededException"))

        report = await make_coordinator().run(build_batch(folders=1, ciphers=1), OWNER)

        assert report.complete
        assert backend.touched == {"user-1": 1}

    @pytest.mark.asyncio
    async def test_transport_error_on_raise_does_not_leak_capacity(self, backend, make_coordinator):
        """Test a failed raise still imports and leaves every resource at baseline."""
        update = backend.update_throughput

        async def flaky_update(resource, units):
            if resource == "ciphers" and units > 1:
                raise ConnectionError("connection reset by peer")
            await update(resource, units)

        backend.update_throughput = flaky_update

        report = await make_coordinator().run(build_batch(folders=1, ciphers=1), OWNER)

        assert report.complete
        assert len(backend.ciphers) == 1
        assert backend.folders.write_units == 1
        assert backend.ciphers.write_units == 1
        assert ("folders", 1) in [
            (h["resource"], h["to_units"]) for h in backend.throughput_history
        ]


class BlockingStore:
    """Record store whose writes never finish until cancelled."""

    resource = "folders"

    def __init__(self):
        self.started = 0
        self.cancelled = 0

    async def create(self, document):
        self.started += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


class TestCancellation:
    """Test in-flight writes are unwound before a fatal error surfaces."""

    @pytest.mark.asyncio
    async def test_pending_writes_cancelled_before_raise(self, backend, fast_settings):
        """Test folder writes still in flight are cancelled and finished when run raises."""
        folders = BlockingStore()
        backend.ciphers.failure_hook = FailureScript(
            {"cipher-0": -1}, error=ValidationError("Cipher payload rejected")
        )
        fast_settings.capacity_enabled = False
        coordinator = ImportCoordinator(folders, backend.ciphers, backend, settings=fast_settings)

        with pytest.raises(ValidationError):
            await coordinator.run(build_batch(folders=2, ciphers=1), OWNER)

        assert folders.started == 2
        assert folders.cancelled == 2
        assert coordinator.stage == ImportStage.FAILED


class TestCapacitySizing:
    """Test throughput elevation during an import."""

    @pytest.mark.asyncio
    async def test_capacity_raised_and_restored(self, backend, make_coordinator):
        """Test units follow base + ceil(n / 200) and return to one."""
        await make_coordinator().run(build_batch(folders=3, ciphers=201), OWNER)

        changes = {
            (h["resource"], h["to_units"]) for h in backend.throughput_history
        }
        assert ("folders", 2) in changes
        assert ("ciphers", 4) in changes
        assert backend.folders.write_units == 1
        assert backend.ciphers.write_units == 1

    @pytest.mark.asyncio
    async def test_capacity_scaling_disabled(self, backend, make_coordinator, fast_settings):
        """Test no throughput change when scaling is turned off."""
        fast_settings.capacity_enabled = False

        report = await make_coordinator().run(build_batch(folders=1, ciphers=1), OWNER)

        assert report.complete
        assert backend.throughput_history == []
