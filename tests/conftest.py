"""
Pytest configuration and shared fixtures for Vault Import tests.

Provides:
    - In-memory backend with a known token
    - Fast engine settings (no real backoff or polling delays)
    - Scripted failure plans for record stores
    - Batch builders
"""

import asyncio
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pytest

from vault_import.backends.memory import InMemoryBackend
from vault_import.engine.coordinator import ImportCoordinator, ImportSettings
from vault_import.models.schemas import ImportBatch
from vault_import.utils.exceptions import CreationError


# ========== Helpers ==========


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FailureScript:
    """
    Failure hook that rejects the first N creates of each named record.

    A count of -1 rejects every attempt.
    """

    def __init__(self, failures: Mapping[str, int], error: Optional[Exception] = None):
        self.failures = dict(failures)
        self.error = error
        self.calls: Counter = Counter()

    @staticmethod
    def record_name(document: Mapping[str, Any]) -> str:
        if "data" in document:
            return document["data"]["name"]
        return document["name"]

    def __call__(self, document: Mapping[str, Any]) -> Optional[Exception]:
        name = self.record_name(document)
        self.calls[name] += 1
        remaining = self.failures.get(name, 0)
        if remaining < 0 or self.calls[name] <= remaining:
            return self.error or CreationError(
                "ProvisionedThroughputExceededException", resource="test"
            )
        return None


def build_batch(
    folders: int = 0,
    ciphers: int = 0,
    relationships: Iterable[Tuple[int, int]] = (),
) -> ImportBatch:
    """Batch of ``folder-N`` folders and ``cipher-N`` login ciphers."""
    return ImportBatch.from_body(
        {
            "folders": [{"name": f"folder-{i}"} for i in range(folders)],
            "ciphers": [
                {
                    "type": 1,
                    "name": f"cipher-{i}",
                    "login": {"username": f"user{i}", "password": "secret"},
                }
                for i in range(ciphers)
            ],
            "folderRelationships": [{"key": k, "value": v} for k, v in relationships],
        }
    )


def find_cipher(backend: InMemoryBackend, name: str) -> Dict[str, Any]:
    """Stored cipher record with the given name."""
    matches = [r for r in backend.ciphers.records.values() if r["data"]["name"] == name]
    assert len(matches) == 1, f"expected one cipher named {name}, found {len(matches)}"
    return matches[0]


# ========== Fixtures ==========


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fast_settings() -> ImportSettings:
    """Engine settings with zero backoff and zero poll interval."""
    return ImportSettings(
        max_rounds=4,
        backoff_max_seconds=0.0,
        capacity_enabled=True,
        poll_interval=0.0,
    )


@pytest.fixture
def backend() -> InMemoryBackend:
    """In-memory backend accepting ``token-1`` for ``user-1``."""
    return InMemoryBackend(tokens={"token-1": "user-1"}, settle_polls=1)


@pytest.fixture
def make_coordinator(backend: InMemoryBackend, fast_settings: ImportSettings):
    """Factory for coordinators wired to the in-memory backend."""

    def factory(**kwargs) -> ImportCoordinator:
        kwargs.setdefault("control", backend)
        kwargs.setdefault("settings", fast_settings)
        return ImportCoordinator(backend.folders, backend.ciphers, backend, **kwargs)

    return factory
