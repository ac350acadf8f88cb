"""
Engine Module

Bulk-import reconciliation: backoff, capacity scaling, dependency
resolution, retry rounds and top-level coordination.

Components:
    - BackoffScheduler: Randomized retry delays
    - CapacityController: Temporary write throughput elevation
    - DependencyResolver: Cipher → created folder resolution
    - RetryOrchestrator: Bounded-round creation with retry of failures
    - ImportCoordinator: End-to-end sequencing of one import
"""

__all__ = [
    "BackoffScheduler",
    "CapacityController",
    "CapacityRequest",
    "DependencyResolver",
    "RetryOrchestrator",
    "RetryResult",
    "ImportCoordinator",
    "ImportSettings",
]

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    if name == "BackoffScheduler":
        from .backoff import BackoffScheduler
        return BackoffScheduler
    elif name in ("CapacityController", "CapacityRequest"):
        from . import capacity
        return getattr(capacity, name)
    elif name == "DependencyResolver":
        from .resolver import DependencyResolver
        return DependencyResolver
    elif name in ("RetryOrchestrator", "RetryResult"):
        from . import retry
        return getattr(retry, name)
    elif name in ("ImportCoordinator", "ImportSettings"):
        from . import coordinator
        return getattr(coordinator, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
