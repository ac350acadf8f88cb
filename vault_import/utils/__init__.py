"""
Utils Module

Shared utilities used across the import service.

Components:
    - logger: Package logging with daily rotation, colorized output and
      rendered ``extra=`` context
    - exceptions: Error hierarchy for fatal and recoverable import failures
"""

from vault_import.utils.exceptions import (
    AuthError,
    CapacityError,
    CreationError,
    UnresolvedParentError,
    ValidationError,
    VaultImportError,
)
from vault_import.utils.logger import get_import_logger, setup_logger

__all__ = [
    # Logger utilities
    "setup_logger",
    "get_import_logger",
    # Exceptions
    "VaultImportError",
    "ValidationError",
    "AuthError",
    "CreationError",
    "UnresolvedParentError",
    "CapacityError",
]
