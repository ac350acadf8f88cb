"""
Custom exception classes for the Vault Import service.

Fatal errors (validation, auth) stop an import before any write. Creation
errors are recoverable and retried; capacity errors only cost throughput.
"""

from typing import Any, Optional


class VaultImportError(Exception):
    """Base exception for all Vault Import errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(VaultImportError):
    """Raised when an import request is malformed.

    Always raised before any record is written. The message is returned to
    the client verbatim.

    Attributes:
        field: Request field that failed validation (if known)
    """

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = {"field": field, **kwargs}
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.field = field


class AuthError(VaultImportError):
    """Raised when the owner of an import cannot be established."""

    def __init__(self, message: str = "Invalid or missing token", **kwargs):
        super().__init__(message, kwargs)


class CreationError(VaultImportError):
    """Raised by a record store when a single record cannot be created.

    Attributes:
        cause: Short backend error code or description
        resource: Resource the write targeted
        retryable: Whether another attempt may succeed
    """

    def __init__(
        self,
        cause: str,
        resource: Optional[str] = None,
        retryable: bool = True,
        **kwargs
    ):
        details = {"resource": resource, **kwargs}
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(f"Record creation failed: {cause}", details)
        self.cause = cause
        self.resource = resource
        self.retryable = retryable


class UnresolvedParentError(CreationError):
    """Raised for an item whose parent folder was never created."""

    def __init__(self, item_index: int, parent_index: int, **kwargs):
        super().__init__(
            f"parent folder {parent_index} unresolved",
            retryable=False,
            item_index=item_index,
            parent_index=parent_index,
            **kwargs
        )
        self.item_index = item_index
        self.parent_index = parent_index


class CapacityError(VaultImportError):
    """Raised when a throughput change is rejected by the backend.

    Attributes:
        resource: Resource whose throughput was being changed
        target_units: Requested write units
    """

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        target_units: Optional[int] = None,
        **kwargs
    ):
        details = {"resource": resource, "target_units": target_units, **kwargs}
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.resource = resource
        self.target_units = target_units
