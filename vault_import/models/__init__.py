"""
Models Module

Request schemas and engine bookkeeping types.
"""

from vault_import.models.schemas import (
    CapacityState,
    CipherType,
    CreationOutcome,
    FolderSpec,
    ImportBatch,
    ImportReport,
    ImportStage,
    ItemSpec,
    RecordKind,
    Relationship,
    ResourceStatus,
    RetryRound,
    build_cipher_document,
    build_folder_document,
    normalize_keys,
)

__all__ = [
    "CapacityState",
    "CipherType",
    "CreationOutcome",
    "FolderSpec",
    "ImportBatch",
    "ImportReport",
    "ImportStage",
    "ItemSpec",
    "RecordKind",
    "Relationship",
    "ResourceStatus",
    "RetryRound",
    "build_cipher_document",
    "build_folder_document",
    "normalize_keys",
]
