"""
Data schemas for bulk imports.

Pydantic models validate the incoming request; plain dataclasses carry the
engine's per-round bookkeeping and the final report.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from vault_import.utils.exceptions import CreationError, ValidationError


class RecordKind(str, Enum):
    """Kinds of record created by an import."""

    FOLDER = "folder"
    CIPHER = "cipher"

    @property
    def plural(self) -> str:
        return f"{self.value}s"


class CipherType(int, Enum):
    """Cipher types accepted by the vault."""

    LOGIN = 1
    SECURE_NOTE = 2
    CARD = 3
    IDENTITY = 4


class ResourceStatus(str, Enum):
    """Observed status of a storage resource."""

    PENDING = "PENDING"  # Backend is applying a change
    ACTIVE = "ACTIVE"  # Stable and writable

    @classmethod
    def from_backend(cls, value: Any) -> "ResourceStatus":
        """Map a backend status string; anything but ACTIVE is still pending."""
        if str(value).upper() == cls.ACTIVE.value:
            return cls.ACTIVE
        return cls.PENDING


class ImportStage(str, Enum):
    """Stages of one import request."""

    VALIDATING = "validating"
    CAPACITY_RAISING = "capacity_raising"
    CREATING_PARENTS = "creating_parents"
    CREATING_ITEMS = "creating_items"
    CAPACITY_RESTORING = "capacity_restoring"
    DONE = "done"
    FAILED = "failed"


# ========== Request Models ==========


class FolderSpec(BaseModel):
    """A folder to create."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Folder name (usually encrypted by the client)")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Folder name must not be empty")
        return v


class ItemSpec(BaseModel):
    """A cipher to create. Unknown payload fields are kept as-is."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: CipherType = Field(CipherType.LOGIN, description="Cipher type")
    name: str = Field(..., description="Cipher name")
    notes: Optional[str] = None
    favorite: bool = False
    login: Optional[dict[str, Any]] = None
    card: Optional[dict[str, Any]] = None
    identity: Optional[dict[str, Any]] = None
    secure_note: Optional[dict[str, Any]] = Field(None, alias="secureNote")
    custom_fields: Optional[list[dict[str, Any]]] = Field(None, alias="fields")


class Relationship(BaseModel):
    """Positional link from a cipher (``key``) to a folder (``value``)."""

    key: int = Field(..., ge=0, description="Index into the ciphers array")
    value: int = Field(..., ge=0, description="Index into the folders array")


class ImportBatch(BaseModel):
    """One bulk-import request."""

    model_config = ConfigDict(populate_by_name=True)

    folders: list[FolderSpec] = Field(default_factory=list)
    ciphers: list[ItemSpec] = Field(default_factory=list)
    folder_relationships: list[Relationship] = Field(
        default_factory=list, alias="folderRelationships"
    )

    @classmethod
    def from_body(cls, body: Any) -> "ImportBatch":
        """
        Build a batch from a decoded, key-normalized request body.

        Args:
            body: Request body after ``normalize_keys``

        Returns:
            Validated ImportBatch

        Raises:
            ValidationError: If a section is missing, not an array, or malformed
        """
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        if "ciphers" not in body and "items" in body:
            body = {**body, "ciphers": body["items"]}

        for key, label in (
            ("folders", "Folders"),
            ("ciphers", "Ciphers"),
            ("folderRelationships", "FolderRelationships"),
        ):
            if not isinstance(body.get(key), list):
                raise ValidationError(f"{label} is not an array", field=key)

        try:
            return cls.model_validate(body)
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValidationError(
                f"Invalid import data at {location}: {first['msg']}",
                field=location,
                error_count=e.error_count(),
            ) from e


def normalize_keys(value: Any) -> Any:
    """
    Lower the first letter of every object key, recursively.

    Clients send either ``Folders``/``FolderRelationships`` or the camelCase
    form; both map to the same batch.
    """
    if isinstance(value, dict):
        return {
            (k[:1].lower() + k[1:] if isinstance(k, str) else k): normalize_keys(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [normalize_keys(v) for v in value]
    return value


def build_folder_document(spec: FolderSpec, owner_id: str) -> dict[str, Any]:
    """Build the stored folder document."""
    return {
        "name": spec.name,
        "userUuid": owner_id,
    }


def build_cipher_document(
    spec: ItemSpec, owner_id: str, folder_id: Optional[str] = None
) -> dict[str, Any]:
    """
    Build the stored cipher document.

    Args:
        spec: Validated cipher payload
        owner_id: Owning user's identifier
        folder_id: Identifier of the created parent folder, if any

    Returns:
        Document ready for ``RecordStore.create``
    """
    data = spec.model_dump(
        by_alias=True, exclude={"type", "favorite"}, exclude_none=True
    )
    return {
        "userUuid": owner_id,
        "folderUuid": folder_id,
        "organizationUuid": None,
        "type": int(spec.type),
        "favorite": spec.favorite,
        "data": data,
    }


# ========== Engine Bookkeeping ==========


@dataclass(frozen=True)
class CreationOutcome:
    """
    Result of one creation attempt.

    ``key`` is the record's position in the batch, so a spec is counted
    once no matter how many rounds it takes.
    """

    key: int
    spec: Any
    record: Optional[dict[str, Any]] = None
    cause: Optional[CreationError] = None

    @property
    def success(self) -> bool:
        return self.cause is None

    @property
    def retryable(self) -> bool:
        return self.cause is not None and self.cause.retryable

    @classmethod
    def succeeded(cls, key: int, spec: Any, record: dict[str, Any]) -> "CreationOutcome":
        return cls(key=key, spec=spec, record=record)

    @classmethod
    def failed(cls, key: int, spec: Any, cause: CreationError) -> "CreationOutcome":
        return cls(key=key, spec=spec, cause=cause)


@dataclass(frozen=True)
class RetryRound:
    """
    Bookkeeping for one round of the retry orchestrator.

    Attributes:
        number: 1-based round number (0 before the first round)
        pending: Keys still awaiting a successful creation
        succeeded: Records created so far
        failed_attempts: Failed attempts so far, across rounds
    """

    number: int = 0
    pending: tuple[int, ...] = ()
    succeeded: int = 0
    failed_attempts: int = 0

    def advance(self, outcomes: Iterable[CreationOutcome]) -> "RetryRound":
        """Return the round that follows once ``outcomes`` are known."""
        outcomes = list(outcomes)
        done = {o.key for o in outcomes if o.success}
        return replace(
            self,
            number=self.number + 1,
            pending=tuple(k for k in self.pending if k not in done),
            succeeded=self.succeeded + len(done),
            failed_attempts=self.failed_attempts + sum(1 for o in outcomes if not o.success),
        )


@dataclass
class CapacityState:
    """Throughput state of one resource while its capacity is changed."""

    resource: str
    write_units: int
    status: ResourceStatus = ResourceStatus.PENDING
    transitions: list[dict[str, Any]] = field(default_factory=list)

    def observe(self, status: ResourceStatus) -> None:
        """Record an observed status, keeping a log of transitions."""
        if status != self.status:
            self.transitions.append(
                {
                    "timestamp": datetime.now().isoformat(),
                    "from_status": self.status.value,
                    "to_status": status.value,
                    "write_units": self.write_units,
                }
            )
        self.status = status

    @property
    def is_active(self) -> bool:
        return self.status == ResourceStatus.ACTIVE


@dataclass(frozen=True)
class ImportReport:
    """Final, immutable summary of one import."""

    lines: tuple[str, ...]
    folders_total: int
    folders_created: int
    folder_rounds: int
    ciphers_total: int
    ciphers_created: int
    cipher_rounds: int
    folder_ids: tuple[Optional[str], ...] = ()
    cipher_ids: tuple[Optional[str], ...] = ()

    @property
    def unresolved_folders(self) -> int:
        return self.folders_total - self.folders_created

    @property
    def unresolved_ciphers(self) -> int:
        return self.ciphers_total - self.ciphers_created

    @property
    def complete(self) -> bool:
        return self.unresolved_folders == 0 and self.unresolved_ciphers == 0

    @property
    def summary(self) -> str:
        """Line-oriented summary returned to the client."""
        return " ".join(self.lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "complete": self.complete,
            "folders": {
                "total": self.folders_total,
                "created": self.folders_created,
                "unresolved": self.unresolved_folders,
                "rounds": self.folder_rounds,
            },
            "ciphers": {
                "total": self.ciphers_total,
                "created": self.ciphers_created,
                "unresolved": self.unresolved_ciphers,
                "rounds": self.cipher_rounds,
            },
            "lines": list(self.lines),
        }
