"""
Folder Dependency Resolver.

Links each cipher to the *created* folder it references by position, so a
cipher is written with its parent's backend-assigned identifier.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from vault_import.models.schemas import Relationship
from vault_import.utils.exceptions import CreationError, UnresolvedParentError, ValidationError

logger = logging.getLogger(__name__)


class DependencyResolver:
    """
    Resolves cipher → folder references within one batch.

    Each folder index owns a future that is settled once that folder's
    creation succeeds or is given up on. A cipher waits only for its own
    folder, never for the whole folder batch.

    Example:
        >>> resolver = DependencyResolver(batch.folder_relationships, 3, 5)
        >>> resolver.validate()
        >>> resolver.parent_created(1, {"uuid": "f-1"})
        >>> await resolver.resolve(2)
        'f-1'
    """

    def __init__(
        self,
        relationships: Sequence[Relationship],
        parent_count: int,
        item_count: int,
        id_field: str = "uuid",
    ):
        self.relationships = list(relationships)
        self.parent_count = parent_count
        self.item_count = item_count
        self.id_field = id_field

        self._parent_by_item: Dict[int, int] = {}
        self._parents: Dict[int, asyncio.Future] = {}

    def validate(self) -> None:
        """
        Check every relationship before any write happens.

        Raises:
            ValidationError: On a folder or cipher index out of range, or a
                cipher linked to more than one folder
        """
        parent_by_item: Dict[int, int] = {}

        for relationship in self.relationships:
            item_index, parent_index = relationship.key, relationship.value

            if not 0 <= parent_index < self.parent_count:
                raise ValidationError(
                    "Folder defined in folder relationships was missing",
                    field="folderRelationships",
                    item_index=item_index,
                    parent_index=parent_index,
                    folder_count=self.parent_count,
                )

            if not 0 <= item_index < self.item_count:
                raise ValidationError(
                    "Cipher defined in folder relationships was missing",
                    field="folderRelationships",
                    item_index=item_index,
                    cipher_count=self.item_count,
                )

            if item_index in parent_by_item:
                raise ValidationError(
                    "Cipher assigned to more than one folder",
                    field="folderRelationships",
                    item_index=item_index,
                )

            parent_by_item[item_index] = parent_index

        self._parent_by_item = parent_by_item
        logger.debug(f"Validated {len(parent_by_item)} folder relationship(s)")

    def parent_index_for(self, item_index: int) -> Optional[int]:
        """Folder index a cipher belongs to, or None."""
        return self._parent_by_item.get(item_index)

    def _future(self, parent_index: int) -> asyncio.Future:
        future = self._parents.get(parent_index)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            self._parents[parent_index] = future
        return future

    def parent_created(self, parent_index: int, record: Dict[str, Any]) -> None:
        """Record the created folder; wakes every cipher waiting on it."""
        future = self._future(parent_index)
        if not future.done():
            future.set_result(record)

    def parent_failed(self, parent_index: int, cause: Optional[CreationError] = None) -> None:
        """Give up on a folder; ciphers referencing it fail without retry."""
        future = self._future(parent_index)
        if not future.done():
            future.set_result(None)
            logger.warning(
                f"Folder {parent_index} unresolved, dependent ciphers will not be created",
                extra={"parent_index": parent_index, "cause": str(cause) if cause else None},
            )

    async def resolve(self, item_index: int) -> Optional[str]:
        """
        Identifier of the folder a cipher must be created in.

        Returns:
            None when the cipher has no folder, otherwise the folder's id

        Raises:
            UnresolvedParentError: If the referenced folder was never created
        """
        parent_index = self.parent_index_for(item_index)
        if parent_index is None:
            return None

        record = await self._future(parent_index)
        if record is None:
            raise UnresolvedParentError(item_index=item_index, parent_index=parent_index)
        return record[self.id_field]
