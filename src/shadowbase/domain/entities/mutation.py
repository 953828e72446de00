"""Mutation context passed to lifecycle hooks.

Contains:
- MutationOptions: the ambient context of one write in progress
- SyncOptions: the context of one schema materialization run
- Where: the equality filter used by bulk writes and reads
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection

# Attribute name -> value, or a list/tuple of values for IN
Where = Mapping[str, Any]


@dataclass
class MutationOptions:
    """Context of one write operation, shared by all hooks it fires.

    The write pipeline owns this object. Hooks treat it as read-only,
    except that history tracking sets ``delete_operation`` so a shared
    snapshot handler can tell destroys from updates.

    Attributes:
        transaction: Connection the write runs on, inside its transaction.
        where: Row filter for bulk operations.
        values: Values being written by a bulk update.
        individual_hooks: Bulk operation also fires per-row hooks.
        delete_operation: Set by history hooks for destroys.
        paranoid: Respect soft deletes when reading.
        fields: Attribute names touched by the write.
    """

    transaction: Optional["AsyncConnection"] = None
    where: Optional[Where] = None
    values: Optional[dict[str, Any]] = None
    individual_hooks: bool = False
    delete_operation: bool = False
    paranoid: bool = True
    fields: list[str] = field(default_factory=list)


@dataclass
class SyncOptions:
    """Context of one schema materialization run.

    Attributes:
        force: Drop existing tables before creating them.
    """

    force: bool = False
