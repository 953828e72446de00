"""Association (relationship) declarations between models."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from shadowbase.infrastructure.persistence.model import Model


class AssociationKind(str, Enum):
    """Supported relationship kinds."""

    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    BELONGS_TO_MANY = "belongs_to_many"


class ReferentialAction(str, Enum):
    """Foreign key actions."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


@dataclass(frozen=True)
class AssociationOptions:
    """Options of one association.

    Attributes:
        foreign_key: Key attribute name; defaults are derived per kind.
        alias: Name the association is registered under ("as").
        through: Junction model name for BELONGS_TO_MANY.
        other_key: Junction attribute pointing at the target.
        on_delete: Referential action on delete.
        on_update: Referential action on update.
        constraints: Emit a database foreign key constraint.
    """

    foreign_key: Optional[str] = None
    alias: Optional[str] = None
    through: Optional[str] = None
    other_key: Optional[str] = None
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    constraints: bool = True


@dataclass(frozen=True)
class Association:
    """A declared relationship from ``source`` to ``target``."""

    kind: AssociationKind
    source: "Model"
    target: "Model"
    options: AssociationOptions

    @property
    def alias(self) -> str:
        """Name the association is registered under."""
        return self.options.alias or self.target.name
