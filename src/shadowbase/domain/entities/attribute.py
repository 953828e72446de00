"""Attribute and index descriptors for model definitions.

A model's shape is an ordered mapping of attribute name to AttributeSpec.
Descriptors are frozen so that schema derivation can be a pure function:
it builds new descriptors with ``dataclasses.replace`` instead of editing
the live model's.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeEngine

# Plain timestamp type used for every bookkeeping timestamp
TIMESTAMP_TYPE = DateTime(timezone=True)


class _Now:
    """Sentinel default meaning "the current time when the row is written"."""

    _instance: Optional["_Now"] = None

    def __new__(cls) -> "_Now":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOW"

    def __reduce__(self) -> str:
        return "NOW"

    def __deepcopy__(self, memo: dict) -> "_Now":
        return self


NOW = _Now()


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def resolve_default(default: Any) -> Any:
    """Resolve an attribute default to a concrete value at write time."""
    if default is NOW:
        return utcnow()
    if callable(default):
        return default()
    return default


@dataclass(frozen=True)
class ForeignKeyRef:
    """Target of a foreign key: another model's name and attribute."""

    model: str
    key: str = "id"


@dataclass(frozen=True)
class AttributeSpec:
    """Definition of one model attribute.

    Attributes:
        name: Attribute name (the key under which it is declared).
        type: SQLAlchemy column type.
        primary_key: Part of the primary key.
        autoincrement: Database-generated integer key.
        unique: Single-column uniqueness constraint.
        nullable: Whether NULL is allowed.
        default: Value, callable, or NOW, applied on create when unset.
        field: Column name, when it differs from ``name``.
        comment: Column comment.
        get: Custom read transform bound to instances.
        set: Custom write transform bound to instances.
        references: Foreign key target.
        on_delete: Referential action for ``references``.
        on_update: Referential action for ``references``.
        index: Single-column non-unique index.
    """

    name: str
    type: Optional[TypeEngine]
    primary_key: bool = False
    autoincrement: bool = False
    unique: bool = False
    nullable: bool = True
    default: Any = None
    field: Optional[str] = None
    comment: Optional[str] = None
    get: Optional[Callable[[Any], Any]] = None
    set: Optional[Callable[[Any], Any]] = None
    references: Optional[ForeignKeyRef] = None
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    index: bool = False

    @property
    def column_name(self) -> str:
        """Physical column name."""
        return self.field or self.name


@dataclass(frozen=True)
class IndexSpec:
    """Definition of a table index.

    Attributes:
        fields: Attribute names covered by the index, in order.
        name: Index name; generated from table and fields when omitted.
        unique: Unique index.
        type: Dialect index type (e.g. "UNIQUE", "FULLTEXT").
    """

    fields: tuple[str, ...]
    name: Optional[str] = None
    unique: bool = False
    type: Optional[str] = None

    @property
    def is_unique(self) -> bool:
        """Whether the index enforces uniqueness, by flag or by type."""
        return self.unique or (self.type or "").upper() == "UNIQUE"


def default_index_name(table_name: str, fields: tuple[str, ...]) -> str:
    """Generated name for an unnamed index."""
    return "_".join((table_name, *fields))
