"""Table-level options for a model definition."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from shadowbase.domain.entities.attribute import IndexSpec


@dataclass(frozen=True)
class ModelOptions:
    """Table-level options for a model.

    Attributes:
        table_name: Physical table name; derived from the model name when None.
        timestamps: Maintain created/updated timestamp attributes.
        paranoid: Soft-delete by stamping the deleted timestamp (needs timestamps).
        created_at: Name of the creation timestamp attribute.
        updated_at: Name of the update timestamp attribute.
        deleted_at: Name of the soft-delete timestamp attribute.
        indexes: Table indexes.
        hooks: Hook callbacks registered on the model at definition time,
               keyed by HookEvent.
        scopes: Named query presets.
        default_scope: Query preset applied to every read.
        instance_methods: Methods bound onto every instance.
        comment: Table comment.
        schema: Database schema the table lives in.
        extra: Application-defined options, carried along untouched.
    """

    table_name: Optional[str] = None
    timestamps: bool = True
    paranoid: bool = False
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    deleted_at: str = "deleted_at"
    indexes: tuple[IndexSpec, ...] = ()
    hooks: Mapping[Any, Callable] = field(default_factory=lambda: MappingProxyType({}))
    scopes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    default_scope: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    instance_methods: Mapping[str, Callable] = field(
        default_factory=lambda: MappingProxyType({})
    )
    comment: Optional[str] = None
    schema: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_paranoid(self) -> bool:
        """Soft delete is only active together with timestamps."""
        return self.timestamps and self.paranoid
