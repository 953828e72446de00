"""ShadowBase - append-only history tracking for async SQLAlchemy models.

Every create, update, destroy, restore, bulk update and bulk destroy on a
tracked model writes a snapshot row into a parallel history table.
"""

__version__ = "0.1.0"

from shadowbase.core.hooks import HookEvent, HookRegistry
from shadowbase.domain.entities import (
    NOW,
    AssociationKind,
    AttributeSpec,
    ForeignKeyRef,
    HistoryOptions,
    IndexSpec,
    ModelOptions,
    MutationOptions,
)
from shadowbase.domain.exceptions import (
    HistoryConfigError,
    ModelDefinitionError,
    ReadOnlyViolation,
    SchemaDerivationError,
    ShadowBaseError,
    SnapshotWriteFailure,
)
from shadowbase.domain.services import derive_history_schema
from shadowbase.infrastructure.history import MutationInterceptor, attach_history
from shadowbase.infrastructure.persistence import Instance, Model, ModelRegistry

__all__ = [
    "NOW",
    "AssociationKind",
    "AttributeSpec",
    "ForeignKeyRef",
    "HistoryConfigError",
    "HistoryOptions",
    "HookEvent",
    "HookRegistry",
    "IndexSpec",
    "Instance",
    "Model",
    "ModelDefinitionError",
    "ModelOptions",
    "ModelRegistry",
    "MutationInterceptor",
    "MutationOptions",
    "ReadOnlyViolation",
    "SchemaDerivationError",
    "ShadowBaseError",
    "SnapshotWriteFailure",
    "__version__",
    "attach_history",
    "derive_history_schema",
]
