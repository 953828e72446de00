"""Domain entities for ShadowBase.

Entities are plain dataclasses describing models, their attributes,
associations, and the context of a write in progress.
"""

from shadowbase.domain.entities.association import (
    Association,
    AssociationKind,
    AssociationOptions,
    ReferentialAction,
)
from shadowbase.domain.entities.attribute import (
    NOW,
    TIMESTAMP_TYPE,
    AttributeSpec,
    ForeignKeyRef,
    IndexSpec,
    default_index_name,
    resolve_default,
    utcnow,
)
from shadowbase.domain.entities.history_options import HistoryOptions
from shadowbase.domain.entities.model_options import ModelOptions
from shadowbase.domain.entities.mutation import MutationOptions, SyncOptions, Where

__all__ = [
    "Association",
    "AssociationKind",
    "AssociationOptions",
    "AttributeSpec",
    "ForeignKeyRef",
    "HistoryOptions",
    "IndexSpec",
    "ModelOptions",
    "MutationOptions",
    "NOW",
    "ReferentialAction",
    "TIMESTAMP_TYPE",
    "SyncOptions",
    "Where",
    "default_index_name",
    "resolve_default",
    "utcnow",
]
