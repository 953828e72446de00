"""Domain services: pure logic with no database access."""

from shadowbase.domain.services.schema_deriver import (
    ARCHIVED_AT,
    HISTORY_KEY,
    HistorySchema,
    derive_history_schema,
    history_model_name,
    history_own_attributes,
)

__all__ = [
    "ARCHIVED_AT",
    "HISTORY_KEY",
    "HistorySchema",
    "derive_history_schema",
    "history_model_name",
    "history_own_attributes",
]
