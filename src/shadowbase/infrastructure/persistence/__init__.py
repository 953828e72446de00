"""Persistence host: model definitions, tables, and the write pipeline."""

from shadowbase.infrastructure.persistence.database import DatabaseManager, get_db_manager
from shadowbase.infrastructure.persistence.instance import Instance
from shadowbase.infrastructure.persistence.model import Model
from shadowbase.infrastructure.persistence.model_registry import ModelRegistry
from shadowbase.infrastructure.persistence.table_builder import TableBuilder

__all__ = [
    "DatabaseManager",
    "Instance",
    "Model",
    "ModelRegistry",
    "TableBuilder",
    "get_db_manager",
]
