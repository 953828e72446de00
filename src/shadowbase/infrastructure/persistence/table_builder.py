"""Table builder for materializing model definitions.

Turns a model's attribute descriptors and index list into a SQLAlchemy
``Table`` registered on the model registry's metadata. DDL is left to
``MetaData.create_all``.
"""

import re
from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, Index, MetaData, Table

from shadowbase.core.logging import get_logger
from shadowbase.domain.entities.attribute import AttributeSpec, default_index_name
from shadowbase.domain.exceptions import ModelDefinitionError

if TYPE_CHECKING:
    from shadowbase.infrastructure.persistence.model import Model

logger = get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class TableBuilder:
    """Builds SQLAlchemy tables from model definitions."""

    @classmethod
    def generate_table_name(cls, model_name: str) -> str:
        """Generate a table name from a model name.

        Args:
            model_name: The model name, usually CamelCase.

        Returns:
            The snake_case table name.
        """
        return _CAMEL_BOUNDARY.sub("_", model_name).lower()

    @classmethod
    def build_column(cls, model: "Model", attribute: AttributeSpec) -> Column:
        """Build the column for a single attribute.

        Args:
            model: The owning model (used to resolve foreign keys).
            attribute: The attribute descriptor.

        Returns:
            The SQLAlchemy column.
        """
        args: list = []
        if attribute.references is not None:
            target = model.registry.get(attribute.references.model)
            target_attribute = target.attributes.get(attribute.references.key)
            if target_attribute is None:
                raise ModelDefinitionError(
                    f"{model.name}.{attribute.name} references unknown attribute "
                    f"{target.name}.{attribute.references.key}"
                )
            args.append(
                ForeignKey(
                    f"{target.table_name}.{target_attribute.column_name}",
                    ondelete=attribute.on_delete,
                    onupdate=attribute.on_update,
                )
            )

        if attribute.primary_key:
            autoincrement = attribute.autoincrement
        else:
            autoincrement = False

        return Column(
            attribute.column_name,
            attribute.type,
            *args,
            key=attribute.name,
            primary_key=attribute.primary_key,
            autoincrement=autoincrement,
            unique=attribute.unique or None,
            nullable=False if attribute.primary_key else attribute.nullable,
            index=attribute.index or None,
            comment=attribute.comment,
        )

    @classmethod
    def build_table(cls, model: "Model", metadata: MetaData) -> Table:
        """Build the table for a model and register it on ``metadata``.

        Args:
            model: The model to materialize.
            metadata: Metadata collection the table joins.

        Returns:
            The SQLAlchemy table.
        """
        columns = [cls.build_column(model, attribute) for attribute in model.attributes.values()]
        table = Table(
            model.table_name,
            metadata,
            *columns,
            comment=model.options.comment,
            schema=model.options.schema,
        )

        for spec in model.options.indexes:
            missing = [name for name in spec.fields if name not in model.attributes]
            if missing:
                raise ModelDefinitionError(
                    f"Index on {model.name} names unknown attributes: {', '.join(missing)}"
                )
            Index(
                spec.name or default_index_name(model.table_name, spec.fields),
                *(table.c[name] for name in spec.fields),
                unique=spec.is_unique,
            )

        logger.debug(
            "Table built",
            model=model.name,
            table_name=model.table_name,
            column_count=len(columns),
            index_count=len(model.options.indexes),
        )
        return table
