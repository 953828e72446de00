"""Model registry - the explicit owner of every defined model.

The registry holds model definitions by name, the SQLAlchemy metadata
their tables are built on, and the engine writes run against. Models are
defined through it, and ``sync`` materializes their tables.
"""

from typing import Iterator, Mapping, Optional

from sqlalchemy import Integer, MetaData
from sqlalchemy.ext.asyncio import AsyncEngine

from shadowbase.core.hooks import HookEvent
from shadowbase.core.logging import get_logger
from shadowbase.domain.entities import NOW, TIMESTAMP_TYPE, AttributeSpec, ModelOptions, SyncOptions
from shadowbase.domain.exceptions import ModelDefinitionError
from shadowbase.infrastructure.persistence.model import Model

logger = get_logger(__name__)


class ModelRegistry:
    """Registry of models bound to one engine.

    Example:
        registry = ModelRegistry(engine)
        post = registry.define(
            "Post",
            {"title": AttributeSpec(name="title", type=String(200))},
        )
        await registry.sync()
        await post.create({"title": "Hello"})
    """

    def __init__(self, engine: AsyncEngine, metadata: Optional[MetaData] = None) -> None:
        self.engine = engine
        self.metadata = metadata or MetaData()
        self.models: dict[str, Model] = {}

    def __contains__(self, name: object) -> bool:
        return name in self.models

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self.models.values()))

    def define(
        self,
        name: str,
        attributes: Mapping[str, AttributeSpec],
        options: Optional[ModelOptions] = None,
    ) -> Model:
        """Define a model.

        Adds an ``id`` primary key when none is declared, and the
        timestamp attributes when ``options.timestamps`` is on.

        Raises:
            ModelDefinitionError: If the name is taken or an attribute is
                declared under a key other than its name.
        """
        if name in self.models:
            raise ModelDefinitionError(f"Model '{name}' is already defined")
        options = options or ModelOptions()

        for key, attribute in attributes.items():
            if key != attribute.name:
                raise ModelDefinitionError(
                    f"{name}: attribute declared as '{key}' is named '{attribute.name}'"
                )

        model = Model(self, name, self._with_bookkeeping(attributes, options), options)
        self.models[name] = model

        logger.debug(
            "Model defined",
            model=name,
            table_name=model.table_name,
            attribute_count=len(model.attributes),
        )
        return model

    def register(self, model: Model) -> Model:
        """Insert a model under its own name (idempotent)."""
        self.models[model.name] = model
        return model

    def get(self, name: str) -> Model:
        """Look up a model by name."""
        try:
            return self.models[name]
        except KeyError:
            raise ModelDefinitionError(f"Model '{name}' is not defined") from None

    async def sync(self, force: bool = False) -> None:
        """Materialize every model's table.

        Fires BEFORE_SYNC on every model first (hooks may still declare
        associations), then creates all tables in one transaction, then
        fires AFTER_SYNC.

        Args:
            force: Drop the tables before creating them.
        """
        options = SyncOptions(force=force)

        for model in self:
            await model.hooks.trigger(HookEvent.BEFORE_SYNC, model, options)

        tables = [model.table for model in self]
        async with self.engine.begin() as conn:
            if force:
                await conn.run_sync(self.metadata.drop_all, tables=tables)
            await conn.run_sync(self.metadata.create_all, tables=tables)

        logger.info("Models synced", model_count=len(tables), force=force)

        for model in self:
            await model.hooks.trigger(HookEvent.AFTER_SYNC, model, options)

    async def drop_all(self) -> None:
        """Drop every model's table."""
        tables = [model.table for model in self]
        async with self.engine.begin() as conn:
            await conn.run_sync(self.metadata.drop_all, tables=tables)
        logger.warning("Model tables dropped", model_count=len(tables))

    @staticmethod
    def _with_bookkeeping(
        attributes: Mapping[str, AttributeSpec], options: ModelOptions
    ) -> dict[str, AttributeSpec]:
        result: dict[str, AttributeSpec] = {}
        if not any(attribute.primary_key for attribute in attributes.values()):
            result["id"] = AttributeSpec(
                name="id", type=Integer(), primary_key=True, autoincrement=True, nullable=False
            )
        result.update(attributes)

        if options.timestamps:
            for name in (options.created_at, options.updated_at):
                result.setdefault(
                    name, AttributeSpec(name=name, type=TIMESTAMP_TYPE, nullable=False, default=NOW)
                )
            if options.paranoid:
                result.setdefault(
                    options.deleted_at, AttributeSpec(name=options.deleted_at, type=TIMESTAMP_TYPE)
                )
        return result
