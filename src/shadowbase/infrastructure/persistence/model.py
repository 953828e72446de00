"""Model: a table definition plus its hook-instrumented write pipeline.

Every write goes through the same shape:

    open (or join) a transaction
      -> trigger BEFORE_* hooks
      -> execute the statement
      -> trigger AFTER_* hooks
    commit (if the pipeline opened the transaction)
      -> await work hooks deferred until the commit

The transaction the write runs on is exposed to hooks as
``MutationOptions.transaction``; hook failures propagate and roll it back.
"""

from contextlib import asynccontextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Iterable, Mapping, Optional

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql.elements import ColumnElement

from shadowbase.core.hooks import HookEvent, HookRegistry
from shadowbase.core.logging import get_logger
from shadowbase.domain.entities import (
    Association,
    AssociationKind,
    AssociationOptions,
    AttributeSpec,
    ForeignKeyRef,
    ModelOptions,
    MutationOptions,
    Where,
    resolve_default,
    utcnow,
)
from shadowbase.domain.exceptions import ModelDefinitionError
from shadowbase.infrastructure.persistence.after_commit import hold_commit_queue
from shadowbase.infrastructure.persistence.instance import Instance
from shadowbase.infrastructure.persistence.table_builder import TableBuilder

if TYPE_CHECKING:
    from shadowbase.infrastructure.history.interceptor import MutationInterceptor
    from shadowbase.infrastructure.persistence.model_registry import ModelRegistry

logger = get_logger(__name__)


class Model:
    """A defined model bound to a registry.

    Attributes:
        registry: Registry the model was defined through.
        name: Model name (unique within the registry).
        attributes: Ordered attribute descriptors.
        options: Table-level options.
        hooks: The model's hook registry.
        associations: Declared associations by alias.
        primary_keys: Attributes acting as the model's key for associations.
        primary_key_field: First of ``primary_keys``.
        origin_model: For a history model, the live model it shadows.
        history_model: For a tracked live model, its history model.
        history_tracker: For a tracked live model, its interceptor.
    """

    def __init__(
        self,
        registry: "ModelRegistry",
        name: str,
        attributes: Mapping[str, AttributeSpec],
        options: ModelOptions,
    ) -> None:
        self.registry = registry
        self.name = name
        self.attributes: dict[str, AttributeSpec] = dict(attributes)
        self.options = options
        self.hooks = HookRegistry()
        self.associations: dict[str, Association] = {}
        self.primary_keys: dict[str, AttributeSpec] = {
            key: attribute for key, attribute in self.attributes.items() if attribute.primary_key
        }
        self.primary_key_field: Optional[str] = next(iter(self.primary_keys), None)
        self.origin_model: Optional["Model"] = None
        self.history_model: Optional["Model"] = None
        self.history_tracker: Optional["MutationInterceptor"] = None
        self._table: Optional[Table] = None

        for event, callback in options.hooks.items():
            self.hooks.register(HookEvent(event), callback)

    def __repr__(self) -> str:
        return f"<Model {self.name}>"

    # =========================================================================
    # Schema
    # =========================================================================

    @property
    def table_name(self) -> str:
        """Physical table name."""
        return self.options.table_name or TableBuilder.generate_table_name(self.name)

    @property
    def table(self) -> Table:
        """SQLAlchemy table, built on first use."""
        if self._table is None:
            self._table = TableBuilder.build_table(self, self.registry.metadata)
        return self._table

    def add_attribute(self, attribute: AttributeSpec) -> None:
        """Add or replace an attribute; the table is rebuilt on next use."""
        self.attributes[attribute.name] = attribute
        if attribute.primary_key and attribute.name not in self.primary_keys:
            self.primary_keys[attribute.name] = attribute
            self.primary_key_field = self.primary_key_field or attribute.name
        self._invalidate_table()

    def _invalidate_table(self) -> None:
        if self._table is not None:
            self.registry.metadata.remove(self._table)
            self._table = None

    # =========================================================================
    # Associations
    # =========================================================================

    def belongs_to(self, target: "Model", **options: Any) -> Association:
        """Declare that this model holds a key pointing at ``target``."""
        return self._associate(AssociationKind.BELONGS_TO, target, AssociationOptions(**options))

    def has_one(self, target: "Model", **options: Any) -> Association:
        """Declare that ``target`` holds a key pointing at one row of this model."""
        return self._associate(AssociationKind.HAS_ONE, target, AssociationOptions(**options))

    def has_many(self, target: "Model", **options: Any) -> Association:
        """Declare that ``target`` holds a key pointing at this model."""
        return self._associate(AssociationKind.HAS_MANY, target, AssociationOptions(**options))

    def belongs_to_many(self, target: "Model", **options: Any) -> Association:
        """Declare a many-to-many relationship through a junction model."""
        return self._associate(
            AssociationKind.BELONGS_TO_MANY, target, AssociationOptions(**options)
        )

    def associate(
        self, kind: AssociationKind, target: "Model", options: AssociationOptions
    ) -> Association:
        """Declare an association of any kind from prepared options."""
        return self._associate(kind, target, options)

    def _associate(
        self, kind: AssociationKind, target: "Model", options: AssociationOptions
    ) -> Association:
        if kind is AssociationKind.BELONGS_TO:
            options = self._with_default_keys(options, target)
            self._add_foreign_key(self, options.foreign_key, target, options)
        elif kind in (AssociationKind.HAS_ONE, AssociationKind.HAS_MANY):
            options = self._with_default_keys(options, self)
            self._add_foreign_key(target, options.foreign_key, self, options)
        else:
            if not options.through:
                raise ModelDefinitionError(
                    f"{self.name}.belongs_to_many({target.name}) requires 'through'"
                )
            options = self._with_default_keys(options, self)
            if options.other_key is None:
                options = replace(options, other_key=_default_foreign_key(target))
            self._define_junction(target, options)

        association = Association(kind=kind, source=self, target=target, options=options)
        self.associations[association.alias] = association

        logger.debug(
            "Association declared",
            model=self.name,
            kind=kind.value,
            target=target.name,
            alias=association.alias,
            foreign_key=options.foreign_key,
        )
        return association

    @staticmethod
    def _with_default_keys(options: AssociationOptions, key_owner: "Model") -> AssociationOptions:
        if options.foreign_key is None:
            options = replace(options, foreign_key=_default_foreign_key(key_owner))
        return options

    @staticmethod
    def _add_foreign_key(
        holder: "Model", foreign_key: str, target: "Model", options: AssociationOptions
    ) -> None:
        target_key = _require_primary_key(target)
        existing = holder.attributes.get(foreign_key)
        if not options.constraints:
            if existing is None:
                holder.add_attribute(
                    AttributeSpec(name=foreign_key, type=target.primary_keys[target_key].type)
                )
            return

        reference = dict(
            references=ForeignKeyRef(model=target.name, key=target_key),
            on_delete=options.on_delete,
            on_update=options.on_update,
        )
        if existing is None:
            holder.add_attribute(
                AttributeSpec(
                    name=foreign_key, type=target.primary_keys[target_key].type, **reference
                )
            )
        else:
            holder.add_attribute(replace(existing, **reference))

    def _define_junction(self, target: "Model", options: AssociationOptions) -> None:
        if options.through in self.registry:
            return

        def key_attribute(name: str, owner: "Model") -> AttributeSpec:
            owner_key = _require_primary_key(owner)
            attribute = AttributeSpec(
                name=name,
                type=owner.primary_keys[owner_key].type,
                primary_key=True,
                nullable=False,
            )
            if options.constraints:
                attribute = replace(
                    attribute,
                    references=ForeignKeyRef(model=owner.name, key=owner_key),
                    on_delete=options.on_delete,
                    on_update=options.on_update,
                )
            return attribute

        self.registry.define(
            options.through,
            {
                options.foreign_key: key_attribute(options.foreign_key, self),
                options.other_key: key_attribute(options.other_key, target),
            },
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_all(
        self,
        where: Optional[Where] = None,
        transaction: Optional[AsyncConnection] = None,
        paranoid: bool = True,
        scope: Optional[str] = None,
    ) -> list[Instance]:
        """Select rows matching ``where``.

        Args:
            where: Equality filter by attribute name (lists mean IN).
            transaction: Connection to read on; a new one when None.
            paranoid: Exclude soft-deleted rows of paranoid models.
            scope: Named scope to apply instead of the default scope.

        Returns:
            Persisted instances, ordered by primary key.
        """
        stmt = select(self.table).where(*self._where_clause(where, paranoid, scope))
        stmt = stmt.order_by(*self.table.primary_key.columns)

        async with self._connection(transaction) as conn:
            result = await conn.execute(stmt)
            rows = result.fetchall()

        return [self._instance_from_row(row) for row in rows]

    async def find_by_pk(
        self, value: Any, transaction: Optional[AsyncConnection] = None, paranoid: bool = True
    ) -> Optional[Instance]:
        """Fetch one row by its single-column primary key."""
        keys = [attribute.name for attribute in self.attributes.values() if attribute.primary_key]
        if len(keys) != 1:
            raise ModelDefinitionError(f"{self.name} does not have a single-column primary key")
        rows = await self.find_all({keys[0]: value}, transaction=transaction, paranoid=paranoid)
        return rows[0] if rows else None

    async def count(
        self, where: Optional[Where] = None, transaction: Optional[AsyncConnection] = None
    ) -> int:
        """Count rows matching ``where`` (soft-deleted rows excluded)."""
        return len(await self.find_all(where, transaction=transaction))

    # =========================================================================
    # Writes
    # =========================================================================

    def build(self, values: Mapping[str, Any]) -> Instance:
        """Build an unsaved instance, applying attribute defaults."""
        data: dict[str, Any] = {}
        for name, attribute in self.attributes.items():
            if name in values:
                data[name] = attribute.set(values[name]) if attribute.set else values[name]
            elif attribute.default is not None:
                data[name] = resolve_default(attribute.default)
        return Instance(self, data)

    async def create(
        self, values: Mapping[str, Any], transaction: Optional[AsyncConnection] = None
    ) -> Instance:
        """Insert one row.

        Keys that are not attributes of the model are ignored.
        """
        instance = self.build(values)
        options = MutationOptions(transaction=transaction, fields=list(instance.data_values))

        async with self._transaction(options) as conn:
            await self.hooks.trigger(HookEvent.BEFORE_CREATE, instance, options)

            result = await conn.execute(
                insert(self.table).values(**self._known(instance.data_values))
            )
            for column, value in zip(self.table.primary_key.columns, result.inserted_primary_key):
                if instance.data_values.get(column.key) is None:
                    instance.data_values[column.key] = value

            await self.hooks.trigger(HookEvent.AFTER_CREATE, instance, options)

        instance.mark_persisted()
        logger.debug("Row created", model=self.name, primary_key=instance.primary_key_values())
        return instance

    async def bulk_create(
        self, rows: Iterable[Mapping[str, Any]], transaction: Optional[AsyncConnection] = None
    ) -> list[Instance]:
        """Insert many rows with a single statement.

        Generated primary keys are not read back.
        """
        instances = [self.build(row) for row in rows]
        if not instances:
            return []

        options = MutationOptions(
            transaction=transaction, fields=sorted({k for i in instances for k in i.data_values})
        )

        async with self._transaction(options) as conn:
            await self.hooks.trigger(HookEvent.BEFORE_BULK_CREATE, options)

            params = [
                self._complete_row(instance.data_values, options.fields) for instance in instances
            ]
            await conn.execute(insert(self.table), params)

            await self.hooks.trigger(HookEvent.AFTER_BULK_CREATE, options)

        for instance in instances:
            instance.mark_persisted()
        logger.debug("Rows created", model=self.name, row_count=len(instances))
        return instances

    async def update(
        self,
        instance: Instance,
        values: Mapping[str, Any],
        transaction: Optional[AsyncConnection] = None,
    ) -> Instance:
        """Update one row from ``values``.

        Nothing is written, and no hook fires, when no value changes. If
        the write fails, the instance keeps the values it had before.
        """
        restore_values = _values_restorer(instance)
        for key, value in values.items():
            if key in self.attributes:
                instance.set(key, value)

        if not instance.changed():
            return instance

        if self.options.timestamps:
            instance.data_values[self.options.updated_at] = utcnow()

        options = MutationOptions(transaction=transaction, fields=instance.changed())

        async with self._transaction(options, on_rollback=restore_values) as conn:
            await self.hooks.trigger(HookEvent.BEFORE_UPDATE, instance, options)

            changes = {key: instance.data_values[key] for key in instance.changed()}
            await conn.execute(
                update(self.table)
                .where(*self._primary_key_clause(instance))
                .values(**changes)
            )

            await self.hooks.trigger(HookEvent.AFTER_UPDATE, instance, options)

        instance.mark_persisted()
        logger.debug("Row updated", model=self.name, fields=options.fields)
        return instance

    async def bulk_update(
        self,
        values: Mapping[str, Any],
        where: Optional[Where] = None,
        individual_hooks: bool = False,
        transaction: Optional[AsyncConnection] = None,
    ) -> int:
        """Update every row matching ``where``.

        Returns:
            Number of rows updated.
        """
        values = self._known(values)
        if not values:
            return 0
        if self.options.timestamps:
            values.setdefault(self.options.updated_at, utcnow())

        options = MutationOptions(
            transaction=transaction,
            where=dict(where or {}),
            values=values,
            individual_hooks=individual_hooks,
            fields=list(values),
        )

        async with self._transaction(options) as conn:
            await self.hooks.trigger(HookEvent.BEFORE_BULK_UPDATE, options)

            instances: list[Instance] = []
            if individual_hooks:
                instances = await self.find_all(options.where, transaction=conn)
                for instance in instances:
                    for key, value in options.values.items():
                        instance.set(key, value)
                    await self.hooks.trigger(HookEvent.BEFORE_UPDATE, instance, options)

            result = await conn.execute(
                update(self.table)
                .where(*self._where_clause(options.where, paranoid=True))
                .values(**options.values)
            )
            row_count = result.rowcount

            for instance in instances:
                await self.hooks.trigger(HookEvent.AFTER_UPDATE, instance, options)
                instance.mark_persisted()

            await self.hooks.trigger(HookEvent.AFTER_BULK_UPDATE, options)

        logger.debug("Rows updated", model=self.name, row_count=row_count)
        return row_count

    async def destroy(
        self, instance: Instance, transaction: Optional[AsyncConnection] = None
    ) -> None:
        """Delete one row (soft delete for paranoid models)."""
        options = MutationOptions(transaction=transaction)

        async with self._transaction(options, on_rollback=_values_restorer(instance)) as conn:
            await self.hooks.trigger(HookEvent.BEFORE_DESTROY, instance, options)

            if self.options.is_paranoid:
                deleted_at = utcnow()
                instance.data_values[self.options.deleted_at] = deleted_at
                stmt = (
                    update(self.table)
                    .where(*self._primary_key_clause(instance))
                    .values({self.options.deleted_at: deleted_at})
                )
            else:
                stmt = delete(self.table).where(*self._primary_key_clause(instance))
            await conn.execute(stmt)

            await self.hooks.trigger(HookEvent.AFTER_DESTROY, instance, options)

        instance.mark_persisted()
        logger.debug("Row destroyed", model=self.name, primary_key=instance.primary_key_values())

    async def bulk_destroy(
        self,
        where: Optional[Where] = None,
        individual_hooks: bool = False,
        transaction: Optional[AsyncConnection] = None,
    ) -> int:
        """Delete every row matching ``where`` (soft delete for paranoid models).

        Returns:
            Number of rows deleted.
        """
        options = MutationOptions(
            transaction=transaction,
            where=dict(where or {}),
            individual_hooks=individual_hooks,
        )

        async with self._transaction(options) as conn:
            await self.hooks.trigger(HookEvent.BEFORE_BULK_DESTROY, options)

            instances: list[Instance] = []
            if individual_hooks:
                instances = await self.find_all(options.where, transaction=conn)
                for instance in instances:
                    await self.hooks.trigger(HookEvent.BEFORE_DESTROY, instance, options)

            clause = self._where_clause(options.where, paranoid=True)
            if self.options.is_paranoid:
                deleted_at = utcnow()
                for instance in instances:
                    instance.data_values[self.options.deleted_at] = deleted_at
                stmt = (
                    update(self.table)
                    .where(*clause)
                    .values({self.options.deleted_at: deleted_at})
                )
            else:
                stmt = delete(self.table).where(*clause)
            result = await conn.execute(stmt)
            row_count = result.rowcount

            for instance in instances:
                await self.hooks.trigger(HookEvent.AFTER_DESTROY, instance, options)
                instance.mark_persisted()

            await self.hooks.trigger(HookEvent.AFTER_BULK_DESTROY, options)

        logger.debug("Rows destroyed", model=self.name, row_count=row_count)
        return row_count

    async def restore(
        self, instance: Instance, transaction: Optional[AsyncConnection] = None
    ) -> Instance:
        """Undo a soft delete."""
        if not self.options.is_paranoid:
            raise ModelDefinitionError(f"{self.name} is not paranoid; nothing to restore")

        options = MutationOptions(transaction=transaction, fields=[self.options.deleted_at])

        async with self._transaction(options, on_rollback=_values_restorer(instance)) as conn:
            await self.hooks.trigger(HookEvent.BEFORE_RESTORE, instance, options)

            instance.data_values[self.options.deleted_at] = None
            await conn.execute(
                update(self.table)
                .where(*self._primary_key_clause(instance))
                .values({self.options.deleted_at: None})
            )

            await self.hooks.trigger(HookEvent.AFTER_RESTORE, instance, options)

        instance.mark_persisted()
        logger.debug("Row restored", model=self.name, primary_key=instance.primary_key_values())
        return instance

    # =========================================================================
    # Helpers
    # =========================================================================

    @asynccontextmanager
    async def _transaction(
        self,
        options: MutationOptions,
        on_rollback: Optional[Callable[[], None]] = None,
    ) -> AsyncIterator[AsyncConnection]:
        """Join the caller's transaction, or open one and expose it to hooks.

        Work hooks defer until the commit of a transaction opened here is
        awaited before the write returns. ``on_rollback`` runs when the
        write fails before it commits.
        """
        if options.transaction is not None:
            try:
                yield options.transaction
            except Exception:
                if on_rollback is not None:
                    on_rollback()
                raise
            return

        try:
            async with self.registry.engine.begin() as conn:
                options.transaction = conn
                deferred = hold_commit_queue(conn)
                yield conn
        except Exception:
            if on_rollback is not None:
                on_rollback()
            raise

        await deferred.run()

    @asynccontextmanager
    async def _connection(
        self, transaction: Optional[AsyncConnection]
    ) -> AsyncIterator[AsyncConnection]:
        if transaction is not None:
            yield transaction
            return

        async with self.registry.engine.connect() as conn:
            yield conn

    def _known(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in values.items() if key in self.attributes}

    def _complete_row(self, data: Mapping[str, Any], fields: list[str]) -> dict[str, Any]:
        # executemany needs the same keys on every row
        return {key: data.get(key) for key in fields}

    def _instance_from_row(self, row: Any) -> Instance:
        mapping = row._mapping
        values = {column.key: mapping[column] for column in self.table.columns}
        return Instance(self, values, is_new_record=False)

    def _primary_key_clause(self, instance: Instance) -> list[ColumnElement]:
        keys = instance.primary_key_values()
        if not keys:
            raise ModelDefinitionError(f"{self.name} has no primary key")
        return [self.table.c[key] == value for key, value in keys.items()]

    def _where_clause(
        self, where: Optional[Where], paranoid: bool = True, scope: Optional[str] = None
    ) -> list[ColumnElement]:
        if scope is not None:
            if scope not in self.options.scopes:
                raise ModelDefinitionError(f"{self.name} has no scope '{scope}'")
            merged = dict(self.options.scopes[scope])
        else:
            merged = dict(self.options.default_scope)
        merged.update(where or {})

        clauses: list[ColumnElement] = []
        for key, value in merged.items():
            if key not in self.attributes:
                raise ModelDefinitionError(f"{self.name} has no attribute '{key}' to filter on")
            column = self.table.c[key]
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            elif value is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == value)

        if paranoid and self.options.is_paranoid:
            clauses.append(self.table.c[self.options.deleted_at].is_(None))
        return clauses


def _default_foreign_key(owner: "Model") -> str:
    return f"{TableBuilder.generate_table_name(owner.name)}_{_require_primary_key(owner)}"


def _require_primary_key(model: "Model") -> str:
    if model.primary_key_field is None:
        raise ModelDefinitionError(f"{model.name} has no primary key")
    return model.primary_key_field


def _values_restorer(instance: Instance) -> Callable[[], None]:
    saved = dict(instance.data_values)

    def restore() -> None:
        instance.data_values = dict(saved)

    return restore
