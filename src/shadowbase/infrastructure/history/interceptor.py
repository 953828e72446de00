"""Mutation interceptor - turns live model writes into history snapshots.

The interceptor owns two wiring tables, computed once from the history
options, that map lifecycle events to handlers:

- on the live model, snapshot handlers (row and bulk, insert and delete);
- on the history model, the read-only guard and association mirroring.

Snapshots are written in one of two ways. In blocking mode the handler
awaits the history write, so the live write only resolves once its
snapshot is stored, and a failure fails the live write. In non-blocking
mode the write is scheduled as a detached task; its failure is logged and
handed to ``on_snapshot_error`` but never reaches the caller.

Only a blocking write with ``allow_transactions`` runs inside the live
transaction. Every other write waits for that transaction to commit and
is dropped if it rolls back. A blocking write still completes before the
live write returns when the write pipeline opened the transaction; in a
transaction the caller opened it is detached at commit instead.
"""

import asyncio
import copy
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from shadowbase.core.hooks import HookEvent
from shadowbase.core.logging import get_logger
from shadowbase.domain.entities import (
    Association,
    AssociationKind,
    AssociationOptions,
    HistoryOptions,
    MutationOptions,
    ReferentialAction,
    SyncOptions,
    utcnow,
)
from shadowbase.domain.exceptions import ReadOnlyViolation, SnapshotWriteFailure
from shadowbase.domain.services.schema_deriver import ARCHIVED_AT
from shadowbase.infrastructure.persistence.after_commit import awaits_commit, defer_until_commit

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection

    from shadowbase.infrastructure.persistence.instance import Instance
    from shadowbase.infrastructure.persistence.model import Model

logger = get_logger(__name__)

INSERT_HOOK = "history_insert_hook"
DELETE_HOOK = "history_delete_hook"
INSERT_BULK_HOOK = "history_insert_bulk_hook"
DELETE_BULK_HOOK = "history_delete_bulk_hook"
READ_ONLY_HOOK = "history_read_only_hook"
SYNC_HOOK = "history_sync_hook"

Handler = Callable[..., Optional[Awaitable[None]]]


class MutationInterceptor:
    """Snapshot hooks for one live model and its history model.

    Example:
        interceptor = MutationInterceptor(post, post_history, HistoryOptions())
        interceptor.attach()

        await post.update(instance, {"title": "new"})  # snapshot written
        await interceptor.drain()  # wait for detached writes, if any
    """

    def __init__(self, live: "Model", history: "Model", config: HistoryOptions) -> None:
        self.live = live
        self.history = history
        self.config = config
        self.mirrored = False
        self._pending: set[asyncio.Task] = set()

    # =========================================================================
    # Wiring
    # =========================================================================

    def live_wiring(self) -> dict[HookEvent, tuple[str, Handler]]:
        """Events of the live model and the snapshot handler bound to each."""
        wiring: dict[HookEvent, tuple[str, Handler]] = {}
        if self.config.full:
            wiring[HookEvent.AFTER_CREATE] = (INSERT_HOOK, self.insert_hook)
            wiring[HookEvent.AFTER_UPDATE] = (INSERT_HOOK, self.insert_hook)
            wiring[HookEvent.AFTER_RESTORE] = (INSERT_HOOK, self.insert_hook)
            wiring[HookEvent.AFTER_DESTROY] = (DELETE_HOOK, self.delete_hook)
            wiring[HookEvent.AFTER_BULK_UPDATE] = (INSERT_BULK_HOOK, self.insert_bulk_hook)
            wiring[HookEvent.AFTER_BULK_DESTROY] = (DELETE_BULK_HOOK, self.delete_bulk_hook)
        else:
            wiring[HookEvent.BEFORE_UPDATE] = (INSERT_HOOK, self.insert_hook)
            wiring[HookEvent.BEFORE_DESTROY] = (DELETE_HOOK, self.delete_hook)

        wiring[HookEvent.BEFORE_BULK_UPDATE] = (INSERT_BULK_HOOK, self.insert_bulk_hook)
        wiring[HookEvent.BEFORE_BULK_DESTROY] = (DELETE_BULK_HOOK, self.delete_bulk_hook)
        return wiring

    def history_wiring(self) -> dict[HookEvent, tuple[str, Handler]]:
        """Events of the history model and the guard bound to each."""
        wiring: dict[HookEvent, tuple[str, Handler]] = {
            event: (READ_ONLY_HOOK, self.read_only_hook)
            for event in (
                HookEvent.BEFORE_UPDATE,
                HookEvent.BEFORE_DESTROY,
                HookEvent.BEFORE_BULK_UPDATE,
                HookEvent.BEFORE_BULK_DESTROY,
                HookEvent.BEFORE_RESTORE,
            )
        }
        wiring[HookEvent.BEFORE_SYNC] = (SYNC_HOOK, self.before_sync)
        return wiring

    def attach(self) -> None:
        """Register both wiring tables on their models."""
        for model, wiring in (
            (self.live, self.live_wiring()),
            (self.history, self.history_wiring()),
        ):
            for event, (name, handler) in wiring.items():
                model.hooks.register(event, handler, name=name)

    # =========================================================================
    # Snapshot handlers
    # =========================================================================

    async def insert_hook(self, instance: "Instance", options: MutationOptions) -> None:
        """Snapshot one row.

        Without ``full``, the snapshot is the state before the write (the
        hook runs before it), falling back to the current values for a
        record that has never been persisted.
        """
        source = instance.previous_data_values
        if self.config.full or not source:
            source = instance.data_values

        row = copy.deepcopy(source)
        if options.delete_operation:
            row[self.config.deleted_column_name] = True

        await self._persist([row], options.transaction, bulk=False)

    async def delete_hook(self, instance: "Instance", options: MutationOptions) -> None:
        """Snapshot one row that is being destroyed."""
        options.delete_operation = True
        await self.insert_hook(instance, options)

    async def insert_bulk_hook(self, options: MutationOptions) -> None:
        """Snapshot every row a bulk write matches.

        Skipped when the bulk write fires per-row hooks, which take the
        snapshots themselves.
        """
        if options.individual_hooks:
            return

        instances = await self.live.find_all(
            where=options.where,
            transaction=options.transaction,
            paranoid=False,
        )
        if not instances:
            return

        live_options = self.live.options
        rows = []
        for instance in instances:
            row = copy.deepcopy(instance.data_values)
            if live_options.timestamps and live_options.updated_at in row:
                row[ARCHIVED_AT] = row[live_options.updated_at]

            if options.delete_operation:
                row[self.config.deleted_column_name] = True
                deleted_at = row.get(live_options.deleted_at) if live_options.is_paranoid else None
                row[ARCHIVED_AT] = deleted_at or utcnow()
            rows.append(row)

        await self._persist(rows, options.transaction, bulk=True)

    async def delete_bulk_hook(self, options: MutationOptions) -> None:
        """Snapshot every row a bulk destroy matches."""
        options.delete_operation = True
        await self.insert_bulk_hook(options)

    def read_only_hook(self, *args: Any) -> None:
        """Reject any modification of history rows."""
        raise ReadOnlyViolation(self.history.name)

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _persist(
        self,
        rows: list[dict[str, Any]],
        transaction: Optional["AsyncConnection"],
        bulk: bool,
    ) -> None:
        if transaction is None:
            if self.config.blocking:
                await self._write_or_fail(rows, None, bulk)
            else:
                self._detach(rows, bulk)
            return

        if self.config.blocking and self.config.allow_transactions:
            await self._write_or_fail(rows, transaction, bulk)
            return

        # Writes outside the live transaction wait for it to commit
        if self.config.blocking and awaits_commit(transaction):
            defer_until_commit(transaction, lambda: self._write_or_fail(rows, None, bulk))
        else:
            defer_until_commit(transaction, lambda: self._detach(rows, bulk))

    async def _write_or_fail(
        self,
        rows: list[dict[str, Any]],
        transaction: Optional["AsyncConnection"],
        bulk: bool,
    ) -> None:
        try:
            await self._write(rows, transaction, bulk)
        except Exception as e:
            logger.error(
                "Snapshot write failed",
                history_model=self.history.name,
                row_count=len(rows),
                error=str(e),
            )
            raise SnapshotWriteFailure(self.history.name, len(rows)) from e

    async def _write(
        self,
        rows: list[dict[str, Any]],
        transaction: Optional["AsyncConnection"],
        bulk: bool,
    ) -> None:
        if bulk:
            await self.history.bulk_create(rows, transaction=transaction)
        else:
            await self.history.create(rows[0], transaction=transaction)

        logger.debug(
            "Snapshot written",
            history_model=self.history.name,
            row_count=len(rows),
            in_transaction=transaction is not None,
        )

    def _detach(self, rows: list[dict[str, Any]], bulk: bool) -> None:
        # Detached writes get their own transaction; the live one has
        # committed, or was never exposed, by the time the task runs.
        task = asyncio.get_running_loop().create_task(self._detached_write(rows, bulk))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _detached_write(self, rows: list[dict[str, Any]], bulk: bool) -> None:
        try:
            await self._write(rows, None, bulk)
        except Exception as e:
            failure = SnapshotWriteFailure(self.history.name, len(rows))
            failure.__cause__ = e
            logger.warning(
                "Detached snapshot write failed",
                history_model=self.history.name,
                row_count=len(rows),
                error=str(e),
            )
            self._report(failure)

    def _report(self, failure: SnapshotWriteFailure) -> None:
        callback = self.config.on_snapshot_error
        if callback is None:
            return
        try:
            callback(failure)
        except Exception as e:
            logger.error(
                "Snapshot error callback failed",
                history_model=self.history.name,
                error=str(e),
            )

    @property
    def pending_count(self) -> int:
        """Number of detached snapshot writes still running."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every detached snapshot write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # =========================================================================
    # Association mirroring
    # =========================================================================

    async def before_sync(self, history: "Model", options: SyncOptions) -> None:
        """Mirror the live model's associations onto the history model.

        Runs once, before the history table is created, so that mirrored
        foreign key columns are part of it.
        """
        origin = history.origin_model
        if (
            self.mirrored
            or not self.config.add_associations
            or origin is None
            or origin.name.endswith(self.config.model_suffix)
            or not origin.associations
        ):
            return

        associations = [
            association
            for association in origin.associations.values()
            if association.target is not history
        ]
        for association in associations:
            MIRROR_STRATEGIES[association.kind](self, history, association)

        primary_key = origin.primary_key_field
        origin.has_many(history, foreign_key=primary_key, constraints=False)
        history.belongs_to(origin, foreign_key=primary_key, constraints=False)
        origin.registry.register(history)
        self.mirrored = True

        logger.info(
            "History associations mirrored",
            live_model=origin.name,
            history_model=history.name,
            association_count=len(associations),
        )

    def _mirror_belongs_to(self, history: "Model", association: Association) -> None:
        history.associate(association.kind, association.target, _no_action(association))

    def _mirror_unconstrained(self, history: "Model", association: Association) -> None:
        options = replace(_no_action(association), constraints=False)
        history.associate(association.kind, association.target, options)

    def _mirror_belongs_to_many(self, history: "Model", association: Association) -> None:
        origin = history.origin_model
        history.primary_keys = {
            name: replace(attribute, autoincrement=False)
            for name, attribute in origin.primary_keys.items()
        }
        history.primary_key_field = next(iter(history.primary_keys), None)

        options = replace(
            _no_action(association),
            through=f"{association.options.through}{self.config.model_suffix}",
            constraints=False,
        )
        history.associate(association.kind, association.target, options)


def _no_action(association: Association) -> AssociationOptions:
    return replace(
        association.options,
        on_delete=ReferentialAction.NO_ACTION.value,
        on_update=ReferentialAction.NO_ACTION.value,
    )


MirrorStrategy = Callable[[MutationInterceptor, "Model", Association], None]

MIRROR_STRATEGIES: dict[AssociationKind, MirrorStrategy] = {
    AssociationKind.BELONGS_TO: MutationInterceptor._mirror_belongs_to,
    AssociationKind.HAS_ONE: MutationInterceptor._mirror_unconstrained,
    AssociationKind.HAS_MANY: MutationInterceptor._mirror_unconstrained,
    AssociationKind.BELONGS_TO_MANY: MutationInterceptor._mirror_belongs_to_many,
}
