"""Work deferred until a transaction commits.

Hooks that must not write inside the live transaction queue their work on
the live connection. The queue is dropped when the transaction rolls back.

A transaction opened by the write pipeline holds its queue: the pipeline
runs the queued work after the commit and awaits it before the write
returns. A transaction opened by the caller releases its queue from the
connection's ``commit`` event, so work queued there must not need
awaiting.
"""

import weakref
from typing import Awaitable, Callable, Optional

from sqlalchemy import event
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncConnection

from shadowbase.core.logging import get_logger

logger = get_logger(__name__)

Work = Callable[[], Optional[Awaitable[None]]]

_queues: "weakref.WeakKeyDictionary[Connection, CommitQueue]" = weakref.WeakKeyDictionary()


class CommitQueue:
    """Work waiting for one transaction to commit.

    Attributes:
        held: The opener of the transaction runs the queue itself.
        work: Queued callables, in order.
    """

    def __init__(self, held: bool = False) -> None:
        self.held = held
        self.work: list[Work] = []

    async def run(self) -> None:
        """Call the queued work in order, awaiting any awaitable result."""
        work, self.work = self.work, []
        for item in work:
            result = item()
            if result is not None:
                await result

    def release(self) -> None:
        """Call the queued work in order without awaiting it."""
        work, self.work = self.work, []
        for item in work:
            item()


def hold_commit_queue(conn: AsyncConnection) -> CommitQueue:
    """Register a queue that the opener of the transaction on ``conn`` runs itself."""
    queue = CommitQueue(held=True)
    _queues[conn.sync_connection] = queue
    return queue


def awaits_commit(conn: AsyncConnection) -> bool:
    """Whether work deferred on ``conn`` is awaited by the transaction's opener."""
    queue = _queues.get(conn.sync_connection)
    return queue is not None and queue.held


def defer_until_commit(conn: AsyncConnection, work: Work) -> None:
    """Run ``work`` once the transaction on ``conn`` commits.

    The work is dropped if the transaction rolls back instead.
    """
    connection = conn.sync_connection
    queue = _queues.get(connection)
    if queue is None:
        queue = _queues[connection] = CommitQueue()

    if not event.contains(connection, "commit", _on_commit):
        event.listen(connection, "commit", _on_commit)
        event.listen(connection, "rollback", _on_rollback)

    queue.work.append(work)


def _on_commit(connection: Connection) -> None:
    queue = _queues.pop(connection, None)
    if queue is not None and not queue.held:
        queue.release()


def _on_rollback(connection: Connection) -> None:
    queue = _queues.pop(connection, None)
    if queue is not None and queue.work:
        logger.debug("Deferred work dropped on rollback", count=len(queue.work))
        queue.work.clear()
