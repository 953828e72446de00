"""Unit tests for work deferred until a transaction commits."""

import pytest
from sqlalchemy import text

from shadowbase.infrastructure.persistence.after_commit import (
    CommitQueue,
    awaits_commit,
    defer_until_commit,
    hold_commit_queue,
)


class TestCallerTransaction:
    """Tests for transactions opened outside the write pipeline."""

    @pytest.mark.asyncio
    async def test_work_runs_at_commit(self, engine) -> None:
        calls = []

        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            defer_until_commit(conn, lambda: calls.append("first"))
            defer_until_commit(conn, lambda: calls.append("second"))
            assert calls == []
            assert not awaits_commit(conn)

        assert calls == ["first", "second"]

    @pytest.mark.asyncio
    async def test_work_dropped_on_rollback(self, engine) -> None:
        calls = []

        with pytest.raises(RuntimeError):
            async with engine.begin() as conn:
                defer_until_commit(conn, lambda: calls.append("lost"))
                raise RuntimeError("caller gave up")

        assert calls == []

    @pytest.mark.asyncio
    async def test_queue_does_not_outlive_its_transaction(self, engine) -> None:
        calls = []

        async with engine.connect() as conn:
            async with conn.begin():
                defer_until_commit(conn, lambda: calls.append("first"))
            async with conn.begin():
                await conn.execute(text("SELECT 1"))

        assert calls == ["first"]


class TestHeldQueue:
    """Tests for transactions whose opener runs the queue."""

    @pytest.mark.asyncio
    async def test_held_work_waits_for_run(self, engine) -> None:
        calls = []

        async def work() -> None:
            calls.append("awaited")

        async with engine.begin() as conn:
            queue = hold_commit_queue(conn)
            assert awaits_commit(conn)
            defer_until_commit(conn, work)

        assert calls == []
        await queue.run()
        assert calls == ["awaited"]

    @pytest.mark.asyncio
    async def test_held_work_dropped_on_rollback(self, engine) -> None:
        with pytest.raises(RuntimeError):
            async with engine.begin() as conn:
                queue = hold_commit_queue(conn)
                defer_until_commit(conn, lambda: None)
                raise RuntimeError("write failed")

        assert queue.work == []


@pytest.mark.asyncio
async def test_run_awaits_awaitable_results() -> None:
    calls = []

    async def later() -> None:
        calls.append("async")

    queue = CommitQueue(held=True)
    queue.work.extend([lambda: calls.append("sync"), later])

    await queue.run()

    assert calls == ["sync", "async"]
    assert queue.work == []
