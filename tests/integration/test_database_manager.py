"""Integration tests for the database manager."""

import pytest
from sqlalchemy import String

from shadowbase.core.config import Settings
from shadowbase.domain.entities import AttributeSpec
from shadowbase.infrastructure.history import attach_history
from shadowbase.infrastructure.persistence import DatabaseManager


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="testing",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'manager.db'}",
    )


@pytest.mark.asyncio
async def test_check_connection(settings):
    manager = DatabaseManager(settings)
    try:
        assert await manager.check_connection() is True
    finally:
        await manager.disconnect()


@pytest.mark.asyncio
async def test_check_connection_failure(tmp_path):
    manager = DatabaseManager(
        Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'x.db'}")
    )
    try:
        assert await manager.check_connection() is False
    finally:
        await manager.disconnect()


@pytest.mark.asyncio
async def test_registry_round_trip(settings):
    """Test a registry from the manager tracks history end to end."""
    manager = DatabaseManager(settings)
    try:
        registry = manager.create_registry()
        note = registry.define("Note", {"text": AttributeSpec(name="text", type=String(50))})
        attach_history(note, registry)
        await registry.sync()

        row = await note.create({"text": "v1"})
        await note.update(row, {"text": "v2"})

        snapshots = await note.history_model.find_all()
        assert [snapshot.text for snapshot in snapshots] == ["v1"]
    finally:
        await manager.disconnect()


@pytest.mark.asyncio
async def test_begin_groups_writes_and_snapshots(settings):
    """Test writes sharing one transaction roll back with their snapshots."""
    manager = DatabaseManager(settings)
    try:
        registry = manager.create_registry()
        note = registry.define("Note", {"text": AttributeSpec(name="text", type=String(50))})
        attach_history(note, registry)
        await registry.sync()
        row = await note.create({"text": "v1"})

        with pytest.raises(RuntimeError):
            async with manager.begin() as conn:
                await note.update(row, {"text": "v2"}, transaction=conn)
                await note.destroy(row, transaction=conn)
                raise RuntimeError("abort")

        assert await note.history_model.count() == 0
        assert (await note.find_by_pk(row.id)).text == "v1"
    finally:
        await manager.disconnect()
