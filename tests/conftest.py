"""Pytest configuration for all tests."""

from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from sqlalchemy import Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from shadowbase.core.config import get_settings
from shadowbase.domain.entities import AttributeSpec, IndexSpec, ModelOptions
from shadowbase.infrastructure.persistence import Model, ModelRegistry


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached per process; tests must not leak overrides."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite engine.

    A file database lets detached snapshot writes use their own
    connection alongside the one the live write holds.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shadowbase_test.db'}",
        connect_args={"check_same_thread": False},
        echo=False,
    )
    yield engine
    await engine.dispose()


@pytest.fixture
def registry(engine: AsyncEngine) -> ModelRegistry:
    """Create an empty model registry bound to the test engine."""
    return ModelRegistry(engine)


def post_attributes() -> dict[str, AttributeSpec]:
    """Attributes of the sample Post model."""
    return {
        "id": AttributeSpec(
            name="id", type=Integer(), primary_key=True, autoincrement=True, nullable=False
        ),
        "title": AttributeSpec(name="title", type=String(200), nullable=False),
        "slug": AttributeSpec(name="slug", type=String(200), unique=True),
        "body": AttributeSpec(name="body", type=Text()),
        "views": AttributeSpec(name="views", type=Integer(), default=0),
    }


@pytest.fixture
def make_post(registry: ModelRegistry) -> Callable[..., Model]:
    """Factory defining the sample Post model with ModelOptions overrides."""

    def _make(**options) -> Model:
        options.setdefault("indexes", (IndexSpec(fields=("title",), name="post_title_idx"),))
        return registry.define("Post", post_attributes(), ModelOptions(**options))

    return _make


@pytest.fixture
def post_model(make_post: Callable[..., Model]) -> Model:
    """Sample Post model with timestamps."""
    return make_post()
