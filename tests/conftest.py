"""Shared test constants, fixtures, and factory functions."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any

import fakeredis
import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient

from blog_api.config import Settings
from blog_api.main import app
from blog_api.models import NewPost
from blog_api.post_store import MemoryPostStore, PostStore, RedisPostStore

# -- Constants --

REDIS_URL = "redis://localhost:6379/0"
SEED_COUNT = 9
BASE_CREATED = datetime(2023, 5, 1, 12, 0, tzinfo=UTC)

AUTHORS = [
    ("Ada", "Lovelace"),
    ("Grace", "Hopper"),
    ("Alan", "Turing"),
    ("Edsger", "Dijkstra"),
    ("Barbara", "Liskov"),
]

POST_KEYS = {"id", "author", "authorName", "title", "content", "created"}


# -- Factories --


def make_settings(**overrides: Any) -> Settings:
    """Create a Settings instance with test defaults. Override any field."""
    defaults: dict[str, Any] = {"store_backend": "memory"}
    return Settings(**(defaults | overrides))


def make_post_data(index: int = 0, **overrides: Any) -> dict[str, Any]:
    """Create a create-post JSON payload. Override any top-level field."""
    first, last = AUTHORS[index % len(AUTHORS)]
    data: dict[str, Any] = {
        "author": {"firstName": first, "lastName": last},
        "title": f"Notes on engines, part {index}",
        "content": f"The analytical engine weaves algebraic patterns ({index}).",
        "created": (BASE_CREATED + timedelta(days=index)).isoformat(),
    }
    return data | overrides


def make_seed_posts(count: int = SEED_COUNT) -> list[NewPost]:
    return [NewPost.model_validate(make_post_data(i)) for i in range(count)]


# -- Fixtures --


@pytest.fixture
def env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin store settings so the host environment cannot leak in."""
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)


@pytest.fixture
def redis_client() -> fakeredis.aioredis.FakeRedis:
    """Provide a fake Redis client with its own server."""
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())


@pytest.fixture(params=["memory", "redis"])
async def store(
    request: pytest.FixtureRequest, redis_client: fakeredis.aioredis.FakeRedis
) -> AsyncIterator[PostStore]:
    """Empty post store, once per backend."""
    post_store: PostStore
    if request.param == "redis":
        post_store = RedisPostStore(redis_client)
    else:
        post_store = MemoryPostStore()
    yield post_store
    await post_store.drop()
    await post_store.aclose()


@pytest.fixture
async def seeded_store(store: PostStore) -> PostStore:
    """Post store holding SEED_COUNT posts."""
    await store.insert_many(make_seed_posts())
    return store


@pytest.fixture
async def client(seeded_store: PostStore) -> AsyncIterator[AsyncClient]:
    """AsyncClient wired to the FastAPI app backed by the seeded store."""
    app.state.post_store = seeded_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.state.post_store = None
