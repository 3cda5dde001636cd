"""Storage for blog posts: Protocol + Memory + Redis implementations."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable
from uuid import uuid4

import structlog
from pydantic import BaseModel, ValidationError

from blog_api.models import Author, NewPost, Post, PostUpdate

if TYPE_CHECKING:
    from redis.asyncio import Redis

log = structlog.get_logger()

_M = TypeVar("_M", bound=BaseModel)

_POST_PREFIX = "post:"
_INDEX_KEY = "posts"

# Lua: apply HSET only if the post hash still exists
_UPDATE_SCRIPT = (
    "if redis.call('exists',KEYS[1])==0 then return 0 end "
    "for i=1,#ARGV,2 do redis.call('hset',KEYS[1],ARGV[i],ARGV[i+1]) end return 1"
)


class PostStoreError(Exception):
    """Base class for post store domain errors."""


class PostNotFoundError(PostStoreError):
    def __init__(self, post_id: str) -> None:
        super().__init__(f"post {post_id!r} not found")
        self.post_id = post_id


class PostValidationError(PostStoreError):
    """Raised when a payload is missing a required field or has a bad value."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        fields = ", ".join(".".join(str(p) for p in e.get("loc", ())) for e in errors)
        super().__init__(f"invalid post fields: {fields}")
        self.errors = errors


def _validate(model: type[_M], data: Mapping[str, Any]) -> _M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise PostValidationError(
            exc.errors(include_url=False, include_context=False, include_input=False)
        ) from exc


def _new_post(
    author: Author | Mapping[str, Any] | None,
    title: str | None,
    content: str | None,
    created: datetime | str | None,
) -> NewPost:
    data: dict[str, Any] = {"author": author, "title": title, "content": content}
    if created is not None:
        data["created"] = created
    return _validate(NewPost, data)


def _changes(fields: Mapping[str, Any]) -> dict[str, str]:
    return _validate(PostUpdate, fields).model_dump(exclude_none=True)


def _materialize(new: NewPost) -> Post:
    return Post(
        id=uuid4().hex,
        author=new.author,
        title=new.title,
        content=new.content,
        created=new.created,
    )


@runtime_checkable
class PostStore(Protocol):
    """Protocol for durable CRUD over posts."""

    async def list_all(self) -> list[Post]: ...

    async def get(self, post_id: str) -> Post: ...

    async def create(
        self,
        author: Author | Mapping[str, Any] | None,
        title: str | None,
        content: str | None,
        created: datetime | str | None = None,
    ) -> Post: ...

    async def update(self, post_id: str, fields: Mapping[str, Any]) -> Post: ...

    async def remove(self, post_id: str) -> None: ...

    async def count(self) -> int: ...

    async def insert_many(self, posts: Iterable[NewPost]) -> list[Post]: ...

    async def drop(self) -> None: ...

    async def aclose(self) -> None: ...


class MemoryPostStore:
    """In-process post store. Posts are lost when the process exits."""

    def __init__(self) -> None:
        self._posts: dict[str, Post] = {}

    async def list_all(self) -> list[Post]:
        return sorted(self._posts.values(), key=lambda p: p.created)

    async def get(self, post_id: str) -> Post:
        post = self._posts.get(post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        return post

    async def create(
        self,
        author: Author | Mapping[str, Any] | None,
        title: str | None,
        content: str | None,
        created: datetime | str | None = None,
    ) -> Post:
        post = _materialize(_new_post(author, title, content, created))
        self._posts[post.id] = post
        return post

    async def update(self, post_id: str, fields: Mapping[str, Any]) -> Post:
        post = await self.get(post_id)
        changes = _changes(fields)
        updated = post.model_copy(update=changes)
        self._posts[post_id] = updated
        return updated

    async def remove(self, post_id: str) -> None:
        if self._posts.pop(post_id, None) is None:
            raise PostNotFoundError(post_id)

    async def count(self) -> int:
        return len(self._posts)

    async def insert_many(self, posts: Iterable[NewPost]) -> list[Post]:
        created = [_materialize(p) for p in posts]
        self._posts.update((p.id, p) for p in created)
        return created

    async def drop(self) -> None:
        self._posts.clear()

    async def aclose(self) -> None:
        self._posts.clear()


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class RedisPostStore:
    """Redis-backed post store.

    Each post is a hash ``post:{id}``; the sorted set ``posts`` indexes ids by
    creation time. Writes touching both keys run in a MULTI/EXEC transaction so
    a failure never leaves a half-written post behind.
    """

    def __init__(
        self,
        client: Redis,
        key_prefix: str = _POST_PREFIX,
        index_key: str = _INDEX_KEY,
    ) -> None:
        self._client: Redis = client
        self._prefix = key_prefix
        self._index = index_key

    def _key(self, post_id: str) -> str:
        return f"{self._prefix}{post_id}"

    @staticmethod
    def _to_hash(post: Post) -> dict[str, str]:
        return {
            "id": post.id,
            "first_name": post.author.first_name,
            "last_name": post.author.last_name,
            "title": post.title,
            "content": post.content,
            "created": post.created.isoformat(),
        }

    @staticmethod
    def _from_hash(raw: Mapping[bytes | str, bytes | str]) -> Post:
        data = {_decode(k): _decode(v) for k, v in raw.items()}
        return Post(
            id=data["id"],
            author=Author(first_name=data["first_name"], last_name=data["last_name"]),
            title=data["title"],
            content=data["content"],
            created=datetime.fromisoformat(data["created"]),
        )

    async def list_all(self) -> list[Post]:
        ids = await self._client.zrange(self._index, 0, -1)
        if not ids:
            return []
        async with self._client.pipeline(transaction=False) as pipe:
            for post_id in ids:
                pipe.hgetall(self._key(_decode(post_id)))
            rows = await pipe.execute()
        # A post removed between ZRANGE and HGETALL comes back empty
        return [self._from_hash(row) for row in rows if row]

    async def get(self, post_id: str) -> Post:
        raw = await self._client.hgetall(self._key(post_id))  # type: ignore[misc]
        if not raw:
            raise PostNotFoundError(post_id)
        return self._from_hash(raw)

    async def create(
        self,
        author: Author | Mapping[str, Any] | None,
        title: str | None,
        content: str | None,
        created: datetime | str | None = None,
    ) -> Post:
        post = _materialize(_new_post(author, title, content, created))
        await self._write([post])
        log.debug("post_stored", post_id=post.id)
        return post

    async def update(self, post_id: str, fields: Mapping[str, Any]) -> Post:
        # Unknown ids take precedence over invalid fields
        if not await self._client.exists(self._key(post_id)):
            raise PostNotFoundError(post_id)
        changes = _changes(fields)
        if not changes:
            return await self.get(post_id)
        argv = [item for pair in changes.items() for item in pair]
        applied = await self._client.eval(  # type: ignore[misc]
            _UPDATE_SCRIPT, 1, self._key(post_id), *argv
        )
        if not applied:
            raise PostNotFoundError(post_id)
        log.debug("post_updated", post_id=post_id, fields=sorted(changes))
        return await self.get(post_id)

    async def remove(self, post_id: str) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(post_id))
            pipe.zrem(self._index, post_id)
            deleted, _ = await pipe.execute()
        if not deleted:
            raise PostNotFoundError(post_id)
        log.debug("post_removed", post_id=post_id)

    async def count(self) -> int:
        return int(await self._client.zcard(self._index))

    async def insert_many(self, posts: Iterable[NewPost]) -> list[Post]:
        created = [_materialize(p) for p in posts]
        if created:
            await self._write(created)
        return created

    async def _write(self, posts: list[Post]) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            for post in posts:
                pipe.hset(self._key(post.id), mapping=self._to_hash(post))
                pipe.zadd(self._index, {post.id: post.created.timestamp()})
            await pipe.execute()

    async def drop(self) -> None:
        keys = [key async for key in self._client.scan_iter(match=f"{self._prefix}*")]
        await self._client.delete(self._index, *keys)
        log.debug("posts_dropped", removed=len(keys))

    async def aclose(self) -> None:
        """Close the underlying Redis connection."""
        await self._client.aclose()


def create_post_store(
    backend: str,
    redis_url: str | None = None,
    key_prefix: str = _POST_PREFIX,
    index_key: str = _INDEX_KEY,
) -> PostStore:
    """Factory: create a PostStore for the given backend."""
    if backend == "redis":
        import redis.asyncio as aioredis

        if not redis_url:
            msg = "redis_url is required when backend='redis'"
            raise ValueError(msg)
        return RedisPostStore(aioredis.from_url(redis_url), key_prefix, index_key)
    return MemoryPostStore()
