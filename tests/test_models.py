"""Tests for post models and their wire format."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from blog_api.models import Author, NewPost, Post, PostUpdate

CREATED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)


def _post(**overrides: object) -> Post:
    data: dict[str, object] = {
        "id": "abc123",
        "author": {"firstName": "Ada", "lastName": "Lovelace"},
        "title": "T",
        "content": "C",
        "created": CREATED,
    }
    return Post.model_validate(data | overrides)


def test_author_name_is_derived() -> None:
    assert _post().author_name == "Ada Lovelace"


def test_author_name_cannot_be_supplied() -> None:
    post = _post(authorName="Someone Else")
    assert post.author_name == "Ada Lovelace"


def test_post_is_immutable() -> None:
    post = _post()
    with pytest.raises(ValidationError):
        post.title = "changed"  # type: ignore[misc]


def test_post_serializes_camel_case() -> None:
    dumped = _post().model_dump(mode="json", by_alias=True)
    assert dumped == {
        "id": "abc123",
        "author": {"firstName": "Ada", "lastName": "Lovelace"},
        "authorName": "Ada Lovelace",
        "title": "T",
        "content": "C",
        "created": "2024-01-02T03:04:05Z",
    }


def test_author_accepts_field_names() -> None:
    author = Author(first_name="Grace", last_name="Hopper")
    assert author.model_dump(by_alias=True) == {"firstName": "Grace", "lastName": "Hopper"}


def test_new_post_defaults_created() -> None:
    before = datetime.now(UTC)
    post = NewPost.model_validate(
        {"author": {"firstName": "A", "lastName": "B"}, "title": "T", "content": "C"}
    )
    assert post.created >= before


def test_new_post_null_created_defaults() -> None:
    post = NewPost.model_validate(
        {
            "author": {"firstName": "A", "lastName": "B"},
            "title": "T",
            "content": "C",
            "created": None,
        }
    )
    assert post.created.tzinfo is not None


def test_new_post_naive_created_is_utc() -> None:
    post = NewPost.model_validate(
        {
            "author": {"firstName": "A", "lastName": "B"},
            "title": "T",
            "content": "C",
            "created": "2022-06-01T10:00:00",
        }
    )
    assert post.created == datetime(2022, 6, 1, 10, 0, tzinfo=UTC)


def test_post_update_drops_unknown_keys() -> None:
    update = PostUpdate.model_validate({"title": "T", "author": {"firstName": "X"}, "id": "1"})
    assert update.model_dump(exclude_none=True) == {"title": "T"}


def test_post_update_rejects_empty_strings() -> None:
    with pytest.raises(ValidationError):
        PostUpdate.model_validate({"content": ""})
