"""Pydantic models for blog posts."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Author(BaseModel):
    """Embedded author of a post."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)


class NewPost(BaseModel):
    """Client payload for creating a post."""

    author: Author
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    created: datetime = Field(
        default_factory=_utcnow, description="Creation time; defaults to now"
    )

    @field_validator("created", mode="before")
    @classmethod
    def _default_created(cls, v: object) -> object:
        # Explicit null behaves like an omitted field
        return _utcnow() if v is None else v

    @field_validator("created")
    @classmethod
    def _ensure_aware(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=UTC)


class PostUpdate(BaseModel):
    """Revisable subset of a post. Unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, min_length=1)
    content: str | None = Field(default=None, min_length=1)


class Post(BaseModel):
    """A persisted post as returned to clients."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(description="Store-assigned identifier")
    author: Author
    title: str
    content: str
    created: datetime

    @computed_field(alias="authorName")  # type: ignore[prop-decorator]
    @property
    def author_name(self) -> str:
        return f"{self.author.first_name} {self.author.last_name}"
