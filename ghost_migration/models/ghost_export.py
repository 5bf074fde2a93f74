from __future__ import annotations

import json
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

GHOST_EXPORT_VERSION = "5.38.0"
POST_STATUS_PUBLISHED = "published"


class AuthoredDocument(BaseModel):
    """A parsed source document: front matter, body and its mobiledoc."""

    model_config = ConfigDict(frozen=True)

    front_matter: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    encoded_content: str


class UserRecord(BaseModel):
    """A row of the ``users`` table in the Ghost import file."""

    model_config = ConfigDict(populate_by_name=True)

    slug: str = Field(..., min_length=1)
    id: int = Field(..., ge=1)
    name: Optional[str] = None
    email: str
    profile_image: Optional[str] = None
    twitter: Optional[str] = None
    bio: Optional[str] = None
    cover_image: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    accessibility: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    created_at: int
    created_by: int = 1
    updated_at: int
    updated_by: int = 1

    @field_validator("twitter", mode="before")
    @classmethod
    def _stringify_handle(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)


class BoundAuthor(BaseModel):
    kind: Literal["bound"] = "bound"
    user_id: int
    name: str


class UnboundAuthor(BaseModel):
    """A post whose ``author`` front matter matched no exported user."""

    kind: Literal["unbound"] = "unbound"
    name: Optional[str] = None


AuthorBinding = Union[BoundAuthor, UnboundAuthor]


class PostRecord(BaseModel):
    """A row of the ``posts`` table in the Ghost import file."""

    slug: str = Field(..., min_length=1)
    id: int = Field(..., ge=1)
    title: Optional[str] = None
    mobiledoc: str
    feature_image: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    published_at: Optional[int] = None
    status: str = POST_STATUS_PUBLISHED
    author: AuthorBinding = Field(default_factory=UnboundAuthor, discriminator="kind")

    @property
    def author_id(self) -> Optional[int]:
        if isinstance(self.author, BoundAuthor):
            return self.author.user_id
        return None

    def to_ghost(self) -> dict[str, Any]:
        row = self.model_dump(exclude={"author"})
        if isinstance(self.author, BoundAuthor):
            row["author_id"] = self.author.user_id
            row["published_by"] = self.author.user_id
        return row


class PostAuthor(BaseModel):
    post_id: int
    user_id: int


class RoleUser(BaseModel):
    user_id: int
    role_id: str


class ExportMeta(BaseModel):
    exported_on: int
    version: str = GHOST_EXPORT_VERSION


class ExportPackage(BaseModel):
    """
    The whole Ghost import file.  It is rebuilt from the corpus on every
    run and written in one go; nothing updates it in place.
    """

    meta: ExportMeta
    users: List[UserRecord] = Field(default_factory=list)
    posts: List[PostRecord] = Field(default_factory=list)
    posts_authors: List[PostAuthor] = Field(default_factory=list)
    roles_users: List[RoleUser] = Field(default_factory=list)

    def to_ghost(self) -> dict[str, Any]:
        return {
            "meta": self.meta.model_dump(),
            "data": {
                "posts": [p.to_ghost() for p in self.posts],
                "users": [u.model_dump() for u in self.users],
                "posts_authors": [pa.model_dump() for pa in self.posts_authors],
                "roles_users": [ru.model_dump() for ru in self.roles_users],
            },
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_ghost(), ensure_ascii=False, indent=indent)
