"""
Export of the author and post corpus into Ghost import records.

Authors and posts live as one markdown document per file; the file name
without its extension becomes the Ghost slug.  Files are processed in
lexicographic order so that the synthetic ids written to the import file
are the same on every run and every platform for the same corpus.

Ids only have to be consistent inside one import file.  Ghost assigns its
own ids on import, which is why the reconciler matches users and posts by
slug afterwards rather than by id.
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from ghost_migration.exceptions import ConfigurationError
from ghost_migration.models.ghost_export import (
    BoundAuthor,
    ExportMeta,
    ExportPackage,
    PostAuthor,
    PostRecord,
    RoleUser,
    UnboundAuthor,
    UserRecord,
)
from ghost_migration.parsers.front_matter import parse_document_file

DOCUMENT_SUFFIXES = (".md", ".mdx")
CONTRIBUTOR_ROLE = "Contributor"
# Ids 1 and 2 belong to the first two administrator names.
RESERVED_USER_IDS = (1, 2)
FIRST_USER_ID = 3
FIRST_POST_ID = 1


def now_millis() -> int:
    return int(time.time() * 1000)


def parse_admin_users(value: Union[str, Sequence[str], None]) -> List[str]:
    """
    Parse the administrator allow-list (comma separated display names).

    :raises ConfigurationError: if the list is missing or holds no names.
    """
    if value is None:
        raise ConfigurationError("ADMIN_USERS is not configured")
    if isinstance(value, str):
        names = [n.strip() for n in value.split(",")]
    elif isinstance(value, (list, tuple)):
        if not all(isinstance(n, str) for n in value):
            raise ConfigurationError(f"ADMIN_USERS must only contain names, got {value!r}")
        names = [n.strip() for n in value]
    else:
        raise ConfigurationError(f"ADMIN_USERS must be a comma separated string, got {value!r}")

    names = [n for n in names if n]
    if not names:
        raise ConfigurationError("ADMIN_USERS does not contain any name")
    return names


def _text(value) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def normalize_name(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip().casefold()


def list_documents(directory: Union[str, Path]) -> List[Path]:
    """Return the corpus documents in ``directory`` sorted by file name."""
    directory = Path(directory)
    if not directory.is_dir():
        raise ConfigurationError(f"Corpus directory not found: {directory}")
    return sorted(
        (
            p
            for p in directory.iterdir()
            if p.is_file() and not p.name.startswith(".") and p.suffix.lower() in DOCUMENT_SUFFIXES
        ),
        key=lambda p: p.name,
    )


class AuthorLookup:
    """Resolves a post's ``author`` display name to an exported user."""

    def __init__(self, users: Iterable[UserRecord]) -> None:
        self._by_name: Dict[str, UserRecord] = {}
        for user in users:
            if not user.name:
                continue
            # First user wins when two authors share a display name.
            self._by_name.setdefault(normalize_name(user.name), user)

    def resolve(self, author_name: Optional[str]) -> Union[BoundAuthor, UnboundAuthor]:
        if not isinstance(author_name, str) or not author_name.strip():
            return UnboundAuthor(name=None)
        user = self._by_name.get(normalize_name(author_name))
        if user is None:
            return UnboundAuthor(name=author_name)
        return BoundAuthor(user_id=user.id, name=user.name or author_name)


class CorpusExporter:
    """
    Builds the Ghost import records from the author and post directories.

    :param authors_dir: Directory with one document per author.
    :param posts_dir: Directory with one document per post.
    :param admin_users: Administrator display names; the first two get the
        reserved ids 1 and 2 and none of them is made a contributor.
    :param clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        authors_dir: Union[str, Path],
        posts_dir: Union[str, Path],
        admin_users: Union[str, Sequence[str], None],
        *,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.authors_dir = Path(authors_dir)
        self.posts_dir = Path(posts_dir)
        self.admin_users = parse_admin_users(admin_users)
        self.clock = clock

    def is_admin(self, name: Optional[str]) -> bool:
        return name in self.admin_users

    def export_users(self) -> List[UserRecord]:
        users: List[UserRecord] = []
        reserved_taken = set()
        next_id = FIRST_USER_ID
        created_at = self.clock()

        for path in list_documents(self.authors_dir):
            slug = path.stem
            meta = parse_document_file(path).front_matter
            name = _text(meta.get("name"))

            user_id = None
            for position, reserved_id in enumerate(RESERVED_USER_IDS):
                if (
                    position < len(self.admin_users)
                    and name == self.admin_users[position]
                    and reserved_id not in reserved_taken
                ):
                    user_id = reserved_id
                    reserved_taken.add(reserved_id)
                    break
            if user_id is None:
                user_id = next_id
                next_id += 1

            photo = meta.get("photo")
            users.append(
                UserRecord(
                    slug=slug,
                    id=user_id,
                    name=name,
                    email=_text(meta.get("email")) or f"{slug}@example.com",
                    profile_image=f"/content/images/{photo}" if photo else None,
                    twitter=meta.get("twitter"),
                    created_at=created_at,
                    updated_at=created_at,
                )
            )
        return users

    def export_posts(self, users: Iterable[UserRecord]) -> List[PostRecord]:
        lookup = AuthorLookup(users)
        posts: List[PostRecord] = []

        for post_id, path in enumerate(list_documents(self.posts_dir), start=FIRST_POST_ID):
            document = parse_document_file(path)
            meta = document.front_matter
            cover = meta.get("coverImage")
            published = meta.get("date")
            posts.append(
                PostRecord(
                    slug=path.stem,
                    id=post_id,
                    title=_text(meta.get("title")),
                    mobiledoc=document.encoded_content,
                    feature_image=f"/content/images/posts/{cover}" if cover else None,
                    created_at=published,
                    updated_at=published,
                    published_at=published,
                    author=lookup.resolve(_text(meta.get("author"))),
                )
            )
        return posts

    def export_roles_users(self, users: Iterable[UserRecord], client) -> List[RoleUser]:
        """
        Make every non-administrator a contributor.

        :param client: Anything with ``find_role_by_name`` (normally a
            :class:`~ghost_migration.migrators.ghost_client.GhostClient`).
        :raises ConfigurationError: if Ghost has no Contributor role.
        """
        role = client.find_role_by_name(CONTRIBUTOR_ROLE)
        if not role:
            raise ConfigurationError(f"Role '{CONTRIBUTOR_ROLE}' not found in Ghost")
        return [
            RoleUser(user_id=user.id, role_id=role["id"])
            for user in users
            if not self.is_admin(user.name)
        ]

    @staticmethod
    def export_posts_authors(posts: Iterable[PostRecord]) -> List[PostAuthor]:
        return [
            PostAuthor(post_id=post.id, user_id=post.author.user_id)
            for post in posts
            if isinstance(post.author, BoundAuthor)
        ]

    def build_package(self, client) -> ExportPackage:
        """Run the whole export; any parse error aborts it."""
        users = self.export_users()
        roles_users = self.export_roles_users(users, client)
        posts = self.export_posts(users)
        return ExportPackage(
            meta=ExportMeta(exported_on=self.clock()),
            users=users,
            posts=posts,
            posts_authors=self.export_posts_authors(posts),
            roles_users=roles_users,
        )
