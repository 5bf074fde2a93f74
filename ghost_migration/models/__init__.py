"""
Pydantic models for the Ghost import file.

The field names follow the Ghost database export format (``users``,
``posts``, ``posts_authors``, ``roles_users``) so that ``model_dump`` output
can be written straight into the import JSON.
"""

from .ghost_export import (
    AuthorBinding,
    AuthoredDocument,
    BoundAuthor,
    ExportMeta,
    ExportPackage,
    PostAuthor,
    PostRecord,
    RoleUser,
    UnboundAuthor,
    UserRecord,
)

__all__ = [
    "AuthorBinding",
    "AuthoredDocument",
    "BoundAuthor",
    "ExportMeta",
    "ExportPackage",
    "PostAuthor",
    "PostRecord",
    "RoleUser",
    "UnboundAuthor",
    "UserRecord",
]
