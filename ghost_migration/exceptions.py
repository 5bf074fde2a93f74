"""
Exception hierarchy shared by every layer of the migration.

Only :class:`AssetWalkError` is never raised out of its module: the asset
packager records it on the subtree it had to skip.
"""

from __future__ import annotations

from typing import Optional


class MigrationError(Exception):
    """Base class for every fatal migration failure."""


class ParseError(MigrationError):
    """A document's front matter or mobiledoc container is malformed."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class ConfigurationError(MigrationError):
    """Required configuration is missing or a Ghost role cannot be found."""


class TransportError(MigrationError):
    """An HTTP or network failure while talking to the Ghost Admin API."""

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body
        parts = [message]
        if method and url:
            parts.append(f"({method} {url})")
        if status_code is not None:
            parts.append(f"status={status_code}")
        if body:
            parts.append(f"body={body[:300]}")
        super().__init__(" ".join(parts))


class AssetWalkError(MigrationError):
    """An image directory could not be read while building the archive."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read {path}: {reason}")
