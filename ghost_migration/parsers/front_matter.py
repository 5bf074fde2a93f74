"""
Front matter parsing for author and post documents.

A document may open with a YAML block delimited by ``---`` lines::

    ---
    title: API Design-First vs Code First
    author: Jane Doe
    date: 2023-01-01
    ---
    Body text...

The block is parsed with :func:`yaml.safe_load`.  The ``date`` key, when
present, is normalized to epoch milliseconds (UTC), which is the resolution
Ghost uses for ``created_at`` and friends.  Image references under
``/images/posts`` are rewritten to the ``/content/images/posts`` prefix
served by Ghost.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import yaml

from ghost_migration.exceptions import ParseError
from ghost_migration.models.ghost_export import AuthoredDocument
from .mobiledoc import encode_mobiledoc

FRONT_MATTER_MARKER = "---"
ASSET_PREFIX = "/images/posts"
GHOST_ASSET_PREFIX = "/content/images/posts"

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
_OPENING_RE = re.compile(r"\A---[ \t]*\r?\n")
# Lookbehind keeps the rewrite idempotent.
_ASSET_RE = re.compile(r"(?<!/content)" + re.escape(ASSET_PREFIX))


def to_epoch_millis(value: Union[str, int, float, date, datetime]) -> int:
    """
    Convert a front matter date to epoch milliseconds.

    Dates without a time and naive datetimes are taken as UTC.  Numbers are
    assumed to already be milliseconds.

    :raises ParseError: if ``value`` cannot be interpreted as a date.
    """
    if isinstance(value, bool):
        raise ParseError(f"Invalid date: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise ParseError(f"Invalid date: {value!r}") from e
    else:
        raise ParseError(f"Invalid date: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def rewrite_asset_paths(markdown: str) -> str:
    """Point ``/images/posts`` references at Ghost's content directory."""
    return _ASSET_RE.sub(GHOST_ASSET_PREFIX, markdown)


def split_front_matter(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split ``text`` into its front matter mapping and the remaining body.

    Documents that do not start with ``---`` have no front matter.

    :raises ParseError: if the block is not closed, is not valid YAML or
        does not hold a mapping.
    """
    if not _OPENING_RE.match(text):
        return {}, text

    match = _FRONT_MATTER_RE.match(text)
    if not match:
        raise ParseError("Front matter block is not closed")

    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise ParseError(f"Malformed front matter: {e}") from e

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise ParseError(f"Front matter must be a mapping, got {type(metadata).__name__}")
    return {str(k): v for k, v in metadata.items()}, text[match.end():]


def parse_document(text: str) -> AuthoredDocument:
    """
    Parse a markdown document into front matter, body and mobiledoc.

    :param text: Raw document text.
    :return: An immutable :class:`AuthoredDocument`.
    :raises ParseError: if the front matter is malformed.
    """
    metadata, body = split_front_matter(text)
    if metadata.get("date") is not None:
        metadata["date"] = to_epoch_millis(metadata["date"])

    body = rewrite_asset_paths(body)
    return AuthoredDocument(
        front_matter=metadata,
        body=body,
        encoded_content=encode_mobiledoc(body),
    )


def parse_document_file(path: Union[str, Path]) -> AuthoredDocument:
    """Read and parse ``path``; parse errors name the offending file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"not valid UTF-8 ({e.reason} at byte {e.start})", source=str(path)) from e
    try:
        return parse_document(text)
    except ParseError as e:
        raise ParseError(str(e), source=str(path)) from e
