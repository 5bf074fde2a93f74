"""
Parsers and converters used by the migration pipeline.

Currently this subpackage exposes ``parse_document`` from
:mod:`ghost_migration.parsers.front_matter` and the mobiledoc helpers from
:mod:`ghost_migration.parsers.mobiledoc`.
"""

from .front_matter import parse_document, parse_document_file, rewrite_asset_paths
from .mobiledoc import decode_mobiledoc, encode_mobiledoc

__all__ = [
    "parse_document",
    "parse_document_file",
    "rewrite_asset_paths",
    "encode_mobiledoc",
    "decode_mobiledoc",
]
