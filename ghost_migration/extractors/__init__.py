"""
Extractors for the markdown corpus.

This subpackage reads the author and post documents of the static site and
turns them into the records of the Ghost import file, assigning synthetic
ids and the join rows (``posts_authors``, ``roles_users``) that tie them
together.
"""

from .corpus_exporter import AuthorLookup, CorpusExporter, parse_admin_users

__all__ = ["AuthorLookup", "CorpusExporter", "parse_admin_users"]
