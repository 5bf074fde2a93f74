"""
Structured logging helpers for migration events.

The :mod:`ghost_migration.utils.errors` module centralizes the writing of
log entries for both problems and successful repairs during the migration.
Each entry is appended to a JSON Lines file under ``reports/migration`` so
that the information can be reviewed or parsed after a run.

Two public functions are provided:

``report_error``
    Record a problem for an entity (post, user, asset directory).  An
    optional exception can be supplied and will be serialized to the log.

``report_ok``
    Record a successful step for an entity.  Additional key/value
    information can be attached to the entry via the ``extra`` parameter.

The ``EVENTS`` dictionary maps event codes to human readable messages.
Codes not present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

EVENTS: Dict[str, str] = {
    "UNBOUND_AUTHOR": "Post author does not match any exported user",
    "ASSET_DIR_SKIPPED": "Image directory could not be read, skipped",
    "IMPORT_PROBLEM": "Ghost importer reported a problem",
    "IMPORTED": "File imported into Ghost",
    "AUTHOR_NOT_IN_GHOST": "Expected author was not found among Ghost users",
    "AUTHOR_FIXED": "Post author corrected",
    "ROLE_FIXED": "User role set to Contributor",
}

REPORT_DIR = os.path.join("reports", "migration")


def _write_jsonl(filename: str, data: Dict[str, Any], report_dir: Optional[str] = None) -> None:
    """Append ``data`` as a JSON object followed by a newline."""
    report_dir = report_dir or REPORT_DIR
    os.makedirs(report_dir, exist_ok=True)
    with open(os.path.join(report_dir, filename), "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
        f.write("\n")


def _entry(code: str, entity: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "code": code,
        "message": EVENTS.get(code, code),
        "slug": entity.get("slug"),
        "title": entity.get("title") or entity.get("name"),
    }


def report_error(
    code: str,
    entity: Dict[str, Any],
    exc: Optional[Exception] = None,
    *,
    report_dir: Optional[str] = None,
) -> None:
    """Log a problem event for ``entity``.

    Parameters
    ----------
    code:
        A key identifying the type of problem.  If ``code`` is present in
        :data:`EVENTS` its value will be used as the message.
    entity:
        The post, user or directory dictionary the event is about.  Only the
        ``slug`` and ``title``/``name`` keys are referenced if present.
    exc:
        Optional exception instance that triggered the event.
    """
    entry = _entry(code, entity)
    if exc is not None:
        entry["error"] = str(exc)
    print(f"[ERROR] {entry['message']} - {entity.get('slug', '')}")
    _write_jsonl("errors.jsonl", entry, report_dir)


def report_ok(
    code: str,
    entity: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    *,
    report_dir: Optional[str] = None,
) -> None:
    """Log a successful event for ``entity``, merging ``extra`` into the entry."""
    entry = _entry(code, entity)
    if extra:
        entry.update(extra)
    print(f"[OK] {entry['message']} - {entity.get('slug', '')}")
    _write_jsonl("success.jsonl", entry, report_dir)
