from __future__ import annotations

import os
from typing import Any, Dict

from ghost_migration.exceptions import ConfigurationError, TransportError
from ghost_migration.extractors.corpus_exporter import CONTRIBUTOR_ROLE


class PreFlightCheckError(ConfigurationError):
    """Custom exception for pre-flight check failures."""
    pass


def run_ghost_pre_flight_checks(config: Dict[str, Any], client) -> None:
    """
    Verifies that the corpus and the Ghost instance are ready for an import.

    Args:
        config: The application configuration dictionary.
        client: A GhostClient built from ``config["ghost"]``.

    Raises:
        PreFlightCheckError: If any check fails.
    """
    print("[INFO] Running pre-flight checks...")

    paths = config.get("paths", {})
    for key in ("authors_dir", "posts_dir"):
        path = paths.get(key)
        if not path or not os.path.isdir(path):
            raise PreFlightCheckError(f"Corpus directory '{key}' not found: {path}")

    # Check 1: credentials log in and the staff user can read roles
    try:
        roles = client.find_roles()
    except TransportError as e:
        if e.status_code in (401, 403):
            raise PreFlightCheckError("Ghost rejected the configured username or password.") from e
        raise PreFlightCheckError(f"Could not reach the Ghost Admin API: {e}") from e

    # Check 2: the role given to every imported author exists
    if not any(r.get("name") == CONTRIBUTOR_ROLE for r in roles):
        raise PreFlightCheckError(
            f"The '{CONTRIBUTOR_ROLE}' role is not assignable by the configured Ghost user."
        )

    print("[INFO] Pre-flight checks passed successfully.")
