"""
Ghost API client and post-import reconciliation.

This subpackage provides the session-authenticated Ghost Admin API client
and the reconciler that uploads the export files and corrects post
authorship and user roles the importer did not apply.
"""

from .ghost_client import GhostClient, GhostSession
from .reconciler import ImportReport, Reconciler, RepairReport

__all__ = ["GhostClient", "GhostSession", "ImportReport", "Reconciler", "RepairReport"]
