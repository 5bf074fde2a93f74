"""
Utility helpers used by the migration tool.

This subpackage exposes the JSON Lines event log, the image archive
builder, the fan-out barrier used for corrective writes and the pre-flight
checks run before talking to Ghost.
"""

from .assets import AssetBundle, SubtreeResult, package_assets
from .errors import EVENTS, report_error, report_ok
from .fanout import fan_out

__all__ = [
    "AssetBundle",
    "SubtreeResult",
    "package_assets",
    "EVENTS",
    "report_error",
    "report_ok",
    "fan_out",
]
