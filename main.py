"""
Entry point for the markdown corpus → Ghost migration tool.

Usage::

    python main.py           # write .ghost/migrationFromNext.json and .ghost/images.zip
    python main.py --auto    # also import both files into Ghost and fix authors/roles
"""

import argparse
import sys

from dotenv import load_dotenv

from ghost_migration.exceptions import MigrationError
from ghost_migration.migration_tool import GhostMigrationTool

CONFIG_FILE = "config/migration_config.json"


def main(argv=None) -> int:
    """
    Main function to run the Ghost migration tool.
    """
    parser = argparse.ArgumentParser(description="Export the markdown corpus to Ghost.")
    parser.add_argument(
        "--auto",
        action="store_true",
        help="Import the export into Ghost through the Admin API and fix authors and roles.",
    )
    args = parser.parse_args(argv)

    load_dotenv()
    tool = GhostMigrationTool(config_file=CONFIG_FILE)

    try:
        tool.run(auto_import=args.auto)
    except MigrationError as e:
        tool.log_message(f"Migration failed: {e}", level="ERROR")
        return 1

    tool.log_message("Migration process finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
