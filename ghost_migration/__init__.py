"""
Top-level package for the markdown corpus → Ghost migration utility.

This package bundles all components required to read the author and post
documents of a static site, convert them to the Ghost import format,
package the image assets, upload everything through the Ghost Admin API
and repair the state the Ghost importer leaves behind.  Modules are split
into subpackages:

* :mod:`ghost_migration.parsers` – front matter parsing and mobiledoc encoding
* :mod:`ghost_migration.extractors` – corpus export into Ghost records
* :mod:`ghost_migration.migrators` – Ghost API client and reconciliation
* :mod:`ghost_migration.models` – pydantic models for the export file
* :mod:`ghost_migration.utils` – asset archive, event logs, pre-flight checks

Each layer has no direct knowledge of configuration or execution strategy;
orchestration is handled in :mod:`ghost_migration.migration_tool`.
"""

__version__ = "0.1.0"
