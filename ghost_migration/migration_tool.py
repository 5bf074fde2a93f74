"""
High-level orchestration of the markdown → Ghost migration.

This module defines a :class:`GhostMigrationTool` class that ties together
the corpus exporter, the asset packager, the Ghost client and the
reconciler into a complete pipeline.  It always writes the Ghost import
file and the image archive; with ``auto_import`` it also uploads both to
Ghost and repairs post authors and user roles.

Configuration is supplied via a JSON file path or directly as a dictionary
and completed from environment variables.  The ``ghost`` section needs
``api_url``, ``site_url``, ``username`` and ``password``; ``migration``
needs ``admin_users``.  Corpus and output locations live under ``paths``.
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from ghost_migration.exceptions import ConfigurationError
from ghost_migration.extractors.corpus_exporter import CorpusExporter, parse_admin_users
from ghost_migration.migrators.ghost_client import GhostClient
from ghost_migration.migrators.reconciler import Reconciler
from ghost_migration.models.ghost_export import ExportPackage, UnboundAuthor
from ghost_migration.utils.assets import AssetBundle, package_assets
from ghost_migration.utils.errors import report_error
from ghost_migration.utils.pre_flight_checks import run_ghost_pre_flight_checks

EXPORT_FILENAME = "migrationFromNext.json"
ARCHIVE_FILENAME = "images.zip"

REQUIRED_KEYS = (
    ("ghost", "api_url", "GHOST_API"),
    ("ghost", "site_url", "GHOST_SITE"),
    ("ghost", "username", "GHOST_USER"),
    ("ghost", "password", "GHOST_PASSWORD"),
    ("migration", "admin_users", "ADMIN_USERS"),
)


class GhostMigrationTool:
    """
    Encapsulates all state and behavior required to migrate the corpus to
    Ghost.  This class is responsible for reading configuration, running the
    export, packaging assets and driving the reconciler.  Per-entity events
    are recorded using the :mod:`ghost_migration.utils.errors` module.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        client: Optional[GhostClient] = None,
    ) -> None:
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        elif config is None:
            config = {}

        # Ensure essential keys exist to prevent KeyErrors
        config.setdefault("ghost", {})
        config["ghost"].setdefault("api_url", os.getenv("GHOST_API", ""))
        config["ghost"].setdefault("site_url", os.getenv("GHOST_SITE", ""))
        config["ghost"].setdefault("username", os.getenv("GHOST_USER", ""))
        config["ghost"].setdefault("password", os.getenv("GHOST_PASSWORD", ""))
        config["ghost"].setdefault("timeout", None)

        config.setdefault("migration", {})
        config["migration"].setdefault("admin_users", os.getenv("ADMIN_USERS", ""))
        config["migration"].setdefault("max_workers", 8)

        config.setdefault("paths", {})
        config["paths"].setdefault("authors_dir", os.path.join("src", "content", "authors"))
        config["paths"].setdefault("posts_dir", os.path.join("src", "content", "blog"))
        config["paths"].setdefault("post_images_dir", os.path.join("public", "images", "posts"))
        config["paths"].setdefault("author_images_dir", os.path.join("public", "images", "authors"))
        config["paths"].setdefault("output_dir", ".ghost")
        config["paths"].setdefault("report_dir", os.path.join("reports", "migration"))

        self.config = config
        self._client = client

    def log_message(self, message: str, level: str = "INFO") -> None:
        print(f"[{level}] {message}")
        report_dir = self.config["paths"]["report_dir"]
        os.makedirs(report_dir, exist_ok=True)
        with open(os.path.join(report_dir, "migration.log"), "a", encoding="utf-8") as f:
            f.write(f"{datetime.now().isoformat(timespec='seconds')} {level}: {message}\n")

    def require_config(self) -> None:
        """
        :raises ConfigurationError: naming every required value that is
            missing or empty.
        """
        missing = [
            f"{section}.{key} ({env})"
            for section, key, env in REQUIRED_KEYS
            if not self.config.get(section, {}).get(key)
        ]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        parse_admin_users(self.config["migration"]["admin_users"])

    @property
    def client(self) -> GhostClient:
        if self._client is None:
            self._client = GhostClient.from_config(self.config["ghost"])
        return self._client

    @property
    def admin_users(self) -> List[str]:
        return parse_admin_users(self.config["migration"]["admin_users"])

    @property
    def export_path(self) -> str:
        return os.path.join(self.config["paths"]["output_dir"], EXPORT_FILENAME)

    @property
    def archive_path(self) -> str:
        return os.path.join(self.config["paths"]["output_dir"], ARCHIVE_FILENAME)

    def export(self) -> ExportPackage:
        """
        Export the corpus to the Ghost import file.

        The file is rewritten from scratch on every run.
        """
        paths = self.config["paths"]
        exporter = CorpusExporter(paths["authors_dir"], paths["posts_dir"], self.admin_users)
        package = exporter.build_package(self.client)
        self.log_message(f"Exported {len(package.users)} users and {len(package.posts)} posts")

        for post in package.posts:
            if isinstance(post.author, UnboundAuthor):
                self.log_message(
                    f"Post '{post.slug}' author {post.author.name!r} matches no exported user; "
                    "exporting it without an author",
                    level="WARNING",
                )
                report_error(
                    "UNBOUND_AUTHOR",
                    {"slug": post.slug, "title": post.title},
                    report_dir=paths["report_dir"],
                )

        os.makedirs(paths["output_dir"], exist_ok=True)
        with open(self.export_path, "w", encoding="utf-8") as f:
            f.write(package.to_json())
        self.log_message(f"Wrote {self.export_path}")
        return package

    def export_images(self) -> AssetBundle:
        paths = self.config["paths"]
        bundle = package_assets(paths["post_images_dir"], paths["author_images_dir"], self.archive_path)
        for result in bundle.skipped:
            self.log_message(f"Skipped image directory: {result.error}", level="WARNING")
            report_error(
                "ASSET_DIR_SKIPPED",
                {"slug": result.error.path},
                result.error,
                report_dir=paths["report_dir"],
            )
        self.log_message(f"Wrote {len(bundle.entries)} images to {bundle.path}")
        return bundle

    def run(self, *, auto_import: bool = False) -> ExportPackage:
        """
        Export the corpus and images; with ``auto_import`` also import them
        into Ghost and reconcile authors and roles.
        """
        self.require_config()
        self.log_message("Initializing export...")
        package = self.export()
        self.export_images()

        if not auto_import:
            self.log_message("Export completed")
            self.log_message("Open Ghost Dashboard -> Settings -> Labs and import "
                             f"{self.archive_path} and {self.export_path}")
            return package

        run_ghost_pre_flight_checks(self.config, self.client)
        reconciler = Reconciler(
            self.client,
            self.admin_users,
            log=self.log_message,
            max_workers=self.config["migration"]["max_workers"],
            report_dir=self.config["paths"]["report_dir"],
        )
        result = reconciler.run(self.export_path, self.archive_path, package.posts, package.users)
        authors, roles = result["authors"], result["roles"]
        self.log_message(
            f"Reconciliation finished: {authors.writes} post authors and {roles.writes} user roles fixed"
        )
        self.log_message(f"Successfully imported your data to {self.config['ghost']['site_url']}")
        return package
