"""
Import of the export files into Ghost and repair of what the importer gets
wrong.

The Ghost importer is not atomic with respect to two things the export
file asks for:

* posts may end up with the importing staff user as primary author instead
  of the author named in ``posts_authors``;
* users may keep a role other than the ``Contributor`` role requested in
  ``roles_users``.

:class:`Reconciler` uploads the files, compares what Ghost stored with what
was exported and issues one corrective write per wrong entity.  Both checks
only read when Ghost is already consistent, so the whole sequence can be
re-run after a partial outage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ghost_migration.exceptions import ConfigurationError
from ghost_migration.extractors.corpus_exporter import CONTRIBUTOR_ROLE
from ghost_migration.models.ghost_export import BoundAuthor, PostRecord, UserRecord
from ghost_migration.utils.errors import report_error, report_ok
from ghost_migration.utils.fanout import fan_out

# Extra posts fetched beyond the exported count, to cover posts that
# already existed in Ghost.
POSTS_FETCH_MARGIN = 100


@dataclass
class RepairReport:
    stage: str
    checked: int = 0
    mismatched: List[str] = field(default_factory=list)
    fixed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return len(self.fixed)

    @property
    def consistent(self) -> bool:
        return not self.mismatched


@dataclass
class ImportReport:
    problems: Dict[str, List[Any]] = field(default_factory=dict)


class Reconciler:
    """
    Drives the import → author repair → role repair sequence.

    :param client: A :class:`~ghost_migration.migrators.ghost_client.GhostClient`
        (or anything with the same read/write helpers).
    :param admin_users: Administrator display names, left out of the role
        repair.
    :param log: Callable ``(message, level)`` used for progress messages.
    """

    def __init__(
        self,
        client,
        admin_users: Sequence[str],
        *,
        log: Optional[Callable[..., None]] = None,
        max_workers: int = 8,
        report_dir: Optional[str] = None,
    ) -> None:
        self.client = client
        self.admin_users = list(admin_users)
        self.max_workers = max_workers
        self.report_dir = report_dir
        self._log = log or (lambda message, level="INFO": print(f"[{level}] {message}"))

    def run(
        self,
        export_path: str,
        archive_path: str,
        posts: Sequence[PostRecord],
        users: Sequence[UserRecord],
    ) -> Dict[str, Any]:
        """Run the three stages in order; any exception aborts the rest."""
        imported = self.import_package(export_path, archive_path)
        authors = self.check_posts_authors_and_fix(posts, users)
        roles = self.check_users_roles_and_fix(users)
        return {"import": imported, "authors": authors, "roles": roles}

    ###########################################################################
    # Import
    ###########################################################################

    def import_package(self, export_path: str, archive_path: str) -> ImportReport:
        report = ImportReport()
        for path in (export_path, archive_path):
            self._log(f"Importing {path} into Ghost")
            problems = self.client.upload_import_file(path)
            report.problems[path] = problems
            for problem in problems:
                self._log(f"Ghost import problem in {path}: {problem}", "WARNING")
                report_error(
                    "IMPORT_PROBLEM",
                    {"slug": path, "title": _problem_text(problem)},
                    report_dir=self.report_dir,
                )
            report_ok("IMPORTED", {"slug": path}, {"problems": len(problems)}, report_dir=self.report_dir)
        return report

    ###########################################################################
    # Author repair
    ###########################################################################

    def check_posts_authors_and_fix(
        self, posts: Sequence[PostRecord], users: Sequence[UserRecord]
    ) -> RepairReport:
        """
        Make every exported post's primary author in Ghost the user the
        export bound it to.
        """
        report = RepairReport(stage="authors")
        expected = {p.slug: p for p in posts}
        users_by_id = {u.id: u for u in users}

        remote = self.client.find_posts(limit=len(posts) + POSTS_FETCH_MARGIN)
        imported = [p for p in remote.get("posts") or [] if p.get("slug") in expected]
        report.checked = len(imported)

        invalid: List[tuple] = []
        for remote_post in imported:
            post = expected[remote_post["slug"]]
            if not isinstance(post.author, BoundAuthor):
                continue
            user = users_by_id.get(post.author.user_id)
            if user is None:
                continue
            primary = remote_post.get("primary_author") or {}
            if primary.get("email") != user.email:
                report.mismatched.append(post.slug)
                invalid.append((remote_post, user))

        if not invalid:
            self._log(f"All {report.checked} imported posts have the expected author")
            return report

        self._log(f"{len(invalid)} posts have the wrong author, fixing", "WARNING")
        remote_users = self._remote_users_by_slug()
        tasks = []
        for remote_post, user in invalid:
            remote_user = remote_users.get(user.slug)
            if remote_user is None:
                report.skipped.append(remote_post["slug"])
                report_error(
                    "AUTHOR_NOT_IN_GHOST",
                    {"slug": remote_post["slug"], "name": user.name},
                    report_dir=self.report_dir,
                )
                continue
            tasks.append(self._post_author_task(remote_post, remote_user))

        fan_out(tasks, max_workers=self.max_workers)
        for remote_post, user in invalid:
            if remote_post["slug"] not in report.skipped:
                report.fixed.append(remote_post["slug"])
                report_ok("AUTHOR_FIXED", remote_post, {"author": user.slug}, report_dir=self.report_dir)
        return report

    def _post_author_task(self, remote_post: Dict[str, Any], remote_user: Dict[str, Any]) -> Callable[[], Any]:
        def task() -> Any:
            return self.client.update_post(
                {**remote_post, "primary_author": remote_user, "authors": [remote_user]}
            )
        return task

    ###########################################################################
    # Role repair
    ###########################################################################

    def check_users_roles_and_fix(self, users: Iterable[UserRecord]) -> RepairReport:
        """Make every exported non-administrator a Contributor in Ghost."""
        report = RepairReport(stage="roles")
        slugs = {u.slug for u in users}

        remote_users = [
            u for u in self.client.find_users(include_roles=True).get("users") or []
            if u.get("slug") in slugs
        ]
        report.checked = len(remote_users)

        invalid = [
            u for u in remote_users
            if u.get("name") not in self.admin_users
            and any(r.get("name") != CONTRIBUTOR_ROLE for r in u.get("roles") or [])
        ]
        if not invalid:
            self._log(f"All {report.checked} imported users have the expected role")
            return report

        report.mismatched = [u["slug"] for u in invalid]
        self._log(f"{len(invalid)} users have the wrong role, fixing", "WARNING")
        role = self.client.find_role_by_name(CONTRIBUTOR_ROLE)
        if not role:
            raise ConfigurationError(f"Role '{CONTRIBUTOR_ROLE}' not found in Ghost")

        fan_out([self._user_role_task(u, role) for u in invalid], max_workers=self.max_workers)
        for user in invalid:
            report.fixed.append(user["slug"])
            report_ok("ROLE_FIXED", user, {"role": CONTRIBUTOR_ROLE}, report_dir=self.report_dir)
        return report

    def _user_role_task(self, remote_user: Dict[str, Any], role: Dict[str, Any]) -> Callable[[], Any]:
        def task() -> Any:
            return self.client.update_user({**remote_user, "roles": [role]})
        return task

    def _remote_users_by_slug(self) -> Dict[str, Dict[str, Any]]:
        return {u["slug"]: u for u in self.client.find_users(include_roles=True).get("users") or [] if u.get("slug")}


def _problem_text(problem: Any) -> str:
    if isinstance(problem, dict):
        return str(problem.get("message") or problem.get("help") or problem)
    return str(problem)
