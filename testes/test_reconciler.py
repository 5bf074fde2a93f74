import copy
import os
import sys
import threading

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from ghost_migration.exceptions import TransportError
from ghost_migration.migrators.reconciler import Reconciler
from ghost_migration.models.ghost_export import BoundAuthor, PostRecord, UnboundAuthor, UserRecord

NOW = 1700000000000
CONTRIBUTOR = {"id": "role-contrib", "name": "Contributor"}
AUTHOR_ROLE = {"id": "role-author", "name": "Author"}
ADMIN_ROLE = {"id": "role-admin", "name": "Administrator"}


class FakeGhostClient:
    """In-memory Ghost that applies the writes it receives."""

    def __init__(self, posts, users, roles=None, fail_on=None, problems=None):
        self.posts = posts
        self.users = users
        self.roles = roles if roles is not None else [ADMIN_ROLE, AUTHOR_ROLE, CONTRIBUTOR]
        self.fail_on = fail_on
        self.problems = problems or []
        self.post_updates = []
        self.user_updates = []
        self.uploads = []
        self.find_posts_limits = []
        self._lock = threading.Lock()

    def upload_import_file(self, path):
        if self.fail_on == "upload":
            raise TransportError("import failed", status_code=500)
        self.uploads.append(path)
        return list(self.problems)

    def find_posts(self, limit=10, page=1, status="published"):
        self.find_posts_limits.append(limit)
        return {"posts": copy.deepcopy(self.posts[:limit])}

    def find_users(self, include_roles=True):
        return {"users": copy.deepcopy(self.users)}

    def find_role_by_name(self, name):
        return next((r for r in self.roles if r["name"] == name), None)

    def update_post(self, post):
        if self.fail_on == post["slug"]:
            raise TransportError("update failed", status_code=409)
        with self._lock:
            self.post_updates.append(post)
            for stored in self.posts:
                if stored["id"] == post["id"]:
                    stored["primary_author"] = post["primary_author"]
                    stored["authors"] = post["authors"]
        return {"posts": [post]}

    def update_user(self, user):
        if self.fail_on == user["slug"]:
            raise TransportError("update failed", status_code=500)
        with self._lock:
            self.user_updates.append(user)
            for stored in self.users:
                if stored["id"] == user["id"]:
                    stored["roles"] = user["roles"]
        return {"users": [user]}


def user(slug, uid, name, email):
    return UserRecord(slug=slug, id=uid, name=name, email=email, created_at=NOW, updated_at=NOW)


def post(slug, pid, author=None):
    return PostRecord(slug=slug, id=pid, title=slug, mobiledoc="{}", author=author or UnboundAuthor())


def remote_user(slug, gid, name, email, roles):
    return {"id": gid, "slug": slug, "name": name, "email": email, "roles": list(roles)}


@pytest.fixture
def export():
    users = [
        user("phil", 1, "Phil", "phil@example.com"),
        user("jane", 3, "Jane", "jane@example.com"),
        user("zed", 4, "Zed", "zed@example.com"),
    ]
    posts = [
        post("a", 1, BoundAuthor(user_id=3, name="Jane")),
        post("b", 2, BoundAuthor(user_id=4, name="Zed")),
        post("c", 3, BoundAuthor(user_id=1, name="Phil")),
        post("d", 4),
    ]
    return posts, users


@pytest.fixture
def ghost():
    users = [
        remote_user("phil", "g1", "Phil", "phil@example.com", [ADMIN_ROLE]),
        remote_user("jane", "g3", "Jane", "jane@example.com", [AUTHOR_ROLE]),
        remote_user("zed", "g4", "Zed", "zed@example.com", [CONTRIBUTOR]),
        remote_user("other", "g9", "Other", "other@example.com", [AUTHOR_ROLE]),
    ]
    owner = users[0]
    posts = [
        {"id": "pa", "slug": "a", "updated_at": "x", "primary_author": owner, "authors": [owner]},
        {"id": "pb", "slug": "b", "updated_at": "x", "primary_author": users[2], "authors": [users[2]]},
        {"id": "pc", "slug": "c", "updated_at": "x", "primary_author": owner, "authors": [owner]},
        {"id": "pd", "slug": "d", "updated_at": "x", "primary_author": owner, "authors": [owner]},
        {"id": "px", "slug": "not-exported", "primary_author": owner, "authors": [owner]},
    ]
    return FakeGhostClient(posts, users)


def make_reconciler(client, tmp_path):
    return Reconciler(client, ["Phil", "Mike"], log=lambda *a, **k: None, report_dir=str(tmp_path))


def test_wrong_authors_are_fixed(export, ghost, tmp_path):
    posts, users = export
    report = make_reconciler(ghost, tmp_path).check_posts_authors_and_fix(posts, users)
    assert report.mismatched == ["a"]
    assert report.fixed == ["a"]
    assert len(ghost.post_updates) == 1
    update = ghost.post_updates[0]
    assert update["id"] == "pa"
    assert update["updated_at"] == "x"
    assert update["primary_author"]["slug"] == "jane"
    assert [a["slug"] for a in update["authors"]] == ["jane"]


def test_posts_are_over_fetched(export, ghost, tmp_path):
    posts, users = export
    make_reconciler(ghost, tmp_path).check_posts_authors_and_fix(posts, users)
    assert ghost.find_posts_limits == [len(posts) + 100]


def test_author_repair_is_idempotent(export, ghost, tmp_path):
    posts, users = export
    reconciler = make_reconciler(ghost, tmp_path)
    reconciler.check_posts_authors_and_fix(posts, users)
    writes = len(ghost.post_updates)
    second = reconciler.check_posts_authors_and_fix(posts, users)
    assert second.consistent
    assert second.writes == 0
    assert len(ghost.post_updates) == writes


def test_missing_backend_user_is_skipped(export, ghost, tmp_path):
    posts, users = export
    ghost.users = [u for u in ghost.users if u["slug"] != "jane"]
    report = make_reconciler(ghost, tmp_path).check_posts_authors_and_fix(posts, users)
    assert report.skipped == ["a"]
    assert report.fixed == []
    assert ghost.post_updates == []


def test_failed_author_write_fails_the_stage(export, ghost, tmp_path):
    posts, users = export
    ghost.fail_on = "a"
    with pytest.raises(TransportError):
        make_reconciler(ghost, tmp_path).check_posts_authors_and_fix(posts, users)


def test_wrong_roles_are_fixed(export, ghost, tmp_path):
    _, users = export
    report = make_reconciler(ghost, tmp_path).check_users_roles_and_fix(users)
    # phil is an admin, zed already a contributor, other was not exported
    assert report.mismatched == ["jane"]
    assert [u["slug"] for u in ghost.user_updates] == ["jane"]
    assert ghost.user_updates[0]["roles"] == [CONTRIBUTOR]


def test_role_repair_is_idempotent(export, ghost, tmp_path):
    _, users = export
    reconciler = make_reconciler(ghost, tmp_path)
    reconciler.check_users_roles_and_fix(users)
    second = reconciler.check_users_roles_and_fix(users)
    assert second.writes == 0
    assert len(ghost.user_updates) == 1


def test_failed_role_write_fails_the_stage(export, ghost, tmp_path):
    _, users = export
    ghost.fail_on = "jane"
    with pytest.raises(TransportError):
        make_reconciler(ghost, tmp_path).check_users_roles_and_fix(users)


def test_run_imports_both_files_then_repairs(export, ghost, tmp_path):
    posts, users = export
    result = make_reconciler(ghost, tmp_path).run("export.json", "images.zip", posts, users)
    assert ghost.uploads == ["export.json", "images.zip"]
    assert result["authors"].fixed == ["a"]
    assert result["roles"].fixed == ["jane"]


def test_import_failure_aborts_run(export, ghost, tmp_path):
    posts, users = export
    ghost.fail_on = "upload"
    with pytest.raises(TransportError):
        make_reconciler(ghost, tmp_path).run("export.json", "images.zip", posts, users)
    assert ghost.post_updates == [] and ghost.user_updates == []


def test_import_problems_are_reported(export, ghost, tmp_path):
    ghost.problems = [{"message": "Duplicate entry", "help": "User"}]
    report = make_reconciler(ghost, tmp_path).import_package("export.json", "images.zip")
    assert report.problems["export.json"] == ghost.problems
    assert (tmp_path / "errors.jsonl").exists()
