import json
import os
import sys
import zipfile

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from ghost_migration.exceptions import ConfigurationError
from ghost_migration.migration_tool import GhostMigrationTool
from ghost_migration.utils.pre_flight_checks import PreFlightCheckError

CONTRIBUTOR = {"id": "role-contrib", "name": "Contributor"}
ENV_KEYS = ("GHOST_API", "GHOST_SITE", "GHOST_USER", "GHOST_PASSWORD", "ADMIN_USERS")


class FakeGhost:
    def __init__(self):
        self.uploads = []
        self.users = [
            {"id": "g1", "slug": "jane-doe", "name": "Jane Doe", "email": "jane-doe@example.com",
             "roles": [{"id": "role-author", "name": "Author"}]},
        ]

    def find_roles(self):
        return [CONTRIBUTOR]

    def find_role_by_name(self, name):
        return CONTRIBUTOR if name == "Contributor" else None

    def upload_import_file(self, path):
        self.uploads.append(os.path.basename(path))
        return []

    def find_posts(self, limit=10, page=1, status="published"):
        author = self.users[0]
        return {"posts": [{"id": "p1", "slug": "hello", "primary_author": author, "authors": [author]}]}

    def find_users(self, include_roles=True):
        return {"users": self.users}

    def update_post(self, post):
        raise AssertionError("post authors already match")

    def update_user(self, user):
        self.users[0] = user
        return {"users": [user]}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config(tmp_path):
    authors = tmp_path / "src" / "content" / "authors"
    blog = tmp_path / "src" / "content" / "blog"
    images = tmp_path / "public" / "images" / "posts"
    avatars = tmp_path / "public" / "images" / "authors"
    for d in (authors, blog, images, avatars):
        d.mkdir(parents=True)
    (authors / "jane-doe.mdx").write_text('---\nname: "Jane Doe"\nphoto: authors/jane.jpg\n---\n', encoding="utf-8")
    (authors / "admin.mdx").write_text("---\nname: Site Admin\n---\n", encoding="utf-8")
    (blog / "hello.mdx").write_text(
        '---\ntitle: Hello\nauthor: "Jane Doe"\ndate: "2023-01-01"\n---\n![x](/images/posts/x.png)\n',
        encoding="utf-8",
    )
    (images / "x.png").write_bytes(b"png")
    (avatars / "jane.jpg").write_bytes(b"jpg")
    return {
        "ghost": {
            "api_url": "https://blog.example.com/ghost/api/admin",
            "site_url": "https://blog.example.com",
            "username": "owner@example.com",
            "password": "secret",
        },
        "migration": {"admin_users": "Site Admin"},
        "paths": {
            "authors_dir": str(authors),
            "posts_dir": str(blog),
            "post_images_dir": str(images),
            "author_images_dir": str(avatars),
            "output_dir": str(tmp_path / ".ghost"),
            "report_dir": str(tmp_path / "reports"),
        },
    }


def test_export_writes_import_file_and_archive(config, tmp_path):
    tool = GhostMigrationTool(config, client=FakeGhost())
    tool.run()

    with open(tmp_path / ".ghost" / "migrationFromNext.json", encoding="utf-8") as f:
        db = json.load(f)
    data = db["data"]
    assert db["meta"]["version"] == "5.38.0"
    assert {u["slug"]: u["id"] for u in data["users"]} == {"admin": 1, "jane-doe": 3}
    assert data["posts"][0]["author_id"] == 3
    assert data["posts_authors"] == [{"post_id": 1, "user_id": 3}]
    assert data["roles_users"] == [{"user_id": 3, "role_id": "role-contrib"}]

    with zipfile.ZipFile(tmp_path / ".ghost" / "images.zip") as zf:
        assert sorted(zf.namelist()) == ["authors/jane.jpg", "posts/x.png"]
    assert (tmp_path / "reports" / "migration.log").exists()


def test_auto_import_runs_reconciliation(config):
    ghost = FakeGhost()
    GhostMigrationTool(config, client=ghost).run(auto_import=True)
    assert ghost.uploads == ["migrationFromNext.json", "images.zip"]
    assert ghost.users[0]["roles"] == [CONTRIBUTOR]


def test_missing_configuration_is_fatal(config):
    config["ghost"]["password"] = ""
    config["migration"]["admin_users"] = ""
    tool = GhostMigrationTool(config, client=FakeGhost())
    with pytest.raises(ConfigurationError) as excinfo:
        tool.run()
    assert "ghost.password" in str(excinfo.value)
    assert "migration.admin_users" in str(excinfo.value)


def test_configuration_is_read_from_environment(monkeypatch):
    monkeypatch.setenv("GHOST_API", "https://env.example.com/ghost/api/admin")
    monkeypatch.setenv("ADMIN_USERS", "A,B")
    tool = GhostMigrationTool()
    assert tool.config["ghost"]["api_url"] == "https://env.example.com/ghost/api/admin"
    assert tool.admin_users == ["A", "B"]


def test_pre_flight_rejects_missing_contributor_role(config):
    ghost = FakeGhost()
    ghost.find_roles = lambda: []
    ghost.find_role_by_name = lambda name: CONTRIBUTOR
    with pytest.raises(PreFlightCheckError):
        GhostMigrationTool(config, client=ghost).run(auto_import=True)
    assert ghost.uploads == []


def test_main_exits_with_failure_on_missing_config(monkeypatch, tmp_path):
    import main as entry_point

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(entry_point, "load_dotenv", lambda: None)
    assert entry_point.main([]) == 1


def test_main_logs_and_fails_on_undecodable_author(monkeypatch, tmp_path):
    import main as entry_point

    authors = tmp_path / "src" / "content" / "authors"
    authors.mkdir(parents=True)
    (tmp_path / "src" / "content" / "blog").mkdir()
    (authors / "broken.mdx").write_bytes(b"---\nname: \xff\n---\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(entry_point, "load_dotenv", lambda: None)
    monkeypatch.setenv("GHOST_API", "https://blog.example.com/ghost/api/admin")
    monkeypatch.setenv("GHOST_SITE", "https://blog.example.com")
    monkeypatch.setenv("GHOST_USER", "owner@example.com")
    monkeypatch.setenv("GHOST_PASSWORD", "secret")
    monkeypatch.setenv("ADMIN_USERS", "Site Admin")

    assert entry_point.main([]) == 1
    log = (tmp_path / "reports" / "migration" / "migration.log").read_text(encoding="utf-8")
    assert "Migration failed" in log
    assert "broken.mdx" in log
