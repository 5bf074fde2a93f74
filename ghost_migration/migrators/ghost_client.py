"""
Ghost Admin API client for the markdown → Ghost migration.

This module implements the low-level interactions with the Ghost Admin
REST API that the migration needs: reading the role catalog, posts and
users, updating posts and users, and uploading files to the database
importer (the same endpoint used by *Settings → Labs → Import*).

Authentication uses a staff user session: the client logs in once with the
configured username and password and reuses the ``ghost-admin-api-session``
cookie for every later call.  There is no retry logic; a failed request
raises :class:`~ghost_migration.exceptions.TransportError` straight away.

Corrective writes are fanned out over a thread pool, and each calling
thread gets its own ``requests.Session``.  The login cookie is sent as a
header, so those sessions hold no login state of their own.

Usage example::

    from ghost_migration.migrators.ghost_client import GhostClient

    client = GhostClient(
        api_url="https://blog.example.com/ghost/api/admin",
        site_url="https://blog.example.com",
        username="owner@example.com",
        password="...",
    )
    contributor = client.find_role_by_name("Contributor")
    posts = client.find_posts(limit=50)["posts"]
    problems = client.upload_import_file(".ghost/migrationFromNext.json")
"""

from __future__ import annotations

import mimetypes
import os
import threading
from typing import Any, Dict, List, Optional

import requests

from ghost_migration.exceptions import ConfigurationError, TransportError

SESSION_COOKIE = "ghost-admin-api-session"
ACCEPT_VERSION = "v5.0"
POST_FORMATS = "mobiledoc,lexical"
USER_AGENT = "ghost-migration/0.1"


###############################################################################
# Session handling
###############################################################################

class GhostSession:
    """
    Holds the admin session cookie for one client.

    The first call to :meth:`cookie` logs in; every later call returns the
    cached value.  The lock makes the lazy login safe when corrective writes
    run on several threads.
    """

    def __init__(
        self,
        http: requests.Session,
        api_url: str,
        site_url: str,
        username: str,
        password: str,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self._http = http
        self._api_url = api_url
        self._site_url = site_url
        self._username = username
        self._password = password
        self._timeout = timeout
        self._cookie: Optional[str] = None
        self._lock = threading.Lock()

    def cookie(self) -> str:
        with self._lock:
            if self._cookie is None:
                self._cookie = self._login()
            return self._cookie

    def _login(self) -> str:
        url = f"{self._api_url}/session/"
        try:
            resp = self._http.post(
                url,
                json={"username": self._username, "password": self._password},
                headers={"Origin": self._site_url, "Accept-Version": ACCEPT_VERSION},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Could not reach Ghost: {e}", method="POST", url=url) from e
        if resp.status_code >= 400:
            raise TransportError(
                "Ghost login failed", method="POST", url=url, status_code=resp.status_code, body=resp.text
            )

        value = resp.cookies.get(SESSION_COOKIE)
        if not value:
            value = _cookie_from_header(resp.headers.get("set-cookie", ""))
        if not value:
            raise TransportError("Ghost login did not return a session cookie", method="POST", url=url)
        return f"{SESSION_COOKIE}={value}"


def _cookie_from_header(header: str) -> Optional[str]:
    for part in header.replace(",", ";").split(";"):
        name, _, value = part.strip().partition("=")
        if name == SESSION_COOKIE and value:
            return value
    return None


###############################################################################
# Client
###############################################################################

class GhostClient:
    """
    Thin authenticated wrapper around the Ghost Admin API.

    :param api_url: Admin API base, e.g. ``https://site/ghost/api/admin``.
    :param site_url: Site origin, sent as ``Origin``/``Referer``.
    :param username: Staff user email.
    :param password: Staff user password.
    :param timeout: Per-request timeout in seconds; ``None`` waits for the
        transport to resolve.
    """

    def __init__(
        self,
        api_url: str,
        site_url: str,
        username: str,
        password: str,
        *,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.site_url = site_url.rstrip("/")
        self.timeout = timeout
        self._shared_http = http
        self._local = threading.local()
        self.session = GhostSession(
            http or requests.Session(), self.api_url, self.site_url, username, password, timeout=timeout
        )

    @property
    def http(self) -> requests.Session:
        """The injected transport, or a ``requests.Session`` owned by the calling thread."""
        if self._shared_http is not None:
            return self._shared_http
        http = getattr(self._local, "http", None)
        if http is None:
            http = self._local.http = requests.Session()
        return http

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "GhostClient":
        """Build a client from the ``ghost`` section of the configuration."""
        missing = [k for k in ("api_url", "site_url", "username", "password") if not cfg.get(k)]
        if missing:
            raise ConfigurationError(f"Missing Ghost configuration: {', '.join(missing)}")
        return cls(
            cfg["api_url"],
            cfg["site_url"],
            cfg["username"],
            cfg["password"],
            timeout=cfg.get("timeout"),
        )

    def headers(self, *, json_body: bool = True) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, text/plain, */*",
            "Accept-Version": ACCEPT_VERSION,
            "Origin": self.site_url,
            "Referer": f"{self.site_url}/ghost/",
            "User-Agent": USER_AGENT,
            "X-Requested-With": "XMLHttpRequest",
            "Cookie": self.session.cookie(),
        }
        if json_body:
            headers["Content-Type"] = "application/json; charset=UTF-8"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform an authenticated request against ``path`` (relative to the
        Admin API base).

        :return: The decoded JSON body, or ``{}`` when the body is empty.
        :raises TransportError: on network errors and HTTP status >= 400.
        """
        url = f"{self.api_url}/{path.lstrip('/')}"
        headers = self.headers(json_body=files is None)
        try:
            resp = self.http.request(
                method, url, params=params, json=json, files=files, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"Network error: {e}", method=method, url=url) from e

        if resp.status_code >= 400:
            raise TransportError(
                "Ghost API error", method=method, url=url, status_code=resp.status_code, body=resp.text
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(
                "Ghost returned a non-JSON body", method=method, url=url, status_code=resp.status_code, body=resp.text
            ) from e

    ###########################################################################
    # Roles
    ###########################################################################

    def find_roles(self) -> List[Dict[str, Any]]:
        """Roles the logged-in user may assign."""
        data = self.request("GET", "roles/", params={"permissions": "assign"})
        return data.get("roles") or []

    def find_role_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        return next((r for r in self.find_roles() if r.get("name") == name), None)

    ###########################################################################
    # Posts and users
    ###########################################################################

    def find_posts(self, limit: int = 10, page: int = 1, status: str = "published") -> Dict[str, Any]:
        """
        One page of posts.

        :return: The raw payload, with ``posts`` and ``meta.pagination``.
        """
        params = {"formats": POST_FORMATS, "limit": limit, "page": page}
        if status:
            params["filter"] = f"status:{status}"
        return self.request("GET", "posts/", params=params)

    def find_users(self, include_roles: bool = True) -> Dict[str, Any]:
        params = {"limit": "all"}
        if include_roles:
            params["include"] = "roles"
        return self.request("GET", "users/", params=params)

    def update_post(self, post: Dict[str, Any]) -> Dict[str, Any]:
        """
        Save ``post`` (a full post object as returned by Ghost, so that
        ``updated_at`` passes Ghost's collision check).
        """
        return self.request(
            "PUT", f"posts/{post['id']}/", params={"formats": POST_FORMATS}, json={"posts": [post]}
        )

    def update_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return self.request(
            "PUT", f"users/{user['id']}/", params={"include": "roles"}, json={"users": [user]}
        )

    ###########################################################################
    # Importer
    ###########################################################################

    def upload_import_file(self, path: str) -> List[Any]:
        """
        Upload ``path`` to the database importer.

        :return: The ``problems`` list reported by Ghost (empty on a clean
            import).
        """
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as fh:
            data = self.request(
                "POST", "db/", files={"importfile": (os.path.basename(path), fh, content_type)}
            )
        return data.get("problems") or []
