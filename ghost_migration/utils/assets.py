"""
Packaging of the site's images into a zip archive for the Ghost importer.

Layout of the archive:

* ``authors/<file>`` – author avatars (flat directory)
* ``posts/<file>`` – images at the root of the post image tree
* ``images/posts/<relative-path>/<file>`` – images in nested post folders

Each directory is walked on its own and reports a :class:`SubtreeResult`.
A directory that cannot be read is recorded as skipped with an
:class:`~ghost_migration.exceptions.AssetWalkError` and the walk carries on,
so the archive may be missing part of the assets.
"""

from __future__ import annotations

import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Set, Tuple, Union

from ghost_migration.exceptions import AssetWalkError

AUTHORS_ARCHIVE_DIR = "authors"
POSTS_ROOT_ARCHIVE_DIR = "posts"
NESTED_POSTS_ARCHIVE_DIR = "images/posts"


@dataclass
class SubtreeResult:
    """Outcome of reading one directory: its files, or why it was skipped."""

    relative_path: str
    entries: List[Tuple[Path, str]] = field(default_factory=list)
    error: Optional[AssetWalkError] = None

    @property
    def skipped(self) -> bool:
        return self.error is not None


@dataclass
class AssetBundle:
    path: Path
    results: List[SubtreeResult] = field(default_factory=list)

    @property
    def entries(self) -> List[str]:
        return [arcname for result in self.results for _, arcname in result.entries]

    @property
    def skipped(self) -> List[SubtreeResult]:
        return [result for result in self.results if result.skipped]


def _list_dir(directory: Path) -> Tuple[List[os.DirEntry], Optional[AssetWalkError]]:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: e.name), None
    except OSError as e:
        return [], AssetWalkError(str(directory), e.strerror or str(e))


def _entry_kind(entry: os.DirEntry) -> str:
    """``"dir"``, ``"file"`` or ``""``; raises ``OSError`` when ``stat`` fails."""
    if entry.is_dir():
        return "dir"
    if entry.is_file():
        return "file"
    return ""


def walk_avatars(avatars_dir: Union[str, Path]) -> SubtreeResult:
    avatars_dir = Path(avatars_dir)
    result = SubtreeResult(relative_path=AUTHORS_ARCHIVE_DIR)
    entries, error = _list_dir(avatars_dir)
    if error:
        result.error = error
        return result
    for entry in entries:
        try:
            kind = _entry_kind(entry)
        except OSError:
            continue
        if kind == "file":
            result.entries.append((Path(entry.path), f"{AUTHORS_ARCHIVE_DIR}/{entry.name}"))
    return result


def walk_post_images(
    images_root: Union[str, Path],
    relative_path: str = "",
    *,
    visited: Optional[Set[str]] = None,
) -> List[SubtreeResult]:
    """
    Walk the post image tree below ``images_root``.

    Symbolic links are followed, but a directory already visited through
    another path is recorded as skipped instead of being walked again.

    :return: One result per directory visited, parents before children.
    """
    images_root = Path(images_root)
    directory = images_root / relative_path if relative_path else images_root
    result = SubtreeResult(relative_path=relative_path)
    results = [result]
    if visited is None:
        visited = set()

    real = os.path.realpath(directory)
    if real in visited:
        result.error = AssetWalkError(str(directory), "directory already walked through another path")
        return results

    entries, error = _list_dir(directory)
    if error:
        result.error = error
        return results
    visited.add(real)

    if relative_path:
        prefix = f"{NESTED_POSTS_ARCHIVE_DIR}/{relative_path}/"
    else:
        prefix = f"{POSTS_ROOT_ARCHIVE_DIR}/"

    for entry in entries:
        child = str(PurePosixPath(relative_path) / entry.name) if relative_path else entry.name
        try:
            kind = _entry_kind(entry)
        except OSError as e:
            results.append(
                SubtreeResult(relative_path=child, error=AssetWalkError(entry.path, e.strerror or str(e)))
            )
            continue
        if kind == "dir":
            results.extend(walk_post_images(images_root, child, visited=visited))
        elif kind == "file":
            result.entries.append((Path(entry.path), f"{prefix}{entry.name}"))
    return results


def _write_archive(path: Path, results: List[SubtreeResult]) -> List[SubtreeResult]:
    """Write every entry of ``results``; files that cannot be read are dropped."""
    failed = []
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for result in results:
            written = []
            for source, arcname in result.entries:
                try:
                    zf.write(source, arcname)
                except OSError as e:
                    failed.append(
                        SubtreeResult(relative_path=arcname, error=AssetWalkError(str(source), e.strerror or str(e)))
                    )
                    continue
                written.append((source, arcname))
            result.entries = written
    return failed


def package_assets(
    images_root: Union[str, Path],
    avatars_dir: Union[str, Path],
    out_path: Union[str, Path],
) -> AssetBundle:
    """
    Write every reachable image into ``out_path``, replacing any previous
    archive.  The archive is built next to ``out_path`` and moved into place
    once complete.

    :param images_root: Root of the nested post image tree.
    :param avatars_dir: Flat directory of author avatars.
    :param out_path: Location of the zip archive.
    :return: The archive path and the per-directory results.
    """
    out_path = Path(out_path)
    results = [walk_avatars(avatars_dir)]
    results.extend(walk_post_images(images_root))

    out_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = out_path.with_name(out_path.name + ".tmp")
    try:
        results.extend(_write_archive(tmp_path, results))
        os.replace(tmp_path, out_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
    return AssetBundle(path=out_path, results=results)
