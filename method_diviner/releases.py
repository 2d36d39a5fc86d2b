"""
Release ordering, selection, and materialized source trees.
"""

import io
import math
import re
import shutil
import tarfile
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path

from pydriller import Git

from .config import HEAD_RELEASE, RELEASE_PREFIX, SELECTION_RATIO

_LEADING_DIGITS = re.compile(r'^\d+')


def normalize_version(name: str) -> str:
    """Strip tag prefixes: 'v4.2.0' and 'release-4.2.0' both become '4.2.0'"""
    return RELEASE_PREFIX.sub('', name.strip())


def version_key(name: str) -> tuple:
    """
    Sort key for release names, oldest first.

    HEAD sorts before every tagged release. Each dot-separated part counts by
    its leading digits (0 if none) and trailing zero parts are ignored, so
    '4.2' and '4.2.0' compare equal.
    """
    if name == HEAD_RELEASE:
        return (0, ())
    parts = []
    for part in normalize_version(name).split('.'):
        m = _LEADING_DIGITS.match(part)
        parts.append(int(m.group()) if m else 0)
    while parts and parts[-1] == 0:
        parts.pop()
    return (1, tuple(parts))


def sort_releases(names) -> list[str]:
    return sorted(names, key=version_key)


def match_tags_to_versions(tags, version_names) -> list[str]:
    """
    Keep the git tags that name an issue-tracker version, oldest first.

    Falls back to the single HEAD pseudo-release when nothing matches.
    """
    known = {normalize_version(v) for v in version_names}
    matched = sort_releases(t for t in tags if normalize_version(t) in known)
    if not matched:
        print(f"  WARNING: no tag matches a tracker version, using {HEAD_RELEASE}", flush=True)
        return [HEAD_RELEASE]
    return matched


def select_releases(releases: list[str], ratio: float = SELECTION_RATIO) -> list[str]:
    """
    Keep the oldest fraction of an ordered release list (at least one).

    Applied after every release has been labeled, so it only decides which
    snapshots are emitted.
    """
    if not 0 < ratio <= 1:
        raise ValueError(f"selection ratio must be in (0, 1], got {ratio}")
    keep = max(1, math.floor(len(releases) * ratio))
    return list(releases[:keep])


def list_git_tags(repo_path: str | Path) -> list[str]:
    """Tag names of a local repository, oldest version first"""
    return sort_releases(tag.name for tag in Git(str(repo_path)).repo.tags)


def extract_tar(fileobj, dest: Path):
    """Unpack a tar stream into dest, refusing links and paths that leave it"""
    with tarfile.open(fileobj=fileobj) as tar:
        tar.extractall(dest, filter='data')


def extract_zip(fileobj, dest: Path):
    """Unpack a zip stream into dest after checking every member stays inside it"""
    root = Path(dest).resolve()
    with zipfile.ZipFile(fileobj) as archive:
        for name in archive.namelist():
            if not (root / name).resolve().is_relative_to(root):
                raise ValueError(f"unsafe path in archive: {name}")
        archive.extractall(root)


def find_single_subdir(directory: Path) -> Path:
    """Archives often wrap the tree in one top-level folder; unwrap it"""
    subdirs = [p for p in directory.iterdir() if p.is_dir()]
    return subdirs[0] if len(subdirs) == 1 else directory


class SourceTreeProvider:
    """
    Materialize a release's source tree on disk.

    HEAD is the live working tree. Tags are exported with `git archive`, or
    downloaded as GitHub zipballs when a release source is given.
    """

    def __init__(self, repo_path: str | Path, github=None):
        self.repo_path = Path(repo_path)
        self.git = Git(str(repo_path))
        self.github = github

    @contextmanager
    def materialize(self, release: str):
        if release == HEAD_RELEASE:
            yield self.repo_path
            return

        tmp = Path(tempfile.mkdtemp(prefix=f'{self.repo_path.name}-{release}-'))
        try:
            if self.github is not None:
                root = self.github.download_zipball(release, tmp)
            else:
                root = self._export(release, tmp)
            yield root
        finally:
            shutil.rmtree(tmp, ignore_errors=True)

    def _export(self, release: str, dest: Path) -> Path:
        buffer = io.BytesIO()
        self.git.repo.archive(buffer, treeish=release, format='tar')
        buffer.seek(0)
        extract_tar(buffer, dest)
        return dest
