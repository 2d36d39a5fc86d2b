"""
Revision diffs: changed source files of a commit against its primary parent.
"""

import difflib
from dataclasses import dataclass
from pathlib import Path

from pydriller import Git

from .config import SOURCE_EXTENSION
from .signature import source_lines


@dataclass(frozen=True)
class EditHunk:
    """One changed region: pre-image lines [begin_a, end_a), post-image lines [begin_b, end_b), 0-based"""
    begin_a: int
    end_a: int
    begin_b: int
    end_b: int

    @property
    def weight(self) -> int:
        """Added plus removed lines"""
        return (self.end_b - self.begin_b) + (self.end_a - self.begin_a)

    def overlaps(self, start_line: int, end_line: int) -> bool:
        """True if the post-image range touches a 1-based inclusive line range"""
        return self.begin_b + 1 <= end_line and self.end_b >= start_line


def compute_hunks(before: str, after: str) -> list[EditHunk]:
    """Line-based edit list between two file contents"""
    matcher = difflib.SequenceMatcher(None, source_lines(before), source_lines(after), autojunk=False)
    return [
        EditHunk(i1, i2, j1, j2)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes()
        if tag != 'equal'
    ]


@dataclass
class FileRevisionPair:
    """Pre- and post-image of one modified source file"""
    path: str
    before: str
    after: str
    hunks: list[EditHunk] | None = None

    def __post_init__(self):
        if self.hunks is None:
            self.hunks = compute_hunks(self.before, self.after)


class RevisionDiffResolver:
    """Resolve the modified source files of a commit versus its first parent"""

    def __init__(self, repo_path: str | Path, extension: str = SOURCE_EXTENSION):
        self.git = Git(str(repo_path))
        self.extension = extension
        self.root_commits = 0
        self.unreadable = 0
        self.warnings = []

    def _warn(self, message: str):
        print(f"  WARNING: {message}", flush=True)
        self.warnings.append(message)

    def resolve(self, commit) -> list[FileRevisionPair]:
        """
        Diff a commit against its primary parent.

        Only files modified in place with the source extension are returned;
        added, deleted and renamed files carry no method-level diff. Root
        commits yield nothing.
        """
        if not commit.parents:
            self.root_commits += 1
            print(f"  Skipping root commit {commit.hash[:8]} (no parent to diff)", flush=True)
            return []

        target = self.git.repo.commit(commit.hash)
        parent = target.parents[0]

        pairs = []
        for diff in parent.diff(target):
            if diff.change_type != 'M' or not diff.b_path.endswith(self.extension):
                continue
            try:
                before = diff.a_blob.data_stream.read().decode('utf-8')
                after = diff.b_blob.data_stream.read().decode('utf-8')
            except UnicodeDecodeError as e:
                self.unreadable += 1
                self._warn(f"unreadable blob {diff.b_path} at {commit.hash[:8]}: {e}")
                continue
            pairs.append(FileRevisionPair(diff.b_path, before, after))
        return pairs

    def get_stats(self) -> dict:
        """Return counters for skipped work"""
        return {
            'root_commits': self.root_commits,
            'unreadable_files': self.unreadable,
        }
