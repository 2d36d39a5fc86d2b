"""
Bug attribution: which methods each bug-fix commit touched, and how often and
how much every method has been changed by fixes.
"""

from collections import defaultdict
from dataclasses import dataclass, field

from .diffs import FileRevisionPair
from .matcher import MethodChangeMatcher
from .signature import MethodSignature, parse_methods


class HistoryAccumulator:
    """Distinct bug-fix commits per method declaration"""

    def __init__(self):
        self._commits = defaultdict(set)

    def record(self, commit_hash: str, signatures: list[MethodSignature]):
        for sig in signatures:
            self._commits[sig.declaration].add(commit_hash)

    def get(self, declaration: str, default: int = 0) -> int:
        commits = self._commits.get(declaration)
        return len(commits) if commits else default

    def to_dict(self) -> dict[str, int]:
        return {decl: len(commits) for decl, commits in self._commits.items()}


class ChurnAccumulator:
    """
    Lines added plus removed by fixes, per method declaration.

    A hunk is credited to every post-fix method whose declared line range it
    overlaps, so nested functions and the function enclosing them are both
    charged for the same edit.
    """

    def __init__(self):
        self._lines = defaultdict(int)

    def record(self, pair: FileRevisionPair):
        """Credit every hunk of a file pair; raises if the post-image does not parse"""
        if not pair.hunks:
            return
        methods = parse_methods(pair.after, pair.path)
        for hunk in pair.hunks:
            for method in methods:
                if hunk.overlaps(method.start_line, method.end_line):
                    self._lines[method.signature.declaration] += hunk.weight

    def get(self, declaration: str, default: int = 0) -> int:
        return self._lines.get(declaration, default)

    def to_dict(self) -> dict[str, int]:
        return dict(self._lines)


@dataclass
class AttributionResult:
    """Everything one pass over the bug-fix commits produces"""
    changed: dict[str, list[MethodSignature]] = field(default_factory=dict)
    histories: HistoryAccumulator = field(default_factory=HistoryAccumulator)
    churn: ChurnAccumulator = field(default_factory=ChurnAccumulator)
    warnings: list[str] = field(default_factory=list)
    root_commits: int = 0

    @property
    def buggy_signatures(self) -> set[MethodSignature]:
        """Union of methods changed by any fix"""
        return {sig for sigs in self.changed.values() for sig in sigs}


class BugAttributionAggregator:
    """Drive the diff resolver and method matcher over bug-fix commits"""

    def __init__(self, resolver, matcher: MethodChangeMatcher = None):
        self.resolver = resolver
        self.matcher = matcher or MethodChangeMatcher()

    def run(self, commits) -> AttributionResult:
        """Single diff pass building attributions, histories and churn together"""
        result = AttributionResult()
        total = 0
        for commit in commits:
            if not commit.parents:
                result.root_commits += 1
                print(f"  Skipping root commit {commit.hash[:8]} (no parent to diff)", flush=True)
                continue

            touched = []
            for pair in self.resolver.resolve(commit):
                signatures = self.matcher.match(pair)
                if signatures is None:
                    # both sides must parse for the pair to count at all
                    continue
                for sig in signatures:
                    if sig not in touched:
                        touched.append(sig)
                result.churn.record(pair)

            result.changed[commit.hash] = touched
            result.histories.record(commit.hash, touched)
            total += len(touched)

        result.warnings = (
            list(getattr(self.resolver, 'warnings', [])) + self.matcher.warnings + result.warnings
        )
        print(f"  Commits with extractable diffs: {len(result.changed)}", flush=True)
        print(f"  Method changes (with repeats): {total}, unique buggy methods: {len(result.buggy_signatures)}",
              flush=True)
        return result

    def attribute_all(self, commits) -> dict[str, list[MethodSignature]]:
        return self.run(commits).changed

    def history(self, commits) -> dict[str, int]:
        return self.run(commits).histories.to_dict()

    def churn(self, commits) -> dict[str, int]:
        return self.run(commits).churn.to_dict()
