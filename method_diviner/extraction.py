"""
Repository mining and dataset construction pipeline.
"""

import re
from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from pydriller import Repository

from .attribution import AttributionResult, BugAttributionAggregator
from .config import HEAD_RELEASE, SELECTION_RATIO
from .dataset import build_buggy_labels, build_rows, deduplicate
from .diffs import RevisionDiffResolver
from .features import extract_method_features
from .jira import build_bug_pattern
from .releases import SourceTreeProvider, select_releases
from .snapshot import ReleaseSnapshotAssembler


@dataclass
class DatasetResult:
    """Output of one pipeline run"""
    raw: pd.DataFrame
    clean: pd.DataFrame
    releases: list[str]
    kept_releases: list[str]
    attribution: AttributionResult


def find_bug_fix_commits(repo_path: str | Path, pattern: re.Pattern | None) -> list:
    """Commits whose message references one of the confirmed bug tickets"""
    if pattern is None:
        print("  WARNING: no fixed bug tickets, no commit counts as a bug fix", flush=True)
        return []
    fixes = [
        commit for commit in Repository(str(repo_path)).traverse_commits()
        if pattern.search(commit.msg)
    ]
    print(f"  Bug-fix commits found: {len(fixes)}", flush=True)
    return fixes


def build_snapshots(releases: list[str], provider: SourceTreeProvider,
                    assembler: ReleaseSnapshotAssembler) -> dict:
    """Feature map of every release, in release order"""
    snapshots = {}
    for release in releases:
        print(f"  Processing release {release}", flush=True)
        with provider.materialize(release) as root:
            snapshots[release] = assembler.assemble(release, root)
    return snapshots


def build_dataset(repo_path: str | Path, tickets, releases: list[str] = None,
                  ratio: float = SELECTION_RATIO, github=None,
                  extractor=extract_method_features) -> DatasetResult:
    """
    Build the labeled method dataset of a repository.

    `releases` must be ordered oldest first; without releases the live
    working tree is the only snapshot. Every release is labeled before the
    oldest `ratio` of them is selected.
    """
    repo_path = Path(repo_path)
    print(f"\nProcessing: {repo_path.name}", flush=True)

    pattern = build_bug_pattern(tickets)
    fixes = find_bug_fix_commits(repo_path, pattern)

    print(f"  Attributing bug fixes to methods...", flush=True)
    resolver = RevisionDiffResolver(repo_path)
    attribution = BugAttributionAggregator(resolver).run(fixes)

    releases = list(releases) if releases else [HEAD_RELEASE]
    print(f"  Extracting features for {len(releases)} releases...", flush=True)
    assembler = ReleaseSnapshotAssembler(attribution.histories, attribution.churn, extractor=extractor)
    snapshots = build_snapshots(releases, SourceTreeProvider(repo_path, github), assembler)
    labels = build_buggy_labels(snapshots, attribution.buggy_signatures)

    kept = select_releases(releases, ratio)
    print(f"  Releases kept (oldest {ratio:.0%}): {kept}", flush=True)
    raw = build_rows({r: snapshots[r] for r in kept}, labels)
    clean = deduplicate(raw)
    print(f"  Rows: {len(raw)} raw, {len(clean)} after removing duplicates", flush=True)

    return DatasetResult(
        raw=raw,
        clean=clean,
        releases=releases,
        kept_releases=kept,
        attribution=attribution,
    )
