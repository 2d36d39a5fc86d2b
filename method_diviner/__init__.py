"""
Method Diviner - Method-Level Defect Datasets from Code History
===============================================================

Builds a labeled dataset for defect prediction: every method of every
release becomes a row of structural metrics plus its bug-fix history and
churn, tagged buggy when a bug-fixing commit later modified it.

Key difficulty: the same method has to be recognized across file revisions
and releases with nothing but its path and declaration, and line-based diff
hunks have to be reconciled with AST method boundaries.
"""

from .config import (
    SOURCE_EXTENSION,
    SELECTION_RATIO,
    HEAD_RELEASE,
    FEATURE_COLS,
    DATASET_COLS,
)

from .signature import (
    MethodSignature,
    MethodDeclaration,
    parse_methods,
    method_map,
)

from .diffs import (
    EditHunk,
    FileRevisionPair,
    RevisionDiffResolver,
    compute_hunks,
)

from .matcher import (
    MethodChangeMatcher,
    changed_methods,
)

from .attribution import (
    AttributionResult,
    BugAttributionAggregator,
    ChurnAccumulator,
    HistoryAccumulator,
)

from .features import (
    MethodFeatures,
    extract_method_features,
)

from .snapshot import (
    ReleaseSnapshotAssembler,
    iter_source_files,
)

from .releases import (
    SourceTreeProvider,
    list_git_tags,
    match_tags_to_versions,
    select_releases,
    sort_releases,
    version_key,
)

from .dataset import (
    build_buggy_labels,
    build_rows,
    deduplicate,
    write_dataset,
)

from .jira import (
    JiraClient,
    JiraTicket,
    build_bug_pattern,
)

from .github import (
    GitHubReleaseSource,
    parse_repo_url,
)

from .extraction import (
    DatasetResult,
    build_dataset,
    find_bug_fix_commits,
)

from .diagnostics import diagnose_dataset

__version__ = "0.1.0"

__all__ = [
    # Config
    "SOURCE_EXTENSION",
    "SELECTION_RATIO",
    "HEAD_RELEASE",
    "FEATURE_COLS",
    "DATASET_COLS",
    # Signatures
    "MethodSignature",
    "MethodDeclaration",
    "parse_methods",
    "method_map",
    # Diffs
    "EditHunk",
    "FileRevisionPair",
    "RevisionDiffResolver",
    "compute_hunks",
    # Matching and attribution
    "MethodChangeMatcher",
    "changed_methods",
    "AttributionResult",
    "BugAttributionAggregator",
    "ChurnAccumulator",
    "HistoryAccumulator",
    # Features and snapshots
    "MethodFeatures",
    "extract_method_features",
    "ReleaseSnapshotAssembler",
    "iter_source_files",
    # Releases
    "SourceTreeProvider",
    "list_git_tags",
    "match_tags_to_versions",
    "select_releases",
    "sort_releases",
    "version_key",
    # Dataset
    "build_buggy_labels",
    "build_rows",
    "deduplicate",
    "write_dataset",
    # Issue tracker and GitHub
    "JiraClient",
    "JiraTicket",
    "build_bug_pattern",
    "GitHubReleaseSource",
    "parse_repo_url",
    # Pipeline
    "DatasetResult",
    "build_dataset",
    "find_bug_fix_commits",
    # Diagnostics
    "diagnose_dataset",
]
