"""
Dataset assembly: buggy labels, one row per (release, method), and
deduplication across releases.
"""

from dataclasses import asdict, is_dataclass
from pathlib import Path

import pandas as pd

from .config import (
    RELEASE_COL,
    FILE_COL,
    METHOD_COL,
    LABEL_COL,
    FEATURE_COLS,
)
from .releases import sort_releases
from .signature import MethodSignature


def label_key(release: str, signature_key: str) -> str:
    """`release#path#declaration`"""
    return f'{release}#{signature_key}'


def build_buggy_labels(snapshots: dict, buggy_signatures) -> set[str]:
    """
    Label keys of every snapshot method changed by some bug fix.

    Labels use the whole fix history, whichever release the snapshot
    belongs to.
    """
    buggy_keys = {sig.key for sig in buggy_signatures}
    return {
        label_key(release, key)
        for release, records in snapshots.items()
        for key in records
        if key in buggy_keys
    }


def _record_dict(record) -> dict:
    if isinstance(record, dict):
        return dict(record)
    if is_dataclass(record):
        return asdict(record)
    return dict(vars(record))


def build_rows(snapshots: dict, labels: set[str]) -> pd.DataFrame:
    """Flatten {release: {key: record}} into one row per (release, method)"""
    rows = []
    for release, records in snapshots.items():
        for key, record in records.items():
            sig = MethodSignature.from_key(key)
            rows.append({
                RELEASE_COL: release,
                FILE_COL: sig.path,
                METHOD_COL: sig.declaration,
                **_record_dict(record),
                LABEL_COL: 'yes' if label_key(release, key) in labels else 'no',
            })

    if not rows:
        return pd.DataFrame(columns=[RELEASE_COL, FILE_COL, METHOD_COL] + FEATURE_COLS + [LABEL_COL])

    df = pd.DataFrame(rows)
    # release/file/method first, label last, extractor columns in between
    middle = [c for c in df.columns if c not in (RELEASE_COL, FILE_COL, METHOD_COL, LABEL_COL)]
    return df[[RELEASE_COL, FILE_COL, METHOD_COL] + middle + [LABEL_COL]]


def deduplicate(df: pd.DataFrame, release_col: str = RELEASE_COL) -> pd.DataFrame:
    """
    Drop rows identical on every column except the release.

    Within each group the row of the oldest release survives. Surviving rows
    keep their input order.
    """
    if df.empty:
        return df.copy()
    rank = {r: i for i, r in enumerate(sort_releases(df[release_col].unique()))}
    subset = [c for c in df.columns if c != release_col]
    ranked = df.assign(_rank=df[release_col].map(rank))
    kept = ranked.sort_values('_rank', kind='stable').drop_duplicates(subset=subset, keep='first')
    return kept.sort_index(kind='stable').drop(columns='_rank')


def write_dataset(df: pd.DataFrame, path: str | Path):
    df.to_csv(path, index=False)
