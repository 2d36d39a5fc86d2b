"""
Dataset diagnostics for assessing training data quality.
"""

import numpy as np
import pandas as pd

from .config import RELEASE_COL, LABEL_COL


def diagnose_dataset(raw: pd.DataFrame, clean: pd.DataFrame) -> dict:
    """Summarize a built dataset and flag likely problems"""
    print(f"\n{'='*60}")
    print("DATASET DIAGNOSTIC")
    print(f"{'='*60}")

    buggy = (clean[LABEL_COL] == 'yes').to_numpy() if len(clean) else np.array([], dtype=bool)
    buggy_ratio = float(np.mean(buggy)) if buggy.size else 0.0
    duplicates = len(raw) - len(clean)
    per_release = clean[RELEASE_COL].value_counts(sort=False).to_dict() if len(clean) else {}

    issues = []
    if not len(clean):
        issues.append("Dataset is empty")
    elif not buggy.any():
        issues.append("No buggy methods - check the ticket key pattern and bug-fix commits")
    elif buggy_ratio > 0.5:
        issues.append(f"Buggy ratio {buggy_ratio:.1%} is unusually high")
    if len(raw) and duplicates / len(raw) > 0.9:
        issues.append(f"{duplicates / len(raw):.0%} of rows were duplicates across releases")

    print(f"\nRows:            {len(raw):>6} raw, {len(clean):>6} clean ({duplicates} duplicates)")
    print(f"Buggy methods:   {int(buggy.sum()):>6} ({buggy_ratio:.1%})")
    for release, count in per_release.items():
        print(f"  {release:<20} {count:>6} rows")

    if issues:
        print(f"\nIssues:")
        for issue in issues:
            print(f"  - {issue}")

    return {
        'raw_rows': len(raw),
        'clean_rows': len(clean),
        'duplicates': duplicates,
        'buggy': int(buggy.sum()),
        'buggy_ratio': buggy_ratio,
        'rows_per_release': per_release,
        'issues': issues,
    }
