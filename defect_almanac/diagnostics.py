"""
Dataset diagnostics for assessing walk-forward suitability.
"""

import pandas as pd

from .config import RELEASE_COL, TARGET_COL


def diagnose_dataset(df: pd.DataFrame, name: str = 'dataset') -> dict:
    """Report per-release defect ratios and problems that weaken evaluation"""
    print(f"\n{'='*60}")
    print(f"DATASET DIAGNOSTIC: {name}")
    print(f"{'='*60}")

    per_release = df.groupby(RELEASE_COL)[TARGET_COL].agg(['size', 'sum'])
    per_release['ratio'] = per_release['sum'] / per_release['size']
    releases = len(per_release)
    buggy_ratio = df[TARGET_COL].mean() if len(df) else 0.0

    quality_score = 0
    issues = []

    # Walk-forward needs at least two steps
    if releases >= 3:
        quality_score += 25
    else:
        issues.append(f"Only {releases} releases - too few walk-forward steps")

    # Defect ratio (ideal: 5-40%)
    if 0.05 <= buggy_ratio <= 0.40:
        quality_score += 25
    else:
        issues.append(f"Defect ratio {buggy_ratio:.1%} outside ideal range (5-40%)")

    # Single-class testing releases produce degenerate evaluations
    single_class = [int(r) for r, row in per_release.iterrows() if row['sum'] in (0, row['size'])]
    if not single_class:
        quality_score += 25
    else:
        issues.append(f"Single-class releases {single_class} - their results may be discarded")

    # Enough rows per release
    smallest = int(per_release['size'].min()) if releases else 0
    if smallest >= 20:
        quality_score += 25
    else:
        issues.append(f"Smallest release has {smallest} files")

    print(f"\nMetrics:")
    print(f"  Rows:           {len(df):>6}")
    print(f"  Releases:       {releases:>6}")
    print(f"  Defect ratio:   {buggy_ratio:>6.1%}")
    for release, row in per_release.iterrows():
        print(f"    release {int(release):>3}: {int(row['sum']):>5}/{int(row['size']):<5} ({row['ratio']:.1%})")

    print(f"\nQuality Score: {quality_score}/100")

    if issues:
        print(f"\nIssues:")
        for issue in issues:
            print(f"  - {issue}")

    return {
        'quality_score': quality_score,
        'buggy_ratio': float(buggy_ratio),
        'releases': releases,
        'single_class_releases': single_class,
        'issues': issues,
    }
