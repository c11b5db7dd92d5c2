"""
Label propagation: a defect makes its files buggy from the injected version
up to, but excluding, the fix version.
"""

from typing import Iterable

from .features import DatasetRow
from .issues import DefectReport, filter_reports
from .releases import Release


def affected_releases(report: DefectReport, last_release: Release) -> range:
    """Release indexes in [injected, fix), capped at the last analyzed release"""
    stop = min(report.fix_version.index, last_release.index + 1)
    return range(report.injected_version.index, stop)


def propagate_labels(reports: Iterable[DefectReport], rows_by_release: dict[int, dict[str, DatasetRow]],
                     last_release: Release) -> list[DefectReport]:
    """
    Mark rows buggy for every valid resolved report and return those reports.

    Each report increments the fix count of a file once per covered release.
    """
    valid = filter_reports(
        reports, lambda r: r.validate_resolved(last_release), 'Resolved reports'
    )

    marked = 0
    for report in valid:
        for release_index in affected_releases(report, last_release):
            rows = rows_by_release.get(release_index, {})
            for name in report.touched_files:
                row = rows.get(name)
                if row is not None:
                    row.mark_buggy()
                    marked += 1

    print(f"  Labeling: {marked} file-release labels from {len(valid)} reports", flush=True)
    return valid
