"""
Injected-version estimation with the incremental proportion heuristic.

For a report with a known injected version IV, opening version OV and fix
version FV the proportion is

    P = (FV - IV) / (FV - OV)

A report without IV gets IV = FV - (FV - OV) * P, where P is averaged over the
most recently processed reports, estimated ones included.
"""

import math
from dataclasses import replace
from typing import Iterable, Optional, Sequence

from .config import PROPORTION_WINDOW
from .issues import DefectReport
from .releases import Timeline


def report_proportion(report: DefectReport) -> float:
    fix = report.fix_version.index
    opening = report.opening_version.index
    if fix == opening:
        return 1.0
    return (fix - report.injected_version.index) / (fix - opening)


def proportion_window(processed: Sequence[DefectReport],
                      window_fraction: Optional[float] = PROPORTION_WINDOW) -> Sequence[DefectReport]:
    """Trailing ceil(fraction * N) processed reports; all of them when fraction is None"""
    if window_fraction is None:
        return processed
    size = math.ceil(window_fraction * len(processed))
    return processed[len(processed) - size:] if size else processed[:0]


def mean_proportion(window: Sequence[DefectReport]) -> float:
    if not window:
        return 1.0
    return sum(report_proportion(r) for r in window) / len(window)


def estimate_injected_index(opening: int, fix: int, p: float) -> int:
    # Half-up rounding, never below the first release
    index = math.floor(fix - (fix - opening) * p + 0.5)
    return max(index, 1)


def estimate_report(report: DefectReport, processed: Sequence[DefectReport], timeline: Timeline,
                    window_fraction: Optional[float] = PROPORTION_WINDOW) -> DefectReport:
    """Return `report` with an injected version, estimating it from `processed` when missing"""
    if report.injected_version is not None:
        return report

    p = mean_proportion(proportion_window(processed, window_fraction))
    index = estimate_injected_index(report.opening_version.index, report.fix_version.index, p)

    if index > timeline.release_count:
        # Not shipped yet: attribute to ongoing work
        injected = timeline.first_unreleased or timeline.released[-1]
    else:
        injected = timeline.by_index(index)

    return replace(report, injected_version=injected)


def estimate_injected_versions(reports: Iterable[DefectReport], timeline: Timeline,
                               window_fraction: Optional[float] = PROPORTION_WINDOW) -> list[DefectReport]:
    """
    Resolve every report's injected version in key-index order.

    The pass is strictly sequential: each estimate sees the reports resolved
    before it, including earlier estimates.
    """
    processed: list[DefectReport] = []
    estimated = 0
    for report in sorted(reports, key=lambda r: r.index):
        resolved = estimate_report(report, processed, timeline, window_fraction)
        if resolved is not report:
            estimated += 1
        processed.append(resolved)

    print(f"  Proportion: {estimated}/{len(processed)} injected versions estimated", flush=True)
    return processed
