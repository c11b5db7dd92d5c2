"""
Defect reports, their commits, and the validity checks that filter them.
"""

import re
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from .exceptions import DataSourceError
from .releases import Release, Timeline


@dataclass(frozen=True)
class TouchedFile:
    """One source file changed by a commit"""
    path: str
    added: int = 0
    deleted: int = 0
    change_set_size: int = 0    # other source files in the same commit

    @property
    def churn(self) -> int:
        return self.added - self.deleted


@dataclass(frozen=True)
class Commit:
    sha: str
    author: str
    date: date
    message: str = ''
    touched_files: tuple = ()

    @property
    def file_names(self) -> list[str]:
        return [f.path for f in self.touched_files]


class IssueStatus(Enum):
    VALID = 'valid'
    NULL_VERSION = 'null version'
    INCONSISTENT = 'inconsistent versions'
    NULL_EMPTY = 'no injected version and no commits'
    IV_IS_FV = 'injected version equals fix version'
    EMPTY_TOUCHED_FILES = 'no touched files'
    AFTER_LAST_RELEASE = 'injected after last analyzed release'


@dataclass(frozen=True)
class DefectReport:
    """A fixed defect. `injected_version` is None until known or estimated."""
    report_id: str
    key: str
    opening_version: Optional[Release]
    fix_version: Optional[Release]
    injected_version: Optional[Release] = None
    commits: tuple = field(default=(), repr=False)

    @property
    def index(self) -> int:
        return parse_key_index(self.key)

    @property
    def touched_files(self) -> list[str]:
        """Files changed by the report's commits, first occurrence order"""
        seen = {}
        for commit in self.commits:
            for name in commit.file_names:
                seen.setdefault(name, None)
        return list(seen)

    def is_consistent(self) -> bool:
        opening = self.opening_version.index
        fix = self.fix_version.index
        if opening > fix:
            return False
        if self.injected_version is not None:
            return self.injected_version.index <= opening
        return True

    def validate(self) -> IssueStatus:
        """Checks applied before proportion estimation"""
        if self.opening_version is None or self.fix_version is None:
            return IssueStatus.NULL_VERSION
        if not self.is_consistent():
            return IssueStatus.INCONSISTENT
        if self.injected_version is None and not self.commits:
            return IssueStatus.NULL_EMPTY
        if self.injected_version is not None and self.injected_version.index == self.fix_version.index:
            return IssueStatus.IV_IS_FV
        return IssueStatus.VALID

    def validate_resolved(self, last_release: Release) -> IssueStatus:
        """Checks applied once the injected version is known or estimated"""
        if not self.is_consistent():
            return IssueStatus.INCONSISTENT
        if self.injected_version.index == self.fix_version.index:
            return IssueStatus.IV_IS_FV
        if not self.touched_files:
            return IssueStatus.EMPTY_TOUCHED_FILES
        if self.injected_version.index > last_release.index:
            return IssueStatus.AFTER_LAST_RELEASE
        return IssueStatus.VALID


def parse_key_index(key: str) -> int:
    """Sequential number of a tracker key, e.g. 'AVRO-1234' -> 1234"""
    try:
        return int(key.rsplit('-', 1)[1])
    except (IndexError, ValueError) as e:
        raise DataSourceError('Malformed issue key', {'key': key}) from e


def key_pattern(tracker_key: str) -> re.Pattern:
    """Matches issue keys of one project in commit messages"""
    return re.compile(rf'\b{re.escape(tracker_key)}-(\d+)\b')


def index_commits_by_key(commits: Iterable[Commit], tracker_key: str) -> dict[str, list[Commit]]:
    """Group commits by the issue keys their messages reference"""
    pattern = key_pattern(tracker_key)
    by_key = defaultdict(list)
    for commit in commits:
        for number in set(pattern.findall(commit.message)):
            by_key[f'{tracker_key}-{number}'].append(commit)
    return by_key


def report_from_issue(issue: dict, timeline: Timeline, commits_by_key: dict) -> DefectReport:
    """
    Build a report from a tracker issue payload.

    The injected version is the earliest affected version; the fix version the
    latest fix version; the opening version follows the creation date.
    """
    try:
        key = issue['key']
        fields = issue['fields']
        created = date.fromisoformat(fields['created'].split('T')[0])
        affected = _known_releases(fields.get('versions', []), timeline)
        fixed = _known_releases(fields.get('fixVersions', []), timeline)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DataSourceError('Malformed issue payload', {'issue': str(issue.get('key', '?'))}) from e

    return DefectReport(
        report_id=str(issue.get('id', '')),
        key=key,
        opening_version=timeline.release_for_date(created),
        fix_version=max(fixed, key=lambda r: r.index) if fixed else None,
        injected_version=min(affected, key=lambda r: r.index) if affected else None,
        commits=tuple(commits_by_key.get(key, ())),
    )


def _known_releases(versions: list, timeline: Timeline) -> list[Release]:
    releases = (timeline.by_name(v['name']) for v in versions)
    return [r for r in releases if r is not None]


def filter_reports(reports: Iterable[DefectReport], check, label: str) -> list[DefectReport]:
    """
    Keep reports for which `check(report)` is VALID, printing the counts per status.

    Returned reports are ordered by key index.
    """
    valid = []
    counts = Counter()
    for report in reports:
        status = check(report)
        counts[status] += 1
        if status is IssueStatus.VALID:
            valid.append(report)

    total = sum(counts.values())
    print(f"  {label}: {counts[IssueStatus.VALID]}/{total} valid", flush=True)
    for status, count in counts.items():
        if status is not IssueStatus.VALID:
            print(f"    filtered ({status.value}): {count}", flush=True)

    return sorted(valid, key=lambda r: r.index)
