"""
Per-file, per-release feature rows and size measurement.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Optional

import pandas as pd
from radon.raw import analyze

from .config import DATASET_COLS, RELEASE_COL, FILE_COL
from .issues import Commit


@dataclass
class DatasetRow:
    """Features and label of one file in one release"""
    release_index: int
    file_name: str
    creation_date: Optional[date] = None

    size: int = 0                   # code lines, comments excluded
    comments: int = 0
    touched_loc: int = 0            # added + deleted over the release
    commit_count: int = 0
    age: int = 0                    # weeks since the file was created
    fix_count: int = 0
    buggy: bool = False

    authors: set = field(default_factory=set)
    added: list = field(default_factory=list)
    churns: list = field(default_factory=list)
    change_sets: list = field(default_factory=list)

    @property
    def comment_percentage(self) -> float:
        total = self.size + self.comments
        return self.comments / total if total else 0.0

    @property
    def weighted_age(self) -> int:
        return self.age * self.touched_loc

    def set_sizes(self, code: int, comments: int):
        self.size = code
        self.comments = comments

    def set_age(self, release_date: date):
        if self.creation_date is not None:
            self.age = (release_date - self.creation_date).days // 7

    def record_commit(self, author: str, added: int, deleted: int, change_set_size: int):
        self.commit_count += 1
        self.touched_loc += added + deleted
        self.authors.add(author)
        self.added.append(added)
        self.churns.append(added - deleted)
        self.change_sets.append(change_set_size)

    def mark_buggy(self):
        self.buggy = True
        self.fix_count += 1

    def to_dict(self) -> dict:
        """Flat record in DATASET_COLS order"""
        return {
            RELEASE_COL: self.release_index,
            FILE_COL: self.file_name,
            'size': self.size,
            'comment_percentage': self.comment_percentage,
            'touched_loc': self.touched_loc,
            'commit_count': self.commit_count,
            'author_count': len(self.authors),
            **_aggregates('added_loc', 'max_added_loc', 'avg_added_loc', self.added),
            **_aggregates('churn', 'max_churn', 'avg_churn', self.churns),
            **_aggregates('change_set_size', 'max_change_set_size', 'avg_change_set_size', self.change_sets),
            'age': self.age,
            'weighted_age': self.weighted_age,
            'fix_count': self.fix_count,
            'buggy': self.buggy,
        }


def _aggregates(total: str, maximum: str, average: str, values: list) -> dict:
    if not values:
        return {total: 0, maximum: 0, average: 0.0}
    return {total: sum(values), maximum: max(values), average: sum(values) / len(values)}


# =============================================================================
# SIZE MEASUREMENT
# =============================================================================

C_LINE_COMMENT = re.compile(r'^\s*//')
C_BLOCK_OPEN = re.compile(r'/\*')
C_BLOCK_CLOSE = re.compile(r'\*/')


def measure_size(source: str, suffix: str) -> tuple[int, int]:
    """(code lines, comment lines) of a source file"""
    if suffix == '.py':
        raw = analyze(source)
        return raw.sloc, raw.comments + raw.multi
    return _count_c_family(source)


def _count_c_family(source: str) -> tuple[int, int]:
    code = 0
    comments = 0
    in_block = False
    for line in source.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if in_block:
            comments += 1
            if C_BLOCK_CLOSE.search(stripped):
                in_block = False
            continue
        if C_LINE_COMMENT.match(stripped):
            comments += 1
        elif stripped.startswith('/*'):
            comments += 1
            in_block = not C_BLOCK_CLOSE.search(stripped[2:])
        else:
            code += 1
            opened = C_BLOCK_OPEN.search(stripped)
            if opened and not C_BLOCK_CLOSE.search(stripped[opened.end():]):
                in_block = True
    return code, comments


# =============================================================================
# DATASET CONSTRUCTION
# =============================================================================

def build_release_rows(release_index: int, release_date: date, creation_dates: dict,
                       commits: Iterable[Commit],
                       size_of: Optional[Callable[[str], tuple]] = None) -> dict[str, DatasetRow]:
    """
    Rows for the files present in one release, keyed by path.

    Commits are attributed to the files they touched that exist in the release.
    """
    rows = {
        path: DatasetRow(release_index, path, creation_date=created)
        for path, created in sorted(creation_dates.items())
    }

    for row in rows.values():
        row.set_age(release_date)
        if size_of is not None:
            row.set_sizes(*size_of(row.file_name))

    for commit in commits:
        for touched in commit.touched_files:
            row = rows.get(touched.path)
            if row is not None:
                row.record_commit(commit.author, touched.added, touched.deleted, touched.change_set_size)

    return rows


def rows_to_frame(rows: Iterable[DatasetRow], with_comments: bool = True) -> pd.DataFrame:
    """DatasetFrame: one row per file per release, ordered by release then path"""
    df = pd.DataFrame([row.to_dict() for row in rows], columns=DATASET_COLS)
    df = df.sort_values([RELEASE_COL, FILE_COL], kind='stable').reset_index(drop=True)
    df['buggy'] = df['buggy'].astype(bool)
    if not with_comments:
        df = df.drop(columns=['comment_percentage'])
    return df
