#!/usr/bin/env python3
"""
End-to-end dataset assembly on a small in-memory project.

Usage:
    python -m pytest tests/test_scenario.py -v
"""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


JAVA_SOURCE = """\
// utility
public class A {
    /* counter */
    int x;
}
"""


class FakeRepository:
    """Stands in for GitRepository: two files present in every tag"""
    source_suffix = '.java'

    def __init__(self, commits):
        self._commits = commits
        self.windows = []

    def list_files(self, tag):
        return ['A.java', 'B.java']

    def creation_date(self, path):
        return date(2019, 12, 4)

    def read_file(self, tag, path):
        return JAVA_SOURCE

    def commits_between(self, after, until):
        self.windows.append((after, until))
        return [c for c in self._commits if (after is None or c.date > after) and c.date <= until]


def make_timeline():
    from defect_almanac.releases import Timeline
    dated = [(f'{i}.0', date(2020, i * 2, 1)) for i in range(1, 5)]
    return Timeline.from_dates(dated, ['5.0'], release_fraction=0.5)


def make_commit(sha, day, path, added=10, deleted=2, message=''):
    from defect_almanac.issues import Commit, TouchedFile
    return Commit(sha, 'ann', day, message, (TouchedFile(path, added, deleted, 0),))


def make_reports(timeline):
    from defect_almanac.issues import DefectReport
    return [
        DefectReport('1', 'PRJ-1', timeline.by_index(1), timeline.by_index(2), timeline.by_index(1),
                     (make_commit('c1', date(2020, 3, 1), 'B.java'),)),
        DefectReport('2', 'PRJ-2', timeline.by_index(1), timeline.by_index(3), None,
                     (make_commit('c2', date(2020, 5, 1), 'A.java'),)),
    ]


def test_scenario_labels_and_split():
    """Known and estimated injected versions label the right file-releases"""
    from defect_almanac.extraction import assemble_dataset
    from defect_almanac.features import DatasetRow
    from defect_almanac.walk_forward import split_release

    timeline = make_timeline()
    rows_by_release = {
        release.index: {name: DatasetRow(release.index, name) for name in ('A.java', 'B.java')}
        for release in timeline.subset
    }

    df, labeled = assemble_dataset(timeline, make_reports(timeline), rows_by_release)

    # PRJ-2: P from PRJ-1 = (2 - 1) / (2 - 1) = 1 -> IV = 3 - 2 * 1 = 1
    assert [r.injected_version.index for r in labeled] == [1, 1]

    buggy = {(row.release_index, row.file_name) for row in df.itertuples() if row.buggy}
    assert buggy == {(1, 'A.java'), (2, 'A.java'), (1, 'B.java')}

    training, testing = split_release(df, 1)
    assert len(training) == 2
    assert len(testing) == 2


def test_scenario_without_analyzed_release():
    """A project with no release to analyze fails loudly"""
    from defect_almanac.exceptions import DataSourceError
    from defect_almanac.extraction import assemble_dataset
    from defect_almanac.releases import Timeline

    with pytest.raises(DataSourceError):
        assemble_dataset(Timeline.from_dates([], ['next']), [], {})


def test_scenario_file_metrics():
    """Commits land in the release whose window contains them"""
    from defect_almanac.extraction import build_file_metrics

    timeline = make_timeline()
    repo = FakeRepository([
        make_commit('c1', date(2020, 1, 15), 'A.java', added=10, deleted=2),
        make_commit('c2', date(2020, 3, 1), 'A.java', added=4, deleted=0),
        make_commit('c3', date(2020, 3, 2), 'Gone.java'),
    ])

    rows = build_file_metrics(repo, timeline)

    assert set(rows) == {1, 2}
    assert repo.windows == [(None, date(2020, 2, 1)), (date(2020, 2, 1), date(2020, 4, 1))]

    first = rows[1]['A.java']
    assert (first.commit_count, first.touched_loc) == (1, 12)
    assert (first.size, first.comments) == (3, 2)
    assert first.age == (date(2020, 2, 1) - date(2019, 12, 4)).days // 7

    second = rows[2]['A.java']
    assert (second.commit_count, second.touched_loc) == (1, 4)
    assert rows[2]['B.java'].commit_count == 0
    assert 'Gone.java' not in rows[2]


def test_scenario_dataset_variants():
    """The comment percentage column can be left out of the table"""
    from defect_almanac.config import DATASET_COLS
    from defect_almanac.extraction import assemble_dataset, build_file_metrics

    timeline = make_timeline()
    repo = FakeRepository([])

    with_comments, _ = assemble_dataset(timeline, [], build_file_metrics(repo, timeline))
    without, _ = assemble_dataset(timeline, [], build_file_metrics(repo, timeline), with_comments=False)

    assert list(with_comments.columns) == DATASET_COLS
    assert 'comment_percentage' not in without.columns
    assert with_comments['comment_percentage'].iloc[0] == pytest.approx(2 / 5)
    assert not with_comments['buggy'].any()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
