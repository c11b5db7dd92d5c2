"""
Dataset construction pipeline: releases, file metrics, defect labels.
"""

from typing import Iterable, Optional

import pandas as pd

from .config import PROPORTION_WINDOW, REPO_DIR, ProjectConfig
from .exceptions import DataSourceError
from .features import DatasetRow, build_release_rows, measure_size, rows_to_frame
from .issues import DefectReport, filter_reports, index_commits_by_key, report_from_issue
from .jira import JiraClient
from .labeling import propagate_labels
from .proportion import estimate_injected_versions
from .releases import ReleaseNameAdapter, Timeline, build_timeline
from .repository import GitRepository, clone_or_pull


def build_file_metrics(repo: GitRepository, timeline: Timeline,
                       measure_sizes: bool = True) -> dict[int, dict[str, DatasetRow]]:
    """First pass: one row per source file per analyzed release, with commit metrics"""
    print(f"  Building file metrics...", flush=True)
    rows_by_release = {}

    for release in timeline.subset:
        files = repo.list_files(release.tag)
        creation_dates = {path: repo.creation_date(path) for path in files}
        after, until = timeline.window(release)
        size_of = None
        if measure_sizes:
            size_of = lambda path, tag=release.tag: measure_size(repo.read_file(tag, path), repo.source_suffix)

        rows_by_release[release.index] = build_release_rows(
            release.index, release.date, creation_dates,
            repo.commits_between(after, until), size_of,
        )
        print(f"    Release {release.index} ({release.name}): {len(files)} files", flush=True)

    return rows_by_release


def assemble_dataset(timeline: Timeline, reports: Iterable[DefectReport],
                     rows_by_release: dict[int, dict[str, DatasetRow]],
                     window_fraction: Optional[float] = PROPORTION_WINDOW,
                     with_comments: bool = True) -> tuple[pd.DataFrame, list[DefectReport]]:
    """
    Label the file rows and flatten them into the dataset table.

    Reports go through the pre-estimation checks, proportion estimation, then
    the post-estimation checks inside label propagation.
    """
    if timeline.last_analyzed is None:
        raise DataSourceError('No release to analyze', {'released': str(timeline.release_count)})

    valid = filter_reports(reports, lambda r: r.validate(), 'Retrieved reports')
    resolved = estimate_injected_versions(valid, timeline, window_fraction)
    labeled = propagate_labels(resolved, rows_by_release, timeline.last_analyzed)

    rows = [row for release_rows in rows_by_release.values() for row in release_rows.values()]
    return rows_to_frame(rows, with_comments), labeled


def extract_dataset(project: ProjectConfig, repo_dir: str = REPO_DIR,
                    jira: JiraClient = None, with_comments: bool = True) -> pd.DataFrame:
    """Mine one project into its labeled per-file-per-release dataset"""
    print(f"\nProcessing: {project.name}", flush=True)

    repo = GitRepository(clone_or_pull(project.git_url, repo_dir), project.source_suffix)
    jira = jira or JiraClient(project.tracker_key)
    adapter = ReleaseNameAdapter(project.tag_prefix, project.tag_suffix)

    timeline = build_timeline(jira.get_versions(), adapter, repo.tag_date, project.release_fraction)
    rows_by_release = build_file_metrics(repo, timeline)

    print(f"  Retrieving defect reports...", flush=True)
    commits_by_key = index_commits_by_key(repo.commits(), project.tracker_key)
    reports = [report_from_issue(issue, timeline, commits_by_key) for issue in jira.iter_issues()]

    df, labeled = assemble_dataset(timeline, reports, rows_by_release, with_comments=with_comments)

    stats = jira.get_stats()
    print(f"  Jira API: {stats['api_calls']} calls, {stats['issues_fetched']} issues", flush=True)
    print(f"  Extracted: {len(df)} rows, {int(df['buggy'].sum())} buggy", flush=True)
    return df
