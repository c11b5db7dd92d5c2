"""
Configuration and constants for Defect Almanac.
"""

import os
from dataclasses import dataclass

# =============================================================================
# PROJECT SETTINGS
# =============================================================================


@dataclass(frozen=True)
class ProjectConfig:
    """How to mine one project: tracker key, repository and tag naming"""
    name: str
    git_url: str
    tag_prefix: str = ''
    tag_suffix: str = ''
    source_suffix: str = '.java'
    release_fraction: float = 0.5

    @property
    def tracker_key(self) -> str:
        return self.name.upper()


DEFAULT_PROJECTS = [
    ProjectConfig('avro', 'https://github.com/apache/avro', tag_prefix='release-'),
    ProjectConfig('bookkeeper', 'https://github.com/apache/bookkeeper', tag_prefix='release-'),
]

# Only the first half of the released versions is analyzed: later releases
# have too many defects that are still undiscovered.
DEFAULT_RELEASE_FRACTION = 0.5

REPO_DIR = 'repo'
DATASET_DIR = 'dataset'
OUTPUT_DIR = 'output'

# =============================================================================
# ISSUE TRACKER SETTINGS
# =============================================================================

JIRA_BASE_URL = os.environ.get('JIRA_BASE_URL', 'https://issues.apache.org/jira')
JIRA_PAGE_SIZE = 1000

JIRA_BUG_QUERY = (
    'project="{key}" AND issueType="Bug" AND (status="closed" OR status="resolved") '
    'AND resolution="fixed" ORDER BY key ASC'
)

# =============================================================================
# PROPORTION
# =============================================================================

# Trailing moving window, as a fraction of the reports processed so far
PROPORTION_WINDOW = 0.03

# =============================================================================
# EVALUATION
# =============================================================================

RANDOM_STATE = 42

# Cost of a false positive (clean predicted buggy) and a false negative
CFP = 1.0
CFN = 10 * CFP

# Columns that identify a row but are not features
RELEASE_COL = 'release_index'
FILE_COL = 'file_name'
TARGET_COL = 'buggy'

DATASET_COLS = [
    RELEASE_COL, FILE_COL,
    'size', 'comment_percentage', 'touched_loc',
    'commit_count', 'author_count',
    'added_loc', 'max_added_loc', 'avg_added_loc',
    'churn', 'max_churn', 'avg_churn',
    'change_set_size', 'max_change_set_size', 'avg_change_set_size',
    'age', 'weighted_age', 'fix_count',
    TARGET_COL,
]

FEATURE_COLS = [c for c in DATASET_COLS if c not in (RELEASE_COL, FILE_COL, TARGET_COL)]

RESULT_COLS = [
    'dataset', 'training_release', 'training_data_pct',
    'defective_training_pct', 'defective_testing_pct',
    'classifier', 'resampling', 'feature_selection', 'cost_sensitive',
    'tp', 'fp', 'tn', 'fn',
    'precision', 'recall', 'auc', 'kappa',
]
