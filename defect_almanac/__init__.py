"""
Defect Almanac - Release-Level Defect Datasets and Walk-Forward Evaluation
==========================================================================

Mines a project's releases, commits and fixed bug reports into a labeled
per-file-per-release dataset, then evaluates defect-prediction classifiers
with walk-forward validation so that no model ever sees a later release.

Key insight: most bug reports never state the version that introduced the
defect. The proportion heuristic estimates it from the reports that do.
"""

from .config import (
    DEFAULT_PROJECTS,
    DATASET_COLS,
    FEATURE_COLS,
    RESULT_COLS,
    ProjectConfig,
)

from .exceptions import (
    AlmanacError,
    ConfigurationError,
    DataSourceError,
    ModelFitError,
)

from .releases import (
    Release,
    ReleaseNameAdapter,
    Timeline,
    build_timeline,
)

from .issues import (
    Commit,
    DefectReport,
    IssueStatus,
    TouchedFile,
)

from .proportion import estimate_injected_versions

from .labeling import propagate_labels

from .features import (
    DatasetRow,
    measure_size,
    rows_to_frame,
)

from .walk_forward import (
    split_release,
    walk_forward,
)

from .rebalancing import (
    Resampling,
    rebalance,
)

from .model import (
    Classifier,
    CostSensitive,
    ExperimentResult,
    FeatureSelection,
    Grid,
    evaluate_step,
    walk_forward_evaluation,
    results_to_frame,
)

from .extraction import (
    assemble_dataset,
    extract_dataset,
)

from .diagnostics import diagnose_dataset

__version__ = "0.1.0"

__all__ = [
    # Config
    "DEFAULT_PROJECTS",
    "DATASET_COLS",
    "FEATURE_COLS",
    "RESULT_COLS",
    "ProjectConfig",
    # Errors
    "AlmanacError",
    "ConfigurationError",
    "DataSourceError",
    "ModelFitError",
    # Releases and reports
    "Release",
    "ReleaseNameAdapter",
    "Timeline",
    "build_timeline",
    "Commit",
    "DefectReport",
    "IssueStatus",
    "TouchedFile",
    # Labeling
    "estimate_injected_versions",
    "propagate_labels",
    "DatasetRow",
    "measure_size",
    "rows_to_frame",
    # Evaluation
    "split_release",
    "walk_forward",
    "Resampling",
    "rebalance",
    "Classifier",
    "CostSensitive",
    "ExperimentResult",
    "FeatureSelection",
    "Grid",
    "evaluate_step",
    "walk_forward_evaluation",
    "results_to_frame",
    # Pipeline
    "assemble_dataset",
    "extract_dataset",
    "diagnose_dataset",
]
