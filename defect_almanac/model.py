"""
Walk-forward model evaluation over a grid of configurations.

Every step trains on releases 1..k and tests on release k+1. For each grid
cell: feature selection -> rebalancing -> fit -> (cost-sensitive wrap) ->
evaluation on the untouched testing partition.
"""

import heapq
import itertools
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.dummy import DummyClassifier
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import (
    cohen_kappa_score,
    confusion_matrix,
    precision_score,
    recall_score,
    roc_auc_score,
)
from sklearn.naive_bayes import GaussianNB
from sklearn.neighbors import KNeighborsClassifier
from sklearn.utils.validation import has_fit_parameter
from xgboost import XGBClassifier

from .config import CFN, CFP, RANDOM_STATE, RELEASE_COL, RESULT_COLS, TARGET_COL
from .exceptions import ModelFitError
from .rebalancing import Resampling, rebalance
from .walk_forward import walk_forward


class Classifier(Enum):
    RANDOM_FOREST = 'random_forest'
    NAIVE_BAYES = 'naive_bayes'
    IBK = 'ibk'
    XGBOOST = 'xgboost'


class FeatureSelection(Enum):
    NO_FEATURE_SELECTION = 'no_feature_selection'
    BEST_FIRST = 'best_first'


class CostSensitive(Enum):
    NO_COST_SENSITIVE = 'no_cost_sensitive'
    SENSITIVE_THRESHOLD = 'sensitive_threshold'
    SENSITIVE_LEARNING = 'sensitive_learning'


@dataclass(frozen=True)
class Grid:
    """Configuration axes; cells are visited in their cartesian-product order"""
    feature_selection: tuple = tuple(FeatureSelection)
    resampling: tuple = tuple(Resampling)
    classifiers: tuple = tuple(Classifier)
    cost_sensitive: tuple = tuple(CostSensitive)

    def cells(self) -> list[tuple]:
        return list(itertools.product(
            self.feature_selection, self.resampling, self.classifiers, self.cost_sensitive
        ))


@dataclass(frozen=True)
class ExperimentResult:
    dataset: str
    training_release: int
    classifier: Classifier
    feature_selection: FeatureSelection
    resampling: Resampling
    cost_sensitive: CostSensitive
    training_data_pct: float
    defective_training_pct: float
    defective_testing_pct: float
    tp: int
    fp: int
    tn: int
    fn: int
    precision: float
    recall: float
    auc: float
    kappa: float

    @property
    def is_valid(self) -> bool:
        """Perfect precision, recall and AUC together mark a degenerate evaluation"""
        return not (self.precision == 1 and self.recall == 1 and self.auc == 1)

    def to_dict(self) -> dict:
        record = asdict(self)
        for key in ('classifier', 'feature_selection', 'resampling', 'cost_sensitive'):
            record[key] = record[key].name
        return {col: record[col] for col in RESULT_COLS}


# =============================================================================
# FEATURE SELECTION
# =============================================================================

MAX_STALE_EXPANSIONS = 5


def cfs_merit(subset: frozenset, class_corr: pd.Series, feature_corr: pd.DataFrame) -> float:
    """Correlation-based merit: relevant to the class, not redundant with each other"""
    k = len(subset)
    if k == 0:
        return 0.0
    cols = sorted(subset)
    r_cf = class_corr[cols].mean()
    if k == 1:
        r_ff = 0.0
    else:
        block = feature_corr.loc[cols, cols].to_numpy()
        r_ff = (block.sum() - np.trace(block)) / (k * (k - 1))
    return k * r_cf / np.sqrt(k + k * (k - 1) * r_ff)


def best_first_selection(X: pd.DataFrame, y: pd.Series) -> list[str]:
    """
    Forward best-first search over feature subsets scored by CFS merit.

    Stops after MAX_STALE_EXPANSIONS expansions without improvement. Falls back
    to the single most class-correlated feature when no subset has merit.
    """
    with np.errstate(invalid='ignore', divide='ignore'):
        corr = pd.concat([X, y.astype(float).rename(TARGET_COL)], axis=1).corr().abs().fillna(0.0)
    class_corr = corr[TARGET_COL].drop(TARGET_COL)
    feature_corr = corr.drop(index=TARGET_COL, columns=TARGET_COL)
    features = list(X.columns)

    start = frozenset()
    best, best_merit = start, 0.0
    open_list = [(0.0, 0, start)]
    visited = {start}
    counter = itertools.count(1)
    stale = 0

    while open_list and stale < MAX_STALE_EXPANSIONS:
        _, _, subset = heapq.heappop(open_list)
        improved = False
        for feature in features:
            if feature in subset:
                continue
            child = subset | {feature}
            if child in visited:
                continue
            visited.add(child)
            merit = cfs_merit(child, class_corr, feature_corr)
            heapq.heappush(open_list, (-merit, next(counter), child))
            if merit > best_merit + 1e-12:
                best, best_merit = child, merit
                improved = True
        stale = 0 if improved else stale + 1

    if not best:
        return [class_corr.idxmax()] if len(class_corr) else features[:1]
    return [f for f in features if f in best]


def select_features(training: pd.DataFrame, testing: pd.DataFrame,
                    kind: FeatureSelection) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Choose columns on the training partition and apply the same ones to testing"""
    if kind is FeatureSelection.NO_FEATURE_SELECTION:
        return training.copy(), testing.copy()
    if kind is FeatureSelection.BEST_FIRST:
        X = training.drop(columns=[TARGET_COL])
        selected = best_first_selection(X, training[TARGET_COL].astype(int))
        cols = selected + [TARGET_COL]
        return training[cols].copy(), testing[cols].copy()
    raise ValueError(f"Not supported feature selection: {kind}")


# =============================================================================
# CLASSIFIERS
# =============================================================================

def get_model(kind: Classifier):
    if kind is Classifier.RANDOM_FOREST:
        return RandomForestClassifier(n_estimators=100, random_state=RANDOM_STATE)
    if kind is Classifier.NAIVE_BAYES:
        return GaussianNB()
    if kind is Classifier.IBK:
        return KNeighborsClassifier(n_neighbors=1)
    if kind is Classifier.XGBOOST:
        return XGBClassifier(
            n_estimators=100, max_depth=4, learning_rate=0.1,
            random_state=RANDOM_STATE, verbosity=0
        )
    raise ValueError(f"Not supported model: {kind}")


def cost_matrix(cost_fp: float = CFP, cost_fn: float = CFN) -> np.ndarray:
    """Rows are actual classes, columns predicted ones; 0 = clean, 1 = buggy"""
    return np.array([[0.0, cost_fp], [cost_fn, 0.0]])


def positive_scores(model, X: pd.DataFrame) -> np.ndarray:
    """Probability of the buggy class, 0 when the model never saw it"""
    proba = model.predict_proba(X)
    classes = list(model.classes_)
    if 1 not in classes:
        return np.zeros(len(X))
    return proba[:, classes.index(1)]


class CostSensitiveClassifier:
    """
    Cost-sensitive wrapper around a classifier.

    With `minimize_expected_cost` the base model is trained as usual and each
    prediction picks the class with the lowest expected cost. Otherwise the
    base model is re-trained on cost-weighted data: rows weigh the cost of
    misclassifying their class, through `sample_weight` when the estimator
    accepts it, else through a weight-proportional resample.
    """

    def __init__(self, base, matrix: np.ndarray, minimize_expected_cost: bool,
                 random_state: int = RANDOM_STATE):
        self.base = base
        self.matrix = matrix
        self.minimize_expected_cost = minimize_expected_cost
        self.random_state = random_state

    @property
    def classes_(self):
        return self.base.classes_

    def fit(self, X: pd.DataFrame, y: pd.Series):
        if self.minimize_expected_cost:
            self.base.fit(X, y)
            return self

        weights = np.where(y.to_numpy() == 1, self.matrix[1].sum(), self.matrix[0].sum())
        weights = weights * len(weights) / weights.sum()
        if has_fit_parameter(self.base, 'sample_weight'):
            self.base.fit(X, y, sample_weight=weights)
        else:
            rng = np.random.default_rng(self.random_state)
            picked = rng.choice(len(X), size=len(X), replace=True, p=weights / weights.sum())
            self.base.fit(X.iloc[picked], y.iloc[picked])
        return self

    def expected_costs(self, X: pd.DataFrame) -> np.ndarray:
        """(n, 2) expected cost of predicting clean / buggy"""
        p_buggy = positive_scores(self.base, X)
        proba = np.column_stack([1 - p_buggy, p_buggy])
        return proba @ self.matrix

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        if self.minimize_expected_cost:
            return np.argmin(self.expected_costs(X), axis=1)
        return self.base.predict(X)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        if self.minimize_expected_cost:
            # Decisions only: the chosen class gets all the probability mass
            decisions = self.predict(X)
            return np.column_stack([1 - decisions, decisions]).astype(float)
        p_buggy = positive_scores(self.base, X)
        return np.column_stack([1 - p_buggy, p_buggy])


def fit_classifier(kind: Classifier, cost: CostSensitive, X: pd.DataFrame, y: pd.Series):
    """Fit the requested model; a single-class training set yields a constant predictor"""
    base = get_model(kind)
    if y.nunique() < 2:
        base = DummyClassifier(strategy='most_frequent')

    if cost is CostSensitive.NO_COST_SENSITIVE:
        model = base
    elif cost is CostSensitive.SENSITIVE_THRESHOLD:
        model = CostSensitiveClassifier(base, cost_matrix(), minimize_expected_cost=True)
    elif cost is CostSensitive.SENSITIVE_LEARNING:
        model = CostSensitiveClassifier(base, cost_matrix(), minimize_expected_cost=False)
    else:
        raise ValueError(f"Not supported cost sensitivity: {cost}")

    try:
        model.fit(X, y)
    except (ValueError, TypeError, RuntimeError) as e:
        raise ModelFitError(
            'Classifier fit failed', {'classifier': kind.name, 'cost_sensitive': cost.name, 'error': str(e)}
        ) from e
    return model


# =============================================================================
# EVALUATION
# =============================================================================

def evaluate(y_true: pd.Series, y_pred: np.ndarray, y_score: np.ndarray) -> dict:
    """Confusion counts and metrics for the buggy (positive) class"""
    y_true = np.asarray(y_true, dtype=int)
    y_pred = np.asarray(y_pred, dtype=int)
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()

    if len(np.unique(y_true)) == 2:
        auc = roc_auc_score(y_true, y_score)
    else:
        # ROC undefined with a single class: fall back to the decision accuracy
        auc = float(np.mean(y_true == y_pred)) if len(y_true) else 0.0

    with warnings.catch_warnings():
        warnings.simplefilter('ignore', RuntimeWarning)
        kappa = cohen_kappa_score(y_true, y_pred, labels=[0, 1])
    if np.isnan(kappa):
        # Chance agreement is total: perfect agreement scores 1
        kappa = 1.0 if np.array_equal(y_true, y_pred) else 0.0

    return {
        'tp': int(tp), 'fp': int(fp), 'tn': int(tn), 'fn': int(fn),
        'precision': float(precision_score(y_true, y_pred, labels=[0, 1], zero_division=0)),
        'recall': float(recall_score(y_true, y_pred, labels=[0, 1], zero_division=0)),
        'auc': float(auc),
        'kappa': float(kappa),
    }


def _defective_pct(df: pd.DataFrame) -> float:
    return 100 * df[TARGET_COL].astype(int).sum() / len(df) if len(df) else 0.0


def run_cell(dataset: str, k: int, training: pd.DataFrame, testing: pd.DataFrame,
             cell: tuple) -> ExperimentResult:
    """One grid cell of one step. Works on copies; the partitions are not modified."""
    feature_selection, resampling, classifier, cost = cell

    fs_training, fs_testing = select_features(training, testing, feature_selection)
    sampled = rebalance(fs_training, resampling)

    X_train = sampled.drop(columns=[TARGET_COL])
    y_train = sampled[TARGET_COL].astype(int)
    X_test = fs_testing.drop(columns=[TARGET_COL])
    y_test = fs_testing[TARGET_COL].astype(int)

    model = fit_classifier(classifier, cost, X_train, y_train)
    try:
        y_pred = model.predict(X_test)
        y_score = positive_scores(model, X_test)
    except (ValueError, TypeError, RuntimeError) as e:
        raise ModelFitError('Classifier evaluation failed', {'classifier': classifier.name, 'error': str(e)}) from e

    metrics = evaluate(y_test, y_pred, y_score)

    return ExperimentResult(
        dataset=dataset,
        training_release=k,
        classifier=classifier,
        feature_selection=feature_selection,
        resampling=resampling,
        cost_sensitive=cost,
        training_data_pct=100 * len(sampled) / (len(sampled) + len(fs_testing)),
        defective_training_pct=_defective_pct(sampled),
        defective_testing_pct=_defective_pct(fs_testing),
        **metrics,
    )


def evaluate_step(dataset: str, k: int, training: pd.DataFrame, testing: pd.DataFrame,
                  grid: Optional[Grid] = None, max_workers: int = 1) -> list[ExperimentResult]:
    """
    Run every grid cell on one step and keep the valid results.

    Cells only read the step's partitions, so they may run on a thread pool;
    results keep the grid order either way.
    """
    grid = grid or Grid()
    cells = grid.cells()

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(lambda c: run_cell(dataset, k, training, testing, c), cells))
    else:
        results = [run_cell(dataset, k, training, testing, c) for c in cells]

    return [r for r in results if r.is_valid]


def walk_forward_evaluation(project: str, df: pd.DataFrame, grid: Optional[Grid] = None,
                            max_workers: int = 1) -> list[ExperimentResult]:
    """Evaluate the grid on every walk-forward step of a dataset"""
    print("\n" + "="*60)
    print(f"WALK-FORWARD EVALUATION: {project}")
    print("="*60)

    grid = grid or Grid()
    steps = int(df[RELEASE_COL].max()) - 1
    results = []

    for k, training, testing in walk_forward(df):
        if training.empty or testing.empty:
            print(f"  Step {k}/{steps} skipped: empty partition", flush=True)
            continue
        step_results = evaluate_step(f"{project}-step_{k}", k, training, testing, grid, max_workers)
        discarded = len(grid.cells()) - len(step_results)
        results.extend(step_results)
        print(f"  Step {k}/{steps} completed: {len(step_results)} results, {discarded} discarded", flush=True)

    return results


def results_to_frame(results: list[ExperimentResult]) -> pd.DataFrame:
    return pd.DataFrame([r.to_dict() for r in results], columns=RESULT_COLS)
