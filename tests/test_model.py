#!/usr/bin/env python3
"""
Tests for the evaluation grid: feature selection, cost sensitivity, metrics.

Usage:
    python -m pytest tests/test_model.py -v
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def make_partition(n=20):
    """signal tracks the label, noise is uncorrelated with it"""
    y = [i % 2 for i in range(n)]
    return pd.DataFrame({
        'signal': [label * 5 + (i % 3) * 0.1 for i, label in enumerate(y)],
        'noise': [float((i // 2) % 2) for i in range(n)],
        'buggy': [bool(label) for label in y],
    })


def make_ambiguous_dataset(releases=4):
    """Every release holds a buggy and a clean file with identical features"""
    rows = []
    for release in range(1, releases + 1):
        for name, size, churn, buggy in (
            ('A.java', 10, 1, True),
            ('B.java', 10, 1, False),
            ('C.java', 50, 7, False),
            ('D.java', 12, 2, True),
        ):
            rows.append({
                'release_index': release, 'file_name': name,
                'size': size + release, 'churn': churn, 'buggy': buggy,
            })
    return pd.DataFrame(rows)


def small_grid(classifiers=None):
    from defect_almanac.model import Classifier, CostSensitive, FeatureSelection, Grid
    from defect_almanac.rebalancing import Resampling
    return Grid(
        feature_selection=(FeatureSelection.NO_FEATURE_SELECTION,),
        resampling=(Resampling.NO_SAMPLING,),
        classifiers=classifiers or (Classifier.NAIVE_BAYES,),
        cost_sensitive=(CostSensitive.NO_COST_SENSITIVE,),
    )


# =============================================================================
# GRID
# =============================================================================

def test_grid_size_and_order():
    """2 x 4 x 4 x 3 cells, classifier and cost sensitivity varying fastest"""
    from defect_almanac.model import Classifier, CostSensitive, FeatureSelection, Grid
    from defect_almanac.rebalancing import Resampling

    cells = Grid().cells()

    assert len(cells) == 96
    assert cells[0] == (FeatureSelection.NO_FEATURE_SELECTION, Resampling.NO_SAMPLING,
                        Classifier.RANDOM_FOREST, CostSensitive.NO_COST_SENSITIVE)
    assert cells[1][3] is CostSensitive.SENSITIVE_THRESHOLD
    assert cells[-1] == (FeatureSelection.BEST_FIRST, Resampling.SMOTE,
                         Classifier.XGBOOST, CostSensitive.SENSITIVE_LEARNING)


def test_result_validity():
    """All-perfect precision, recall and AUC is discarded; anything less is kept"""
    from defect_almanac.model import Classifier, CostSensitive, ExperimentResult, FeatureSelection
    from defect_almanac.rebalancing import Resampling

    def result(precision, recall, auc):
        return ExperimentResult(
            dataset='prj-step_1', training_release=1, classifier=Classifier.IBK,
            feature_selection=FeatureSelection.BEST_FIRST, resampling=Resampling.SMOTE,
            cost_sensitive=CostSensitive.SENSITIVE_LEARNING,
            training_data_pct=50.0, defective_training_pct=10.0, defective_testing_pct=10.0,
            tp=1, fp=0, tn=1, fn=0, precision=precision, recall=recall, auc=auc, kappa=1.0,
        )

    assert not result(1.0, 1.0, 1.0).is_valid
    assert result(1.0, 1.0, 0.9).is_valid
    assert result(0.5, 1.0, 1.0).is_valid

    record = result(0.5, 1.0, 1.0).to_dict()
    assert record['classifier'] == 'IBK'
    assert record['cost_sensitive'] == 'SENSITIVE_LEARNING'


# =============================================================================
# METRICS
# =============================================================================

def test_evaluate_counts_and_metrics():
    """Confusion counts, precision, recall and AUC on the buggy class"""
    from defect_almanac.model import evaluate

    metrics = evaluate(
        pd.Series([1, 1, 0, 0, 0]),
        np.array([1, 0, 1, 0, 0]),
        np.array([0.9, 0.4, 0.6, 0.2, 0.1]),
    )

    assert (metrics['tp'], metrics['fp'], metrics['tn'], metrics['fn']) == (1, 1, 2, 1)
    assert metrics['precision'] == 0.5
    assert metrics['recall'] == 0.5
    assert metrics['auc'] == pytest.approx(5 / 6)
    assert -1.0 <= metrics['kappa'] <= 1.0


def test_evaluate_single_class_testing():
    """A testing partition with one class still yields finite metrics"""
    from defect_almanac.model import evaluate

    perfect = evaluate(pd.Series([1, 1, 1]), np.array([1, 1, 1]), np.array([0.9, 0.8, 0.7]))
    assert (perfect['precision'], perfect['recall'], perfect['auc']) == (1.0, 1.0, 1.0)
    assert not np.isnan(perfect['kappa'])

    missed = evaluate(pd.Series([1, 1]), np.array([0, 0]), np.array([0.1, 0.2]))
    assert missed['recall'] == 0.0
    assert missed['precision'] == 0.0
    assert missed['auc'] == 0.0


# =============================================================================
# FEATURE SELECTION
# =============================================================================

def test_best_first_keeps_class_correlated_feature():
    """The label-tracking feature is kept, the uncorrelated one dropped"""
    from defect_almanac.model import best_first_selection

    df = make_partition()
    selected = best_first_selection(df[['signal', 'noise']], df['buggy'].astype(int))

    assert selected == ['signal']


def test_best_first_without_merit_falls_back():
    """No correlated subset: keep a single feature rather than none"""
    from defect_almanac.model import best_first_selection

    X = pd.DataFrame({'a': [1.0] * 6, 'b': [2.0] * 6})
    y = pd.Series([0, 1, 0, 1, 0, 1])

    assert len(best_first_selection(X, y)) == 1


def test_selection_applies_same_columns_to_testing():
    """Columns are chosen on training only and mirrored on testing"""
    from defect_almanac.model import FeatureSelection, select_features

    training = make_partition()
    testing = make_partition(6)
    fs_training, fs_testing = select_features(training, testing, FeatureSelection.BEST_FIRST)

    assert list(fs_training.columns) == ['signal', 'buggy']
    assert list(fs_testing.columns) == list(fs_training.columns)
    assert list(training.columns) == ['signal', 'noise', 'buggy']


# =============================================================================
# COST SENSITIVITY
# =============================================================================

def test_cost_matrix():
    """False negatives cost ten times a false positive"""
    from defect_almanac.model import cost_matrix

    assert cost_matrix().tolist() == [[0.0, 1.0], [10.0, 0.0]]


def test_threshold_mode_flags_low_probability_defects():
    """P(buggy) = 0.2 costs 2 as clean and 0.8 as buggy, so buggy wins"""
    from sklearn.dummy import DummyClassifier
    from defect_almanac.model import CostSensitiveClassifier, cost_matrix

    X = pd.DataFrame({'size': range(10)})
    y = pd.Series([1, 1] + [0] * 8)

    base = DummyClassifier(strategy='prior').fit(X, y)
    assert base.predict(X).sum() == 0

    model = CostSensitiveClassifier(DummyClassifier(strategy='prior'), cost_matrix(),
                                    minimize_expected_cost=True).fit(X, y)
    assert model.expected_costs(X)[0].tolist() == pytest.approx([2.0, 0.8])
    assert model.predict(X).tolist() == [1] * 10
    assert model.predict_proba(X)[:, 1].tolist() == [1.0] * 10


def test_learning_mode_reweights():
    """Cost-weighted training works with and without sample_weight support"""
    from defect_almanac.model import Classifier, CostSensitive, fit_classifier

    df = make_partition()
    X, y = df[['signal', 'noise']], df['buggy'].astype(int)

    for kind in (Classifier.NAIVE_BAYES, Classifier.IBK):
        model = fit_classifier(kind, CostSensitive.SENSITIVE_LEARNING, X, y)
        predictions = model.predict(X)
        assert len(predictions) == len(X)
        assert set(predictions) <= {0, 1}


def test_single_class_training_predicts_constant():
    """A training partition without defects yields a constant clean predictor"""
    from defect_almanac.model import Classifier, CostSensitive, fit_classifier, positive_scores

    X = pd.DataFrame({'size': [1.0, 2.0, 3.0]})
    y = pd.Series([0, 0, 0])
    model = fit_classifier(Classifier.XGBOOST, CostSensitive.NO_COST_SENSITIVE, X, y)

    assert model.predict(X).tolist() == [0, 0, 0]
    assert positive_scores(model, X).tolist() == [0.0, 0.0, 0.0]


# =============================================================================
# WALK-FORWARD EVALUATION
# =============================================================================

def test_perfect_results_are_discarded():
    """An all-buggy, perfectly separated testing release produces no result"""
    from defect_almanac.model import evaluate_step

    training = pd.DataFrame({
        'size': [100.0, 110.0, 95.0, 1.0, 2.0, 3.0, 1.5, 2.5],
        'buggy': [True, True, True, False, False, False, False, False],
    })
    testing = pd.DataFrame({'size': [105.0, 98.0, 102.0], 'buggy': [True, True, True]})

    assert evaluate_step('prj-step_1', 1, training, testing, small_grid()) == []


def test_full_grid_single_class_testing():
    """No kept result of the full grid is all-perfect on a single-class release"""
    from defect_almanac.model import evaluate_step

    training = pd.DataFrame({
        'size': [100.0, 110.0, 95.0, 1.0, 2.0, 3.0, 1.5, 2.5, 4.0, 3.5],
        'churn': [9.0, 8.0, 7.0, 1.0, 0.0, 2.0, 1.0, 0.0, 1.0, 2.0],
        'buggy': [True, True, True, False, False, False, False, False, False, False],
    })
    testing = pd.DataFrame({
        'size': [105.0, 98.0, 102.0],
        'churn': [8.0, 9.0, 7.5],
        'buggy': [True, True, True],
    })

    results = evaluate_step('prj-step_1', 1, training, testing)

    assert len(results) <= 96
    assert all(not (r.precision == 1 and r.recall == 1 and r.auc == 1) for r in results)


def test_walk_forward_evaluation_steps():
    """One result per step; dataset names carry the step"""
    from defect_almanac.model import walk_forward_evaluation

    results = walk_forward_evaluation('prj', make_ambiguous_dataset(), small_grid())

    assert [r.training_release for r in results] == [1, 2, 3]
    assert [r.dataset for r in results] == ['prj-step_1', 'prj-step_2', 'prj-step_3']
    assert all(r.is_valid for r in results)
    assert results[0].training_data_pct == pytest.approx(50.0)
    assert results[1].defective_testing_pct == pytest.approx(50.0)


def test_threaded_step_matches_sequential():
    """Running cells on a thread pool keeps the grid order and values"""
    from defect_almanac.model import Classifier, evaluate_step
    from defect_almanac.walk_forward import split_release

    training, testing = split_release(make_ambiguous_dataset(), 2)
    grid = small_grid((Classifier.NAIVE_BAYES, Classifier.IBK))

    sequential = evaluate_step('prj-step_2', 2, training, testing, grid)
    threaded = evaluate_step('prj-step_2', 2, training, testing, grid, max_workers=2)

    assert [r.to_dict() for r in threaded] == [r.to_dict() for r in sequential]


def test_results_frame_columns():
    """Result tables follow the result column order"""
    from defect_almanac.config import RESULT_COLS
    from defect_almanac.model import results_to_frame, walk_forward_evaluation

    frame = results_to_frame(walk_forward_evaluation('prj', make_ambiguous_dataset(), small_grid()))

    assert list(frame.columns) == RESULT_COLS
    assert len(frame) == 3
    assert set(frame['classifier']) == {'NAIVE_BAYES'}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
