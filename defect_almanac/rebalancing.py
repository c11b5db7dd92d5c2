"""
Class rebalancing of training partitions.

Targets are derived from the minority/majority counts of the training data:

    oversampling: sample size  = 200 * majority / total   (% of the original)
    SMOTE:        synthetic    = 100 * (majority - minority) / minority   (% of minority)

Both are 0 when the minority class is empty, which leaves the data unchanged.
"""

from enum import Enum

import pandas as pd
from imblearn.over_sampling import RandomOverSampler, SMOTE
from imblearn.under_sampling import RandomUnderSampler

from .config import TARGET_COL, RANDOM_STATE

SMOTE_NEIGHBORS = 5


class Resampling(Enum):
    NO_SAMPLING = 'no_sampling'
    OVERSAMPLING = 'oversampling'
    UNDERSAMPLING = 'undersampling'
    SMOTE = 'smote'


def class_counts(y: pd.Series) -> tuple[int, int]:
    """(minority, majority) counts of a binary target"""
    positives = int(y.sum())
    negatives = len(y) - positives
    return min(positives, negatives), max(positives, negatives)


def oversampling_percentage(y: pd.Series) -> float:
    minority, majority = class_counts(y)
    if minority == 0:
        return 0.0
    return 200 * majority / len(y)


def smote_percentage(y: pd.Series) -> float:
    minority, majority = class_counts(y)
    if minority == 0:
        return 0.0
    return 100 * (majority - minority) / minority


def _minority_label(y: pd.Series) -> int:
    positives = int(y.sum())
    return 1 if positives <= len(y) - positives else 0


def _resample(df: pd.DataFrame, sampler) -> pd.DataFrame:
    X = df.drop(columns=[TARGET_COL])
    y = df[TARGET_COL].astype(int)
    X_res, y_res = sampler.fit_resample(X, y)
    result = pd.DataFrame(X_res, columns=X.columns)
    result[TARGET_COL] = pd.Series(y_res).astype(df[TARGET_COL].dtype).to_numpy()
    return result[df.columns].reset_index(drop=True)


def oversample(df: pd.DataFrame, random_state: int = RANDOM_STATE) -> pd.DataFrame:
    """Replicate rows toward a uniform class mix at the oversampling target size"""
    y = df[TARGET_COL].astype(int)
    percentage = oversampling_percentage(y)
    minority, majority = class_counts(y)
    if percentage == 0 or minority == majority:
        return df.copy()

    per_class = max(round(len(df) * percentage / 100) // 2, minority)
    sampler = RandomOverSampler(
        sampling_strategy={_minority_label(y): per_class}, random_state=random_state
    )
    return _resample(df, sampler)


def undersample(df: pd.DataFrame, random_state: int = RANDOM_STATE) -> pd.DataFrame:
    """Drop majority rows until the classes are 1:1"""
    minority, majority = class_counts(df[TARGET_COL].astype(int))
    if minority == 0 or minority == majority:
        return df.copy()
    return _resample(df, RandomUnderSampler(sampling_strategy=1.0, random_state=random_state))


def smote(df: pd.DataFrame, random_state: int = RANDOM_STATE) -> pd.DataFrame:
    """Add synthetic minority rows, interpolated between minority neighbours"""
    y = df[TARGET_COL].astype(int)
    percentage = smote_percentage(y)
    if percentage == 0:
        return df.copy()

    minority, _ = class_counts(y)
    target = {_minority_label(y): minority + round(minority * percentage / 100)}
    if minority == 1:
        # No neighbour to interpolate with
        return _resample(df, RandomOverSampler(sampling_strategy=target, random_state=random_state))

    sampler = SMOTE(
        sampling_strategy=target,
        k_neighbors=min(SMOTE_NEIGHBORS, minority - 1),
        random_state=random_state,
    )
    return _resample(df, sampler)


def rebalance(df: pd.DataFrame, kind: Resampling, random_state: int = RANDOM_STATE) -> pd.DataFrame:
    """Rebalance a training partition. The input frame is never modified."""
    if kind is Resampling.NO_SAMPLING:
        return df.copy()
    if kind is Resampling.OVERSAMPLING:
        return oversample(df, random_state)
    if kind is Resampling.UNDERSAMPLING:
        return undersample(df, random_state)
    if kind is Resampling.SMOTE:
        return smote(df, random_state)
    raise ValueError(f"Not supported resampling: {kind}")
