"""
Walk-forward splitting: train on releases 1..k, test on release k+1.
"""

from typing import Iterator

import pandas as pd

from .config import RELEASE_COL, FILE_COL
from .exceptions import ConfigurationError


def split_release(df: pd.DataFrame, k: int) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Training rows have release_index <= k, testing rows release_index == k + 1.

    Identifier columns are dropped from both partitions; they are grouping keys,
    not features. Both partitions are fresh copies.
    """
    last = int(df[RELEASE_COL].max())
    if not 1 <= k < last:
        raise ConfigurationError('Cutoff out of range', {'k': str(k), 'last_release': str(last)})

    drop = [c for c in (RELEASE_COL, FILE_COL) if c in df.columns]
    training = df[df[RELEASE_COL] <= k].drop(columns=drop).reset_index(drop=True)
    testing = df[df[RELEASE_COL] == k + 1].drop(columns=drop).reset_index(drop=True)
    return training, testing


def walk_forward(df: pd.DataFrame) -> Iterator[tuple[int, pd.DataFrame, pd.DataFrame]]:
    """Yield (k, training, testing) for k = 1 .. last release - 1, in order"""
    last = int(df[RELEASE_COL].max())
    for k in range(1, last):
        training, testing = split_release(df, k)
        yield k, training, testing
