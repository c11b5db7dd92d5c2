"""
CSV output for datasets and evaluation results.
"""

from pathlib import Path

import pandas as pd

from .config import DATASET_DIR, OUTPUT_DIR, TARGET_COL

COMMENTS_TAG = '-wc'
RESULTS_TAG = '-final'


def dataset_path(project: str, with_comments: bool, directory: str = DATASET_DIR) -> Path:
    tag = COMMENTS_TAG if with_comments else ''
    return Path(directory) / f"{project}{tag}.csv"


def results_path(project: str, with_comments: bool, directory: str = OUTPUT_DIR) -> Path:
    tag = COMMENTS_TAG if with_comments else ''
    return Path(directory) / f"{project}{tag}{RESULTS_TAG}.csv"


def load_dataset(path) -> pd.DataFrame:
    """Read a dataset written by write_dataset, restoring the boolean label"""
    df = pd.read_csv(path)
    df[TARGET_COL] = df[TARGET_COL].map({'Yes': True, 'No': False}).astype(bool)
    return df


def _write(df: pd.DataFrame, path: Path, overwrite: bool) -> bool:
    if path.exists() and not overwrite:
        print(f"  {path} already exists, not overwritten", flush=True)
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    print(f"  {path} created", flush=True)
    return True


def write_dataset(df: pd.DataFrame, project: str, with_comments: bool,
                  directory: str = DATASET_DIR, overwrite: bool = False) -> Path:
    """Write the dataset with a Yes/No buggy label"""
    out = df.copy()
    if not with_comments and 'comment_percentage' in out.columns:
        out = out.drop(columns=['comment_percentage'])
    out[TARGET_COL] = out[TARGET_COL].map({True: 'Yes', False: 'No'})
    path = dataset_path(project, with_comments, directory)
    _write(out, path, overwrite)
    return path


def write_results(results: pd.DataFrame, project: str, with_comments: bool,
                  directory: str = OUTPUT_DIR, overwrite: bool = False) -> Path:
    path = results_path(project, with_comments, directory)
    _write(results, path, overwrite)
    return path
