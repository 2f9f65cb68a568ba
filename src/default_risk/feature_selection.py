"""
Feature selection for the credit default risk models.

Numeric features are filtered on pairwise Pearson correlation, then every
categorical feature is expanded into one indicator column per observed
level.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from src.default_risk.config import CORRELATION_THRESHOLD, LABEL_COLUMN

logger = logging.getLogger(__name__)


@dataclass
class FeatureSet:
    """Purely numeric modeling input and how it was derived."""
    X: pd.DataFrame
    y: pd.Series
    correlation: pd.DataFrame
    dropped_correlated: List[str] = field(default_factory=list)
    one_hot_groups: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def feature_names(self) -> List[str]:
        return list(self.X.columns)


def correlation_matrix(df: pd.DataFrame) -> pd.DataFrame:
    """Pearson correlation of the numeric columns; undefined entries are 0."""
    corr = df.astype(float).corr(method="pearson")
    return corr.fillna(0.0)


def find_correlated(corr: pd.DataFrame, threshold: float = CORRELATION_THRESHOLD) -> List[str]:
    """
    Pick columns to drop so that no remaining pair has |r| > threshold.

    Repeatedly takes the most correlated remaining pair (ties resolved by
    column order) and drops the member with the larger mean absolute
    correlation against the other remaining columns; on equal means the
    later column goes.

    Args:
        corr: Square correlation matrix
        threshold: Maximum allowed absolute correlation

    Returns:
        Dropped column names, in the order they were dropped
    """
    names = list(corr.columns)
    values = np.abs(corr.to_numpy(dtype=float, copy=True))
    np.fill_diagonal(values, 0.0)
    keep = np.ones(len(names), dtype=bool)
    dropped = []

    while keep.sum() > 1:
        idx = np.flatnonzero(keep)
        sub = values[np.ix_(idx, idx)]
        upper = np.triu(sub, k=1)
        best = upper.max()
        if best <= threshold:
            break

        # np.argmax returns the first maximum in row-major order
        i, j = np.unravel_index(np.argmax(upper), upper.shape)
        n_others = len(idx) - 1
        mean_i = sub[i].sum() / n_others
        mean_j = sub[j].sum() / n_others

        victim = idx[i] if mean_i > mean_j else idx[j]
        keep[victim] = False
        dropped.append(names[victim])

    return dropped


def drop_correlated(
    df: pd.DataFrame,
    threshold: float = CORRELATION_THRESHOLD,
) -> Tuple[pd.DataFrame, List[str], pd.DataFrame]:
    """
    Remove highly correlated numeric columns.

    Returns:
        (filtered table, dropped column names, correlation matrix before filtering)
    """
    corr = correlation_matrix(df)
    dropped = find_correlated(corr, threshold)
    if dropped:
        logger.info("Dropping %d correlated features: %s", len(dropped), dropped)
    return df.drop(columns=dropped), dropped, corr


def one_hot_encode(df: pd.DataFrame, columns: List[str]) -> Tuple[pd.DataFrame, Dict[str, List[str]]]:
    """
    Expand categorical columns into one 0/1 column per observed level.

    No reference level is dropped, so every row's indicators in a group
    sum to 1.

    Returns:
        (expanded table, original column -> indicator columns)
    """
    df = df.copy()
    groups = {}
    for col_name in columns:
        df[col_name] = df[col_name].astype("category").cat.remove_unused_categories()
        dummies = pd.get_dummies(df[col_name], prefix=col_name, prefix_sep="_", dtype=int)
        groups[col_name] = list(dummies.columns)
        position = df.columns.get_loc(col_name)
        df = df.drop(columns=col_name)
        for offset, name in enumerate(dummies.columns):
            df.insert(position + offset, name, dummies[name])
    return df, groups


def split_column_kinds(df: pd.DataFrame, label: str = LABEL_COLUMN) -> Tuple[List[str], List[str]]:
    """(numeric columns, categorical columns), label excluded."""
    features = df.drop(columns=[label], errors="ignore")
    numeric = list(features.select_dtypes(include="number").columns)
    categorical = [c for c in features.columns if c not in numeric]
    return numeric, categorical


def select_features(
    df: pd.DataFrame,
    label: str = LABEL_COLUMN,
    threshold: float = CORRELATION_THRESHOLD,
) -> FeatureSet:
    """
    Build the modeling input: correlation filter, then one-hot expansion.

    Args:
        df: Cleaned table with the label column
        label: Binary label column (1 = defaulted)
        threshold: Correlation exclusion threshold

    Returns:
        FeatureSet with a purely numeric X and an integer y
    """
    numeric, categorical = split_column_kinds(df, label)

    filtered, dropped, corr = drop_correlated(df[numeric], threshold)
    table = pd.concat([filtered, df[categorical]], axis=1)
    # Keep the original column order for the survivors
    table = table[[c for c in df.columns if c in table.columns]]

    X, groups = one_hot_encode(table, categorical)
    X = X.astype(float)
    y = df[label].astype("int64").rename(label)

    logger.info(
        "Feature matrix: %d rows x %d columns (%d numeric kept, %d categorical expanded)",
        X.shape[0], X.shape[1], len(numeric) - len(dropped), len(categorical),
    )
    return FeatureSet(
        X=X,
        y=y,
        correlation=corr,
        dropped_correlated=dropped,
        one_hot_groups=groups,
    )
