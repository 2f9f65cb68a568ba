"""
Feature importance per classifier family.

Each family uses its own native measure; all are rescaled to 0-100 so
they can be plotted on the same axis.
"""

from typing import Callable, Dict

import numpy as np
import pandas as pd
from sklearn.metrics import roc_auc_score
from sklearn.pipeline import Pipeline

from src.default_risk.models import (
    AVERAGED_NEURAL_NETWORK,
    LOGISTIC_REGRESSION,
    NAIVE_BAYES,
    RANDOM_FOREST,
)


def scale_importance(values) -> np.ndarray:
    """(x - min) / (max - min) * 100; all-equal inputs map to 100."""
    values = np.asarray(values, dtype=float)
    lo, hi = values.min(), values.max()
    if hi - lo == 0:
        return np.full_like(values, 100.0)
    return (values - lo) / (hi - lo) * 100


def _split_pipeline(estimator, X):
    """Final model and the input it actually saw."""
    if isinstance(estimator, Pipeline):
        return estimator[-1], estimator[:-1].transform(X)
    return estimator, np.asarray(X, dtype=float)


def auc_importance(estimator, X: pd.DataFrame, y: pd.Series) -> np.ndarray:
    """Area under the ROC curve of each feature used alone as a score."""
    scores = []
    for col_name in X.columns:
        column = X[col_name].to_numpy(dtype=float)
        if np.ptp(column) == 0:
            scores.append(0.5)
            continue
        auc = roc_auc_score(y, column)
        scores.append(max(auc, 1 - auc))
    return np.array(scores)


def zstat_importance(estimator, X: pd.DataFrame, y: pd.Series) -> np.ndarray:
    """|coefficient / standard error| from the observed Fisher information."""
    model, Xt = _split_pipeline(estimator, X)
    design = np.column_stack([np.ones(len(Xt)), Xt])
    p = model.predict_proba(Xt)[:, 1]
    weights = p * (1 - p)

    information = design.T @ (design * weights[:, None])
    # One-hot groups are collinear, so the information matrix is singular
    covariance = np.linalg.pinv(information)
    se = np.sqrt(np.clip(np.diag(covariance), 0, None))[1:]

    coef = model.coef_.ravel()
    z = np.divide(np.abs(coef), se, out=np.zeros_like(coef), where=se > 0)
    return z


def impurity_importance(estimator, X: pd.DataFrame, y: pd.Series) -> np.ndarray:
    """Mean decrease in impurity over the forest."""
    model, _ = _split_pipeline(estimator, X)
    return np.asarray(model.feature_importances_, dtype=float)


def garson_weights(net) -> np.ndarray:
    """Garson's decomposition of a single-hidden-layer network's weights."""
    input_hidden = np.abs(net.coefs_[0])           # (features, hidden)
    hidden_output = np.abs(net.coefs_[1][:, 0])     # (hidden,)

    contrib = input_hidden * hidden_output[None, :]
    totals = contrib.sum(axis=0, keepdims=True)
    share = np.divide(contrib, totals, out=np.zeros_like(contrib), where=totals > 0)

    relevance = share.sum(axis=1)
    total = relevance.sum()
    return relevance / total if total > 0 else relevance


def garson_importance(estimator, X: pd.DataFrame, y: pd.Series) -> np.ndarray:
    """Garson importance averaged over the ensemble members."""
    model, _ = _split_pipeline(estimator, X)
    return np.mean([garson_weights(net) for net in model.estimators_], axis=0)


IMPORTANCE_FUNCTIONS: Dict[str, Callable] = {
    NAIVE_BAYES: auc_importance,
    LOGISTIC_REGRESSION: zstat_importance,
    RANDOM_FOREST: impurity_importance,
    AVERAGED_NEURAL_NETWORK: garson_importance,
}


def feature_importance(name: str, estimator, X: pd.DataFrame, y: pd.Series) -> pd.DataFrame:
    """
    Ranked, 0-100 scaled importance for a fitted model.

    Args:
        name: Model family name
        estimator: Fitted estimator (or pipeline)
        X: Training features the estimator was fitted on
        y: Training labels

    Returns:
        DataFrame with columns feature, importance; most important first
    """
    raw = IMPORTANCE_FUNCTIONS[name](estimator, X, y)
    importance_df = pd.DataFrame({
        "feature": list(X.columns),
        "importance": scale_importance(raw),
    })
    return (
        importance_df
        .sort_values("importance", ascending=False, kind="stable")
        .reset_index(drop=True)
    )
