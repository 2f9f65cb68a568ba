"""
Training and evaluation of the classifier families.

The same stratified split is handed to every family; each family is tuned
by stratified k-fold grid search on accuracy and scored on the held-out
partition. Families are independent and run on a small joblib pool.
"""

import logging
import time
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import accuracy_score, cohen_kappa_score, confusion_matrix
from sklearn.model_selection import GridSearchCV, StratifiedKFold, train_test_split

from src.default_risk.config import POSITIVE_CLASS, PipelineConfig
from src.default_risk.errors import ResamplingError, TrainingNonConvergenceError
from src.default_risk.feature_selection import FeatureSet
from src.default_risk.importance import feature_importance
from src.default_risk.models import ModelSpec, model_specs

logger = logging.getLogger(__name__)


@dataclass
class DataSplit:
    """Disjoint stratified train/test partitions."""
    X_train: pd.DataFrame
    X_test: pd.DataFrame
    y_train: pd.Series
    y_test: pd.Series

    @property
    def feature_names(self) -> List[str]:
        return list(self.X_train.columns)


@dataclass
class ModelResult:
    """Everything the report needs about one fitted family."""
    name: str
    label: str
    predictions: np.ndarray
    confusion: Dict[str, int]
    accuracy: float
    kappa: float
    importance: pd.DataFrame
    best_params: Dict[str, Any]
    cv_accuracy: float
    cv_results: pd.DataFrame
    fit_seconds: float


@dataclass
class ModelComparison:
    """Results of every family that completed, and errors of those that did not."""
    results: Dict[str, ModelResult] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    def comparison_table(self) -> pd.DataFrame:
        """Accuracy and kappa per model, best accuracy first."""
        rows = [
            {
                "Model": r.label,
                "Accuracy": r.accuracy,
                "Kappa": r.kappa,
                "CV Accuracy": r.cv_accuracy,
            }
            for r in self.results.values()
        ]
        table = pd.DataFrame(rows, columns=["Model", "Accuracy", "Kappa", "CV Accuracy"])
        return table.sort_values("Accuracy", ascending=False).reset_index(drop=True)

    @property
    def best(self) -> Optional[ModelResult]:
        if not self.results:
            return None
        return max(self.results.values(), key=lambda r: r.accuracy)


def check_stratifiable(y: pd.Series, n_splits: int, what: str) -> None:
    """Raise ResamplingError unless both classes have at least `n_splits` rows."""
    counts = y.value_counts()
    if len(counts) < 2:
        raise ResamplingError(f"{what}: label has a single class {counts.index.tolist()}")
    smallest = int(counts.min())
    if smallest < n_splits:
        raise ResamplingError(
            f"{what}: smallest class has {smallest} rows, need at least {n_splits}"
        )


def split_features(features: FeatureSet, config: Optional[PipelineConfig] = None) -> DataSplit:
    """
    Stratified, seeded train/test split.

    Raises:
        ResamplingError: the label cannot be stratified
    """
    config = config or PipelineConfig()
    check_stratifiable(features.y, 2, "train/test split")

    try:
        X_train, X_test, y_train, y_test = train_test_split(
            features.X, features.y,
            train_size=config.train_fraction,
            random_state=config.random_seed,
            stratify=features.y,
        )
    except ValueError as e:
        raise ResamplingError(f"train/test split: {e}") from e

    logger.info("Training set: %d records, test set: %d records", len(X_train), len(X_test))
    logger.info("Training default rate: %.4f, test default rate: %.4f", y_train.mean(), y_test.mean())
    return DataSplit(X_train=X_train, X_test=X_test, y_train=y_train, y_test=y_test)


def confusion_counts(y_true, y_pred) -> Dict[str, int]:
    """Confusion matrix with 'defaulted' (1) as the positive class."""
    cm = confusion_matrix(y_true, y_pred, labels=[1 - POSITIVE_CLASS, POSITIVE_CLASS])
    tn, fp, fn, tp = cm.ravel()
    return {"tp": int(tp), "fp": int(fp), "fn": int(fn), "tn": int(tn)}


def _n_iter(estimator) -> int:
    model = estimator[-1] if hasattr(estimator, "steps") else estimator
    return int(np.max(getattr(model, "n_iter_", 0)))


def train_model(spec: ModelSpec, split: DataSplit, config: Optional[PipelineConfig] = None) -> ModelResult:
    """
    Tune one family by cross-validated accuracy and score it on the test set.

    Raises:
        ResamplingError: a CV fold cannot hold both classes
        TrainingNonConvergenceError: the refit model used its whole budget
    """
    config = config or PipelineConfig()
    check_stratifiable(split.y_train, config.cv_folds, f"{spec.label} cross-validation")

    cv = StratifiedKFold(n_splits=config.cv_folds, shuffle=True, random_state=config.random_seed)
    search = GridSearchCV(
        spec.estimator,
        spec.param_grid,
        cv=cv,
        scoring="accuracy",
        refit=True,
        error_score="raise",
    )

    started = time.perf_counter()
    with warnings.catch_warnings():
        # Convergence is judged on the refit model below
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        search.fit(split.X_train, split.y_train)
    elapsed = time.perf_counter() - started

    model = search.best_estimator_
    if spec.iteration_budget is not None:
        used = _n_iter(model)
        if used >= spec.iteration_budget:
            raise TrainingNonConvergenceError(spec.label, used, spec.iteration_budget)

    predictions = np.asarray(model.predict(split.X_test))
    result = ModelResult(
        name=spec.name,
        label=spec.label,
        predictions=predictions,
        confusion=confusion_counts(split.y_test, predictions),
        accuracy=float(accuracy_score(split.y_test, predictions)),
        kappa=float(cohen_kappa_score(split.y_test, predictions)),
        importance=feature_importance(spec.name, model, split.X_train, split.y_train),
        best_params=dict(search.best_params_),
        cv_accuracy=float(search.best_score_),
        cv_results=_cv_table(search),
        fit_seconds=elapsed,
    )

    logger.info(
        "%s: accuracy %.4f, kappa %.4f, params %s (%.1fs)",
        spec.label, result.accuracy, result.kappa, result.best_params, elapsed,
    )
    return result


def _cv_table(search: GridSearchCV) -> pd.DataFrame:
    cv = pd.DataFrame(search.cv_results_)
    params = pd.DataFrame(list(cv["params"]), index=cv.index)
    table = pd.concat(
        [params, cv[["mean_test_score", "std_test_score", "rank_test_score"]]],
        axis=1,
    )
    return table.rename(columns={
        "mean_test_score": "accuracy",
        "std_test_score": "accuracy_sd",
        "rank_test_score": "rank",
    })


def _train_isolated(spec: ModelSpec, split: DataSplit, config: PipelineConfig):
    """Worker entry point: non-convergence stays scoped to this family."""
    try:
        return spec.name, train_model(spec, split, config), None
    except TrainingNonConvergenceError as e:
        return spec.name, None, str(e)


def evaluate_models(
    split: DataSplit,
    config: Optional[PipelineConfig] = None,
    specs: Optional[List[ModelSpec]] = None,
) -> ModelComparison:
    """
    Train every family on the same split.

    Families run on `config.n_workers` joblib workers. A family that does
    not converge is recorded in `failures`; the others still complete.

    Raises:
        ResamplingError: the training partition cannot be split into folds
    """
    config = config or PipelineConfig()
    specs = specs if specs is not None else model_specs(len(split.feature_names), config)

    # Fatal for the whole run, so check once before dispatching
    check_stratifiable(split.y_train, config.cv_folds, "cross-validation")

    outcomes = Parallel(n_jobs=max(1, min(config.n_workers, len(specs))))(
        delayed(_train_isolated)(spec, split, config) for spec in specs
    )

    comparison = ModelComparison()
    for name, result, error in outcomes:
        if result is not None:
            comparison.results[name] = result
        else:
            logger.warning("Excluded from comparison: %s", error)
            comparison.failures[name] = error
    return comparison
