"""Classifier families compared in the reports and their tuning grids."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.naive_bayes import GaussianNB
from sklearn.neural_network import MLPClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y

from src.default_risk.config import PipelineConfig

NAIVE_BAYES = "naive_bayes"
LOGISTIC_REGRESSION = "logistic_regression"
RANDOM_FOREST = "random_forest"
AVERAGED_NEURAL_NETWORK = "averaged_neural_network"

MODEL_LABELS = {
    NAIVE_BAYES: "Naive Bayes",
    LOGISTIC_REGRESSION: "Logistic Regression",
    RANDOM_FOREST: "Random Forest",
    AVERAGED_NEURAL_NETWORK: "Averaged Neural Network",
}


class AveragedNeuralNetwork(ClassifierMixin, BaseEstimator):
    """
    Ensemble of single-hidden-layer networks fitted with different seeds.

    Class probabilities are the mean over the members. Every member sees
    the full training set (no bagging).

    Args:
        size: Units in the hidden layer
        decay: L2 weight decay
        repeats: Number of networks averaged
        max_iter: Iteration budget per network
        random_state: Seed of the first member; member k uses seed + k
    """

    def __init__(self, size=3, decay=0.0, repeats=5, max_iter=1000, random_state=None):
        self.size = size
        self.decay = decay
        self.repeats = repeats
        self.max_iter = max_iter
        self.random_state = random_state

    def fit(self, X, y):
        X, y = check_X_y(X, y)
        self.classes_ = np.unique(y)
        seed = 0 if self.random_state is None else self.random_state

        self.estimators_ = []
        for k in range(self.repeats):
            net = MLPClassifier(
                hidden_layer_sizes=(self.size,),
                alpha=self.decay,
                activation="logistic",
                solver="lbfgs",
                max_iter=self.max_iter,
                random_state=seed + k,
            )
            self.estimators_.append(net.fit(X, y))

        self.n_iter_ = max(int(net.n_iter_) for net in self.estimators_)
        self.n_features_in_ = X.shape[1]
        return self

    def predict_proba(self, X):
        check_is_fitted(self, "estimators_")
        X = check_array(X)
        return np.mean([net.predict_proba(X) for net in self.estimators_], axis=0)

    def predict(self, X):
        proba = self.predict_proba(X)
        return self.classes_[np.argmax(proba, axis=1)]


@dataclass
class ModelSpec:
    """A classifier family: estimator, tuning grid and iteration budget."""
    name: str
    estimator: Any
    param_grid: Dict[str, List[Any]] = field(default_factory=dict)
    iteration_budget: Optional[int] = None

    @property
    def label(self) -> str:
        return MODEL_LABELS.get(self.name, self.name)


def mtry_grid(n_features: int) -> List[int]:
    """Features tried per split: floor(linspace(2, p, 3)), deduplicated."""
    if n_features <= 2:
        return [max(1, n_features)]
    grid = np.floor(np.linspace(2, n_features, 3)).astype(int)
    return sorted(set(grid.tolist()))


def model_specs(n_features: int, config: Optional[PipelineConfig] = None) -> List[ModelSpec]:
    """
    The four families compared in the reports.

    Naive Bayes and Logistic Regression are fitted with their defaults;
    Random Forest is tuned over features per split; the averaged network
    over hidden size and weight decay.
    """
    config = config or PipelineConfig()
    seed = config.random_seed

    return [
        ModelSpec(
            name=NAIVE_BAYES,
            estimator=GaussianNB(),
        ),
        ModelSpec(
            name=LOGISTIC_REGRESSION,
            estimator=Pipeline([
                ("scale", StandardScaler()),
                # C=inf disables the L2 penalty
                ("model", LogisticRegression(C=np.inf, solver="lbfgs", max_iter=config.max_iter)),
            ]),
            iteration_budget=config.max_iter,
        ),
        ModelSpec(
            name=RANDOM_FOREST,
            estimator=RandomForestClassifier(n_estimators=config.rf_trees, random_state=seed, n_jobs=1),
            param_grid={"max_features": mtry_grid(n_features)},
        ),
        ModelSpec(
            name=AVERAGED_NEURAL_NETWORK,
            estimator=Pipeline([
                ("scale", StandardScaler()),
                ("model", AveragedNeuralNetwork(
                    repeats=config.nn_repeats,
                    max_iter=config.max_iter,
                    random_state=seed,
                )),
            ]),
            param_grid={
                "model__size": list(config.nn_sizes),
                "model__decay": list(config.nn_decays),
            },
            iteration_budget=config.max_iter,
        ),
    ]
