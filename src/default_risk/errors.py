"""Error taxonomy for the credit default risk pipeline."""

from typing import Optional


def _rebuild_error(cls, state):
    error = cls.__new__(cls)
    Exception.__init__(error, state.get("message"))
    error.__dict__.update(state)
    return error


class PipelineError(Exception):
    """Base error. Carries the stage that failed and the input involved."""

    stage = "pipeline"

    def __init__(self, message: str, source: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source
        if stage is not None:
            self.stage = stage

    def __reduce__(self):
        # Rebuilt from attributes so errors survive a trip through a worker process.
        return (_rebuild_error, (self.__class__, self.__dict__.copy()))

    def __str__(self):
        if self.source:
            return f"[{self.stage}] {self.message} (input: {self.source})"
        return f"[{self.stage}] {self.message}"


class DataFormatError(PipelineError):
    """An input file is unreadable, lacks a required column or holds an unparseable value."""

    stage = "load"


class ResamplingError(PipelineError):
    """The label cannot be stratified into the train/test split or the CV folds."""

    stage = "train"


class TrainingNonConvergenceError(PipelineError):
    """A classifier used its whole iteration budget without converging."""

    stage = "train"

    def __init__(self, model_name: str, n_iter: int, budget: int):
        super().__init__(
            f"{model_name} did not converge: {n_iter} iterations used of a budget of {budget}",
            source=model_name,
        )
        self.model_name = model_name
        self.n_iter = n_iter
        self.budget = budget
