"""Pydantic configuration for the credit default risk pipeline."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

# Defaults used by both report variants
CORRELATION_THRESHOLD = 0.7
TRAIN_FRACTION = 0.7
CV_FOLDS = 5
RANDOM_SEED = 1234
N_WORKERS = 3

LABEL_COLUMN = "default_payment"
POSITIVE_CLASS = 1


class PipelineConfig(BaseModel):
    """Run configuration. Every knob has the fixed default of the reports."""
    correlation_threshold: float = Field(CORRELATION_THRESHOLD, gt=0, le=1, description="Absolute correlation above which one feature of a pair is dropped")
    train_fraction: float = Field(TRAIN_FRACTION, gt=0, lt=1, description="Share of rows in the training partition")
    cv_folds: int = Field(CV_FOLDS, ge=2, description="Number of stratified cross-validation folds")
    random_seed: int = Field(RANDOM_SEED, description="Seed for the split, the folds and the models")
    n_workers: int = Field(N_WORKERS, ge=1, description="Worker processes for the per-model fits")
    reference_date: Optional[date] = Field(None, description="'Now' used for agent experience")

    rf_trees: int = Field(500, ge=1, description="Trees per random forest")
    nn_sizes: List[int] = Field(default_factory=lambda: [1, 3, 5], description="Hidden layer sizes to tune")
    nn_decays: List[float] = Field(default_factory=lambda: [0.0, 1e-4, 0.1], description="Weight decays to tune")
    nn_repeats: int = Field(5, ge=1, description="Networks averaged per ensemble")
    max_iter: int = Field(1000, ge=1, description="Iteration budget for iterative optimizers")

    output_dir: str = Field("reports", description="Directory for rendered reports")

    model_config = {"frozen": True}

    @field_validator("nn_sizes")
    @classmethod
    def _positive_sizes(cls, value):
        if not value or any(v < 1 for v in value):
            raise ValueError("nn_sizes must be a non-empty list of positive integers")
        return value

    @field_validator("nn_decays")
    @classmethod
    def _non_negative_decays(cls, value):
        if not value or any(v < 0 for v in value):
            raise ValueError("nn_decays must be a non-empty list of non-negative floats")
        return value
