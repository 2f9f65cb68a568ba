"""Pydantic models for the machine-readable run summary."""

from datetime import date
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class ModelSummary(BaseModel):
    """One trained model."""
    model: str = Field(..., description="Model family label")
    accuracy: float = Field(..., ge=0, le=1, description="Held-out accuracy")
    kappa: float = Field(..., ge=-1, le=1, description="Held-out Cohen's kappa")
    cv_accuracy: float = Field(..., ge=0, le=1, description="Best cross-validated accuracy")
    best_params: Dict[str, Union[int, float]] = Field(default_factory=dict, description="Selected hyperparameters")
    true_positives: int = Field(..., ge=0)
    false_positives: int = Field(..., ge=0)
    false_negatives: int = Field(..., ge=0)
    true_negatives: int = Field(..., ge=0)
    top_features: List[str] = Field(default_factory=list, description="Five most important features")


class FailedModel(BaseModel):
    """A family excluded from the comparison."""
    model: str
    error: str


class RunSummary(BaseModel):
    """Summary of one report variant."""
    variant: str
    n_records: int = Field(..., ge=0, description="Rows reaching the modeling stage")
    n_features: int = Field(..., ge=0, description="Columns of the feature matrix")
    train_records: int = Field(..., ge=0)
    test_records: int = Field(..., ge=0)
    dropped_correlated: List[str] = Field(default_factory=list)
    reference_date: Optional[date] = None
    models: List[ModelSummary] = Field(default_factory=list)
    failures: List[FailedModel] = Field(default_factory=list)
    best_model: Optional[str] = None
