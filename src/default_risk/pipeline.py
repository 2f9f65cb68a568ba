"""
Stage orchestration for the credit default risk reports.

Stages run strictly in order: load -> clean -> select -> train. Errors in
the first three stages end the run; in the training stage a family that
does not converge is dropped from the comparison and the rest complete.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd

from src.default_risk.cleaning import (
    add_agent_experience,
    aggregate_calls,
    clean_clients,
    experience_by_center,
    merge_call_summary,
    prune_columns,
)
from src.default_risk.config import LABEL_COLUMN, PipelineConfig
from src.default_risk.data_quality import (
    QualityMetrics,
    validate_agents,
    validate_calls,
    validate_clients,
)
from src.default_risk.errors import PipelineError
from src.default_risk.feature_selection import FeatureSet, select_features
from src.default_risk.loader import load_agents, load_calls, load_clients
from src.default_risk.training import DataSplit, ModelComparison, evaluate_models, split_features

logger = logging.getLogger(__name__)

BASELINE = "baseline"
CALL_CENTER = "call_center"


@dataclass
class ReportData:
    """Everything produced by one run of the pipeline."""
    variant: str
    config: PipelineConfig
    clients: pd.DataFrame
    modeling_table: pd.DataFrame
    features: FeatureSet
    split: DataSplit
    comparison: ModelComparison
    quality: List[QualityMetrics] = field(default_factory=list)
    agents: Optional[pd.DataFrame] = None
    experience: Optional[pd.DataFrame] = None
    call_summary_rows: Optional[int] = None

    @property
    def quality_table(self) -> pd.DataFrame:
        frames = [q.to_frame() for q in self.quality]
        return pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()


@contextmanager
def stage(name: str):
    """Log a stage's duration and tag any pipeline error with the stage name."""
    logger.info("Stage '%s' started", name)
    started = time.perf_counter()
    try:
        yield
    except PipelineError as e:
        e.stage = name
        logger.error("Stage '%s' failed: %s", name, e)
        raise
    logger.info("Stage '%s' finished in %.1fs", name, time.perf_counter() - started)


def run_pipeline(
    clients_path,
    agents_path=None,
    calls_path=None,
    config: Optional[PipelineConfig] = None,
) -> ReportData:
    """
    Run load -> clean -> select -> train for one report variant.

    Args:
        clients_path: Client CSV (required)
        agents_path: Agent CSV; needs `calls_path`
        calls_path: Call CSV; without agents gives a single contact count
        config: Run configuration

    Returns:
        ReportData for the baseline variant when no call table is given,
        otherwise for the call-center variant
    """
    config = config or PipelineConfig()
    if agents_path is not None and calls_path is None:
        raise ValueError("an agent table needs a call table to be merged")
    variant = CALL_CENTER if calls_path is not None else BASELINE
    logger.info("Running the %s report", variant)

    agents = calls = None
    quality = []
    with stage("load"):
        raw_clients = load_clients(clients_path)
        quality.append(validate_clients(raw_clients))
        if agents_path is not None:
            agents = load_agents(agents_path)
            quality.append(validate_agents(agents))
        if calls_path is not None:
            calls = load_calls(calls_path)
            quality.append(validate_calls(calls, raw_clients))

    experience = None
    summary_rows = None
    with stage("clean"):
        clients = clean_clients(raw_clients)
        table = clients

        if agents is not None:
            if config.reference_date is not None:
                agents = add_agent_experience(agents, config.reference_date)
                experience = experience_by_center(agents)
            else:
                logger.warning("No reference date configured; agent experience not computed")

        if calls is not None:
            directory = None
            if agents is not None:
                directory = prune_columns(agents, ["name", "hire_date", "supervisor_id", "experience_weeks"])
            summary = aggregate_calls(calls, directory)
            summary_rows = len(summary)
            table = merge_call_summary(clients, summary)

        table = prune_columns(table)

    with stage("select"):
        features = select_features(table, LABEL_COLUMN, config.correlation_threshold)

    with stage("train"):
        split = split_features(features, config)
        comparison = evaluate_models(split, config)

    return ReportData(
        variant=variant,
        config=config,
        clients=clients,
        modeling_table=table,
        features=features,
        split=split,
        comparison=comparison,
        quality=quality,
        agents=agents,
        experience=experience,
        call_summary_rows=summary_rows,
    )


def run_reports(
    clients_path,
    agents_path=None,
    calls_path=None,
    config: Optional[PipelineConfig] = None,
) -> List[ReportData]:
    """Baseline report, then the call-center report when call data is given."""
    reports = [run_pipeline(clients_path, config=config)]
    if calls_path is not None:
        reports.append(run_pipeline(clients_path, agents_path, calls_path, config=config))
    return reports
