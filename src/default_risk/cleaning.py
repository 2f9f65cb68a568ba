"""
Cleaning and transformation for the credit default risk reports.

Every function takes a table and returns a new one; inputs are never
modified in place.
"""

import logging
from datetime import date
from typing import List, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

CATEGORICAL_COLUMNS = ["sex", "education", "marriage", "default_payment"]

# Identifier and administrative columns that never reach the models
ADMIN_COLUMNS = ["id", "client_id", "name", "hire_date", "supervisor_id"]

# Education 5 and 6 are both documented as "other"
EDUCATION_COLLAPSE = {6: 5}

CALL_CENTER_PREFIX = "calls_center"
TOTAL_CALLS_COLUMN = "n_calls"


def coerce_types(df: pd.DataFrame, categorical: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Cast declared categorical columns to a finite-level categorical type.

    Repayment-status sentinels (-2, 0) are numeric values and are left
    exactly as they are.
    """
    categorical = CATEGORICAL_COLUMNS if categorical is None else categorical
    df = df.copy()
    for col_name in categorical:
        if col_name in df.columns:
            df[col_name] = df[col_name].astype("category")
    return df


def collapse_education(df: pd.DataFrame) -> pd.DataFrame:
    """Merge education levels 5 and 6 into level 5."""
    df = df.copy()
    education = df["education"]
    was_categorical = isinstance(education.dtype, pd.CategoricalDtype)

    codes = education.astype("Int64") if was_categorical else education
    codes = codes.replace(EDUCATION_COLLAPSE)

    # astype("category") keeps only the observed levels, so 6 disappears
    df["education"] = codes.astype("category") if was_categorical else codes
    return df


def clean_clients(df: pd.DataFrame) -> pd.DataFrame:
    """Convenience composition of the client-table cleaning steps."""
    cleaned = collapse_education(coerce_types(df))
    logger.info(
        "Cleaned %d client records; education levels %s",
        len(cleaned), list(cleaned["education"].cat.categories),
    )
    return cleaned


def decode_levels(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add readable labels for the categorical codes.

    Used for the report tables and plots only; modeling uses the codes.
    """
    df = df.copy()

    def _decode(column, mapping, default):
        codes = df[column].astype("Int64")
        return codes.map(mapping).fillna(default).astype("category")

    df["gender"] = _decode("sex", {1: "male", 2: "female"}, "unknown")
    df["education_level"] = _decode(
        "education",
        {1: "graduate_school", 2: "university", 3: "high_school", 4: "other", 5: "other"},
        "unknown",
    )
    df["marital_status"] = _decode("marriage", {1: "married", 2: "single"}, "other")
    df["defaulted"] = _decode("default_payment", {0: "no", 1: "yes"}, "unknown")
    return df


def add_agent_experience(agents: pd.DataFrame, reference_date: date) -> pd.DataFrame:
    """
    Add `experience_weeks`: whole weeks between hire date and reference date.

    Args:
        agents: Agent table with a parsed `hire_date`
        reference_date: The 'now' of the run, passed in explicitly

    Returns:
        Copy of the agent table with the derived column
    """
    agents = agents.copy()
    elapsed = pd.Timestamp(reference_date) - agents["hire_date"]
    agents["experience_weeks"] = np.floor(elapsed.dt.days / 7).astype("Int64")
    return agents


def experience_by_center(agents: pd.DataFrame) -> pd.DataFrame:
    """Summary of agent experience per call center, for exploration only."""
    return (
        agents
        .groupby("call_center_id", observed=True)["experience_weeks"]
        .agg(agents="count", mean="mean", median="median", min="min", max="max")
        .reset_index()
    )


def aggregate_calls(calls: pd.DataFrame, agents: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    Summarize call events per client.

    Without agents: one `n_calls` column. With agents: calls are joined to
    their agent's call center and counted per center, one
    `calls_center_<id>` column per center.

    Returns:
        One row per distinct client id found in the call table
    """
    if agents is None:
        summary = (
            calls
            .groupby("client_id")
            .size()
            .rename(TOTAL_CALLS_COLUMN)
            .reset_index()
        )
        logger.info("Aggregated %d calls into %d clients", len(calls), len(summary))
        return summary

    directory = agents[["agent_id", "call_center_id"]].dropna().drop_duplicates("agent_id")
    joined = calls.merge(directory, on="agent_id", how="inner")
    if len(joined) < len(calls):
        logger.warning("%d calls reference unknown agents and were dropped", len(calls) - len(joined))

    centers = pd.get_dummies(
        joined["call_center_id"].astype("int64"),
        prefix=CALL_CENTER_PREFIX,
        prefix_sep="_",
        dtype=int,
    )
    summary = (
        pd.concat([joined[["client_id"]], centers], axis=1)
        .groupby("client_id", as_index=False)
        .sum()
    )

    logger.info(
        "Aggregated %d calls into %d clients over %d call centers",
        len(joined), len(summary), centers.shape[1],
    )
    return summary


def merge_call_summary(clients: pd.DataFrame, summary: pd.DataFrame) -> pd.DataFrame:
    """
    Inner-join the per-client call summary onto the client table.

    Clients without calls are dropped, which avoids imputing missing counts.
    """
    merged = (
        clients
        .merge(summary, left_on="id", right_on="client_id", how="inner")
        .drop(columns="client_id")
    )
    logger.info(
        "Merged call summary: %d of %d clients have calls",
        len(merged), len(clients),
    )
    return merged


def prune_columns(df: pd.DataFrame, columns: Optional[List[str]] = None) -> pd.DataFrame:
    """Drop identifier and administrative columns that are present."""
    columns = ADMIN_COLUMNS if columns is None else columns
    return df.drop(columns=[c for c in columns if c in df.columns])


def call_feature_columns(df: pd.DataFrame) -> List[str]:
    """Columns contributed by the call summary."""
    return [
        c for c in df.columns
        if c.startswith(f"{CALL_CENTER_PREFIX}_") or c == TOTAL_CALLS_COLUMN
    ]
