"""
Loader for the credit default risk reports.

Reads the client, agent and call CSV files and types every column
according to a fixed schema. Nothing is cleaned here: the loader only
guarantees that each required column exists, has no blanks and parses.
"""

import logging
import re
from typing import Dict, Optional, Sequence

import pandas as pd

from src.default_risk.errors import DataFormatError

logger = logging.getLogger(__name__)

HIRE_DATE_FORMAT = "%m-%d-%y"

# Raw UCI headers -> pipeline names
CLIENT_COLUMN_MAPPING = {
    'id': 'id', 'limit_bal': 'credit_limit', 'sex': 'sex',
    'education': 'education', 'marriage': 'marriage', 'age': 'age',
    'pay_0': 'pay_status_1', 'pay_1': 'pay_status_1', 'pay_2': 'pay_status_2',
    'pay_3': 'pay_status_3', 'pay_4': 'pay_status_4', 'pay_5': 'pay_status_5',
    'pay_6': 'pay_status_6',
    'bill_amt1': 'bill_amt_1', 'bill_amt2': 'bill_amt_2', 'bill_amt3': 'bill_amt_3',
    'bill_amt4': 'bill_amt_4', 'bill_amt5': 'bill_amt_5', 'bill_amt6': 'bill_amt_6',
    'pay_amt1': 'pay_amt_1', 'pay_amt2': 'pay_amt_2', 'pay_amt3': 'pay_amt_3',
    'pay_amt4': 'pay_amt_4', 'pay_amt5': 'pay_amt_5', 'pay_amt6': 'pay_amt_6',
    'default_payment_next_month': 'default_payment',
}

AGENT_COLUMN_MAPPING = {
    'agentid': 'agent_id', 'agent': 'agent_id',
    'agent_name': 'name',
    'hiredate': 'hire_date', 'date_hired': 'hire_date',
    'callcenterid': 'call_center_id', 'call_center': 'call_center_id',
    'supervisorid': 'supervisor_id', 'supervisor': 'supervisor_id',
}

CALL_COLUMN_MAPPING = {
    'agentid': 'agent_id', 'agent': 'agent_id',
    'debtor_id': 'client_id', 'debtorid': 'client_id', 'clientid': 'client_id',
    'id': 'client_id',
}

bill_cols = [f"bill_amt_{i}" for i in range(1, 7)]
pay_cols = [f"pay_amt_{i}" for i in range(1, 7)]
pay_status_cols = [f"pay_status_{i}" for i in range(1, 7)]

# Column kinds: id, numeric, categorical (integer code), date, text
CLIENT_SCHEMA = {
    "id": "id",
    "credit_limit": "numeric",
    "sex": "categorical",
    "education": "categorical",
    "marriage": "categorical",
    "age": "numeric",
    **{c: "numeric" for c in pay_status_cols},
    **{c: "numeric" for c in bill_cols},
    **{c: "numeric" for c in pay_cols},
    "default_payment": "categorical",
}

AGENT_SCHEMA = {
    "agent_id": "id",
    "name": "text",
    "hire_date": "date",
    "call_center_id": "categorical",
    "supervisor_id": "categorical",
}

CALL_SCHEMA = {
    "agent_id": "id",
    "client_id": "id",
}

# Columns restricted to a fixed set of codes
CLIENT_DOMAINS = {
    "default_payment": (0, 1),
}


def normalize_header(name: str) -> str:
    """'default payment next month' -> 'default_payment_next_month'."""
    return re.sub(r"[^0-9a-z]+", "_", str(name).strip().lower()).strip("_")


def _parse_column(series: pd.Series, kind: str, column: str, source: str) -> pd.Series:
    if kind == "text":
        return series.astype("string")

    blank = series.isna()
    if blank.any():
        raise DataFormatError(
            f"column '{column}' has {int(blank.sum())} blank values", source=source
        )

    if kind == "date":
        try:
            return pd.to_datetime(series, format=HIRE_DATE_FORMAT)
        except (ValueError, TypeError) as e:
            raise DataFormatError(
                f"column '{column}' is not a {HIRE_DATE_FORMAT} date: {e}", source=source
            ) from e

    parsed = pd.to_numeric(series, errors="coerce")
    bad = parsed.isna()
    if bad.any():
        examples = series[bad].astype(str).unique()[:3].tolist()
        raise DataFormatError(
            f"column '{column}' has {int(bad.sum())} non-numeric values, e.g. {examples}",
            source=source,
        )

    if kind in ("id", "categorical"):
        non_integer = parsed.notna() & (parsed % 1 != 0)
        if non_integer.any():
            raise DataFormatError(
                f"column '{column}' must hold integer codes", source=source
            )
        return parsed.astype("Int64")

    return parsed


def read_table(
    path,
    schema: Dict[str, str],
    column_mapping: Optional[Dict[str, str]] = None,
    domains: Optional[Dict[str, Sequence]] = None,
) -> pd.DataFrame:
    """
    Read a CSV file and type its columns according to a schema.

    Args:
        path: CSV file path
        schema: Required column name -> kind
        column_mapping: Normalized raw header -> pipeline name
        domains: Column -> allowed codes

    Returns:
        DataFrame with the schema columns typed; extra columns untouched

    Raises:
        DataFormatError: unreadable file, missing column, blank or
            unparseable value, or a code outside its domain
    """
    source = str(path)
    try:
        df = pd.read_csv(path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DataFormatError(f"cannot read file: {e}", source=source) from e

    df.columns = [normalize_header(c) for c in df.columns]
    if column_mapping:
        # First alias wins when a file carries two spellings of the same column
        renames = {}
        for raw, name in column_mapping.items():
            if raw in df.columns and name not in df.columns and name not in renames.values():
                renames[raw] = name
        df = df.rename(columns=renames)

    missing = [c for c in schema if c not in df.columns]
    if missing:
        raise DataFormatError(f"missing required columns: {missing}", source=source)

    for column, kind in schema.items():
        df[column] = _parse_column(df[column], kind, column, source)

    for column, allowed in (domains or {}).items():
        outside = ~df[column].isin(list(allowed))
        if outside.any():
            examples = sorted(df.loc[outside, column].unique().tolist())[:3]
            raise DataFormatError(
                f"column '{column}' must be one of {list(allowed)}, found {examples}",
                source=source,
            )

    extra = [c for c in df.columns if c not in schema]
    if extra:
        logger.info("%s: passing through %d extra columns %s", source, len(extra), extra)

    logger.info("Loaded %d records from %s", len(df), source)
    return df


def load_clients(path) -> pd.DataFrame:
    """Load the primary client table (one row per card holder)."""
    return read_table(path, CLIENT_SCHEMA, CLIENT_COLUMN_MAPPING, CLIENT_DOMAINS)


def load_agents(path) -> pd.DataFrame:
    """Load the call-center agent table (one row per agent)."""
    return read_table(path, AGENT_SCHEMA, AGENT_COLUMN_MAPPING)


def load_calls(path) -> pd.DataFrame:
    """Load the call-event table (one row per contact)."""
    return read_table(path, CALL_SCHEMA, CALL_COLUMN_MAPPING)
