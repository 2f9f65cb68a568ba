"""
Data Quality Module for the Credit Default Risk Reports.

This module provides data quality validation functions that are run
over the loaded tables before cleaning. Results are informational:
they are rendered into the report and failures are logged as warnings.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from src.default_risk.loader import pay_status_cols

logger = logging.getLogger(__name__)

# Repayment-status codes the dataset documentation leaves undefined. They are
# read as "paid on time" (no delinquency) and kept as values, never nulled.
UNDOCUMENTED_REPAYMENT_CODES = (-2, 0)


@dataclass
class QualityMetrics:
    """Container for data quality metrics."""
    table: str
    total_records: int
    checks_run: int
    checks_passed: int
    details: Dict[str, Any]

    @property
    def all_passed(self) -> bool:
        return self.checks_run == self.checks_passed

    def to_frame(self) -> pd.DataFrame:
        """One row per check, for rendering."""
        rows = []
        for name, result in self.details.items():
            rows.append({
                "table": self.table,
                "check": name,
                "checked": result.get("total", self.total_records),
                "valid": result.get("valid"),
                "status": "PASS" if result.get("passed") else "WARN",
                "note": result.get("note", ""),
            })
        return pd.DataFrame(rows, columns=["table", "check", "checked", "valid", "status", "note"])


class DataQualityValidator:
    """
    Data quality validator for the loaded tables.

    Usage:
        validator = DataQualityValidator(df, table="clients")
        validator.run_checks(CLIENT_CHECKS)
        metrics = validator.get_quality_report()
    """

    def __init__(self, df: pd.DataFrame, table: str = "table"):
        self.df = df
        self.table = table
        self.checks_results = {}

    def check_nulls(self, columns: List[str], threshold: float = 1.0) -> bool:
        """
        Check that specified columns have completeness at or above threshold.

        Args:
            columns: List of column names to check
            threshold: Minimum completeness ratio (default 1.0 = no nulls)

        Returns:
            True if all columns pass, False otherwise
        """
        total = len(self.df)
        passed = True

        for col_name in columns:
            non_null = int(self.df[col_name].notna().sum())
            completeness = non_null / total if total > 0 else 1.0
            ok = completeness >= threshold
            self.checks_results[f"not_null_{col_name}"] = {
                "total": total,
                "valid": non_null,
                "completeness": completeness,
                "passed": ok,
            }
            passed = passed and ok

        return passed

    def check_range(
        self,
        column: str,
        min_val: Optional[float] = None,
        max_val: Optional[float] = None
    ) -> bool:
        """
        Check that values in a column fall within specified range.

        Args:
            column: Column name to check
            min_val: Minimum allowed value (inclusive)
            max_val: Maximum allowed value (inclusive)

        Returns:
            True if all non-null values are within range
        """
        values = self.df[column].dropna()
        mask = pd.Series(True, index=values.index)
        if min_val is not None:
            mask &= values >= min_val
        if max_val is not None:
            mask &= values <= max_val

        total = len(values)
        valid = int(mask.sum())
        validity = valid / total if total > 0 else 1.0

        self.checks_results[f"range_{column}"] = {
            "total": total,
            "valid": valid,
            "validity": validity,
            "min": min_val,
            "max": max_val,
            "passed": validity == 1.0,
        }

        return validity == 1.0

    def check_allowed_values(self, column: str, allowed_values: Sequence) -> bool:
        """
        Check that a categorical column only contains allowed values.

        Returns:
            True if all non-null values are in the allowed list
        """
        values = self.df[column].dropna()
        total = len(values)
        valid = int(values.isin(list(allowed_values)).sum())
        validity = valid / total if total > 0 else 1.0
        unexpected = sorted(values[~values.isin(list(allowed_values))].unique().tolist())

        self.checks_results[f"allowed_values_{column}"] = {
            "total": total,
            "valid": valid,
            "validity": validity,
            "allowed": list(allowed_values),
            "passed": validity == 1.0,
            "note": f"unexpected levels {unexpected}" if unexpected else "",
        }

        return validity == 1.0

    def check_uniqueness(self, columns: List[str], threshold: float = 1.0) -> bool:
        """
        Check uniqueness of values across specified columns.

        Args:
            columns: Columns to check for uniqueness
            threshold: Minimum uniqueness ratio (1.0 = no duplicates)
        """
        total = len(self.df)
        distinct = len(self.df[columns].drop_duplicates())
        uniqueness = distinct / total if total > 0 else 1.0

        self.checks_results[f"unique_{'_'.join(columns)}"] = {
            "total": total,
            "valid": distinct,
            "uniqueness": uniqueness,
            "passed": uniqueness >= threshold,
        }

        return uniqueness >= threshold

    def check_functional_dependency(self, determinant: str, dependent: str) -> bool:
        """
        Check that each value of `determinant` maps to a single `dependent`.

        The agent -> supervisor -> call center hierarchy relies on this.
        """
        subset = self.df[[determinant, dependent]].dropna()
        per_key = subset.groupby(determinant)[dependent].nunique()
        total = len(per_key)
        valid = int((per_key <= 1).sum())

        self.checks_results[f"{determinant}_determines_{dependent}"] = {
            "total": total,
            "valid": valid,
            "passed": valid == total,
        }

        return valid == total

    def count_codes(self, columns: List[str], codes: Sequence, name: str) -> int:
        """Record how many rows carry any of `codes` in `columns`. Never fails."""
        hits = self.df[columns].isin(list(codes)).any(axis=1)
        count = int(hits.sum())

        self.checks_results[name] = {
            "total": len(self.df),
            "valid": len(self.df),
            "passed": True,
            "note": f"{count} rows carry codes {list(codes)}, kept as paid on time",
        }

        return count

    def run_checks(self, checks: Dict[str, Dict[str, Any]]) -> bool:
        """
        Run a batch of check definitions.

        Args:
            checks: Dictionary of check definitions
                Example:
                {
                    "valid_age": {"column": "age", "min": 18, "max": 100},
                    "valid_target": {"column": "default_payment", "allowed_values": [0, 1]}
                }

        Returns:
            True if every check passed
        """
        passed = True
        for check_def in checks.values():
            col_name = check_def["column"]
            if col_name not in self.df.columns:
                continue
            if check_def.get("not_null"):
                passed &= self.check_nulls([col_name])
            if "min" in check_def or "max" in check_def:
                passed &= self.check_range(col_name, check_def.get("min"), check_def.get("max"))
            if "allowed_values" in check_def:
                passed &= self.check_allowed_values(col_name, check_def["allowed_values"])
            if check_def.get("unique"):
                passed &= self.check_uniqueness([col_name])
        return passed

    def get_quality_report(self) -> QualityMetrics:
        """
        Generate the quality report and log failed checks.

        Returns:
            QualityMetrics object with all check results
        """
        passed = sum(1 for r in self.checks_results.values() if r.get("passed"))
        for name, result in self.checks_results.items():
            if not result.get("passed"):
                logger.warning(
                    "%s: check %s failed (%s of %s valid)",
                    self.table, name, result.get("valid"), result.get("total"),
                )

        return QualityMetrics(
            table=self.table,
            total_records=len(self.df),
            checks_run=len(self.checks_results),
            checks_passed=passed,
            details=self.checks_results,
        )


# Client table checks
CLIENT_CHECKS = {
    "unique_id": {"column": "id", "not_null": True, "unique": True},
    "valid_credit_limit": {"column": "credit_limit", "min": 1, "not_null": True},
    "valid_age": {"column": "age", "min": 18, "max": 100, "not_null": True},
    "valid_sex": {"column": "sex", "allowed_values": [1, 2]},
    "valid_education": {"column": "education", "allowed_values": [1, 2, 3, 4, 5, 6]},
    "valid_marriage": {"column": "marriage", "allowed_values": [1, 2, 3]},
    "valid_target": {"column": "default_payment", "allowed_values": [0, 1], "not_null": True},
}

AGENT_CHECKS = {
    "unique_agent": {"column": "agent_id", "not_null": True, "unique": True},
    "valid_call_center": {"column": "call_center_id", "not_null": True},
    "valid_hire_date": {"column": "hire_date", "not_null": True},
}

CALL_CHECKS = {
    "valid_agent": {"column": "agent_id", "not_null": True},
    "valid_client": {"column": "client_id", "not_null": True},
}


def validate_clients(df: pd.DataFrame) -> QualityMetrics:
    """Quality report for the client table."""
    validator = DataQualityValidator(df, table="clients")
    validator.run_checks(CLIENT_CHECKS)
    validator.count_codes(pay_status_cols, UNDOCUMENTED_REPAYMENT_CODES, "undocumented_repayment_codes")
    return validator.get_quality_report()


def validate_agents(df: pd.DataFrame) -> QualityMetrics:
    """Quality report for the agent table, including the hierarchy checks."""
    validator = DataQualityValidator(df, table="agents")
    validator.run_checks(AGENT_CHECKS)
    validator.check_functional_dependency("agent_id", "call_center_id")
    validator.check_functional_dependency("agent_id", "supervisor_id")
    validator.check_functional_dependency("supervisor_id", "call_center_id")
    return validator.get_quality_report()


def validate_calls(df: pd.DataFrame, clients: Optional[pd.DataFrame] = None) -> QualityMetrics:
    """Quality report for the call table; optionally how many debtors are known clients."""
    validator = DataQualityValidator(df, table="calls")
    validator.run_checks(CALL_CHECKS)
    if clients is not None:
        known = df["client_id"].isin(clients["id"])
        validator.checks_results["client_id_in_clients"] = {
            "total": len(df),
            "valid": int(known.sum()),
            "passed": bool(known.all()),
            "note": "calls to unknown clients are dropped by the inner join",
        }
    return validator.get_quality_report()
