"""
Credit Default Risk Reports

Runs the baseline report on the client table and, when call data is
given, the call-center report, then renders both to HTML.

Usage:
    python -m report.main --clients data/clients.csv
    python -m report.main --clients data/clients.csv \\
        --agents data/agents.csv --calls data/calls.csv --as-of 2019-06-30
"""

import argparse
import logging
import sys
from datetime import date

from pydantic import ValidationError

from report.render import write_report
from src.default_risk.config import PipelineConfig
from src.default_risk.errors import PipelineError
from src.default_risk.pipeline import run_reports

logger = logging.getLogger("report")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Credit default risk reports")
    parser.add_argument("--clients", required=True, help="Client CSV (one row per card holder)")
    parser.add_argument("--agents", help="Agent CSV (needs --calls)")
    parser.add_argument("--calls", help="Call CSV (agent id, client id)")
    parser.add_argument("--as-of", type=date.fromisoformat, help="Reference date for agent experience (YYYY-MM-DD)")
    parser.add_argument("--output", default="reports", help="Output directory")
    parser.add_argument("--workers", type=int, default=3, help="Worker processes for model fitting")
    parser.add_argument("--seed", type=int, default=1234, help="Random seed")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)
    if args.agents and not args.calls:
        parser.error("--agents needs --calls")
    return args


def build_config(args) -> PipelineConfig:
    reference_date = args.as_of
    if args.agents and reference_date is None:
        reference_date = date.today()
        logger.warning(
            "No --as-of given; agent experience measured at %s. Pass --as-of %s to reproduce this run.",
            reference_date, reference_date,
        )
    return PipelineConfig(
        random_seed=args.seed,
        n_workers=args.workers,
        reference_date=reference_date,
        output_dir=args.output,
    )


def print_comparison(report) -> None:
    table = report.comparison.comparison_table()
    print("\n" + "=" * 60)
    print(f"MODEL COMPARISON: {report.variant} (sorted by accuracy)")
    print("=" * 60)
    if len(table):
        print(table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
    for name, error in report.comparison.failures.items():
        print(f"EXCLUDED {name}: {error}")


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
        reports = run_reports(args.clients, args.agents, args.calls, config=config)
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    except PipelineError as e:
        logger.error("Run halted in stage '%s': %s", e.stage, e.message)
        if e.source:
            logger.error("Input: %s", e.source)
        return 1

    for report in reports:
        write_report(report, config.output_dir)
        print_comparison(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
