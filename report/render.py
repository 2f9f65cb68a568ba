"""
Rendering of a pipeline run into a self-contained HTML report.

Figures are embedded as base64 PNGs so the report is a single file.
"""

import base64
import html
import io
import logging
import os

import matplotlib.pyplot as plt
import pandas as pd

from report import figures
from report.schemas import FailedModel, ModelSummary, RunSummary
from src.default_risk.cleaning import decode_levels
from src.default_risk.pipeline import CALL_CENTER, ReportData

logger = logging.getLogger(__name__)

TITLES = {
    "baseline": "Credit default risk: client data",
    CALL_CENTER: "Credit default risk: client and call-center data",
}

HISTOGRAM_COLUMNS = ["credit_limit", "age", "bill_amt_1", "pay_amt_1"]

STYLE = [
    "<style>",
    "body{font-family:Arial, sans-serif;max-width:1100px;margin:24px auto;padding:0 12px;}",
    ".card{margin:16px 0;padding:12px 16px;border:1px solid #e5e7eb;border-radius:10px;}",
    "img{max-width:100%;height:auto;}",
    "table{border-collapse:collapse;font-size:13px;} td,th{padding:4px 8px;border-bottom:1px solid #e5e7eb;}",
    "code{background:#f3f4f6;padding:2px 6px;border-radius:6px;}",
    ".warn{color:#b45309;}",
    "</style>",
]


def figure_to_html(fig) -> str:
    """Embed a figure as a base64 PNG and close it."""
    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", dpi=110, bbox_inches="tight")
    plt.close(fig)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"<img src='data:image/png;base64,{encoded}'>"


def table_to_html(df: pd.DataFrame, float_format="{:.4f}".format) -> str:
    return df.to_html(index=False, border=0, float_format=float_format)


def build_summary(report: ReportData) -> RunSummary:
    """Machine-readable summary of a run."""
    comparison = report.comparison
    models = []
    for result in comparison.results.values():
        models.append(ModelSummary(
            model=result.label,
            accuracy=result.accuracy,
            kappa=result.kappa,
            cv_accuracy=result.cv_accuracy,
            best_params=result.best_params,
            true_positives=result.confusion["tp"],
            false_positives=result.confusion["fp"],
            false_negatives=result.confusion["fn"],
            true_negatives=result.confusion["tn"],
            top_features=result.importance["feature"].head(5).tolist(),
        ))
    best = comparison.best
    return RunSummary(
        variant=report.variant,
        n_records=len(report.features.X),
        n_features=report.features.X.shape[1],
        train_records=len(report.split.X_train),
        test_records=len(report.split.X_test),
        dropped_correlated=report.features.dropped_correlated,
        reference_date=report.config.reference_date,
        models=models,
        failures=[FailedModel(model=name, error=error) for name, error in comparison.failures.items()],
        best_model=best.label if best is not None else None,
    )


def summary_table(summary: RunSummary) -> pd.DataFrame:
    """One row per model, failed families included."""
    rows = [
        {
            "model": m.model,
            "status": "ok",
            "accuracy": m.accuracy,
            "kappa": m.kappa,
            "cv_accuracy": m.cv_accuracy,
            "best_params": m.best_params,
            "error": "",
        }
        for m in summary.models
    ]
    rows += [
        {"model": f.model, "status": "failed", "error": f.error}
        for f in summary.failures
    ]
    return pd.DataFrame(rows, columns=["model", "status", "accuracy", "kappa", "cv_accuracy", "best_params", "error"])


def _model_section(result) -> list:
    confusion = pd.DataFrame(
        {
            "": ["Actual yes (1)", "Actual no (0)"],
            "Predicted yes (1)": [result.confusion["tp"], result.confusion["fp"]],
            "Predicted no (0)": [result.confusion["fn"], result.confusion["tn"]],
        }
    )
    params = ", ".join(f"{k}={v}" for k, v in result.best_params.items()) or "defaults"
    return [
        "<div class='card'>",
        f"<h3>{html.escape(result.label)}</h3>",
        f"<p>Accuracy <b>{result.accuracy:.4f}</b>, Cohen's kappa <b>{result.kappa:.4f}</b>, "
        f"cross-validated accuracy {result.cv_accuracy:.4f}. Selected: <code>{html.escape(params)}</code>.</p>",
        table_to_html(confusion),
        "<h4>Cross-validation</h4>",
        table_to_html(result.cv_results),
        figure_to_html(figures.importance_bars(result.importance, f"{result.label}: feature importance")),
        "</div>",
    ]


def render_html(report: ReportData) -> str:
    """Full report as an HTML string."""
    title = TITLES.get(report.variant, report.variant)
    clients = decode_levels(report.clients)
    features = report.features

    parts = ["<!doctype html><meta charset='utf-8'>", f"<title>{html.escape(title)}</title>"]
    parts += STYLE
    parts += [
        f"<h1>{html.escape(title)}</h1>",
        f"<p>{len(report.clients):,} clients loaded, {len(features.X):,} reach the models "
        f"with {features.X.shape[1]} features. Seed {report.config.random_seed}, "
        f"{report.config.cv_folds}-fold cross-validation, "
        f"{report.config.train_fraction:.0%} training split.</p>",
    ]
    if report.config.reference_date is not None:
        parts.append(f"<p>Agent experience measured at <code>{report.config.reference_date.isoformat()}</code>.</p>")

    parts += [
        "<h2>Data quality</h2>",
        "<p>Repayment-status codes -2 and 0 are undocumented; they are kept and read as paid on time.</p>",
        table_to_html(report.quality_table),
        "<h2>Exploration</h2>",
        figure_to_html(figures.label_distribution(clients)),
        figure_to_html(figures.numeric_histograms(clients, HISTOGRAM_COLUMNS)),
    ]

    if report.experience is not None:
        parts += [
            "<h3>Agent experience by call center</h3>",
            table_to_html(report.experience, float_format="{:.1f}".format),
            figure_to_html(figures.experience_by_center(report.agents)),
        ]
    if report.call_summary_rows is not None:
        parts.append(
            f"<p>{report.call_summary_rows:,} clients appear in the call data; "
            f"the inner join keeps {len(report.modeling_table):,} of {len(report.clients):,}.</p>"
        )

    dropped = ", ".join(features.dropped_correlated) or "none"
    parts += [
        "<h2>Feature selection</h2>",
        f"<p>Numeric features with absolute correlation above {report.config.correlation_threshold} "
        f"were filtered. Dropped: <code>{html.escape(dropped)}</code>.</p>",
        figure_to_html(figures.correlation_heatmap(features.correlation, features.dropped_correlated)),
        "<h2>Models</h2>",
    ]

    for result in report.comparison.results.values():
        parts += _model_section(result)
    for name, error in report.comparison.failures.items():
        parts.append(f"<p class='warn'>{html.escape(name)} excluded: {html.escape(error)}</p>")

    table = report.comparison.comparison_table()
    if len(table):
        parts += [
            "<h2>Comparison</h2>",
            table_to_html(table),
            figure_to_html(figures.model_comparison(table)),
        ]
    return "\n".join(parts)


def write_report(report: ReportData, output_dir: str) -> str:
    """
    Write `<variant>.html` and `<variant>_models.csv` to `output_dir`.

    Returns:
        Path of the HTML report
    """
    os.makedirs(output_dir, exist_ok=True)

    html_path = os.path.join(output_dir, f"{report.variant}.html")
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(render_html(report))

    csv_path = os.path.join(output_dir, f"{report.variant}_models.csv")
    summary_table(build_summary(report)).to_csv(csv_path, index=False)

    logger.info("Report written to %s", html_path)
    logger.info("Model table written to %s", csv_path)
    return html_path
