"""
End-to-end tests for the report pipeline and the command line.
"""

import logging
from datetime import date

import pandas as pd
import pytest

from report.main import build_config, main, parse_args
from report.render import build_summary, render_html, summary_table, write_report
from src.default_risk.errors import DataFormatError, ResamplingError
from src.default_risk.models import (
    AVERAGED_NEURAL_NETWORK,
    LOGISTIC_REGRESSION,
    NAIVE_BAYES,
    RANDOM_FOREST,
)
from src.default_risk.pipeline import BASELINE, CALL_CENTER, run_pipeline, run_reports
from tests.factories import N_CENTERS, make_clients

ALL_FAMILIES = {NAIVE_BAYES, LOGISTIC_REGRESSION, RANDOM_FOREST, AVERAGED_NEURAL_NETWORK}


@pytest.fixture
def baseline(clients_csv, fast_config):
    return run_pipeline(clients_csv, config=fast_config)


@pytest.fixture
def call_center(clients_csv, agents_csv, calls_csv, fast_config):
    return run_pipeline(clients_csv, agents_csv, calls_csv, config=fast_config)


class TestBaseline:
    """The client-only report."""

    def test_variant(self, baseline):
        assert baseline.variant == BASELINE
        assert baseline.agents is None
        assert baseline.call_summary_rows is None

    def test_every_family_produces_results(self, baseline):
        comparison = baseline.comparison
        assert set(comparison.results) == ALL_FAMILIES
        assert comparison.failures == {}

    def test_identifiers_not_modeled(self, baseline):
        assert "id" not in baseline.features.X.columns
        assert "default_payment" not in baseline.features.X.columns

    def test_all_clients_modeled(self, baseline, raw_clients):
        assert len(baseline.features.X) == len(raw_clients)
        assert len(baseline.split.X_train) + len(baseline.split.X_test) == len(raw_clients)

    def test_quality_recorded(self, baseline):
        table = baseline.quality_table
        assert set(table["table"]) == {"clients"}
        assert "undocumented_repayment_codes" in set(table["check"])


class TestCallCenter:
    """The client plus call-center report."""

    def test_variant(self, call_center):
        assert call_center.variant == CALL_CENTER
        assert call_center.experience is not None
        assert len(call_center.experience) == N_CENTERS

    def test_inner_join(self, call_center, raw_clients):
        assert len(call_center.modeling_table) == call_center.call_summary_rows
        assert len(call_center.modeling_table) < len(raw_clients)

    def test_center_counts_reach_models(self, call_center):
        count_cols = [c for c in call_center.modeling_table.columns if c.startswith("calls_center_")]
        assert len(count_cols) == N_CENTERS
        assert "name" not in call_center.modeling_table.columns
        assert "experience_weeks" not in call_center.modeling_table.columns

    def test_quality_covers_three_tables(self, call_center):
        assert set(call_center.quality_table["table"]) == {"clients", "agents", "calls"}

    def test_calls_without_agents(self, clients_csv, calls_csv, fast_config):
        report = run_pipeline(clients_csv, calls_path=calls_csv, config=fast_config)
        assert "n_calls" in report.modeling_table.columns
        assert report.experience is None

    def test_agents_need_calls(self, clients_csv, agents_csv):
        with pytest.raises(ValueError):
            run_pipeline(clients_csv, agents_csv)

    def test_run_reports_order(self, clients_csv, agents_csv, calls_csv, fast_config):
        reports = run_reports(clients_csv, agents_csv, calls_csv, config=fast_config)
        assert [r.variant for r in reports] == [BASELINE, CALL_CENTER]


class TestStageErrors:
    """Fatal errors carry the stage they came from."""

    def test_missing_column_halts_in_load(self, tmp_path, fast_config):
        path = tmp_path / "clients.csv"
        make_clients(50).drop(columns=["AGE"]).to_csv(path, index=False)
        with pytest.raises(DataFormatError) as excinfo:
            run_pipeline(path, config=fast_config)
        assert excinfo.value.stage == "load"
        assert str(path) in str(excinfo.value)

    def test_single_class_halts_in_train(self, tmp_path, fast_config):
        raw = make_clients(50)
        raw["default payment next month"] = 0
        path = tmp_path / "clients.csv"
        raw.to_csv(path, index=False)
        with pytest.raises(ResamplingError) as excinfo:
            run_pipeline(path, config=fast_config)
        assert excinfo.value.stage == "train"


class TestRendering:
    """HTML report and model table."""

    def test_summary(self, baseline):
        summary = build_summary(baseline)
        assert summary.variant == BASELINE
        assert summary.train_records + summary.test_records == summary.n_records
        assert summary.best_model is not None
        for model in summary.models:
            assert len(model.top_features) <= 5

    def test_integer_params_stay_integers(self, baseline):
        summary = build_summary(baseline)
        forest = [m for m in summary.models if m.model == "Random Forest"][0]
        assert isinstance(forest.best_params["max_features"], int)

        table = summary_table(summary)
        params = table.loc[table["model"] == "Random Forest", "best_params"].iloc[0]
        assert ".0" not in str(params)

    def test_summary_table(self, baseline):
        table = summary_table(build_summary(baseline))
        assert len(table) == 4
        assert set(table["status"]) <= {"ok", "failed"}

    def test_html_sections(self, baseline):
        page = render_html(baseline)
        assert "<h2>Data quality</h2>" in page
        assert "<h2>Feature selection</h2>" in page
        assert "Naive Bayes" in page
        assert "data:image/png;base64," in page

    def test_write_report(self, call_center, tmp_path):
        html_path = write_report(call_center, str(tmp_path / "out"))
        assert html_path.endswith("call_center.html")
        assert (tmp_path / "out" / "call_center.html").exists()

        models = pd.read_csv(tmp_path / "out" / "call_center_models.csv")
        assert set(models["status"]) <= {"ok", "failed"}
        assert "Agent experience measured at" in (tmp_path / "out" / "call_center.html").read_text()


class TestCommandLine:
    """Argument handling of the report runner."""

    def test_defaults(self):
        args = parse_args(["--clients", "clients.csv"])
        assert args.workers == 3
        assert args.seed == 1234
        assert args.as_of is None

    def test_as_of(self):
        args = parse_args(["--clients", "c.csv", "--agents", "a.csv", "--calls", "k.csv", "--as-of", "2019-06-30"])
        assert build_config(args).reference_date == date(2019, 6, 30)

    def test_agents_need_calls(self):
        with pytest.raises(SystemExit):
            parse_args(["--clients", "c.csv", "--agents", "a.csv"])

    def test_reference_date_falls_back_to_today(self, caplog):
        args = parse_args(["--clients", "c.csv", "--agents", "a.csv", "--calls", "k.csv"])
        with caplog.at_level(logging.WARNING, logger="report"):
            config = build_config(args)
        assert config.reference_date == date.today()
        assert "--as-of" in caplog.text

    def test_no_reference_date_without_agents(self):
        config = build_config(parse_args(["--clients", "c.csv"]))
        assert config.reference_date is None

    def test_bad_input_exit_code(self, tmp_path):
        path = tmp_path / "clients.csv"
        make_clients(30).drop(columns=["LIMIT_BAL"]).to_csv(path, index=False)
        assert main(["--clients", str(path), "--output", str(tmp_path / "out")]) == 1
        assert not (tmp_path / "out").exists()

    @pytest.mark.parametrize("column", ["LIMIT_BAL", "default payment next month"])
    def test_blank_cell_exit_code(self, tmp_path, caplog, column):
        raw = make_clients(200)
        raw[column] = raw[column].astype(float)
        raw.loc[10, column] = None
        path = tmp_path / "clients.csv"
        raw.to_csv(path, index=False)

        assert main(["--clients", str(path), "--output", str(tmp_path / "out")]) == 1
        assert "stage 'load'" in caplog.text
        assert "blank values" in caplog.text

    def test_invalid_config_exit_code(self, tmp_path):
        assert main(["--clients", "c.csv", "--workers", "0"]) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
