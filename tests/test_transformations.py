"""
Unit Tests for the cleaning and call-center transformations.
"""

from datetime import date

import pandas as pd
import pytest

from src.default_risk.cleaning import (
    add_agent_experience,
    aggregate_calls,
    call_feature_columns,
    clean_clients,
    coerce_types,
    collapse_education,
    decode_levels,
    experience_by_center,
    merge_call_summary,
    prune_columns,
)
from src.default_risk.loader import load_agents, load_clients, pay_status_cols
from tests.factories import make_agents, make_calls, make_clients


@pytest.fixture
def clients(clients_csv):
    return load_clients(clients_csv)


@pytest.fixture
def agents(agents_csv):
    return load_agents(agents_csv)


def typed_calls(client_ids, **kwargs):
    return make_calls(client_ids, **kwargs).astype("Int64")


def typed_agents():
    agents = make_agents()
    agents["hire_date"] = pd.to_datetime(agents["hire_date"], format="%m-%d-%y")
    return agents


class TestTypeCoercion:
    """Tests for categorical casting."""

    def test_categoricals_cast(self, clients):
        result = coerce_types(clients)
        for col in ["sex", "education", "marriage", "default_payment"]:
            assert isinstance(result[col].dtype, pd.CategoricalDtype)

    def test_repayment_status_untouched(self, clients):
        result = coerce_types(clients)
        for col in pay_status_cols:
            assert result[col].equals(clients[col])

    def test_input_not_modified(self, clients):
        before = clients.copy()
        coerce_types(clients)
        pd.testing.assert_frame_equal(clients, before)


class TestEducationCollapse:
    """Tests for merging the two 'other' education levels."""

    def test_six_becomes_five(self, clients):
        sixes = clients["education"] == 6
        result = collapse_education(coerce_types(clients))
        assert (result.loc[sixes, "education"] == 5).all()

    def test_levels_after_collapse(self, clients):
        result = collapse_education(coerce_types(clients))
        assert 6 not in list(result["education"].cat.categories)
        assert set(result["education"].cat.categories) <= {1, 2, 3, 4, 5}

    def test_plain_integer_column(self):
        df = pd.DataFrame({"education": pd.array([1, 5, 6], dtype="Int64")})
        assert list(collapse_education(df)["education"]) == [1, 5, 5]


class TestCleaningScenario:
    """30,000 clients with the -2 repayment sentinel present."""

    @pytest.fixture(scope="class")
    def large(self, tmp_path_factory):
        path = tmp_path_factory.mktemp("large") / "clients.csv"
        make_clients(30000, seed=7).to_csv(path, index=False)
        return load_clients(path)

    def test_no_rows_dropped(self, large):
        assert len(clean_clients(large)) == 30000

    def test_sentinel_rows_kept(self, large):
        cleaned = clean_clients(large)
        for col in pay_status_cols:
            assert (cleaned[col] == -2).sum() == (large[col] == -2).sum()
            assert cleaned[col].isna().sum() == 0

    def test_education_levels(self, large):
        cleaned = clean_clients(large)
        assert sorted(cleaned["education"].cat.categories) == [1, 2, 3, 4, 5]


class TestDecoding:
    def test_labels(self, clients):
        decoded = decode_levels(clean_clients(clients))
        assert set(decoded["gender"].unique()) <= {"male", "female"}
        assert set(decoded["defaulted"].unique()) <= {"no", "yes"}
        assert "other" in set(decoded["education_level"].astype(str))


class TestAgentExperience:
    """Tests for the derived experience feature."""

    def test_whole_weeks(self):
        agents = pd.DataFrame({
            "call_center_id": [1, 1, 2],
            "hire_date": pd.to_datetime(["01-01-19", "01-02-19", "12-25-18"], format="%m-%d-%y"),
        })
        result = add_agent_experience(agents, date(2019, 1, 15))
        # 14 days, 13 days, 21 days
        assert list(result["experience_weeks"]) == [2, 1, 3]

    def test_reference_date_is_the_only_clock(self, agents):
        first = add_agent_experience(agents, date(2019, 6, 30))
        second = add_agent_experience(agents, date(2019, 6, 30))
        assert first["experience_weeks"].equals(second["experience_weeks"])

    def test_summary_per_center(self, agents):
        summary = experience_by_center(add_agent_experience(agents, date(2019, 6, 30)))
        assert len(summary) == 4
        assert summary["agents"].sum() == 55


class TestCallAggregation:
    """Tests for the per-client call summary."""

    def test_total_count_without_agents(self):
        calls = pd.DataFrame({"agent_id": [1, 2, 1], "client_id": [10, 10, 11]})
        summary = aggregate_calls(calls)
        assert list(summary.columns) == ["client_id", "n_calls"]
        assert dict(zip(summary["client_id"], summary["n_calls"])) == {10: 2, 11: 1}

    def test_counts_per_center(self):
        calls = pd.DataFrame({"agent_id": [1, 2, 1, 3], "client_id": [10, 10, 11, 11]})
        agents = pd.DataFrame({"agent_id": [1, 2, 3], "call_center_id": [7, 8, 8]})
        summary = aggregate_calls(calls, agents).set_index("client_id")
        assert summary.loc[10, "calls_center_7"] == 1
        assert summary.loc[10, "calls_center_8"] == 1
        assert summary.loc[11, "calls_center_7"] == 1
        assert summary.loc[11, "calls_center_8"] == 1

    def test_unknown_agents_dropped(self):
        calls = pd.DataFrame({"agent_id": [1, 99], "client_id": [10, 11]})
        agents = pd.DataFrame({"agent_id": [1], "call_center_id": [7]})
        summary = aggregate_calls(calls, agents)
        assert list(summary["client_id"]) == [10]

    def test_scenario_55_agents_4_centers(self):
        client_ids = range(1, 30001)
        calls = typed_calls(client_ids, seed=3)
        summary = aggregate_calls(calls, typed_agents())

        assert len(summary) == calls["client_id"].nunique()
        assert len(summary) < 30000
        count_cols = [c for c in summary.columns if c != "client_id"]
        assert len(count_cols) == 4
        assert all(pd.api.types.is_numeric_dtype(summary[c]) for c in count_cols)
        assert summary[count_cols].to_numpy().sum() == len(calls)


class TestMerge:
    """Tests for the inner join onto the client table."""

    def test_inner_join_properties(self, clients):
        calls = typed_calls(clients["id"].astype("int64"), share=0.5)
        summary = aggregate_calls(calls)
        merged = merge_call_summary(clean_clients(clients), summary)

        assert len(merged) <= min(len(clients), len(summary))
        assert merged["id"].isin(clients["id"]).all()
        assert merged["id"].isin(summary["client_id"]).all()
        assert "client_id" not in merged.columns

    def test_clients_without_calls_dropped(self):
        clients = pd.DataFrame({"id": [1, 2, 3], "x": [0.1, 0.2, 0.3]})
        summary = pd.DataFrame({"client_id": [2, 3, 4], "n_calls": [1, 5, 2]})
        merged = merge_call_summary(clients, summary)
        assert sorted(merged["id"]) == [2, 3]

    def test_call_feature_columns(self):
        df = pd.DataFrame(columns=["id", "calls_center_1", "calls_center_2", "age"])
        assert call_feature_columns(df) == ["calls_center_1", "calls_center_2"]


class TestPruning:
    def test_admin_columns_removed(self):
        df = pd.DataFrame(columns=["id", "name", "hire_date", "supervisor_id", "age"])
        assert list(prune_columns(df).columns) == ["age"]

    def test_absent_columns_ignored(self):
        df = pd.DataFrame(columns=["age"])
        assert list(prune_columns(df, ["id", "nope"]).columns) == ["age"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
