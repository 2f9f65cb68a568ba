"""Shared fixtures for the pipeline tests."""

from datetime import date

import pytest

from src.default_risk.config import PipelineConfig
from tests.factories import make_agents, make_calls, make_clients


@pytest.fixture
def raw_clients():
    return make_clients()


@pytest.fixture
def clients_csv(tmp_path, raw_clients):
    path = tmp_path / "clients.csv"
    raw_clients.to_csv(path, index=False)
    return path


@pytest.fixture
def agents_csv(tmp_path):
    path = tmp_path / "agents.csv"
    make_agents().to_csv(path, index=False)
    return path


@pytest.fixture
def calls_csv(tmp_path, raw_clients):
    path = tmp_path / "calls.csv"
    make_calls(raw_clients["ID"]).to_csv(path, index=False)
    return path


@pytest.fixture
def fast_config():
    """Small grids so the full pipeline runs in seconds."""
    return PipelineConfig(
        n_workers=1,
        rf_trees=15,
        nn_sizes=[2],
        nn_decays=[0.1],
        nn_repeats=2,
        max_iter=3000,
        reference_date=date(2019, 6, 30),
    )
