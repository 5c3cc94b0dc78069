"""Tests for MLflow tracking helpers that need no tracking server."""

import pytest
from utils.mlflow import maybe_run_context, setup_mlflow_tracking


def test_tracking_off():
    assert setup_mlflow_tracking(mode="off") is False


def test_unknown_mode():
    with pytest.raises(ValueError):
        setup_mlflow_tracking(mode="databricks")


def test_disabled_run_context_is_noop():
    with maybe_run_context(False, "experiment", "parent", "child") as run:
        assert run is None
