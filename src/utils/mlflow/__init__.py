"""MLflow utilities for experiment tracking of diagnostics runs.

Provides:
- Context manager for MLflow run orchestration
- Granular logging functions for parameters, metrics, time-series, and artifacts
"""

from .io import (
    setup_mlflow_tracking,
    start_mlflow_run_context,
    maybe_run_context,
    log_parameters,
    log_metrics_dict,
    log_timeseries_metrics,
    log_artifact_file,
    log_rank_topology,
)

__all__ = [
    "setup_mlflow_tracking",
    "start_mlflow_run_context",
    "maybe_run_context",
    "log_parameters",
    "log_metrics_dict",
    "log_timeseries_metrics",
    "log_artifact_file",
    "log_rank_topology",
]
