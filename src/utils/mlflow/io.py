"""MLflow I/O utilities for experiment tracking of diagnostics runs.

This module provides helpers for:
- Setting up MLflow tracking (local file store or disabled).
- Orchestrating MLflow runs (context manager for parent/nested runs).
- Logging parameters, metrics, diagnostic time series and artifacts.
- Recording the per-rank layout of a run.
"""

import logging
import os
from contextlib import contextmanager, nullcontext
from dataclasses import asdict
from pathlib import Path

import mlflow

log = logging.getLogger(__name__)


def setup_mlflow_tracking(mode: str = "local") -> bool:
    """
    Configures MLflow tracking.

    Parameters
    ----------
    mode : str
        "local" for a ./mlruns file store, "off" to disable tracking.

    Returns
    -------
    bool
        True when tracking is enabled.
    """
    if mode == "off":
        log.info("MLflow tracking disabled")
        return False
    elif mode == "local":
        mlruns_uri = f"file://{Path.cwd() / 'mlruns'}"
        mlflow.set_tracking_uri(mlruns_uri)
        log.info(f"Using local file-based MLflow tracking backend: {mlruns_uri}")
        return True
    else:
        raise ValueError(f"Unknown MLflow mode: {mode}. Use 'local' or 'off'.")


def get_mlflow_client() -> mlflow.tracking.MlflowClient:
    """Get an MLflow tracking client."""
    return mlflow.tracking.MlflowClient()


@contextmanager
def start_mlflow_run_context(experiment_name: str, parent_run_name: str, child_run_name: str):
    """
    Context manager to start a nested MLflow run under a shared parent run.
    """
    mlflow.set_experiment(experiment_name)
    exp = mlflow.get_experiment_by_name(experiment_name)

    client = get_mlflow_client()
    parent_runs = client.search_runs(
        experiment_ids=[exp.experiment_id],
        filter_string=f"tags.mlflow.runName = '{parent_run_name}' AND tags.is_parent = 'true'",
        max_results=1,
    )
    parent_run_id = parent_runs[0].info.run_id if parent_runs else None

    with mlflow.start_run(run_id=parent_run_id, run_name=parent_run_name, tags={"is_parent": "true"}):
        with mlflow.start_run(run_name=child_run_name, nested=True) as child_run:
            # Tag run with environment (HPC vs local) for easy filtering
            env = "hpc" if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID") else "local"
            mlflow.set_tag("environment", env)
            log.info(f"Started MLflow run '{child_run.info.run_name}' ({child_run.info.run_id}) [{env}]")
            yield child_run


def maybe_run_context(enabled: bool, experiment_name: str, parent_run_name: str, child_run_name: str):
    """Run context when tracking is enabled, a no-op context otherwise."""
    if not enabled:
        return nullcontext()
    return start_mlflow_run_context(experiment_name, parent_run_name, child_run_name)


def log_parameters(params: dict):
    """Log a dictionary of parameters to the active MLflow run."""
    mlflow.log_params(params)


def log_metrics_dict(metrics: dict):
    """Log a dictionary of metrics to the active MLflow run, filtering out None values."""
    filtered_metrics = {k: v for k, v in metrics.items() if v is not None}
    mlflow.log_metrics(filtered_metrics)


def log_timeseries_metrics(series) -> int:
    """Log a DiagnosticSeries as step-based metrics to the active MLflow run.

    Returns
    -------
    int
        Number of metric points logged.
    """
    if not mlflow.active_run():
        return 0
    client = get_mlflow_client()
    run_id = mlflow.active_run().info.run_id
    metrics_to_log = series.to_mlflow_batch()
    for i in range(0, len(metrics_to_log), 1000):
        client.log_batch(run_id=run_id, metrics=metrics_to_log[i : i + 1000], synchronous=True)
    log.info(f"Logged {len(metrics_to_log)} time-series metrics.")
    return len(metrics_to_log)


def log_artifact_file(filepath: Path):
    """Log a file as an artifact to the active MLflow run."""
    filepath = Path(filepath)
    if filepath.exists():
        mlflow.log_artifact(str(filepath))
        log.info(f"Logged artifact: {filepath.name}")
    else:
        log.warning(f"Artifact file not found at {filepath}")



def log_rank_topology(rank_infos: list, artifact_file: str = "rank_topology.json"):
    """Log the gathered per-rank LocalParams as a JSON artifact."""
    mlflow.log_dict({"ranks": [asdict(info) for info in rank_infos]}, artifact_file)
    log.info(f"Logged topology of {len(rank_infos)} ranks")
