"""Utility modules shared by the run scripts.

Submodules:
- mlflow: MLflow experiment tracking for diagnostics runs

Import examples:
    from utils.mlflow import setup_mlflow_tracking, log_timeseries_metrics
"""

import warnings

# Suppress MLflow FutureWarning about filesystem backend deprecation
warnings.filterwarnings("ignore", category=FutureWarning, module="mlflow")

from . import mlflow  # noqa: E402

__all__ = ["mlflow"]
