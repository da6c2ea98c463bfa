"""MLflow utilities for experiment tracking and artifact management."""

from .io import log_output_directory, log_time_series, setup_mlflow_tracking

__all__ = [
    "setup_mlflow_tracking",
    "log_time_series",
    "log_output_directory",
]
