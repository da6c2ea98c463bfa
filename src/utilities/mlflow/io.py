"""MLflow I/O utilities for experiment tracking."""

from pathlib import Path

import mlflow
from mlflow.entities import Metric


def setup_mlflow_tracking(mode: str = "local", tracking_uri: str = None):
    """Configure MLflow tracking.

    Parameters
    ----------
    mode : str
        "databricks" or "local".
    tracking_uri : str, optional
        Local store location, defaults to ./mlruns
    """
    if mode == "databricks":
        try:
            mlflow.login(backend="databricks", interactive=False)
            mlflow.set_tracking_uri("databricks")
            print("INFO: Connected to Databricks MLflow tracking.")
        except Exception as e:
            raise RuntimeError(
                "MLflow Databricks setup failed. Ensure credentials are configured."
            ) from e
    elif mode == "local":
        mlruns_path = Path(tracking_uri) if tracking_uri else Path.cwd() / "mlruns"
        mlruns_uri = mlruns_path.resolve().as_uri()
        mlflow.set_tracking_uri(mlruns_uri)
        print(f"INFO: Using local file-based MLflow tracking backend: {mlruns_uri}")
    else:
        print(
            f"WARNING: Unknown MLflow mode '{mode}'. Using existing URI: {mlflow.get_tracking_uri()}"
        )


def log_time_series(run_id: str, time_series) -> int:
    """Log every step of a TimeSeries as MLflow metrics in one batch.

    Returns the number of metric entries written.
    """
    batch = [Metric(key=key, value=value, timestamp=timestamp, step=step)
             for key, value, timestamp, step in time_series.to_mlflow_batch()]
    if batch:
        mlflow.tracking.MlflowClient().log_batch(run_id, metrics=batch)
    return len(batch)


def log_output_directory(output_dir, artifact_path: str = "diagnostics"):
    """Upload all files written below output_dir (cell sets, iso faces, plots)."""
    output_dir = Path(output_dir)
    if output_dir.is_dir() and any(output_dir.iterdir()):
        mlflow.log_artifacts(str(output_dir), artifact_path=artifact_path)
