"""
Volume fraction plots for advection runs.

For every run: alpha along the first mesh axis (initial vs. final), a slice of
the final alpha field for 2-D/3-D cases, and the per-step bounding history.

Usage (from main.py):
    from plotting import generate_plots_for_run
    generate_plots_for_run(mesh, alpha0, alpha, time_series, title, output_dir, run_id=run_id)
"""

import logging
from pathlib import Path
from typing import Optional

import mlflow
import numpy as np
import pandas as pd

log = logging.getLogger(__name__)


# =============================================================================
# Individual Plotting Functions
# =============================================================================


def plot_alpha_profile(x: np.ndarray, profiles: dict, title: str, output_dir: Path) -> Path:
    """Plot one or more alpha profiles against a coordinate.

    Parameters
    ----------
    x : np.ndarray
        Coordinate of each value (cell centres)
    profiles : dict
        Label -> alpha values at x
    """
    import matplotlib.pyplot as plt

    order = np.argsort(x)
    fig, ax = plt.subplots(figsize=(10, 5))
    for label, alpha in profiles.items():
        ax.step(x[order], np.asarray(alpha)[order], where="mid", label=label, linewidth=1.5)

    ax.set_xlabel("x")
    ax.set_ylabel(r"$\alpha$")
    ax.set_ylim(-0.05, 1.05)
    ax.set_title(title, fontweight="bold")
    ax.legend(frameon=True)
    ax.grid(True, alpha=0.3)
    plt.tight_layout()

    output_path = output_dir / "alpha_profile.pdf"
    fig.savefig(output_path, dpi=300, bbox_inches="tight")
    plt.close(fig)

    return output_path


def plot_alpha_slice(mesh, alpha: np.ndarray, title: str, output_dir: Path, k: int = 0) -> Optional[Path]:
    """Plot alpha in the k-th x-y layer of a structured mesh."""
    import matplotlib.pyplot as plt

    nx, ny = getattr(mesh, "nx", None), getattr(mesh, "ny", None)
    if nx is None or ny is None or ny < 2:
        return None

    layer = np.asarray(alpha)[k * nx * ny:(k + 1) * nx * ny].reshape(ny, nx)
    extent = (
        mesh.points[:, 0].min(), mesh.points[:, 0].max(),
        mesh.points[:, 1].min(), mesh.points[:, 1].max(),
    )

    fig, ax = plt.subplots(figsize=(8, 7))
    im = ax.imshow(layer, origin="lower", extent=extent, cmap="Blues", vmin=0.0, vmax=1.0)
    ax.contour(
        np.linspace(extent[0], extent[1], nx), np.linspace(extent[2], extent[3], ny),
        layer, levels=[0.5], colors="k", linewidths=1.0,
    )
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title(title, fontweight="bold")
    ax.set_aspect("equal")
    plt.colorbar(im, ax=ax, label=r"$\alpha$")
    plt.tight_layout()

    output_path = output_dir / "alpha_slice.pdf"
    fig.savefig(output_path, dpi=300, bbox_inches="tight")
    plt.close(fig)

    return output_path


def plot_bounding_history(timeseries_df: pd.DataFrame, output_dir: Path) -> Optional[Path]:
    """Plot alpha extrema before/after bounding and the number of surface cells per step."""
    import matplotlib.pyplot as plt

    if timeseries_df.empty:
        log.warning("No timeseries data available for bounding history plot")
        return None

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    steps = np.arange(1, len(timeseries_df) + 1)

    ax = axes[0]
    ax.plot(steps, timeseries_df["alpha_max_before"] - 1.0, label=r"max $\alpha$ - 1 before bounding")
    ax.plot(steps, -timeseries_df["alpha_min_before"], label=r"-min $\alpha$ before bounding")
    ax.set_xlabel("Step")
    ax.set_ylabel("Violation")
    ax.set_title("Boundedness", fontweight="bold")
    ax.legend(frameon=True)
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    ax.plot(steps, timeseries_df["n_surface_cells"], label="Surface cells")
    ax.plot(steps, timeseries_df["n_bounded_cells"], label="Bounded cells")
    ax.set_xlabel("Step")
    ax.set_ylabel("Cells")
    ax.set_title("Interface cells", fontweight="bold")
    ax.legend(frameon=True)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    output_path = output_dir / "bounding_history.pdf"
    fig.savefig(output_path, dpi=300, bbox_inches="tight")
    plt.close(fig)

    return output_path


# =============================================================================
# MLflow Upload
# =============================================================================


def upload_plots_to_mlflow(run_id: str, plot_paths: list, artifact_subdir: str = "plots"):
    """Upload generated plots to MLflow run as artifacts."""
    valid_paths = [p for p in plot_paths if p and p.exists()]

    # Check if we're already in an active run
    active_run = mlflow.active_run()
    if active_run and active_run.info.run_id == run_id:
        for path in valid_paths:
            mlflow.log_artifact(str(path), artifact_path=artifact_subdir)
            log.info(f"Uploaded: {artifact_subdir}/{path.name}")
    else:
        with mlflow.start_run(run_id=run_id, nested=True):
            for path in valid_paths:
                mlflow.log_artifact(str(path), artifact_path=artifact_subdir)
                log.info(f"Uploaded: {artifact_subdir}/{path.name}")


# =============================================================================
# Direct API for main.py
# =============================================================================


def generate_plots_for_run(
    mesh,
    alpha0: np.ndarray,
    alpha: np.ndarray,
    time_series,
    title: str,
    output_dir: Path,
    run_id: Optional[str] = None,
) -> list[Path]:
    """Generate all plots for a finished run.

    Parameters
    ----------
    mesh : MeshData
        Global mesh
    alpha0, alpha : np.ndarray
        Initial and final volume fraction on the global mesh
    time_series : TimeSeries
        Per-step history of the run
    title : str
        Plot title
    output_dir : Path
        Directory to save plots
    run_id : str, optional
        MLflow run to upload the plots to

    Returns
    -------
    list[Path]
        List of generated plot paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    # First row of cells along x on structured meshes
    row = slice(0, getattr(mesh, "nx", mesh.n_cells))

    plot_paths = [
        plot_alpha_profile(
            mesh.cell_centers[row, 0], {"initial": alpha0[row], "final": alpha[row]}, title, output_dir
        ),
        plot_alpha_slice(mesh, alpha, title, output_dir),
        plot_bounding_history(time_series.to_dataframe(), output_dir),
    ]
    plot_paths = [p for p in plot_paths if p is not None]
    log.info(f"Generated {len(plot_paths)} plots for run")

    if run_id is not None:
        upload_plots_to_mlflow(run_id, plot_paths)

    return plot_paths
