"""
isoAdvector - Entry point for geometric VOF advection runs.

Usage:
    uv run python main.py
    uv run python main.py case=disc n_steps=200 dt=0.002
    uv run python main.py case=column n_partitions=2 solver.debug=true
    uv run python main.py case=disc partition_blocks=[2,2]
    uv run python main.py -m case.n=32,64,128
"""

import logging
import math
import os
import sys
from pathlib import Path

import hydra
import mlflow
from dotenv import load_dotenv
from hydra.utils import instantiate
from omegaconf import DictConfig, OmegaConf

load_dotenv()
sys.path.insert(0, str(Path(__file__).parent / "src"))

from cases import build_case  # noqa: E402
from meshing import block_partition, decompose_mesh, reconstruct_cell_field, slab_partition  # noqa: E402
from solvers import IsoAdvector  # noqa: E402
from utilities import create_thread_communicators, run_threaded  # noqa: E402
from utilities.mlflow import log_output_directory, log_time_series  # noqa: E402

log = logging.getLogger(__name__)


def get_experiment_name(cfg: DictConfig) -> str:
    """Build full experiment name with optional prefix."""
    name = cfg.experiment_name
    prefix = cfg.mlflow.get("project_prefix", "")
    if prefix and not name.startswith("/"):
        return f"{prefix}/{name}"
    return name


def setup_mlflow(cfg: DictConfig) -> str:
    """Setup MLflow tracking and return experiment name."""
    tracking_uri = cfg.mlflow.get("tracking_uri", "./mlruns")
    if str(cfg.mlflow.get("mode", "")).lower() in ("files", "local"):
        os.environ.pop("MLFLOW_TRACKING_URI", None)
    os.environ["MLFLOW_TRACKING_URI"] = str(tracking_uri)
    mlflow.set_tracking_uri(tracking_uri)

    experiment_name = get_experiment_name(cfg)
    try:
        mlflow.set_experiment(experiment_name)
    except Exception as exc:
        experiment_name = f"{experiment_name}-restored"
        log.warning(f"MLflow set_experiment failed ({exc}); using '{experiment_name}'")
        mlflow.set_experiment(experiment_name)

    return experiment_name


def run_serial(case, params, cfg, output_dir):
    solver = IsoAdvector(case.mesh, case.alpha, case.phi, case.U, params, case.boundary_conditions)
    solver.run(cfg.n_steps, cfg.dt, output_dir=output_dir, write_interval=cfg.write_interval)
    return solver, solver.alpha


def run_decomposed(case, params, cfg, output_dir):
    """Advect the case on slab or block partitions, one thread per partition."""
    if cfg.partition_blocks:
        cell_to_part = block_partition(case.mesh, list(cfg.partition_blocks))
    else:
        cell_to_part = slab_partition(case.mesh, cfg.n_partitions, axis=cfg.partition_axis)
    submeshes = decompose_mesh(case.mesh, cell_to_part)
    comms = create_thread_communicators(len(submeshes))

    def advect_partition(comm):
        sub = submeshes[comm.rank]
        solver = IsoAdvector(
            sub.mesh,
            sub.scatter_cell_field(case.alpha),
            sub.scatter_face_field(case.phi),
            sub.scatter_cell_field(case.U),
            params,
            case.boundary_conditions,
            comm=comm,
        )
        solver.run(cfg.n_steps, cfg.dt, output_dir=output_dir, write_interval=cfg.write_interval)
        log.info(f"Rank {comm.rank}: max |dVf + remote| = {solver.synchronizer.check_antisymmetry(solver.dVf):.3e}")
        return solver

    solvers = run_threaded(advect_partition, comms)
    alpha = reconstruct_cell_field(submeshes, [s.alpha for s in solvers], case.mesh.n_cells)
    return solvers[0], alpha


def run_case(cfg: DictConfig) -> str:
    """Run the advection and log to MLflow. Returns run_id."""
    case_kwargs = OmegaConf.to_container(cfg.case, resolve=True)
    for key in ("n_steps", "dt"):
        case_kwargs.pop(key, None)
    case = build_case(case_kwargs.pop("name"), **case_kwargs)
    params = instantiate(cfg.solver, _convert_="partial")
    alpha0 = case.alpha.copy()
    volume0 = float(alpha0 @ case.mesh.cell_volumes)

    output_dir = Path(hydra.core.hydra_config.HydraConfig.get().runtime.output_dir)
    n_partitions = math.prod(cfg.partition_blocks) if cfg.partition_blocks else cfg.n_partitions
    run_name = f"{case.name}_n{case.mesh.n_cells}_p{n_partitions}"

    parent_run_id = os.environ.get("MLFLOW_PARENT_RUN_ID")
    tags = {"solver": params.method, "case": case.name}
    if parent_run_id:
        tags.update({"mlflow.parentRunId": parent_run_id, "parent_run_id": parent_run_id, "sweep": "child"})

    with mlflow.start_run(run_name=run_name, tags=tags, nested=bool(parent_run_id)) as run:
        mlflow.log_params(params.to_mlflow())
        mlflow.log_params({"case": case.name, "n_cells": case.mesh.n_cells, "dt": cfg.dt,
                           "n_steps": cfg.n_steps, "n_partitions": n_partitions})
        mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")

        log.info(f"Advecting: {case.name} with {case.mesh.n_cells} cells, {cfg.n_steps} steps of dt={cfg.dt}")
        if n_partitions > 1:
            solver, alpha = run_decomposed(case, params, cfg, output_dir / "diagnostics")
        else:
            solver, alpha = run_serial(case, params, cfg, output_dir / "diagnostics")

        volume = float(alpha @ case.mesh.cell_volumes)
        mlflow.log_metrics(solver.metrics.to_mlflow())
        mlflow.log_metrics({"phase_volume_change": volume - volume0, "alpha_min": float(alpha.min()),
                            "alpha_max": float(alpha.max())})
        log_time_series(run.info.run_id, solver.time_series)
        log_output_directory(output_dir / "diagnostics")

        if cfg.plot:
            from plotting import generate_plots_for_run

            title = f"{case.name}, t = {solver.time:.3g} ({solver.time_index} steps)"
            generate_plots_for_run(case.mesh, alpha0, alpha, solver.time_series, title,
                                   output_dir / "plots", run_id=run.info.run_id)

        log.info(f"Done: {solver.metrics.n_steps} steps, phase volume change = {volume - volume0:.3e}, "
                 f"advection time = {solver.metrics.advection_time_seconds:.2f}s")
        return run.info.run_id


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Main entry point."""
    log.info(f"Case: {cfg.case.name}, partitions={cfg.n_partitions}")
    log.info(f"MLflow experiment: {setup_mlflow(cfg)}")
    run_case(cfg)


if __name__ == "__main__":
    main()
