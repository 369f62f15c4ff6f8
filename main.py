"""
Poisson FEM - entry point for single solves and convergence studies.

Usage:
    uv run python main.py
    uv run python main.py problem=cubic mesh.nx=32 mesh.ny=32
    uv run python main.py solver=cg solver.rtol=1e-12
    uv run python main.py problem=sine convergence.enabled=true mlflow.enabled=true
"""

import logging
import os

import hydra
import mlflow
from dotenv import load_dotenv
from hydra.utils import instantiate
from omegaconf import DictConfig, OmegaConf

from poisson_fem import (
    Mesh2d,
    SolverParameters,
    convergence_study,
    get_manufactured_solution,
    solve_poisson,
)

load_dotenv()

log = logging.getLogger(__name__)


def setup_mlflow(cfg: DictConfig) -> str:
    """Setup MLflow tracking and return experiment name."""
    tracking_uri = os.environ.get("MLFLOW_TRACKING_URI", cfg.mlflow.get("tracking_uri", "./mlruns"))
    mlflow.set_tracking_uri(tracking_uri)
    experiment_name = cfg.mlflow.experiment_name
    mlflow.set_experiment(experiment_name)
    return experiment_name


def build_parameters(cfg: DictConfig) -> SolverParameters:
    return instantiate(cfg.solver, _convert_="all")


def run_single(cfg: DictConfig) -> dict:
    """Solve one manufactured problem; returns the metrics dict."""
    problem = get_manufactured_solution(cfg.problem.name)
    params = build_parameters(cfg)
    mesh = Mesh2d.rectangle(
        cfg.mesh.x0, cfg.mesh.y0, cfg.mesh.L1, cfg.mesh.L2, cfg.mesh.nx, cfg.mesh.ny
    )

    log.info(
        f"Solving problem '{problem.name}' on {cfg.mesh.nx}x{cfg.mesh.ny} mesh "
        f"(degree={cfg.degree}, solver={params.method})"
    )
    result = solve_poisson(
        mesh,
        problem.f,
        problem.u_D,
        degree=cfg.degree,
        exact=problem.u,
        params=params,
        quadrature_order=cfg.quadrature_order,
    )
    metrics = result.metrics.to_mlflow()

    if cfg.mlflow.enabled:
        run_name = f"{problem.name}_N{cfg.mesh.nx}x{cfg.mesh.ny}_{params.method}"
        with mlflow.start_run(run_name=run_name, tags={"problem": problem.name}):
            mlflow.log_params(params.to_mlflow())
            mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")
            mlflow.log_metrics(metrics)

    log.info(
        f"Done: error_L2={result.error_l2:.6e}, error_max={result.error_max:.6e}, "
        f"time={result.metrics.wall_time_seconds:.3f}s"
    )
    return metrics


def run_convergence(cfg: DictConfig) -> dict:
    """Run a convergence study on n x n unit-square meshes; returns the finest row."""
    problem = get_manufactured_solution(cfg.problem.name)
    params = build_parameters(cfg)
    resolutions = list(cfg.convergence.resolutions)

    log.info(f"Convergence study for '{problem.name}' on resolutions {resolutions}")
    df = convergence_study(
        resolutions,
        problem,
        degree=cfg.degree,
        params=params,
        quadrature_order=cfg.quadrature_order,
    )
    log.info(f"\n{df.to_string(index=False)}")

    if cfg.mlflow.enabled:
        with mlflow.start_run(run_name=f"{problem.name}_convergence", tags={"problem": problem.name}):
            mlflow.log_params(params.to_mlflow())
            mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")
            for step, row in df.iterrows():
                mlflow.log_metrics(
                    {k: float(v) for k, v in row.dropna().items() if k.startswith(("error_", "rate_"))},
                    step=int(step),
                )
            mlflow.log_table(data=df, artifact_file="convergence.json")

    return df.iloc[-1].to_dict()


def run(cfg: DictConfig) -> dict:
    if cfg.mlflow.enabled:
        log.info(f"MLflow experiment: {setup_mlflow(cfg)}")
    if cfg.convergence.enabled:
        return run_convergence(cfg)
    return run_single(cfg)


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> float:
    """Main entry point.

    Returns
    -------
    float
        L2 error of the (finest) solve, usable as a sweep objective.
    """
    return float(run(cfg)["error_l2"])


if __name__ == "__main__":
    main()
