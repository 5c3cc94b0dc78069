"""
Diagnostics Runner - runs in-process or re-spawns under mpiexec based on n_ranks.

Usage:
    python run_diagnostics.py
    python run_diagnostics.py n_ranks=4 nx=129 nv=257 problem=two_stream
    python run_diagnostics.py -cn config n_snapshots=20 --multirun nx=65,129
"""

import logging
import os
import subprocess
import sys
from pathlib import Path

import hydra
from omegaconf import DictConfig, OmegaConf

log = logging.getLogger(__name__)

# Keys forwarded to the mpiexec subprocess as key=value overrides
_FORWARDED_KEYS = [
    "nx", "nv", "x_min", "x_max", "v_min", "v_max", "problem", "eps", "k",
    "n_snapshots", "dt", "folder", "tag", "is_periodic", "factor", "n_ranks",
    "reconciler", "start_layout", "use_numba", "experiment_name",
]


def _params_from_cfg(cfg: DictConfig):
    """Typed parameters from the (possibly partial) config."""
    from Vlasov import DiagnosticParams

    values = OmegaConf.to_container(cfg, resolve=True)
    values.pop("mlflow", None)
    return DiagnosticParams(**values)


def _run_diagnostics(cfg: DictConfig, comm):
    """Evaluate every diagnostic at each snapshot time (inside MPI)."""
    import numpy as np
    from Vlasov import (
        DiagnosticSeries, DistributedField, create_kernel, diag_1d, diag_energy, diag_f,
        free_streaming, kinetic_energy, make_distribution, periodic_gauss_field,
        save_series, total_mass, update_spatial_density,
    )
    from utils.mlflow import (
        setup_mlflow_tracking, maybe_run_context, log_parameters, log_metrics_dict,
        log_timeseries_metrics, log_artifact_file, log_rank_topology,
    )

    rank, n_ranks = comm.Get_rank(), comm.Get_size()
    params = _params_from_cfg(cfg)
    meshx, meshv = params.meshes()

    tracking = False
    if rank == 0:
        Path(params.folder).mkdir(parents=True, exist_ok=True)
        tracking = setup_mlflow_tracking(mode=cfg.mlflow.mode)
        log.info(f"{params.problem}, nx={params.nx}, nv={params.nv}, ranks={n_ranks}, "
                 f"{params.start_layout}/{params.reconciler}")
    comm.Barrier()

    f0 = make_distribution(params.problem, eps=params.eps, k=params.k)
    kernel = create_kernel(params.use_numba)
    kernel.warmup()
    field = DistributedField(meshx, meshv, comm, layout=params.start_layout, reconciler=params.reconciler)
    series = DiagnosticSeries()

    for iplot in range(params.n_snapshots):
        time = iplot * params.dt
        # The transport solver is not part of this package: use the exact free-streaming solution
        field.ensure_layout(params.start_layout)
        field.fill(free_streaming(f0, time))

        rho = update_spatial_density(field, is_periodic=params.is_periodic, kernel=kernel)
        E = periodic_gauss_field(rho, meshx.samples)
        ke = kinetic_energy(field, factor=params.factor, kernel=kernel)
        series.append(time, ke, diag_energy(E, meshx.samples), total_mass(rho, meshx.samples))

        if rank == 0:
            diag_1d(rho, meshx.samples, "rho", params.folder, iplot, time)
            diag_1d(E, meshx.samples, "E", params.folder, iplot, time)
        diag_f(field, iplot, time, params.tag, params.folder, is_periodic=params.is_periodic)

    rank_infos = comm.gather(field.get_rank_info(), root=0)
    if rank != 0:
        return

    series_path = Path(params.folder) / "series.h5"
    save_series(series, series_path)
    log.info(f"Done: {len(series)} snapshots, kinetic energy={series.kinetic_energy[-1]:.6e}, "
             f"field energy={series.field_energy[-1]:.6e}")

    run_name = f"{params.problem}_nx{params.nx}_nv{params.nv}_p{n_ranks}"
    with maybe_run_context(tracking, params.experiment_name, f"nx{params.nx}", run_name):
        if tracking:
            log_parameters(params.to_mlflow())
            log_metrics_dict({
                "final_kinetic_energy": series.kinetic_energy[-1],
                "final_field_energy": series.field_energy[-1],
                "mass_drift": float(np.ptp(series.mass)),
            })
            log_timeseries_metrics(series)
            log_artifact_file(series_path)
            log_rank_topology(rank_infos)


@hydra.main(config_path="Experiments/hydra-conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Entry point - runs in-process or spawns MPI based on n_ranks."""
    n_ranks = cfg.get("n_ranks", 1)
    log.info(f"{cfg.problem}, nx={cfg.nx}, nv={cfg.nv}, n_ranks={n_ranks}")

    if n_ranks == 1:
        from mpi4py import MPI

        _run_diagnostics(cfg, MPI.COMM_WORLD)
    else:
        _spawn_mpi(cfg, n_ranks)


def _spawn_mpi(cfg: DictConfig, n_ranks: int):
    """Spawn MPI subprocess."""
    env = os.environ.copy()
    env["MPI_SUBPROCESS"] = "1"

    cmd = ["mpiexec", "-n", str(n_ranks), sys.executable, os.path.abspath(__file__)]
    for key in _FORWARDED_KEYS:
        val = cfg.get(key)
        if val is not None:
            cmd.append(f"{key}={val}")
    cmd.append(f"mlflow.mode={cfg.mlflow.mode}")

    result = subprocess.run(cmd, capture_output=True, text=True, env=env)
    for line in (result.stdout or "").strip().split("\n"):
        if line:
            log.info(line)
    for line in (result.stderr or "").strip().split("\n"):
        if line:
            log.warning(line) if "error" in line.lower() else log.info(line)
    if result.returncode != 0:
        raise RuntimeError(f"mpiexec exited with status {result.returncode}")


def _parse_overrides(args) -> dict:
    """Parse key=value args forwarded by _spawn_mpi."""
    cfg_dict = {}
    for arg in args:
        if "=" in arg and not arg.startswith("-"):
            key, val = arg.split("=", 1)
            d = cfg_dict
            for k in key.split(".")[:-1]:
                d = d.setdefault(k, {})
            d[key.split(".")[-1]] = _parse_value(val)
    return cfg_dict


def _parse_value(val: str):
    if val.lower() in ("true", "false"):
        return val.lower() == "true"
    for cast in (int, float):
        try:
            return cast(val)
        except ValueError:
            continue
    return val


if __name__ == "__main__":
    if os.environ.get("MPI_SUBPROCESS"):
        from mpi4py import MPI

        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        _run_diagnostics(OmegaConf.create(_parse_overrides(sys.argv[1:])), MPI.COMM_WORLD)
    else:
        main()
