"""Run the diagnostics worker via mpiexec subprocess."""

import json
import os
import subprocess
import sys
import tempfile
from pathlib import Path

import h5py

LAYOUTS = ("par_x", "par_v")


def _load_results(path: Path) -> dict:
    """Read the worker's HDF5 output into a plain dict."""
    result = {}
    with h5py.File(path, "r") as f:
        result.update({k: v.item() if hasattr(v, "item") else v for k, v in f.attrs.items()})
        for layout in LAYOUTS:
            if layout not in f:
                continue
            grp = f[layout]
            entry = {name: grp[name][:] for name in grp.keys()}
            entry.update({k: float(v) for k, v in grp.attrs.items()})
            result[layout] = entry
    return result


def run_diagnostics(nx: int, nv: int, n_ranks: int = 1, output: str = None, **kwargs) -> dict:
    """Run every diagnostic on an (nx, nv) mesh with n_ranks MPI processes.

    Parameters
    ----------
    nx, nv : int
        Position and velocity mesh sizes
    n_ranks : int
        Number of MPI ranks
    output : str, optional
        Path to save HDF5 results (uses temp file if not provided)
    **kwargs
        Extra options: problem, eps, k, reconciler, use_numba, folder, tag,
        is_periodic, factor

    Returns
    -------
    dict
        Results per start layout (or 'error' key on failure)
    """
    # Use temp file if no output path specified
    use_temp = output is None
    if use_temp:
        tmp = tempfile.NamedTemporaryFile(suffix=".h5", delete=False)
        output = tmp.name
        tmp.close()

    config = {"nx": nx, "nv": nv, "output": output, **kwargs}
    cmd = [
        "mpiexec", "-n", str(n_ranks),
        sys.executable, "-m", "Vlasov.helpers.runner_helper", json.dumps(config),
    ]

    # Make the src tree importable in the workers without an install
    env = os.environ.copy()
    src_dir = str(Path(__file__).resolve().parent.parent)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_dir, env.get("PYTHONPATH")]))

    proc = subprocess.run(cmd, capture_output=True, text=True, env=env, timeout=300)

    if proc.returncode != 0:
        return {"error": proc.stderr}

    # Load results from HDF5
    if not Path(output).exists() or Path(output).stat().st_size == 0:
        return {"error": "No output file created", "stderr": proc.stderr}

    result = _load_results(Path(output))

    # Clean up temp file if we created one
    if use_temp:
        Path(output).unlink(missing_ok=True)

    return result
