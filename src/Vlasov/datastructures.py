"""Data structures for diagnostic configuration and results.

Architecture: Params vs Series × Global vs Local

                 Params (input/config)         Series (output/results)
                 ─────────────────────         ───────────────────────
Global           DiagnosticParams              DiagnosticSeries
(same across     nx, nv, bounds, n_ranks,      time, kinetic_energy,
ranks / agg)     reconciler...                 field_energy, mass...

Local            LocalParams
(per-rank)       rank, hostname, layout,
                 rows owned...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np


# ============================================================================
# Meshes
# ============================================================================


@dataclass(frozen=True, eq=False)
class Mesh:
    """Immutable 1-D coordinate description of one phase-space axis.

    Integration helpers assume uniform spacing ``(max - min) / (size - 1)``.

    Parameters
    ----------
    samples : np.ndarray
        Strictly increasing sample positions.
    min, max : float
        Inclusive bounds, equal to the first and last sample.
    size : int
        Number of samples.
    """

    samples: np.ndarray
    min: float
    max: float
    size: int

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float64)
        if samples.ndim != 1 or samples.size != self.size:
            raise ValueError(
                f"Mesh expects {self.size} samples, got shape {samples.shape}"
            )
        if self.size < 2:
            raise ValueError("Mesh needs at least 2 samples")
        if np.any(np.diff(samples) <= 0.0):
            raise ValueError("Mesh samples must be strictly increasing")
        if samples[0] != self.min or samples[-1] != self.max:
            raise ValueError(
                f"Mesh bounds ({self.min}, {self.max}) do not match samples "
                f"({samples[0]}, {samples[-1]})"
            )
        samples.flags.writeable = False
        object.__setattr__(self, "samples", samples)

    @classmethod
    def uniform(cls, min: float, max: float, size: int) -> "Mesh":
        """Uniform mesh with ``size`` samples from ``min`` to ``max`` inclusive."""
        samples = np.linspace(min, max, size)
        return cls(samples=samples, min=float(samples[0]), max=float(samples[-1]), size=size)

    @classmethod
    def from_samples(cls, samples) -> "Mesh":
        """Wrap an existing coordinate array."""
        samples = np.asarray(samples, dtype=np.float64)
        return cls(
            samples=samples,
            min=float(samples[0]),
            max=float(samples[-1]),
            size=samples.size,
        )

    @property
    def delta(self) -> float:
        """Uniform spacing used for quadrature."""
        return (self.max - self.min) / (self.size - 1.0)

    @property
    def length(self) -> float:
        return self.max - self.min


# ============================================================================
# Global (identical across ranks, or aggregated on rank 0)
# ============================================================================


@dataclass
class DiagnosticParams:
    """Run configuration - validated by Hydra, logged to MLflow as params.

    Immutable configuration set before the run. Identical across all MPI ranks.
    """

    # Required
    nx: int
    nv: int

    # Phase-space box
    x_min: float = 0.0
    x_max: float = 4.0 * np.pi
    v_min: float = -6.0
    v_max: float = 6.0

    # Initial condition
    problem: str = "landau"  # "landau" | "two_stream" | "constant"
    eps: float = 0.01
    k: float = 0.5

    # Diagnostics
    n_snapshots: int = 1
    dt: float = 0.1
    folder: str = "diag/"
    tag: str = "f"
    is_periodic: bool = True
    factor: float = 1.0

    # Parallelization
    n_ranks: int = 1
    reconciler: str = "numpy"  # "numpy" | "object"
    start_layout: str = "par_x"  # "par_x" | "par_v"

    # Numba
    use_numba: bool = False

    # Experiment tracking
    experiment_name: str = "default"

    # Auto-detected at runtime (not from config)
    environment: str = field(init=False)

    def __post_init__(self):
        """Compute derived values after initialization."""
        self.environment = (
            "hpc"
            if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
            else "local"
        )

    def meshes(self) -> Tuple[Mesh, Mesh]:
        """Position and velocity meshes described by this configuration."""
        return (
            Mesh.uniform(self.x_min, self.x_max, self.nx),
            Mesh.uniform(self.v_min, self.v_max, self.nv),
        )

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible params dict (bools as int)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
        }


@dataclass
class DiagnosticSeries:
    """Scalar diagnostics per snapshot - logged to MLflow as step metrics.

    Values are global (already reduced), so every rank holds the same series;
    only rank 0 persists it.
    """

    time: List[float] = field(default_factory=list)
    kinetic_energy: List[float] = field(default_factory=list)
    field_energy: List[float] = field(default_factory=list)
    mass: List[float] = field(default_factory=list)

    def append(self, time: float, kinetic_energy: float, field_energy: float, mass: float):
        self.time.append(float(time))
        self.kinetic_energy.append(float(kinetic_energy))
        self.field_energy.append(float(field_energy))
        self.mass.append(float(mass))

    def clear(self):
        """Clear all timeseries data."""
        self.time.clear()
        self.kinetic_energy.clear()
        self.field_energy.clear()
        self.mass.clear()

    def __len__(self) -> int:
        return len(self.time)

    def to_dataframe(self):
        """Series as a pandas DataFrame, one row per snapshot."""
        import pandas as pd

        return pd.DataFrame(
            {name: values for name, values in self.__dict__.items()}
        )

    def to_mlflow_batch(self) -> list:
        """Convert timeseries to MLflow Metric objects for batch logging."""
        from mlflow.entities import Metric

        return [
            Metric(key=name, value=value, timestamp=0, step=step)
            for name, values in self.__dict__.items()
            if name != "time"
            for step, value in enumerate(values)
        ]


# ============================================================================
# Local (per-rank)
# ============================================================================


@dataclass
class LocalParams:
    """Per-rank geometry - gathered to rank 0, logged as artifact."""

    rank: int
    hostname: str = ""
    layout: str = ""
    # Inclusive global index range owned on the split axis
    rows: Optional[Tuple[int, int]] = None
    local_shape: Optional[Tuple[int, int]] = None
    # CPU binding info for socket/node visualization
    cpu_ids: Optional[List[int]] = None
