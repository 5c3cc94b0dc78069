"""Velocity-moment kernels.

Simple kernel implementations - layout and communication are handled by the
diagnostics. Both kernels operate on a ``PAR_X`` block ``f[local_x][v]``.
"""

import numpy as np
import numba
from numba import njit, prange


@njit(parallel=True)
def _trapezoid_rows_numba(f: np.ndarray, dv: float, out: np.ndarray):
    """Numba JIT trapezoidal integral of each row over velocity."""
    nv = f.shape[1]
    for i in prange(f.shape[0]):
        acc = 0.5 * f[i, 0]
        for j in range(1, nv - 1):
            acc += f[i, j]
        acc += 0.5 * f[i, nv - 1]
        out[i] = acc * dv


@njit
def _second_moment_numba(f: np.ndarray, v: np.ndarray) -> float:
    """Numba JIT sum of f * v^2 over the block."""
    acc = 0.0
    for i in range(f.shape[0]):
        for j in range(f.shape[1]):
            acc += f[i, j] * v[j] * v[j]
    return acc


class NumPyKernel:
    """NumPy-based velocity-moment kernel."""

    def __init__(self, specified_numba_threads: int = 1):
        self.observed_numba_threads = None  # Not applicable for NumPy

    def trapezoid_rows(self, f: np.ndarray, dv: float, out: np.ndarray):
        """Write the trapezoidal velocity integral of each row into ``out``."""
        out[:] = (
            0.5 * f[:, 0] + f[:, 1:-1].sum(axis=1) + 0.5 * f[:, -1]
        ) * dv

    def second_moment(self, f: np.ndarray, v: np.ndarray) -> float:
        """Return ``sum_ij f[i, j] * v[j]**2``."""
        return float(np.sum(f * (v * v)[np.newaxis, :]))

    def warmup(self, warmup_size: int = 10):
        """No-op for NumPy kernel."""
        pass


class NumbaKernel:
    """Numba JIT-compiled velocity-moment kernel."""

    def __init__(self, specified_numba_threads: int = 1):
        # Set requested threads (may be clamped by NUMBA_NUM_THREADS env var)
        if specified_numba_threads is not None:
            numba.set_num_threads(specified_numba_threads)

        # Record what Numba actually reports
        self.observed_numba_threads = numba.get_num_threads()

    def trapezoid_rows(self, f: np.ndarray, dv: float, out: np.ndarray):
        """Write the trapezoidal velocity integral of each row into ``out``."""
        _trapezoid_rows_numba(f, dv, out)

    def second_moment(self, f: np.ndarray, v: np.ndarray) -> float:
        """Return ``sum_ij f[i, j] * v[j]**2``."""
        return float(_second_moment_numba(f, v))

    def warmup(self, warmup_size: int = 10):
        """Trigger JIT compilation with a small problem."""
        f = np.random.randn(warmup_size, warmup_size)
        v = np.linspace(-1.0, 1.0, warmup_size)
        out = np.empty(warmup_size)
        _trapezoid_rows_numba(f, 0.1, out)
        _second_moment_numba(f, v)


def create_kernel(use_numba: bool = False, numba_threads: int = 1):
    """Factory: Numba kernel if requested, NumPy otherwise."""
    if use_numba:
        return NumbaKernel(specified_numba_threads=numba_threads)
    return NumPyKernel()
