"""Diagnostics of a distributed distribution function.

Every diagnostic that reads ``f`` first puts the field in ``PAR_X`` layout,
so each rank owns whole velocity rows and velocity integrals need no
communication. Results over the position mesh are then rebuilt with a
variable-length all-gather keyed by the ``PAR_X`` decomposition table.

All functions taking a DistributedField are collective: every rank must
call them, in the same order.
"""

from __future__ import annotations

import logging

import numpy as np

from .decomposition import DecompositionTable, LayoutMode
from .io import write_profile, write_snapshot
from .kernels import NumPyKernel
from .mpi.collectives import all_gather_varlen, all_reduce_sum

log = logging.getLogger(__name__)

_DEFAULT_KERNEL = NumPyKernel()


# ============================================================================
# Reconstruction
# ============================================================================


def reconstruct_rows(recv_buf: np.ndarray, table: DecompositionTable, out: np.ndarray) -> np.ndarray:
    """Rebuild a global array from the concatenation of per-rank pieces.

    Walks ranks in increasing order; rank ``r`` contributes the next
    ``table[r].size`` rows of ``recv_buf``, copied to
    ``out[i_min(r):i_max(r) + 1]``.
    """
    width = int(np.prod(out.shape[1:], dtype=np.int64))
    flat = recv_buf.reshape(-1)
    pos = 0
    for box in table:
        n = box.size * width
        out[box.as_slice()] = flat[pos:pos + n].reshape((box.size,) + out.shape[1:])
        pos += n
    return out


# ============================================================================
# Scalar reductions
# ============================================================================


def kinetic_energy_local(field, factor: float = 1.0, kernel=None) -> float:
    """This rank's share of ``factor/2 * int int v^2 f dx dv``.

    Only meaningful after summing over ranks; see :func:`kinetic_energy`.
    """
    kernel = kernel or _DEFAULT_KERNEL
    field.ensure_layout(LayoutMode.PAR_X)

    energy = kernel.second_moment(field.f, field.meshv.samples)
    energy *= field.meshv.delta  # * dv
    energy *= field.meshx.delta  # * dx
    return energy * factor * 0.5


def kinetic_energy(field, factor: float = 1.0, kernel=None) -> float:
    """Kinetic energy ``factor/2 * int int v^2 f dx dv``, identical on all ranks."""
    local = kinetic_energy_local(field, factor=factor, kernel=kernel)
    return all_reduce_sum(field.comm, local)


def diag_energy(E, x) -> float:
    """L2 norm of a replicated 1-D field.

    Left-rectangle quadrature over the first ``N - 1`` samples (the last
    point is the periodic image of the first), square-rooted. No
    communication.
    """
    E = np.asarray(E, dtype=np.float64)
    x = np.asarray(x, dtype=np.float64)
    N = x.size - 1
    dx = (x[N] - x[0]) / N
    return float(np.sqrt(np.sum(E[:N] ** 2) * dx))


def total_mass(rho, x) -> float:
    """Integral of a periodic density, same quadrature as :func:`diag_energy`."""
    rho = np.asarray(rho, dtype=np.float64)
    x = np.asarray(x, dtype=np.float64)
    N = x.size - 1
    dx = (x[N] - x[0]) / N
    return float(np.sum(rho[:N]) * dx)


# ============================================================================
# Gathered diagnostics
# ============================================================================


def update_spatial_density(field, rho: np.ndarray = None, is_periodic: bool = False, kernel=None) -> np.ndarray:
    """Compute ``rho(x) = int f(x, v) dv`` on the full position mesh.

    Parameters
    ----------
    field : DistributedField
        Distribution function; switched to ``PAR_X`` if needed.
    rho : np.ndarray, optional
        Output array of size ``nx``. Allocated when omitted.
    is_periodic : bool
        Accepted for interface symmetry with :func:`diag_f`; the reduction
        does not depend on it.
    kernel : NumPyKernel or NumbaKernel, optional
        Velocity-moment kernel.

    Returns
    -------
    np.ndarray
        ``rho``, identical on every rank.
    """
    kernel = kernel or _DEFAULT_KERNEL
    field.ensure_layout(LayoutMode.PAR_X)

    table = field.decomp.table(LayoutMode.PAR_X)
    if rho is None:
        rho = np.empty(field.meshx.size, dtype=np.float64)

    n_local = field.f.shape[0]
    with field.borrow_buffers() as (send_buf, recv_buf):
        # Trapezoidal integral of each owned row, written contiguously
        kernel.trapezoid_rows(field.f, field.meshv.delta, send_buf[:n_local])

        all_gather_varlen(
            field.comm, send_buf, n_local, recv_buf, table.counts(), table.displacements()
        )
        reconstruct_rows(recv_buf, table, rho)

    return rho


def gather_distribution(field, array_name: str = "f") -> np.ndarray:
    """Assemble the full ``(nx, nv)`` distribution function on every rank.

    Counts and displacements of the ``PAR_X`` table are scaled by ``nv`` on
    derived copies; the table itself is never modified.
    """
    field.ensure_layout(LayoutMode.PAR_X)

    nx, nv = field.meshx.size, field.meshv.size
    table = field.decomp.table(LayoutMode.PAR_X)
    count = field.f.shape[0] * nv

    with field.borrow_buffers() as (send_buf, recv_buf):
        # Row-major: all velocities of the first owned position, then the next
        flat = send_buf[:count]
        flat[:] = field.f.reshape(-1)
        if count:
            log.info(f"[diag_f] (min,max) {array_name} : {flat.min():e}, {flat.max():e}.")

        all_gather_varlen(
            field.comm,
            send_buf,
            count,
            recv_buf,
            table.counts(scale=nv),
            table.displacements(scale=nv),
        )
        return recv_buf[: nx * nv].reshape(nx, nv).copy()


def diag_1d(func, x, array_name: str, folder, iplot: int, time: float):
    """Write an already-global 1-D function as a two-column text file.

    Local I/O: callers make sure only one rank calls it.
    """
    return write_profile(func, x, array_name, folder, iplot, time)


def diag_f(
    field,
    iplot: int,
    time: float,
    array_name: str,
    folder,
    is_periodic: bool = False,
    writer=write_snapshot,
):
    """Gather the distribution function and write it from rank 0.

    Every rank pays for the gather; only rank 0 closes the periodic boundary
    (last position row set to the first) and calls ``writer``. Pass
    ``writer=None`` to gather without writing.

    Returns
    -------
    np.ndarray or None
        The assembled ``(nx, nv)`` array on rank 0, None elsewhere.
    """
    f = gather_distribution(field, array_name=array_name)
    if field.rank != 0:
        return None

    if is_periodic:
        f[-1, :] = f[0, :]
    if writer is not None:
        writer(f, field.meshx, field.meshv, iplot, time, array_name, folder)
    return f
