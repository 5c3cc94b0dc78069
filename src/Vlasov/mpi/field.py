"""Distributed distribution function over the (x, v) phase-space mesh.

This module provides a DistributedField class that encapsulates:
- Domain decomposition tables for both layout modes
- The current layout and the locally owned block of f
- Layout reconciliation on demand
- Scratch buffers for the diagnostics' collectives

Diagnostics interact with this single interface rather than managing
MPI details directly.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

import numpy as np
from mpi4py import MPI

from ..datastructures import LocalParams, Mesh
from ..decomposition import DomainDecomposition, LayoutMode
from .layout import create_reconciler

log = logging.getLogger(__name__)


class DistributedField:
    """Per-rank state of a distribution function split across ranks.

    In ``PAR_X`` the local block is ``f[local_x][v]``; in ``PAR_V`` it is
    ``f[local_v][x]``. The row extent of ``f`` always equals this rank's
    range length in the table of the current layout.

    Parameters
    ----------
    meshx : Mesh
        Position mesh.
    meshv : Mesh
        Velocity mesh.
    comm : MPI.Comm
        MPI communicator.
    layout : str or LayoutMode
        Initial layout, 'par_x' (default) or 'par_v'.
    reconciler : str
        'numpy' for Alltoallv buffers (default), 'object' for pickled arrays.

    Example
    -------
    >>> field = DistributedField(meshx, meshv, comm=MPI.COMM_WORLD)
    >>> field.fill(lambda x, v: np.exp(-v**2 / 2))
    >>> field.ensure_layout("par_x")
    """

    def __init__(
        self,
        meshx: Mesh,
        meshv: Mesh,
        comm: MPI.Comm = MPI.COMM_WORLD,
        layout=LayoutMode.PAR_X,
        reconciler: str = "numpy",
    ):
        self.meshx = meshx
        self.meshv = meshv
        self.comm = comm
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()
        self.layout = LayoutMode(layout)
        self.reconciler_type = reconciler

        # Domain decomposition
        self.decomp = DomainDecomposition(meshx.size, meshv.size, self.size)

        # Layout exchange strategy
        self._reconciler = create_reconciler(reconciler)

        self.f = self.allocate()

        # Scratch buffers, lent out through borrow_buffers()
        self._send_buf = np.zeros(self.decomp.max_block_size(), dtype=np.float64)
        self._recv_buf = np.zeros(meshx.size * meshv.size, dtype=np.float64)
        self._borrowed = False

    @property
    def is_par_x(self) -> bool:
        return self.layout is LayoutMode.PAR_X

    def allocate(self, layout=None) -> np.ndarray:
        """Allocate a zeroed local block for ``layout`` (default: current)."""
        layout = self.layout if layout is None else LayoutMode(layout)
        return np.zeros(self.decomp.local_shape(self.rank, layout), dtype=np.float64)

    def local_rows(self, layout=None) -> slice:
        """Global index range of the rows owned in ``layout`` (default: current)."""
        layout = self.layout if layout is None else LayoutMode(layout)
        return self.decomp.table(layout)[self.rank].as_slice()

    def fill(self, func):
        """Fill the local block with ``func(x, v)`` evaluated on owned samples."""
        rows = self.local_rows()
        if self.is_par_x:
            X = self.meshx.samples[rows][:, np.newaxis]
            V = self.meshv.samples[np.newaxis, :]
        else:
            X = self.meshx.samples[np.newaxis, :]
            V = self.meshv.samples[rows][:, np.newaxis]
        self.f[...] = np.broadcast_to(func(X, V), self.f.shape)

    def set_global(self, f_global: np.ndarray):
        """Copy this rank's part of a global ``(nx, nv)`` array into the block."""
        f_global = np.asarray(f_global, dtype=np.float64)
        if f_global.shape != (self.meshx.size, self.meshv.size):
            raise ValueError(
                f"Expected global shape {(self.meshx.size, self.meshv.size)}, got {f_global.shape}"
            )
        rows = self.local_rows()
        if self.is_par_x:
            self.f[...] = f_global[rows, :]
        else:
            self.f[...] = f_global[:, rows].T

    def check_layout(self):
        """Raise if the block extent disagrees with the current table."""
        expected = self.decomp.local_shape(self.rank, self.layout)
        if self.f.shape != expected:
            raise RuntimeError(
                f"Rank {self.rank}: block shape {self.f.shape} does not match "
                f"{self.layout.value} table shape {expected}"
            )

    def ensure_layout(self, target=LayoutMode.PAR_X):
        """Switch to ``target`` layout if needed (collective, blocking)."""
        target = LayoutMode(target)
        if self.layout is target:
            return
        t0 = MPI.Wtime()
        self.f = self._reconciler.exchange(self.f, self.decomp, self.layout, self.comm)
        self.layout = target
        self.check_layout()
        log.debug(
            f"Rank {self.rank}: switched to {target.value} in {MPI.Wtime() - t0:.3e}s"
        )

    @contextmanager
    def borrow_buffers(self):
        """Lend the scratch ``(send_buf, recv_buf)`` pair for one collective.

        Contents do not survive past the end of the ``with`` block.
        """
        if self._borrowed:
            raise RuntimeError("Scratch buffers are already borrowed")
        self._borrowed = True
        try:
            yield self._send_buf, self._recv_buf
        finally:
            self._borrowed = False

    def get_rank_info(self) -> LocalParams:
        """Get topology info for this rank (for MLflow artifact)."""
        import os

        # Get CPU affinity (cores this rank can run on)
        try:
            cpu_ids = sorted(os.sched_getaffinity(0))
        except (AttributeError, OSError):
            cpu_ids = None  # Not available on all platforms (e.g., macOS)

        rows = self.local_rows()
        return LocalParams(
            rank=self.rank,
            hostname=MPI.Get_processor_name(),
            layout=self.layout.value,
            rows=(rows.start, rows.stop - 1),
            local_shape=tuple(self.f.shape),
            cpu_ids=cpu_ids,
        )
