"""Layout reconcilers: switch a distributed field between PAR_X and PAR_V.

A reconciler takes the local block in the source layout (rows on the split
axis, columns on the full axis) and returns the local block in the other
layout. The exchange is collective and blocking.
"""

from __future__ import annotations
from abc import ABC, abstractmethod

import numpy as np
from mpi4py import MPI

from ..decomposition import DomainDecomposition, LayoutMode


class LayoutReconciler(ABC):
    """Abstract base for layout exchange strategies."""

    name = "base"

    @abstractmethod
    def exchange(
        self,
        block: np.ndarray,
        decomp: DomainDecomposition,
        source: LayoutMode,
        comm: MPI.Comm,
    ) -> np.ndarray:
        """Return this rank's block in ``source.other`` layout."""
        pass


class NumpyReconciler(LayoutReconciler):
    """Transpose using one packed buffer and Alltoallv."""

    name = "numpy"

    def exchange(self, block, decomp, source, comm):
        source = LayoutMode(source)
        rank = comm.Get_rank()
        src_table = decomp.table(source)
        dst_table = decomp.table(source.other)

        n_rows = block.shape[0]
        n_cols = dst_table[rank].size

        # Column slabs packed in destination-rank order
        send = np.empty(block.size, dtype=np.float64)
        for box in dst_table:
            start = box.i_min * n_rows
            send[start:start + box.size * n_rows] = block[:, box.as_slice()].ravel()

        # Pieces arrive in source-rank order, i.e. increasing row index
        recv = np.empty((src_table.n, n_cols), dtype=np.float64)
        comm.Alltoallv(
            [send, (dst_table.counts(scale=n_rows), dst_table.displacements(scale=n_rows)), MPI.DOUBLE],
            [recv, (src_table.counts(scale=n_cols), src_table.displacements(scale=n_cols)), MPI.DOUBLE],
        )
        return np.ascontiguousarray(recv.T)


class ObjectReconciler(LayoutReconciler):
    """Transpose using pickle-based alltoall of per-rank arrays."""

    name = "object"

    def exchange(self, block, decomp, source, comm):
        source = LayoutMode(source)
        dst_table = decomp.table(source.other)

        pieces = comm.alltoall(
            [np.ascontiguousarray(block[:, box.as_slice()]) for box in dst_table]
        )
        return np.ascontiguousarray(np.concatenate(pieces, axis=0).T)


def create_reconciler(kind: str) -> LayoutReconciler:
    """Factory: 'numpy' for Alltoallv buffers, 'object' for pickled arrays."""
    if kind == "numpy":
        return NumpyReconciler()
    elif kind == "object":
        return ObjectReconciler()
    else:
        raise ValueError(f"Unknown reconciler type: {kind}")
