"""Collective primitives used by the diagnostics.

Counts and displacements are always in elements, never bytes.
"""

from __future__ import annotations

import numpy as np
from mpi4py import MPI


def all_gather_varlen(
    comm: MPI.Comm,
    send_buf: np.ndarray,
    send_count: int,
    recv_buf: np.ndarray,
    recv_counts: np.ndarray,
    displs: np.ndarray,
):
    """Variable-length all-gather of float64 data.

    Every rank's first ``send_count`` elements of ``send_buf`` land at
    ``recv_buf[displs[rank]:displs[rank] + recv_counts[rank]]`` on every rank.
    Collective and blocking: all ranks must call it with consistent tables.
    """
    rank = comm.Get_rank()
    if send_count != recv_counts[rank]:
        raise ValueError(
            f"Rank {rank} sends {send_count} elements but the table expects {recv_counts[rank]}"
        )
    if send_buf.size < send_count:
        raise ValueError(f"Send buffer holds {send_buf.size} elements, need {send_count}")
    needed = int(np.max(np.asarray(displs) + np.asarray(recv_counts))) if len(recv_counts) else 0
    if recv_buf.size < needed:
        raise ValueError(f"Receive buffer holds {recv_buf.size} elements, need {needed}")

    sendbuf = send_buf.reshape(-1)[:send_count]
    recvbuf = recv_buf.reshape(-1)
    comm.Allgatherv(
        [sendbuf, send_count, MPI.DOUBLE],
        [recvbuf, (np.asarray(recv_counts), np.asarray(displs)), MPI.DOUBLE],
    )


def all_reduce_sum(comm: MPI.Comm, local_value: float) -> float:
    """Reduce sum via MPI Allreduce."""
    global_value = np.zeros(1)
    comm.Allreduce(np.array([local_value], dtype=np.float64), global_value, op=MPI.SUM)
    return float(global_value[0])
