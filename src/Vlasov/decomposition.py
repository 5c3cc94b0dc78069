"""Domain decomposition of the (x, v) phase-space mesh across ranks.

Provides the per-layout tables mapping each rank to the contiguous index
range it owns on the split axis. Pure geometric logic with no MPI
dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class LayoutMode(str, Enum):
    """Which axis is currently split across ranks."""

    PAR_X = "par_x"  # each rank owns a slab of positions and all velocities
    PAR_V = "par_v"  # each rank owns a slab of velocities and all positions

    @property
    def other(self) -> "LayoutMode":
        return LayoutMode.PAR_V if self is LayoutMode.PAR_X else LayoutMode.PAR_X


@dataclass(frozen=True)
class RankBox:
    """Inclusive index range ``[i_min, i_max]`` owned by one rank.

    An empty box has ``i_max == i_min - 1``.
    """

    rank: int
    i_min: int
    i_max: int

    @property
    def size(self) -> int:
        return self.i_max - self.i_min + 1

    def as_slice(self) -> slice:
        return slice(self.i_min, self.i_max + 1)


class DecompositionTable:
    """Ordered per-rank ranges partitioning ``[0, n-1]``.

    Boxes must be listed by rank and in increasing index order, contiguous,
    with no gaps or overlaps. Gather reconstruction relies on this ordering,
    so it is validated here rather than assumed.

    Parameters
    ----------
    boxes : sequence of RankBox
        One box per rank, ``boxes[r].rank == r``.
    n : int
        Number of samples on the split axis.
    """

    def __init__(self, boxes, n: int):
        self.boxes = tuple(boxes)
        self.n = n
        self._validate()

    @classmethod
    def block(cls, n: int, size: int) -> "DecompositionTable":
        """Balanced block split: the first ``n % size`` ranks get one extra sample."""
        if n < 1 or size < 1:
            raise ValueError(f"Cannot split {n} samples across {size} ranks")
        base, rem = divmod(n, size)
        boxes = []
        start = 0
        for rank in range(size):
            count = base + (1 if rank < rem else 0)
            boxes.append(RankBox(rank=rank, i_min=start, i_max=start + count - 1))
            start += count
        return cls(boxes, n)

    def _validate(self):
        expected_start = 0
        for rank, box in enumerate(self.boxes):
            if box.rank != rank:
                raise ValueError(f"Box {rank} belongs to rank {box.rank}; boxes must be in rank order")
            if box.size < 0:
                raise ValueError(f"Rank {rank} has a negative range [{box.i_min}, {box.i_max}]")
            if box.i_min != expected_start:
                raise ValueError(
                    f"Rank {rank} starts at {box.i_min}, expected {expected_start} "
                    "(ranges must be contiguous and increasing with rank)"
                )
            expected_start = box.i_max + 1
        if expected_start != self.n:
            raise ValueError(f"Ranges cover [0, {expected_start - 1}], expected [0, {self.n - 1}]")

    @property
    def size(self) -> int:
        """Number of ranks."""
        return len(self.boxes)

    def __getitem__(self, rank: int) -> RankBox:
        return self.boxes[rank]

    def __iter__(self):
        return iter(self.boxes)

    def __len__(self) -> int:
        return len(self.boxes)

    def counts(self, scale: int = 1) -> np.ndarray:
        """Per-rank element counts, multiplied by ``scale`` (fresh array)."""
        return np.array([box.size * scale for box in self.boxes], dtype=np.int64)

    def displacements(self, scale: int = 1) -> np.ndarray:
        """Per-rank element offsets, multiplied by ``scale`` (fresh array)."""
        return np.array([box.i_min * scale for box in self.boxes], dtype=np.int64)

    def max_count(self) -> int:
        return max(box.size for box in self.boxes)


@dataclass
class RankInfo:
    """Decomposition information for a single rank."""

    rank: int
    x_box: RankBox
    v_box: RankBox
    # Local block shapes (rows on the split axis, columns on the full axis)
    shape_par_x: tuple[int, int]
    shape_par_v: tuple[int, int]


class DomainDecomposition:
    """Decomposition tables for both layout modes.

    In ``PAR_X`` the local block is ``f[local_x][v]`` with shape
    ``(x_box.size, nv)``; in ``PAR_V`` it is ``f[local_v][x]`` with shape
    ``(v_box.size, nx)``.

    Parameters
    ----------
    nx : int
        Samples on the position mesh.
    nv : int
        Samples on the velocity mesh.
    size : int
        Number of ranks.

    Examples
    --------
    >>> decomp = DomainDecomposition(nx=65, nv=129, size=4)
    >>> decomp.local_shape(0, LayoutMode.PAR_X)
    (17, 129)
    """

    def __init__(self, nx: int, nv: int, size: int):
        self.nx = nx
        self.nv = nv
        self.size = size

        self._tables = {
            LayoutMode.PAR_X: DecompositionTable.block(nx, size),
            LayoutMode.PAR_V: DecompositionTable.block(nv, size),
        }

        self._rank_info = [
            RankInfo(
                rank=rank,
                x_box=self._tables[LayoutMode.PAR_X][rank],
                v_box=self._tables[LayoutMode.PAR_V][rank],
                shape_par_x=self.local_shape(rank, LayoutMode.PAR_X),
                shape_par_v=self.local_shape(rank, LayoutMode.PAR_V),
            )
            for rank in range(size)
        ]

    # =========================================================================
    # Query Interface
    # =========================================================================

    def table(self, mode) -> DecompositionTable:
        """Decomposition table of the axis split in ``mode``."""
        return self._tables[LayoutMode(mode)]

    def full_extent(self, mode) -> int:
        """Extent of the axis that is fully local in ``mode``."""
        return self.nv if LayoutMode(mode) is LayoutMode.PAR_X else self.nx

    def local_shape(self, rank: int, mode) -> tuple[int, int]:
        """Shape of the local block owned by ``rank`` in ``mode``."""
        mode = LayoutMode(mode)
        return (self._tables[mode][rank].size, self.full_extent(mode))

    def max_block_size(self) -> int:
        """Largest local block (in elements) over all ranks and both modes."""
        return max(
            self._tables[mode].max_count() * self.full_extent(mode)
            for mode in LayoutMode
        )

    def get_rank_info(self, rank: int) -> RankInfo:
        """Get decomposition info for a specific rank."""
        return self._rank_info[rank]

    def get_all_rank_info(self) -> list[RankInfo]:
        """Get decomposition info for all ranks."""
        return self._rank_info
