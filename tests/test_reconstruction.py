"""Gather reconstruction with several ranks emulated in one process."""

import numpy as np
import pytest
from Vlasov import (
    DecompositionTable,
    DistributedField,
    Mesh,
    NumPyKernel,
    gather_distribution,
    kinetic_energy_local,
    landau_distribution,
    reconstruct_rows,
    update_spatial_density,
)


class MockComm:
    """Mock communicator for rank ``rank`` of ``size``.

    Allgatherv checks this rank's contribution against ``pieces[rank]`` and
    delivers every piece at its displacement, as the real collective would.
    """

    def __init__(self, rank, size, pieces=None):
        self.rank = rank
        self.size = size
        self.pieces = pieces

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.size

    def Allgatherv(self, send, recv):
        sendbuf, count, _ = send
        recvbuf, (counts, displs), _ = recv
        assert count == self.pieces[self.rank].size
        assert np.allclose(sendbuf[:count], self.pieces[self.rank], rtol=1e-14)
        for r, piece in enumerate(self.pieces):
            assert counts[r] == piece.size
            recvbuf[displs[r]:displs[r] + counts[r]] = piece


def split_rows(data, table):
    """Per-rank flattened row blocks of a global array."""
    return [np.ascontiguousarray(data[box.as_slice()]).reshape(-1) for box in table]


@pytest.fixture
def meshes():
    return Mesh.uniform(0.0, 4.0 * np.pi, 11), Mesh.uniform(-5.0, 5.0, 17)


@pytest.fixture
def f_global(meshes):
    meshx, meshv = meshes
    return landau_distribution(eps=0.2)(meshx.samples[:, np.newaxis], meshv.samples[np.newaxis, :])


class TestReconstructRows:
    """Tests for rebuilding a global array from per-rank pieces."""

    @pytest.mark.parametrize("n,size", [(11, 1), (11, 3), (11, 4), (3, 5)])
    def test_rows_land_at_their_range(self, n, size):
        table = DecompositionTable.block(n, size)
        data = np.arange(n * 4, dtype=float).reshape(n, 4)

        recv = np.concatenate(split_rows(data, table))
        out = reconstruct_rows(recv, table, np.empty_like(data))

        assert np.array_equal(out, data)

    def test_one_dimensional(self):
        table = DecompositionTable.block(7, 3)
        out = reconstruct_rows(np.arange(7.0), table, np.zeros(7))

        assert np.array_equal(out, np.arange(7.0))


class TestEmulatedRanks:
    """Each rank's view of the gathered diagnostics."""

    @pytest.mark.parametrize("size", [2, 3, 4, 13])
    def test_spatial_density(self, meshes, f_global, size):
        """Every emulated rank reconstructs the same rho, including ranks owning no rows."""
        meshx, meshv = meshes
        table = DecompositionTable.block(meshx.size, size)

        rho_ref = np.empty(meshx.size)
        NumPyKernel().trapezoid_rows(f_global, meshv.delta, rho_ref)
        pieces = split_rows(rho_ref, table)

        for rank in range(size):
            field = DistributedField(meshx, meshv, comm=MockComm(rank, size, pieces))
            field.set_global(f_global)
            rho = update_spatial_density(field)

            assert np.allclose(rho, rho_ref, rtol=1e-14)

    @pytest.mark.parametrize("size", [2, 4, 13])
    def test_distribution(self, meshes, f_global, size):
        meshx, _ = meshes
        pieces = split_rows(f_global, DecompositionTable.block(meshx.size, size))

        for rank in range(size):
            field = DistributedField(*meshes, comm=MockComm(rank, size, pieces))
            field.set_global(f_global)

            assert np.array_equal(gather_distribution(field), f_global)

    def test_kinetic_energy_partials_sum_to_total(self, meshes, f_global):
        size = 3
        single = DistributedField(*meshes, comm=MockComm(0, 1))
        single.set_global(f_global)
        total = kinetic_energy_local(single, factor=2.0)

        partials = []
        for rank in range(size):
            field = DistributedField(*meshes, comm=MockComm(rank, size))
            field.set_global(f_global)
            partials.append(kinetic_energy_local(field, factor=2.0))

        assert sum(partials) == pytest.approx(total, rel=1e-13)

    def test_set_global_par_v(self, meshes, f_global):
        """In PAR_V each rank holds its velocity columns, transposed."""
        meshx, meshv = meshes
        field = DistributedField(meshx, meshv, comm=MockComm(1, 2), layout="par_v")
        field.set_global(f_global)

        rows = field.local_rows()
        assert field.f.shape == (rows.stop - rows.start, meshx.size)
        assert np.array_equal(field.f, f_global[:, rows].T)

    def test_set_global_shape_checked(self, meshes):
        field = DistributedField(*meshes, comm=MockComm(0, 2))
        with pytest.raises(ValueError):
            field.set_global(np.zeros((3, 3)))

    def test_rank_info(self, meshes):
        """Inclusive owned range and block shape, as logged for the run topology."""
        field = DistributedField(*meshes, comm=MockComm(2, 4))
        info = field.get_rank_info()

        # 11 positions on 4 ranks -> 3, 3, 3, 2
        assert info.rank == 2
        assert info.layout == "par_x"
        assert info.rows == (6, 8)
        assert info.local_shape == (3, 17)
