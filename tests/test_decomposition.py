"""Tests for phase-space decomposition tables."""

import numpy as np
import pytest
from Vlasov import DecompositionTable, DomainDecomposition, LayoutMode, RankBox


class TestBlockTable:
    """Tests for balanced block splits."""

    @pytest.mark.parametrize("n,size", [(1, 1), (16, 4), (17, 4), (65, 7), (3, 4), (5, 8), (129, 16)])
    def test_every_index_owned_exactly_once(self, n, size):
        """Ranges partition [0, n-1], including when size > n."""
        table = DecompositionTable.block(n, size)

        owned = np.zeros(n, dtype=int)
        for box in table:
            owned[box.as_slice()] += 1
        assert np.all(owned == 1)
        assert table.counts().sum() == n

    @pytest.mark.parametrize("n,size", [(16, 4), (17, 4), (65, 7), (3, 4)])
    def test_ranges_increase_with_rank(self, n, size):
        """Each rank starts where the previous one ended."""
        table = DecompositionTable.block(n, size)

        assert table[0].i_min == 0
        for prev, box in zip(table, list(table)[1:]):
            assert box.i_min == prev.i_max + 1
        assert table[size - 1].i_max == n - 1

    def test_remainder_goes_to_first_ranks(self):
        """17 samples on 4 ranks -> 5, 4, 4, 4."""
        table = DecompositionTable.block(17, 4)
        assert list(table.counts()) == [5, 4, 4, 4]
        assert list(table.displacements()) == [0, 5, 9, 13]

    def test_more_ranks_than_samples(self):
        """Surplus ranks own an empty range."""
        table = DecompositionTable.block(3, 5)

        assert list(table.counts()) == [1, 1, 1, 0, 0]
        assert table[4].size == 0
        assert table[4].as_slice() == slice(3, 3)

    def test_scaled_counts_are_copies(self):
        """Scaling for a gather never modifies the table."""
        table = DecompositionTable.block(10, 3)
        before = [(box.i_min, box.i_max) for box in table]

        counts = table.counts(scale=7)
        displs = table.displacements(scale=7)
        counts[:] = 0
        displs[:] = -1

        assert [(box.i_min, box.i_max) for box in table] == before
        assert list(table.counts()) == [4, 3, 3]
        assert list(table.displacements(scale=7)) == [0, 28, 49]

    @pytest.mark.parametrize("n,size", [(0, 2), (4, 0)])
    def test_invalid_split(self, n, size):
        with pytest.raises(ValueError):
            DecompositionTable.block(n, size)


class TestTableValidation:
    """Malformed tables are rejected at construction."""

    def test_gap_rejected(self):
        boxes = [RankBox(0, 0, 2), RankBox(1, 4, 5)]
        with pytest.raises(ValueError, match="contiguous"):
            DecompositionTable(boxes, 6)

    def test_overlap_rejected(self):
        boxes = [RankBox(0, 0, 3), RankBox(1, 3, 5)]
        with pytest.raises(ValueError):
            DecompositionTable(boxes, 6)

    def test_decreasing_ranges_rejected(self):
        """Ranges listed out of index order would scramble a gather."""
        boxes = [RankBox(0, 3, 5), RankBox(1, 0, 2)]
        with pytest.raises(ValueError):
            DecompositionTable(boxes, 6)

    def test_rank_order_enforced(self):
        boxes = [RankBox(1, 0, 2), RankBox(0, 3, 5)]
        with pytest.raises(ValueError, match="rank order"):
            DecompositionTable(boxes, 6)

    def test_incomplete_cover_rejected(self):
        boxes = [RankBox(0, 0, 2), RankBox(1, 3, 4)]
        with pytest.raises(ValueError):
            DecompositionTable(boxes, 6)

    def test_valid_custom_table(self):
        """Uneven but ordered ranges are accepted."""
        table = DecompositionTable([RankBox(0, 0, 0), RankBox(1, 1, 5)], 6)
        assert list(table.counts()) == [1, 5]


class TestDomainDecomposition:
    """Tests for the two-layout decomposition."""

    def test_local_shapes(self):
        decomp = DomainDecomposition(nx=65, nv=129, size=4)

        assert decomp.local_shape(0, LayoutMode.PAR_X) == (17, 129)
        assert decomp.local_shape(3, LayoutMode.PAR_X) == (16, 129)
        assert decomp.local_shape(0, "par_v") == (33, 65)
        assert decomp.local_shape(1, "par_v") == (32, 65)

    def test_tables_per_axis(self):
        decomp = DomainDecomposition(nx=10, nv=20, size=3)

        assert decomp.table(LayoutMode.PAR_X).n == 10
        assert decomp.table(LayoutMode.PAR_V).n == 20

    def test_max_block_size_covers_both_layouts(self):
        decomp = DomainDecomposition(nx=10, nv=40, size=4)

        # par_x: 3 * 40 = 120, par_v: 10 * 10 = 100
        assert decomp.max_block_size() == 120

    def test_rank_info(self):
        decomp = DomainDecomposition(nx=9, nv=5, size=2)
        info = decomp.get_rank_info(1)

        assert info.x_box == RankBox(1, 5, 8)
        assert info.v_box == RankBox(1, 3, 4)
        assert info.shape_par_x == (4, 5)
        assert info.shape_par_v == (2, 9)
        assert len(decomp.get_all_rank_info()) == 2

    def test_layout_mode_other(self):
        assert LayoutMode.PAR_X.other is LayoutMode.PAR_V
        assert LayoutMode.PAR_V.other is LayoutMode.PAR_X
        assert LayoutMode("par_v") is LayoutMode.PAR_V

    def test_invalid_layout(self):
        decomp = DomainDecomposition(nx=9, nv=5, size=2)
        with pytest.raises(ValueError):
            decomp.table("par_y")
