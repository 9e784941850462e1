"""
Tests for the partition model.

Tests cover:
- balanced splitting rule
- 1-based ownership ranges and block ranges
- block size validation
- partitions read back from PETSc vectors
"""

from collections import namedtuple

import pytest

import distvec
from distvec import Partition, ConfigurationError
from distvec.decomposition import local_size, local_start


FakeComm = namedtuple("FakeComm", ["rank", "size"])


class TestBalancedSplit:

    def test_local_size_spreads_remainder_over_first_ranks(self):
        assert [local_size(7, 3, r) for r in range(3)] == [3, 2, 2]

    def test_local_start_is_prefix_sum(self):
        assert [local_start(7, 3, r) for r in range(3)] == [0, 3, 5]

    def test_ranges_tile_global_range(self):
        N, nprocs = 11, 4
        covered = []
        for r in range(nprocs):
            covered.extend(Partition.balanced(N, FakeComm(r, nprocs)).ownership_range())
        assert covered == list(range(1, N + 1))

    def test_six_entries_on_two_ranks(self):
        assert Partition.balanced(6, FakeComm(0, 2)).ownership_range() == range(1, 4)
        assert Partition.balanced(6, FakeComm(1, 2)).ownership_range() == range(4, 7)

    def test_blocks_are_not_split(self):
        parts = [Partition.balanced(8, FakeComm(r, 3), bs=2) for r in range(3)]
        assert [p.n for p in parts] == [4, 2, 2]
        assert [p.start for p in parts] == [0, 4, 6]
        assert [p.ownership_range_block() for p in parts] == [range(1, 3), range(3, 4), range(4, 5)]


class TestPartition:

    def test_low_high(self):
        p = Partition(10, 4, 3)
        assert (p.low, p.high) == (3, 7)
        assert list(p.global_indices()) == [3, 4, 5, 6]

    def test_empty_local_piece(self):
        p = Partition(0, 0, 0)
        assert len(p.ownership_range()) == 0
        assert len(p.ownership_range_block()) == 0

    def test_block_size_must_divide_size(self):
        with pytest.raises(ConfigurationError):
            Partition(5, 5, 0, bs=2)

    @pytest.mark.parametrize("bs", [0, -1])
    def test_block_size_must_be_positive(self, bs):
        with pytest.raises(ConfigurationError):
            Partition(4, 4, 0, bs=bs)

    def test_equality(self):
        assert Partition(6, 3, 0) == Partition(6, 3, 0)
        assert Partition(6, 3, 0) != Partition(6, 3, 3)

    def test_all_ranges_uses_allgather(self):
        class Comm(object):
            def allgather(self, obj):
                return [obj, (3, 6)]
        assert Partition(6, 3, 0).all_ranges(Comm()) == [(0, 3), (3, 6)]

    def test_from_vector(self, comm):
        x = distvec.create_vector(6, bs=2, comm=comm)
        p = x.partition
        assert (p.N, p.n, p.start, p.bs) == (6, 6, 0, 2)
        assert x.ownership_range() == range(1, 7)
        assert x.ownership_range_block() == range(1, 4)
        x.release()
