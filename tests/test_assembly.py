"""
Tests for staged writes and the assembly bracket.

Tests cover:
- scalar, range, index array and mask writes
- insert and add modes
- nested brackets and exceptions inside a bracket
- is_assembled with and without verification
- bulk setters, blocked and local variants
- numpy array fallbacks
"""

import numpy as np
import pytest
from petsc4py import PETSc

import distvec
from distvec import ConfigurationError, BoundsError
from distvec.petsc import assembly


@pytest.fixture(params=[True, False], ids=["verified", "local"])
def verify(request):
    return request.param


class TestStagedWrites:

    def test_scalar_write_is_staged(self, seq, verify):
        x = seq([0.0, 0.0, 0.0], verify_assembled=verify)
        x[2] = 5.0
        assert not x.is_assembled()
        assert not x.is_assembled(local_only=True)
        x.assembly_begin()
        x.assembly_end()
        assert x.is_assembled()
        assert x[2] == 5.0

    def test_assembly_twice_changes_nothing(self, seq, verify):
        x = seq([1.0, 2.0, 3.0], verify_assembled=verify)
        for _ in range(2):
            x.assembly_begin()
            x.assembly_end()
            assert x.is_assembled()
            assert x == [1.0, 2.0, 3.0]

    def test_bracket_commits_once(self, seq):
        x = seq([0.0] * 6)
        with x.assemble():
            for i in x.ownership_range():
                x[i] = 10.0 * i
            assert not x.is_assembled(local_only=True)
        assert x.is_assembled()
        assert list(x[1:7]) == [10.0, 20.0, 30.0, 40.0, 50.0, 60.0]

    def test_nested_brackets(self, seq):
        x = seq([0.0, 0.0])
        with distvec.assemble(x):
            with distvec.assemble(x):
                x[1] = 1.0
            assert not x.is_assembled(local_only=True)
            x[2] = 2.0
        assert x.is_assembled()
        assert x == [1.0, 2.0]

    def test_exception_skips_commit(self, seq):
        x = seq([0.0, 0.0])
        with pytest.raises(KeyError):
            with x.assemble():
                x[1] = 1.0
                raise KeyError("boom")
        assert not x.is_assembled()
        assert x._assembly_depth == 0
        x.assembly_begin()
        x.assembly_end()
        assert x[1] == 1.0

    def test_add_mode(self, seq):
        x = seq([1.0, 1.0, 1.0])
        x.insertmode = distvec.ADD
        with x.assemble():
            x[2] = 5.0
            x[2] = 1.5
        assert x == [1.0, 7.5, 1.0]

    def test_insert_keeps_last_value(self, seq):
        x = seq([0.0, 0.0])
        with x.assemble():
            x[1] = 3.0
            x[1] = 4.0
        assert x[1] == 4.0

    def test_out_of_range(self, seq):
        x = seq([0.0, 0.0])
        with pytest.raises(BoundsError):
            x[3] = 1.0
        with pytest.raises(BoundsError):
            x[0] = 1.0
        with pytest.raises(IndexError):
            x[[1, 5]]


class TestIndexedWrites:

    def test_full_range_is_a_fill(self, seq):
        x = seq([1.0, 2.0, 3.0])
        x[:] = 9.0
        assert x.is_assembled()
        assert x == [9.0, 9.0, 9.0]
        x[range(1, 4)] = 4.0
        assert x == [4.0, 4.0, 4.0]

    def test_partial_range(self, seq):
        x = seq([0.0] * 5)
        x[2:5] = 1.0
        assert x.is_assembled()
        assert x == [0.0, 1.0, 1.0, 1.0, 0.0]
        x[range(1, 6, 2)] = 3.0
        assert x == [3.0, 1.0, 3.0, 1.0, 3.0]

    def test_reversed_slice(self, seq):
        x = seq([0.0] * 5)
        x[::-1] = 2.0
        assert x == [2.0] * 5
        x[::-1] = [1.0, 2.0, 3.0, 4.0, 5.0]
        assert x == [5.0, 4.0, 3.0, 2.0, 1.0]
        assert list(x[::-1]) == [1.0, 2.0, 3.0, 4.0, 5.0]

    def test_negative_step(self, seq):
        x = seq([0.0] * 5)
        x[4:1:-2] = 1.0
        assert x == [0.0, 1.0, 0.0, 1.0, 0.0]
        assert list(x[5:2:-2]) == [0.0, 0.0]

    def test_zero_step(self, seq):
        x = seq([0.0] * 3)
        with pytest.raises(ConfigurationError):
            x[::0] = 1.0
        with pytest.raises(ConfigurationError):
            x[::0]

    def test_index_array(self, seq):
        x = seq([0.0] * 4)
        x[[1, 3]] = [5.0, 6.0]
        assert x.is_assembled()
        assert x == [5.0, 0.0, 6.0, 0.0]
        x[np.array([2, 4])] = -1.0
        assert x == [5.0, -1.0, 6.0, -1.0]

    def test_index_array_length_mismatch(self, seq):
        x = seq([0.0] * 4)
        with pytest.raises(ConfigurationError):
            x[[1, 2]] = [1.0, 2.0, 3.0]

    def test_mask_write(self, seq):
        x = seq([0.0] * 4)
        x[np.array([True, False, True, False])] = [7.0, 8.0]
        assert x == [7.0, 0.0, 8.0, 0.0]
        x[[False, True, False, True]] = 1.0
        assert x == [7.0, 1.0, 8.0, 1.0]

    def test_mask_too_long(self, seq):
        x = seq([0.0] * 2)
        with pytest.raises(BoundsError):
            x[np.ones(3, dtype=bool)] = 1.0

    def test_fill_then_sparse_writes(self, seq):
        x = seq([5.0] * 8)
        x.fill(0.0)
        chosen = [2, 3, 7]
        with x.assemble():
            for i in chosen:
                x[i] = 1.0
        mask = np.zeros(8, dtype=bool)
        mask[np.array(chosen) - 1] = True
        assert np.all(x[mask] == 1.0)
        assert np.all(x[~mask] == 0.0)


class TestBulkSetters:

    def test_set_values_zero_based(self, seq):
        x = seq([0.0] * 3)
        with x.assemble():
            x.set_values([0, 2], [1.0, 3.0])
        assert x == [1.0, 0.0, 3.0]

    def test_set_values_add(self, seq):
        x = seq([1.0] * 3)
        with x.assemble():
            distvec.set_values(x, [1, 1], [2.0, 2.0], mode=distvec.ADD)
        assert x == [1.0, 5.0, 1.0]

    def test_set_values_length_mismatch(self, seq):
        x = seq([0.0] * 3)
        with pytest.raises(ConfigurationError):
            x.set_values([0, 1], [1.0])
        assert x.is_assembled()

    def test_set_values_blocked(self, comm):
        x = distvec.create_vector(6, bs=2, comm=comm)
        x.fill(0.0)
        with x.assemble():
            x.set_values_blocked([2], [5.0, 6.0])
        assert x == [0.0, 0.0, 0.0, 0.0, 5.0, 6.0]
        with pytest.raises(ConfigurationError):
            x.set_values_blocked([0], [1.0])
        x.release()

    def test_set_values_local(self, seq):
        x = seq([0.0] * 3)
        assert not x.has_local_to_global_mapping()
        x.set_local_to_global_mapping()
        assert x.has_local_to_global_mapping()
        with x.assemble():
            x.set_values_local([2], [4.0])
        assert x == [0.0, 0.0, 4.0]

    def test_set_values_blocked_local(self, comm):
        x = distvec.create_vector(4, bs=2, comm=comm)
        x.fill(0.0)
        lgmap = PETSc.LGMap().create([0, 1], bsize=2, comm=comm)
        x.set_local_to_global_mapping(lgmap)
        with x.assemble():
            x.set_values_blocked_local([1], [3.0, 4.0])
        assert x == [0.0, 0.0, 3.0, 4.0]
        lgmap.destroy()
        x.release()


class TestPlainArrays:

    def test_assembly_calls_are_noops(self):
        a = np.zeros(3)
        assert distvec.assembly_begin(a) is a
        assert distvec.assembly_end(a) is a
        assert distvec.is_assembled(a)
        with distvec.assemble(a) as b:
            assert b is a

    def test_insert_and_add(self):
        a = np.zeros(3)
        assembly.set_values(a, [0, 2], [1.0, 2.0])
        assert list(a) == [1.0, 0.0, 2.0]
        assembly.set_values_local(a, [2, 2], [1.0, 1.0], mode=assembly.ADD)
        assert list(a) == [1.0, 0.0, 4.0]

    def test_unsupported_mode(self):
        with pytest.raises(ConfigurationError):
            assembly.set_values(np.zeros(2), [0], [1.0], mode=PETSc.InsertMode.MAX_VALUES)
