"""
Staged writes and the collective commit that makes them visible.

A write (scalar, index array, boolean mask or bulk) is only stashed on the
calling process and the vector is marked as not assembled. The values reach
their owners when every process calls assembly_begin / assembly_end, which is
what the `assemble` bracket does:

    with assemble(x):
        for i in x.ownership_range():
            x[i] = f(i)

Unless x.verify_assembled is False, never call the petsc4py methods
setValues / assemblyBegin / assemblyEnd on x.vec directly, the `assembled`
flags would no longer match the state of the PETSc vector.
"""

import logging
from contextlib import contextmanager

import numpy as np
from mpi4py import MPI
from petsc4py import PETSc

from ..errors import ConfigurationError, BoundsError, petsc_call

_logger = logging.getLogger("distvec.petsc.assembly")

INSERT = PETSc.InsertMode.INSERT_VALUES
ADD = PETSc.InsertMode.ADD_VALUES


def _is_plain(x):
    return isinstance(x, np.ndarray)


def assembly_begin(x):
    """ Start communicating stashed values (collective). No-op for numpy arrays """
    if _is_plain(x):
        return x
    petsc_call("VecAssemblyBegin", x.vec.assemblyBegin)
    return x


def assembly_end(x):
    """ Finish the commit started by assembly_begin (collective) """
    if _is_plain(x):
        return x
    petsc_call("VecAssemblyEnd", x.vec.assemblyEnd)
    x.assembled = True
    _logger.debug("vector %s assembled", x.vec.getName())
    return x


def is_assembled(x, local_only=False):
    """
    Check that a vector has no stashed values.

    If x.verify_assembled is set this is collective and the flags of all
    processes are combined with a logical AND, so a single process with
    stashed values makes the vector unassembled everywhere. `local_only`
    forces a check of the calling process only.
    """
    if _is_plain(x):
        return True
    if x.verify_assembled and not local_only:
        return bool(x.mpi_comm.allreduce(bool(x.assembled), op=MPI.LAND))
    return bool(x.assembled)


@contextmanager
def assemble(x):
    """
    Commit every write made inside the block with one collective
    assembly_begin / assembly_end. Nested brackets commit once, when the
    outermost one closes. If the block raises nothing is committed.
    """
    if _is_plain(x):
        yield x
        return

    x._assembly_depth += 1
    try:
        yield x
    finally:
        x._assembly_depth -= 1

    if x._assembly_depth == 0:
        assembly_begin(x)
        assembly_end(x)


##########################################################################
# index translation

def _indices(idxs):
    return np.ascontiguousarray(np.asarray(idxs).ravel(), dtype=PETSc.IntType)


def _values(vals):
    return np.ascontiguousarray(np.asarray(vals).ravel(), dtype=PETSc.ScalarType)


def zero_based(x, indices):
    """ Translate 1-based global indices to the 0-based PETSc convention """
    idx = _indices(indices)
    N = len(x)
    if idx.size and (idx.min() < 1 or idx.max() > N):
        raise BoundsError("global indices must lie in 1..{}".format(N))
    return idx - 1


def _check_pair(idxs, vals, bs=1):
    idxs = _indices(idxs)
    vals = _values(vals)
    if vals.size != idxs.size * bs:
        raise ConfigurationError("length(values) = {} does not match length(indices) = {}{}"
                                 .format(vals.size, idxs.size, "" if bs == 1 else " x block size {}".format(bs)))
    return idxs, vals


def _mode(x, mode):
    return x.insertmode if mode is None else mode


def _set_plain(x, idxs, vals, mode):
    idxs = np.asarray(idxs).ravel()
    vals = np.asarray(vals).ravel()
    if vals.size != idxs.size:
        raise ConfigurationError("length(values) = {} does not match length(indices) = {}"
                                 .format(vals.size, idxs.size))
    if mode is None or mode == INSERT:
        x[idxs] = vals
    elif mode == ADD:
        np.add.at(x, idxs, vals)
    else:
        raise ConfigurationError("unsupported insert mode {} for a numpy array".format(mode))
    return x


##########################################################################
# bulk, 0-based writes

def set_values(x, idxs, vals, mode=None):
    """
    Stash values at 0-based global indices.

        ARGUMENTS
            x     : Vector or numpy array
            idxs  : 0-based global indices
            vals  : values, same length as idxs
            mode  : INSERT or ADD -- x.insertmode if None
    """
    if _is_plain(x):
        return _set_plain(x, idxs, vals, mode)
    idxs, vals = _check_pair(idxs, vals)
    petsc_call("VecSetValues", x.vec.setValues, idxs, vals, addv=_mode(x, mode))
    x.assembled = False
    return x


def set_values_blocked(x, idxs, vals, mode=None):
    """ Like set_values, but idxs are 0-based block indices and vals has bs entries per block """
    idxs, vals = _check_pair(idxs, vals, bs=x.block_size)
    petsc_call("VecSetValuesBlocked", x.vec.setValuesBlocked, idxs, vals, addv=_mode(x, mode))
    x.assembled = False
    return x


def set_values_local(x, idxs, vals, mode=None):
    """
    Like set_values, but idxs are 0-based local indices translated through the
    local-to-global mapping of x. For numpy arrays local and global coincide.
    """
    if _is_plain(x):
        return _set_plain(x, idxs, vals, mode)
    idxs, vals = _check_pair(idxs, vals)
    petsc_call("VecSetValuesLocal", x.vec.setValuesLocal, idxs, vals, addv=_mode(x, mode))
    x.assembled = False
    return x


def set_values_blocked_local(x, idxs, vals, mode=None):
    idxs, vals = _check_pair(idxs, vals, bs=x.block_size)
    petsc_call("VecSetValuesBlockedLocal", x.vec.setValuesBlockedLocal, idxs, vals, addv=_mode(x, mode))
    x.assembled = False
    return x


##########################################################################
# 1-based indexed writes used by Vector.__setitem__

def set_value(x, index, value):
    """ Stash one value at a 1-based global index. Not collective, does not commit """
    set_values(x, zero_based(x, [index]), [value])
    return value


def set_indices(x, indices, value):
    """
    Write a scalar or an array of values at 1-based indices inside one
    assembly bracket (collective).
    """
    idx = zero_based(x, indices)
    vals = np.asarray(value)
    if vals.ndim == 0:
        vals = np.full(idx.size, value, dtype=PETSc.ScalarType)
    with assemble(x):
        set_values(x, idx, vals)
    return value


def set_range(x, indices, value):
    """
    Write a scalar over a 1-based range. The whole vector with unit stride
    is a fill, anything else goes through set_indices (collective).
    """
    N = len(x)
    if np.ndim(value) == 0 and len(indices) == N and N > 0 and abs(indices.step) == 1 \
            and min(indices) == 1 and max(indices) == N:
        petsc_call("VecSet", x.vec.set, value)
        return value
    return set_indices(x, np.asarray(indices), value)


def set_mask(x, mask, value):
    """
    Write where the boolean mask is True. Position k of the mask is global
    index k+1. An array of values is consumed in order (collective).
    """
    mask = np.asarray(mask, dtype=bool).ravel()
    if mask.size > len(x):
        raise BoundsError("mask of length {} is longer than the vector ({})".format(mask.size, len(x)))
    idx = np.flatnonzero(mask)
    vals = np.asarray(value)
    if vals.ndim == 0:
        vals = np.full(idx.size, value, dtype=PETSc.ScalarType)
    elif vals.size < idx.size:
        raise ConfigurationError("{} values supplied for {} selected entries".format(vals.size, idx.size))
    with assemble(x):
        set_values(x, idx, vals.ravel()[:idx.size])
    return value


##########################################################################
# reads, process-local

def get_values(x, indices):
    """
    Values at 1-based global indices. PETSc only returns entries owned by the
    calling process, off-process indices raise a ResourceError.
    """
    idx = zero_based(x, indices)
    return petsc_call("VecGetValues", x.vec.getValues, idx)


def get_value(x, index):
    return get_values(x, [index])[0]
