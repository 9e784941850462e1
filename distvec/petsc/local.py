"""
Direct access to the memory holding the local part of a vector.

    view = x.borrow(READ_WRITE)
    view[0] = 1.0
    view.release()

or, preferably

    with x.borrow(READ_ONLY) as view:
        total = view.array.sum()

Changes made through a READ_WRITE view are only guaranteed to be seen by
PETSc after the view is released. A vector hands out any number of
READ_ONLY views or a single READ_WRITE view, never both. While a view is
out the vector refuses to resize, release or give out local forms.
"""

import logging
from contextlib import ExitStack

import numpy as np

from ..context import petsc_finalized
from ..errors import DistVecError, ConfigurationError, BoundsError, LifecycleError, petsc_call

_logger = logging.getLogger("distvec.petsc.local")

READ_ONLY = "r"
READ_WRITE = "rw"


class LocalView(object):
    """
    Borrowed local memory of a vector, indexed 0..n-1.

        ATTRIBUTES
            vector    : the vector the memory belongs to
            mode      : READ_ONLY or READ_WRITE
            array     : numpy array over the PETSc memory (read-only flag set for READ_ONLY)
            released  : True once the memory has been handed back
    """

    def __init__(self, vector, mode=READ_WRITE):

        if mode not in (READ_ONLY, READ_WRITE):
            raise ConfigurationError("unknown access mode {!r}".format(mode))

        vec = vector.vec
        vector._register_view(mode)
        self.vector = vector
        self.mode = mode
        self.released = False
        self._stack = ExitStack()
        try:
            self.array = self._stack.enter_context(
                petsc_call("VecGetArray", vec.getBuffer, readonly=(mode == READ_ONLY)))
        except Exception:
            vector._unregister_view(mode)
            raise
        _logger.debug("borrowed %d local entries (%s)", self.array.size, mode)

    @property
    def readonly(self):
        return self.mode == READ_ONLY

    def release(self):
        """
        Hand the memory back to PETSc. Calling it again does nothing, and it
        never fails because the vector or PETSc has already gone away.
        """
        if self.released:
            return

        if petsc_finalized() or self.vector.is_finalized():
            _logger.debug("view released after teardown, nothing to restore")
            self._stack.pop_all()
        else:
            petsc_call("VecRestoreArray", self._stack.close)
        self.released = True
        self.array = None
        self.vector._unregister_view(self.mode)

    def __del__(self):
        if getattr(self, "released", True):
            return
        try:
            self.release()
        except DistVecError as exc:
            _logger.warning("local view not restored during cleanup: %s", exc)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()

    def _check_index(self, i):
        if self.released:
            raise LifecycleError("local view has already been released")
        if isinstance(i, slice):
            return i
        n = self.array.size
        if not 0 <= i < n:
            raise BoundsError("index {} is outside the local view of length {}".format(i, n))
        return i

    def __len__(self):
        return 0 if self.array is None else self.array.size

    def __getitem__(self, i):
        return self.array[self._check_index(i)]

    def __setitem__(self, i, value):
        if self.readonly:
            raise ConfigurationError("cannot write through a read-only local view")
        self.array[self._check_index(i)] = value

    def __iter__(self):
        if self.released:
            raise LifecycleError("local view has already been released")
        return iter(self.array)

    def __array__(self, dtype=None, copy=None):
        if self.released:
            raise LifecycleError("local view has already been released")
        return np.asarray(self.array, dtype=dtype)

    def __eq__(self, other):
        return np.array_equal(self.array, np.asarray(other))

    __hash__ = None

    def __repr__(self):
        state = "released" if self.released else self.array
        return "LocalView({}, {})".format(self.mode, state)


def map_local(f, dest, *srcs):
    """
    dest[i] = f(src1[i], src2[i], ...) over the local parts.

    With no sources dest is mapped onto itself. Every source must have a
    local part no longer than the one of dest and starting at the same
    global index. When the local lengths of the sources differ (a local form
    with ghost entries as destination, plain vectors as sources) the map
    covers the shortest source.

        ARGUMENTS
            f     : function of len(srcs) scalars
            dest  : Vector that receives the values
            srcs  : source Vectors

        RETURNS
            dest
    """
    if not srcs:
        srcs = (dest,)

    dest_len = dest.local_size
    dest_start = dest.ownership_range().start
    for src in srcs:
        if src.local_size > dest_len:
            raise ConfigurationError("local length of source ({}) exceeds local length of destination ({})"
                                     .format(src.local_size, dest_len))
        if src.ownership_range().start != dest_start:
            raise ConfigurationError("start of local part of src and dest must be aligned")

    with ExitStack() as stack:
        dest_view = stack.enter_context(dest.borrow(READ_WRITE))
        src_arrays = []
        for src in srcs:
            if src is dest:
                src_arrays.append(dest_view.array)
            else:
                src_arrays.append(stack.enter_context(src.borrow(READ_ONLY)).array)

        n = min(a.size for a in src_arrays)
        out = dest_view.array
        for i in range(n):
            out[i] = f(*[a[i] for a in src_arrays])

    return dest
