import logging
import sys

import numpy as np
from mpi4py import MPI
from petsc4py import PETSc

from ..context import get_context, petsc_finalized
from ..decomposition import Partition
from ..errors import DistVecError, ConfigurationError, LifecycleError, petsc_call
from . import assembly as _assembly
from . import mapping as _mapping
from . import ops as _ops
from .local import LocalView, READ_ONLY, READ_WRITE, map_local

_logger = logging.getLogger("distvec.petsc.vector")

DECIDE = PETSc.DECIDE


def _slice_range(key, N):
    """
    1-based range selected by a slice: x[:] is range(1, N+1) and x[::-1]
    is range(N, 0, -1)
    """
    step = 1 if key.step is None else key.step
    if step == 0:
        raise ConfigurationError("slice step cannot be zero")
    if step > 0:
        start = 1 if key.start is None else key.start
        stop = N + 1 if key.stop is None else key.stop
    else:
        start = N if key.start is None else key.start
        stop = 0 if key.stop is None else key.stop
    return range(start, stop, step)


class Vector(object):
    """
    Distributed dense vector around a PETSc.Vec.

    The global vector is split into contiguous local pieces, one per
    processor. Values are written with 1-based global indices, x[i] = v,
    and committed collectively (see distvec.petsc.assembly). The local piece
    can be borrowed directly with borrow().

    The PETSc object is stored in `self.vec` and can be referenced
    directly, but writing through it bypasses the assembly bookkeeping.

        ATTRIBUTES
            vec               : PETSc.Vec (raises LifecycleError once released)
            assembled         : no stashed values on this processor
            verify_assembled  : is_assembled() checks every processor
            insertmode        : INSERT or ADD, used by staged writes
            aux_data          : object kept alive as long as the vector
                                (wrapped numpy array, parent ghost vector)
    """

    name = "PETSc_Vector"
    _operand_kind = _ops.VECTOR
    __array_ufunc__ = None

    def __init__(self, vec, aux_data=None, owned=True, verify_assembled=None, vtype=None):
        """
        Accepts a PETSc vector object.

            ARGUMENTS
                vec               : PETSc.Vec (created, possibly unsized)
                aux_data          : reference to keep alive, e.g. the wrapped array
                owned             : destroy vec on release
                verify_assembled  : context default if None
                vtype             : PETSc vector type, applied when the vector is sized
        """
        self._vec = vec
        self.aux_data = aux_data
        self._owned = owned
        self.assembled = True
        if verify_assembled is None:
            verify_assembled = get_context().verify_assembled
        self.verify_assembled = verify_assembled
        self.insertmode = _assembly.INSERT

        self._pending_type = vtype
        self._assembly_depth = 0
        self._read_views = 0
        self._write_view = False

    ##########################################################################
    # lifecycle

    @property
    def vec(self):
        if self.is_finalized():
            raise LifecycleError("vector has been released")
        return self._vec

    def is_finalized(self):
        """ True once released, or for vectors whose handle was never allocated """
        return self._vec is None or not self._vec.handle

    is_null = is_finalized

    def _check_exclusive(self, what):
        if self._read_views or self._write_view:
            raise LifecycleError("cannot {} while local views are outstanding".format(what))

    def release(self):
        """
        Destroy the PETSc vector. Safe to call more than once, and a no-op
        once PETSc has been finalized.
        """
        if self.is_finalized():
            return
        if petsc_finalized():
            _logger.debug("release after PETSc shutdown, nothing to destroy")
            self._vec = None
            return

        self._check_exclusive("release")
        if self._owned:
            petsc_call("VecDestroy", self._vec.destroy)
        self._vec = None
        self.aux_data = None

    destroy = release

    def __del__(self):
        if getattr(self, "_vec", None) is None:
            return
        if self._read_views or self._write_view:
            return
        try:
            self.release()
        except DistVecError as exc:
            _logger.warning("vector not destroyed during cleanup: %s", exc)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()

    def _wrap(self, vec):
        """ New vector of the same kind around vec """
        return Vector(vec, verify_assembled=self.verify_assembled)

    ##########################################################################
    # sizes and partition

    def resize(self, size=DECIDE, local_size=DECIDE, bs=None):
        """
        Set the global size or the local size (or both) of the vector.

        If only the global size is given PETSc balances the local sizes.
        Sizes count entries, not blocks, so size % bs must be 0.
        """
        if size == DECIDE and local_size == DECIDE:
            raise ConfigurationError("either the global size or the local size must be specified")
        self._check_exclusive("resize")
        petsc_call("VecSetSizes", self.vec.setSizes, (local_size, size), bsize=bs)
        if self._pending_type is not None:
            petsc_call("VecSetType", self.vec.setType, self._pending_type)
            self._pending_type = None
        _logger.debug("resized to %d (local %d)", len(self), self.local_size)
        return self

    def set_block_size(self, bs):
        petsc_call("VecSetBlockSize", self.vec.setBlockSize, bs)
        return self

    def get_block_size(self):
        return petsc_call("VecGetBlockSize", self.vec.getBlockSize)

    block_size = property(get_block_size)

    def __len__(self):
        """ Global length """
        return petsc_call("VecGetSize", self.vec.getSize)

    @property
    def shape(self):
        return (len(self),)

    @property
    def local_size(self):
        return petsc_call("VecGetLocalSize", self.vec.getLocalSize)

    @property
    def local_shape(self):
        return (self.local_size,)

    @property
    def partition(self):
        return Partition.from_vec(self.vec)

    def ownership_range(self):
        """ 1-based range of the global indices owned by this processor """
        return self.partition.ownership_range()

    def ownership_range_block(self):
        """ 1-based range of the block indices owned by this processor """
        return self.partition.ownership_range_block()

    @property
    def comm(self):
        return self.vec.getComm()

    @property
    def mpi_comm(self):
        return self.vec.getComm().tompi4py()

    @property
    def dtype(self):
        return np.dtype(PETSc.ScalarType)

    def gettype(self):
        if self._pending_type is not None:
            return self._pending_type
        return petsc_call("VecGetType", self.vec.getType)

    ##########################################################################
    # copies

    def duplicate(self):
        """ New vector with the same layout, values are not copied """
        return self._wrap(petsc_call("VecDuplicate", self.vec.duplicate))

    def similar(self, size=None):
        """
        duplicate() when size is None or the global length, otherwise an
        unfilled vector of `size` entries on the same communicator
        """
        if size is None or size == len(self):
            return self.duplicate()
        return create_vector(size, vtype=self.gettype(), comm=self.comm,
                             verify_assembled=self.verify_assembled)

    def copy(self):
        """
        New vector holding the same values. Stashed values of this vector
        are committed first, so this is collective.
        """
        _assembly.assembly_begin(self)
        y = self.duplicate()
        _assembly.assembly_end(self)
        petsc_call("VecCopy", self.vec.copy, y.vec)
        return y

    def __copy__(self):
        return self.copy()

    ##########################################################################
    # assembly

    def assembly_begin(self):
        return _assembly.assembly_begin(self)

    def assembly_end(self):
        return _assembly.assembly_end(self)

    def assemble(self):
        """ Context manager committing the writes made inside it """
        return _assembly.assemble(self)

    def is_assembled(self, local_only=False):
        return _assembly.is_assembled(self, local_only=local_only)

    def __setitem__(self, key, value):
        """
        1-based staged writes:

            x[i] = v              stash one value (not collective, commit later)
            x[range] = v          fill for the full range, otherwise like below
            x[[i, j, ...]] = v    values or a scalar, committed (collective)
            x[mask] = v           boolean mask over global positions (collective)
        """
        if isinstance(key, (int, np.integer)):
            _assembly.set_value(self, key, value)
        elif isinstance(key, slice):
            _assembly.set_range(self, _slice_range(key, len(self)), value)
        elif isinstance(key, range):
            _assembly.set_range(self, key, value)
        elif np.asarray(key).dtype == bool:
            _assembly.set_mask(self, key, value)
        else:
            _assembly.set_indices(self, key, value)

    def __getitem__(self, key):
        """
        Values at 1-based global indices owned by this processor. Use
        gather_values() for entries owned elsewhere.
        """
        if isinstance(key, (int, np.integer)):
            return _assembly.get_value(self, key)
        if isinstance(key, slice):
            key = _slice_range(key, len(self))
        key = np.asarray(key)
        if key.dtype == bool:
            key = np.flatnonzero(key) + 1
        return _assembly.get_values(self, key)

    def gather_values(self, indices):
        """
        Collective: values at arbitrary 1-based global indices, on every
        processor. Each processor may ask for different indices.
        """
        idx = _assembly.zero_based(self, indices)
        iset = petsc_call("ISCreateGeneral", PETSc.IS().createGeneral, idx, comm=PETSc.COMM_SELF)
        out = petsc_call("VecCreateSeq", PETSc.Vec().createSeq, idx.size, comm=PETSc.COMM_SELF)
        try:
            scatter = petsc_call("VecScatterCreate", PETSc.Scatter().create, self.vec, iset, out, None)
            try:
                petsc_call("VecScatterBegin", scatter.begin, self.vec, out)
                petsc_call("VecScatterEnd", scatter.end, self.vec, out)
            finally:
                scatter.destroy()
            return out.getArray().copy()
        finally:
            out.destroy()
            iset.destroy()

    def set_values(self, idxs, vals, mode=None):
        return _assembly.set_values(self, idxs, vals, mode)

    def set_values_blocked(self, idxs, vals, mode=None):
        return _assembly.set_values_blocked(self, idxs, vals, mode)

    def set_values_local(self, idxs, vals, mode=None):
        return _assembly.set_values_local(self, idxs, vals, mode)

    def set_values_blocked_local(self, idxs, vals, mode=None):
        return _assembly.set_values_blocked_local(self, idxs, vals, mode)

    def local_index_set(self):
        return _mapping.local_index_set(self)

    def local_index_set_block(self):
        return _mapping.local_index_set_block(self)

    def local_to_global_mapping(self):
        return _mapping.local_to_global_mapping(self)

    def set_local_to_global_mapping(self, lgmap=None):
        """ Set lgmap, or the identity mapping of the owned range if None """
        if lgmap is None:
            lgmap = _mapping.create_local_to_global_mapping(self)
        return _mapping.set_local_to_global_mapping(self, lgmap)

    def has_local_to_global_mapping(self):
        return _mapping.has_local_to_global_mapping(self)

    ##########################################################################
    # local memory

    def _register_view(self, mode):
        if self._write_view:
            raise LifecycleError("vector already has a read-write local view outstanding")
        if mode == READ_WRITE:
            if self._read_views:
                raise LifecycleError("cannot borrow read-write while read-only views are outstanding")
            self._write_view = True
        else:
            self._read_views += 1

    def _unregister_view(self, mode):
        if mode == READ_WRITE:
            self._write_view = False
        else:
            self._read_views -= 1

    def borrow(self, mode=READ_WRITE):
        """ LocalView over the local memory, READ_ONLY or READ_WRITE """
        return LocalView(self, mode)

    def local_array(self):
        """ Copy of the local part as a numpy array """
        with self.borrow(READ_ONLY) as view:
            return view.array.copy()

    def map(self, f, *srcs):
        """ self[i] = f(src1[i], ...) over the local part, see distvec.petsc.local.map_local """
        return map_local(f, self, *srcs)

    ##########################################################################
    # comparison and display

    def __eq__(self, other):
        """
        Vector: exact equality as decided by PETSc.
        Array: compared with the local part, the result is combined over
        all processors (collective) so every processor returns the same value.
        """
        if isinstance(other, Vector):
            return bool(petsc_call("VecEqual", self.vec.equal, other.vec))
        if isinstance(other, (np.ndarray, list, tuple)):
            return self._equal_local(np.asarray(other))
        return NotImplemented

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def _equal_local(self, other):
        local = self.local_array()
        flag = local.shape == other.ravel().shape and bool(np.all(local == other.ravel()))
        comm = self.mpi_comm
        flag = comm.reduce(flag, op=MPI.LAND, root=0)
        return bool(comm.bcast(flag, root=0))

    def show(self, stream=None):
        """
        Collective: print the vector, the length from rank 0 followed by
        each processor's entries, or a note that it is not assembled.
        """
        stream = sys.stdout if stream is None else stream
        rank = self.comm.rank
        if rank == 0:
            print("PETSc Vector of length {}".format(len(self)), file=stream)
        if self.is_assembled():
            print("Process {} entries:".format(rank), file=stream)
            print(self.local_array(), file=stream)
        else:
            print("Process {} not assembled".format(rank), file=stream)

    def petscview(self, viewer=None):
        """ PETSc's own printout of the vector """
        petsc_call("VecView", self.vec.view, viewer)

    def __repr__(self):
        if self.is_finalized():
            return "<{} (released)>".format(self.__class__.__name__)
        if self._pending_type is not None:
            return "<{} (unsized)>".format(self.__class__.__name__)
        return "<{} global={} local={} type={}>".format(
            self.__class__.__name__, len(self), self.local_size, self.gettype())

    ##########################################################################
    # arithmetic, see distvec.petsc.ops

    def fill(self, value):
        return _ops.fill(self, value)

    def abs_(self):
        return _ops.abs_(self)

    def exp_(self):
        return _ops.exp_(self)

    def log_(self):
        return _ops.log_(self)

    def conjugate_(self):
        return _ops.conjugate_(self)

    def abs(self):
        return _ops.abs_(self.copy())

    def exp(self):
        return _ops.exp_(self.copy())

    def log(self):
        return _ops.log_(self.copy())

    def conjugate(self):
        return _ops.conjugate_(self.copy())

    def chop_(self, tol):
        return _ops.chop_(self, tol)

    def findmax(self):
        return _ops.findmax(self)

    def findmin(self):
        return _ops.findmin(self)

    def max(self):
        return _ops.findmax(self)[0]

    def min(self):
        return _ops.findmin(self)[0]

    def sum(self):
        return _ops.vsum(self)

    def norm(self, p=2):
        return _ops.norm(self, p)

    def normalize_(self):
        return _ops.normalize_(self)

    def dot(self, other):
        return _ops.dot(self, other)

    def tdot(self, other):
        return _ops.tdot(self, other)

    def scale_(self, s):
        return _ops.scale_(self, s)

    def scale(self, s):
        return _ops.scale_(self.copy(), s)

    def shift_(self, s):
        return _ops.shift_(self, s)

    def axpy_(self, alpha, x):
        """ self = alpha * x + self """
        return _ops.axpy_(alpha, x, self)

    def __abs__(self):
        return self.abs()

    def __neg__(self):
        return _ops.scale_(self.copy(), -1)

    def __pos__(self):
        return self.copy()

    def __add__(self, other):
        return _ops.apply_operator("add", self, other)

    def __radd__(self, other):
        return _ops.apply_operator("add", other, self)

    def __sub__(self, other):
        return _ops.apply_operator("sub", self, other)

    def __rsub__(self, other):
        return _ops.apply_operator("sub", other, self)

    def __mul__(self, other):
        return _ops.apply_operator("mul", self, other)

    def __rmul__(self, other):
        return _ops.apply_operator("mul", other, self)

    def __truediv__(self, other):
        return _ops.apply_operator("div", self, other)

    def __rtruediv__(self, other):
        return _ops.apply_operator("div", other, self)

    def __pow__(self, other):
        return _ops.apply_operator("pow", self, other)

    def __iadd__(self, other):
        return _ops.apply_inplace("add", self, other)

    def __isub__(self, other):
        return _ops.apply_inplace("sub", self, other)

    def __imul__(self, other):
        return _ops.apply_inplace("mul", self, other)

    def __itruediv__(self, other):
        return _ops.apply_inplace("div", self, other)


##############################################################################
# constructors

def _comm(comm):
    return get_context().comm if comm is None else comm


def empty_vector(dtype=None, vtype=None, comm=None, verify_assembled=None):
    """
    Create an empty, unsized vector. Call resize() before using it.

        ARGUMENTS
            dtype   : element type -- must be the PETSc scalar type
            vtype   : "mpi", "seq" or "standard" -- context default if None
            comm    : MPI communicator object -- context default if None
    """
    ctx = get_context()
    ctx.check_dtype(dtype)
    vec = petsc_call("VecCreate", PETSc.Vec().create, comm=_comm(comm))
    return Vector(vec, verify_assembled=verify_assembled, vtype=vtype or ctx.vec_type)


def create_vector(size=DECIDE, dtype=None, vtype=None, bs=1, comm=None, local_size=DECIDE,
                  verify_assembled=None):
    """
    Create a vector from its global size or its local size. Even with
    bs > 1 the sizes count entries, not blocks.

        ARGUMENTS
            size        : global size -- PETSc.DECIDE to derive it from local_size
            dtype       : element type
            vtype       : vector type
            bs          : block size
            comm        : MPI communicator object
            local_size  : size on this processor -- PETSc.DECIDE to balance

        RETURNS
            Vector
    """
    x = empty_vector(dtype, vtype=vtype, comm=comm, verify_assembled=verify_assembled)
    x.resize(size, local_size=local_size, bs=bs)
    _logger.debug("created vector of length %d", size if size != DECIDE else len(x))
    return x


def vector_from_array(array, comm=None, verify_assembled=None):
    """
    Make a PETSc vector out of a numpy array. The array becomes the local
    part of the vector and shares its memory, so it is kept alive in
    `aux_data` for as long as the vector exists.
    """
    ctx = get_context()
    if not isinstance(array, np.ndarray) or array.ndim != 1:
        raise ConfigurationError("expected a one-dimensional numpy array")
    ctx.check_dtype(array.dtype)
    if not array.flags['C_CONTIGUOUS'] or not array.flags['WRITEABLE']:
        raise ConfigurationError("the array must be contiguous and writeable to be shared")

    vec = petsc_call("VecCreateMPIWithArray", PETSc.Vec().createWithArray,
                     array, size=(array.size, DECIDE), comm=_comm(comm))
    return Vector(vec, aux_data=array, verify_assembled=verify_assembled)


def vector_from_data(data, size, comm=None, verify_assembled=None):
    """
    Create a vector of global `size` from this processor's chunk of a
    balanced split and commit the values (collective).

        ARGUMENTS
            data  : chunk of data on a processor
            size  : global size of the vector
            comm  : MPI communicator object
    """
    comm = _comm(comm)
    part = Partition.balanced(size, comm)
    data = np.asarray(data)
    if data.size != part.n:
        raise ConfigurationError("processor {} holds {} entries, the balanced split expects {}"
                                 .format(part.rank, data.size, part.n))

    x = create_vector(size, comm=comm, local_size=part.n, verify_assembled=verify_assembled)
    with x.assemble():
        x.set_values(part.global_indices(dtype=PETSc.IntType), data)
    return x
