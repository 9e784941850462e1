import numpy as np

from ..errors import ConfigurationError, petsc_call


def local_size(global_size, nprocs, rank):
    """ Number of entries owned by `rank` when `global_size` entries are balanced over `nprocs` """
    return global_size // nprocs + int(rank < (global_size % nprocs))


def local_start(global_size, nprocs, rank):
    """ 0-based global offset of the first entry owned by `rank` """
    start = 0
    for r in range(0, rank):
        start += local_size(global_size, nprocs, r)
    return start


class Partition(object):
    """
    Describes how a vector of global length N is split into contiguous
    per-process pieces.

    PETSc reports ownership as a 0-based half-open interval [low, high).
    The public ranges returned here are 1-based Python ranges, so on
    a length 6 vector split over 2 processes rank 0 owns range(1, 4)
    (entries 1, 2, 3) and rank 1 owns range(4, 7).

        ATTRIBUTES
            N       : global size of the vector
            n       : local size on this processor
            start   : 0-based offset of the local piece
            bs      : block size (N % bs == 0)
            rank    : rank of this processor
            nprocs  : number of processors
    """

    def __init__(self, N, n, start, bs=1, rank=0, nprocs=1):

        if bs <= 0:
            raise ConfigurationError("block size must be positive, got {}".format(bs))
        if N % bs != 0:
            raise ConfigurationError("global size {} is not divisible by block size {}".format(N, bs))

        self.N = N
        self.n = n
        self.start = start
        self.bs = bs
        self.rank = rank
        self.nprocs = nprocs

    @classmethod
    def balanced(cls, global_size, comm, bs=1):
        """
        The split PETSc chooses when only the global size is given.

            ARGUMENTS
                global_size  : total number of entries
                comm         : MPI communicator object (mpi4py or PETSc)
                bs           : block size, blocks are never split between processors
        """
        rank, nprocs = comm.rank, comm.size
        nblocks = global_size // bs
        n = local_size(nblocks, nprocs, rank) * bs
        start = local_start(nblocks, nprocs, rank) * bs
        return cls(global_size, n, start, bs=bs, rank=rank, nprocs=nprocs)

    @classmethod
    def from_vec(cls, vec):
        """ Read the partition of an existing PETSc.Vec """
        N = petsc_call("VecGetSize", vec.getSize)
        low, high = petsc_call("VecGetOwnershipRange", vec.getOwnershipRange)
        bs = petsc_call("VecGetBlockSize", vec.getBlockSize)
        comm = vec.getComm()
        return cls(N, high - low, low, bs=bs, rank=comm.rank, nprocs=comm.size)

    @property
    def low(self):
        return self.start

    @property
    def high(self):
        return self.start + self.n

    def ownership_range(self):
        """ 1-based global indices owned by this processor """
        return range(self.low + 1, self.high + 1)

    def ownership_range_block(self):
        """ 1-based block indices owned by this processor """
        low_b = self.low // self.bs
        if self.n == 0:
            return range(low_b + 1, low_b + 1)
        high_b = (self.high - 1) // self.bs
        return range(low_b + 1, high_b + 2)

    def global_indices(self, dtype='int32'):
        """ 0-based global indices of the local piece """
        return np.arange(self.low, self.high, dtype=dtype)

    def all_ranges(self, comm):
        """
        Collective: the 0-based (low, high) pairs of every processor, in rank order
        """
        return comm.allgather((self.low, self.high))

    def __eq__(self, other):
        if not isinstance(other, Partition):
            return NotImplemented
        return (self.N, self.n, self.start, self.bs) == (other.N, other.n, other.start, other.bs)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        return "Partition(N={}, n={}, start={}, bs={}, rank={}/{})".format(
            self.N, self.n, self.start, self.bs, self.rank, self.nprocs)
