"""
Index sets and local-to-global mappings of a vector.

The *_local setters of distvec.petsc.assembly translate local indices through
the local-to-global mapping of the vector, which has to be set first (ghost
vectors come with one).
"""

import logging

import numpy as np
from petsc4py import PETSc

from ..errors import petsc_call

_logger = logging.getLogger("distvec.petsc.mapping")


def local_index_set(x):
    """ Stride index set over the 0-based global indices owned by this processor """
    low, high = petsc_call("VecGetOwnershipRange", x.vec.getOwnershipRange)
    return petsc_call("ISCreateStride", PETSc.IS().createStride,
                      high - low, first=low, step=1, comm=PETSc.COMM_SELF)


def local_index_set_block(x):
    """ Block index set over the 0-based block indices owned by this processor """
    bs = x.block_size
    low, high = petsc_call("VecGetOwnershipRange", x.vec.getOwnershipRange)
    blocks = np.arange(low // bs, high // bs, dtype=PETSc.IntType)
    return petsc_call("ISCreateBlock", PETSc.IS().createBlock, bs, blocks, comm=PETSc.COMM_SELF)


def create_local_to_global_mapping(x, gindices=None):
    """
    Build a mapping for x.

        ARGUMENTS
            x         : Vector
            gindices  : 0-based global index of every local index -- the owned
                        range of x if None

        RETURNS
            lgmap     : PETSc.LGMap
    """
    if gindices is None:
        gindices = x.partition.global_indices(dtype=PETSc.IntType)
    gindices = np.asarray(gindices, dtype=PETSc.IntType)

    lgmap = PETSc.LGMap()
    petsc_call("ISLocalToGlobalMappingCreate", lgmap.create, gindices, comm=x.comm)
    return lgmap


def set_local_to_global_mapping(x, lgmap):
    petsc_call("VecSetLocalToGlobalMapping", x.vec.setLGMap, lgmap)
    _logger.debug("local-to-global mapping of %d entries set", lgmap.getSize())
    return x


def local_to_global_mapping(x):
    """ The mapping of x, a PETSc.LGMap with a null handle if none was set """
    return petsc_call("VecGetLocalToGlobalMapping", x.vec.getLGMap)


def has_local_to_global_mapping(x):
    return bool(local_to_global_mapping(x).handle)
