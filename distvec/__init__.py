"""
Package for distributed dense vectors on top of PETSc

The package defines a vector class, a ghosted variant and the machinery to
fill and combine them across processors

    GhostVector(Vector)
    LocalFormVector(Vector)
    Vector
    Partition
    LocalView

The Partition class describes how a global vector is split into contiguous
pieces, one per processor. Global indices are 1-based.

The Vector class wraps a PETSc.Vec. Writes are stashed on the processor
that makes them and committed collectively inside an assembly bracket

    with x.assemble():
        x[i] = value

The LocalView class gives direct access to the memory of the local piece,
read-only or read-write, and is handed back when released.

The GhostVector class adds copies of entries owned by other processors,
refreshed with scatter() / ghost_update(), and reached through its local
form.

Settings are read from the PETSc options database by the process-wide
context (see distvec.context), errors are defined in distvec.errors.

See the help for each class / function for more detailed information

"""

from .context import Context, init, get_context, finalize
from .errors import DistVecError, ConfigurationError, BoundsError, LifecycleError, ResourceError

from . import petsc
from .decomposition import Partition
from .petsc import *
