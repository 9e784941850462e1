"""
Vectors with ghost entries.

A ghost vector stores, after its owned entries, copies of entries owned by
other processors. The copies are refreshed by a halo exchange:

    FORWARD  owner -> ghost copies (usually with INSERT)
    REVERSE  ghost copies -> owner (usually with ADD)

The owned entries together with the ghost copies are reached through the
local form, a sequential vector sharing the memory of the ghost vector:

    with x.local_form() as lx:
        lx.fill(0.0)

The local form keeps its parent alive and the parent refuses to be released
while a local form is outstanding.
"""

import logging
from contextlib import ExitStack

import numpy as np
from petsc4py import PETSc

from ..context import get_context, petsc_finalized
from ..errors import DistVecError, ConfigurationError, LifecycleError, petsc_call
from .assembly import INSERT
from .vector import Vector, DECIDE, _comm

_logger = logging.getLogger("distvec.petsc.ghost")

FORWARD = PETSc.ScatterMode.FORWARD
REVERSE = PETSc.ScatterMode.REVERSE


class GhostVector(Vector):
    """
    Distributed vector with ghost entries.

        ATTRIBUTES
            ghosts  : 1-based global indices (block indices if bs > 1) of the ghost entries
    """

    name = "PETSc_GhostVector"

    def __init__(self, vec, ghosts, verify_assembled=None):
        super(GhostVector, self).__init__(vec, verify_assembled=verify_assembled)
        self.ghosts = ghosts
        self._local_forms = 0

    def duplicate(self):
        """
        New ghost vector with the same owned layout and ghost indices. It gets
        its own halo scatter, VecDuplicate would share the one of this vector.
        """
        return create_ghost_vector(self.local_size, self.ghosts, size=len(self), bs=self.block_size,
                                   comm=self.comm, verify_assembled=self.verify_assembled)

    def release(self):
        if self._local_forms and not self.is_finalized() and not petsc_finalized():
            raise LifecycleError("cannot release a ghost vector while {} local form(s) are outstanding"
                                 .format(self._local_forms))
        super(GhostVector, self).release()

    destroy = release

    def __del__(self):
        if getattr(self, "_local_forms", 0):
            return
        super(GhostVector, self).__del__()

    def resize(self, size=DECIDE, local_size=DECIDE, bs=None):
        raise ConfigurationError("the layout of a ghost vector is fixed when it is created")

    def _register_view(self, mode):
        if self._local_forms:
            raise LifecycleError("cannot borrow a ghost vector while a local form is outstanding")
        super(GhostVector, self)._register_view(mode)

    def local_form(self):
        """ LocalFormVector over the owned and ghost entries of this processor """
        return LocalFormVector(self)

    def ghost_begin(self, mode=INSERT, direction=FORWARD):
        """ Start the halo exchange (collective) """
        petsc_call("VecGhostUpdateBegin", self.vec.ghostUpdateBegin, addv=mode, mode=direction)
        return self

    def ghost_end(self, mode=INSERT, direction=FORWARD):
        """ Finish the halo exchange started by ghost_begin (collective) """
        petsc_call("VecGhostUpdateEnd", self.vec.ghostUpdateEnd, addv=mode, mode=direction)
        _logger.debug("ghost update finished (%s, %s)", mode, direction)
        return self

    def scatter(self, mode=INSERT, direction=FORWARD):
        self.ghost_begin(mode, direction)
        return self.ghost_end(mode, direction)


class LocalFormVector(Vector):
    """
    Sequential vector aliasing the owned entries followed by the ghost
    entries of a GhostVector. It does not own its PETSc handle: restore()
    hands it back to the parent, release() restores if that has not
    happened yet.
    """

    name = "PETSc_LocalFormVector"

    def __init__(self, parent):
        vec = parent.vec
        parent._check_exclusive("take a local form")
        stack = ExitStack()
        local = stack.enter_context(petsc_call("VecGhostGetLocalForm", vec.localForm))
        super(LocalFormVector, self).__init__(local, aux_data=parent, owned=False,
                                              verify_assembled=False)
        self._stack = stack
        self.restored = False
        parent._local_forms += 1
        _logger.debug("local form taken, %d outstanding", parent._local_forms)

    @property
    def parent(self):
        return self.aux_data

    def _wrap(self, vec):
        # a duplicate is an ordinary sequential vector that owns its memory
        return Vector(vec, verify_assembled=False)

    def restore(self):
        """ Hand the local form back to the parent. A second restore raises LifecycleError """
        if self.restored:
            raise LifecycleError("local form has already been restored")
        self._check_exclusive("restore a local form")

        parent = self.aux_data
        if petsc_finalized() or parent.is_finalized():
            _logger.debug("local form restored after teardown, nothing to hand back")
            self._stack.pop_all()
        else:
            petsc_call("VecGhostRestoreLocalForm", self._stack.close)
        self.restored = True
        self._vec = None
        parent._local_forms -= 1
        self.aux_data = None

    def release(self):
        if not getattr(self, "restored", True):
            self.restore()

    destroy = release

    def __del__(self):
        if getattr(self, "restored", True):
            return
        if self._read_views or self._write_view:
            return
        try:
            self.release()
        except DistVecError as exc:
            _logger.warning("local form not restored during cleanup: %s", exc)

    def __repr__(self):
        if self.restored:
            return "<LocalFormVector (restored)>"
        return "<LocalFormVector local={}>".format(self.local_size)


def create_ghost_vector(local_size, ghosts, size=DECIDE, bs=1, dtype=None, comm=None,
                        verify_assembled=None):
    """
    Create a ghost vector.

        ARGUMENTS
            local_size  : number of owned entries on this processor
            ghosts      : 1-based global indices of the ghost entries on this processor
                          (block indices when bs > 1)
            size        : global size -- PETSc.DECIDE to sum the local sizes
            bs          : block size, must be positive
            dtype       : element type
            comm        : MPI communicator object

        RETURNS
            GhostVector
    """
    get_context().check_dtype(dtype)
    if bs <= 0:
        raise ConfigurationError("block size must be positive, got {}".format(bs))

    ghosts = np.asarray(ghosts, dtype=PETSc.IntType).ravel()
    if ghosts.size and ghosts.min() < 1:
        raise ConfigurationError("ghost indices are 1-based, got {}".format(ghosts.min()))
    ghosts0 = np.ascontiguousarray(ghosts - 1, dtype=PETSc.IntType)

    vec = petsc_call("VecCreateGhost", PETSc.Vec().createGhost, ghosts0, (local_size, size),
                     bsize=(bs if bs > 1 else None), comm=_comm(comm))
    _logger.debug("created ghost vector, %d owned and %d ghost entries", local_size, ghosts.size * bs)
    return GhostVector(vec, ghosts, verify_assembled=verify_assembled)


def ghost_update(*vectors, mode=INSERT, direction=FORWARD):
    """
    Halo exchange on several ghost vectors. Every exchange is started before
    any is finished so that they proceed together (collective).
    """
    for x in vectors:
        if not isinstance(x, GhostVector):
            raise ConfigurationError("ghost_update needs ghost vectors, got {}".format(type(x).__name__))
    for x in vectors:
        x.ghost_begin(mode, direction)
    for x in vectors:
        x.ghost_end(mode, direction)
    return vectors
