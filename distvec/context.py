"""
Process-wide state for the distributed vector layer.

PETSc is initialised here, before anything imports petsc4py.PETSc, so that
options given on the command line end up in the PETSc options database.
The Context reads its settings from that database:

    -distvec_verify_assembled <bool>  default for Vector.verify_assembled (true)
    -distvec_vec_type <str>           default vector type (mpi)
    -distvec_verbose <bool>           DEBUG logging for the distvec loggers

It also owns the table of null vectors, one per element type, which stand in
for "no vector" wherever the PETSc API accepts one.
"""

import sys, petsc4py
petsc4py.init(sys.argv)

import logging

import numpy as np
from petsc4py import PETSc

from .errors import ConfigurationError

_logger = logging.getLogger("distvec.context")

VECTOR_TYPES = (PETSc.Vec.Type.STANDARD, PETSc.Vec.Type.MPI, PETSc.Vec.Type.SEQ)


class Context(object):
    """
    Settings and shared objects for one process.

        ATTRIBUTES
            comm              : default communicator (PETSc.Comm)
            options           : PETSc.Options object with the "distvec_" prefix
            verify_assembled  : default for new vectors
            vec_type          : default vector type for new vectors
            scalar_type       : numpy dtype PETSc was built with
    """

    def __init__(self, argv=None, comm=None, prefix="distvec_"):
        """
        Initialises the context.

            ARGUMENTS
                argv    : extra command line style options ("-distvec_verbose", ...)
                comm    : default communicator (mpi4py or PETSc) -- PETSc.COMM_WORLD if None
                prefix  : options prefix
        """

        if comm is None:
            comm = PETSc.COMM_WORLD
        self.comm = comm
        self.options = PETSc.Options(prefix)
        if argv:
            self.options.insertString(" ".join(argv))

        self.verify_assembled = self.options.getBool("verify_assembled", True)
        self.vec_type = self.options.getString("vec_type", PETSc.Vec.Type.MPI)
        if self.vec_type not in VECTOR_TYPES:
            raise ConfigurationError("unknown vector type '{}'".format(self.vec_type))

        self.verbose = self.options.getBool("verbose", False)
        if self.verbose:
            logging.getLogger("distvec").setLevel(logging.DEBUG)

        self.scalar_type = np.dtype(PETSc.ScalarType)
        self._null_vectors = {}
        self._finalized = False

        _logger.debug("context ready: vec_type=%s verify_assembled=%s scalar=%s",
                      self.vec_type, self.verify_assembled, self.scalar_type)

    def check_dtype(self, dtype=None):
        """ Resolve dtype, only the scalar type PETSc was built with is usable """
        if dtype is None:
            return self.scalar_type
        dtype = np.dtype(dtype)
        if dtype != self.scalar_type:
            raise ConfigurationError("element type {} is not supported, PETSc was built with {}"
                                     .format(dtype, self.scalar_type))
        return dtype

    def null_vector(self, dtype=None):
        """
        Shared vector with an unallocated handle for the given element type.
        Created on first use, never destroyed by the caller.
        """
        if self._finalized:
            raise ConfigurationError("context has been finalized")

        dtype = self.check_dtype(dtype)
        vec = self._null_vectors.get(dtype)
        if vec is None:
            from .petsc.vector import Vector
            vec = Vector(PETSc.Vec(), owned=False, verify_assembled=self.verify_assembled)
            self._null_vectors[dtype] = vec
        return vec

    def is_finalized(self):
        """ True once finalize() ran on this context """
        return self._finalized

    def finalize(self):
        """ Drop the shared objects, the next get_context() builds a new context """
        self._null_vectors.clear()
        self._finalized = True
        _logger.debug("context finalized")


_context = None


def init(argv=None, comm=None):
    """
    Create the process-wide context. Calling it again replaces the previous one.
    """
    global _context
    if _context is not None:
        _context.finalize()
    _context = Context(argv=argv, comm=comm)
    return _context


def get_context():
    """ The process-wide context, created with default settings on first use """
    if _context is None or _context._finalized:
        return init()
    return _context


def finalize():
    """
    Tear down the process-wide context. Vectors still alive afterwards keep
    working and are destroyed by their own release, the next get_context()
    starts a fresh context.
    """
    if _context is not None:
        _context.finalize()


def petsc_finalized():
    """
    Teardown check used by cleanup paths. Only the shutdown of PETSc itself
    counts: after finalize() the PETSc handles are still valid and are
    destroyed as usual.
    """
    return bool(PETSc.Sys.isFinalized())
