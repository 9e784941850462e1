"""
Exceptions raised by the distributed vector layer.

    DistVecError
        ConfigurationError   - caller misuse, never retried
            BoundsError      - index outside a local view
        LifecycleError       - finalized vectors, double restores, releasing while borrowed
        ResourceError        - PETSc reported a failure

All messages carry the rank of the process that raised them. Failures inside
collective calls are local: the other processes may still be waiting.
"""

import logging

from petsc4py import PETSc

_logger = logging.getLogger("distvec.errors")


def _world_rank():
    try:
        return PETSc.COMM_WORLD.getRank()
    except PETSc.Error:
        return -1


class DistVecError(RuntimeError):
    """Base class, message is prefixed with the rank"""

    def __init__(self, msg, rank=None, original=None):
        if rank is None:
            rank = _world_rank()
        self.rank = rank
        self.original = original
        super(DistVecError, self).__init__("[Rank {}] {}".format(rank, msg))


class ConfigurationError(DistVecError, ValueError):
    pass


class BoundsError(ConfigurationError, IndexError):
    pass


class LifecycleError(DistVecError):
    pass


class ResourceError(DistVecError):
    """
    PETSc returned an error code. The code is kept in `ierr` and the
    petsc4py exception in `original`.
    """

    def __init__(self, msg, rank=None, original=None):
        self.ierr = getattr(original, "ierr", None)
        super(ResourceError, self).__init__(msg, rank=rank, original=original)


def petsc_call(name, fn, *args, **kwargs):
    """
    Call into PETSc and surface failures as ResourceError. This covers the
    ValueError petsc4py raises when it rejects arguments before calling
    PETSc, for instance a size that is not a multiple of the block size.

        ARGUMENTS
            name    : PETSc routine name, used in the message
            fn      : bound petsc4py method
            args    : passed through to fn

        RETURNS
            whatever fn returns
    """
    try:
        return fn(*args, **kwargs)
    except PETSc.Error as exc:
        msg = "PETSc call '{}' failed with error code {}".format(name, getattr(exc, "ierr", "?"))
        _logger.error(msg)
        raise ResourceError(msg, original=exc) from exc
    except DistVecError:
        raise
    except ValueError as exc:
        msg = "PETSc call '{}' rejected its arguments: {}".format(name, exc)
        _logger.error(msg)
        raise ResourceError(msg, original=exc) from exc
