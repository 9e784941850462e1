import numpy as np
import pytest

import distvec
from petsc4py import PETSc


@pytest.fixture
def comm():
    """ Single-process communicator, the tests using it run the same under mpirun """
    return PETSc.COMM_SELF


@pytest.fixture
def world():
    return PETSc.COMM_WORLD


@pytest.fixture
def seq():
    """ Factory for vectors on PETSc.COMM_SELF holding the given values """
    made = []

    def make(values, **kwargs):
        values = np.asarray(values, dtype=PETSc.ScalarType)
        x = distvec.vector_from_data(values, values.size, comm=PETSc.COMM_SELF, **kwargs)
        made.append(x)
        return x

    yield make
    for x in made:
        if not x._read_views and not x._write_view:
            x.release()


@pytest.fixture
def fresh_context():
    """ Start from a default context and restore one after the test """
    yield distvec.init()
    options = PETSc.Options("distvec_")
    for name in ("verify_assembled", "vec_type", "verbose"):
        options.delValue(name)
    distvec.init()
