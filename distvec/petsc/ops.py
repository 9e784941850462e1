"""
Elementwise operations and reductions on Vectors.

Functions with a trailing underscore work in place and return the vector
they modified, the others return a new vector. Apart from copy() none of
them commits stashed values: operands must already be assembled. The
reductions (norm, dot, sum, max, min) are collective.

The arithmetic operators of Vector are looked up in one table keyed by
(operation, kind of left operand, kind of right operand).
"""

import numbers

import numpy as np
from petsc4py import PETSc

from ..errors import ConfigurationError, petsc_call
from .local import READ_ONLY, READ_WRITE

VECTOR = "vector"
SCALAR = "scalar"


def operand_kind(obj):
    kind = getattr(obj, "_operand_kind", None)
    if kind is not None:
        return kind
    if isinstance(obj, numbers.Number):
        return SCALAR
    return None


##############################################################################
# unary, in place

def fill(x, value):
    petsc_call("VecSet", x.vec.set, value)
    return x


def abs_(x):
    petsc_call("VecAbs", x.vec.abs)
    return x


def exp_(x):
    petsc_call("VecExp", x.vec.exp)
    return x


def log_(x):
    petsc_call("VecLog", x.vec.log)
    return x


def conjugate_(x):
    petsc_call("VecConjugate", x.vec.conjugate)
    return x


def reciprocal_(x):
    petsc_call("VecReciprocal", x.vec.reciprocal)
    return x


def chop_(x, tol):
    """ Set entries with magnitude below tol to zero """
    with x.borrow(READ_WRITE) as view:
        view.array[np.abs(view.array) < tol] = 0
    return x


def scale_(x, s):
    petsc_call("VecScale", x.vec.scale, s)
    return x


def shift_(x, s):
    petsc_call("VecShift", x.vec.shift, s)
    return x


##############################################################################
# reductions

def findmax(x):
    """ (largest value, its 1-based global index) """
    i, v = petsc_call("VecMax", x.vec.max)
    return v, i + 1


def findmin(x):
    """ (smallest value, its 1-based global index) """
    i, v = petsc_call("VecMin", x.vec.min)
    return v, i + 1


def maximum(x):
    return findmax(x)[0]


def minimum(x):
    return findmin(x)[0]


def vsum(x):
    return petsc_call("VecSum", x.vec.sum)


_NORMS = {1: PETSc.NormType.NORM_1,
          2: PETSc.NormType.NORM_2,
          float("inf"): PETSc.NormType.NORM_INFINITY}


def norm(x, p=2):
    """ 1-, 2- or infinity norm """
    try:
        kind = _NORMS[p]
    except (KeyError, TypeError):
        raise ConfigurationError("unrecognized norm {!r}, use 1, 2 or inf".format(p))
    return petsc_call("VecNorm", x.vec.norm, kind)


def normalize_(x):
    """ Divide x by its 2-norm and return the norm """
    return petsc_call("VecNormalize", x.vec.normalize)


def dot(x, y):
    """ x^H y, the first argument is conjugated """
    return petsc_call("VecDot", y.vec.dot, x.vec)


def tdot(x, y):
    """ x^T y, no conjugation """
    return petsc_call("VecTDot", x.vec.tDot, y.vec)


##############################################################################
# pointwise, new vector

def _pointwise(name, method, x, y):
    w = x.duplicate()
    petsc_call(name, getattr(w.vec, method), x.vec, y.vec)
    return w


def pointwise_max(x, y):
    return _pointwise("VecPointwiseMax", "pointwiseMax", x, y)


def pointwise_min(x, y):
    return _pointwise("VecPointwiseMin", "pointwiseMin", x, y)


def pointwise_mult(x, y):
    return _pointwise("VecPointwiseMult", "pointwiseMult", x, y)


def pointwise_divide(x, y):
    return _pointwise("VecPointwiseDivide", "pointwiseDivide", x, y)


def pointwise_power(x, y):
    """ w[i] = x[i] ** y[i], y may also be a scalar """
    w = x.duplicate()
    with w.borrow(READ_WRITE) as wv, x.borrow(READ_ONLY) as xv:
        if operand_kind(y) == VECTOR:
            with y.borrow(READ_ONLY) as yv:
                np.power(xv.array, yv.array, out=wv.array)
        else:
            np.power(xv.array, y, out=wv.array)
    return w


##############################################################################
# BLAS-1 style updates

def axpy_(alpha, x, y):
    """ y = alpha*x + y """
    petsc_call("VecAXPY", y.vec.axpy, alpha, x.vec)
    return y


def waxpy(alpha, x, y, w=None):
    """ w = alpha*x + y, w is created when not given """
    if w is None:
        w = y.duplicate()
    petsc_call("VecWAXPY", w.vec.waxpy, alpha, x.vec, y.vec)
    return w


def aypx_(alpha, x, y):
    """ y = alpha*y + x """
    petsc_call("VecAYPX", y.vec.aypx, alpha, x.vec)
    return y


def axpby_(alpha, x, beta, y):
    """ y = alpha*x + beta*y """
    petsc_call("VecAXPBY", y.vec.axpby, alpha, beta, x.vec)
    return y


def axpbypcz_(alpha, x, beta, y, gamma, z):
    """ z = alpha*x + beta*y + gamma*z, z must be distinct from x and y """
    if z is x or z is y:
        raise ConfigurationError("axpbypcz_ cannot update one of its inputs in place")
    petsc_call("VecScale", z.vec.scale, gamma)
    alphas = np.asarray([alpha, beta], dtype=PETSc.ScalarType)
    petsc_call("VecMAXPY", z.vec.maxpy, alphas, [x.vec, y.vec])
    return z


def maxpy_(y, alphas, xs):
    """ y = y + sum(alphas[i] * xs[i]) """
    xs = list(xs)
    alphas = np.asarray(alphas, dtype=PETSc.ScalarType).ravel()
    if alphas.size != len(xs):
        raise ConfigurationError("{} coefficients given for {} vectors".format(alphas.size, len(xs)))
    petsc_call("VecMAXPY", y.vec.maxpy, alphas, [x.vec for x in xs])
    return y


def add(x, y):
    """ x + y through w = 1*y + x """
    return waxpy(1, y, x)


def subtract(x, y):
    """ x - y through w = -1*y + x """
    return waxpy(-1, y, x)


def shift(x, a):
    return shift_(x.copy(), a)


def scale(x, s):
    return scale_(x.copy(), s)


def _rsub(a, x):
    return shift_(scale_(x.copy(), -1), a)


def _rdiv(a, x):
    y = reciprocal_(x.copy())
    if a != 1:
        scale_(y, a)
    return y


##############################################################################
# operator table

_OPERATORS = {
    ("add", VECTOR, VECTOR): add,
    ("add", VECTOR, SCALAR): shift,
    ("add", SCALAR, VECTOR): lambda a, x: shift(x, a),
    ("sub", VECTOR, VECTOR): subtract,
    ("sub", VECTOR, SCALAR): lambda x, a: shift(x, -a),
    ("sub", SCALAR, VECTOR): _rsub,
    ("mul", VECTOR, VECTOR): pointwise_mult,
    ("mul", VECTOR, SCALAR): scale,
    ("mul", SCALAR, VECTOR): lambda a, x: scale(x, a),
    ("div", VECTOR, VECTOR): pointwise_divide,
    ("div", VECTOR, SCALAR): lambda x, a: scale(x, 1.0 / a),
    ("div", SCALAR, VECTOR): _rdiv,
    ("pow", VECTOR, VECTOR): pointwise_power,
    ("pow", VECTOR, SCALAR): pointwise_power,
}

_INPLACE_OPERATORS = {
    ("add", VECTOR, VECTOR): lambda x, y: axpy_(1, y, x),
    ("add", VECTOR, SCALAR): shift_,
    ("sub", VECTOR, VECTOR): lambda x, y: axpy_(-1, y, x),
    ("sub", VECTOR, SCALAR): lambda x, a: shift_(x, -a),
    ("mul", VECTOR, VECTOR): lambda x, y: _inplace_pointwise("VecPointwiseMult", "pointwiseMult", x, y),
    ("mul", VECTOR, SCALAR): scale_,
    ("div", VECTOR, VECTOR): lambda x, y: _inplace_pointwise("VecPointwiseDivide", "pointwiseDivide", x, y),
    ("div", VECTOR, SCALAR): lambda x, a: scale_(x, 1.0 / a),
}


def _inplace_pointwise(name, method, x, y):
    petsc_call(name, getattr(x.vec, method), x.vec, y.vec)
    return x


def apply_operator(op, a, b):
    """ Result of `a op b`, NotImplemented for unsupported operand kinds """
    impl = _OPERATORS.get((op, operand_kind(a), operand_kind(b)))
    if impl is None:
        return NotImplemented
    return impl(a, b)


def apply_inplace(op, a, b):
    impl = _INPLACE_OPERATORS.get((op, operand_kind(a), operand_kind(b)))
    if impl is None:
        return NotImplemented
    return impl(a, b)
