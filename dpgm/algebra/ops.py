"""
dpgm/algebra/ops.py

The closed set of element-wise operators used by combine and collapse.

Each operator is a BinaryOp: a vectorized binary function on ndarrays, its
identity element (the initial value of a collapse), and a reduction that
folds that function over a set of axes starting from an initial value.

Division is *safe*: x / 0 evaluates to 0 rather than inf/nan. Belief
propagation divides by separator potentials that may contain structural
zeros, and the quotient at those cells is never used.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np
from scipy.special import logsumexp

Axes = Tuple[int, ...]


def safe_divide(a, b) -> np.ndarray:
    """Element-wise a / b with 0 wherever b == 0."""
    a, b = np.broadcast_arrays(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64))
    out = np.zeros(a.shape, dtype=np.float64)
    np.divide(a, b, out=out, where=(b != 0))
    return out


def logical_and(a, b) -> np.ndarray:
    return np.logical_and(np.asarray(a) != 0, np.asarray(b) != 0).astype(np.float64)


def logical_or(a, b) -> np.ndarray:
    return np.logical_or(np.asarray(a) != 0, np.asarray(b) != 0).astype(np.float64)


def _ufunc_reduce(ufunc: np.ufunc) -> Callable[[np.ndarray, Axes, float], np.ndarray]:
    def _reduce(x: np.ndarray, axes: Axes, initial: float) -> np.ndarray:
        return ufunc.reduce(x, axis=axes, initial=initial)
    return _reduce


def _difference_reduce(x: np.ndarray, axes: Axes, initial: float) -> np.ndarray:
    return initial - np.sum(x, axis=axes)


def _divide_reduce(x: np.ndarray, axes: Axes, initial: float) -> np.ndarray:
    # folding safe_divide: any zero divisor pins the accumulator to 0
    p = np.prod(x, axis=axes)
    return safe_divide(initial, p)


def _and_reduce(x: np.ndarray, axes: Axes, initial: float) -> np.ndarray:
    r = np.all(x != 0, axis=axes)
    return np.logical_and(r, initial != 0).astype(np.float64)


def _or_reduce(x: np.ndarray, axes: Axes, initial: float) -> np.ndarray:
    r = np.any(x != 0, axis=axes)
    return np.logical_or(r, initial != 0).astype(np.float64)


def _logsum_reduce(x: np.ndarray, axes: Axes, initial: float) -> np.ndarray:
    return np.logaddexp(initial, logsumexp(x, axis=axes))


@dataclass(frozen=True)
class BinaryOp:
    """
    Vectorized binary operator with identity and reduction.

    Attributes:
        name: Identifier
        fn: Element-wise (a, b) -> ndarray
        identity: Initial value for a collapse with this operator
        reducer: (x, axes, initial) -> x folded over axes
        commutative: Whether fn(a, b) == fn(b, a)
        merge: Combines two partial reductions that each started from the
            identity (differs from fn only for difference and divide)
    """
    name: str
    fn: Callable[[np.ndarray, np.ndarray], np.ndarray]
    identity: float
    reducer: Callable[[np.ndarray, Axes, float], np.ndarray]
    commutative: bool = True
    merge: Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]] = None

    def __call__(self, a, b) -> np.ndarray:
        return self.fn(a, b)

    def reduce(self, x: np.ndarray, axes: Axes, initial: Optional[float] = None) -> np.ndarray:
        """Fold the operator over ``axes`` of x, starting from ``initial``."""
        init = self.identity if initial is None else initial
        x = np.asarray(x, dtype=np.float64)
        if not axes:
            return np.asarray(self.fn(init, x), dtype=np.float64)
        return np.asarray(self.reducer(x, tuple(axes), init), dtype=np.float64)

    def combine_partials(self, acc, partial) -> np.ndarray:
        """Fold a partial reduction (started from the identity) into acc."""
        fn = self.fn if self.merge is None else self.merge
        return np.asarray(fn(acc, partial), dtype=np.float64)


_OPS = {
    "sum": BinaryOp("sum", np.add, 0.0, _ufunc_reduce(np.add)),
    "difference": BinaryOp("difference", np.subtract, 0.0, _difference_reduce, commutative=False, merge=np.add),
    "product": BinaryOp("product", np.multiply, 1.0, _ufunc_reduce(np.multiply)),
    "divide": BinaryOp("divide", safe_divide, 1.0, _divide_reduce, commutative=False, merge=np.multiply),
    "max": BinaryOp("max", np.maximum, -np.inf, _ufunc_reduce(np.maximum)),
    "min": BinaryOp("min", np.minimum, np.inf, _ufunc_reduce(np.minimum)),
    "and": BinaryOp("and", logical_and, 1.0, _and_reduce),
    "or": BinaryOp("or", logical_or, 0.0, _or_reduce),
}

# log-domain sum: log(exp(a) + exp(b))
LOG_SUM = BinaryOp("log_sum", np.logaddexp, -np.inf, _logsum_reduce)


class Op(Enum):
    """Combine/collapse operator tags."""
    SUM = "sum"
    DIFFERENCE = "difference"
    PRODUCT = "product"
    DIVIDE = "divide"
    MAX = "max"
    MIN = "min"
    AND = "and"
    OR = "or"

    @property
    def binary(self) -> BinaryOp:
        return _OPS[self.value]

    @property
    def identity(self) -> float:
        return self.binary.identity

    @property
    def commutative(self) -> bool:
        return self.binary.commutative


def as_binary(op) -> BinaryOp:
    """Resolve an Op, an op name, or a BinaryOp to a BinaryOp."""
    if isinstance(op, BinaryOp):
        return op
    if isinstance(op, Op):
        return op.binary
    if isinstance(op, str):
        return Op(op.lower()).binary
    raise TypeError(f"Not an operator: {op!r}")


def as_function(op) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    """Resolve an operator tag to its element-wise function; callables pass through."""
    if isinstance(op, (Op, BinaryOp, str)):
        return as_binary(op).fn
    if callable(op):
        return op
    raise TypeError(f"Not an operator: {op!r}")
