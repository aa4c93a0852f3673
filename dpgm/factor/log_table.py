"""
dpgm/factor/log_table.py

Log-domain table factor.

Stores log values so long products of small probabilities do not
underflow. Operators keep their value-space meaning:

  product  -> addition of logs
  divide   -> subtraction of logs (log 0 divisor gives log 0)
  sum      -> logaddexp; marginals use logsumexp
  max/min  -> unchanged (log is monotone)

Difference and the boolean operators have no log-domain counterpart.
"""

from __future__ import annotations

from typing import Callable, Iterable

import numpy as np

from dpgm.algebra.ops import LOG_SUM, BinaryOp, Op
from dpgm.core.exceptions import InvalidOperation, NormalizationError
from dpgm.core.registry import Variable
from dpgm.factor.table_factor import TableFactor
from dpgm.tensor.dense_table import DenseTable


def _log_divide(a, b) -> np.ndarray:
    a, b = np.broadcast_arrays(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64))
    out = np.full(a.shape, -np.inf)
    np.subtract(a, b, out=out, where=(b != -np.inf))
    return out


def _logdiv_reduce(x: np.ndarray, axes, initial: float) -> np.ndarray:
    s = np.sum(x, axis=axes)
    return _log_divide(initial, s)


def _add_reduce(x: np.ndarray, axes, initial: float) -> np.ndarray:
    return np.add.reduce(x, axis=axes, initial=initial)


LOG_PRODUCT = BinaryOp("log_product", np.add, 0.0, _add_reduce)
LOG_DIVIDE = BinaryOp("log_divide", _log_divide, 0.0, _logdiv_reduce, commutative=False, merge=np.add)

_LOG_OPS = {
    Op.PRODUCT: LOG_PRODUCT,
    Op.DIVIDE: LOG_DIVIDE,
    Op.SUM: LOG_SUM,
    Op.MAX: Op.MAX.binary,
    Op.MIN: Op.MIN.binary,
}


def _log_op(op) -> BinaryOp:
    if isinstance(op, BinaryOp):
        return op
    tag = Op(op.lower()) if isinstance(op, str) else op
    try:
        return _LOG_OPS[tag]
    except KeyError:
        raise InvalidOperation(f"operator {tag.value!r} is not defined for log-domain factors") from None


class LogTableFactor(TableFactor):
    """A TableFactor whose table holds log values."""

    def __init__(self, args: Iterable[Variable] = (), default: float = 0.0, values=None):
        """``default`` and ``values`` are log values."""
        super().__init__(args, default, values)

    @classmethod
    def from_table_factor(cls, f: TableFactor) -> "LogTableFactor":
        with np.errstate(divide="ignore"):
            data = np.log(f.table.data)
        return cls._wrap(f.arguments, DenseTable.from_array(data))

    def to_table_factor(self) -> TableFactor:
        return TableFactor._wrap(self._args, DenseTable.from_array(np.exp(self.table.data)))

    def v(self, *key) -> float:
        return float(np.exp(self.table.data[self._coords(key)]))

    def logv(self, *key) -> float:
        return float(self.table.data[self._coords(key)])

    def _combine_fn(self, op) -> Callable:
        return _log_op(op).fn if not callable(op) or isinstance(op, BinaryOp) else op

    def _collapse_op(self, op) -> BinaryOp:
        return _log_op(op)

    def _encode_scalar(self, value: float) -> float:
        with np.errstate(divide="ignore"):
            return float(np.log(value))

    def _prob_table(self) -> DenseTable:
        return DenseTable.from_array(np.exp(self.table.data))

    def log_norm_constant(self) -> float:
        return float(self.collapse(Op.SUM))

    def norm_constant(self) -> float:
        return float(np.exp(self.log_norm_constant()))

    def is_normalizable(self) -> bool:
        return bool(np.isfinite(self.log_norm_constant()))

    def normalize(self) -> "LogTableFactor":
        lz = self.log_norm_constant()
        if not np.isfinite(lz):
            raise NormalizationError(f"cannot normalize log-domain factor over {self._args}",
                                     total=float(np.exp(lz)))
        self.table.transform(lambda d: d - lz)
        return self


def as_log(f: TableFactor) -> LogTableFactor:
    return f if isinstance(f, LogTableFactor) else LogTableFactor.from_table_factor(f)


def as_table(f: TableFactor) -> TableFactor:
    return f.to_table_factor() if isinstance(f, LogTableFactor) else f
