"""
dpgm/factor/operations.py

Free functions over table factors: distances, extremes, powers, mixtures
and n-ary combination.

Distances are computed over the union of both argument sets in value
space, so log-domain factors compare by the values they represent.
"""

from __future__ import annotations

from functools import reduce
from typing import Dict, Iterable, Sequence

import numpy as np

from dpgm.algebra.ops import Op
from dpgm.base.domain import union
from dpgm.core.exceptions import InvalidArgument
from dpgm.core.registry import Variable
from dpgm.factor.log_table import LogTableFactor, as_log
from dpgm.factor.table_factor import TableFactor
from dpgm.tensor.dense_table import DenseTable


def _abs_difference(a, b) -> np.ndarray:
    return np.abs(np.subtract(a, b))


def _abs_difference_log(a, b) -> np.ndarray:
    with np.errstate(divide="ignore", invalid="ignore"):
        d = np.abs(np.log(a) - np.log(b))
    # both zero: identical
    return np.where(np.equal(a, b), 0.0, d)


def _distance(x: TableFactor, y: TableFactor, fn, agg: Op) -> float:
    if type(x) is not type(y):
        raise InvalidArgument(f"cannot compare {type(x).__name__} with {type(y).__name__}",
                              operation="distance")
    args = union(x.arguments, y.arguments)
    idx = args.index
    t = DenseTable.join_aggregate(x._prob_table(), y._prob_table(),
                                  [idx[v] for v in x.arg_seq], [idx[v] for v in y.arg_seq], (),
                                  fn, agg)
    return float(t.data)


def norm_1(x: TableFactor, y: TableFactor) -> float:
    """Sum of absolute differences."""
    return _distance(x, y, _abs_difference, Op.SUM)


def norm_inf(x: TableFactor, y: TableFactor) -> float:
    """Largest absolute difference."""
    return _distance(x, y, _abs_difference, Op.MAX)


def norm_1_log(x: TableFactor, y: TableFactor) -> float:
    return _distance(x, y, _abs_difference_log, Op.SUM)


def norm_inf_log(x: TableFactor, y: TableFactor) -> float:
    return _distance(x, y, _abs_difference_log, Op.MAX)


def weighted_update(f1: TableFactor, f2: TableFactor, a: float) -> TableFactor:
    """(1 - a) * f1 + a * f2, over the union of the arguments."""
    if type(f1) is not type(f2):
        raise InvalidArgument("weighted_update needs factors of the same kind", operation="weighted_update")
    if type(f1) is TableFactor:
        return f1.combine(f2, lambda x, y: (1.0 - a) * x + a * y)
    return f1 * (1.0 - a) + f2 * a


def pow(f: TableFactor, a: float) -> TableFactor:
    """f ** a, element-wise in value space."""
    if type(f) is TableFactor:
        return f.apply(lambda d: np.power(d, a))
    return f.apply(lambda d: d * a)


def arg_max(f: TableFactor) -> Dict[Variable, int]:
    return f.arg_max()


def arg_min(f: TableFactor) -> Dict[Variable, int]:
    return f.arg_min()


def elementwise_max(x: TableFactor, y: TableFactor) -> TableFactor:
    return x.combine(y, Op.MAX)


def elementwise_min(x: TableFactor, y: TableFactor) -> TableFactor:
    return x.combine(y, Op.MIN)


def combine_all(factors: Iterable[TableFactor], op=Op.PRODUCT) -> TableFactor:
    """Fold combine over a non-empty sequence of factors."""
    factors = list(factors)
    if not factors:
        raise InvalidArgument("combine_all needs at least one factor", operation="combine_all")
    return reduce(lambda acc, f: acc.combine_in(f, op), factors[1:], factors[0].copy())


def mixture(factors: Sequence[TableFactor], weights: Sequence[float]) -> TableFactor:
    """Weighted sum of factors; weights are normalized to sum to one."""
    if len(factors) != len(weights) or not factors:
        raise InvalidArgument(f"got {len(factors)} factors and {len(weights)} weights", operation="mixture")
    w = np.asarray(weights, dtype=np.float64)
    if np.any(w < 0) or not w.sum() > 0:
        raise InvalidArgument(f"mixture weights must be non-negative with a positive sum: {w.tolist()}",
                              operation="mixture")
    w = w / w.sum()
    return reduce(lambda acc, fw: acc.combine_in(fw[0] * float(fw[1]), Op.SUM),
                  zip(factors[1:], w[1:]), factors[0] * float(w[0]))


def unit_factor(args: Iterable[Variable], value: float = 1.0, like: type = TableFactor) -> TableFactor:
    """Constant factor over args holding ``value``, in the representation of ``like``."""
    f = TableFactor(args, value)
    return as_log(f) if issubclass(like, LogTableFactor) else f
