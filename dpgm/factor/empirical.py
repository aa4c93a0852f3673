"""
dpgm/factor/empirical.py

Factors estimated from data, and the likelihood of data under a factor.

Records are either an iterable of mappings {variable: value} or a 2-D
integer array with one row per record and ``columns`` naming the variable
of each column.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from dpgm.core.exceptions import InvalidArgument, OutOfRange
from dpgm.core.log import get_logger
from dpgm.core.registry import Variable
from dpgm.factor.table_factor import TableFactor
from dpgm.tensor.dense_table import DenseTable

logger = get_logger(__name__)

Records = Union[Iterable[Mapping[Variable, int]], np.ndarray]


def _record_matrix(args: Sequence[Variable], records: Records,
                   columns: Optional[Sequence[Variable]]) -> np.ndarray:
    """Rows of values for ``args``, in argument order."""
    if isinstance(records, np.ndarray):
        if columns is None:
            raise InvalidArgument("array records need a column variable list", operation="empirical")
        if records.ndim != 2 or records.shape[1] != len(columns):
            raise InvalidArgument(f"record array of shape {records.shape} does not match {len(columns)} columns",
                                  operation="empirical")
        col = {v: j for j, v in enumerate(columns)}
        missing = [v for v in args if v not in col]
        if missing:
            raise InvalidArgument("record columns do not cover the factor arguments",
                                  operation="empirical", variables=missing)
        m = records[:, [col[v] for v in args]].astype(np.int64)
    else:
        rows = []
        for r in records:
            missing = [v for v in args if v not in r]
            if missing:
                raise InvalidArgument("record does not assign every factor argument",
                                      operation="empirical", variables=missing)
            rows.append([int(r[v]) for v in args])
        m = np.asarray(rows, dtype=np.int64).reshape(len(rows), len(args))
    for j, v in enumerate(args):
        bad = (m[:, j] < 0) | (m[:, j] >= v.arity)
        if np.any(bad):
            raise OutOfRange(f"record value {int(m[bad, j][0])} of variable {v} out of range [0, {v.arity})")
    return m


def _weights(n: int, weights: Optional[Sequence[float]]) -> np.ndarray:
    if weights is None:
        return np.ones(n, dtype=np.float64)
    w = np.asarray(weights, dtype=np.float64)
    if w.shape != (n,):
        raise InvalidArgument(f"expected {n} record weights, got {w.shape}", operation="empirical")
    return w


def empirical_factor(args: Sequence[Variable], records: Records, weights: Optional[Sequence[float]] = None,
                     smoothing: float = 0.0, columns: Optional[Sequence[Variable]] = None) -> TableFactor:
    """
    Maximum-likelihood distribution over args from (weighted) counts, with
    ``smoothing`` added to every cell before normalizing.
    """
    f = TableFactor(args, 0.0)
    m = _record_matrix(f.arg_seq, records, columns)
    w = _weights(m.shape[0], weights)
    counts = np.full(f.shape, float(smoothing), dtype=np.float64)
    if m.shape[1]:
        np.add.at(counts, tuple(m[:, j] for j in range(m.shape[1])), w)
    else:
        counts = counts + w.sum()
    f.table = DenseTable.from_array(counts, copy=False)
    logger.debug("empirical_factor over %s: %d records, total weight %g", f.arguments, m.shape[0], w.sum())
    return f.normalize()


def log_likelihood(factor: TableFactor, records: Records, weights: Optional[Sequence[float]] = None,
                   columns: Optional[Sequence[Variable]] = None) -> float:
    """Weighted sum of log factor values at the records."""
    m = _record_matrix(factor.arg_seq, records, columns)
    w = _weights(m.shape[0], weights)
    if m.shape[0] == 0:
        return 0.0
    idx = tuple(m[:, j] for j in range(m.shape[1]))
    values = factor._prob_table().data[idx] if factor.arg_seq else np.full(m.shape[0], factor.v())
    with np.errstate(divide="ignore"):
        return float(np.sum(w * np.log(values)))
