"""
dpgm/factor/random.py

Random factor generators for tests and benchmarks.
"""

from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from dpgm.base.domain import Domain
from dpgm.core.exceptions import InvalidArgument
from dpgm.core.registry import Variable
from dpgm.factor.table_factor import TableFactor


def random_table_factor(args: Iterable[Variable], rng=None, lower: float = 0.0,
                        upper: float = 1.0) -> TableFactor:
    """Factor with values drawn uniformly from [lower, upper)."""
    if lower > upper:
        raise InvalidArgument(f"lower bound {lower} exceeds upper bound {upper}", operation="random_table_factor")
    rng = np.random.default_rng(rng)
    f = TableFactor(args)
    return f.update(lambda d: rng.uniform(lower, upper, size=d.shape))


def ising_factor(x: Variable, y: Optional[Variable] = None, rng=None,
                 lower: float = -1.0, upper: float = 1.0) -> TableFactor:
    """
    Ising potential with a coupling drawn uniformly from [lower, upper].

    Unary (y is None): f(1) = exp(theta), f(0) = exp(-theta).
    Pairwise: exp(theta) where x == y, exp(-theta) elsewhere.
    """
    if lower > upper:
        raise InvalidArgument(f"lower bound {lower} exceeds upper bound {upper}", operation="ising_factor")
    args = Domain([x] if y is None else [x, y])
    for v in args:
        if v.arity != 2:
            raise InvalidArgument("Ising factors need binary variables", operation="ising_factor", variables=(v,))
    theta = np.random.default_rng(rng).uniform(lower, upper)
    if y is None:
        return TableFactor.from_array([x], np.exp([-theta, theta]))
    agree = np.exp(theta)
    return TableFactor.from_array([x, y], [[agree, 1.0 / agree], [1.0 / agree, agree]])
