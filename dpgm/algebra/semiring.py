"""
dpgm/algebra/semiring.py

Semirings for inference: a (combine, collapse) operator pair.

  sum_product  (×, +)    marginals / partition function
  max_product  (×, max)  max-marginals (MAP)
  min_sum      (+, min)  energies
  boolean      (and, or) satisfiability / support

Hugin calibration needs to undo a combine, so a semiring may also carry
the inverse of its combine operator (``divide``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from dpgm.algebra.ops import Op


@dataclass(frozen=True)
class Semiring:
    """
    Attributes:
        name: Identifier for the semiring
        combine: Operator used to join potentials
        collapse: Operator used to eliminate variables
        divide: Inverse of combine, if any
    """
    name: str
    combine: Op
    collapse: Op
    divide: Optional[Op] = None

    @property
    def one(self) -> float:
        return self.combine.identity

    @property
    def zero(self) -> float:
        return self.collapse.identity

    def supports_division(self) -> bool:
        return self.divide is not None


def sum_product() -> Semiring:
    return Semiring(name="SUM_PRODUCT", combine=Op.PRODUCT, collapse=Op.SUM, divide=Op.DIVIDE)


def max_product() -> Semiring:
    return Semiring(name="MAX_PRODUCT", combine=Op.PRODUCT, collapse=Op.MAX, divide=Op.DIVIDE)


def min_sum() -> Semiring:
    return Semiring(name="MIN_SUM", combine=Op.SUM, collapse=Op.MIN, divide=Op.DIFFERENCE)


def boolean() -> Semiring:
    return Semiring(name="BOOLEAN", combine=Op.AND, collapse=Op.OR)


SEMIRINGS = {
    "sum_product": sum_product,
    "max_product": max_product,
    "min_sum": min_sum,
    "boolean": boolean,
}


def get_semiring(name: str) -> Semiring:
    try:
        return SEMIRINGS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown semiring: {name!r}; expected one of {sorted(SEMIRINGS)}") from None
