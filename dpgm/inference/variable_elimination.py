"""
dpgm/inference/variable_elimination.py

Bucket elimination over a semiring.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from dpgm.algebra.semiring import Semiring, sum_product
from dpgm.base.domain import Domain, difference, union
from dpgm.core.exceptions import InvalidArgument
from dpgm.core.log import get_logger
from dpgm.core.registry import Variable
from dpgm.factor.operations import combine_all
from dpgm.factor.table_factor import TableFactor
from dpgm.graph.elimination import elimination_sequence, interaction_graph

logger = get_logger(__name__)


def variable_elimination(factors: Iterable[TableFactor], retain: Iterable[Variable] = (),
                         semiring: Optional[Semiring] = None, strategy=None) -> TableFactor:
    """
    Combine all factors and collapse every variable outside ``retain``.

    Variables are eliminated one at a time in the order chosen by
    ``strategy``: the factors mentioning the variable are combined and the
    variable is collapsed out of the product.

    Returns:
        Factor over the retained variables that appear in some factor, in
        the order given by ``retain``.
    """
    semiring = sum_product() if semiring is None else semiring
    factors: List[TableFactor] = list(factors)
    if not factors:
        raise InvalidArgument("variable elimination needs at least one factor", operation="variable_elimination")
    retain = Domain(retain)
    args = Domain()
    for f in factors:
        args = union(args, f.arguments)

    order = elimination_sequence(interaction_graph(f.arguments for f in factors), strategy,
                                 variables=difference(args, retain))
    for v, _ in order:
        bucket = [f for f in factors if v in f.arguments]
        factors = [f for f in factors if v not in f.arguments]
        product = combine_all(bucket, semiring.combine)
        factors.append(product.collapse(semiring.collapse, difference(product.arguments, [v])))

    result = combine_all(factors, semiring.combine)
    kept = Domain(v for v in retain if v in result.arguments)
    result = result.collapse(semiring.collapse, kept)
    logger.debug("variable_elimination: eliminated %d variables, result over %s", len(order), kept)
    return result.reorder(kept)


def partition_function(factors: Iterable[TableFactor], semiring: Optional[Semiring] = None) -> float:
    """Collapse of the product of all factors to a scalar."""
    semiring = sum_product() if semiring is None else semiring
    f = variable_elimination(factors, (), semiring)
    return float(f.collapse(semiring.collapse))
