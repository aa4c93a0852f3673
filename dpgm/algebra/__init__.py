from dpgm.algebra.ops import Op, BinaryOp, LOG_SUM, as_binary, safe_divide
from dpgm.algebra.semiring import (
    Semiring,
    sum_product,
    max_product,
    min_sum,
    boolean,
    get_semiring,
)

__all__ = [
    "Op",
    "BinaryOp",
    "LOG_SUM",
    "as_binary",
    "safe_divide",
    "Semiring",
    "sum_product",
    "max_product",
    "min_sum",
    "boolean",
    "get_semiring",
]
