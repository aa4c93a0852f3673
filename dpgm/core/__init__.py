from dpgm.core.exceptions import (
    DpgmError,
    InvalidArgument,
    OutOfRange,
    InvalidOperation,
    NormalizationError,
    StructureError,
)
from dpgm.core.registry import Universe, Variable, TimedProcess, variables_at, CURRENT, NEXT

__all__ = [
    "DpgmError",
    "InvalidArgument",
    "OutOfRange",
    "InvalidOperation",
    "NormalizationError",
    "StructureError",
    "Universe",
    "Variable",
    "TimedProcess",
    "variables_at",
    "CURRENT",
    "NEXT",
]
