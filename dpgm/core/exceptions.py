"""
dpgm/core/exceptions.py

Error taxonomy shared by every dpgm module.

- InvalidArgument:    contract violations (mismatched argument sets,
                      assignments missing variables, bad shapes)
- OutOfRange:         index or value outside a variable's arity
- InvalidOperation:   operation not permitted in the current state
- NormalizationError: normalizing a table with a zero/negative/non-finite sum
- StructureError:     junction tree violates the running intersection property
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class DpgmError(Exception):
    """Base class for dpgm-specific exceptions."""


class InvalidArgument(DpgmError, ValueError):
    def __init__(self, message: str, *, operation: Optional[str] = None, variables: Optional[Iterable[Any]] = None):
        super().__init__(_format_context(message, operation, variables))
        self.operation = operation
        self.variables = tuple(variables) if variables is not None else ()


class OutOfRange(DpgmError, IndexError):
    pass


class InvalidOperation(DpgmError, RuntimeError):
    pass


class NormalizationError(InvalidOperation):
    def __init__(self, message: str, *, total: Optional[float] = None):
        detail = "" if total is None else f" (sum={total!r})"
        super().__init__(f"{message}{detail}")
        self.total = total


class StructureError(InvalidOperation):
    def __init__(self, message: str, *, variable: Any = None, path: Optional[Iterable[Any]] = None):
        super().__init__(message)
        self.variable = variable
        self.path = tuple(path) if path is not None else ()


def _format_context(message: str, operation: Optional[str], variables: Optional[Iterable[Any]]) -> str:
    parts = []
    if operation is not None:
        parts.append(f"in {operation}")
    if variables is not None:
        names = ", ".join(str(v) for v in variables)
        parts.append(f"variables [{names}]")
    if not parts:
        return message
    return f"{message} ({'; '.join(parts)})"
