"""
dpgm/core/registry.py

Variable registry ("universe").

A Universe owns every Variable it creates. Variables are lightweight,
immutable handles compared by identity and ordered by (universe, id), so
they can be hashed, sorted, and used as table axis labels. They are never
destroyed individually; dropping the universe drops them all.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from dpgm.core.exceptions import InvalidArgument

_UNIVERSE_SERIAL = itertools.count()

# Special time steps of a TimedProcess
CURRENT = "t"
NEXT = "t+1"


@dataclass(frozen=True, eq=False)
class Variable:
    """
    A discrete variable with a fixed arity.

    Attributes:
        id: Index of the variable within its universe
        arity: Number of values, >= 1
        name: Human-readable label
        process: Owning TimedProcess, if created by one
        time: Time step within the process
    """
    id: int
    arity: int
    name: str
    universe_serial: int = field(repr=False)
    process: Optional["TimedProcess"] = field(default=None, repr=False)
    time: Optional[Hashable] = field(default=None, repr=False)

    @property
    def size(self) -> int:
        return self.arity

    @property
    def order_key(self) -> Tuple[int, int]:
        return (self.universe_serial, self.id)

    def __lt__(self, other: "Variable") -> bool:
        return self.order_key < other.order_key

    def __le__(self, other: "Variable") -> bool:
        return self.order_key <= other.order_key

    def __gt__(self, other: "Variable") -> bool:
        return self.order_key > other.order_key

    def __ge__(self, other: "Variable") -> bool:
        return self.order_key >= other.order_key

    def __str__(self) -> str:
        return self.name


class Universe:
    """
    Arena that allocates variables and resolves them by id or name.
    """

    def __init__(self):
        self.serial: int = next(_UNIVERSE_SERIAL)
        self._vars: List[Variable] = []
        self._by_name: Dict[str, Variable] = {}
        self._processes: Dict[str, TimedProcess] = {}

    def new_variable(self, arity: int, name: Optional[str] = None, *,
                     process: Optional["TimedProcess"] = None, time: Optional[Hashable] = None) -> Variable:
        """Allocate a new variable with the given arity."""
        if int(arity) < 1:
            raise InvalidArgument(f"variable arity must be >= 1, got {arity}", operation="Universe.new_variable")
        vid = len(self._vars)
        if name is None:
            name = f"v{vid}"
        if name in self._by_name:
            raise InvalidArgument(f"duplicate variable name {name!r}", operation="Universe.new_variable")
        var = Variable(id=vid, arity=int(arity), name=name, universe_serial=self.serial,
                       process=process, time=time)
        self._vars.append(var)
        self._by_name[name] = var
        return var

    def new_variables(self, n: int, arity: int, prefix: str = "v") -> List[Variable]:
        """Allocate n variables of the same arity named prefix0..prefix{n-1}."""
        start = len(self._vars)
        return [self.new_variable(arity, f"{prefix}{start + i}") for i in range(n)]

    def new_timed_process(self, name: str, arity: int) -> "TimedProcess":
        if name in self._processes:
            raise InvalidArgument(f"duplicate process name {name!r}", operation="Universe.new_timed_process")
        proc = TimedProcess(name, arity, self)
        self._processes[name] = proc
        return proc

    def variable(self, key: Union[int, str]) -> Variable:
        """Look up a variable by id or name."""
        if isinstance(key, str):
            try:
                return self._by_name[key]
            except KeyError:
                raise InvalidArgument(f"unknown variable name {key!r}", operation="Universe.variable") from None
        if not 0 <= int(key) < len(self._vars):
            raise InvalidArgument(f"unknown variable id {key!r}", operation="Universe.variable")
        return self._vars[int(key)]

    def owns(self, var: Variable) -> bool:
        return var.universe_serial == self.serial and var.id < len(self._vars) and self._vars[var.id] is var

    def __len__(self) -> int:
        return len(self._vars)

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._vars)

    def __contains__(self, key: Any) -> bool:
        if isinstance(key, Variable):
            return self.owns(key)
        return key in self._by_name

    def __repr__(self) -> str:
        return f"Universe(vars={len(self._vars)}, processes={len(self._processes)})"


class TimedProcess:
    """
    A discrete process over time steps.

    Per-step variables are created by the owning universe the first time a
    step is requested and memoized in ``_instances``; later requests for the
    same step return the same variable.
    """

    def __init__(self, name: str, arity: int, universe: Universe):
        self.name = name
        self.arity = int(arity)
        self.universe = universe
        self._instances: Dict[Hashable, Variable] = {}

    def at(self, t: Hashable) -> Variable:
        """Return the variable for time step t, creating it on first use."""
        var = self._instances.get(t)
        if var is None:
            var = self.universe.new_variable(self.arity, f"{self.name}@{t}", process=self, time=t)
            self._instances[t] = var
        return var

    def at_times(self, times: Iterable[Hashable]) -> List[Variable]:
        return [self.at(t) for t in times]

    def current(self) -> Variable:
        return self.at(CURRENT)

    def next(self) -> Variable:
        return self.at(NEXT)

    def steps(self) -> Tuple[Hashable, ...]:
        """Time steps instantiated so far, in creation order."""
        return tuple(self._instances.keys())

    def __repr__(self) -> str:
        return f"TimedProcess({self.name!r}, arity={self.arity}, steps={len(self._instances)})"


def variables_at(processes: Sequence[TimedProcess], t: Hashable) -> List[Variable]:
    """The variables of each process at time step t."""
    return [p.at(t) for p in processes]
