"""
dpgm/base/domain.py

Domains: finite sets of variables.

A Domain has set semantics (equality, hashing, subset tests ignore order),
but also keeps the order in which variables were supplied (``arg_seq``) and
the inverse position map (``index``). Table factors use that order as their
dimension order, so it is caller-controlled and never re-sorted here.

Set operations preserve the left operand's order:
  - union(A, B):     A's variables, then B's variables not in A
  - intersect(A, B): A's variables that are also in B
  - difference(A, B): A's variables not in B
"""

from __future__ import annotations

from collections.abc import Set
from typing import Dict, Iterable, Iterator, Mapping, Tuple

import numpy as np

from dpgm.core.exceptions import InvalidArgument
from dpgm.core.registry import Variable


class Domain(Set):
    """Immutable ordered set of variables."""

    __slots__ = ("_seq", "_index", "_cached_hash")

    def __init__(self, variables: Iterable[Variable] = ()):
        seq = []
        index: Dict[Variable, int] = {}
        for v in variables:
            if v not in index:
                index[v] = len(seq)
                seq.append(v)
        self._seq: Tuple[Variable, ...] = tuple(seq)
        self._index = index
        self._cached_hash = None

    @classmethod
    def _from_iterable(cls, it: Iterable[Variable]) -> "Domain":
        return cls(it)

    # Set protocol
    def __contains__(self, v: object) -> bool:
        return v in self._index

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._seq)

    def __len__(self) -> int:
        return len(self._seq)

    def __hash__(self) -> int:
        if self._cached_hash is None:
            self._cached_hash = self._hash()
        return self._cached_hash

    def __and__(self, other: Iterable[Variable]) -> "Domain":
        return intersect(self, other)

    def __sub__(self, other: Iterable[Variable]) -> "Domain":
        return difference(self, other)

    def __or__(self, other: Iterable[Variable]) -> "Domain":
        return union(self, other)

    # Ordered view
    @property
    def arg_seq(self) -> Tuple[Variable, ...]:
        return self._seq

    @property
    def index(self) -> Mapping[Variable, int]:
        return self._index

    def position(self, v: Variable) -> int:
        try:
            return self._index[v]
        except KeyError:
            raise InvalidArgument(f"variable {v} is not in domain {self}", operation="Domain.position") from None

    def sorted(self) -> "Domain":
        """The same set in canonical (id) order."""
        return Domain(sorted(self._seq))

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(v.arity for v in self._seq)

    def num_assignments(self) -> int:
        return int(np.prod(self.shape, dtype=np.int64)) if self._seq else 1

    def includes(self, other: Iterable[Variable]) -> bool:
        return includes(self, other)

    def disjoint(self, other: Iterable[Variable]) -> bool:
        return disjoint(self, other)

    def partition(self, other: Iterable[Variable]) -> Tuple["Domain", "Domain"]:
        """Split into (self ∩ other, self \\ other)."""
        return intersect(self, other), difference(self, other)

    def subst(self, var_map: Mapping[Variable, Variable]) -> "Domain":
        """
        Substitute variables. The map must be 1:1 and arity-preserving;
        variables missing from the map are kept.
        """
        out = []
        seen = set()
        for v in self._seq:
            w = var_map.get(v, v)
            if w.arity != v.arity:
                raise InvalidArgument(
                    f"cannot substitute {v} (arity {v.arity}) with {w} (arity {w.arity})",
                    operation="Domain.subst", variables=(v, w))
            if w in seen:
                raise InvalidArgument(f"substitution is not 1:1 at {w}", operation="Domain.subst", variables=(w,))
            seen.add(w)
            out.append(w)
        return Domain(out)

    def __repr__(self) -> str:
        return "{" + ",".join(str(v) for v in self._seq) + "}"


def make_domain(*variables: Variable) -> Domain:
    return Domain(variables)


def _as_domain(x: Iterable[Variable]) -> Domain:
    return x if isinstance(x, Domain) else Domain(x)


def union(a: Iterable[Variable], b: Iterable[Variable]) -> Domain:
    a = _as_domain(a)
    if not a:
        return _as_domain(b)
    return Domain(list(a) + [v for v in b if v not in a])


def intersect(a: Iterable[Variable], b: Iterable[Variable]) -> Domain:
    a = _as_domain(a)
    b = _as_domain(b)
    return Domain(v for v in a if v in b)


def difference(a: Iterable[Variable], b: Iterable[Variable]) -> Domain:
    a = _as_domain(a)
    b = _as_domain(b)
    return Domain(v for v in a if v not in b)


def includes(a: Iterable[Variable], b: Iterable[Variable]) -> bool:
    """True iff b ⊆ a."""
    a = _as_domain(a)
    return all(v in a for v in b)


def disjoint(a: Iterable[Variable], b: Iterable[Variable]) -> bool:
    a = _as_domain(a)
    return not any(v in a for v in b)
