"""
dpgm/factor/table_factor.py

Table factors: a function of a set of discrete variables stored as a dense
table with one dimension per argument.

The argument order (``arg_seq``) fixes the dimension order of the table
and the linear order of ``values()`` / ``assignments()``: the first
argument varies fastest. Factors are value-like; every operation returns
a new factor except the ones documented as in-place (``combine_in``, the
augmented operators, ``normalize``, ``update``, ``subst_args``, ``set``).
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from dpgm.algebra.ops import BinaryOp, Op, as_binary, as_function
from dpgm.base.domain import Domain, difference, disjoint, includes, intersect, union
from dpgm.core.exceptions import InvalidArgument, NormalizationError, OutOfRange
from dpgm.core.log import get_logger
from dpgm.core.registry import Universe, Variable
from dpgm.tensor.dense_table import FREE, DenseTable

logger = get_logger(__name__)

Assignment = Mapping[Variable, int]


def _kl_terms(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """p * log(p / q), with 0 where p == 0 and +inf where only q == 0."""
    p, q = np.broadcast_arrays(np.asarray(p, dtype=np.float64), np.asarray(q, dtype=np.float64))
    out = np.zeros(p.shape, dtype=np.float64)
    pos = p > 0
    with np.errstate(divide="ignore"):
        out[pos] = p[pos] * (np.log(p[pos]) - np.log(q[pos]))
    return out


def _cross_entropy_terms(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """-p * log(q), with 0 where p == 0."""
    p, q = np.broadcast_arrays(np.asarray(p, dtype=np.float64), np.asarray(q, dtype=np.float64))
    out = np.zeros(p.shape, dtype=np.float64)
    pos = p > 0
    with np.errstate(divide="ignore"):
        out[pos] = -p[pos] * np.log(q[pos])
    return out


class TableFactor:
    """
    A dense table over an ordered set of finite variables.

    Attributes:
        table: DenseTable whose dimension i belongs to arg_seq[i]
    """

    def __init__(self, args: Iterable[Variable] = (), default: float = 0.0,
                 values: Optional[Sequence[float]] = None):
        seq = list(args)
        dom = Domain(seq)
        if len(dom) != len(seq):
            raise InvalidArgument("duplicate variables in factor arguments",
                                  operation=f"{type(self).__name__}", variables=seq)
        self._args = dom
        if values is None:
            self.table = DenseTable(dom.shape, default)
        else:
            self.table = DenseTable.from_values(dom.shape, values)

    @classmethod
    def _wrap(cls, args: Domain, table: DenseTable) -> "TableFactor":
        f = cls.__new__(cls)
        f._args = args
        f.table = table
        return f

    @classmethod
    def constant(cls, value: float) -> "TableFactor":
        """A factor with no arguments."""
        return cls((), value)

    @classmethod
    def from_array(cls, args: Iterable[Variable], arr) -> "TableFactor":
        """Build from an ndarray whose axis i belongs to args[i]."""
        f = cls(args)
        arr = np.asarray(arr, dtype=np.float64)
        if arr.shape != f._args.shape:
            raise InvalidArgument(f"array shape {arr.shape} does not match argument arities {f._args.shape}",
                                  operation=f"{cls.__name__}.from_array", variables=f._args)
        f.table = DenseTable.from_array(arr)
        return f

    def copy(self) -> "TableFactor":
        return self._wrap(self._args, self.table.copy())

    # Arguments
    @property
    def arguments(self) -> Domain:
        return self._args

    @property
    def arg_seq(self) -> Tuple[Variable, ...]:
        return self._args.arg_seq

    @property
    def var_index(self) -> Mapping[Variable, int]:
        return self._args.index

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.table.shape

    @property
    def size(self) -> int:
        return self.table.size

    @property
    def data(self) -> np.ndarray:
        return self.table.data

    def values(self) -> np.ndarray:
        """Stored values in linear order."""
        return self.table.values()

    def dim_map(self, variables: Iterable[Variable]) -> Tuple[int, ...]:
        """Positions of the given variables in this factor's table."""
        idx = self.var_index
        try:
            return tuple(idx[v] for v in variables)
        except KeyError as e:
            raise InvalidArgument(f"variable {e.args[0]} is not an argument of this factor",
                                  operation="TableFactor.dim_map", variables=self._args) from None

    def reorder(self, args: Iterable[Variable]) -> "TableFactor":
        """The same factor with its dimensions permuted into the given order."""
        dom = Domain(args)
        if dom != self._args:
            raise InvalidArgument("reorder needs a permutation of the arguments",
                                  operation="TableFactor.reorder", variables=dom.arg_seq)
        perm = self.dim_map(dom)
        return self._wrap(dom, DenseTable.from_array(np.transpose(self.table.data, axes=perm)))

    # Evaluation
    def _coords(self, key: tuple) -> Tuple[int, ...]:
        if len(key) == 1 and isinstance(key[0], Mapping):
            a = key[0]
            missing = [v for v in self.arg_seq if v not in a]
            if missing:
                raise InvalidArgument("assignment does not cover the factor's arguments",
                                      operation="TableFactor.evaluate", variables=missing)
            key = tuple(a[v] for v in self.arg_seq)
        elif len(key) == 1 and isinstance(key[0], (tuple, list)):
            key = tuple(key[0])
        if len(key) != len(self._args):
            raise InvalidArgument(f"expected {len(self._args)} indices, got {len(key)}",
                                  operation="TableFactor.evaluate", variables=self._args)
        coords = []
        for v, x in zip(self.arg_seq, key):
            x = int(x)
            if not 0 <= x < v.arity:
                raise OutOfRange(f"value {x} of variable {v} out of range [0, {v.arity})")
            coords.append(x)
        return tuple(coords)

    def __call__(self, *key) -> float:
        """
        Value at an assignment (a mapping covering the arguments) or at
        positional indices in argument order.
        """
        return self.v(*key)

    def v(self, *key) -> float:
        return float(self.table.data[self._coords(key)])

    def logv(self, *key) -> float:
        with np.errstate(divide="ignore"):
            return float(np.log(self.v(*key)))

    def set(self, key, value: float) -> None:
        """Store a value (in this factor's representation) at an assignment or index tuple."""
        self.table.data[self._coords((key,))] = value

    def assignment(self, linear: int) -> Dict[Variable, int]:
        """The assignment at a position of the linear order."""
        return dict(zip(self.arg_seq, self.table.index(linear)))

    def assignments(self) -> Iterator[Dict[Variable, int]]:
        for idx in self.table.indices():
            yield dict(zip(self.arg_seq, idx))

    # Representation hooks, overridden by the log-domain factor
    def _combine_fn(self, op) -> Callable:
        return as_function(op)

    def _collapse_op(self, op) -> BinaryOp:
        return as_binary(op)

    def _encode_scalar(self, value: float) -> float:
        return float(value)

    def _prob_table(self) -> DenseTable:
        return self.table

    def _check_peer(self, other: "TableFactor", operation: str) -> None:
        if type(other) is not type(self):
            raise InvalidArgument(f"cannot mix {type(self).__name__} and {type(other).__name__}",
                                  operation=operation)

    def _check_same_args(self, other: "TableFactor", operation: str) -> None:
        self._check_peer(other, operation)
        if self._args != other._args:
            diff = list(difference(self._args, other._args)) + list(difference(other._args, self._args))
            raise InvalidArgument("factors must have the same arguments", operation=operation, variables=diff)

    # Restriction
    def restrict(self, assignment: Assignment, restrict_vars: Optional[Iterable[Variable]] = None,
                 strict: bool = False) -> "TableFactor":
        """
        Fix the variables of ``assignment`` (limited to ``restrict_vars`` when
        given) and return a factor over the remaining arguments.

        With ``strict``, every argument among the restrictable variables
        must be assigned.
        """
        candidates = self._args if restrict_vars is None else intersect(self._args, restrict_vars)
        if strict:
            missing = [v for v in candidates if v not in assignment]
            if missing:
                raise InvalidArgument("strict restriction with unassigned variables",
                                      operation="TableFactor.restrict", variables=missing)
        fixed = [v for v in candidates if v in assignment]
        if not fixed:
            return self.copy()
        fixed_set = set(fixed)
        rmap = []
        for v in self.arg_seq:
            if v in fixed_set:
                x = int(assignment[v])
                if not 0 <= x < v.arity:
                    raise OutOfRange(f"value {x} of variable {v} out of range [0, {v.arity})")
                rmap.append(x)
            else:
                rmap.append(FREE)
        kept = Domain(v for v in self.arg_seq if v not in fixed_set)
        table = DenseTable.restrict(self.table, rmap, self.dim_map(kept))
        return self._wrap(kept, table)

    # Combination
    def combine(self, other: Union["TableFactor", float], op) -> "TableFactor":
        """Element-wise op over the union of both argument sets."""
        fn = self._combine_fn(op)
        if not isinstance(other, TableFactor):
            c = self._encode_scalar(other)
            return self._wrap(self._args, DenseTable.from_array(fn(self.table.data, c)))
        self._check_peer(other, "TableFactor.combine")
        args = union(self._args, other._args)
        idx = args.index
        table = DenseTable.join(self.table, other.table,
                                [idx[v] for v in self.arg_seq], [idx[v] for v in other.arg_seq],
                                fn, ndim=len(args))
        return self._wrap(args, table)

    def combine_in(self, other: Union["TableFactor", float], op) -> "TableFactor":
        """In-place combine; the table is reused when self covers other's arguments."""
        fn = self._combine_fn(op)
        if not isinstance(other, TableFactor):
            c = self._encode_scalar(other)
            self.table.transform(lambda d: fn(d, c))
            return self
        self._check_peer(other, "TableFactor.combine_in")
        if includes(self._args, other._args):
            self.table.join_with(other.table, self.dim_map(other.arg_seq), fn)
        else:
            result = self.combine(other, op)
            self._args, self.table = result._args, result.table
        return self

    def _rcombine(self, value: float, op) -> "TableFactor":
        fn = self._combine_fn(op)
        return self._wrap(self._args, DenseTable.from_array(fn(self._encode_scalar(value), self.table.data)))

    def __add__(self, other):
        return self.combine(other, Op.SUM)

    def __radd__(self, other):
        return self.combine(other, Op.SUM)

    def __sub__(self, other):
        return self.combine(other, Op.DIFFERENCE)

    def __rsub__(self, other):
        return self._rcombine(other, Op.DIFFERENCE)

    def __mul__(self, other):
        return self.combine(other, Op.PRODUCT)

    def __rmul__(self, other):
        return self.combine(other, Op.PRODUCT)

    def __truediv__(self, other):
        return self.combine(other, Op.DIVIDE)

    def __rtruediv__(self, other):
        return self._rcombine(other, Op.DIVIDE)

    def __and__(self, other):
        return self.combine(other, Op.AND)

    def __or__(self, other):
        return self.combine(other, Op.OR)

    def __iadd__(self, other):
        return self.combine_in(other, Op.SUM)

    def __isub__(self, other):
        return self.combine_in(other, Op.DIFFERENCE)

    def __imul__(self, other):
        return self.combine_in(other, Op.PRODUCT)

    def __itruediv__(self, other):
        return self.combine_in(other, Op.DIVIDE)

    def __iand__(self, other):
        return self.combine_in(other, Op.AND)

    def __ior__(self, other):
        return self.combine_in(other, Op.OR)

    def maximum_with(self, other) -> "TableFactor":
        """In place: element-wise maximum with other."""
        return self.combine_in(other, Op.MAX)

    def minimum_with(self, other) -> "TableFactor":
        """In place: element-wise minimum with other."""
        return self.combine_in(other, Op.MIN)

    # Collapse
    def collapse(self, op, retained: Optional[Iterable[Variable]] = None):
        """
        Eliminate every argument not in ``retained`` with op. Without a
        retained set the whole table is folded to a scalar.
        """
        bop = self._collapse_op(op)
        if retained is None:
            return self.table.accumulate(bop)
        kept = intersect(self._args, retained)
        if len(kept) == len(self._args):
            return self.copy()
        return self._wrap(kept, DenseTable.aggregate(self.table, self.dim_map(kept), bop))

    def marginal(self, retain: Optional[Iterable[Variable]] = None):
        return self.collapse(Op.SUM, retain)

    def maximum(self, retain: Optional[Iterable[Variable]] = None):
        return self.collapse(Op.MAX, retain)

    def minimum(self, retain: Optional[Iterable[Variable]] = None):
        return self.collapse(Op.MIN, retain)

    # Normalization
    def norm_constant(self) -> float:
        return float(self.collapse(Op.SUM))

    def is_normalizable(self) -> bool:
        z = self.norm_constant()
        return bool(np.isfinite(z) and z > 0)

    def normalize(self) -> "TableFactor":
        """Scale in place so the values sum to one."""
        z = self.norm_constant()
        if not (np.isfinite(z) and z > 0):
            raise NormalizationError(f"cannot normalize factor over {self._args}", total=z)
        self.table.transform(lambda d: d / z)
        return self

    def conditional(self, tail: Iterable[Variable]) -> "TableFactor":
        """P(head | tail) where head = arguments minus tail."""
        tail = Domain(tail)
        if not includes(self._args, tail):
            raise InvalidArgument("conditioning variables are not arguments of the factor",
                                  operation="TableFactor.conditional", variables=difference(tail, self._args))
        return self.combine(self.marginal(tail), Op.DIVIDE)

    # Element-wise updates
    def update(self, fn: Callable[[np.ndarray], np.ndarray]) -> "TableFactor":
        """Apply a vectorized functor to every stored value, in place."""
        self.table.transform(fn)
        return self

    def apply(self, fn: Callable[[np.ndarray], np.ndarray]) -> "TableFactor":
        """New factor with fn applied to every stored value."""
        return self.copy().update(fn)

    def subst_args(self, var_map: Mapping[Variable, Variable]) -> "TableFactor":
        """Rename arguments in place; the table is unchanged."""
        self._args = self._args.subst(var_map)
        return self

    # Sampling
    def sample(self, rng=None) -> Dict[Variable, int]:
        """
        Draw an assignment by inverse CDF over the linear order. The factor
        is assumed normalized; if round-off leaves the draw unmatched, every
        variable is set to its last value. ``rng`` is a seed, a numpy
        Generator, or any object with a uniform(low, high) method.
        """
        if not hasattr(rng, "uniform"):
            rng = np.random.default_rng(rng)
        probs = self._prob_table().values()
        r = rng.uniform(0.0, 1.0)
        i = int(np.searchsorted(np.cumsum(probs), r, side="right"))
        if i >= probs.size:
            logger.warning("sample: draw %.17g exceeds total mass %.17g of factor over %s; "
                           "returning last assignment", r, float(probs.sum()), self._args)
            return {v: v.arity - 1 for v in self.arg_seq}
        return self.assignment(i)

    # Information measures
    def _join_accumulate(self, other: "TableFactor", fn: Callable) -> float:
        t = DenseTable.join_aggregate(self._prob_table(), other._prob_table(),
                                      tuple(range(len(self._args))), self.dim_map(other.arg_seq), (),
                                      fn, Op.SUM)
        return float(t.data)

    def entropy(self, base: float = np.e) -> float:
        p = self._prob_table().values()
        p = p[p > 0]
        return float(-np.sum(p * np.log(p)) / np.log(base))

    def relative_entropy(self, q: "TableFactor") -> float:
        """KL(self || q); both factors must be over the same arguments."""
        self._check_same_args(q, "TableFactor.relative_entropy")
        return max(self._join_accumulate(q, _kl_terms), 0.0)

    def cross_entropy(self, q: "TableFactor") -> float:
        self._check_same_args(q, "TableFactor.cross_entropy")
        return self._join_accumulate(q, _cross_entropy_terms)

    def js_divergence(self, q: "TableFactor") -> float:
        self._check_same_args(q, "TableFactor.js_divergence")
        m = (self + q) * 0.5
        return 0.5 * (self.relative_entropy(m) + q.relative_entropy(m))

    def mutual_information(self, a: Iterable[Variable], b: Iterable[Variable]) -> float:
        """I(A; B) of the (normalized) distribution represented by this factor."""
        a, b = Domain(a), Domain(b)
        if not disjoint(a, b):
            raise InvalidArgument("variable sets must be disjoint",
                                  operation="TableFactor.mutual_information", variables=intersect(a, b))
        ab = union(a, b)
        if not includes(self._args, ab):
            raise InvalidArgument("variables are not arguments of the factor",
                                  operation="TableFactor.mutual_information", variables=difference(ab, self._args))
        joint = self.marginal(ab)
        independent = joint.marginal(a) * joint.marginal(b)
        return max(joint._join_accumulate(independent, _kl_terms), 0.0)

    def bp_msg_derivative_ub(self, x: Variable, y: Variable) -> float:
        """
        Mooij-Kappen upper bound on the derivative of a BP message from x to
        y through this factor: tanh(log(max ratio) / 4).
        """
        vi, wi = self.dim_map((x, y))
        t = self._prob_table().data
        indices = list(self.table.indices())
        result = 1.0
        for a_b_g in indices:
            for ap_bp_gp in indices:
                if a_b_g[vi] == ap_bp_gp[vi] or a_b_g[wi] == ap_bp_gp[wi]:
                    continue
                ap_b_g = list(a_b_g)
                ap_b_g[vi] = ap_bp_gp[vi]
                a_bp_gp = list(ap_bp_gp)
                a_bp_gp[vi] = a_b_g[vi]
                with np.errstate(divide="ignore", invalid="ignore"):
                    ratio = t[a_b_g] * t[ap_bp_gp] / (t[tuple(ap_b_g)] * t[tuple(a_bp_gp)])
                if ratio > result:
                    result = float(ratio)
        return float(np.tanh(np.log(result) * 0.25))

    # Unrolling
    def unroll(self, universe: Universe, name: Optional[str] = None) -> Tuple[Variable, "TableFactor"]:
        """
        Flatten into a factor over one new variable whose value encodes the
        arguments with the first argument as the most significant digit.
        """
        var = universe.new_variable(self.size, name)
        flat = self.table.data.ravel(order="C")
        return var, self._wrap(Domain([var]), DenseTable.from_array(flat))

    def roll_up(self, orig_args: Sequence[Variable]) -> "TableFactor":
        """Inverse of unroll for the original argument sequence."""
        seq = list(orig_args)
        dom = Domain(seq)
        if len(dom) != len(seq):
            raise InvalidArgument("duplicate variables", operation="TableFactor.roll_up", variables=seq)
        if len(self._args) != 1 or dom.num_assignments() != self.size:
            raise InvalidArgument(
                f"cannot roll a factor of {self.size} values over {self._args} up into {dom} "
                f"({dom.num_assignments()} assignments)", operation="TableFactor.roll_up", variables=dom)
        data = self.table.data.reshape(dom.shape, order="C")
        return self._wrap(dom, DenseTable.from_array(data))

    # Extremes
    def arg_max(self) -> Dict[Variable, int]:
        return self.assignment(int(np.argmax(self.values())))

    def arg_min(self) -> Dict[Variable, int]:
        return self.assignment(int(np.argmin(self.values())))

    # Comparison
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TableFactor):
            return NotImplemented
        if type(other) is not type(self) or self._args != other._args:
            return False
        if self.arg_seq == other.arg_seq:
            return self.table == other.table
        hit = DenseTable.join_find(self.table, other.table, tuple(range(len(self._args))),
                                   self.dim_map(other.arg_seq), np.not_equal)
        return hit is None

    __hash__ = None

    def __lt__(self, other: "TableFactor") -> bool:
        """Order by sorted argument ids, then lexicographically by values in canonical order."""
        if not isinstance(other, TableFactor):
            return NotImplemented
        ka = [v.order_key for v in sorted(self._args)]
        kb = [v.order_key for v in sorted(other._args)]
        if ka != kb:
            return ka < kb
        canon = self._args.sorted().index
        hit = DenseTable.join_find(self.table, other.table,
                                   [canon[v] for v in self.arg_seq], [canon[v] for v in other.arg_seq],
                                   np.not_equal)
        return hit is not None and hit[0] < hit[1]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._args}, values={self.values().tolist()})"
