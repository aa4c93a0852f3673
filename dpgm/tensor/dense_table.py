"""
dpgm/tensor/dense_table.py

Dense N-dimensional tables.

A DenseTable wraps an ndarray whose axis i is table dimension i. Operations
that relate two tables are expressed with *dimension maps*:

  - join:      dim_map[i] = output dimension of the operand's dimension i
  - aggregate: dim_map[j] = source dimension kept as output dimension j
  - restrict:  restrict_map[i] = FREE or a fixed coordinate of source dim i,
               dim_map[j] = source dimension that becomes output dimension j

Linear order (flat value buffers, ``values()``, ``indices()``, ``index``)
is mixed-radix with dimension 0 varying fastest.
"""

from __future__ import annotations

import itertools
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from dpgm.algebra.ops import as_binary, as_function
from dpgm.core.config import settings
from dpgm.core.exceptions import InvalidArgument, OutOfRange

Shape = Tuple[int, ...]
DimMap = Sequence[int]

# Marker for a dimension left free by restrict()
FREE = None


def _check_shape(shape: Sequence[int]) -> Shape:
    shape = tuple(int(s) for s in shape)
    for i, s in enumerate(shape):
        if s <= 0:
            raise InvalidArgument(f"table dimension {i} has size {s}; sizes must be positive",
                                  operation="DenseTable")
    return shape


def _union_shape(operands: Sequence[Tuple[Shape, DimMap, str]], ndim: Optional[int] = None) -> Shape:
    """Output shape implied by several (shape, dim_map) operands."""
    sizes = {}
    for shape, dim_map, who in operands:
        if len(dim_map) != len(shape):
            raise InvalidArgument(
                f"dimension map of {who} has {len(dim_map)} entries but {who} has {len(shape)} dimensions",
                operation="DenseTable.join")
        if len(set(dim_map)) != len(dim_map):
            raise InvalidArgument(f"dimension map of {who} has duplicates: {tuple(dim_map)}",
                                  operation="DenseTable.join")
        for i, d in enumerate(dim_map):
            d = int(d)
            if d < 0:
                raise InvalidArgument(f"dimension map of {who} has negative entry {d}", operation="DenseTable.join")
            prev = sizes.setdefault(d, shape[i])
            if prev != shape[i]:
                raise InvalidArgument(
                    f"size mismatch on output dimension {d}: {who} dimension {i} has size {shape[i]}, "
                    f"expected {prev}", operation="DenseTable.join")
    n = (max(sizes) + 1 if sizes else 0) if ndim is None else ndim
    missing = [d for d in range(n) if d not in sizes]
    if missing or any(d >= n for d in sizes):
        raise InvalidArgument(f"output dimensions {missing} are not covered by any operand",
                              operation="DenseTable.join")
    return tuple(sizes[d] for d in range(n))


def _aligned(arr: np.ndarray, dim_map: DimMap, out_shape: Shape, who: str) -> np.ndarray:
    """
    View of arr with axes moved to their output positions and singleton
    axes inserted for output dimensions arr does not have.
    """
    for i, d in enumerate(dim_map):
        if out_shape[d] != arr.shape[i]:
            raise InvalidArgument(
                f"{who} dimension {i} has size {arr.shape[i]} but output dimension {d} has size {out_shape[d]}",
                operation="DenseTable.join")
    if arr.ndim == 0:
        return arr.reshape((1,) * len(out_shape))
    perm = sorted(range(arr.ndim), key=lambda i: dim_map[i])
    if perm != list(range(arr.ndim)):
        arr = np.transpose(arr, axes=perm)
    present = set(dim_map)
    reshape = tuple(out_shape[d] if d in present else 1 for d in range(len(out_shape)))
    return arr.reshape(reshape)


class DenseTable:
    """
    A dense table of float64 values.

    Attributes:
        data: ndarray with one axis per table dimension
    """

    __slots__ = ("data",)

    def __init__(self, shape: Sequence[int] = (), default: float = 0.0):
        self.data = np.full(_check_shape(shape), default, dtype=np.float64)

    @classmethod
    def from_values(cls, shape: Sequence[int], values: Sequence[float]) -> "DenseTable":
        """Build a table from values listed in linear order (dimension 0 fastest)."""
        shape = _check_shape(shape)
        flat = np.asarray(values, dtype=np.float64).ravel()
        expected = int(np.prod(shape, dtype=np.int64))
        if flat.size != expected:
            raise InvalidArgument(f"expected {expected} values for shape {shape}, got {flat.size}",
                                  operation="DenseTable.from_values")
        t = cls.__new__(cls)
        t.data = np.array(flat.reshape(shape, order="F"), dtype=np.float64, order="C")
        return t

    @classmethod
    def from_array(cls, arr: np.ndarray, copy: bool = True) -> "DenseTable":
        arr = np.asarray(arr, dtype=np.float64)
        _check_shape(arr.shape)
        t = cls.__new__(cls)
        t.data = arr.copy() if copy else arr
        return t

    def copy(self) -> "DenseTable":
        return DenseTable.from_array(self.data, copy=True)

    # Geometry
    @property
    def shape(self) -> Shape:
        return self.data.shape

    @property
    def ndim(self) -> int:
        return self.data.ndim

    @property
    def size(self) -> int:
        return int(self.data.size)

    # Element access
    def _check_index(self, index: Sequence[int]) -> Tuple[int, ...]:
        index = tuple(int(i) for i in index)
        if len(index) != self.ndim:
            raise OutOfRange(f"index {index} has {len(index)} coordinates; table has {self.ndim} dimensions")
        for d, (i, s) in enumerate(zip(index, self.shape)):
            if not 0 <= i < s:
                raise OutOfRange(f"coordinate {i} out of range [0, {s}) in dimension {d}")
        return index

    def __getitem__(self, index: Sequence[int]) -> float:
        if settings.bounds_check:
            index = self._check_index(index)
        return float(self.data[tuple(index)])

    def __setitem__(self, index: Sequence[int], value: float) -> None:
        if settings.bounds_check:
            index = self._check_index(index)
        self.data[tuple(index)] = value

    def linear(self, index: Sequence[int]) -> int:
        """Linear offset of a multi-index."""
        if not self.ndim:
            return 0
        return int(np.ravel_multi_index(self._check_index(index), self.shape, order="F"))

    def index(self, linear: int) -> Tuple[int, ...]:
        """Multi-index of a linear offset."""
        if not 0 <= int(linear) < self.size:
            raise OutOfRange(f"linear index {linear} out of range [0, {self.size})")
        if not self.ndim:
            return ()
        return tuple(int(i) for i in np.unravel_index(int(linear), self.shape, order="F"))

    def indices(self) -> Iterator[Tuple[int, ...]]:
        """All multi-indices in linear order."""
        for rev in itertools.product(*[range(s) for s in reversed(self.shape)]):
            yield tuple(reversed(rev))

    def values(self) -> np.ndarray:
        """Flat copy of the values in linear order."""
        return self.data.ravel(order="F").copy()

    def __iter__(self) -> Iterator[float]:
        return iter(self.values().tolist())

    def __len__(self) -> int:
        return self.size

    # Sequential operations
    def fill(self, value: float) -> "DenseTable":
        self.data.fill(value)
        return self

    def transform(self, fn: Callable[[np.ndarray], np.ndarray]) -> "DenseTable":
        """Replace every element x by fn(x) (fn is applied to the whole array)."""
        out = np.asarray(fn(self.data), dtype=np.float64)
        if out.shape != self.shape:
            out = np.broadcast_to(out, self.shape)
        self.data = np.array(out, dtype=np.float64)
        return self

    def accumulate(self, op, initial: Optional[float] = None) -> float:
        """Fold op over every element, starting from initial."""
        op = as_binary(op)
        return float(op.reduce(self.data, tuple(range(self.ndim)), initial))

    # Table algorithms
    @staticmethod
    def join(a: "DenseTable", b: "DenseTable", dim_a: DimMap, dim_b: DimMap, op,
             ndim: Optional[int] = None) -> "DenseTable":
        """
        out[i] = op(a[i mapped by dim_a], b[i mapped by dim_b]) over the
        union of both operands' dimensions.
        """
        op = as_function(op)
        out_shape = _union_shape([(a.shape, dim_a, "left operand"), (b.shape, dim_b, "right operand")], ndim)
        x = _aligned(a.data, dim_a, out_shape, "left operand")
        y = _aligned(b.data, dim_b, out_shape, "right operand")
        out = np.asarray(op(x, y), dtype=np.float64)
        return DenseTable.from_array(np.broadcast_to(out, out_shape), copy=True)

    def join_with(self, other: "DenseTable", dim_map: DimMap, op) -> "DenseTable":
        """In-place join; self's dimensions must include all of other's."""
        op = as_function(op)
        _union_shape([(self.shape, tuple(range(self.ndim)), "self"), (other.shape, dim_map, "operand")], self.ndim)
        y = _aligned(other.data, dim_map, self.shape, "operand")
        self.data = np.array(np.broadcast_to(op(self.data, y), self.shape), dtype=np.float64)
        return self

    @staticmethod
    def aggregate(source: "DenseTable", dim_map: DimMap, op, initial: Optional[float] = None) -> "DenseTable":
        """
        Reduce every source dimension not listed in dim_map with op, starting
        from initial. Output dimension j is source dimension dim_map[j].
        """
        op = as_binary(op)
        keep = [int(d) for d in dim_map]
        if len(set(keep)) != len(keep) or any(not 0 <= d < source.ndim for d in keep):
            raise InvalidArgument(f"invalid aggregate dimension map {tuple(dim_map)} for {source.ndim} dimensions",
                                  operation="DenseTable.aggregate")
        axes = tuple(d for d in range(source.ndim) if d not in set(keep))
        reduced = op.reduce(source.data, axes, initial)
        remaining = [d for d in range(source.ndim) if d in set(keep)]
        perm = [remaining.index(d) for d in keep]
        if perm != list(range(len(perm))):
            reduced = np.transpose(reduced, axes=perm)
        return DenseTable.from_array(reduced, copy=True)

    @staticmethod
    def restrict(source: "DenseTable", restrict_map: Sequence[Optional[int]], dim_map: DimMap) -> "DenseTable":
        """
        Fix the source dimensions whose restrict_map entry is a coordinate;
        the remaining (FREE) dimensions become output dimensions in dim_map
        order.
        """
        if len(restrict_map) != source.ndim:
            raise InvalidArgument(f"restrict map has {len(restrict_map)} entries for {source.ndim} dimensions",
                                  operation="DenseTable.restrict")
        sel: List[object] = []
        free: List[int] = []
        for d, r in enumerate(restrict_map):
            if r is FREE:
                sel.append(slice(None))
                free.append(d)
            else:
                r = int(r)
                if not 0 <= r < source.shape[d]:
                    raise OutOfRange(f"restricted value {r} out of range [0, {source.shape[d]}) in dimension {d}")
                sel.append(r)
        if sorted(int(d) for d in dim_map) != free:
            raise InvalidArgument(f"dimension map {tuple(dim_map)} does not match free dimensions {tuple(free)}",
                                  operation="DenseTable.restrict")
        sub = source.data[tuple(sel)]
        perm = [free.index(int(d)) for d in dim_map]
        if perm != list(range(len(perm))):
            sub = np.transpose(sub, axes=perm)
        return DenseTable.from_array(sub, copy=True)

    @staticmethod
    def join_aggregate(a: "DenseTable", b: "DenseTable", dim_a: DimMap, dim_b: DimMap, out_dim_map: DimMap,
                       join_op, agg_op, initial: Optional[float] = None) -> "DenseTable":
        """
        aggregate(join(a, b), out_dim_map, agg_op, initial) without building
        the joined table: the union is processed one slice of its leading
        dimension at a time.
        """
        join_op = as_function(join_op)
        agg_op = as_binary(agg_op)
        init = agg_op.identity if initial is None else initial
        union = _union_shape([(a.shape, dim_a, "left operand"), (b.shape, dim_b, "right operand")])
        keep = [int(d) for d in out_dim_map]
        if len(set(keep)) != len(keep) or any(not 0 <= d < len(union) for d in keep):
            raise InvalidArgument(f"invalid output dimension map {tuple(out_dim_map)}",
                                  operation="DenseTable.join_aggregate")
        x = _aligned(a.data, dim_a, union, "left operand")
        y = _aligned(b.data, dim_b, union, "right operand")
        if not union:
            return DenseTable.from_array(agg_op.reduce(join_op(x, y), (), init))

        kept = set(keep)
        axes = tuple(d - 1 for d in range(1, len(union)) if d not in kept)
        acc = None
        parts = []
        for k in range(union[0]):
            xs = x[min(k, x.shape[0] - 1)]
            ys = y[min(k, y.shape[0] - 1)]
            joined = np.broadcast_to(join_op(xs, ys), union[1:])
            partial = agg_op.reduce(joined, axes, agg_op.identity)
            if 0 in kept:
                parts.append(agg_op.combine_partials(init, partial))
            else:
                acc = agg_op.combine_partials(init if acc is None else acc, partial)
        result = np.stack(parts, axis=0) if 0 in kept else acc

        remaining = sorted(kept)
        perm = [remaining.index(d) for d in keep]
        if perm != list(range(len(perm))):
            result = np.transpose(result, axes=perm)
        return DenseTable.from_array(result, copy=True)

    @staticmethod
    def join_find(a: "DenseTable", b: "DenseTable", dim_a: DimMap, dim_b: DimMap,
                  predicate: Callable[[np.ndarray, np.ndarray], np.ndarray]) -> Optional[Tuple[float, float]]:
        """
        First pair (a-value, b-value), in linear order of the union, for which
        the vectorized predicate holds; None if there is none.
        """
        union = _union_shape([(a.shape, dim_a, "left operand"), (b.shape, dim_b, "right operand")])
        x = np.broadcast_to(_aligned(a.data, dim_a, union, "left operand"), union)
        y = np.broadcast_to(_aligned(b.data, dim_b, union, "right operand"), union)
        mask = np.broadcast_to(np.asarray(predicate(x, y), dtype=bool), union)
        hits = np.flatnonzero(mask.ravel(order="F"))
        if hits.size == 0:
            return None
        i = int(hits[0])
        return float(x.ravel(order="F")[i]), float(y.ravel(order="F")[i])

    # Comparison
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DenseTable):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self.data, other.data))

    __hash__ = None

    def __repr__(self) -> str:
        return f"DenseTable(shape={self.shape}, values={self.values().tolist()})"
