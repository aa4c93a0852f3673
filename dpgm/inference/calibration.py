"""
dpgm/inference/calibration.py

Junction tree calibration.

Two message-passing schemes over a populated JunctionTree, both
parameterized by a semiring (combine, collapse):

  ShaferShenoy  Keeps clique potentials untouched and caches one message
                per directed edge. Changing a potential invalidates only the
                messages that flow away from it; recalibration recomputes
                just those.
  Hugin         Keeps working clique potentials that are updated in place
                and one separator potential per edge. Updating a working
                potential divides out the previous separator, so the
                semiring must have a division. Any change resets all working
                potentials from the stored originals.

Each tree component is calibrated from its own root: a collect pass
(leaves to root) followed by a distribute pass (root to leaves).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

import networkx as nx

from dpgm.algebra.semiring import Semiring, sum_product
from dpgm.base.domain import Domain
from dpgm.core.exceptions import InvalidArgument, InvalidOperation
from dpgm.core.log import get_logger
from dpgm.core.registry import Variable
from dpgm.factor.operations import unit_factor
from dpgm.factor.table_factor import TableFactor
from dpgm.model.junction_tree import JunctionTree, TreeState
from dpgm.model.markov_network import PairwiseMarkovNetwork

logger = get_logger(__name__)

Edge = Tuple[int, int]


class _Calibration:
    """State and queries shared by both engines."""

    def __init__(self, tree_or_factors: Union[JunctionTree, PairwiseMarkovNetwork, Iterable[TableFactor]],
                 semiring: Optional[Semiring] = None, strategy=None):
        self.semiring = sum_product() if semiring is None else semiring
        if isinstance(tree_or_factors, PairwiseMarkovNetwork):
            tree_or_factors = tree_or_factors.factors()
        if isinstance(tree_or_factors, JunctionTree):
            self.tree = tree_or_factors.copy()
        else:
            factors = list(tree_or_factors)
            self.tree = JunctionTree.from_elimination([f.arguments for f in factors], strategy)
            self.tree.initialize_potentials(factors, self.semiring)
        self._calibrated = False
        self._beliefs: Dict[int, TableFactor] = {}

    def _require_populated(self) -> None:
        if self.tree.state is not TreeState.POPULATED:
            raise InvalidOperation(f"junction tree is {self.tree.state.value}; every clique needs a potential")

    def _roots(self, root: Optional[int]) -> List[int]:
        roots = []
        for comp in sorted(self.tree.components(), key=min):
            roots.append(root if root is not None and root in comp else min(comp))
        return roots

    def _unit(self, args: Iterable[Variable], like: TableFactor) -> TableFactor:
        return unit_factor(args, self.semiring.one, type(like))

    def _cover(self, v: int, f: TableFactor) -> TableFactor:
        """f extended to the whole clique of v."""
        clique = self.tree.clique(v)
        if f.arguments == clique:
            return f
        return self._unit(clique, f).combine_in(f, self.semiring.combine)

    def _collapse_to(self, f: TableFactor, retain: Iterable[Variable]) -> TableFactor:
        return f.collapse(self.semiring.collapse, Domain(retain))

    def _potential(self, v: int) -> TableFactor:
        """The stored potential of v, without copying."""
        return self.tree.g.nodes[v]["potential"]

    # Public interface
    @property
    def calibrated(self) -> bool:
        return self._calibrated

    def calibrate(self, root: Optional[int] = None) -> "_Calibration":
        raise NotImplementedError

    def _clique_belief(self, v: int) -> TableFactor:
        raise NotImplementedError

    def clique_beliefs(self) -> Dict[int, TableFactor]:
        if not self._calibrated:
            self.calibrate()
        for v in self.tree.vertices():
            if v not in self._beliefs:
                self._beliefs[v] = self._cover(v, self._clique_belief(v))
        return dict(self._beliefs)

    def belief(self, target: Union[int, Iterable[Variable]]) -> TableFactor:
        """
        Belief of a vertex (by id) or of a set of variables (collapsed from
        the smallest clique that covers it).
        """
        beliefs = self.clique_beliefs()
        if isinstance(target, int):
            self.tree._require_vertex(target)
            return beliefs[target].copy()
        domain = Domain(target)
        v = self.tree.find_clique_cover(domain)
        if v is None:
            raise InvalidArgument("no clique covers the requested variables",
                                  operation=f"{type(self).__name__}.belief", variables=domain)
        return self._collapse_to(beliefs[v], domain)

    def normalize(self) -> "_Calibration":
        """Normalize every clique belief in place."""
        for v in self.clique_beliefs():
            self._beliefs[v].normalize()
        return self

    def norm_constant(self) -> float:
        """Total mass of the model (product over tree components)."""
        beliefs = self.clique_beliefs()
        z = 1.0
        for comp in self.tree.components():
            z *= beliefs[min(comp)].norm_constant()
        return z

    def set_potential(self, v: int, factor: TableFactor) -> None:
        raise NotImplementedError

    def condition(self, assignment: Mapping[Variable, int]) -> "_Calibration":
        raise NotImplementedError


class ShaferShenoy(_Calibration):
    """Shafer-Shenoy calibration with per-message dirty tracking."""

    def __init__(self, tree_or_factors, semiring: Optional[Semiring] = None, strategy=None):
        super().__init__(tree_or_factors, semiring, strategy)
        self._messages: Dict[Edge, TableFactor] = {}
        self._valid: Set[Edge] = set()

    @property
    def messages(self) -> Dict[Edge, TableFactor]:
        """Copies of the current message for each directed edge (u, v), over their separator."""
        return {e: f.copy() for e, f in self._messages.items()}

    def _message(self, u: int, v: int) -> TableFactor:
        f = self._cover(u, self._potential(u)).copy()
        for w in self.tree.neighbors(u):
            if w != v:
                f.combine_in(self._messages[(w, u)], self.semiring.combine)
        return self._collapse_to(f, self.tree.separator(u, v))

    def _pass(self, u: int, v: int) -> bool:
        if (u, v) in self._valid:
            return False
        self._messages[(u, v)] = self._message(u, v)
        self._valid.add((u, v))
        return True

    def calibrate(self, root: Optional[int] = None) -> "ShaferShenoy":
        self._require_populated()
        computed = 0
        for r in self._roots(root):
            rt = self.tree.root_tree(r)
            for v in rt.postorder:
                p = rt.parent[v]
                if p is not None:
                    computed += self._pass(v, p)
            for v in rt.preorder:
                for c in rt.children[v]:
                    computed += self._pass(v, c)
        self._calibrated = True
        logger.debug("ShaferShenoy.calibrate: recomputed %d of %d messages",
                     computed, 2 * len(self.tree.edges()))
        return self

    def _clique_belief(self, v: int) -> TableFactor:
        f = self._potential(v).copy()
        for w in self.tree.neighbors(v):
            f.combine_in(self._messages[(w, v)], self.semiring.combine)
        return f

    def set_potential(self, v: int, factor: TableFactor) -> None:
        """Replace the potential of v; messages flowing away from v become stale."""
        self.tree.set_potential(v, factor)
        stale = list(nx.bfs_edges(self.tree.g, v))
        self._valid.difference_update(stale)
        self._beliefs.clear()
        self._calibrated = False
        logger.debug("ShaferShenoy.set_potential(%d): invalidated %d messages", v, len(stale))

    def condition(self, assignment: Mapping[Variable, int]) -> "ShaferShenoy":
        """Restrict every potential to the assignment; all messages become stale."""
        self.tree.restrict(assignment)
        self._messages.clear()
        self._valid.clear()
        self._beliefs.clear()
        self._calibrated = False
        logger.debug("ShaferShenoy.condition on %d variables", len(assignment))
        return self


class Hugin(_Calibration):
    """Hugin calibration with in-place working potentials."""

    def __init__(self, tree_or_factors, semiring: Optional[Semiring] = None, strategy=None):
        super().__init__(tree_or_factors, semiring, strategy)
        if not self.semiring.supports_division():
            raise InvalidArgument(f"Hugin calibration needs a semiring with division; {self.semiring.name} has none",
                                  operation="Hugin")
        self._working: Dict[int, TableFactor] = {}
        self._separators: Dict[Edge, TableFactor] = {}
        self._dirty = True

    @property
    def messages(self) -> Dict[Edge, TableFactor]:
        """Copies of the separator potentials, keyed by (min, max) vertex pair."""
        return {e: f.copy() for e, f in self._separators.items()}

    def _reset(self) -> None:
        self._working = {v: self._cover(v, self._potential(v)).copy() for v in self.tree.vertices()}
        self._separators = {}
        for u, v in self.tree.edges():
            key = (min(u, v), max(u, v))
            self._separators[key] = self._unit(self.tree.separator(u, v), self._working[u])
        self._dirty = False

    def _absorb(self, u: int, v: int) -> None:
        """Pass the marginal of u's working potential into v."""
        key = (min(u, v), max(u, v))
        new = self._collapse_to(self._working[u], self.tree.separator(u, v))
        update = new.combine(self._separators[key], self.semiring.divide)
        self._working[v].combine_in(update, self.semiring.combine)
        self._separators[key] = new

    def calibrate(self, root: Optional[int] = None) -> "Hugin":
        self._require_populated()
        if self._calibrated and not self._dirty:
            return self
        self._reset()
        for r in self._roots(root):
            rt = self.tree.root_tree(r)
            for v in rt.postorder:
                p = rt.parent[v]
                if p is not None:
                    self._absorb(v, p)
            for v in rt.preorder:
                for c in rt.children[v]:
                    self._absorb(v, c)
        self._beliefs.clear()
        self._calibrated = True
        logger.debug("Hugin.calibrate: %d cliques, %d separators", len(self._working), len(self._separators))
        return self

    def _clique_belief(self, v: int) -> TableFactor:
        return self._working[v].copy()

    def normalize(self) -> "Hugin":
        """Normalize clique beliefs and separator potentials in place."""
        super().normalize()
        for f in self._separators.values():
            f.normalize()
        return self

    def set_potential(self, v: int, factor: TableFactor) -> None:
        self.tree.set_potential(v, factor)
        self._dirty = True
        self._calibrated = False
        self._beliefs.clear()
        logger.debug("Hugin.set_potential(%d): working potentials will be reset", v)

    def condition(self, assignment: Mapping[Variable, int]) -> "Hugin":
        self.tree.restrict(assignment)
        self._dirty = True
        self._calibrated = False
        self._beliefs.clear()
        logger.debug("Hugin.condition on %d variables", len(assignment))
        return self
