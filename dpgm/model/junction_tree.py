"""
dpgm/model/junction_tree.py

Junction trees over finite variables.

A JunctionTree is a networkx forest whose vertices are integer ids with
node data

    clique:    Domain of the vertex
    potential: TableFactor over a subset of the clique, or None

and whose edges carry

    separator: intersection of the endpoint cliques
    potential: separator factor, or None

Builders (from_elimination, from_elimination_sequence, from_cliques)
validate the running intersection property (RIP) before returning: for
every variable, the vertices whose clique contains it induce a connected
subtree. Incremental edits do not revalidate unless asked (add_edge with
check=True, or validate()).
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

import networkx as nx

from dpgm.algebra.semiring import Semiring, sum_product
from dpgm.base.domain import Domain, difference, includes, intersect, union
from dpgm.core.exceptions import InvalidArgument, InvalidOperation, StructureError
from dpgm.core.log import get_logger
from dpgm.core.registry import Variable
from dpgm.factor.operations import unit_factor
from dpgm.factor.table_factor import TableFactor
from dpgm.graph.elimination import elimination_sequence, interaction_graph

logger = get_logger(__name__)

Edge = Tuple[int, int]


class TreeState(Enum):
    UNBUILT = "unbuilt"          # no vertices
    STRUCTURAL = "structural"    # cliques only, some potentials missing
    POPULATED = "populated"      # every clique has a potential


@dataclass
class RootedTree:
    """
    A tree component oriented away from ``root``.

    Attributes:
        root: Root vertex
        parent: parent[v] (None for the root)
        children: children[v]
        preorder: Vertices with every parent before its children
    """
    root: int
    parent: Dict[int, Optional[int]]
    children: Dict[int, List[int]]
    preorder: List[int]

    @property
    def postorder(self) -> List[int]:
        """Vertices with every child before its parent."""
        return list(reversed(self.preorder))


def root_tree(tree: nx.Graph, root: int) -> RootedTree:
    """Orient the component of ``tree`` containing ``root``."""
    parent: Dict[int, Optional[int]] = {root: None}
    children: Dict[int, List[int]] = {root: []}
    preorder: List[int] = []

    stack = [root]
    while stack:
        u = stack.pop()
        preorder.append(u)
        for v in sorted(tree.neighbors(u)):
            if v in parent:
                continue
            parent[v] = u
            children[u].append(v)
            children[v] = []
            stack.append(v)

    return RootedTree(root=root, parent=parent, children=children, preorder=preorder)


class JunctionTree:
    """Forest of cliques satisfying the running intersection property."""

    def __init__(self):
        self.g = nx.Graph()
        self._next_id = 0
        # variable -> vertices whose clique contains it
        self._occurrences: Dict[Variable, Set[int]] = {}

    # Bookkeeping
    def _index(self, v: int, clique: Domain) -> None:
        for x in clique:
            self._occurrences.setdefault(x, set()).add(v)

    def _unindex(self, v: int, clique: Domain) -> None:
        for x in clique:
            s = self._occurrences[x]
            s.discard(v)
            if not s:
                del self._occurrences[x]

    def _set_clique(self, v: int, clique: Domain) -> None:
        self._unindex(v, self.g.nodes[v]["clique"])
        self.g.nodes[v]["clique"] = clique
        self._index(v, clique)

    def _require_vertex(self, v: int) -> None:
        if v not in self.g:
            raise InvalidArgument(f"no vertex {v} in junction tree", operation="JunctionTree")

    def _require_edge(self, u: int, v: int) -> None:
        if not self.g.has_edge(u, v):
            raise InvalidArgument(f"no edge ({u}, {v}) in junction tree", operation="JunctionTree")

    def _link(self, u: int, v: int, potential: Optional[TableFactor] = None) -> None:
        sep = intersect(self.clique(u), self.clique(v))
        self.g.add_edge(u, v, separator=sep, potential=potential)

    def _refresh_separators(self, v: int) -> None:
        for w in self.g.neighbors(v):
            data = self.g.edges[v, w]
            sep = intersect(self.clique(v), self.clique(w))
            if sep != data["separator"]:
                data["separator"] = sep
                data["potential"] = None

    # Structural edits
    def add_vertex(self, clique: Iterable[Variable], potential: Optional[TableFactor] = None) -> int:
        clique = Domain(clique)
        v = self._next_id
        self._next_id += 1
        self.g.add_node(v, clique=clique, potential=None)
        self._index(v, clique)
        if potential is not None:
            self.set_potential(v, potential)
        return v

    def remove_vertex(self, v: int, cascade: bool = True) -> None:
        """Remove a vertex; with cascade=False it must have no incident edges."""
        self._require_vertex(v)
        if self.g.degree(v) and not cascade:
            raise InvalidOperation(f"vertex {v} still has {self.g.degree(v)} incident edges")
        self._unindex(v, self.clique(v))
        self.g.remove_node(v)

    def add_edge(self, u: int, v: int, check: bool = False) -> None:
        """
        Connect two vertices of different components. With ``check``, the
        variables shared by the two components must all lie in the new
        separator.
        """
        self._require_vertex(u)
        self._require_vertex(v)
        if u == v or self.g.has_edge(u, v) or nx.has_path(self.g, u, v):
            raise InvalidArgument(f"edge ({u}, {v}) would create a cycle", operation="JunctionTree.add_edge")
        sep = intersect(self.clique(u), self.clique(v))
        if check:
            left = set().union(*(self.clique(w) for w in nx.node_connected_component(self.g, u)))
            right = set().union(*(self.clique(w) for w in nx.node_connected_component(self.g, v)))
            bad = sorted(x for x in left & right if x not in sep)
            if bad:
                raise InvalidArgument(f"edge ({u}, {v}) violates the running intersection property",
                                      operation="JunctionTree.add_edge", variables=bad)
        self.g.add_edge(u, v, separator=sep, potential=None)

    def remove_edge(self, u: int, v: int) -> None:
        self._require_edge(u, v)
        self.g.remove_edge(u, v)

    def merge(self, u: int, v: int) -> int:
        """
        Contract edge (u, v) into u. The clique becomes the union, v's other
        neighbours are re-attached to u, and the potentials are multiplied.
        """
        self._require_edge(u, v)
        pu, pv = self.g.nodes[u]["potential"], self.g.nodes[v]["potential"]
        cv = self.clique(v)
        moved = [(w, self.g.edges[v, w]["potential"]) for w in self.g.neighbors(v) if w != u]
        self._unindex(v, cv)
        self.g.remove_node(v)
        self._set_clique(u, union(self.clique(u), cv))
        for w, pot in moved:
            self._link(u, w, pot)
        self._refresh_separators(u)
        if pu is not None and pv is not None:
            self.g.nodes[u]["potential"] = pu * pv
        elif pv is not None:
            self.g.nodes[u]["potential"] = pv
        logger.debug("merged vertex %d into %d: clique %s", v, u, self.clique(u))
        return u

    def split(self, v: int, clique: Iterable[Variable], move: Iterable[int] = (),
              semiring: Optional[Semiring] = None) -> int:
        """
        Add a vertex with ``clique`` (a subset of v's clique) attached to v,
        and move the listed neighbours of v over to it. Each moved
        neighbour's separator must lie inside the new clique. When v has a
        potential, the new vertex and separator get the semiring's unit in
        the same representation, so a populated tree stays populated.
        """
        self._require_vertex(v)
        clique = Domain(clique)
        cv = self.clique(v)
        if not includes(cv, clique):
            raise InvalidArgument(f"split clique is not a subset of clique {cv} of vertex {v}",
                                  operation="JunctionTree.split", variables=difference(clique, cv))
        move = list(move)
        for w in move:
            if not self.g.has_edge(v, w):
                raise InvalidArgument(f"vertex {w} is not a neighbour of {v}", operation="JunctionTree.split")
            sep = self.separator(v, w)
            if not includes(clique, sep):
                raise InvalidArgument(f"separator of ({v}, {w}) is not covered by the split clique",
                                      operation="JunctionTree.split", variables=difference(sep, clique))
        n = self.add_vertex(clique)
        for w in move:
            pot = self.g.edges[v, w]["potential"]
            self.g.remove_edge(v, w)
            self._link(n, w, pot)
        pv = self.g.nodes[v]["potential"]
        if pv is None:
            self._link(v, n)
        else:
            one = (sum_product() if semiring is None else semiring).one
            self.g.nodes[n]["potential"] = unit_factor(clique, one, type(pv))
            self._link(v, n, unit_factor(self.clique(n), one, type(pv)))
        logger.debug("split vertex %d: new vertex %d with clique %s", v, n, clique)
        return n

    def restrict(self, assignment: Mapping[Variable, int]) -> "JunctionTree":
        """Condition in place: drop assigned variables from every clique and separator."""
        fixed = Domain(assignment.keys())
        for v, data in self.g.nodes(data=True):
            self._set_clique(v, difference(data["clique"], fixed))
            if data["potential"] is not None:
                data["potential"] = data["potential"].restrict(assignment)
        for u, v, data in self.g.edges(data=True):
            data["separator"] = difference(data["separator"], fixed)
            if data["potential"] is not None:
                data["potential"] = data["potential"].restrict(assignment)
        return self

    def copy(self) -> "JunctionTree":
        t = JunctionTree()
        t._next_id = self._next_id
        for v, data in self.g.nodes(data=True):
            pot = data["potential"]
            t.g.add_node(v, clique=data["clique"], potential=None if pot is None else pot.copy())
            t._index(v, data["clique"])
        for u, v, data in self.g.edges(data=True):
            pot = data["potential"]
            t.g.add_edge(u, v, separator=data["separator"], potential=None if pot is None else pot.copy())
        return t

    # Builders
    @classmethod
    def from_elimination(cls, domains: Iterable[Iterable[Variable]], strategy=None) -> "JunctionTree":
        """Triangulate the interaction graph of ``domains`` and build its clique tree."""
        graph = interaction_graph(Domain(d) for d in domains)
        return cls.from_elimination_sequence(elimination_sequence(graph, strategy))

    @classmethod
    def from_elimination_sequence(cls, sequence: Iterable[Tuple[Variable, Iterable[Variable]]]) -> "JunctionTree":
        """
        Build from (variable, neighbours at elimination) pairs. Each step
        yields the clique {variable} + neighbours, attached to the clique of
        its earliest-eliminated neighbour; cliques contained in a neighbour
        are then absorbed.
        """
        seq = [(v, list(nbrs)) for v, nbrs in sequence]
        position = {v: i for i, (v, _) in enumerate(seq)}
        tree = cls()
        ids = [tree.add_vertex([v] + sorted(nbrs)) for v, nbrs in seq]
        for i, (v, nbrs) in enumerate(seq):
            later = [position[u] for u in nbrs if u in position]
            if later:
                tree._link(ids[i], ids[min(later)])
        tree._absorb_redundant()
        tree._connect_components()
        logger.debug("junction tree from elimination: %d cliques, width %d",
                     len(tree), tree.width())
        return tree.validate()

    @classmethod
    def from_cliques(cls, cliques: Iterable[Iterable[Variable]]) -> "JunctionTree":
        """Maximum spanning tree of the clique graph weighted by separator size."""
        tree = cls()
        ids = [tree.add_vertex(c) for c in cliques]
        weighted = nx.Graph()
        weighted.add_nodes_from(ids)
        for u, v in itertools.combinations(ids, 2):
            sep = intersect(tree.clique(u), tree.clique(v))
            if sep:
                weighted.add_edge(u, v, weight=len(sep))
        for u, v in nx.maximum_spanning_tree(weighted, weight="weight").edges():
            tree._link(u, v)
        tree._connect_components()
        logger.debug("junction tree from %d cliques", len(tree))
        return tree.validate()

    def _absorb_redundant(self) -> None:
        changed = True
        while changed:
            changed = False
            for u, v in list(self.g.edges()):
                if includes(self.clique(u), self.clique(v)):
                    self.merge(u, v)
                elif includes(self.clique(v), self.clique(u)):
                    self.merge(v, u)
                else:
                    continue
                changed = True
                break

    def _connect_components(self) -> None:
        comps = sorted((min(c) for c in nx.connected_components(self.g)))
        for a, b in zip(comps, comps[1:]):
            self.g.add_edge(a, b, separator=Domain(), potential=None)

    # Queries
    def __len__(self) -> int:
        return self.g.number_of_nodes()

    def __contains__(self, v: object) -> bool:
        return v in self.g

    def vertices(self) -> List[int]:
        return list(self.g.nodes)

    def edges(self) -> List[Edge]:
        return list(self.g.edges)

    def clique(self, v: int) -> Domain:
        self._require_vertex(v)
        return self.g.nodes[v]["clique"]

    def separator(self, u: int, v: int) -> Domain:
        self._require_edge(u, v)
        return self.g.edges[u, v]["separator"]

    def neighbors(self, v: int) -> List[int]:
        self._require_vertex(v)
        return list(self.g.neighbors(v))

    def arguments(self) -> Domain:
        """Union of all cliques."""
        return Domain(sorted(self._occurrences))

    def width(self) -> int:
        """Size of the largest clique minus one."""
        return max((len(d["clique"]) for _, d in self.g.nodes(data=True)), default=0) - 1

    def find_clique_cover(self, domain: Iterable[Variable]) -> Optional[int]:
        """Smallest clique containing domain, or None."""
        domain = list(domain)
        if not domain:
            candidates = set(self.g.nodes)
        else:
            if any(x not in self._occurrences for x in domain):
                return None
            candidates = set.intersection(*(self._occurrences[x] for x in domain))
        if not candidates:
            return None
        return min(candidates, key=lambda v: (len(self.clique(v)), v))

    def find_separator_cover(self, domain: Iterable[Variable]) -> Optional[Edge]:
        """Smallest separator containing domain, or None."""
        domain = Domain(domain)
        best = None
        for u, v, data in self.g.edges(data=True):
            if includes(data["separator"], domain):
                key = (len(data["separator"]), min(u, v), max(u, v))
                if best is None or key < best[0]:
                    best = (key, (u, v))
        return None if best is None else best[1]

    def path(self, u: int, v: int) -> List[int]:
        self._require_vertex(u)
        self._require_vertex(v)
        try:
            return nx.shortest_path(self.g, source=u, target=v)
        except nx.NetworkXNoPath:
            raise InvalidArgument(f"vertices {u} and {v} are not connected", operation="JunctionTree.path") from None

    def root_tree(self, root: Optional[int] = None) -> RootedTree:
        if root is None:
            if not len(self):
                raise InvalidOperation("cannot root an empty junction tree")
            root = min(self.g.nodes)
        self._require_vertex(root)
        return root_tree(self.g, root)

    def components(self) -> List[Set[int]]:
        return [set(c) for c in nx.connected_components(self.g)]

    # Validation
    def _rip_violation(self) -> Optional[Tuple[Variable, List[int]]]:
        for x in sorted(self._occurrences):
            occ = self._occurrences[x]
            sub = self.g.subgraph(occ)
            if nx.is_connected(sub):
                continue
            parts = sorted((sorted(c) for c in nx.connected_components(sub)), key=lambda c: c[0])
            a, b = parts[0][0], parts[1][0]
            path = nx.shortest_path(self.g, a, b) if nx.has_path(self.g, a, b) else [a, b]
            return x, path
        return None

    def has_running_intersection(self) -> bool:
        if len(self) and not nx.is_forest(self.g):
            return False
        return self._rip_violation() is None

    def validate(self) -> "JunctionTree":
        """Raise StructureError unless the graph is a forest with the RIP."""
        if len(self) and not nx.is_forest(self.g):
            cycle = [u for u, _ in nx.find_cycle(self.g)]
            raise StructureError(f"junction tree has a cycle through {cycle}", path=cycle)
        bad = self._rip_violation()
        if bad is not None:
            x, path = bad
            raise StructureError(
                f"variable {x} violates the running intersection property along {path}",
                variable=x, path=path)
        return self

    # Potentials
    @property
    def state(self) -> TreeState:
        if not len(self):
            return TreeState.UNBUILT
        if all(d["potential"] is not None for _, d in self.g.nodes(data=True)):
            return TreeState.POPULATED
        return TreeState.STRUCTURAL

    def potential(self, v: int) -> Optional[TableFactor]:
        """A copy of the potential of v; edits go through set_potential."""
        self._require_vertex(v)
        pot = self.g.nodes[v]["potential"]
        return None if pot is None else pot.copy()

    def set_potential(self, v: int, factor: TableFactor) -> None:
        """Store a copy of factor as the potential of v; its arguments must lie in the clique."""
        self._require_vertex(v)
        if not includes(self.clique(v), factor.arguments):
            raise InvalidArgument(f"potential does not fit in clique {self.clique(v)} of vertex {v}",
                                  operation="JunctionTree.set_potential",
                                  variables=difference(factor.arguments, self.clique(v)))
        self.g.nodes[v]["potential"] = factor.copy()

    def separator_potential(self, u: int, v: int) -> Optional[TableFactor]:
        self._require_edge(u, v)
        pot = self.g.edges[u, v]["potential"]
        return None if pot is None else pot.copy()

    def set_separator_potential(self, u: int, v: int, factor: TableFactor) -> None:
        self._require_edge(u, v)
        if not includes(self.separator(u, v), factor.arguments):
            raise InvalidArgument(f"potential does not fit in separator of ({u}, {v})",
                                  operation="JunctionTree.set_separator_potential",
                                  variables=difference(factor.arguments, self.separator(u, v)))
        self.g.edges[u, v]["potential"] = factor.copy()

    def initialize_potentials(self, factors: Iterable[TableFactor],
                              semiring: Optional[Semiring] = None) -> "JunctionTree":
        """
        Reset every clique and separator potential to the semiring's unit and
        combine each factor into the smallest clique that covers it.
        """
        semiring = sum_product() if semiring is None else semiring
        factors = list(factors)
        like = type(factors[0]) if factors else TableFactor
        for v, data in self.g.nodes(data=True):
            data["potential"] = unit_factor(data["clique"], semiring.one, like)
        for u, v, data in self.g.edges(data=True):
            data["potential"] = unit_factor(data["separator"], semiring.one, like)
        for f in factors:
            v = self.find_clique_cover(f.arguments)
            if v is None:
                raise InvalidArgument("no clique covers the factor's arguments",
                                      operation="JunctionTree.initialize_potentials", variables=f.arguments)
            self.g.nodes[v]["potential"].combine_in(f, semiring.combine)
        logger.debug("initialized %d clique potentials from %d factors", len(self), len(factors))
        return self

    def __repr__(self) -> str:
        cliques = ", ".join(f"{v}:{d['clique']}" for v, d in self.g.nodes(data=True))
        return f"JunctionTree({cliques})"
