"""
dpgm/graph/elimination.py

Interaction graphs and greedy elimination orderings.

A strategy assigns each vertex a priority in the current (partially
eliminated) graph; the vertex with the lowest priority is eliminated next,
ties going to the smaller variable id. Eliminating a vertex connects its
neighbours pairwise (fill-in) and removes it. After each step only the
vertices reported by ``strategy.updated`` are re-prioritized.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Hashable, Iterable, List, Optional, Set, Tuple

import networkx as nx

from dpgm.core.exceptions import InvalidArgument
from dpgm.core.log import get_logger

logger = get_logger(__name__)


def interaction_graph(domains: Iterable[Iterable[Hashable]]) -> nx.Graph:
    """Graph with an edge between every two variables that share a domain."""
    g = nx.Graph()
    for dom in domains:
        dom = list(dom)
        g.add_nodes_from(dom)
        g.add_edges_from(itertools.combinations(dom, 2))
    return g


def fill_in(v: Hashable, g: nx.Graph) -> int:
    """Number of edges eliminating v would add."""
    nbrs = list(g.neighbors(v))
    return sum(1 for a, b in itertools.combinations(nbrs, 2) if not g.has_edge(a, b))


class MinDegree:
    """Eliminate the vertex with the fewest neighbours."""

    def priority(self, v: Hashable, g: nx.Graph) -> Any:
        return g.degree(v)

    def updated(self, neighbors: Set[Hashable], g: nx.Graph) -> Set[Hashable]:
        return set(neighbors)


class MinFill:
    """Eliminate the vertex whose elimination adds the fewest edges."""

    def priority(self, v: Hashable, g: nx.Graph) -> Any:
        return fill_in(v, g)

    def updated(self, neighbors: Set[Hashable], g: nx.Graph) -> Set[Hashable]:
        out = set(neighbors)
        for u in neighbors:
            out.update(g.neighbors(u))
        return out


@dataclass
class Constrained:
    """
    Lexicographic priority: ``priority_fn(v, g)`` first, then the secondary
    strategy. Use it to force some variables to be eliminated before others.
    """
    priority_fn: Callable[[Hashable, nx.Graph], Any]
    secondary: Any = field(default_factory=MinDegree)

    def priority(self, v: Hashable, g: nx.Graph) -> Any:
        return (self.priority_fn(v, g), self.secondary.priority(v, g))

    def updated(self, neighbors: Set[Hashable], g: nx.Graph) -> Set[Hashable]:
        return self.secondary.updated(neighbors, g)


def _tie(v: Hashable) -> Any:
    return getattr(v, "order_key", v)


def elimination_sequence(graph: nx.Graph, strategy=None,
                         variables: Optional[Iterable[Hashable]] = None
                         ) -> List[Tuple[Hashable, FrozenSet[Hashable]]]:
    """
    Greedy elimination order.

    Args:
        graph: Interaction graph (not modified)
        strategy: MinDegree (default), MinFill or Constrained
        variables: Vertices to eliminate; all vertices if None

    Returns:
        [(vertex, neighbours at the time of its elimination), ...]
    """
    strategy = MinDegree() if strategy is None else strategy
    g = graph.copy()
    todo = set(g.nodes) if variables is None else set(variables)
    unknown = [v for v in todo if v not in g]
    if unknown:
        raise InvalidArgument("cannot eliminate vertices missing from the graph",
                              operation="elimination_sequence", variables=unknown)

    counter = itertools.count()
    current = {}
    heap = []
    for v in todo:
        p = strategy.priority(v, g)
        current[v] = p
        heap.append((p, _tie(v), next(counter), v))
    heapq.heapify(heap)

    order: List[Tuple[Hashable, FrozenSet[Hashable]]] = []
    while heap:
        p, _, _, v = heapq.heappop(heap)
        if v not in current or current[v] != p:
            continue
        del current[v]
        nbrs = set(g.neighbors(v))
        g.add_edges_from(itertools.combinations(nbrs, 2))
        g.remove_node(v)
        order.append((v, frozenset(nbrs)))
        for u in strategy.updated(nbrs, g):
            if u in current:
                q = strategy.priority(u, g)
                if q != current[u]:
                    current[u] = q
                    heapq.heappush(heap, (q, _tie(u), next(counter), u))

    logger.debug("elimination_sequence: %d vertices, max clique size %d",
                 len(order), max((len(n) + 1 for _, n in order), default=0))
    return order
