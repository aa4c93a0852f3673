"""
dpgm/model/markov_network.py

Pairwise Markov networks: a networkx graph over variables with an optional
unary factor on each node and a pairwise factor on each edge.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import networkx as nx
import numpy as np

from dpgm.base.domain import Domain
from dpgm.core.exceptions import InvalidArgument
from dpgm.core.log import get_logger
from dpgm.core.registry import Universe, Variable
from dpgm.factor.random import ising_factor
from dpgm.factor.table_factor import TableFactor

logger = get_logger(__name__)


class PairwiseMarkovNetwork:
    """
    Attributes:
        graph: Undirected graph over variables; node/edge data "factor"
    """

    def __init__(self):
        self.graph = nx.Graph()

    def add_node(self, v: Variable, factor: Optional[TableFactor] = None) -> None:
        if factor is not None and factor.arguments != Domain([v]):
            raise InvalidArgument(f"node factor must be over {v} alone", operation="PairwiseMarkovNetwork.add_node",
                                  variables=factor.arguments)
        self.graph.add_node(v, factor=factor)

    def add_edge(self, u: Variable, v: Variable, factor: Optional[TableFactor] = None) -> None:
        if factor is not None and factor.arguments != Domain([u, v]):
            raise InvalidArgument(f"edge factor must be over {{{u},{v}}}", operation="PairwiseMarkovNetwork.add_edge",
                                  variables=factor.arguments)
        for x in (u, v):
            if x not in self.graph:
                self.graph.add_node(x, factor=None)
        self.graph.add_edge(u, v, factor=factor)

    def node_factor(self, v: Variable) -> Optional[TableFactor]:
        return self.graph.nodes[v]["factor"]

    def edge_factor(self, u: Variable, v: Variable) -> Optional[TableFactor]:
        return self.graph.edges[u, v]["factor"]

    def set_node_factor(self, v: Variable, factor: TableFactor) -> None:
        self.add_node(v, factor)

    def set_edge_factor(self, u: Variable, v: Variable, factor: TableFactor) -> None:
        self.add_edge(u, v, factor)

    @property
    def variables(self) -> List[Variable]:
        return sorted(self.graph.nodes)

    def factors(self) -> List[TableFactor]:
        """Node factors followed by edge factors; missing ones are skipped."""
        out = [d["factor"] for _, d in sorted(self.graph.nodes(data=True), key=lambda t: t[0])
               if d["factor"] is not None]
        out += [d["factor"] for _, _, d in self.graph.edges(data=True) if d["factor"] is not None]
        return out

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    @classmethod
    def grid(cls, universe: Universe, m: int, n: int, arity: int = 2,
             prefix: str = "x") -> Tuple["PairwiseMarkovNetwork", List[List[Variable]]]:
        """
        An m x n grid of new variables, created row by row. Returns the
        network and the variables as rows.
        """
        if m < 1 or n < 1:
            raise InvalidArgument(f"grid dimensions must be positive, got {m}x{n}", operation="grid")
        rows = [[universe.new_variable(arity, f"{prefix}{i}_{j}") for j in range(n)] for i in range(m)]
        net = cls()
        for (i, j), (k, l) in nx.grid_2d_graph(m, n).edges():
            net.add_edge(rows[i][j], rows[k][l])
        for row in rows:
            for v in row:
                if v not in net.graph:
                    net.add_node(v)
        return net, rows


def random_ising_model(net: PairwiseMarkovNetwork, rng=None, lower: float = -1.0,
                       upper: float = 1.0) -> PairwiseMarkovNetwork:
    """Fill every node and edge with an Ising factor with couplings in [lower, upper]."""
    rng = np.random.default_rng(rng)
    for v in net.variables:
        net.set_node_factor(v, ising_factor(v, None, rng, lower, upper))
    for u, v in list(net.graph.edges()):
        net.set_edge_factor(u, v, ising_factor(u, v, rng, lower, upper))
    logger.debug("random Ising model: %d nodes, %d edges", len(net), net.graph.number_of_edges())
    return net


def grid_ising_model(universe: Universe, m: int, n: int, rng=None, lower: float = -1.0,
                     upper: float = 1.0) -> Tuple[PairwiseMarkovNetwork, List[List[Variable]]]:
    """Random Ising model on an m x n grid of new binary variables."""
    net, rows = PairwiseMarkovNetwork.grid(universe, m, n, 2)
    return random_ising_model(net, rng, lower, upper), rows
