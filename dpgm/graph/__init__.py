from dpgm.graph.elimination import (
    interaction_graph,
    fill_in,
    MinDegree,
    MinFill,
    Constrained,
    elimination_sequence,
)

__all__ = [
    "interaction_graph",
    "fill_in",
    "MinDegree",
    "MinFill",
    "Constrained",
    "elimination_sequence",
]
