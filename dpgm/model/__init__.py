from dpgm.model.junction_tree import JunctionTree, TreeState, RootedTree, root_tree
from dpgm.model.markov_network import PairwiseMarkovNetwork, random_ising_model, grid_ising_model

__all__ = [
    "JunctionTree",
    "TreeState",
    "RootedTree",
    "root_tree",
    "PairwiseMarkovNetwork",
    "random_ising_model",
    "grid_ising_model",
]
