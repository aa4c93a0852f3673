"""
dpgm: Discrete Probabilistic Graphical Models

Dense factor algebra over finite variables and junction-tree inference.

Key components:
- core: Variable universe, errors, settings and logging
- base: Domains (ordered sets of variables)
- algebra: Element-wise operators and inference semirings
- tensor: Dense tables with join/aggregate/restrict
- factor: Table factors, log-domain factors, empirical and random factors, JSON I/O
- graph: Interaction graphs and elimination orderings
- model: Junction trees and pairwise Markov networks
- inference: Variable elimination, Shafer-Shenoy and Hugin calibration
"""

__version__ = "0.1.0"

from dpgm.core.exceptions import (
    DpgmError,
    InvalidArgument,
    OutOfRange,
    InvalidOperation,
    NormalizationError,
    StructureError,
)
from dpgm.core.registry import Universe, Variable, TimedProcess
from dpgm.base.domain import Domain, make_domain
from dpgm.algebra.ops import Op
from dpgm.algebra.semiring import Semiring, sum_product, max_product, min_sum, boolean
from dpgm.tensor.dense_table import DenseTable
from dpgm.factor.table_factor import TableFactor
from dpgm.factor.log_table import LogTableFactor
from dpgm.graph.elimination import MinDegree, MinFill, Constrained, elimination_sequence
from dpgm.model.junction_tree import JunctionTree, TreeState
from dpgm.model.markov_network import PairwiseMarkovNetwork, grid_ising_model
from dpgm.inference.variable_elimination import variable_elimination, partition_function
from dpgm.inference.calibration import ShaferShenoy, Hugin

__all__ = [
    # Errors
    "DpgmError",
    "InvalidArgument",
    "OutOfRange",
    "InvalidOperation",
    "NormalizationError",
    "StructureError",
    # Variables and domains
    "Universe",
    "Variable",
    "TimedProcess",
    "Domain",
    "make_domain",
    # Algebra
    "Op",
    "Semiring",
    "sum_product",
    "max_product",
    "min_sum",
    "boolean",
    "DenseTable",
    # Factors
    "TableFactor",
    "LogTableFactor",
    # Structure
    "MinDegree",
    "MinFill",
    "Constrained",
    "elimination_sequence",
    "JunctionTree",
    "TreeState",
    "PairwiseMarkovNetwork",
    "grid_ising_model",
    # Inference
    "variable_elimination",
    "partition_function",
    "ShaferShenoy",
    "Hugin",
]
