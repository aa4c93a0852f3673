from dpgm.factor.table_factor import TableFactor
from dpgm.factor.log_table import LogTableFactor, as_log, as_table
from dpgm.factor.operations import (
    norm_1,
    norm_inf,
    norm_1_log,
    norm_inf_log,
    weighted_update,
    arg_max,
    arg_min,
    elementwise_max,
    elementwise_min,
    combine_all,
    mixture,
    unit_factor,
)
from dpgm.factor.empirical import empirical_factor, log_likelihood
from dpgm.factor.random import random_table_factor, ising_factor
from dpgm.factor.io import factor_to_dict, factor_from_dict, dumps, loads, save_factors, load_factors

__all__ = [
    "TableFactor",
    "LogTableFactor",
    "as_log",
    "as_table",
    "norm_1",
    "norm_inf",
    "norm_1_log",
    "norm_inf_log",
    "weighted_update",
    "arg_max",
    "arg_min",
    "elementwise_max",
    "elementwise_min",
    "combine_all",
    "mixture",
    "unit_factor",
    "empirical_factor",
    "log_likelihood",
    "random_table_factor",
    "ising_factor",
    "factor_to_dict",
    "factor_from_dict",
    "dumps",
    "loads",
    "save_factors",
    "load_factors",
]
