from dpgm.tensor.dense_table import DenseTable, FREE

__all__ = ["DenseTable", "FREE"]
