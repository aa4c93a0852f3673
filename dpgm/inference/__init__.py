from dpgm.inference.variable_elimination import variable_elimination, partition_function
from dpgm.inference.calibration import ShaferShenoy, Hugin

__all__ = ["variable_elimination", "partition_function", "ShaferShenoy", "Hugin"]
