import numpy as np
import pytest

from dpgm.core.registry import Universe


@pytest.fixture
def universe():
    return Universe()


@pytest.fixture
def xyz(universe):
    """Binary x, ternary y, binary z."""
    x = universe.new_variable(2, "x")
    y = universe.new_variable(3, "y")
    z = universe.new_variable(2, "z")
    return x, y, z


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
