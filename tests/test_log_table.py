"""
Tests for log-domain table factors.
"""

import numpy as np
import pytest

from dpgm.algebra.ops import Op
from dpgm.core.exceptions import InvalidArgument, InvalidOperation, NormalizationError
from dpgm.factor import LogTableFactor, TableFactor, as_log, as_table, norm_inf, random_table_factor


@pytest.fixture
def pair(xyz):
    x, y, z = xyz
    f = random_table_factor([x, y], np.random.default_rng(11), 0.05, 1.0)
    g = random_table_factor([y, z], np.random.default_rng(12), 0.05, 1.0)
    return f, g


class TestConversion:
    def test_round_trip_values(self, pair):
        f, _ = pair
        lf = as_log(f)
        assert isinstance(lf, LogTableFactor)
        assert np.allclose(lf.data, np.log(f.data))
        assert lf(1, 2) == pytest.approx(f(1, 2))
        assert lf.logv(1, 2) == pytest.approx(np.log(f(1, 2)))
        assert norm_inf(as_table(lf), f) < 1e-12

    def test_zero_maps_to_minus_inf(self, xyz):
        x, _, _ = xyz
        lf = as_log(TableFactor([x], values=[0.0, 1.0]))
        assert lf.logv(0) == -np.inf
        assert lf(0) == 0.0

    def test_as_log_idempotent(self, pair):
        lf = as_log(pair[0])
        assert as_log(lf) is lf


class TestAgreement:
    def test_product_and_divide(self, pair):
        f, g = pair
        assert norm_inf(as_table(as_log(f) * as_log(g)), f * g) < 1e-12
        assert norm_inf(as_table(as_log(f) / as_log(g)), f / g) < 1e-12

    def test_marginal(self, pair, xyz):
        f, g = pair
        _, y, _ = xyz
        h = f * g
        lh = as_log(f) * as_log(g)
        assert np.allclose(np.exp(lh.marginal([y]).data), h.marginal([y]).data)
        assert lh.norm_constant() == pytest.approx(h.norm_constant())

    def test_max(self, pair, xyz):
        f, _ = pair
        x, _, _ = xyz
        assert np.allclose(np.exp(as_log(f).maximum([x]).data), f.maximum([x]).data)

    def test_scalar(self, pair):
        f, _ = pair
        assert norm_inf(as_table(as_log(f) * 3.0), f * 3.0) < 1e-12

    def test_divide_by_zero_is_zero(self, xyz):
        x, _, _ = xyz
        f = as_log(TableFactor([x], values=[1.0, 2.0]))
        g = as_log(TableFactor([x], values=[0.0, 4.0]))
        assert (f / g).values()[0] == -np.inf
        assert (f / g)(1) == pytest.approx(0.5)

    def test_normalize(self, pair):
        f, _ = pair
        lf = as_log(f).normalize()
        assert lf.norm_constant() == pytest.approx(1.0)
        assert lf.log_norm_constant() == pytest.approx(0.0)
        assert norm_inf(as_table(lf), f.copy().normalize()) < 1e-12

    def test_information_measures(self, pair):
        f, _ = pair
        p = f.copy().normalize()
        assert as_log(p).entropy() == pytest.approx(p.entropy())
        q = p.copy().update(np.sqrt).normalize()
        assert as_log(p).relative_entropy(as_log(q)) == pytest.approx(p.relative_entropy(q))

    def test_sample(self, pair):
        p = pair[0].copy().normalize()
        assert as_log(p).sample(7) == p.sample(7)


class TestErrors:
    def test_difference_undefined(self, pair):
        f, _ = pair
        with pytest.raises(InvalidOperation):
            as_log(f) - as_log(f)
        with pytest.raises(InvalidOperation):
            as_log(f).collapse(Op.AND)

    def test_mixing_kinds(self, pair):
        f, g = pair
        with pytest.raises(InvalidArgument):
            as_log(f) * g

    def test_not_normalizable(self, xyz):
        lf = LogTableFactor(xyz[:1], -np.inf)
        assert not lf.is_normalizable()
        with pytest.raises(NormalizationError):
            lf.normalize()
