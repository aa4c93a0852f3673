"""
Tests for Shafer-Shenoy and Hugin calibration.

Beliefs are checked against brute-force products and variable elimination.
"""

import numpy as np
import pytest

from dpgm.algebra.semiring import boolean, max_product, min_sum
from dpgm.core.exceptions import InvalidArgument, InvalidOperation
from dpgm.factor import TableFactor, as_log, combine_all, random_table_factor
from dpgm.inference import Hugin, ShaferShenoy, partition_function, variable_elimination
from dpgm.model import JunctionTree, grid_ising_model

ENGINES = [ShaferShenoy, Hugin]


def assert_factors_close(f, g, rtol=1e-9):
    assert f.arguments == g.arguments
    g = g.reorder(f.arg_seq)
    assert np.allclose(f.data, g.data, rtol=rtol, atol=0.0)


@pytest.fixture
def chain(universe, rng):
    """Four-variable chain with unary and pairwise factors."""
    xs = [universe.new_variable(a, f"x{i}") for i, a in enumerate([2, 3, 2, 4])]
    factors = [random_table_factor([x], rng, 0.1, 1.0) for x in xs]
    factors += [random_table_factor([a, b], rng, 0.1, 1.0) for a, b in zip(xs, xs[1:])]
    return xs, factors


@pytest.fixture
def grid(universe):
    net, rows = grid_ising_model(universe, 5, 4, rng=7)
    return net, rows


class TestChain:
    @pytest.mark.parametrize("engine", ENGINES)
    def test_marginals_match_brute_force(self, engine, chain):
        xs, factors = chain
        joint = combine_all(factors)
        cal = engine(factors).calibrate()
        for x in xs:
            b = cal.belief([x])
            assert np.allclose(b.data, joint.marginal([x]).data, atol=1e-10)
        assert cal.norm_constant() == pytest.approx(joint.norm_constant(), rel=1e-10)

    def test_engines_agree(self, chain):
        _, factors = chain
        ss = ShaferShenoy(factors).calibrate()
        hugin = Hugin(factors).calibrate()
        for v, b in ss.clique_beliefs().items():
            assert_factors_close(b, hugin.belief(v))

    @pytest.mark.parametrize("engine", ENGINES)
    def test_pair_belief(self, engine, chain):
        xs, factors = chain
        joint = combine_all(factors)
        cal = engine(factors)
        assert_factors_close(cal.belief([xs[2], xs[1]]), joint.marginal([xs[1], xs[2]]))

    @pytest.mark.parametrize("engine", ENGINES)
    def test_root_choice(self, engine, chain):
        _, factors = chain
        a = engine(factors)
        a.calibrate(root=min(a.tree.vertices()))
        b = engine(factors)
        b.calibrate(root=max(b.tree.vertices()))
        for v, f in a.clique_beliefs().items():
            assert_factors_close(f, b.belief(v))

    @pytest.mark.parametrize("engine", ENGINES)
    def test_normalize(self, engine, chain):
        _, factors = chain
        cal = engine(factors).normalize()
        for f in cal.clique_beliefs().values():
            assert f.norm_constant() == pytest.approx(1.0)

    def test_log_domain(self, chain):
        xs, factors = chain
        cal = ShaferShenoy([as_log(f) for f in factors]).calibrate()
        joint = combine_all(factors)
        for x in xs:
            assert np.allclose(np.exp(cal.belief([x]).data), joint.marginal([x]).data, atol=1e-10)

    def test_uncovered_query(self, chain):
        xs, factors = chain
        with pytest.raises(InvalidArgument):
            ShaferShenoy(factors).belief([xs[0], xs[3]])


class TestGrid:
    @pytest.mark.parametrize("engine", ENGINES)
    def test_single_marginals(self, engine, grid):
        net, rows = grid
        factors = net.factors()
        cal = engine(factors).calibrate()
        for row in rows:
            for x in row:
                assert_factors_close(cal.belief([x]), variable_elimination(factors, [x]))
        assert cal.norm_constant() == pytest.approx(partition_function(factors), rel=1e-9)

    @pytest.mark.parametrize("engine", ENGINES)
    def test_condition(self, engine, universe, grid):
        net, rows = grid
        factors = net.factors()
        evidence = {universe.variable(6): 1, universe.variable(15): 0, universe.variable(16): 1}
        cal = engine(factors).calibrate()
        cal.condition(evidence)
        assert not cal.calibrated
        restricted = [f.restrict(evidence) for f in factors]
        for row in rows:
            for x in row:
                if x in evidence:
                    continue
                assert_factors_close(cal.belief([x]), variable_elimination(restricted, [x]))
        assert cal.norm_constant() == pytest.approx(partition_function(restricted), rel=1e-9)

    def test_max_product(self, grid):
        net, rows = grid
        factors = net.factors()
        cal = ShaferShenoy(factors, max_product()).calibrate()
        hugin = Hugin(factors, max_product()).calibrate()
        for x in (rows[0][0], rows[2][3], rows[4][1]):
            expected = variable_elimination(factors, [x], max_product())
            assert_factors_close(cal.belief([x]), expected)
            assert_factors_close(hugin.belief([x]), expected)

    def test_min_sum(self, chain):
        xs, factors = chain
        energies = [f.apply(lambda d: -np.log(d)) for f in factors]
        cal = Hugin(energies, min_sum()).calibrate()
        for x in xs:
            assert_factors_close(cal.belief([x]), variable_elimination(energies, [x], min_sum()))


class TestDirtyMessages:
    def test_only_outgoing_messages_recomputed(self, grid, rng):
        net, _ = grid
        ss = ShaferShenoy(net.factors()).calibrate()
        before = dict(ss._messages)
        v = max(ss.tree.vertices(), key=lambda u: len(ss.tree.neighbors(u)))
        ss.set_potential(v, ss.tree.potential(v) * random_table_factor(ss.tree.clique(v), rng, 0.5, 1.5))
        assert not ss.calibrated
        ss.calibrate()
        after = ss._messages
        for w in ss.tree.neighbors(v):
            assert after[(w, v)] is before[(w, v)]
            assert after[(v, w)] is not before[(v, w)]

        fresh = ShaferShenoy(ss.tree).calibrate()
        for u, f in fresh.clique_beliefs().items():
            assert_factors_close(f, ss.belief(u))

    def test_hugin_recalibrates_after_update(self, chain, rng):
        xs, factors = chain
        hugin = Hugin(factors).calibrate()
        v = hugin.tree.find_clique_cover([xs[0]])
        extra = random_table_factor([xs[0]], rng, 0.5, 1.5)
        hugin.set_potential(v, hugin.tree.potential(v) * extra)
        joint = combine_all(factors + [extra])
        for x in xs:
            assert np.allclose(hugin.belief([x]).data, joint.marginal([x]).data, atol=1e-10)

    @pytest.mark.parametrize("engine", ENGINES)
    def test_returned_factors_are_copies(self, engine, chain):
        xs, factors = chain
        cal = engine(factors).calibrate()
        expected = cal.belief([xs[3]])
        v = cal.tree.find_clique_cover([xs[0]])
        pot = cal.tree.potential(v)
        pot *= TableFactor([xs[0]], values=[1.0, 9.0])
        pot.normalize()
        for f in cal.messages.values():
            f *= 2.0
        cal.calibrate()
        assert_factors_close(cal.belief([xs[3]]), expected)
        assert cal.norm_constant() == pytest.approx(combine_all(factors).norm_constant(), rel=1e-10)


class TestErrors:
    def test_hugin_needs_division(self, chain):
        _, factors = chain
        bools = [f.apply(lambda d: (d > 0.5).astype(float)) for f in factors]
        with pytest.raises(InvalidArgument, match="division"):
            Hugin(bools, boolean())
        ss = ShaferShenoy(bools, boolean()).calibrate()
        assert set(np.unique(ss.belief([chain[0][0]]).data)) <= {0.0, 1.0}

    @pytest.mark.parametrize("engine", ENGINES)
    def test_unpopulated_tree(self, engine, universe):
        a, b, c = universe.new_variables(3, 2)
        tree = JunctionTree.from_cliques([[a, b], [b, c]])
        with pytest.raises(InvalidOperation):
            engine(tree).calibrate()

    def test_tree_is_copied(self, chain):
        _, factors = chain
        tree = JunctionTree.from_elimination([f.arguments for f in factors]).initialize_potentials(factors)
        ss = ShaferShenoy(tree)
        v = tree.vertices()[0]
        ss.set_potential(v, TableFactor(tree.clique(v), 2.0))
        assert tree.potential(v) != ss.tree.potential(v)


class TestVariableElimination:
    def test_retain_order(self, chain):
        xs, factors = chain
        joint = combine_all(factors)
        f = variable_elimination(factors, [xs[3], xs[0]])
        assert f.arg_seq == (xs[3], xs[0])
        assert_factors_close(f, joint.marginal([xs[0], xs[3]]))

    def test_partition_function(self, chain):
        _, factors = chain
        assert partition_function(factors) == pytest.approx(combine_all(factors).norm_constant(), rel=1e-12)
        assert partition_function(factors, max_product()) == pytest.approx(combine_all(factors).maximum())

    def test_needs_factors(self):
        with pytest.raises(InvalidArgument):
            variable_elimination([])


class TestMarkovNetworkInput:
    @pytest.mark.parametrize("engine", ENGINES)
    def test_network_matches_factor_list(self, engine, grid):
        net, rows = grid
        from_net = engine(net).calibrate()
        from_factors = engine(net.factors()).calibrate()
        for x in (rows[0][0], rows[3][2]):
            assert_factors_close(from_net.belief([x]), from_factors.belief([x]))
        assert from_net.norm_constant() == pytest.approx(partition_function(net.factors()), rel=1e-9)
