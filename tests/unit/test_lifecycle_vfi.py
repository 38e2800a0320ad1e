"""Unit tests for LifecycleVFI backward induction."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from conftest import make_grid_config, make_test_params
from informality_models.config.economic_params import ModelParams, SectorParams
from informality_models.core.errors import ConfigurationError, InfeasibleStateError
from informality_models.vfi.grids.grid_builder import GridBuilder
from informality_models.vfi.lifecycle import LifecycleVFI

CONCRETE_GRID = (-1.0, 0.0, 1.0, 2.0, 3.0)


@pytest.fixture(scope="module")
def concrete_solution():
    """T=3, five asset points, no productivity risk, κ=0."""
    params = make_test_params()
    config = make_grid_config(asset_grid=CONCRETE_GRID, n_productivity=1, n_periods=3)
    return LifecycleVFI(params, config).solve()


@pytest.fixture(scope="module")
def risky_solution():
    """Three productivity nodes, switching cost and taste shocks."""
    params = make_test_params(
        formal_permanent_variance=0.01,
        informal_permanent_variance=0.03,
        informal_transitory_variance=0.05,
        informal_borrowing_limit=0.3,
        switching_cost=0.1,
        taste_shock_scale=0.05,
    )
    config = make_grid_config(n_assets=12, n_productivity=3, n_periods=4)
    return LifecycleVFI(params, config).solve()


class TestConcreteScenario:

    def test_shapes(self, concrete_solution):
        sol = concrete_solution
        assert sol.value.shape == (4, 5, 1, 2)
        assert sol.savings.shape == (3, 5, 1, 2)
        assert sol.sector_values.shape == (3, 5, 1, 2, 2)
        assert sol.n_periods == 3

    def test_value_strictly_increasing_in_assets(self, concrete_solution):
        for t in range(concrete_solution.value.shape[0]):
            for s in range(2):
                v = concrete_solution.value[t, :, 0, s]
                assert np.all(np.diff(v) > 0), f"age {t}, sector {s}: {v}"

    def test_formal_chosen_at_zero_assets(self, concrete_solution):
        a_zero = CONCRETE_GRID.index(0.0)
        for t in range(3):
            np.testing.assert_array_equal(concrete_solution.sector[t, a_zero, 0, :], 0)

    def test_all_reachable_states_feasible(self, concrete_solution):
        sol = concrete_solution
        reachable = np.broadcast_to(sol.reachable[:, None, :], sol.state_feasible.shape[1:])
        for t in range(3):
            assert np.all(sol.state_feasible[t][reachable])

    def test_reachability_follows_limits(self, concrete_solution):
        reachable = concrete_solution.reachable
        assert np.all(reachable[:, 0])
        np.testing.assert_array_equal(reachable[:, 1], [False, True, True, True, True])


class TestPolicyProperties:

    def test_monotone_value(self, risky_solution):
        v = risky_solution.value
        assert np.all(np.diff(v, axis=1) >= -1e-12)

    def test_budget_exactness(self, risky_solution):
        """c + a' + κ·1[s' != s] = (1+r)a + E y(z, s') on feasible states."""
        sol = risky_solution
        params = sol.params
        a = sol.grid.assets
        for t in range(sol.n_periods):
            chosen = sol.sector[t]
            ey = sol.expected_income[np.arange(sol.grid.n_productivity)[None, :, None], chosen]
            stay = np.arange(2)[None, None, :]
            rhs = (1 + params.interest_rate) * a[:, None, None] + ey
            lhs = (
                sol.consumption[t] + sol.savings[t]
                + params.switching_cost * (chosen != stay)
            )
            mask = sol.state_feasible[t]
            np.testing.assert_allclose(lhs[mask], rhs[mask], atol=1e-10)

    def test_savings_respect_chosen_sector_limit(self, risky_solution):
        sol = risky_solution
        limits = np.asarray(sol.params.borrowing_limits)
        for t in range(sol.n_periods):
            mask = sol.state_feasible[t]
            bound = -limits[sol.sector[t]]
            assert np.all(sol.savings[t][mask] >= bound[mask] - 1e-12)
            assert np.all(sol.consumption[t][mask] > 0)

    def test_choice_probabilities_sum_to_one(self, risky_solution):
        np.testing.assert_allclose(
            risky_solution.choice_probabilities.sum(axis=-1), 1.0, atol=1e-12
        )

    def test_switching_cost_lowers_value(self):
        config = make_grid_config(n_assets=10, n_periods=3)
        free = LifecycleVFI(make_test_params(switching_cost=0.0), config).solve()
        costly = LifecycleVFI(make_test_params(switching_cost=0.4), config).solve()
        reachable = np.broadcast_to(free.reachable[:, None, :], free.value.shape[1:])
        for t in range(3):
            assert np.all(costly.value[t][reachable] <= free.value[t][reachable] + 1e-12)


class TestSolverContract:

    def test_deterministic(self):
        params = make_test_params(taste_shock_scale=0.1, switching_cost=0.05)
        config = make_grid_config()
        first = LifecycleVFI(params, config).solve()
        second = LifecycleVFI(params, config).solve()
        np.testing.assert_array_equal(first.value, second.value)
        np.testing.assert_array_equal(first.savings, second.savings)
        np.testing.assert_array_equal(first.sector, second.sector)

    def test_arrays_read_only(self, concrete_solution):
        with pytest.raises(ValueError):
            concrete_solution.value[0, 0, 0, 0] = 0.0

    def test_to_dict_keys(self, concrete_solution):
        d = concrete_solution.to_dict()
        for key in ("V", "policy_savings", "policy_consumption", "policy_sector", "A", "Z"):
            assert key in d
        np.testing.assert_array_equal(d["A"], CONCRETE_GRID)

    def test_infeasible_reachable_state_raises(self):
        # At a=-1 in the formal sector, (1+r)a + w < 0 and no a' >= -1 helps
        params = make_test_params(
            formal_wage=0.4, informal_wage=0.2, interest_rate=0.5,
        )
        config = make_grid_config(asset_grid=CONCRETE_GRID, n_periods=2)
        with pytest.raises(InfeasibleStateError) as excinfo:
            LifecycleVFI(params, config).solve()
        err = excinfo.value
        assert err.age == 1
        assert err.state[0] == -1.0
        assert err.state[2] == "formal"
        assert err.n_states >= 1

    def test_limit_looser_than_grid_raises(self):
        config = make_grid_config()
        grid = GridBuilder.build(config, make_test_params(formal_borrowing_limit=0.5))
        with pytest.raises(ConfigurationError):
            LifecycleVFI(make_test_params(formal_borrowing_limit=1.0), config, grid=grid)

    def test_grid_sector_mismatch_raises(self):
        config = make_grid_config()
        params = make_test_params()
        grid = GridBuilder.build(config, params)
        single = ModelParams(sectors=(SectorParams("formal", 2.0, borrowing_limit=1.0),))
        with pytest.raises(ConfigurationError):
            LifecycleVFI(single, config, grid=grid)
