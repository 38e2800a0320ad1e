"""Unit tests for the SMM objective, parameter mapping and projection."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from conftest import make_grid_config, make_test_params
from informality_models.config.estimation_config import (
    EstimationConfig,
    MomentConfig,
    SimulationConfig,
)
from informality_models.core.errors import ConfigurationError
from informality_models.estimation.objective import (
    BOUND_PENALTY,
    build_diagonal_weighting_matrix,
    compute_smm_loss,
    make_smm_objective,
    params_to_theta,
    project_theta,
    theta_to_params,
)
from informality_models.estimation.smm import SMMEstimator
from informality_models.moment_calculator.targets import CalibrationTarget, TargetMoments

LO = np.array([0.0, 0.0, 0.0, 0.0])
HI = np.array([2.0, 1.0, 0.5, 0.5])


class TestLoss:

    def test_identity_weighting(self):
        q = compute_smm_loss(np.array([1.0, 2.0]), np.array([1.5, 1.0]), np.eye(2))
        assert q == pytest.approx(0.25 + 1.0)

    def test_zero_at_match(self):
        m = np.array([0.3, 1.2, -0.4])
        assert compute_smm_loss(m, m, np.diag([1.0, 5.0, 9.0])) == 0.0

    def test_diagonal_weighting(self):
        W = build_diagonal_weighting_matrix(np.array([0.1, np.nan, 0.5]))
        np.testing.assert_allclose(np.diag(W), [100.0, 1.0, 4.0])
        assert W[0, 1] == 0.0


class TestParameterMapping:

    def test_theta_order(self):
        params = make_test_params(switching_cost=0.2, taste_shock_scale=0.05,
                                  informal_borrowing_limit=0.3)
        np.testing.assert_allclose(params_to_theta(params), [1.0, 0.3, 0.2, 0.05])

    def test_theta_to_params_overrides_estimated_fields_only(self):
        template = make_test_params(discount_factor=0.9)
        params = theta_to_params(np.array([1.5, 0.4, 0.1, 0.2]), template)
        assert params.borrowing_limits == (1.5, 0.4)
        assert params.switching_cost == 0.1
        assert params.taste_shock_scale == 0.2
        assert params.discount_factor == 0.9
        assert params.sector("formal").wage == template.sector("formal").wage

    def test_round_trip(self):
        template = make_test_params(switching_cost=0.3, taste_shock_scale=0.1)
        assert theta_to_params(params_to_theta(template), template) == template


class TestProjection:

    def test_inside_box_is_unchanged(self):
        theta = np.array([1.0, 0.5, 0.1, 0.2])
        projected, penalty = project_theta(theta, LO, HI)
        np.testing.assert_array_equal(projected, theta)
        assert penalty == 0.0

    def test_clipped_with_quadratic_penalty(self):
        projected, penalty = project_theta(np.array([2.5, 0.5, -0.1, 0.2]), LO, HI)
        np.testing.assert_allclose(projected, [2.0, 0.5, 0.0, 0.2])
        assert penalty == pytest.approx(BOUND_PENALTY * (0.25 + 0.01))

    def test_informal_limit_capped_by_formal(self):
        projected, penalty = project_theta(np.array([0.3, 0.8, 0.0, 0.0]), LO, HI)
        assert projected[1] == projected[0] == 0.3
        assert penalty == pytest.approx(BOUND_PENALTY * 0.25)

    def test_input_not_modified(self):
        theta = np.array([3.0, 0.5, 0.1, 0.2])
        project_theta(theta, LO, HI)
        assert theta[0] == 3.0


class TestObjective:

    @pytest.fixture(scope="class")
    def setup(self):
        params = make_test_params(formal_wage=1.1, informal_wage=1.0, taste_shock_scale=0.3)
        estimator = SMMEstimator(
            params,
            make_grid_config(),
            TargetMoments((CalibrationTarget("informality_rate", 0.3),)),
            EstimationConfig(),
            SimulationConfig(n_agents=100, seed=0),
            MomentConfig(min_observations=10),
        )
        theta0 = params_to_theta(params)
        moments = estimator.model_moments(theta0)
        targets = TargetMoments(tuple(
            CalibrationTarget(name, moments.get(name))
            for name in ("informality_rate", "mean_assets", "wage_ratio")
        ))
        return estimator, theta0, targets

    def _objective(self, estimator, targets):
        return make_smm_objective(
            estimator.params, estimator.grid_config, estimator.base_grid,
            estimator.income, estimator.simulator, estimator.shocks,
            targets, estimator.moment_config, estimator.bounds_lo, estimator.bounds_hi,
        )

    def test_zero_at_generating_theta(self, setup):
        estimator, theta0, targets = setup
        objective = self._objective(estimator, targets)
        assert objective(theta0) == pytest.approx(0.0, abs=1e-12)
        assert objective.eval_count[0] == 1
        np.testing.assert_allclose(objective.best_eval["theta"], theta0)

    def test_out_of_box_theta_is_penalised(self, setup):
        estimator, theta0, targets = setup
        objective = self._objective(estimator, targets)
        outside = theta0 + np.array([0.0, 0.0, -0.2, 0.0])
        assert objective(outside) > 0.99 * BOUND_PENALTY * 0.04

    def test_reset_counters(self, setup):
        estimator, theta0, targets = setup
        objective = self._objective(estimator, targets)
        objective(theta0)
        objective.reset_counters()
        assert objective.eval_count[0] == 0
        # best point survives a restart
        assert objective.best_eval["theta"] is not None


def _estimator_with_box(params, formal_hi, informal_hi):
    bounds = {
        "formal_borrowing_limit": (0.0, formal_hi),
        "informal_borrowing_limit": (0.0, informal_hi),
        "switching_cost": (0.0, 0.5),
        "taste_shock_scale": (0.0, 0.5),
    }
    return SMMEstimator(
        params,
        make_grid_config(),
        TargetMoments((CalibrationTarget("informality_rate", 0.3),)),
        EstimationConfig(search_bounds=bounds),
        SimulationConfig(n_agents=10, seed=0),
    )


class TestSearchBoxFeasibility:
    """At r = 0.05 a debtor at -b_s needs expected income above 0.05 * b_s."""

    def test_unserviceable_formal_limit_rejected_at_construction(self):
        params = make_test_params(formal_wage=0.08, informal_wage=0.5, interest_rate=0.05)
        with pytest.raises(ConfigurationError, match="formal_borrowing_limit"):
            _estimator_with_box(params, formal_hi=2.0, informal_hi=1.0)

    def test_tighter_box_accepted(self):
        params = make_test_params(formal_wage=0.08, informal_wage=0.5, interest_rate=0.05)
        estimator = _estimator_with_box(params, formal_hi=1.0, informal_hi=1.0)
        np.testing.assert_allclose(estimator.bounds_hi[:2], [1.0, 1.0])

    def test_switching_sector_can_rescue_a_debtor(self):
        """Informal income alone cannot service b_I = 1, formal income can."""
        params = make_test_params(formal_wage=2.0, informal_wage=0.03, interest_rate=0.05)
        estimator = _estimator_with_box(params, formal_hi=1.0, informal_hi=1.0)
        theta = estimator.bounds_hi.copy()
        theta[3] = 0.0
        moments = estimator.model_moments(theta)
        assert len(moments.names) > 0
