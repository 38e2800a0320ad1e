"""Unit tests for the person-level bootstrap loop."""

from __future__ import annotations

import threading

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from conftest import make_random_panel
from informality_models.core.errors import ConvergenceStatus
from informality_models.estimation.bootstrap import run_bootstrap
from informality_models.moment_calculator.targets import targets_from_panel

NAMES = ["informality_rate", "mean_assets"]
LIMITS = [1.0, 0.0]


@pytest.fixture(scope="module")
def panel():
    return make_random_panel(n_agents=120, n_periods=5, seed=2)


@pytest.fixture(scope="module")
def targets(panel):
    return targets_from_panel(panel, LIMITS, NAMES, std_errors={"informality_rate": 0.02})


def _echo(resampled):
    """Estimator stand-in: returns the resampled target values."""
    return resampled.values, ConvergenceStatus.CONVERGED


def _scripted(statuses, values=None):
    """Estimator stand-in that reports the given statuses in order."""
    calls = iter(statuses)

    def estimate_fn(resampled):
        theta = resampled.values if values is None else values
        return theta, next(calls)

    return estimate_fn


class TestBootstrap:

    def test_draw_shape_and_std_errors(self, panel, targets):
        result = run_bootstrap(_echo, panel, targets, LIMITS, 8, 2, seed=0)
        assert result.draws.shape == (8, 2)
        assert result.n_completed == 8
        assert result.status is ConvergenceStatus.CONVERGED
        np.testing.assert_allclose(result.std_errors, np.std(result.draws, axis=0, ddof=1))
        assert np.all(result.std_errors > 0)

    def test_reproducible(self, panel, targets):
        first = run_bootstrap(_echo, panel, targets, LIMITS, 4, 2, seed=5)
        second = run_bootstrap(_echo, panel, targets, LIMITS, 4, 2, seed=5)
        np.testing.assert_array_equal(first.draws, second.draws)

    def test_standard_errors_are_kept_as_weights(self, panel, targets):
        seen = []

        def estimate_fn(resampled):
            seen.append(resampled.get("informality_rate").std_error)
            return resampled.values, ConvergenceStatus.CONVERGED

        run_bootstrap(estimate_fn, panel, targets, LIMITS, 3, 2, seed=0)
        assert seen == [0.02, 0.02, 0.02]

    def test_cancelled(self, panel, targets):
        event = threading.Event()
        event.set()
        result = run_bootstrap(_echo, panel, targets, LIMITS, 5, 2, cancel_event=event)
        assert result.status is ConvergenceStatus.CANCELLED
        assert result.n_completed == 0
        assert np.all(np.isnan(result.std_errors))

    def test_single_draw_has_undefined_std_errors(self, panel, targets):
        result = run_bootstrap(_echo, panel, targets, LIMITS, 1, 2, seed=0)
        assert result.n_completed == 1
        assert np.all(np.isnan(result.std_errors))

    def test_zero_wall_time_stops_immediately(self, panel, targets):
        result = run_bootstrap(_echo, panel, targets, LIMITS, 5, 2, max_wall_time=0.0)
        assert result.status is ConvergenceStatus.NOT_CONVERGED
        assert result.n_completed == 0


class TestReplicationStatus:

    def test_all_converged_keeps_counts_at_zero(self, panel, targets):
        result = run_bootstrap(_echo, panel, targets, LIMITS, 3, 2, seed=0)
        assert result.n_not_converged == 0
        assert result.n_discarded == 0

    def test_budget_stopped_replication_downgrades_status(self, panel, targets):
        statuses = [
            ConvergenceStatus.CONVERGED,
            ConvergenceStatus.NOT_CONVERGED,
            ConvergenceStatus.CONVERGED,
        ]
        result = run_bootstrap(_scripted(statuses), panel, targets, LIMITS, 3, 2, seed=0)
        assert result.status is ConvergenceStatus.NOT_CONVERGED
        assert result.n_not_converged == 1
        assert result.n_completed == 3

    def test_unevaluated_replication_is_discarded(self, panel, targets):
        statuses = [ConvergenceStatus.NOT_CONVERGED] * 3
        fn = _scripted(statuses, values=np.array([np.nan, np.nan]))
        result = run_bootstrap(fn, panel, targets, LIMITS, 3, 2, seed=0)
        assert result.status is ConvergenceStatus.NOT_CONVERGED
        assert result.n_completed == 0
        assert result.n_discarded == 3
        assert np.all(np.isnan(result.std_errors))

    def test_cancelled_replication_is_discarded_and_stops(self, panel, targets):
        statuses = [ConvergenceStatus.CONVERGED, ConvergenceStatus.CANCELLED]
        result = run_bootstrap(_scripted(statuses), panel, targets, LIMITS, 5, 2, seed=0)
        assert result.status is ConvergenceStatus.CANCELLED
        assert result.n_completed == 1
        assert result.n_discarded == 1
