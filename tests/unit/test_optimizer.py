"""Unit tests for the multistart Nelder-Mead / CMA-ES optimizer."""

from __future__ import annotations

import threading

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from informality_models.core.errors import ConvergenceStatus, WeakIdentificationWarning
from informality_models.estimation.optimizer import (
    EvaluationBudget,
    run_multistart_nelder_mead,
    sobol_starting_points,
)

CENTER = np.array([0.3, 0.7])


def quadratic(theta):
    return float(np.sum((np.asarray(theta) - CENTER) ** 2))


class TestStartingPoints:

    def test_inside_box(self):
        lo, hi = np.array([0.0, -1.0, 2.0]), np.array([1.0, 1.0, 3.0])
        points = sobol_starting_points(lo, hi, 6, seed=0)
        assert points.shape == (6, 3)
        assert np.all(points >= lo) and np.all(points <= hi)

    def test_seeded(self):
        lo, hi = np.zeros(2), np.ones(2)
        np.testing.assert_array_equal(
            sobol_starting_points(lo, hi, 4, seed=3),
            sobol_starting_points(lo, hi, 4, seed=3),
        )


class TestMultistart:

    def test_quadratic_converges(self):
        result = run_multistart_nelder_mead(
            quadratic, [0.0, 0.0], [1.0, 1.0], n_restarts=3, seed=0,
        )
        np.testing.assert_allclose(result.theta_hat, CENTER, atol=1e-3)
        assert result.q_min < 1e-6
        assert result.status is ConvergenceStatus.CONVERGED
        assert len(result.restarts) == 3
        assert not result.weakly_identified

    def test_cma_stage(self):
        result = run_multistart_nelder_mead(
            quadratic, [0.0, 0.0], [1.0, 1.0], n_restarts=1, cma_max_evals=40, seed=1,
        )
        np.testing.assert_allclose(result.theta_hat, CENTER, atol=1e-3)
        assert result.restarts[0].evals == result.n_evals

    def test_explicit_initial_points(self):
        result = run_multistart_nelder_mead(
            quadratic, [0.0, 0.0], [1.0, 1.0],
            initial_points=np.array([[0.1, 0.1], [0.9, 0.9]]),
        )
        assert [r.start for r in result.restarts] == [0, 1]
        np.testing.assert_allclose(result.restarts[0].x0, [0.1, 0.1])

    def test_estimate_clipped_to_box(self):
        result = run_multistart_nelder_mead(
            lambda x: float(np.sum((np.asarray(x) - 2.0) ** 2)),
            [0.0, 0.0], [1.0, 1.0], initial_points=np.array([0.5, 0.5]),
        )
        assert np.all(result.theta_hat <= 1.0)


class TestBudgets:

    def test_evaluation_budget(self):
        budget = EvaluationBudget(max_evaluations=5)
        result = run_multistart_nelder_mead(
            quadratic, [0.0, 0.0], [1.0, 1.0], n_restarts=2, budget=budget, seed=0,
        )
        assert result.status is ConvergenceStatus.NOT_CONVERGED
        assert result.n_evals == 5
        assert np.all(np.isfinite(result.theta_hat))
        assert "budget" in result.message

    def test_cancelled_before_first_evaluation(self):
        event = threading.Event()
        event.set()
        result = run_multistart_nelder_mead(
            quadratic, [0.0, 0.0], [1.0, 1.0],
            budget=EvaluationBudget(cancel_event=event),
        )
        assert result.status is ConvergenceStatus.CANCELLED
        assert result.n_evals == 0
        assert np.all(np.isnan(result.theta_hat))

    def test_cancel_mid_run_keeps_best_point(self):
        event = threading.Event()
        calls = []

        def objective(theta):
            calls.append(1)
            if len(calls) == 8:
                event.set()
            return quadratic(theta)

        result = run_multistart_nelder_mead(
            objective, [0.0, 0.0], [1.0, 1.0],
            budget=EvaluationBudget(cancel_event=event),
        )
        assert result.status is ConvergenceStatus.CANCELLED
        assert result.n_evals == 8
        assert np.isfinite(result.q_min)


class TestIdentification:

    def test_two_minima_warn(self):
        def double_well(x):
            x = float(np.asarray(x)[0])
            return ((x - 0.2) * (x - 0.8)) ** 2

        with pytest.warns(WeakIdentificationWarning):
            result = run_multistart_nelder_mead(
                double_well, [0.0], [1.0],
                initial_points=np.array([[0.1], [0.9]]),
            )
        assert result.weakly_identified
        thetas = sorted(r.theta[0] for r in result.restarts)
        assert thetas[0] == pytest.approx(0.2, abs=1e-3)
        assert thetas[1] == pytest.approx(0.8, abs=1e-3)
