"""Unit tests for bellman_kernels: continuation, choice values, aggregation."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from informality_models.vfi.kernels.bellman_kernels import (
    aggregate_sectors,
    compute_choice_values,
    compute_expected_continuation,
    compute_resources,
    maximize_savings,
    switching_cost_matrix,
    terminal_value,
)

PENALTY = -1e10


class TestExpectedContinuation:

    def test_identity_transitions_return_values(self):
        n_a, n_z, n_s = 4, 3, 2
        v = tf.constant(np.arange(n_a * n_z * n_s, dtype=float).reshape(n_a, n_z, n_s))
        P = tf.constant(np.stack([np.eye(n_z)] * n_s))
        ev = compute_expected_continuation(v, P).numpy()
        assert ev.shape == (n_z, n_s, n_a)
        np.testing.assert_allclose(ev, np.transpose(v.numpy(), (1, 2, 0)))

    def test_uses_chosen_sector_transitions(self):
        v = tf.constant(np.array([[[1.0, 1.0], [3.0, 5.0]]]))  # (n_a=1, n_z=2, n_s=2)
        P = tf.constant(np.array([
            [[1.0, 0.0], [0.0, 1.0]],
            [[0.5, 0.5], [0.5, 0.5]],
        ]))
        ev = compute_expected_continuation(v, P).numpy()
        # Sector 0 keeps z, sector 1 mixes the two nodes
        np.testing.assert_allclose(ev[:, 0, 0], [1.0, 3.0])
        np.testing.assert_allclose(ev[:, 1, 0], [3.0, 3.0])


class TestChoiceValues:

    def _setup(self, switching_cost=0.0):
        assets = tf.constant([-1.0, 0.0, 1.0], dtype=tf.float64)
        ey = tf.constant([[2.0, 1.0]], dtype=tf.float64)
        resources = compute_resources(assets, ey, 0.0)
        costs = switching_cost_matrix(2, switching_cost)
        limits = tf.constant([1.0, 0.0], dtype=tf.float64)
        continuation = tf.zeros((1, 2, 3), dtype=tf.float64)
        return assets, resources, costs, limits, continuation

    def test_resources(self):
        assets, resources, *_ = self._setup()
        np.testing.assert_allclose(resources.numpy()[:, 0, 0], [1.0, 2.0, 3.0])
        np.testing.assert_allclose(resources.numpy()[:, 0, 1], [0.0, 1.0, 2.0])

    def test_switching_cost_matrix(self):
        np.testing.assert_allclose(
            switching_cost_matrix(2, 0.3).numpy(), [[0.0, 0.3], [0.3, 0.0]]
        )

    def test_borrowing_limit_makes_choice_infeasible(self):
        assets, resources, costs, limits, cont = self._setup()
        rhs, feasible = compute_choice_values(
            resources, costs, assets, limits, cont, 0.95, 2.0, PENALTY
        )
        feasible = feasible.numpy()
        # Informal sector (s'=1) cannot save a'=-1
        assert not feasible[2, 0, 0, 1, 0]
        assert feasible[2, 0, 0, 0, 0]
        assert rhs.numpy()[2, 0, 0, 1, 0] == PENALTY

    def test_non_positive_consumption_infeasible(self):
        assets, resources, costs, limits, cont = self._setup()
        _, feasible = compute_choice_values(
            resources, costs, assets, limits, cont, 0.95, 2.0, PENALTY
        )
        # a=-1 in informal: resources 0, any a' >= 0 leaves c <= 0
        assert not np.any(feasible.numpy()[0, 0, :, 1, :])

    def test_switching_cost_lowers_value(self):
        assets, resources, _, limits, cont = self._setup()
        rhs0, _ = compute_choice_values(
            resources, switching_cost_matrix(2, 0.0), assets, limits, cont, 0.95, 2.0, PENALTY
        )
        rhs1, _ = compute_choice_values(
            resources, switching_cost_matrix(2, 0.5), assets, limits, cont, 0.95, 2.0, PENALTY
        )
        # Staying is unaffected, switching is worse
        assert rhs1.numpy()[2, 0, 0, 0, 1] == rhs0.numpy()[2, 0, 0, 0, 1]
        assert rhs1.numpy()[2, 0, 1, 0, 1] < rhs0.numpy()[2, 0, 1, 0, 1]


class TestMaximizeAndAggregate:

    def test_maximize_savings(self):
        rhs = tf.constant(np.array([[[[[1.0, 3.0, 2.0]]]]]))
        values, idx = maximize_savings(rhs)
        assert values.numpy()[0, 0, 0, 0] == 3.0
        assert idx.numpy()[0, 0, 0, 0] == 1

    def test_hard_max_without_taste_shocks(self):
        v = tf.constant(np.array([[[[1.0, 2.0]]]]))
        value, idx, probs = aggregate_sectors(v, 0.0)
        assert value.numpy()[0, 0, 0] == 2.0
        assert idx.numpy()[0, 0, 0] == 1
        np.testing.assert_array_equal(probs.numpy()[0, 0, 0], [0.0, 1.0])

    def test_logsum_with_taste_shocks(self):
        sigma = 0.5
        v = tf.constant(np.array([[[[1.0, 2.0]]]]))
        value, _, probs = aggregate_sectors(v, sigma)
        expected = sigma * np.log(np.exp(1.0 / sigma) + np.exp(2.0 / sigma))
        assert value.numpy()[0, 0, 0] == pytest.approx(expected)
        p = probs.numpy()[0, 0, 0]
        assert p.sum() == pytest.approx(1.0)
        assert p[1] == pytest.approx(1.0 / (1.0 + np.exp(-1.0 / sigma)))

    def test_logsum_exceeds_max(self):
        v = tf.constant(np.random.default_rng(0).normal(size=(3, 2, 2, 2)))
        hard, _, _ = aggregate_sectors(v, 0.0)
        soft, _, _ = aggregate_sectors(v, 0.3)
        assert np.all(soft.numpy() >= hard.numpy())


class TestTerminalValue:

    def test_penalty_where_resources_non_positive(self):
        resources = tf.constant(np.array([[[-0.5, 2.0]]]))
        v = terminal_value(resources, 2.0, PENALTY).numpy()
        assert v[0, 0, 0] == PENALTY
        assert v[0, 0, 1] == pytest.approx(-0.5)


class TestCompiledKernels:

    def test_tensor_only_kernels_are_graph_functions(self):
        assert hasattr(compute_expected_continuation, "get_concrete_function")
        assert hasattr(maximize_savings, "get_concrete_function")

    def test_compiled_continuation_matches_einsum(self):
        rng = np.random.default_rng(0)
        v = rng.normal(size=(5, 3, 2))
        P = rng.dirichlet(np.ones(3), size=(2, 3))
        ev = compute_expected_continuation(tf.constant(v), tf.constant(P)).numpy()
        np.testing.assert_allclose(ev, np.einsum("pzw,bwp->zpb", P, v), rtol=1e-12, atol=1e-12)
