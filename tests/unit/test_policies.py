"""Unit tests for policies.py: extract_lifecycle_policies."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

from informality_models.vfi.kernels.bellman_kernels import (
    compute_resources,
    switching_cost_matrix,
)
from informality_models.vfi.policies import extract_lifecycle_policies


def _inputs(switching_cost=0.2):
    assets = tf.constant([-1.0, 0.0, 1.0, 2.0], dtype=tf.float64)
    ey = tf.constant([[2.0, 1.0]], dtype=tf.float64)
    resources = compute_resources(assets, ey, 0.05)
    costs = switching_cost_matrix(2, switching_cost)
    return assets, resources, costs


class TestExtractLifecyclePolicies:

    def test_keys_and_shapes(self):
        assets, resources, costs = _inputs()
        savings_idx = tf.zeros((4, 1, 2, 2), dtype=tf.int32)
        sector_idx = tf.zeros((4, 1, 2), dtype=tf.int32)
        out = extract_lifecycle_policies(assets, resources, costs, savings_idx, sector_idx)
        assert set(out) == {
            "savings_by_sector", "consumption_by_sector", "savings", "consumption", "sector",
        }
        assert out["savings_by_sector"].shape == (4, 1, 2, 2)
        assert out["savings"].shape == (4, 1, 2)

    def test_budget_identity(self):
        """c + a' + κ·1[s' != s] equals cash on hand in the chosen sector."""
        assets, resources, costs = _inputs(switching_cost=0.2)
        rng = np.random.default_rng(3)
        savings_idx = tf.constant(rng.integers(0, 4, (4, 1, 2, 2)), dtype=tf.int32)
        sector_idx = tf.constant(rng.integers(0, 2, (4, 1, 2)), dtype=tf.int32)
        out = extract_lifecycle_policies(assets, resources, costs, savings_idx, sector_idx)

        c = out["consumption"].numpy()
        a_next = out["savings"].numpy()
        chosen = out["sector"].numpy()
        res = resources.numpy()
        for a in range(4):
            for s in range(2):
                k = chosen[a, 0, s]
                lhs = c[a, 0, s] + a_next[a, 0, s] + 0.2 * (k != s)
                assert abs(lhs - res[a, 0, k]) < 1e-12

    def test_savings_follow_indices(self):
        assets, resources, costs = _inputs()
        savings_idx = tf.fill((4, 1, 2, 2), 3)
        sector_idx = tf.ones((4, 1, 2), dtype=tf.int32)
        out = extract_lifecycle_policies(assets, resources, costs, savings_idx, sector_idx)
        np.testing.assert_array_equal(out["savings"].numpy(), 2.0)
        np.testing.assert_array_equal(out["sector"].numpy(), 1)
