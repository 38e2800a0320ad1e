"""
Numerical helpers shared by the grid builder, the counterfactual engine
and the simulator.

    * ``tauchen_random_walk`` – productivity transitions on shared nodes
    * ``interp_columns``      – per-agent linear interpolation of policies
    * ``nearest_node``        – snap initial draws onto the productivity grid
"""

import logging

import numpy as np
import tensorflow as tf
import tensorflow_probability as tfp

from informality_models.core.types import TENSORFLOW_DTYPE

tfd = tfp.distributions

logger = logging.getLogger(__name__)

_MIN_SPACING = 1e-12


def tauchen_random_walk(x: tf.Tensor, sigma: float) -> tf.Tensor:
    """
    Transition matrix of z' = z + eta, eta ~ N(0, sigma^2), on the nodes ``x``.

    Every sector uses the same nodes so that z carries over when a worker
    switches; only sigma is sector specific. Each node owns the interval
    halfway to its neighbours, and the two end nodes absorb the tails.

    Args:
        x: (n,) equally spaced log-productivity nodes.
        sigma: Innovation standard deviation. Zero gives the identity.

    Returns:
        (n, n) matrix with P[i, j] = Pr(z' = x_j | z = x_i).
    """
    nodes = tf.cast(x, TENSORFLOW_DTYPE)
    n = int(nodes.shape[0])
    if n == 1 or sigma == 0.0:
        return tf.eye(n, dtype=TENSORFLOW_DTYPE)

    half_step = 0.5 * (nodes[1] - nodes[0])
    std_normal = tfd.Normal(
        loc=tf.constant(0.0, TENSORFLOW_DTYPE), scale=tf.constant(1.0, TENSORFLOW_DTYPE)
    )

    # Cell edges between consecutive nodes, standardised relative to each origin.
    edges = nodes[:-1] + half_step
    cdf_at_edges = std_normal.cdf(
        (edges[None, :] - nodes[:, None]) / tf.cast(sigma, TENSORFLOW_DTYPE)
    )
    ones = tf.ones((n, 1), dtype=TENSORFLOW_DTYPE)
    zeros = tf.zeros((n, 1), dtype=TENSORFLOW_DTYPE)
    cumulative = tf.concat([zeros, cdf_at_edges, ones], axis=1)
    probs = cumulative[:, 1:] - cumulative[:, :-1]

    return probs / tf.reduce_sum(probs, axis=1, keepdims=True)


def _bracket(grid: tf.Tensor, query: tf.Tensor):
    """Lower knot index and clamped weight on the upper knot for each query."""
    n = tf.shape(grid)[0]
    upper = tf.clip_by_value(tf.searchsorted(grid, query, side='right'), 1, n - 1)
    lower = upper - 1
    left = tf.gather(grid, lower)
    width = tf.maximum(tf.gather(grid, upper) - left, _MIN_SPACING)
    weight = tf.clip_by_value((query - left) / width, 0.0, 1.0)
    return lower, weight


@tf.function(reduce_retracing=True)
def interp_columns(
    x_grid: tf.Tensor,
    y_cols: tf.Tensor,
    x_query: tf.Tensor,
) -> tf.Tensor:
    """
    Evaluate row m of ``y_cols`` at ``x_query[m]`` by linear interpolation.

    The simulator gathers, for every agent, the policy row of that agent's
    (productivity, sector) state and interpolates it at the agent's assets.
    Queries outside the grid take the boundary value.

    Args:
        x_grid:  (N,) increasing knots.
        y_cols:  (M, N) knot values, one row per query.
        x_query: (M,) query points.

    Returns:
        (M,) interpolated values.
    """
    grid = tf.cast(x_grid, TENSORFLOW_DTYPE)
    rows = tf.cast(y_cols, TENSORFLOW_DTYPE)
    query = tf.reshape(tf.cast(x_query, TENSORFLOW_DTYPE), [-1])

    lower, weight = _bracket(grid, query)
    pair = tf.stack([lower, lower + 1], axis=1)
    knots = tf.gather(rows, pair, batch_dims=1)
    return knots[:, 0] + weight * (knots[:, 1] - knots[:, 0])


def nearest_node(grid: np.ndarray, values: np.ndarray) -> np.ndarray:
    """Index of the grid node closest to each value."""
    gaps = np.abs(np.asarray(values)[:, None] - np.asarray(grid)[None, :])
    return np.argmin(gaps, axis=1)
