"""Bellman-recursion kernels for the lifecycle sector-choice model.

Contains the tensor primitives of one backward-induction step:
- ``compute_expected_continuation`` — E[V_{t+1}(a', z', s') | z, s']
- ``compute_choice_values`` — u(c) + beta * EV over every (a, z, s, s', a')
- ``maximize_savings`` — inner max over a' per candidate sector
- ``aggregate_sectors`` — outer max (or logit log-sum) over s'

The continuation and savings kernels take tensors only and are
XLA-compiled; the others receive per-evaluation scalars (κ, σ_pref) and run
eagerly.

Axis convention for the 5-D choice tensor: ``(a, z, s, s', a')`` where
``s`` is the sector held coming into the period and ``s'`` the sector
chosen for it.
"""

from __future__ import annotations

from typing import Tuple

import tensorflow as tf

from informality_models.core.types import TENSORFLOW_DTYPE
from informality_models.econ.utility import CRRAUtility

ACCUM_DTYPE: tf.DType = TENSORFLOW_DTYPE
LIMIT_TOL = 1e-12


@tf.function(jit_compile=True)
def compute_expected_continuation(
    v_next: tf.Tensor,
    transitions: tf.Tensor,
) -> tf.Tensor:
    """Expected next-period value for each (z, s', a').

    Parameters
    ----------
    v_next : tf.Tensor
        Next-age value function, ``(n_a, n_z, n_s)``.
    transitions : tf.Tensor
        Sector transition matrices, ``(n_s, n_z, n_z)``.

    Returns
    -------
    tf.Tensor
        ``(n_z, n_s, n_a)`` with entry ``Σ_w Π_{s'}[z, w] V(a', w, s')``.
    """
    return tf.einsum("pzw,bwp->zpb", transitions, v_next)


def compute_resources(
    asset_grid: tf.Tensor,
    expected_income: tf.Tensor,
    interest_rate: float,
) -> tf.Tensor:
    """Cash on hand (1+r)a + E[y(z, s')], shape ``(n_a, n_z, n_s)``."""
    gross = (1.0 + interest_rate) * asset_grid
    return gross[:, None, None] + expected_income[None, :, :]


def switching_cost_matrix(n_sectors: int, switching_cost: float) -> tf.Tensor:
    """``κ · 1[s' != s]`` as an ``(n_s, n_s)`` tensor indexed ``[s, s']``."""
    eye = tf.eye(n_sectors, dtype=ACCUM_DTYPE)
    return tf.cast(switching_cost, ACCUM_DTYPE) * (1.0 - eye)


def compute_choice_values(
    resources: tf.Tensor,
    switch_costs: tf.Tensor,
    asset_grid: tf.Tensor,
    borrowing_limits: tf.Tensor,
    continuation: tf.Tensor,
    beta: float,
    risk_aversion: float,
    penalty: float,
) -> Tuple[tf.Tensor, tf.Tensor]:
    """Evaluate every (state, choice) pair of one age step.

    Parameters
    ----------
    resources : tf.Tensor
        ``(n_a, n_z, n_s')`` cash on hand by chosen sector.
    switch_costs : tf.Tensor
        ``(n_s, n_s')`` switching costs.
    asset_grid : tf.Tensor
        ``(n_a,)`` candidate savings a'.
    borrowing_limits : tf.Tensor
        ``(n_s',)`` debt limits b_{s'}.
    continuation : tf.Tensor
        ``(n_z, n_s', n_a')`` expected next-period value.
    beta, risk_aversion, penalty : float
        Discount factor, CRRA coefficient and infeasibility value.

    Returns
    -------
    rhs : tf.Tensor
        ``(n_a, n_z, n_s, n_s', n_a')`` Bellman right-hand side, equal to
        *penalty* where the choice is infeasible.
    feasible : tf.Tensor
        Boolean mask of the same shape.
    """
    consumption = (
        resources[:, :, None, :, None]
        - switch_costs[None, None, :, :, None]
        - asset_grid[None, None, None, None, :]
    )
    within_limit = asset_grid[None, :] >= -borrowing_limits[:, None] - LIMIT_TOL
    feasible = (consumption > 0.0) & within_limit[None, None, None, :, :]

    safe_c = tf.where(feasible, consumption, tf.ones_like(consumption))
    utility = CRRAUtility.evaluate(safe_c, risk_aversion)
    value = utility + beta * continuation[None, :, None, :, :]
    rhs = tf.where(feasible, value, tf.cast(penalty, ACCUM_DTYPE))
    return rhs, feasible


@tf.function(jit_compile=True)
def maximize_savings(rhs: tf.Tensor) -> Tuple[tf.Tensor, tf.Tensor]:
    """Inner maximisation over a' for every candidate sector.

    Returns
    -------
    sector_values : tf.Tensor
        ``(n_a, n_z, n_s, n_s')`` best value per candidate sector.
    savings_idx : tf.Tensor
        ``(n_a, n_z, n_s, n_s')`` int32 index of the maximising a'.
    """
    sector_values = tf.reduce_max(rhs, axis=-1)
    savings_idx = tf.argmax(rhs, axis=-1, output_type=tf.int32)
    return sector_values, savings_idx


def aggregate_sectors(
    sector_values: tf.Tensor,
    taste_shock_scale: float,
) -> Tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """Outer step over the chosen sector s'.

    With ``taste_shock_scale == 0`` the value is the hard maximum. With a
    positive scale sigma, i.i.d. extreme-value taste shocks give the
    log-sum ``sigma * log Σ exp(v / sigma)`` and logit choice probabilities.

    Returns
    -------
    value : tf.Tensor
        ``(n_a, n_z, n_s)`` value function.
    sector_idx : tf.Tensor
        ``(n_a, n_z, n_s)`` int32 index of the highest-value sector.
    probabilities : tf.Tensor
        ``(n_a, n_z, n_s, n_s')`` choice probabilities.
    """
    n_choices = int(sector_values.shape[-1])
    sector_idx = tf.argmax(sector_values, axis=-1, output_type=tf.int32)

    if taste_shock_scale == 0.0:
        value = tf.reduce_max(sector_values, axis=-1)
        probabilities = tf.one_hot(sector_idx, n_choices, dtype=ACCUM_DTYPE)
        return value, sector_idx, probabilities

    sigma = tf.cast(taste_shock_scale, ACCUM_DTYPE)
    scaled = sector_values / sigma
    value = sigma * tf.reduce_logsumexp(scaled, axis=-1)
    probabilities = tf.nn.softmax(scaled, axis=-1)
    return value, sector_idx, probabilities


def terminal_value(
    resources: tf.Tensor,
    risk_aversion: float,
    penalty: float,
) -> tf.Tensor:
    """Value at t = T+1: consume all resources, no continuation.

    Parameters
    ----------
    resources : tf.Tensor
        ``(n_a, n_z, n_s)`` terminal cash on hand in the sector held.
    """
    feasible = resources > 0.0
    safe = tf.where(feasible, resources, tf.ones_like(resources))
    utility = CRRAUtility.evaluate(safe, risk_aversion)
    return tf.where(feasible, utility, tf.cast(penalty, ACCUM_DTYPE))
