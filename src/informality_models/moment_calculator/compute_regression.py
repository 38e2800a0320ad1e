# src/informality_models/moment_calculator/compute_regression.py
"""Compute OLS slopes of consumption growth on income growth."""

from typing import Tuple

import tensorflow as tf

from informality_models.core.types import TENSORFLOW_DTYPE

# Regressor variation below this is treated as no variation at all.
MIN_REGRESSOR_VARIANCE = 1e-14


def _select(x, y, mask) -> Tuple[tf.Tensor, tf.Tensor]:
    x = tf.cast(x, dtype=TENSORFLOW_DTYPE)
    y = tf.cast(y, dtype=TENSORFLOW_DTYPE)
    valid_mask = (
        tf.cast(mask, tf.bool) & tf.math.is_finite(x) & tf.math.is_finite(y)
    )
    return tf.boolean_mask(x, valid_mask), tf.boolean_mask(y, valid_mask)


def compute_ols_slope(x, y, mask) -> tf.Tensor:
    """
    Slope of the regression y = alpha + beta * x over selected entries.

    Args:
        x: Regressor, e.g. income growth, shape (n_agents, n_periods).
        y: Outcome, e.g. consumption growth, same shape.
        mask: Boolean selection of the same shape.

    Returns:
        Scalar tensor with beta; NaN with fewer than two observations or
        when x does not vary.
    """
    x_valid, y_valid = _select(x, y, mask)
    n_valid = tf.cast(tf.shape(x_valid)[0], TENSORFLOW_DTYPE)
    nan = tf.constant(float("nan"), dtype=TENSORFLOW_DTYPE)
    if n_valid < 2:
        return nan

    x_dev = x_valid - tf.reduce_mean(x_valid)
    y_dev = y_valid - tf.reduce_mean(y_valid)
    sxx = tf.reduce_sum(tf.square(x_dev))
    if sxx / n_valid < MIN_REGRESSOR_VARIANCE:
        return nan
    return tf.reduce_sum(x_dev * y_dev) / sxx


def compute_asymmetric_slopes(x, y, mask) -> Tuple[tf.Tensor, tf.Tensor]:
    """
    Piecewise-linear regression y = alpha + b_pos * max(x, 0) + b_neg * min(x, 0).

    Args:
        x: Regressor, same shape as *y*.
        y: Outcome.
        mask: Boolean selection.

    Returns:
        Tuple ``(b_pos, b_neg)``; each is NaN unless at least two
        observations fall strictly on its side of zero.
    """
    x_valid, y_valid = _select(x, y, mask)
    nan = tf.constant(float("nan"), dtype=TENSORFLOW_DTYPE)
    n_pos = int(tf.reduce_sum(tf.cast(x_valid > 0, tf.int32)))
    n_neg = int(tf.reduce_sum(tf.cast(x_valid < 0, tf.int32)))
    if n_pos < 2 or n_neg < 2:
        return nan, nan

    zeros = tf.zeros_like(x_valid)
    design = tf.stack(
        [tf.ones_like(x_valid), tf.maximum(x_valid, zeros), tf.minimum(x_valid, zeros)],
        axis=1,
    )
    coef = tf.linalg.lstsq(design, y_valid[:, None], fast=False)
    return coef[1, 0], coef[2, 0]
