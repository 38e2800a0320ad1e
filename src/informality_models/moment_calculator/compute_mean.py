# src/informality_models/moment_calculator/compute_mean.py
"""Compute masked mean statistics."""

import tensorflow as tf

from informality_models.core.types import TENSORFLOW_DTYPE


def compute_masked_mean(data, mask) -> tf.Tensor:
    """
    Compute the mean over entries selected by *mask* that are finite.

    Args:
        data: Array of shape (n_agents, n_periods).
        mask: Boolean array of the same shape.

    Returns:
        Scalar tensor; NaN when no entry is selected.
    """
    data = tf.cast(data, dtype=TENSORFLOW_DTYPE)
    valid_mask = tf.cast(mask, tf.bool) & tf.math.is_finite(data)
    total = tf.reduce_sum(tf.where(valid_mask, data, tf.zeros_like(data)))
    n_valid = tf.reduce_sum(tf.cast(valid_mask, TENSORFLOW_DTYPE))
    nan = tf.constant(float("nan"), dtype=TENSORFLOW_DTYPE)
    return tf.where(n_valid > 0, total / tf.maximum(n_valid, 1.0), nan)


def compute_share(indicator, mask) -> tf.Tensor:
    """
    Fraction of selected entries where *indicator* is true.

    Args:
        indicator: Boolean array of shape (n_agents, n_periods).
        mask: Boolean selection of the same shape.

    Returns:
        Scalar tensor in [0, 1]; NaN when no entry is selected.
    """
    return compute_masked_mean(tf.cast(indicator, TENSORFLOW_DTYPE), mask)
