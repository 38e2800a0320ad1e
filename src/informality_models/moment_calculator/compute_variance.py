# src/informality_models/moment_calculator/compute_variance.py
"""Compute masked variance statistics."""

import tensorflow as tf

from informality_models.core.types import TENSORFLOW_DTYPE
from .compute_mean import compute_masked_mean


def compute_masked_variance(data, mask, ddof: int = 1) -> tf.Tensor:
    """
    Compute the variance over finite entries selected by *mask*.

    Args:
        data: Array of shape (n_agents, n_periods).
        mask: Boolean array of the same shape.
        ddof: Delta degrees of freedom (1 gives the sample variance).

    Returns:
        Scalar tensor; NaN when fewer than ``ddof + 1`` entries are selected.
    """
    data = tf.cast(data, dtype=TENSORFLOW_DTYPE)
    valid_mask = tf.cast(mask, tf.bool) & tf.math.is_finite(data)
    mean = compute_masked_mean(data, valid_mask)
    squared_diff = tf.where(
        valid_mask,
        tf.square(data - mean),
        tf.zeros_like(data, dtype=TENSORFLOW_DTYPE),
    )
    n_valid = tf.reduce_sum(tf.cast(valid_mask, TENSORFLOW_DTYPE))
    dof = n_valid - float(ddof)
    nan = tf.constant(float("nan"), dtype=TENSORFLOW_DTYPE)
    return tf.where(dof > 0, tf.reduce_sum(squared_diff) / tf.maximum(dof, 1.0), nan)
