# src/informality_models/moment_calculator/compute_transition_rate.py
"""Compute sector transition frequencies."""

import numpy as np
import tensorflow as tf

from .compute_mean import compute_share


def compute_transition_rate(sector, consecutive, origin: int, destination: int) -> tf.Tensor:
    """
    Share of consecutive-period pairs starting in *origin* that end in *destination*.

    Args:
        sector: Integer sector codes, shape (n_agents, n_periods).
        consecutive: Boolean mask of shape (n_agents, n_periods - 1); True
            where both t and t+1 are observed.
        origin: Sector code at t.
        destination: Sector code at t+1.

    Returns:
        Scalar tensor; NaN when no pair starts in *origin*.
    """
    sector = np.asarray(sector)
    start = sector[:, :-1] == origin
    end = sector[:, 1:] == destination
    return compute_share(end, np.asarray(consecutive) & start)
