"""Policy extraction for the lifecycle solver.

Contains pure functions that map the discrete maximisers of one age step
to continuous savings, sector and consumption policies. Consumption is
recovered from the budget constraint so that
``c* + a'* + κ·1[s'* != s] = (1+r)a + E y(z, s'*)`` holds exactly.
"""

from __future__ import annotations

from typing import Dict

import tensorflow as tf

from informality_models.core.types import TENSORFLOW_DTYPE

ACCUM_DTYPE: tf.DType = TENSORFLOW_DTYPE


def extract_lifecycle_policies(
    asset_grid: tf.Tensor,
    resources: tf.Tensor,
    switch_costs: tf.Tensor,
    savings_idx: tf.Tensor,
    sector_idx: tf.Tensor,
) -> Dict[str, tf.Tensor]:
    """Map discrete maximisers to policy values for one age.

    Parameters
    ----------
    asset_grid : tf.Tensor
        ``(n_a,)`` asset grid.
    resources : tf.Tensor
        ``(n_a, n_z, n_s')`` cash on hand by chosen sector.
    switch_costs : tf.Tensor
        ``(n_s, n_s')`` switching costs.
    savings_idx : tf.Tensor
        ``(n_a, n_z, n_s, n_s')`` maximising a' index per candidate sector.
    sector_idx : tf.Tensor
        ``(n_a, n_z, n_s)`` chosen sector.

    Returns
    -------
    dict
        ``savings_by_sector`` ``(n_a, n_z, n_s, n_s')``,
        ``consumption_by_sector`` ``(n_a, n_z, n_s, n_s')``,
        ``savings``, ``consumption`` ``(n_a, n_z, n_s)`` and
        ``sector`` ``(n_a, n_z, n_s)``.
    """
    savings_by_sector = tf.gather(asset_grid, savings_idx)
    consumption_by_sector = (
        resources[:, :, None, :]
        - switch_costs[None, None, :, :]
        - savings_by_sector
    )

    chosen = sector_idx[..., None]
    savings = tf.gather(savings_by_sector, chosen, batch_dims=3)[..., 0]
    consumption = tf.gather(consumption_by_sector, chosen, batch_dims=3)[..., 0]

    return {
        "savings_by_sector": savings_by_sector,
        "consumption_by_sector": consumption_by_sector,
        "savings": savings,
        "consumption": consumption,
        "sector": sector_idx,
    }
