# informality_models/econ/income.py
"""
Sector-specific labor income process.

Income in sector s is y = w_s * exp(z + eps) with log permanent
productivity z (a random walk discretised by the grid builder) and a
transitory shock eps ~ N(0, sigma^2_eps,s). The solver integrates over
eps through the closed-form expectation; the simulator draws it.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from informality_models.config.economic_params import ModelParams
from informality_models.core.types import NUMPY_DTYPE

logger = logging.getLogger(__name__)


class IncomeProcess:
    """Map productivity nodes and sectors to income.

    Parameters
    ----------
    params : ModelParams
        Supplies wage levels and transitory variances per sector.
    z_grid : np.ndarray
        Log productivity nodes, shape ``(n_z,)``.
    """

    def __init__(self, params: ModelParams, z_grid: np.ndarray) -> None:
        self.params = params
        self.z_grid = np.asarray(z_grid, dtype=NUMPY_DTYPE)
        self.wages = np.array([s.wage for s in params.sectors], dtype=NUMPY_DTYPE)
        self.transitory_std = np.sqrt(
            np.array([s.transitory_variance for s in params.sectors], dtype=NUMPY_DTYPE)
        )
        # E[exp(eps)] = exp(sigma^2 / 2); equals one when the variance is zero.
        self._lognormal_mean = np.exp(0.5 * self.transitory_std ** 2)

    @property
    def n_sectors(self) -> int:
        return int(self.wages.shape[0])

    def expected_income(self) -> np.ndarray:
        """Expected income on the grid, shape ``(n_z, n_sectors)``."""
        return (
            self.wages[None, :]
            * np.exp(self.z_grid[:, None])
            * self._lognormal_mean[None, :]
        )

    def expected_income_at(self, z: np.ndarray, sectors: np.ndarray) -> np.ndarray:
        """Expected income for arbitrary ``(z, sector)`` pairs."""
        sectors = np.asarray(sectors, dtype=int)
        return self.wages[sectors] * np.exp(z) * self._lognormal_mean[sectors]

    def sample(
        self,
        z: np.ndarray,
        sectors: np.ndarray,
        standard_normals: Optional[np.ndarray] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        """Draw realised income y = w_s exp(z + sigma_s * xi).

        Either pre-drawn standard normals (common random numbers) or a
        generator must be supplied.
        """
        sectors = np.asarray(sectors, dtype=int)
        if standard_normals is None:
            if rng is None:
                raise ValueError("Provide either standard_normals or rng.")
            standard_normals = rng.standard_normal(np.shape(z))
        eps = self.transitory_std[sectors] * standard_normals
        return self.wages[sectors] * np.exp(z + eps)

    def with_params(self, params: ModelParams) -> "IncomeProcess":
        """Rebuild for new sector parameters on the same productivity nodes."""
        return IncomeProcess(params, self.z_grid)
