# informality_models/vfi/grids/grid_builder.py
"""
Grid construction utilities for the lifecycle state space.

This module builds the asset grid (power-spaced, densest near the
natural borrowing limit, with every sector's borrowing limit as an exact
knot) and the shared log-productivity nodes with one Tauchen transition
matrix per sector.
"""

from dataclasses import dataclass
import logging
from typing import Tuple

import numpy as np
import tensorflow as tf

from informality_models.config.economic_params import ModelParams
from informality_models.config.vfi_config import GridConfig
from informality_models.core.errors import ConfigurationError
from informality_models.core.types import NUMPY_DTYPE, TENSORFLOW_DTYPE
from informality_models.vfi.grids.grid_utils import tauchen_random_walk

logger = logging.getLogger(__name__)

KNOT_TOL = 1e-9
ROW_SUM_TOL = 1e-10


@dataclass(frozen=True)
class StateGrid:
    """
    Discretised state space shared by solver, simulator and counterfactuals.

    Attributes:
        assets: (n_a,) strictly increasing asset grid.
        productivity: (n_z,) log-productivity nodes.
        transitions: (n_s, n_z, n_z) sector transition matrices.
        sector_names: Sector labels in grid order.
        n_periods: Working-life horizon T.
    """

    assets: np.ndarray
    productivity: np.ndarray
    transitions: np.ndarray
    sector_names: Tuple[str, ...]
    n_periods: int

    def __post_init__(self) -> None:
        if np.any(np.diff(self.assets) <= 0):
            raise ConfigurationError("Asset grid must be strictly increasing.")
        row_sums = self.transitions.sum(axis=2)
        if not np.allclose(row_sums, 1.0, atol=ROW_SUM_TOL):
            raise ConfigurationError(
                "Transition matrix rows must sum to one, "
                f"max deviation {np.max(np.abs(row_sums - 1.0)):.2e}"
            )
        for arr in (self.assets, self.productivity, self.transitions):
            arr.flags.writeable = False

    @property
    def n_assets(self) -> int:
        return int(self.assets.shape[0])

    @property
    def n_productivity(self) -> int:
        return int(self.productivity.shape[0])

    @property
    def n_sectors(self) -> int:
        return len(self.sector_names)

    @property
    def asset_min(self) -> float:
        return float(self.assets[0])

    @property
    def asset_max(self) -> float:
        return float(self.assets[-1])

    def contains_knot(self, value: float) -> bool:
        return bool(np.any(np.abs(self.assets - value) < KNOT_TOL))


class GridBuilder:
    """
    Utility class for constructing lifecycle state space grids.

    This class provides static methods for building the asset grid and
    the productivity nodes with their sector transition matrices.
    """

    @staticmethod
    def build(config: GridConfig, params: ModelParams) -> StateGrid:
        """Build the complete state grid for *params*."""
        assets = GridBuilder.build_asset_grid(config, params)
        z_grid, transitions = GridBuilder.build_productivity_grid(config, params)
        grid = StateGrid(
            assets=assets,
            productivity=z_grid,
            transitions=transitions,
            sector_names=params.sector_names,
            n_periods=config.n_periods,
        )
        logger.debug(
            "Built state grid: n_a=%d [%.3f, %.3f], n_z=%d, n_s=%d, T=%d",
            grid.n_assets, grid.asset_min, grid.asset_max,
            grid.n_productivity, grid.n_sectors, grid.n_periods,
        )
        return grid

    @staticmethod
    def build_asset_grid(config: GridConfig, params: ModelParams) -> np.ndarray:
        """
        Build the asset grid.

        Args:
            config: Grid configuration.
            params: Parameters supplying the sector borrowing limits.

        Returns:
            Strictly increasing asset grid.

        Raises:
            ConfigurationError: If the bounds are inconsistent or an explicit
                grid is not strictly increasing or misses the natural limit.
        """
        a_min = params.asset_lower_bound

        if config.asset_grid is not None:
            grid = np.asarray(config.asset_grid, dtype=NUMPY_DTYPE)
            if np.any(np.diff(grid) <= 0):
                raise ConfigurationError(
                    f"Explicit asset grid must be strictly increasing, got {grid}"
                )
            if grid[0] > a_min + KNOT_TOL:
                raise ConfigurationError(
                    f"Explicit asset grid starts at {grid[0]}, above the natural "
                    f"borrowing limit {a_min}"
                )
            return grid

        a_max = config.asset_max
        if a_min >= a_max:
            raise ConfigurationError(
                f"Asset lower bound ({a_min}) must be less than upper ({a_max})."
            )

        grid = GridBuilder._build_power_spaced_grid(
            a_min, a_max, config.n_assets, config.asset_grid_curvature
        )
        knots = sorted({-b for b in params.borrowing_limits} | {0.0})
        for knot in knots:
            if a_min <= knot <= a_max:
                grid = GridBuilder._insert_knot(grid, knot)
        return grid

    @staticmethod
    def build_productivity_grid(
        config: GridConfig,
        params: ModelParams,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Build shared log-productivity nodes and per-sector transitions.

        The nodes span ``tauchen_width`` standard deviations of the
        terminal-age dispersion of the random walk under the riskiest
        sector, sigma_T^2 = sigma^2_z0 + T * max_s sigma^2_eta,s.

        Returns:
            Tuple containing:
                - z_grid: (n_z,) log-productivity nodes.
                - transitions: (n_s, n_z, n_z) transition matrices.

        Raises:
            ConfigurationError: If n_z > 1 but productivity has no dispersion.
        """
        n_z = config.n_productivity
        max_perm_var = max(s.permanent_variance for s in params.sectors)
        terminal_std = np.sqrt(
            params.initial_productivity_variance + config.n_periods * max_perm_var
        )

        if n_z == 1:
            z_grid = tf.zeros((1,), dtype=TENSORFLOW_DTYPE)
        else:
            if terminal_std == 0.0:
                raise ConfigurationError(
                    f"n_productivity={n_z} requires positive productivity "
                    "dispersion; use n_productivity=1 for a riskless model."
                )
            z_max = config.tauchen_width * terminal_std
            z_grid = tf.constant(
                np.linspace(-z_max, z_max, n_z), dtype=TENSORFLOW_DTYPE
            )

        transitions = tf.stack([
            tauchen_random_walk(z_grid, float(np.sqrt(s.permanent_variance)))
            for s in params.sectors
        ])
        return z_grid.numpy(), transitions.numpy()

    @staticmethod
    def _build_power_spaced_grid(
        min_val: float,
        max_val: float,
        n_points: int,
        curvature: float,
    ) -> np.ndarray:
        """Build a grid a_min + (a_max - a_min) * u**curvature."""
        u = tf.linspace(
            tf.cast(0.0, TENSORFLOW_DTYPE), tf.cast(1.0, TENSORFLOW_DTYPE), n_points
        )
        spaced = min_val + (max_val - min_val) * tf.pow(u, curvature)
        return spaced.numpy()

    @staticmethod
    def _insert_knot(grid: np.ndarray, knot: float) -> np.ndarray:
        """Snap the nearest point onto *knot*, or insert it if none is close."""
        nearest = int(np.argmin(np.abs(grid - knot)))
        if abs(grid[nearest] - knot) < KNOT_TOL:
            grid = grid.copy()
            grid[nearest] = knot
            return grid
        return np.insert(grid, int(np.searchsorted(grid, knot)), knot)
