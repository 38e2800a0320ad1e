# informality_models/config/vfi_config.py
"""
Configuration for the lifecycle backward-induction solver.

This module provides the grid specification (asset and productivity
discretisation, age horizon) and the numerical constants used by the
Bellman solver.

Example:
    >>> from informality_models.config.vfi_config import load_grid_config
    >>> config = load_grid_config("config/grids.json", "baseline")
    >>> print(f"Asset grid points: {config.n_assets}")
"""

from dataclasses import dataclass, fields
from typing import Optional, Tuple
import os
import logging

from informality_models.core.errors import ConfigurationError
from informality_models.io.file_utils import load_json_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridConfig:
    """
    Configuration for the state-space grids and solver constants.

    Attributes:
        n_assets: Number of points in the generated asset grid (borrowing
            limits and zero are added as extra knots).
        n_productivity: Number of log-productivity nodes.
        n_periods: Working-life horizon T.
        tauchen_width: Width of the productivity grid in standard deviations.
        asset_max: Upper end of the asset grid.
        asset_grid_curvature: Exponent of the power spacing; values above 1
            concentrate points near the borrowing limit.
        asset_grid: Optional explicit asset grid, used verbatim.
        infeasible_penalty: Value assigned to infeasible choices and states.
        consumption_floor: Minimum consumption enforced in simulation.
    """

    n_assets: int = 60
    n_productivity: int = 7
    n_periods: int = 40
    tauchen_width: float = 3.0
    asset_max: float = 20.0
    asset_grid_curvature: float = 2.0
    asset_grid: Optional[Tuple[float, ...]] = None

    infeasible_penalty: float = -1e10
    consumption_floor: float = 1e-6

    def __post_init__(self) -> None:
        if self.asset_grid is not None:
            object.__setattr__(self, "asset_grid", tuple(float(a) for a in self.asset_grid))
            if len(self.asset_grid) < 2:
                raise ConfigurationError(
                    f"Explicit asset grid needs >= 2 points, got {len(self.asset_grid)}"
                )
        elif self.n_assets < 2:
            raise ConfigurationError(f"n_assets must be >= 2, got {self.n_assets}")
        if self.n_productivity < 1:
            raise ConfigurationError(
                f"n_productivity must be >= 1, got {self.n_productivity}"
            )
        if self.n_periods < 1:
            raise ConfigurationError(f"n_periods must be >= 1, got {self.n_periods}")
        if self.tauchen_width <= 0:
            raise ConfigurationError(
                f"tauchen_width must be positive, got {self.tauchen_width}"
            )
        if self.asset_grid_curvature < 1.0:
            raise ConfigurationError(
                "asset_grid_curvature must be >= 1 so the grid is densest near "
                f"the borrowing limit, got {self.asset_grid_curvature}"
            )
        if self.infeasible_penalty >= 0:
            raise ConfigurationError(
                f"infeasible_penalty must be negative, got {self.infeasible_penalty}"
            )
        if self.consumption_floor <= 0:
            raise ConfigurationError(
                f"consumption_floor must be positive, got {self.consumption_floor}"
            )


def load_grid_config(filename: str, section: str) -> GridConfig:
    """
    Load grid configuration from a JSON file for a specific section.

    Args:
        filename: Path to the JSON configuration file.
        section: Key in the JSON file (e.g. 'baseline', 'estimation').

    Returns:
        Populated GridConfig instance; defaults when the file or the
        section is absent.

    Raises:
        ConfigurationError: If the section exists but holds invalid values.
    """
    if not os.path.exists(filename):
        logger.warning(
            f"Grid config file '{filename}' not found. Using defaults."
        )
        return GridConfig()

    full_data = load_json_file(filename)

    if section not in full_data:
        logger.warning(
            f"Key '{section}' not in {filename}. Using defaults."
        )
        return GridConfig()

    section_data = full_data[section]
    valid_keys = {f.name for f in fields(GridConfig)}
    ignored = sorted(set(section_data) - valid_keys)
    if ignored:
        logger.warning("Ignoring unknown grid keys in %s: %s", filename, ignored)
    filtered_data = {k: v for k, v in section_data.items() if k in valid_keys}

    return GridConfig(**filtered_data)
