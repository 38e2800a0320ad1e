"""Configuration records: structural parameters, grids, and calibration settings."""

from informality_models.config.economic_params import (
    FORMAL,
    INFORMAL,
    ModelParams,
    SectorParams,
    load_model_params,
)
from informality_models.config.vfi_config import GridConfig, load_grid_config
from informality_models.config.estimation_config import (
    ESTIMATED_PARAMS,
    PARAM_SYMBOLS,
    CounterfactualConfig,
    EstimationConfig,
    MomentConfig,
    SimulationConfig,
    load_config_section,
)

__all__ = [
    'FORMAL',
    'INFORMAL',
    'ModelParams',
    'SectorParams',
    'load_model_params',
    'GridConfig',
    'load_grid_config',
    'ESTIMATED_PARAMS',
    'PARAM_SYMBOLS',
    'CounterfactualConfig',
    'EstimationConfig',
    'MomentConfig',
    'SimulationConfig',
    'load_config_section',
]
