"""
State-space grids for the lifecycle model and the interpolation helpers
the simulator evaluates policies with.
"""

from informality_models.vfi.grids.grid_builder import GridBuilder, StateGrid
from informality_models.vfi.grids.grid_utils import (
    tauchen_random_walk,
    interp_columns,
    nearest_node,
)

__all__ = [
    'GridBuilder',
    'StateGrid',
    'tauchen_random_walk',
    'interp_columns',
    'nearest_node',
]
