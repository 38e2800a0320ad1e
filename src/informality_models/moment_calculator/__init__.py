# src/informality_models/moment_calculator/__init__.py
"""Moment calculator module for computing target moments from panel data."""

from .compute_mean import compute_masked_mean, compute_share
from .compute_variance import compute_masked_variance
from .compute_regression import compute_asymmetric_slopes, compute_ols_slope
from .compute_transition_rate import compute_transition_rate
from .panel_moments import MomentVector, compute_panel_moments, moment_names
from .targets import (
    CalibrationTarget,
    TargetMoments,
    load_target_moments,
    targets_from_panel,
)

__all__ = [
    'compute_masked_mean',
    'compute_share',
    'compute_masked_variance',
    'compute_asymmetric_slopes',
    'compute_ols_slope',
    'compute_transition_rate',
    'MomentVector',
    'compute_panel_moments',
    'moment_names',
    'CalibrationTarget',
    'TargetMoments',
    'load_target_moments',
    'targets_from_panel',
]
