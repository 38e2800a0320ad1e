"""Simulated method of moments: objective, optimizer, bootstrap and driver."""

from .objective import (
    build_diagonal_weighting_matrix,
    compute_smm_loss,
    make_smm_objective,
    params_to_theta,
    project_theta,
    simulate_model_moments,
    theta_to_params,
)
from .optimizer import (
    EvaluationBudget,
    OptimizationResult,
    RestartResult,
    run_multistart_nelder_mead,
    sobol_starting_points,
)
from .bootstrap import BootstrapResult, run_bootstrap
from .smm import EstimationResult, ParameterRow, SMMEstimator, build_parameter_table

__all__ = [
    'build_diagonal_weighting_matrix',
    'compute_smm_loss',
    'make_smm_objective',
    'params_to_theta',
    'project_theta',
    'simulate_model_moments',
    'theta_to_params',
    'EvaluationBudget',
    'OptimizationResult',
    'RestartResult',
    'run_multistart_nelder_mead',
    'sobol_starting_points',
    'BootstrapResult',
    'run_bootstrap',
    'EstimationResult',
    'ParameterRow',
    'SMMEstimator',
    'build_parameter_table',
]
