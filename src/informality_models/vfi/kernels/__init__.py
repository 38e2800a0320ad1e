"""Numerical kernels for the lifecycle solver.

Each function is a pure tensor operation on one age step. They run
eagerly so that per-evaluation changes in grid size or taste-shock scale
during estimation do not trigger graph retracing.

Modules
-------
bellman_kernels
    Expected continuation values, choice-value tensor, inner and outer
    maximisation, and the terminal value.
"""

from informality_models.vfi.kernels.bellman_kernels import (
    aggregate_sectors,
    compute_choice_values,
    compute_expected_continuation,
    compute_resources,
    maximize_savings,
    switching_cost_matrix,
    terminal_value,
)

__all__ = [
    "aggregate_sectors",
    "compute_choice_values",
    "compute_expected_continuation",
    "compute_resources",
    "maximize_savings",
    "switching_cost_matrix",
    "terminal_value",
]
