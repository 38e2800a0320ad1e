"""SMM objective: theta -> weighted squared distance between model and data moments.

Each evaluation rebuilds the asset grid for the candidate borrowing
limits, solves the lifecycle model, simulates the cohort with the fixed
shock bundle (common random numbers) and reduces it to moments.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from informality_models.config.economic_params import FORMAL, INFORMAL, ModelParams
from informality_models.config.estimation_config import ESTIMATED_PARAMS, MomentConfig
from informality_models.config.vfi_config import GridConfig
from informality_models.econ.income import IncomeProcess
from informality_models.moment_calculator.panel_moments import (
    MomentVector,
    compute_panel_moments,
)
from informality_models.moment_calculator.targets import TargetMoments
from informality_models.vfi.grids.grid_builder import GridBuilder, StateGrid
from informality_models.vfi.lifecycle import LifecycleVFI
from informality_models.vfi.simulation.lifecycle_simulator import (
    LifecycleSimulator,
    SimulationShocks,
)

logger = logging.getLogger(__name__)

BOUND_PENALTY = 1e4
NO_MOMENTS_LOSS = 1e10


# =========================================================================
#  Loss and weighting
# =========================================================================

def compute_smm_loss(
    moments_model: np.ndarray,
    moments_data: np.ndarray,
    weighting_matrix: np.ndarray,
) -> float:
    r"""Compute the weighted quadratic SMM loss.

    .. math::

        Q(\theta) = (m_{data} - m_{model})^\top W (m_{data} - m_{model})
    """
    diff = moments_data - moments_model
    return float(diff @ weighting_matrix @ diff)


def build_diagonal_weighting_matrix(std_errors: np.ndarray) -> np.ndarray:
    """Diagonal weighting W_ii = 1/se_i², with unit weight where se is unavailable."""
    se = np.asarray(std_errors, dtype=float)
    w_diag = np.where(np.isfinite(se) & (se > 0), 1.0 / np.square(se), 1.0)
    return np.diag(w_diag)


# =========================================================================
#  Parameter mapping
# =========================================================================

def params_to_theta(params: ModelParams) -> np.ndarray:
    """Extract theta = [b_F, b_I, κ, σ_pref] from a parameter set."""
    return np.array([
        params.sector(FORMAL).borrowing_limit,
        params.sector(INFORMAL).borrowing_limit,
        params.switching_cost,
        params.taste_shock_scale,
    ])


def theta_to_params(theta: np.ndarray, template: ModelParams) -> ModelParams:
    """Override the estimated fields of *template* with *theta*."""
    values = dict(zip(ESTIMATED_PARAMS, (float(x) for x in theta)))
    params = template.with_borrowing_limits(
        values["formal_borrowing_limit"], values["informal_borrowing_limit"]
    )
    return dataclasses.replace(
        params,
        switching_cost=values["switching_cost"],
        taste_shock_scale=values["taste_shock_scale"],
    )


def project_theta(
    theta: np.ndarray,
    bounds_lo: np.ndarray,
    bounds_hi: np.ndarray,
) -> Tuple[np.ndarray, float]:
    """Clip theta to the box and impose b_I <= b_F.

    Returns:
        Tuple of the projected theta and the quadratic penalty for the
        distance travelled.
    """
    theta = np.asarray(theta, dtype=float)
    projected = np.clip(theta, bounds_lo, bounds_hi)
    projected[1] = min(projected[1], projected[0])
    penalty = BOUND_PENALTY * float(np.sum((theta - projected) ** 2))
    return projected, penalty


# =========================================================================
#  Model moments at a given theta
# =========================================================================

def simulate_model_moments(
    params: ModelParams,
    grid_config: GridConfig,
    base_grid: StateGrid,
    income: IncomeProcess,
    simulator: LifecycleSimulator,
    shocks: SimulationShocks,
    moment_config: MomentConfig,
) -> MomentVector:
    """Solve, simulate and compute moments for *params*.

    The productivity nodes, transition matrices and income process are
    taken from the baseline; only the asset grid is rebuilt so that the
    candidate borrowing limits are exact knots.
    """
    grid = StateGrid(
        assets=GridBuilder.build_asset_grid(grid_config, params),
        productivity=base_grid.productivity,
        transitions=base_grid.transitions,
        sector_names=base_grid.sector_names,
        n_periods=base_grid.n_periods,
    )
    solution = LifecycleVFI(params, grid_config, grid=grid, income=income).solve()
    panel = simulator.run(solution, income, shocks)
    return compute_panel_moments(panel, params.borrowing_limits, moment_config)


def make_smm_objective(
    params_template: ModelParams,
    grid_config: GridConfig,
    base_grid: StateGrid,
    income: IncomeProcess,
    simulator: LifecycleSimulator,
    shocks: SimulationShocks,
    targets: TargetMoments,
    moment_config: MomentConfig,
    bounds_lo: np.ndarray,
    bounds_hi: np.ndarray,
    weighting_matrix: Optional[np.ndarray] = None,
) -> Callable[[np.ndarray], float]:
    """Build a standalone objective θ → Q(θ) for derivative-free optimizers.

    Uses common random numbers: the shock bundle is fixed across all
    evaluations.

    Parameters
    ----------
    params_template : ModelParams
        Template with calibrated parameters; estimated fields overridden.
    grid_config, base_grid, income
        Grid settings, baseline grid and income process.
    simulator, shocks
        Simulator and its fixed shock bundle.
    targets : TargetMoments
        Empirical targets.
    moment_config : MomentConfig
    bounds_lo, bounds_hi : np.ndarray
        Search box, in ``ESTIMATED_PARAMS`` order.
    weighting_matrix : np.ndarray, optional
        Defaults to the diagonal inverse-variance matrix.

    Returns
    -------
    callable
        objective(theta) -> float, where theta = [b_F, b_I, κ, σ_pref].
        Attributes ``eval_count``, ``best_eval``, ``missing_counts`` and
        ``reset_counters`` expose the evaluation history.
    """
    names = targets.names
    data = targets.values
    if weighting_matrix is None:
        weighting_matrix = build_diagonal_weighting_matrix(targets.std_errors)
    bounds_lo = np.asarray(bounds_lo, dtype=float)
    bounds_hi = np.asarray(bounds_hi, dtype=float)

    eval_count = [0]
    best_Q_seen = [np.inf]
    t_obj_start = [time.perf_counter()]
    best_eval = {"theta": None, "moments": None, "Q": np.inf}
    missing_counts: Dict[str, int] = {}

    def objective(theta: np.ndarray) -> float:
        theta_proj, penalty = project_theta(theta, bounds_lo, bounds_hi)
        params = theta_to_params(theta_proj, params_template)

        moments = simulate_model_moments(
            params, grid_config, base_grid, income, simulator, shocks, moment_config
        )
        model = moments.as_array(names)
        available = np.isfinite(model)
        if not np.all(available):
            dropped = [n for n, ok in zip(names, available) if not ok]
            for name in dropped:
                missing_counts[name] = missing_counts.get(name, 0) + 1
            logger.warning(
                "Model moments undefined at θ=[%.4f, %.4f, %.4f, %.4f]; dropped: %s",
                *theta_proj, ", ".join(dropped),
            )

        if np.any(available):
            W = weighting_matrix[np.ix_(available, available)]
            Q = compute_smm_loss(model[available], data[available], W)
        else:
            Q = NO_MOMENTS_LOSS

        val = Q + penalty
        eval_count[0] += 1
        if val < best_Q_seen[0]:
            best_Q_seen[0] = val
        if val < best_eval["Q"]:
            best_eval["Q"] = val
            best_eval["theta"] = theta_proj.copy()
            best_eval["moments"] = moments

        if eval_count[0] % 10 == 0:
            elapsed = time.perf_counter() - t_obj_start[0]
            logger.info(
                "    [eval %4d | %.0fs] Q=%.6e  best=%.6e  θ=[%.4f, %.4f, %.4f, %.4f]",
                eval_count[0], elapsed, val, best_Q_seen[0], *theta_proj,
            )
        return val

    objective.eval_count = eval_count  # type: ignore[attr-defined]
    objective.best_Q_seen = best_Q_seen  # type: ignore[attr-defined]
    objective.best_eval = best_eval  # type: ignore[attr-defined]
    objective.missing_counts = missing_counts  # type: ignore[attr-defined]

    def reset_counters():
        """Reset eval counter and timer (call before each restart)."""
        eval_count[0] = 0
        best_Q_seen[0] = np.inf
        t_obj_start[0] = time.perf_counter()

    objective.reset_counters = reset_counters  # type: ignore[attr-defined]
    return objective
