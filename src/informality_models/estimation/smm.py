"""Simulated method of moments estimation of the sector-choice model.

Estimates theta = (b_F, b_I, κ, σ_pref); every other parameter is
calibrated externally and held fixed. The productivity grid, income
process and simulation shocks are built once per estimator and shared by
all evaluations.

Example:
    >>> estimator = SMMEstimator(params, grid_config, targets)
    >>> result = estimator.estimate()
    >>> print(result.params.switching_cost, result.status)
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Dict, List, Optional

import numpy as np

from informality_models.config.economic_params import FORMAL, INFORMAL, ModelParams
from informality_models.config.estimation_config import (
    ESTIMATED_PARAMS,
    PARAM_SYMBOLS,
    EstimationConfig,
    MomentConfig,
    SimulationConfig,
)
from informality_models.config.vfi_config import GridConfig
from informality_models.core.errors import ConfigurationError, ConvergenceStatus
from informality_models.core.panel import Panel
from informality_models.econ.income import IncomeProcess
from informality_models.moment_calculator.panel_moments import MomentVector
from informality_models.moment_calculator.targets import TargetMoments
from informality_models.vfi.grids.grid_builder import GridBuilder
from informality_models.vfi.simulation.lifecycle_simulator import (
    LifecycleSimulator,
    draw_simulation_shocks,
)
from .bootstrap import BootstrapResult, run_bootstrap
from .objective import (
    make_smm_objective,
    params_to_theta,
    project_theta,
    simulate_model_moments,
    theta_to_params,
)
from .optimizer import EvaluationBudget, RestartResult, run_multistart_nelder_mead

logger = logging.getLogger(__name__)


@dataclass
class EstimationResult:
    """Outcome of one SMM estimation.

    ``status`` is ``NOT_CONVERGED`` or ``CANCELLED`` when a budget cut the
    search short; ``params`` then holds the best point evaluated so far.
    When no point was evaluated ``theta`` is NaN and ``params`` is the
    template.
    """

    params: ModelParams
    theta: np.ndarray
    q_min: float
    status: ConvergenceStatus
    n_evals: int
    wall_time: float
    targets: TargetMoments
    model_moments: Optional[MomentVector] = None
    weakly_identified: bool = False
    restarts: List[RestartResult] = field(default_factory=list)
    missing_moment_counts: Dict[str, int] = field(default_factory=dict)
    bootstrap: Optional[BootstrapResult] = None

    @property
    def converged(self) -> bool:
        return self.status.converged

    @property
    def standard_errors(self) -> np.ndarray:
        if self.bootstrap is None:
            return np.full(len(ESTIMATED_PARAMS), np.nan)
        return self.bootstrap.std_errors


@dataclass(frozen=True)
class ParameterRow:
    name: str
    symbol: str
    value: float
    std_error: float
    source: str


class SMMEstimator:
    """
    SMM estimator for (b_F, b_I, κ, σ_pref).

    Args:
        params: Template parameters; calibrated fields are kept.
        grid_config: Grid settings.
        targets: Empirical target moments.
        config: Optimizer, budget and bootstrap settings.
        simulation_config: Synthetic cohort settings.
        moment_config: Moment thresholds.
    """

    def __init__(
        self,
        params: ModelParams,
        grid_config: GridConfig,
        targets: TargetMoments,
        config: Optional[EstimationConfig] = None,
        simulation_config: Optional[SimulationConfig] = None,
        moment_config: Optional[MomentConfig] = None,
    ) -> None:
        self.params = params
        self.grid_config = grid_config
        self.targets = targets
        self.config = config if config is not None else EstimationConfig()
        self.simulation_config = (
            simulation_config if simulation_config is not None else SimulationConfig()
        )
        self.moment_config = moment_config if moment_config is not None else MomentConfig()

        self.base_grid = GridBuilder.build(grid_config, params)
        self.income = IncomeProcess(params, self.base_grid.productivity)
        self.simulator = LifecycleSimulator(
            self.simulation_config, grid_config.consumption_floor
        )
        self.shocks = draw_simulation_shocks(
            self.simulation_config.n_agents,
            grid_config.n_periods,
            params.n_sectors,
            self.simulation_config.seed,
        )
        self.bounds_lo = np.array(self.config.lower_bounds)
        self.bounds_hi = np.array(self.config.upper_bounds)
        self._check_search_box()

    def _check_search_box(self) -> None:
        """
        Reject a search box containing theta the solver cannot handle.

        A state is feasible when some (sector, savings) choice leaves positive
        consumption. The hardest state of sector s sits at a = -b_s with the
        lowest productivity node, and it is hardest when b_s is at its upper
        bound, the other limit at its lower bound and κ at its upper bound.

        Raises:
            ConfigurationError: If the loosest limits break the asset grid or
                leave that state without a feasible choice.
        """
        lo, hi = self.bounds_lo, self.bounds_hi
        b_informal_max = min(hi[1], hi[0])
        corners = {
            FORMAL: (np.array([hi[0], min(lo[1], hi[0]), hi[2], lo[3]]),
                     "formal_borrowing_limit"),
            INFORMAL: (np.array([max(lo[0], b_informal_max), b_informal_max, hi[2], lo[3]]),
                       "informal_borrowing_limit"),
        }
        lowest_income = self.income.expected_income().min(axis=0)

        for name, (corner, bound) in corners.items():
            params = theta_to_params(corner, self.params)
            GridBuilder.build_asset_grid(self.grid_config, params)

            state = params.sector_names.index(name)
            limits = np.asarray(params.borrowing_limits, dtype=float)
            costs = np.full(len(limits), params.switching_cost)
            costs[state] = 0.0
            cash = -(1.0 + params.interest_rate) * limits[state] + lowest_income - costs
            best_c = float(np.max(cash + limits))
            if best_c <= 0.0:
                raise ConfigurationError(
                    f"search_bounds['{bound}'] upper bound {limits[state]:.4f} is "
                    f"infeasible: a {name} worker at a={-limits[state]:.4f} with the "
                    f"lowest productivity has no choice with positive consumption "
                    f"(best {best_c:.4f})."
                )

    # ------------------------------------------------------------------
    # Parameter mapping
    # ------------------------------------------------------------------

    def params_from_theta(self, theta: np.ndarray) -> ModelParams:
        projected, _ = project_theta(theta, self.bounds_lo, self.bounds_hi)
        return theta_to_params(projected, self.params)

    def model_moments(self, theta: np.ndarray) -> MomentVector:
        """Simulated moments at *theta* with the estimator's fixed shocks."""
        return simulate_model_moments(
            self.params_from_theta(theta),
            self.grid_config,
            self.base_grid,
            self.income,
            self.simulator,
            self.shocks,
            self.moment_config,
        )

    def objective(self, targets: Optional[TargetMoments] = None):
        return make_smm_objective(
            self.params,
            self.grid_config,
            self.base_grid,
            self.income,
            self.simulator,
            self.shocks,
            targets if targets is not None else self.targets,
            self.moment_config,
            self.bounds_lo,
            self.bounds_hi,
        )

    # ------------------------------------------------------------------
    # Estimation
    # ------------------------------------------------------------------

    def estimate(
        self,
        targets: Optional[TargetMoments] = None,
        initial_theta: Optional[np.ndarray] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> EstimationResult:
        """
        Minimise Q(theta) from multiple restarts.

        Args:
            targets: Override the estimator's targets (used by the bootstrap).
            initial_theta: Explicit starting point(s), shape (d,) or (n, d);
                Sobol points are used when omitted.
            cancel_event: Set from another thread to stop after the current
                evaluation.

        Returns:
            EstimationResult; never raises on budget exhaustion.
        """
        targets = targets if targets is not None else self.targets
        cfg = self.config
        objective = self.objective(targets)
        budget = EvaluationBudget(cfg.max_evaluations, cfg.max_wall_time, cancel_event)

        logger.info(
            "SMM estimation: %d targets, %d agents, bounds lo=%s hi=%s",
            len(targets), self.simulation_config.n_agents,
            self.bounds_lo.tolist(), self.bounds_hi.tolist(),
        )
        opt = run_multistart_nelder_mead(
            objective,
            self.bounds_lo,
            self.bounds_hi,
            n_restarts=cfg.n_restarts,
            cma_max_evals=cfg.cma_max_evals,
            nm_maxiter=cfg.nm_maxiter,
            xatol=cfg.xatol,
            fatol=cfg.fatol,
            budget=budget,
            identification_tol=cfg.identification_tol,
            restart_q_tol=cfg.restart_q_tol,
            seed=cfg.seed,
            initial_points=initial_theta,
        )

        if np.all(np.isfinite(opt.theta_hat)):
            theta_hat, _ = project_theta(opt.theta_hat, self.bounds_lo, self.bounds_hi)
            params_hat = theta_to_params(theta_hat, self.params)
        else:
            theta_hat = np.full(len(ESTIMATED_PARAMS), np.nan)
            params_hat = self.params
        best = objective.best_eval
        if best["theta"] is not None and np.allclose(best["theta"], theta_hat):
            model_moments = best["moments"]
        else:
            model_moments = None

        missing = dict(objective.missing_counts)
        if missing:
            logger.warning("Missing model moments over the search: %s", missing)
        if not opt.status.converged:
            logger.warning("SMM estimation ended with status %s: %s",
                           opt.status.value, opt.message)

        return EstimationResult(
            params=params_hat,
            theta=theta_hat,
            q_min=opt.q_min,
            status=opt.status,
            n_evals=opt.n_evals,
            wall_time=opt.wall_time,
            targets=targets,
            model_moments=model_moments,
            weakly_identified=opt.weakly_identified,
            restarts=opt.restarts,
            missing_moment_counts=missing,
        )

    def bootstrap(
        self,
        result: EstimationResult,
        panel: Panel,
        cancel_event: Optional[threading.Event] = None,
    ) -> BootstrapResult:
        """
        Bootstrap standard errors around *result* and attach them to it.

        Each replication restarts the optimizer from the point estimate, or
        from the template parameters when the estimate has no evaluated point.
        """
        cfg = self.config
        if np.all(np.isfinite(result.theta)):
            start = result.theta
        else:
            start = params_to_theta(self.params)

        def estimate_fn(resampled: TargetMoments):
            replicate = self.estimate(
                targets=resampled,
                initial_theta=start,
                cancel_event=cancel_event,
            )
            return replicate.theta, replicate.status

        boot = run_bootstrap(
            estimate_fn,
            panel,
            result.targets,
            _panel_limits(panel, result.params),
            cfg.n_bootstrap,
            len(ESTIMATED_PARAMS),
            moment_config=self.moment_config,
            seed=cfg.seed,
            max_wall_time=cfg.bootstrap_max_wall_time,
            cancel_event=cancel_event,
        )
        result.bootstrap = boot
        return boot


def _panel_limits(panel: Panel, params: ModelParams):
    """Borrowing limits aligned with the panel's sector order."""
    return [params.sector(name).borrowing_limit for name in panel.sector_names]


def build_parameter_table(result: EstimationResult) -> List[ParameterRow]:
    """Rows for the parameter table: estimated first, then calibrated."""
    se = result.standard_errors
    rows = [
        ParameterRow(name, PARAM_SYMBOLS[name], float(value), float(err), "estimated")
        for name, value, err in zip(ESTIMATED_PARAMS, result.theta, se)
    ]
    p = result.params
    calibrated = [
        ("discount_factor", "β", p.discount_factor),
        ("risk_aversion", "γ", p.risk_aversion),
        ("interest_rate", "r", p.interest_rate),
        ("initial_productivity_variance", "σ²_z0", p.initial_productivity_variance),
    ]
    for sector in p.sectors:
        calibrated += [
            (f"wage_{sector.name}", f"w_{sector.name}", sector.wage),
            (f"permanent_variance_{sector.name}", f"σ²_η,{sector.name}",
             sector.permanent_variance),
            (f"transitory_variance_{sector.name}", f"σ²_ε,{sector.name}",
             sector.transitory_variance),
        ]
    rows += [
        ParameterRow(name, symbol, float(value), float("nan"), "calibrated")
        for name, symbol, value in calibrated
    ]
    return rows
