"""Multistart derivative-free optimizer with evaluation and wall-clock budgets.

Stage 1 (optional): CMA-ES from each Sobol starting point.
Stage 2: Nelder-Mead refinement of every restart.

The objective is not guaranteed smooth in theta (grid effects), hence no
gradients are used. Budget exhaustion and cancellation are not errors:
the best point evaluated so far is returned with a status tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Callable, List, Optional, Sequence
import warnings

import cma
import numpy as np
from scipy.optimize import minimize
from scipy.stats.qmc import Sobol

from informality_models.core.errors import ConvergenceStatus, WeakIdentificationWarning

logger = logging.getLogger(__name__)


class BudgetExhausted(Exception):
    """Raised inside the optimizer when an evaluation budget runs out."""

    def __init__(self, status: ConvergenceStatus, reason: str) -> None:
        super().__init__(reason)
        self.status = status
        self.reason = reason


class EvaluationBudget:
    """
    Caps on the number of objective evaluations and on wall-clock time,
    plus an external cancellation signal.

    The budget is checked before each evaluation, so a cancellation takes
    effect once the evaluation in progress has completed.
    """

    def __init__(
        self,
        max_evaluations: Optional[int] = None,
        max_wall_time: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.max_evaluations = max_evaluations
        self.max_wall_time = max_wall_time
        self.cancel_event = cancel_event
        self.n_evaluations = 0
        self.t_start = time.perf_counter()

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.t_start

    def check(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise BudgetExhausted(ConvergenceStatus.CANCELLED, "cancelled")
        if self.max_evaluations is not None and self.n_evaluations >= self.max_evaluations:
            raise BudgetExhausted(
                ConvergenceStatus.NOT_CONVERGED,
                f"evaluation budget of {self.max_evaluations} exhausted",
            )
        if self.max_wall_time is not None and self.elapsed >= self.max_wall_time:
            raise BudgetExhausted(
                ConvergenceStatus.NOT_CONVERGED,
                f"wall-clock budget of {self.max_wall_time:.1f}s exhausted",
            )


@dataclass
class RestartResult:
    start: int
    x0: np.ndarray
    theta: np.ndarray
    q: float
    evals: int
    converged: bool


@dataclass
class OptimizationResult:
    """Best point found across restarts, with diagnostics."""

    theta_hat: np.ndarray
    q_min: float
    n_evals: int
    wall_time: float
    status: ConvergenceStatus
    restarts: List[RestartResult] = field(default_factory=list)
    weakly_identified: bool = False
    message: str = ""


class _TrackedObjective:
    """Counts evaluations, enforces the budget and remembers the best point."""

    def __init__(self, objective: Callable[[np.ndarray], float], budget: EvaluationBudget):
        self.objective = objective
        self.budget = budget
        self.best_theta: Optional[np.ndarray] = None
        self.best_q = np.inf

    def __call__(self, theta) -> float:
        self.budget.check()
        theta = np.asarray(theta, dtype=float)
        value = float(self.objective(theta))
        self.budget.n_evaluations += 1
        if value < self.best_q:
            self.best_q = value
            self.best_theta = theta.copy()
        return value


def sobol_starting_points(
    bounds_lo: np.ndarray,
    bounds_hi: np.ndarray,
    n_starts: int,
    seed: Optional[int] = None,
) -> np.ndarray:
    """Scrambled Sobol points mapped into the search box, shape (n_starts, d)."""
    sobol = Sobol(d=len(bounds_lo), scramble=True, seed=seed)
    with warnings.catch_warnings():
        # Balance properties need a power-of-two sample size.
        warnings.simplefilter("ignore", UserWarning)
        points = sobol.random(n_starts)
    return bounds_lo + points * (bounds_hi - bounds_lo)


def run_multistart_nelder_mead(
    objective: Callable[[np.ndarray], float],
    bounds_lo: Sequence[float],
    bounds_hi: Sequence[float],
    n_restarts: int = 4,
    cma_max_evals: int = 0,
    nm_maxiter: int = 200,
    xatol: float = 1e-4,
    fatol: float = 1e-8,
    budget: Optional[EvaluationBudget] = None,
    identification_tol: float = 0.1,
    restart_q_tol: float = 1e-3,
    seed: Optional[int] = None,
    initial_points: Optional[np.ndarray] = None,
) -> OptimizationResult:
    """Minimise *objective* from several starting points.

    Parameters
    ----------
    objective : callable
        theta -> Q(theta). Out-of-box points are the objective's concern
        (projection and penalty); returned estimates are clipped to the box.
    bounds_lo, bounds_hi : sequence of float
        Search box.
    n_restarts : int
        Number of Sobol starting points (ignored when *initial_points*
        is given).
    cma_max_evals : int
        CMA-ES evaluations per restart before Nelder-Mead; 0 skips CMA-ES.
    nm_maxiter, xatol, fatol
        Nelder-Mead settings.
    budget : EvaluationBudget, optional
        Evaluation, wall-clock and cancellation limits.
    identification_tol : float
        Range-normalised distance above which near-optimal restarts are
        reported as weakly identified.
    restart_q_tol : float
        Restarts whose Q is within ``restart_q_tol * max(1, |Q_min|)`` of
        the best count as near-optimal.
    seed : int, optional
        Seed for the Sobol scramble and CMA-ES.
    initial_points : np.ndarray, optional
        Explicit starting points, shape (n, d).

    Returns
    -------
    OptimizationResult
    """
    bounds_lo = np.asarray(bounds_lo, dtype=float)
    bounds_hi = np.asarray(bounds_hi, dtype=float)
    ranges = bounds_hi - bounds_lo
    budget = budget if budget is not None else EvaluationBudget()
    tracked = _TrackedObjective(objective, budget)

    if initial_points is not None:
        starting_points = np.atleast_2d(np.asarray(initial_points, dtype=float))
    else:
        starting_points = sobol_starting_points(bounds_lo, bounds_hi, n_restarts, seed)
    n_starts = len(starting_points)

    restarts: List[RestartResult] = []
    status = ConvergenceStatus.CONVERGED
    message = ""

    logger.info("Optimizer: %d starting points, CMA-ES evals/start=%d, NM maxiter=%d",
                n_starts, cma_max_evals, nm_maxiter)

    for i, x0 in enumerate(starting_points):
        if hasattr(objective, 'reset_counters'):
            objective.reset_counters()
        evals_before = budget.n_evaluations
        try:
            x_start = x0
            if cma_max_evals > 0:
                x_start = _run_cma_stage(tracked, x0, bounds_lo, bounds_hi, ranges,
                                         cma_max_evals, i, seed)

            nm_result = minimize(
                tracked,
                x_start,
                method="Nelder-Mead",
                options={
                    "xatol": xatol,
                    "fatol": fatol,
                    "maxiter": nm_maxiter,
                    "maxfev": nm_maxiter * 2,
                    "adaptive": True,
                },
            )
        except BudgetExhausted as e:
            status = e.status
            message = e.reason
            logger.warning("Optimizer stopped during start %d/%d: %s", i + 1, n_starts, e.reason)
            break

        theta_i = np.clip(nm_result.x, bounds_lo, bounds_hi)
        restarts.append(RestartResult(
            start=i,
            x0=np.asarray(x0).copy(),
            theta=theta_i,
            q=float(nm_result.fun),
            evals=budget.n_evaluations - evals_before,
            converged=bool(nm_result.success),
        ))
        logger.info(
            "  Start %2d/%d DONE: Q=%.6e  evals=%d  θ=%s  converged=%s",
            i + 1, n_starts, nm_result.fun, restarts[-1].evals,
            np.array2string(theta_i, precision=4), nm_result.success,
        )

    wall_time = budget.elapsed

    if tracked.best_theta is None:
        logger.warning("Optimizer finished without any objective evaluation.")
        return OptimizationResult(
            theta_hat=np.full(len(bounds_lo), np.nan),
            q_min=np.inf,
            n_evals=0,
            wall_time=wall_time,
            status=status if status is not ConvergenceStatus.CONVERGED
            else ConvergenceStatus.NOT_CONVERGED,
            restarts=restarts,
            message=message or "no evaluations",
        )

    theta_hat = np.clip(tracked.best_theta, bounds_lo, bounds_hi)
    q_min = float(tracked.best_q)

    if status is ConvergenceStatus.CONVERGED and restarts:
        best_restart = min(restarts, key=lambda r: r.q)
        if not best_restart.converged:
            status = ConvergenceStatus.NOT_CONVERGED
            message = "Nelder-Mead iteration limit reached"

    weakly_identified = _check_identification(
        restarts, ranges, identification_tol, restart_q_tol
    )

    logger.info(
        "Optimizer done: Q=%.6e  θ=%s  evals=%d  wall=%.1fs  status=%s",
        q_min, np.array2string(theta_hat, precision=5), budget.n_evaluations,
        wall_time, status.value,
    )
    return OptimizationResult(
        theta_hat=theta_hat,
        q_min=q_min,
        n_evals=budget.n_evaluations,
        wall_time=wall_time,
        status=status,
        restarts=restarts,
        weakly_identified=weakly_identified,
        message=message,
    )


def _run_cma_stage(
    tracked: _TrackedObjective,
    x0: np.ndarray,
    bounds_lo: np.ndarray,
    bounds_hi: np.ndarray,
    ranges: np.ndarray,
    cma_max_evals: int,
    start: int,
    seed: Optional[int],
) -> np.ndarray:
    """CMA-ES global stage; falls back to *x0* if the strategy fails."""
    active = ranges > 0
    sigma0 = 0.2 * float(np.mean(ranges[active])) if np.any(active) else 0.1
    opts = {
        "bounds": [bounds_lo.tolist(), bounds_hi.tolist()],
        "maxfevals": cma_max_evals,
        "tolx": 1e-6,
        "tolfun": 1e-8,
        "verbose": -9,   # suppress CMA console output
        "seed": (seed or 0) + start + 42,
    }
    try:
        es = cma.CMAEvolutionStrategy(np.asarray(x0).tolist(), sigma0, opts)
        es.optimize(tracked)
        return np.array(es.result.xbest)
    except BudgetExhausted:
        raise
    except Exception as e:
        logger.warning("CMA-ES start %d failed: %s", start, e)
        return np.asarray(x0)


def _check_identification(
    restarts: List[RestartResult],
    ranges: np.ndarray,
    identification_tol: float,
    restart_q_tol: float,
) -> bool:
    """Warn when near-optimal restarts land on distant parameter values."""
    if len(restarts) < 2:
        return False
    q_best = min(r.q for r in restarts)
    threshold = q_best + restart_q_tol * max(1.0, abs(q_best))
    near = [r for r in restarts if r.q <= threshold]
    if len(near) < 2:
        return False

    scale = np.where(ranges > 0, ranges, 1.0)
    thetas = np.stack([r.theta for r in near]) / scale
    spread = float(np.max(np.abs(thetas[:, None, :] - thetas[None, :, :])))
    if spread <= identification_tol:
        return False

    msg = (
        f"{len(near)} restarts reach Q within {restart_q_tol:g} of the minimum "
        f"({q_best:.4e}) but differ by {spread:.3f} (range-normalised) in θ."
    )
    logger.warning("Weak identification: %s", msg)
    warnings.warn(msg, WeakIdentificationWarning, stacklevel=3)
    return True
