"""Bootstrap standard errors for SMM estimates.

Each replication resamples persons of the empirical panel with
replacement, recomputes the target values on the resample (keeping the
provider's standard errors as weights) and re-runs the estimation. The
reported standard error is the across-replication standard deviation of
each parameter.

A replication that stops on a budget keeps its best point as a draw but
marks the whole bootstrap NOT_CONVERGED. Cancelled replications, and those
that never evaluated a point, contribute no draw.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from informality_models.config.estimation_config import MomentConfig
from informality_models.core.errors import ConvergenceStatus
from informality_models.core.panel import Panel
from informality_models.moment_calculator.panel_moments import compute_panel_moments
from informality_models.moment_calculator.targets import TargetMoments

logger = logging.getLogger(__name__)


@dataclass
class BootstrapResult:
    """Parameter draws and their standard deviations."""

    draws: np.ndarray
    std_errors: np.ndarray
    n_requested: int
    status: ConvergenceStatus
    dropped_moments: Dict[str, int] = field(default_factory=dict)
    wall_time: float = 0.0
    n_not_converged: int = 0
    n_discarded: int = 0

    @property
    def n_completed(self) -> int:
        return int(self.draws.shape[0])


def run_bootstrap(
    estimate_fn: Callable[[TargetMoments], Tuple[np.ndarray, ConvergenceStatus]],
    panel: Panel,
    targets: TargetMoments,
    borrowing_limits: Sequence[float],
    n_bootstrap: int,
    n_params: int,
    moment_config: Optional[MomentConfig] = None,
    seed: Optional[int] = None,
    max_wall_time: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> BootstrapResult:
    """
    Run the resample → recompute targets → re-estimate loop.

    Args:
        estimate_fn: Maps resampled targets to a parameter vector and the
            status of that re-estimation.
        panel: Empirical person-period panel.
        targets: Point targets; their standard errors are kept.
        borrowing_limits: Limits used for the credit-access moments.
        n_bootstrap: Number of replications B.
        n_params: Length of the parameter vector.
        moment_config: Moment thresholds.
        seed: Seed of the resampling generator.
        max_wall_time: Wall-clock budget in seconds; checked between
            replications.
        cancel_event: External cancellation signal.

    Returns:
        BootstrapResult with the completed draws. Its status is
        CANCELLED when the event was set, and NOT_CONVERGED when the time
        budget ran out or any replication did not converge.
    """
    rng = np.random.default_rng(seed)
    t_start = time.perf_counter()
    draws = []
    dropped: Dict[str, int] = {}
    status = ConvergenceStatus.CONVERGED
    n_not_converged = 0
    n_discarded = 0

    logger.info("Bootstrap: B=%d replications over %d persons", n_bootstrap, panel.n_agents)

    for b in range(n_bootstrap):
        if cancel_event is not None and cancel_event.is_set():
            status = ConvergenceStatus.CANCELLED
            logger.warning("Bootstrap cancelled after %d/%d replications", b, n_bootstrap)
            break
        if max_wall_time is not None and time.perf_counter() - t_start >= max_wall_time:
            status = ConvergenceStatus.NOT_CONVERGED
            logger.warning(
                "Bootstrap wall-clock budget (%.1fs) exhausted after %d/%d replications",
                max_wall_time, b, n_bootstrap,
            )
            break

        rows = rng.integers(0, panel.n_agents, size=panel.n_agents)
        resampled = panel.subset(rows)
        moments = compute_panel_moments(resampled, borrowing_limits, moment_config)
        for name in targets.names:
            if moments.is_missing(name):
                dropped[name] = dropped.get(name, 0) + 1

        theta_b, status_b = estimate_fn(targets.with_values(moments))
        theta_b = np.asarray(theta_b, dtype=float)
        if status_b is ConvergenceStatus.CANCELLED or not np.all(np.isfinite(theta_b)):
            n_discarded += 1
            logger.warning("  Bootstrap %d/%d discarded (status %s)",
                           b + 1, n_bootstrap, status_b.value)
            if status_b is ConvergenceStatus.CANCELLED:
                status = ConvergenceStatus.CANCELLED
                break
            continue

        if not status_b.converged:
            n_not_converged += 1
        draws.append(theta_b)
        logger.info("  Bootstrap %d/%d: θ=%s (%s)", b + 1, n_bootstrap,
                    np.array2string(theta_b, precision=4), status_b.value)

    if status is ConvergenceStatus.CONVERGED and (n_not_converged or n_discarded):
        status = ConvergenceStatus.NOT_CONVERGED
        logger.warning(
            "Bootstrap: %d replications stopped before converging, %d discarded",
            n_not_converged, n_discarded,
        )

    draws_arr = np.array(draws, dtype=float).reshape(len(draws), n_params)
    if len(draws) >= 2:
        std_errors = np.std(draws_arr, axis=0, ddof=1)
    else:
        std_errors = np.full(n_params, np.nan)

    return BootstrapResult(
        draws=draws_arr,
        std_errors=std_errors,
        n_requested=n_bootstrap,
        status=status,
        dropped_moments=dropped,
        wall_time=time.perf_counter() - t_start,
        n_not_converged=n_not_converged,
        n_discarded=n_discarded,
    )
