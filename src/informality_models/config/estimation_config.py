# informality_models/config/estimation_config.py
"""
Configuration for simulation, moment computation, SMM estimation and
counterfactual reporting.

Every setting of the calibration loop that is not a structural parameter
lives here: panel size and seed, moment thresholds, optimizer restarts,
tolerances and budgets, bootstrap replications, and the risk-aversion
menu used for welfare reporting.

Example:
    >>> from informality_models.config.estimation_config import load_config_section
    >>> est = load_config_section("config/estimation.json", "estimation", EstimationConfig)
    >>> print(est.n_restarts)
"""

from dataclasses import dataclass, field, fields
from typing import Dict, Optional, Tuple, Type, TypeVar
import os
import logging

from informality_models.core.errors import ConfigurationError
from informality_models.io.file_utils import load_json_file

logger = logging.getLogger(__name__)

ESTIMATED_PARAMS: Tuple[str, ...] = (
    "formal_borrowing_limit",
    "informal_borrowing_limit",
    "switching_cost",
    "taste_shock_scale",
)
"""Canonical ordering of theta: [b_F, b_I, kappa, sigma_pref]."""

PARAM_SYMBOLS: Dict[str, str] = {
    "formal_borrowing_limit": "b_F",
    "informal_borrowing_limit": "b_I",
    "switching_cost": "κ",
    "taste_shock_scale": "σ_pref",
}


def _default_search_bounds() -> Dict[str, Tuple[float, float]]:
    return {
        "formal_borrowing_limit": (0.0, 2.0),
        "informal_borrowing_limit": (0.0, 1.0),
        "switching_cost": (0.0, 0.5),
        "taste_shock_scale": (0.0, 0.5),
    }


@dataclass(frozen=True)
class MomentConfig:
    """
    Thresholds for computing panel moments.

    Attributes:
        min_observations: Minimum usable observations for a moment to be
            reported; below it the moment is missing (NaN).
        credit_margin: An observation counts as having credit access when
            its assets exceed the sector borrowing limit by this margin.
    """

    min_observations: int = 30
    credit_margin: float = 1e-6

    def __post_init__(self) -> None:
        if self.min_observations < 2:
            raise ConfigurationError(
                f"min_observations must be >= 2, got {self.min_observations}"
            )
        if self.credit_margin < 0:
            raise ConfigurationError(
                f"credit_margin must be non-negative, got {self.credit_margin}"
            )


@dataclass(frozen=True)
class SimulationConfig:
    """
    Synthetic cohort settings.

    Attributes:
        n_agents: Number of simulated agents N_sim.
        seed: Seed of the random source.
        initial_sector_shares: Distribution of the entry sector s_0, read
            as the stationary sector distribution of the data. When omitted
            the simulator enters agents uniformly across sectors; the
            estimation CLI sets it from the targeted informality rate.
    """

    n_agents: int = 2000
    seed: int = 0
    initial_sector_shares: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        if self.n_agents < 1:
            raise ConfigurationError(f"n_agents must be >= 1, got {self.n_agents}")
        if self.initial_sector_shares is not None:
            shares = tuple(float(s) for s in self.initial_sector_shares)
            object.__setattr__(self, "initial_sector_shares", shares)
            if any(s < 0 for s in shares) or abs(sum(shares) - 1.0) > 1e-8:
                raise ConfigurationError(
                    f"initial_sector_shares must be a probability vector, got {shares}"
                )


@dataclass(frozen=True)
class EstimationConfig:
    """
    SMM optimizer, budget and bootstrap settings.

    Attributes:
        search_bounds: Box constraints per estimated parameter.
        n_restarts: Number of Sobol starting points.
        cma_max_evals: Evaluations of the optional CMA-ES stage per restart
            (0 disables it).
        nm_maxiter: Nelder-Mead iteration cap per restart.
        xatol: Nelder-Mead parameter tolerance.
        fatol: Nelder-Mead objective tolerance.
        max_evaluations: Total objective evaluations allowed (None = no cap).
        max_wall_time: Wall-clock budget in seconds (None = no cap).
        identification_tol: Range-normalised parameter distance above which
            near-optimal restarts are reported as weakly identified.
        restart_q_tol: Restarts within this (scaled) distance of the best
            objective value count as near-optimal.
        n_bootstrap: Bootstrap replications B (0 disables bootstrap).
        bootstrap_max_wall_time: Wall-clock budget for the bootstrap loop.
        seed: Seed for restart points and bootstrap resampling.
    """

    search_bounds: Dict[str, Tuple[float, float]] = field(
        default_factory=_default_search_bounds
    )
    n_restarts: int = 4
    cma_max_evals: int = 0
    nm_maxiter: int = 200
    xatol: float = 1e-4
    fatol: float = 1e-8
    max_evaluations: Optional[int] = None
    max_wall_time: Optional[float] = None
    identification_tol: float = 0.1
    restart_q_tol: float = 1e-3
    n_bootstrap: int = 0
    bootstrap_max_wall_time: Optional[float] = None
    seed: int = 0

    def __post_init__(self) -> None:
        bounds = {k: (float(v[0]), float(v[1])) for k, v in self.search_bounds.items()}
        object.__setattr__(self, "search_bounds", bounds)
        missing = [p for p in ESTIMATED_PARAMS if p not in bounds]
        if missing:
            raise ConfigurationError(f"search_bounds missing entries for {missing}")
        for name, (lo, hi) in bounds.items():
            if name not in ESTIMATED_PARAMS:
                raise ConfigurationError(f"Unknown estimated parameter '{name}'")
            if lo > hi:
                raise ConfigurationError(
                    f"search_bounds[{name}] lower ({lo}) exceeds upper ({hi})"
                )
            if lo < 0:
                raise ConfigurationError(
                    f"search_bounds[{name}] must be non-negative, got ({lo}, {hi})"
                )
        if self.n_restarts < 1:
            raise ConfigurationError(f"n_restarts must be >= 1, got {self.n_restarts}")
        if self.n_bootstrap < 0:
            raise ConfigurationError(f"n_bootstrap must be >= 0, got {self.n_bootstrap}")
        if self.max_evaluations is not None and self.max_evaluations < 1:
            raise ConfigurationError(
                f"max_evaluations must be >= 1, got {self.max_evaluations}"
            )

    @property
    def lower_bounds(self) -> Tuple[float, ...]:
        return tuple(self.search_bounds[p][0] for p in ESTIMATED_PARAMS)

    @property
    def upper_bounds(self) -> Tuple[float, ...]:
        return tuple(self.search_bounds[p][1] for p in ESTIMATED_PARAMS)


@dataclass(frozen=True)
class CounterfactualConfig:
    """
    Reporting settings for counterfactual experiments.

    Attributes:
        experiments: Names of the experiments to run.
        risk_aversion_grid: Menu of gamma values for welfare costs.
        loss_aversion_etas: Curvature values eta for the loss-aversion bounds.
        loss_aversion_form: Name of the response-ratio mapping.
    """

    experiments: Tuple[str, ...] = (
        "equalize_borrowing_limits",
        "equalize_income_risk",
        "zero_switching_cost",
    )
    risk_aversion_grid: Tuple[float, ...] = (1.0, 2.0, 3.0, 5.0)
    loss_aversion_etas: Tuple[float, ...] = (0.5, 1.0, 2.0)
    loss_aversion_form: str = "power"

    def __post_init__(self) -> None:
        object.__setattr__(self, "experiments", tuple(self.experiments))
        object.__setattr__(
            self, "risk_aversion_grid", tuple(float(g) for g in self.risk_aversion_grid)
        )
        object.__setattr__(
            self, "loss_aversion_etas", tuple(float(e) for e in self.loss_aversion_etas)
        )
        if any(g <= 0 for g in self.risk_aversion_grid):
            raise ConfigurationError(
                f"risk_aversion_grid must be positive, got {self.risk_aversion_grid}"
            )
        if any(e <= 0 for e in self.loss_aversion_etas):
            raise ConfigurationError(
                f"loss_aversion_etas must be positive, got {self.loss_aversion_etas}"
            )


ConfigT = TypeVar("ConfigT")


def load_config_section(filename: str, section: str, cls: Type[ConfigT]) -> ConfigT:
    """
    Load one configuration dataclass from a section of a JSON file.

    Args:
        filename: Path to the JSON configuration file.
        section: Key in the JSON file.
        cls: Dataclass to instantiate.

    Returns:
        Populated instance; defaults when the file or the section is absent.
    """
    if not os.path.exists(filename):
        logger.warning(
            f"Config file '{filename}' not found. Using {cls.__name__} defaults."
        )
        return cls()

    full_data = load_json_file(filename)
    if section not in full_data:
        logger.warning(
            f"Key '{section}' not in {filename}. Using {cls.__name__} defaults."
        )
        return cls()

    valid_keys = {f.name for f in fields(cls)}
    section_data = full_data[section]
    filtered_data = {k: v for k, v in section_data.items() if k in valid_keys}
    try:
        return cls(**filtered_data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid '{section}' section in {filename}: {e}") from e
