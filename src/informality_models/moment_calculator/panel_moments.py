# src/informality_models/moment_calculator/panel_moments.py
"""Reduce a person-period panel to the named vector of target moments.

The same function is applied to simulated cohorts and to the empirical
panel, so model and data moments share one definition. Consumption and
income growth are log first differences between consecutive observed
periods; sector-specific growth moments use workers who stay in the
sector across both periods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from informality_models.config.economic_params import FORMAL, INFORMAL
from informality_models.config.estimation_config import MomentConfig
from informality_models.core.errors import MissingMomentError
from informality_models.core.panel import Panel
from .compute_mean import compute_masked_mean, compute_share
from .compute_regression import compute_asymmetric_slopes, compute_ols_slope
from .compute_transition_rate import compute_transition_rate
from .compute_variance import compute_masked_variance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MomentVector:
    """
    Named moments with their observation counts.

    Attributes:
        values: Moment name to value; NaN marks a missing moment.
        n_obs: Moment name to the number of observations it used.
    """

    values: Dict[str, float]
    n_obs: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", {k: float(v) for k, v in self.values.items()})
        object.__setattr__(self, "n_obs", {k: int(v) for k, v in self.n_obs.items()})

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self.values)

    @property
    def missing(self) -> Tuple[str, ...]:
        """Names of moments that could not be computed."""
        return tuple(k for k, v in self.values.items() if np.isnan(v))

    def is_missing(self, name: str) -> bool:
        return name not in self.values or np.isnan(self.values[name])

    def get(self, name: str) -> float:
        """Return a moment value.

        Raises:
            MissingMomentError: If the moment is absent or undefined.
        """
        if self.is_missing(name):
            raise MissingMomentError(name, self.n_obs.get(name, 0))
        return self.values[name]

    def as_array(self, names: Sequence[str]) -> np.ndarray:
        """Values for *names* in order; missing entries are NaN."""
        return np.array([self.values.get(n, np.nan) for n in names], dtype=float)

    def to_dict(self) -> Dict[str, float]:
        return dict(self.values)


def sector_moment_names(sector_name: str) -> List[str]:
    return [
        f"smoothing_beta_{sector_name}",
        f"smoothing_beta_pos_{sector_name}",
        f"smoothing_beta_neg_{sector_name}",
        f"cons_growth_var_{sector_name}",
        f"credit_access_{sector_name}",
    ]


def moment_names(sector_names: Sequence[str]) -> List[str]:
    """Names produced by :func:`compute_panel_moments` for *sector_names*."""
    names = []
    two_sector = FORMAL in sector_names and INFORMAL in sector_names
    if INFORMAL in sector_names:
        names.append("informality_rate")
    if two_sector:
        names.append("wage_ratio")
    names += ["mean_assets", "cons_growth_var_pooled"]
    for sector_name in sector_names:
        names += sector_moment_names(sector_name)
    if two_sector:
        names += ["transition_formal_to_informal", "transition_informal_to_formal"]
    return names


def compute_panel_moments(
    panel: Panel,
    borrowing_limits: Sequence[float],
    config: Optional[MomentConfig] = None,
) -> MomentVector:
    """
    Compute every target moment from a panel.

    Args:
        panel: Simulated or empirical person-period panel.
        borrowing_limits: b_s for each entry of ``panel.sector_names``.
        config: Observation threshold and credit-access margin.

    Returns:
        MomentVector. Moments with fewer than ``config.min_observations``
        usable observations are NaN and listed in ``missing``.
    """
    config = config if config is not None else MomentConfig()
    limits = np.asarray(borrowing_limits, dtype=float)
    if limits.shape != (len(panel.sector_names),):
        raise ValueError(
            f"Expected {len(panel.sector_names)} borrowing limits, got {limits.shape}"
        )

    values: Dict[str, float] = {}
    counts: Dict[str, int] = {}

    def record(name: str, value, n: int) -> None:
        counts[name] = int(n)
        value = float(value)
        values[name] = value if n >= config.min_observations else float("nan")

    sector = np.asarray(panel.sector)
    observed = panel.observed
    names = panel.sector_names
    f_code = panel.sector_code(FORMAL)
    i_code = panel.sector_code(INFORMAL)
    two_sector = FORMAL in names and INFORMAL in names

    # Levels
    if INFORMAL in names:
        record(
            "informality_rate",
            compute_share(sector == i_code, observed),
            observed.sum(),
        )
    if two_sector:
        in_f = observed & (sector == f_code)
        in_i = observed & (sector == i_code)
        mean_f = float(compute_masked_mean(panel.income, in_f))
        mean_i = float(compute_masked_mean(panel.income, in_i))
        ratio = mean_f / mean_i if mean_i > 0 else float("nan")
        record("wage_ratio", ratio, min(in_f.sum(), in_i.sum()))

    has_assets = observed & np.isfinite(panel.assets)
    record("mean_assets", compute_masked_mean(panel.assets, has_assets), has_assets.sum())

    # Growth rates
    dlnc, dlny, pair = _log_growth(panel)
    record("cons_growth_var_pooled", compute_masked_variance(dlnc, pair), pair.sum())

    for code, sector_name in enumerate(names):
        stay = pair & (sector[:, 1:] == code) & (sector[:, :-1] == code)
        n_stay = int(stay.sum())
        record(f"smoothing_beta_{sector_name}", compute_ols_slope(dlny, dlnc, stay), n_stay)

        beta_pos, beta_neg = compute_asymmetric_slopes(dlny, dlnc, stay)
        with np.errstate(invalid="ignore"):
            n_side = min(int((stay & (dlny > 0)).sum()), int((stay & (dlny < 0)).sum()))
        record(f"smoothing_beta_pos_{sector_name}", beta_pos, n_side)
        record(f"smoothing_beta_neg_{sector_name}", beta_neg, n_side)

        record(
            f"cons_growth_var_{sector_name}",
            compute_masked_variance(dlnc, stay),
            n_stay,
        )

        in_sector = has_assets & (sector == code)
        with np.errstate(invalid="ignore"):
            unconstrained = panel.assets > -limits[code] + config.credit_margin
        record(
            f"credit_access_{sector_name}",
            compute_share(unconstrained, in_sector),
            in_sector.sum(),
        )

    # Transitions
    if two_sector:
        consecutive = observed[:, 1:] & observed[:, :-1]
        for origin, destination, name in (
            (f_code, i_code, "transition_formal_to_informal"),
            (i_code, f_code, "transition_informal_to_formal"),
        ):
            n_origin = int((consecutive & (sector[:, :-1] == origin)).sum())
            record(
                name,
                compute_transition_rate(sector, consecutive, origin, destination),
                n_origin,
            )

    moments = MomentVector(values=values, n_obs=counts)
    if moments.missing:
        logger.debug(
            "Moments undefined (< %d obs): %s",
            config.min_observations, ", ".join(moments.missing),
        )
    return moments


def _log_growth(panel: Panel) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Log consumption and income growth between consecutive observed periods.

    Returns arrays of shape (n_agents, n_periods - 1) indexed by the later
    period, and the mask of usable pairs.
    """
    with np.errstate(invalid="ignore"):
        log_c = np.log(np.where(panel.consumption > 0, panel.consumption, np.nan))
        log_y = np.log(np.where(panel.income > 0, panel.income, np.nan))
    dlnc = log_c[:, 1:] - log_c[:, :-1]
    dlny = log_y[:, 1:] - log_y[:, :-1]
    observed = panel.observed
    pair = (
        observed[:, 1:] & observed[:, :-1]
        & np.isfinite(dlnc) & np.isfinite(dlny)
    )
    return dlnc, dlny, pair
