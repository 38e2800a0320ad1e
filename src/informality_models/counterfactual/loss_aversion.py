"""
Loss-aversion bounds from asymmetric consumption responses.

The response ratio R = |beta_neg| / |beta_pos| compares how strongly
consumption follows income losses versus gains. Mapping R to a
loss-aversion coefficient lambda requires a curvature assumption eta; the
mapping is a registered functional form, ``power`` (lambda = R^(1/eta))
by default.
"""

from dataclasses import dataclass
import logging
from typing import Callable, Dict, Sequence

import numpy as np

from informality_models.core.errors import ConfigurationError
from informality_models.moment_calculator.panel_moments import MomentVector

logger = logging.getLogger(__name__)

LossAversionForm = Callable[[float, float], float]


def _power_form(ratio: float, eta: float) -> float:
    return ratio ** (1.0 / eta)


def _linear_form(ratio: float, eta: float) -> float:
    # First-order expansion of the power form around R = 1.
    return 1.0 + (ratio - 1.0) / eta


LOSS_AVERSION_FORMS: Dict[str, LossAversionForm] = {
    "power": _power_form,
    "linear": _linear_form,
}


def register_loss_aversion_form(name: str, form: LossAversionForm) -> None:
    """Make *form* available under *name* for ``compute_loss_aversion``."""
    LOSS_AVERSION_FORMS[name] = form


@dataclass(frozen=True)
class LossAversionBounds:
    """Response ratio and implied loss aversion for one sector."""

    sector: str
    beta_pos: float
    beta_neg: float
    response_ratio: float
    form: str
    lambdas: Dict[float, float]


def response_ratio(beta_neg: float, beta_pos: float) -> float:
    """R = |beta_neg| / |beta_pos|; NaN when beta_pos is zero."""
    if beta_pos == 0:
        return float("nan")
    return abs(beta_neg) / abs(beta_pos)


def compute_loss_aversion(
    moments: MomentVector,
    sector: str,
    etas: Sequence[float],
    form: str = "power",
) -> LossAversionBounds:
    """
    Loss aversion implied by a sector's asymmetric smoothing betas.

    Args:
        moments: Moments holding ``smoothing_beta_pos_<sector>`` and
            ``smoothing_beta_neg_<sector>``.
        sector: Sector name.
        etas: Curvature values.
        form: Registered mapping name.

    Raises:
        MissingMomentError: If either beta is undefined.
        ConfigurationError: For an unknown form.
    """
    if form not in LOSS_AVERSION_FORMS:
        raise ConfigurationError(
            f"Unknown loss-aversion form '{form}', expected one of {sorted(LOSS_AVERSION_FORMS)}"
        )
    beta_pos = moments.get(f"smoothing_beta_pos_{sector}")
    beta_neg = moments.get(f"smoothing_beta_neg_{sector}")
    ratio = response_ratio(beta_neg, beta_pos)
    mapping = LOSS_AVERSION_FORMS[form]
    lambdas = {
        float(eta): float(mapping(ratio, float(eta))) if np.isfinite(ratio) else float("nan")
        for eta in etas
    }
    logger.info("Loss aversion (%s, %s form): R=%.4f, λ=%s", sector, form, ratio, lambdas)
    return LossAversionBounds(
        sector=sector,
        beta_pos=beta_pos,
        beta_neg=beta_neg,
        response_ratio=ratio,
        form=form,
        lambdas=lambdas,
    )
