"""Counterfactual experiments and welfare reporting."""

from informality_models.counterfactual.engine import (
    EXPERIMENTS,
    BaselineRun,
    CounterfactualEngine,
    CounterfactualResult,
    SectorWelfareRow,
    equalize_borrowing_limits,
    equalize_income_risk,
    zero_switching_cost,
)
from informality_models.counterfactual.loss_aversion import (
    LOSS_AVERSION_FORMS,
    LossAversionBounds,
    compute_loss_aversion,
    register_loss_aversion_form,
    response_ratio,
)

__all__ = [
    "EXPERIMENTS",
    "BaselineRun",
    "CounterfactualEngine",
    "CounterfactualResult",
    "SectorWelfareRow",
    "equalize_borrowing_limits",
    "equalize_income_risk",
    "zero_switching_cost",
    "LOSS_AVERSION_FORMS",
    "LossAversionBounds",
    "compute_loss_aversion",
    "register_loss_aversion_form",
    "response_ratio",
]
