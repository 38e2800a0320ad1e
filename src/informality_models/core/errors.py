# informality_models/core/errors.py
"""
Error taxonomy for the structural lifecycle model.

Configuration and infeasibility problems are exceptions that abort a
solve immediately. Missing moments and exhausted optimisation budgets
are recoverable: they are reported as values on result objects
(``MomentVector.missing``, ``ConvergenceStatus``) so that calibration
scripts can inspect partial results.
"""

from enum import Enum
from typing import Optional, Tuple


class ModelError(Exception):
    """Base class for all errors raised by ``informality_models``."""


class ConfigurationError(ModelError, ValueError):
    """Invalid grid bounds, parameter ordering, variances or input schema."""


class InfeasibleStateError(ModelError):
    """A reachable state admits no feasible (sector, savings) choice.

    Attributes:
        age: Zero-based age index at which the failure occurred.
        state: ``(asset, productivity, sector_name)`` of the first
            offending grid point.
        n_states: Number of reachable states without a feasible control.
    """

    def __init__(
        self,
        message: str,
        age: Optional[int] = None,
        state: Optional[Tuple[float, float, str]] = None,
        n_states: int = 0,
    ) -> None:
        super().__init__(message)
        self.age = age
        self.state = state
        self.n_states = n_states


class MissingMomentError(ModelError, KeyError):
    """A moment could not be computed (too few observations)."""

    def __init__(self, name: str, n_obs: int = 0) -> None:
        super().__init__(name)
        self.name = name
        self.n_obs = n_obs

    def __str__(self) -> str:
        return f"Moment '{self.name}' is undefined ({self.n_obs} usable observations)."


class WeakIdentificationWarning(UserWarning):
    """Optimizer restarts with near-identical fit disagree on parameters."""


class ConvergenceStatus(str, Enum):
    """Tag attached to optimizer and bootstrap results."""

    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"
    CANCELLED = "cancelled"

    @property
    def converged(self) -> bool:
        return self is ConvergenceStatus.CONVERGED
