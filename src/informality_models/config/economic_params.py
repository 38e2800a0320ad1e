# informality_models/config/economic_params.py
"""
Structural parameter definitions and loading utilities.

This module defines the parameters that govern the lifecycle model of
sector choice: preferences, the interest rate, and one record per
labor-market sector holding its wage level, income-shock variances and
borrowing limit. Parameters are immutable after initialization so that
no component can modify them while a solve is running; changes go
through ``dataclasses.replace`` or the ``with_*`` helpers, which return
new validated instances.

Example:
    >>> from informality_models.config.economic_params import ModelParams
    >>> params = ModelParams.two_sector(formal_wage=2.0, informal_wage=1.0)
    >>> print(f"Natural borrowing limit: {params.asset_lower_bound}")
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple
import logging

from informality_models.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

FORMAL = "formal"
INFORMAL = "informal"


@dataclass(frozen=True)
class SectorParams:
    """
    Parameters of a single labor-market sector.

    Attributes:
        name: Sector label ("formal", "informal", ...).
        wage: Sector wage level w_s, strictly positive.
        permanent_variance: Variance of permanent income innovations sigma^2_eta.
        transitory_variance: Variance of transitory income shocks sigma^2_eps.
        borrowing_limit: Maximum debt b_s; assets must satisfy a' >= -b_s.

    Raises:
        ConfigurationError: On non-positive wages or negative variances/limits.
    """

    name: str
    wage: float
    permanent_variance: float = 0.0
    transitory_variance: float = 0.0
    borrowing_limit: float = 0.0

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("Sector name must be non-empty.")
        if not self.wage > 0.0:
            raise ConfigurationError(
                f"Wage of sector '{self.name}' must be positive, got {self.wage}"
            )
        if self.permanent_variance < 0.0 or self.transitory_variance < 0.0:
            raise ConfigurationError(
                f"Income variances of sector '{self.name}' must be non-negative, "
                f"got ({self.permanent_variance}, {self.transitory_variance})"
            )
        if self.borrowing_limit < 0.0:
            raise ConfigurationError(
                f"Borrowing limit of sector '{self.name}' must be non-negative, "
                f"got {self.borrowing_limit}"
            )


@dataclass(frozen=True)
class ModelParams:
    """
    Immutable container for the structural parameters of the lifecycle model.

    Attributes:
        discount_factor: Time preference parameter (beta), must be in (0, 1).
        risk_aversion: CRRA coefficient (gamma), must be positive.
        interest_rate: Net interest rate r on assets and debt.
        sectors: One ``SectorParams`` per sector, in grid order.
        switching_cost: Consumption cost kappa of changing sector.
        taste_shock_scale: Scale sigma_pref of i.i.d. extreme-value
            sector-preference shocks; zero gives deterministic choice.
        initial_productivity_variance: Variance of log productivity at entry.

    Raises:
        ConfigurationError: If any parameter is outside its admissible range
            or the formal/informal ordering is violated.
    """

    discount_factor: float = 0.95
    risk_aversion: float = 2.0
    interest_rate: float = 0.05
    sectors: Tuple[SectorParams, ...] = ()
    switching_cost: float = 0.0
    taste_shock_scale: float = 0.0
    initial_productivity_variance: float = 0.0

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not isinstance(self.sectors, tuple):
            object.__setattr__(self, "sectors", tuple(self.sectors))
        self._validate_preferences()
        self._validate_sectors()

    def _validate_preferences(self) -> None:
        if not (0 < self.discount_factor < 1):
            raise ConfigurationError(
                f"Discount factor must be in (0, 1), got {self.discount_factor}"
            )
        if not self.risk_aversion > 0:
            raise ConfigurationError(
                f"Risk aversion must be positive, got {self.risk_aversion}"
            )
        if not self.interest_rate > -1.0:
            raise ConfigurationError(
                f"Interest rate must exceed -1, got {self.interest_rate}"
            )
        if self.switching_cost < 0:
            raise ConfigurationError(
                f"Switching cost must be non-negative, got {self.switching_cost}"
            )
        if self.taste_shock_scale < 0:
            raise ConfigurationError(
                f"Taste shock scale must be non-negative, got {self.taste_shock_scale}"
            )
        if self.initial_productivity_variance < 0:
            raise ConfigurationError(
                "Initial productivity variance must be non-negative, "
                f"got {self.initial_productivity_variance}"
            )

    def _validate_sectors(self) -> None:
        if not self.sectors:
            raise ConfigurationError("At least one sector is required.")
        names = [s.name for s in self.sectors]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Sector names must be unique, got {names}")
        if FORMAL in names and INFORMAL in names:
            formal = self.sector(FORMAL)
            informal = self.sector(INFORMAL)
            if informal.borrowing_limit > formal.borrowing_limit:
                raise ConfigurationError(
                    "Informal borrowing limit must not exceed the formal one, got "
                    f"b_informal={informal.borrowing_limit} > "
                    f"b_formal={formal.borrowing_limit}"
                )
            if informal.wage > formal.wage:
                raise ConfigurationError(
                    "Formal wage must be at least the informal wage, got "
                    f"w_formal={formal.wage} < w_informal={informal.wage}"
                )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def two_sector(
        cls,
        formal_wage: float = 2.0,
        informal_wage: float = 1.0,
        formal_permanent_variance: float = 0.0,
        informal_permanent_variance: float = 0.0,
        formal_transitory_variance: float = 0.0,
        informal_transitory_variance: float = 0.0,
        formal_borrowing_limit: float = 1.0,
        informal_borrowing_limit: float = 0.0,
        **kwargs: Any,
    ) -> "ModelParams":
        """Build the canonical Formal/Informal parameter set."""
        sectors = (
            SectorParams(
                FORMAL,
                formal_wage,
                formal_permanent_variance,
                formal_transitory_variance,
                formal_borrowing_limit,
            ),
            SectorParams(
                INFORMAL,
                informal_wage,
                informal_permanent_variance,
                informal_transitory_variance,
                informal_borrowing_limit,
            ),
        )
        return cls(sectors=sectors, **kwargs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModelParams":
        """Build parameters from a JSON-style mapping.

        Raises:
            ConfigurationError: On unknown keys or malformed sector entries.
        """
        valid_keys = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - valid_keys
        if unknown:
            raise ConfigurationError(f"Unknown parameter keys: {sorted(unknown)}")
        payload = dict(data)
        try:
            payload["sectors"] = tuple(
                SectorParams(**sector) for sector in data.get("sectors", ())
            )
        except TypeError as e:
            raise ConfigurationError(f"Malformed sector entry: {e}") from e
        return cls(**payload)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def n_sectors(self) -> int:
        return len(self.sectors)

    @property
    def sector_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.sectors)

    @property
    def borrowing_limits(self) -> Tuple[float, ...]:
        return tuple(s.borrowing_limit for s in self.sectors)

    @property
    def asset_lower_bound(self) -> float:
        """Lowest admissible asset level, -max_s b_s."""
        return -max(self.borrowing_limits)

    def sector_index(self, name: str) -> int:
        try:
            return self.sector_names.index(name)
        except ValueError:
            raise ConfigurationError(
                f"Unknown sector '{name}', expected one of {self.sector_names}"
            ) from None

    def sector(self, name: str) -> SectorParams:
        return self.sectors[self.sector_index(name)]

    # ------------------------------------------------------------------
    # Functional updates
    # ------------------------------------------------------------------

    def with_sector(self, name: str, **changes: Any) -> "ModelParams":
        """Return a copy with fields of sector *name* replaced."""
        idx = self.sector_index(name)
        sectors = list(self.sectors)
        sectors[idx] = dataclasses.replace(sectors[idx], **changes)
        return dataclasses.replace(self, sectors=tuple(sectors))

    def with_borrowing_limits(
        self, formal: float, informal: float
    ) -> "ModelParams":
        """Return a copy with both borrowing limits replaced at once.

        Setting the two limits in a single step avoids a transient,
        invalid ordering between the sequential updates.
        """
        sectors = []
        for sector in self.sectors:
            if sector.name == FORMAL:
                sector = dataclasses.replace(sector, borrowing_limit=formal)
            elif sector.name == INFORMAL:
                sector = dataclasses.replace(sector, borrowing_limit=informal)
            sectors.append(sector)
        return dataclasses.replace(self, sectors=tuple(sectors))


def load_model_params(filename: str) -> ModelParams:
    """
    Load structural parameters from a JSON file.

    Args:
        filename: Path to the JSON configuration file.

    Returns:
        Populated ModelParams instance.

    Raises:
        ConfigurationError: If the file cannot be read or parameters are invalid.
    """
    from informality_models.io.file_utils import load_json_file

    data = load_json_file(filename)
    params = ModelParams.from_dict(data)
    logger.info(
        "Loaded parameters from %s (%d sectors: %s)",
        filename, params.n_sectors, ", ".join(params.sector_names),
    )
    return params
