# informality_models/core/panel.py
"""
Person-period panel shared by the simulator and the moment calculator.

Simulated cohorts and the empirical survey panel are stored in the same
record so that moments are computed with identical definitions on both.
All arrays have shape ``(n_agents, n_periods)``; unobserved entries are
NaN (floats) or -1 (sector indices).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from informality_models.core.errors import ConfigurationError
from informality_models.core.types import NUMPY_DTYPE

MISSING_SECTOR = -1


@dataclass(frozen=True)
class AgentTrajectory:
    """One agent's history, as plain per-period tuples."""

    person_id: Any
    sectors: Tuple[str, ...]
    assets: Tuple[float, ...]
    income: Tuple[float, ...]
    consumption: Tuple[float, ...]
    productivity: Tuple[float, ...]


@dataclass(frozen=True)
class Panel:
    """
    Person-period panel.

    Attributes:
        sector_names: Sector labels indexed by the integer codes in ``sector``.
        sector: Sector worked in each period.
        previous_sector: Sector of the preceding period (entry sector at t=0).
        assets: Beginning-of-period assets a_t.
        next_assets: End-of-period savings a_{t+1}.
        productivity: Log permanent productivity z_t.
        income: Realised labor income y_t.
        consumption: Consumption c_t.
        floor_binding: True where the consumption floor was imposed.
        person_ids: Identifier of each row.
    """

    sector_names: Tuple[str, ...]
    sector: np.ndarray
    previous_sector: np.ndarray
    assets: np.ndarray
    next_assets: np.ndarray
    productivity: np.ndarray
    income: np.ndarray
    consumption: np.ndarray
    floor_binding: np.ndarray
    person_ids: np.ndarray

    def __post_init__(self) -> None:
        shape = self.sector.shape
        if len(shape) != 2:
            raise ConfigurationError(f"Panel arrays must be 2-D, got shape {shape}")
        for name in (
            "previous_sector", "assets", "next_assets", "productivity",
            "income", "consumption", "floor_binding",
        ):
            arr = getattr(self, name)
            if arr.shape != shape:
                raise ConfigurationError(
                    f"Panel field '{name}' has shape {arr.shape}, expected {shape}"
                )
        if self.person_ids.shape != (shape[0],):
            raise ConfigurationError(
                f"person_ids has shape {self.person_ids.shape}, expected ({shape[0]},)"
            )
        for name in (
            "sector", "previous_sector", "assets", "next_assets", "productivity",
            "income", "consumption", "floor_binding", "person_ids",
        ):
            getattr(self, name).flags.writeable = False

    # ------------------------------------------------------------------
    # Shape helpers
    # ------------------------------------------------------------------

    @property
    def n_agents(self) -> int:
        return int(self.sector.shape[0])

    @property
    def n_periods(self) -> int:
        return int(self.sector.shape[1])

    @property
    def observed(self) -> np.ndarray:
        """Mask of person-periods with a sector, income and consumption."""
        return (
            (self.sector != MISSING_SECTOR)
            & np.isfinite(self.income)
            & np.isfinite(self.consumption)
        )

    @property
    def n_observations(self) -> int:
        return int(np.sum(self.observed))

    @property
    def has_assets(self) -> bool:
        return bool(np.any(np.isfinite(self.assets)))

    def sector_code(self, name: str) -> int:
        try:
            return self.sector_names.index(name)
        except ValueError:
            return MISSING_SECTOR

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def trajectory(self, i: int) -> AgentTrajectory:
        """Return the typed history of row *i*."""
        def label(code: int) -> str:
            return self.sector_names[code] if code != MISSING_SECTOR else ""

        pid = self.person_ids[i]
        return AgentTrajectory(
            person_id=pid.item() if isinstance(pid, np.generic) else pid,
            sectors=tuple(label(int(c)) for c in self.sector[i]),
            assets=tuple(float(x) for x in self.assets[i]),
            income=tuple(float(x) for x in self.income[i]),
            consumption=tuple(float(x) for x in self.consumption[i]),
            productivity=tuple(float(x) for x in self.productivity[i]),
        )

    def subset(self, rows: Sequence[int]) -> "Panel":
        """Return a new panel made of the given rows (repeats allowed)."""
        idx = np.asarray(rows, dtype=int)
        return Panel(
            sector_names=self.sector_names,
            sector=self.sector[idx].copy(),
            previous_sector=self.previous_sector[idx].copy(),
            assets=self.assets[idx].copy(),
            next_assets=self.next_assets[idx].copy(),
            productivity=self.productivity[idx].copy(),
            income=self.income[idx].copy(),
            consumption=self.consumption[idx].copy(),
            floor_binding=self.floor_binding[idx].copy(),
            person_ids=self.person_ids[idx].copy(),
        )

    # ------------------------------------------------------------------
    # Construction from person-period rows
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        sector_names: Sequence[str],
    ) -> "Panel":
        """
        Build a panel from one mapping per person-period.

        Each record needs ``person_id``, ``period``, ``sector`` (label),
        ``income`` and ``consumption``; ``assets`` is optional. Periods are
        re-based per person so that the earliest observed period is column
        zero; gaps become missing entries.

        Raises:
            ConfigurationError: On unknown sector labels, duplicate
                person-periods, or missing required fields.
        """
        sector_names = tuple(sector_names)
        by_person: Dict[Any, Dict[int, Mapping[str, Any]]] = {}
        for row in records:
            try:
                pid = row["person_id"]
                period = int(row["period"])
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Malformed panel record {row!r}: {e}") from e
            person = by_person.setdefault(pid, {})
            if period in person:
                raise ConfigurationError(
                    f"Duplicate observation for person {pid!r}, period {period}"
                )
            person[period] = row

        if not by_person:
            raise ConfigurationError("Empirical panel has no observations.")

        first = {pid: min(periods) for pid, periods in by_person.items()}
        n_periods = max(max(p) - first[pid] for pid, p in by_person.items()) + 1
        n_agents = len(by_person)

        sector = np.full((n_agents, n_periods), MISSING_SECTOR, dtype=int)
        assets = np.full((n_agents, n_periods), np.nan, dtype=NUMPY_DTYPE)
        income = np.full_like(assets, np.nan)
        consumption = np.full_like(assets, np.nan)
        person_ids = np.empty(n_agents, dtype=object)

        for i, (pid, periods) in enumerate(by_person.items()):
            person_ids[i] = pid
            for period, row in periods.items():
                t = period - first[pid]
                label = row.get("sector")
                if label not in sector_names:
                    raise ConfigurationError(
                        f"Unknown sector {label!r} for person {pid!r}; "
                        f"expected one of {sector_names}"
                    )
                sector[i, t] = sector_names.index(label)
                income[i, t] = _as_float(row.get("income"))
                consumption[i, t] = _as_float(row.get("consumption"))
                assets[i, t] = _as_float(row.get("assets"))

        previous = np.full_like(sector, MISSING_SECTOR)
        previous[:, 1:] = sector[:, :-1]
        next_assets = np.full_like(assets, np.nan)
        next_assets[:, :-1] = assets[:, 1:]

        return cls(
            sector_names=sector_names,
            sector=sector,
            previous_sector=previous,
            assets=assets,
            next_assets=next_assets,
            productivity=np.full_like(assets, np.nan),
            income=income,
            consumption=consumption,
            floor_binding=np.zeros_like(sector, dtype=bool),
            person_ids=person_ids,
        )


def _as_float(value: Optional[Any]) -> float:
    if value is None or value == "":
        return float("nan")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Non-numeric panel value {value!r}") from None
