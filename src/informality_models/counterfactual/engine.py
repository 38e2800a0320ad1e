"""Counterfactual re-solves of the estimated model.

A counterfactual changes a few structural parameters of the baseline and
re-runs solve → simulate → moments on the *same* asset grid, productivity
nodes, income-process object and simulation shocks, so that differences
in outcomes come from the parameter change alone.

Example:
    >>> baseline = BaselineRun.build(params, grid_config)
    >>> engine = CounterfactualEngine(baseline)
    >>> for result in engine.run_all():
    ...     print(result.name, result.rows[0].reduction_pct)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
import logging
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from informality_models.config.economic_params import FORMAL, INFORMAL, ModelParams
from informality_models.config.estimation_config import (
    CounterfactualConfig,
    MomentConfig,
    SimulationConfig,
)
from informality_models.config.vfi_config import GridConfig
from informality_models.core.errors import ConfigurationError
from informality_models.core.panel import Panel
from informality_models.econ.income import IncomeProcess
from informality_models.econ.utility import CRRAUtility
from informality_models.moment_calculator.panel_moments import (
    MomentVector,
    compute_panel_moments,
)
from informality_models.vfi.grids.grid_builder import KNOT_TOL, GridBuilder, StateGrid
from informality_models.vfi.grids.grid_utils import tauchen_random_walk
from informality_models.vfi.lifecycle import LifecycleSolution, LifecycleVFI
from informality_models.vfi.simulation.lifecycle_simulator import (
    LifecycleSimulator,
    SimulationShocks,
)

logger = logging.getLogger(__name__)

Experiment = Callable[[ModelParams], ModelParams]


# ------------------------------------------------------------------
# Built-in experiments
# ------------------------------------------------------------------

def equalize_borrowing_limits(params: ModelParams) -> ModelParams:
    """Give informal workers the formal borrowing limit (b_I := b_F)."""
    b_formal = params.sector(FORMAL).borrowing_limit
    return params.with_borrowing_limits(b_formal, b_formal)


def equalize_income_risk(params: ModelParams) -> ModelParams:
    """Give informal workers formal income risk (both variance components)."""
    formal = params.sector(FORMAL)
    return params.with_sector(
        INFORMAL,
        permanent_variance=formal.permanent_variance,
        transitory_variance=formal.transitory_variance,
    )


def zero_switching_cost(params: ModelParams) -> ModelParams:
    """Remove the sector switching cost (κ := 0)."""
    return dataclasses.replace(params, switching_cost=0.0)


EXPERIMENTS: Dict[str, Experiment] = {
    "equalize_borrowing_limits": equalize_borrowing_limits,
    "equalize_income_risk": equalize_income_risk,
    "zero_switching_cost": zero_switching_cost,
}


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------

@dataclass(frozen=True)
class BaselineRun:
    """Everything a counterfactual must share with the baseline."""

    params: ModelParams
    grid_config: GridConfig
    grid: StateGrid
    income: IncomeProcess
    simulator: LifecycleSimulator
    shocks: SimulationShocks
    solution: LifecycleSolution
    panel: Panel
    moments: MomentVector
    moment_config: MomentConfig

    @classmethod
    def build(
        cls,
        params: ModelParams,
        grid_config: GridConfig,
        simulation_config: Optional[SimulationConfig] = None,
        moment_config: Optional[MomentConfig] = None,
        grid: Optional[StateGrid] = None,
        shocks: Optional[SimulationShocks] = None,
    ) -> "BaselineRun":
        """Solve and simulate the baseline model."""
        moment_config = moment_config if moment_config is not None else MomentConfig()
        grid = grid if grid is not None else GridBuilder.build(grid_config, params)
        income = IncomeProcess(params, grid.productivity)
        simulator = LifecycleSimulator(simulation_config, grid_config.consumption_floor)
        solution = LifecycleVFI(params, grid_config, grid=grid, income=income).solve()
        if shocks is None:
            shocks = simulator.draw_shocks(solution)
        panel = simulator.run(solution, income, shocks)
        moments = compute_panel_moments(panel, params.borrowing_limits, moment_config)
        return cls(
            params=params,
            grid_config=grid_config,
            grid=grid,
            income=income,
            simulator=simulator,
            shocks=shocks,
            solution=solution,
            panel=panel,
            moments=moments,
            moment_config=moment_config,
        )


@dataclass(frozen=True)
class SectorWelfareRow:
    """Baseline vs counterfactual consumption risk for one sector."""

    sector: str
    baseline_variance: float
    counterfactual_variance: float
    reduction_pct: float
    baseline_welfare_cost: Dict[float, float]
    counterfactual_welfare_cost: Dict[float, float]


@dataclass(frozen=True)
class CounterfactualResult:
    name: str
    params: ModelParams
    moments: MomentVector
    rows: Tuple[SectorWelfareRow, ...]
    baseline_informality_rate: float = float("nan")
    counterfactual_informality_rate: float = float("nan")

    def row(self, sector: str) -> SectorWelfareRow:
        for row in self.rows:
            if row.sector == sector:
                return row
        raise KeyError(sector)


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------

class CounterfactualEngine:
    """
    Re-solve the baseline under modified parameters and report welfare deltas.

    Args:
        baseline: Solved and simulated baseline.
        config: Experiment list and risk-aversion menu.
    """

    def __init__(
        self,
        baseline: BaselineRun,
        config: Optional[CounterfactualConfig] = None,
    ) -> None:
        self.baseline = baseline
        self.config = config if config is not None else CounterfactualConfig()

    def run_all(self) -> List[CounterfactualResult]:
        return [self.run(name) for name in self.config.experiments]

    def run(
        self,
        experiment: Union[str, Tuple[str, Experiment]],
    ) -> CounterfactualResult:
        """
        Run one experiment, given by name or as a ``(name, function)`` pair.

        Raises:
            ConfigurationError: For unknown experiment names, or when a new
                borrowing limit is not a knot of the baseline asset grid.
        """
        if isinstance(experiment, str):
            if experiment not in EXPERIMENTS:
                raise ConfigurationError(
                    f"Unknown experiment '{experiment}', expected one of {sorted(EXPERIMENTS)}"
                )
            name, modify = experiment, EXPERIMENTS[experiment]
        else:
            name, modify = experiment

        base = self.baseline
        params = modify(base.params)
        logger.info("Counterfactual '%s': b=%s, κ=%.4f", name,
                    params.borrowing_limits, params.switching_cost)

        self._check_limits_on_grid(name, params)
        grid = self._grid_for(params)
        income = self._income_for(params)

        solution = LifecycleVFI(params, base.grid_config, grid=grid, income=income).solve()
        panel = base.simulator.run(solution, income, base.shocks)
        moments = compute_panel_moments(panel, params.borrowing_limits, base.moment_config)

        rows = tuple(
            self._sector_row(sector, base.moments, moments)
            for sector in params.sector_names
        )
        for row in rows:
            logger.info(
                "  %-10s Var(ΔlnC): %.5f → %.5f (%.1f%% reduction)",
                row.sector, row.baseline_variance, row.counterfactual_variance,
                row.reduction_pct,
            )
        return CounterfactualResult(
            name=name,
            params=params,
            moments=moments,
            rows=rows,
            baseline_informality_rate=base.moments.values.get("informality_rate", np.nan),
            counterfactual_informality_rate=moments.values.get("informality_rate", np.nan),
        )

    # ------------------------------------------------------------------
    # Shared-object reuse
    # ------------------------------------------------------------------

    def _check_limits_on_grid(self, name: str, params: ModelParams) -> None:
        grid = self.baseline.grid
        for sector in params.sectors:
            limit = -sector.borrowing_limit
            if limit < grid.asset_min - KNOT_TOL or not grid.contains_knot(limit):
                raise ConfigurationError(
                    f"Counterfactual '{name}': borrowing limit {sector.borrowing_limit} "
                    f"of sector '{sector.name}' is not a knot of the baseline asset grid "
                    f"[{grid.asset_min}, {grid.asset_max}]"
                )

    def _grid_for(self, params: ModelParams) -> StateGrid:
        """Baseline grid, with transitions recomputed only if permanent risk changed."""
        base = self.baseline
        if all(
            new.permanent_variance == old.permanent_variance
            for new, old in zip(params.sectors, base.params.sectors)
        ):
            return base.grid
        transitions = np.stack([
            tauchen_random_walk(base.grid.productivity, float(np.sqrt(s.permanent_variance)))
            .numpy()
            for s in params.sectors
        ])
        return StateGrid(
            assets=base.grid.assets,
            productivity=base.grid.productivity,
            transitions=transitions,
            sector_names=base.grid.sector_names,
            n_periods=base.grid.n_periods,
        )

    def _income_for(self, params: ModelParams) -> IncomeProcess:
        """Baseline income process unless wages or transitory risk changed."""
        base = self.baseline
        if all(
            new.wage == old.wage and new.transitory_variance == old.transitory_variance
            for new, old in zip(params.sectors, base.params.sectors)
        ):
            return base.income
        return base.income.with_params(params)

    def _sector_row(
        self,
        sector: str,
        baseline: MomentVector,
        counterfactual: MomentVector,
    ) -> SectorWelfareRow:
        key = f"cons_growth_var_{sector}"
        base_var = baseline.values.get(key, np.nan)
        cf_var = counterfactual.values.get(key, np.nan)
        if np.isfinite(base_var) and base_var > 0 and np.isfinite(cf_var):
            reduction = 100.0 * (base_var - cf_var) / base_var
        elif base_var == cf_var:
            reduction = 0.0
        else:
            reduction = float("nan")
        gammas = self.config.risk_aversion_grid
        return SectorWelfareRow(
            sector=sector,
            baseline_variance=base_var,
            counterfactual_variance=cf_var,
            reduction_pct=reduction,
            baseline_welfare_cost={g: CRRAUtility.welfare_cost(base_var, g) for g in gammas},
            counterfactual_welfare_cost={g: CRRAUtility.welfare_cost(cf_var, g) for g in gammas},
        )
