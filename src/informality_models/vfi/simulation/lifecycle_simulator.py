"""Forward simulator for the lifecycle sector-choice model.

Generates a synthetic cohort from a solved model: each agent enters at
age 1 with zero assets, then repeatedly picks a sector, receives income,
consumes and saves, and draws next-period productivity. Every random
draw comes from a :class:`SimulationShocks` bundle so that the same
shocks can be reused across parameter values (common random numbers).
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

import numpy as np

from informality_models.config.estimation_config import SimulationConfig
from informality_models.core.errors import ConfigurationError
from informality_models.core.panel import Panel
from informality_models.core.types import NUMPY_DTYPE
from informality_models.econ.income import IncomeProcess
from informality_models.vfi.grids.grid_utils import interp_columns, nearest_node
from informality_models.vfi.lifecycle import LifecycleSolution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationShocks:
    """Pre-drawn random numbers for one synthetic cohort.

    Attributes
    ----------
    initial_productivity : np.ndarray
        ``(N,)`` standard normals for z_0.
    initial_sector : np.ndarray
        ``(N,)`` uniforms for the entry sector s_0.
    productivity : np.ndarray
        ``(N, T)`` uniforms driving the Markov productivity transitions.
    transitory : np.ndarray
        ``(N, T)`` standard normals for the transitory income shock.
    taste : np.ndarray
        ``(N, T, n_s)`` standard Gumbel draws for sector taste shocks.
    """

    initial_productivity: np.ndarray
    initial_sector: np.ndarray
    productivity: np.ndarray
    transitory: np.ndarray
    taste: np.ndarray

    def __post_init__(self) -> None:
        for arr in (
            self.initial_productivity, self.initial_sector,
            self.productivity, self.transitory, self.taste,
        ):
            arr.flags.writeable = False

    @property
    def n_agents(self) -> int:
        return int(self.transitory.shape[0])

    @property
    def n_periods(self) -> int:
        return int(self.transitory.shape[1])

    @property
    def n_sectors(self) -> int:
        return int(self.taste.shape[2])


def draw_simulation_shocks(
    n_agents: int,
    n_periods: int,
    n_sectors: int,
    seed: Optional[int] = None,
) -> SimulationShocks:
    """Draw every random number a cohort simulation needs.

    Parameters
    ----------
    n_agents, n_periods, n_sectors : int
        Cohort size, horizon and number of sectors.
    seed : int, optional
        Seed of the generator; identical seeds give identical shocks.
    """
    rng = np.random.default_rng(seed)
    return SimulationShocks(
        initial_productivity=rng.standard_normal(n_agents),
        initial_sector=rng.random(n_agents),
        productivity=rng.random((n_agents, n_periods)),
        transitory=rng.standard_normal((n_agents, n_periods)),
        taste=rng.gumbel(size=(n_agents, n_periods, n_sectors)),
    )


class LifecycleSimulator:
    """Simulate a cohort under the policies of a :class:`LifecycleSolution`.

    Sector choice compares the interpolated value of each candidate
    sector at the agent's assets, plus a scaled Gumbel taste shock when
    the model has one. Savings are interpolated from the chosen sector's
    policy. The transitory part of income is treated as a windfall: the
    policy is evaluated at the asset level that would deliver the same
    cash on hand at expected income.

    Parameters
    ----------
    config : SimulationConfig
        Cohort size, seed and entry-sector distribution (uniform across
        sectors unless ``initial_sector_shares`` is set).
    consumption_floor : float
        Minimum consumption; periods where it had to be imposed are flagged.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        consumption_floor: float = 1e-6,
    ) -> None:
        self.config = config if config is not None else SimulationConfig()
        self.consumption_floor = consumption_floor

    def draw_shocks(self, solution: LifecycleSolution) -> SimulationShocks:
        """Draw shocks sized for *solution* using the configured seed."""
        return draw_simulation_shocks(
            self.config.n_agents,
            solution.n_periods,
            solution.grid.n_sectors,
            self.config.seed,
        )

    def run(
        self,
        solution: LifecycleSolution,
        income: IncomeProcess,
        shocks: Optional[SimulationShocks] = None,
    ) -> Panel:
        """Simulate the cohort.

        Parameters
        ----------
        solution : LifecycleSolution
            Output of ``LifecycleVFI.solve()``.
        income : IncomeProcess
            Income process the solution was computed with.
        shocks : SimulationShocks, optional
            Common random numbers; drawn from the configured seed if omitted.

        Returns
        -------
        Panel
            ``(N, T)`` person-period panel.

        Raises
        ------
        ConfigurationError
            If the shocks or the entry distribution do not match the model.
        """
        grid = solution.grid
        params = solution.params
        if shocks is None:
            shocks = self.draw_shocks(solution)
        self._validate_shocks(shocks, solution)

        n_agents = shocks.n_agents
        n_periods = solution.n_periods
        n_sectors = grid.n_sectors
        gross = 1.0 + params.interest_rate
        limits = np.asarray(params.borrowing_limits, dtype=NUMPY_DTYPE)
        sigma_pref = params.taste_shock_scale
        cum_transitions = np.cumsum(grid.transitions, axis=2)

        a = np.zeros(n_agents, dtype=NUMPY_DTYPE)
        z_idx = self._initial_productivity(shocks, grid.productivity, params)
        s = self._initial_sector(shocks, n_sectors)

        shape = (n_agents, n_periods)
        out_sector = np.empty(shape, dtype=int)
        out_prev = np.empty(shape, dtype=int)
        out_assets = np.empty(shape, dtype=NUMPY_DTYPE)
        out_next = np.empty(shape, dtype=NUMPY_DTYPE)
        out_z = np.empty(shape, dtype=NUMPY_DTYPE)
        out_income = np.empty(shape, dtype=NUMPY_DTYPE)
        out_cons = np.empty(shape, dtype=NUMPY_DTYPE)
        out_floor = np.zeros(shape, dtype=bool)

        for t in range(n_periods):
            z = grid.productivity[z_idx]

            # Sector choice
            if n_sectors == 1:
                s_next = np.zeros(n_agents, dtype=int)
            else:
                values = np.column_stack([
                    interp_columns(
                        grid.assets,
                        solution.sector_values[t][:, z_idx, s, k].T,
                        a,
                    ).numpy()
                    for k in range(n_sectors)
                ])
                if sigma_pref > 0.0:
                    values = values + sigma_pref * shocks.taste[:, t, :]
                s_next = np.argmax(values, axis=1)

            # Income and savings
            y = income.sample(z, s_next, standard_normals=shocks.transitory[:, t])
            windfall = y - income.expected_income_at(z, s_next)
            a_eff = a + windfall / gross
            a_next = interp_columns(
                grid.assets,
                solution.savings_by_sector[t][:, z_idx, s, s_next].T,
                a_eff,
            ).numpy()
            a_next = np.clip(a_next, -limits[s_next], grid.asset_max)

            switch = params.switching_cost * (s_next != s)
            cash = gross * a + y - switch
            c = cash - a_next

            # Consumption floor: borrow down to the limit first
            short = np.nonzero(c < self.consumption_floor)[0]
            if short.size:
                lowest = -limits[s_next[short]]
                target = cash[short] - self.consumption_floor
                a_next[short] = np.maximum(lowest, target)
                c[short] = self.consumption_floor
                out_floor[short, t] = target < lowest

            out_sector[:, t] = s_next
            out_prev[:, t] = s
            out_assets[:, t] = a
            out_next[:, t] = a_next
            out_z[:, t] = z
            out_income[:, t] = y
            out_cons[:, t] = c

            # Productivity transition under the chosen sector's process
            cum = cum_transitions[s_next, z_idx]
            u = shocks.productivity[:, t]
            z_idx = np.minimum(
                np.sum(cum < u[:, None], axis=1), grid.n_productivity - 1
            )
            a = a_next
            s = s_next

        n_floor = int(out_floor.sum())
        if n_floor:
            logger.warning(
                "Consumption floor imposed in %d of %d person-periods.",
                n_floor, out_floor.size,
            )
        logger.info(
            "Simulated %d agents over %d periods: share in '%s' = %.2f%%",
            n_agents, n_periods, grid.sector_names[-1],
            float(np.mean(out_sector == n_sectors - 1)) * 100,
        )

        return Panel(
            sector_names=grid.sector_names,
            sector=out_sector,
            previous_sector=out_prev,
            assets=out_assets,
            next_assets=out_next,
            productivity=out_z,
            income=out_income,
            consumption=out_cons,
            floor_binding=out_floor,
            person_ids=np.arange(n_agents),
        )

    # ------------------------------------------------------------------
    # Initial conditions
    # ------------------------------------------------------------------

    def _initial_productivity(self, shocks, z_grid, params) -> np.ndarray:
        z0 = np.sqrt(params.initial_productivity_variance) * shocks.initial_productivity
        return nearest_node(z_grid, z0)

    def _initial_sector(self, shocks: SimulationShocks, n_sectors: int) -> np.ndarray:
        shares = self.config.initial_sector_shares
        if shares is None:
            shares = np.full(n_sectors, 1.0 / n_sectors)
        cum = np.cumsum(shares)
        s0 = np.searchsorted(cum, shocks.initial_sector, side="right")
        return np.minimum(s0, n_sectors - 1)

    def _validate_shocks(self, shocks: SimulationShocks, solution: LifecycleSolution) -> None:
        if shocks.n_periods != solution.n_periods:
            raise ConfigurationError(
                f"Shocks cover {shocks.n_periods} periods, model has {solution.n_periods}"
            )
        if shocks.n_sectors != solution.grid.n_sectors:
            raise ConfigurationError(
                f"Shocks cover {shocks.n_sectors} sectors, model has "
                f"{solution.grid.n_sectors}"
            )
        shares = self.config.initial_sector_shares
        if shares is not None and len(shares) != solution.grid.n_sectors:
            raise ConfigurationError(
                f"initial_sector_shares has {len(shares)} entries, model has "
                f"{solution.grid.n_sectors} sectors"
            )
