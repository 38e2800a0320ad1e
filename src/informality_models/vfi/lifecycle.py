"""Backward induction for the lifecycle sector-choice model.

Solves a finite-horizon problem in which a worker, each period, chooses
the labor-market sector to work in and how much to save, subject to the
chosen sector's borrowing limit:

* **State**  — assets a, log productivity z, sector held s, age t.
* **Choice** — sector s' (switching costs κ if s' != s) and savings a'.

Finite-horizon backward induction is exact: ages are processed strictly
from T down to 1, and each age step is a single vectorised maximisation
over the whole (a, z, s) grid. There is no fixed-point iteration and no
randomness, so identical inputs reproduce identical arrays.

Architecture note
-----------------
This module is a thin orchestrator.  Bellman primitives are delegated to
``vfi.kernels.bellman_kernels``, and policy extraction to
``vfi.policies``.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, Optional

import numpy as np
import tensorflow as tf

from informality_models.config.economic_params import ModelParams
from informality_models.config.vfi_config import GridConfig
from informality_models.core.errors import ConfigurationError, InfeasibleStateError
from informality_models.core.types import TENSORFLOW_DTYPE, Array
from informality_models.econ.income import IncomeProcess
from informality_models.vfi.grids.grid_builder import KNOT_TOL, GridBuilder, StateGrid
from informality_models.vfi.kernels.bellman_kernels import (
    LIMIT_TOL,
    aggregate_sectors,
    compute_choice_values,
    compute_expected_continuation,
    compute_resources,
    maximize_savings,
    switching_cost_matrix,
    terminal_value,
)
from informality_models.vfi.policies import extract_lifecycle_policies

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifecycleSolution:
    """Value and policy functions of a solved model.

    Ages are zero-based: index ``t`` refers to model age ``t + 1``.
    ``value`` carries one extra terminal slice (age T+1).

    Attributes
    ----------
    params : ModelParams
        Parameters the model was solved for.
    grid : StateGrid
        State grid used by the solve.
    expected_income : np.ndarray
        ``(n_z, n_s)`` expected income on the grid.
    value : np.ndarray
        ``(T+1, n_a, n_z, n_s)`` value function.
    sector_values : np.ndarray
        ``(T, n_a, n_z, n_s, n_s')`` value of each candidate sector.
    savings_by_sector, consumption_by_sector : np.ndarray
        ``(T, n_a, n_z, n_s, n_s')`` optimal a' and c given s'.
    savings, consumption : np.ndarray
        ``(T, n_a, n_z, n_s)`` policies at the chosen sector.
    sector : np.ndarray
        ``(T, n_a, n_z, n_s)`` chosen sector index.
    choice_probabilities : np.ndarray
        ``(T, n_a, n_z, n_s, n_s')`` logit sector-choice probabilities.
    state_feasible : np.ndarray
        ``(T, n_a, n_z, n_s)`` True where some choice is feasible.
    reachable : np.ndarray
        ``(n_a, n_s)`` True where a >= -b_s.
    """

    params: ModelParams
    grid: StateGrid
    expected_income: np.ndarray
    value: np.ndarray
    sector_values: np.ndarray
    savings_by_sector: np.ndarray
    consumption_by_sector: np.ndarray
    savings: np.ndarray
    consumption: np.ndarray
    sector: np.ndarray
    choice_probabilities: np.ndarray
    state_feasible: np.ndarray
    reachable: np.ndarray

    def __post_init__(self) -> None:
        for name in (
            "expected_income", "value", "sector_values", "savings_by_sector",
            "consumption_by_sector", "savings", "consumption", "sector",
            "choice_probabilities", "state_feasible", "reachable",
        ):
            getattr(self, name).flags.writeable = False

    @property
    def n_periods(self) -> int:
        return int(self.savings.shape[0])

    def to_dict(self) -> Dict[str, Array]:
        """Flatten into a serialisable dictionary of arrays."""
        return {
            "V": self.value,
            "sector_values": self.sector_values,
            "policy_savings": self.savings,
            "policy_consumption": self.consumption,
            "policy_sector": self.sector,
            "policy_savings_by_sector": self.savings_by_sector,
            "choice_probabilities": self.choice_probabilities,
            "A": self.grid.assets,
            "Z": self.grid.productivity,
            "transition_matrices": self.grid.transitions,
            "expected_income": self.expected_income,
            "borrowing_limits": np.asarray(self.params.borrowing_limits),
            "interest_rate": float(self.params.interest_rate),
            "switching_cost": float(self.params.switching_cost),
        }


class LifecycleVFI:
    """Backward-induction solver for the lifecycle sector-choice model.

    State space : (Assets a, Productivity z, Sector s) × age
    Choice      : Sector s' and savings a' on the asset grid

    Parameters
    ----------
    params : ModelParams
        Structural parameters (frozen dataclass).
    config : GridConfig
        Grid sizes, horizon and numerical constants.
    grid : StateGrid, optional
        Pre-built state grid. Counterfactuals pass the baseline grid so
        that comparisons use identical discretisations.
    income : IncomeProcess, optional
        Pre-built income process on ``grid.productivity``.

    Raises
    ------
    ConfigurationError
        If a borrowing limit is looser than the grid allows or the grid
        does not match the parameters.
    """

    def __init__(
        self,
        params: ModelParams,
        config: GridConfig,
        grid: Optional[StateGrid] = None,
        income: Optional[IncomeProcess] = None,
    ) -> None:
        self.params: ModelParams = params
        self.config: GridConfig = config
        self.grid: StateGrid = grid if grid is not None else GridBuilder.build(config, params)
        self.income: IncomeProcess = (
            income if income is not None
            else IncomeProcess(params, self.grid.productivity)
        )
        self._validate_inputs()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_inputs(self) -> None:
        grid = self.grid
        if grid.sector_names != self.params.sector_names:
            raise ConfigurationError(
                f"Grid sectors {grid.sector_names} do not match parameters "
                f"{self.params.sector_names}."
            )
        if self.income.n_sectors != self.params.n_sectors:
            raise ConfigurationError("Income process and parameters disagree on sectors.")
        if not np.array_equal(self.income.z_grid, grid.productivity):
            raise ConfigurationError("Income process was built on different productivity nodes.")
        for sector in self.params.sectors:
            if -sector.borrowing_limit < grid.asset_min - KNOT_TOL:
                raise ConfigurationError(
                    f"Borrowing limit of sector '{sector.name}' ({sector.borrowing_limit}) "
                    f"is looser than the asset grid lower bound {grid.asset_min}."
                )

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def solve(self) -> LifecycleSolution:
        """Solve the model by backward induction from age T to age 1.

        Returns
        -------
        LifecycleSolution
            Value and policy functions with read-only arrays.

        Raises
        ------
        InfeasibleStateError
            If a reachable state has no feasible (sector, savings) choice.
        """
        params = self.params
        grid = self.grid
        logger.info(
            "Starting LifecycleVFI.solve() — b=%s, κ=%.4f, σ_pref=%.4f, "
            "n_a=%d, n_z=%d, n_s=%d, T=%d",
            params.borrowing_limits, params.switching_cost, params.taste_shock_scale,
            grid.n_assets, grid.n_productivity, grid.n_sectors, grid.n_periods,
        )

        asset_grid = tf.constant(grid.assets, dtype=TENSORFLOW_DTYPE)
        transitions = tf.constant(grid.transitions, dtype=TENSORFLOW_DTYPE)
        expected_income = self.income.expected_income()
        ey = tf.constant(expected_income, dtype=TENSORFLOW_DTYPE)
        limits = tf.constant(params.borrowing_limits, dtype=TENSORFLOW_DTYPE)

        resources = compute_resources(asset_grid, ey, params.interest_rate)
        switch_costs = switching_cost_matrix(grid.n_sectors, params.switching_cost)
        reachable = (
            grid.assets[:, None]
            >= -np.asarray(params.borrowing_limits)[None, :] - LIMIT_TOL
        )
        reachable_states = np.broadcast_to(
            reachable[:, None, :], (grid.n_assets, grid.n_productivity, grid.n_sectors)
        )

        v_next = terminal_value(resources, params.risk_aversion, self.config.infeasible_penalty)
        values = [v_next]
        steps = []

        for t in reversed(range(grid.n_periods)):
            step = self._solve_age(
                t, v_next, resources, switch_costs, asset_grid,
                limits, transitions, reachable_states,
            )
            steps.append(step)
            v_next = step["value"]
            values.append(v_next)

        values.reverse()
        steps.reverse()

        def stack(key: str) -> np.ndarray:
            return np.stack([s[key].numpy() for s in steps])

        solution = LifecycleSolution(
            params=params,
            grid=grid,
            expected_income=expected_income,
            value=np.stack([v.numpy() for v in values]),
            sector_values=stack("sector_values"),
            savings_by_sector=stack("savings_by_sector"),
            consumption_by_sector=stack("consumption_by_sector"),
            savings=stack("savings"),
            consumption=stack("consumption"),
            sector=stack("sector"),
            choice_probabilities=stack("probabilities"),
            state_feasible=stack("state_feasible"),
            reachable=reachable.copy(),
        )

        logger.info(
            "Solve finished: share choosing '%s' at age 1 = %.2f%%",
            params.sector_names[-1],
            float(np.mean(solution.sector[0] == grid.n_sectors - 1)) * 100,
        )
        return solution

    # ------------------------------------------------------------------
    # One age step
    # ------------------------------------------------------------------

    def _solve_age(
        self,
        t: int,
        v_next: tf.Tensor,
        resources: tf.Tensor,
        switch_costs: tf.Tensor,
        asset_grid: tf.Tensor,
        limits: tf.Tensor,
        transitions: tf.Tensor,
        reachable_states: np.ndarray,
    ) -> Dict[str, tf.Tensor]:
        """Maximise over (s', a') at every grid point of age *t*."""
        params = self.params
        continuation = compute_expected_continuation(v_next, transitions)
        rhs, feasible = compute_choice_values(
            resources,
            switch_costs,
            asset_grid,
            limits,
            continuation,
            params.discount_factor,
            params.risk_aversion,
            self.config.infeasible_penalty,
        )

        state_feasible = tf.reduce_any(feasible, axis=[3, 4])
        self._check_feasibility(t, state_feasible.numpy(), reachable_states)

        sector_values, savings_idx = maximize_savings(rhs)
        value, sector_idx, probabilities = aggregate_sectors(
            sector_values, params.taste_shock_scale
        )
        policies = extract_lifecycle_policies(
            asset_grid, resources, switch_costs, savings_idx, sector_idx
        )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Age %d solved: V in [%.4f, %.4f]",
                t + 1,
                float(tf.reduce_min(tf.boolean_mask(value, reachable_states))),
                float(tf.reduce_max(value)),
            )

        policies.update(
            value=value,
            sector_values=sector_values,
            probabilities=probabilities,
            state_feasible=state_feasible,
        )
        return policies

    def _check_feasibility(
        self,
        t: int,
        state_feasible: np.ndarray,
        reachable_states: np.ndarray,
    ) -> None:
        """Raise if any reachable state has no feasible choice."""
        bad = reachable_states & ~state_feasible
        if not np.any(bad):
            return
        a_idx, z_idx, s_idx = (int(i[0]) for i in np.nonzero(bad))
        state = (
            float(self.grid.assets[a_idx]),
            float(self.grid.productivity[z_idx]),
            self.grid.sector_names[s_idx],
        )
        n_bad = int(np.sum(bad))
        logger.error(
            "No feasible choice at age %d for %d reachable states, e.g. "
            "(a=%.4f, z=%.4f, s=%s).",
            t + 1, n_bad, *state,
        )
        raise InfeasibleStateError(
            f"Reachable state (a={state[0]:.4f}, z={state[1]:.4f}, s={state[2]}) at "
            f"age {t + 1} has no feasible (sector, savings) choice; the grid or "
            "borrowing limits are inconsistent with income levels.",
            age=t,
            state=state,
            n_states=n_bad,
        )
