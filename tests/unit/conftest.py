"""Shared test fixtures and helper utilities for unit tests."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

# Force CPU for CI — must be called before any TF ops
tf.config.set_visible_devices([], 'GPU')

from informality_models.config.economic_params import ModelParams
from informality_models.config.vfi_config import GridConfig
from informality_models.core.panel import Panel


def make_test_params(**overrides) -> ModelParams:
    """Return a small two-sector ModelParams with sensible defaults for testing."""
    defaults = dict(
        formal_wage=2.0,
        informal_wage=1.0,
        formal_borrowing_limit=1.0,
        informal_borrowing_limit=0.0,
        discount_factor=0.95,
        risk_aversion=2.0,
        interest_rate=0.05,
        switching_cost=0.0,
        taste_shock_scale=0.0,
    )
    defaults.update(overrides)
    return ModelParams.two_sector(**defaults)


def make_grid_config(**overrides) -> GridConfig:
    """Return a tiny GridConfig that solves in well under a second."""
    defaults = dict(
        n_assets=15,
        n_productivity=1,
        n_periods=3,
        asset_max=5.0,
    )
    defaults.update(overrides)
    return GridConfig(**defaults)


def make_panel(
    sector: np.ndarray,
    income: np.ndarray,
    consumption: np.ndarray,
    assets: np.ndarray = None,
    sector_names=("formal", "informal"),
) -> Panel:
    """Assemble a Panel from (n_agents, n_periods) arrays."""
    sector = np.asarray(sector, dtype=int)
    n_agents, n_periods = sector.shape
    if assets is None:
        assets = np.zeros(sector.shape)
    previous = np.full_like(sector, -1)
    previous[:, 1:] = sector[:, :-1]
    next_assets = np.full(sector.shape, np.nan)
    next_assets[:, :-1] = assets[:, 1:]
    return Panel(
        sector_names=tuple(sector_names),
        sector=sector,
        previous_sector=previous,
        assets=np.asarray(assets, dtype=float),
        next_assets=next_assets,
        productivity=np.zeros(sector.shape),
        income=np.asarray(income, dtype=float),
        consumption=np.asarray(consumption, dtype=float),
        floor_binding=np.zeros(sector.shape, dtype=bool),
        person_ids=np.arange(n_agents),
    )


def make_random_panel(n_agents: int = 200, n_periods: int = 6, seed: int = 0) -> Panel:
    """Synthetic two-sector panel with persistent sectors and noisy income."""
    rng = np.random.default_rng(seed)
    sector = np.empty((n_agents, n_periods), dtype=int)
    sector[:, 0] = rng.integers(0, 2, n_agents)
    for t in range(1, n_periods):
        switch = rng.random(n_agents) < 0.1
        sector[:, t] = np.where(switch, 1 - sector[:, t - 1], sector[:, t - 1])
    wage = np.where(sector == 0, 2.0, 1.0)
    income = wage * np.exp(0.2 * rng.standard_normal((n_agents, n_periods)))
    consumption = np.sqrt(income) * np.exp(0.01 * rng.standard_normal((n_agents, n_periods)))
    assets = rng.uniform(-1.0, 3.0, (n_agents, n_periods))
    return make_panel(sector, income, consumption, assets)
