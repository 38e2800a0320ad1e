"""Unit tests for GridBuilder: asset knots, productivity nodes, StateGrid checks."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from conftest import make_grid_config, make_test_params
from informality_models.core.errors import ConfigurationError
from informality_models.vfi.grids.grid_builder import GridBuilder, StateGrid


class TestAssetGrid:

    def test_borrowing_limits_are_knots(self):
        params = make_test_params(formal_borrowing_limit=1.3, informal_borrowing_limit=0.45)
        grid = GridBuilder.build_asset_grid(make_grid_config(n_assets=11), params)
        for knot in (-1.3, -0.45, 0.0):
            assert np.any(grid == knot), f"{knot} missing from {grid}"

    def test_strictly_increasing_and_bounded(self):
        params = make_test_params()
        config = make_grid_config(n_assets=25, asset_max=8.0)
        grid = GridBuilder.build_asset_grid(config, params)
        assert np.all(np.diff(grid) > 0)
        assert grid[0] == pytest.approx(-1.0)
        assert grid[-1] == pytest.approx(8.0)

    def test_denser_near_lower_bound(self):
        params = make_test_params(formal_borrowing_limit=0.0)
        grid = GridBuilder.build_asset_grid(make_grid_config(n_assets=20), params)
        steps = np.diff(grid)
        assert steps[0] < steps[-1]

    def test_explicit_grid_used_verbatim(self):
        params = make_test_params()
        config = make_grid_config(asset_grid=(-1.0, 0.0, 1.0, 2.0, 3.0))
        grid = GridBuilder.build_asset_grid(config, params)
        np.testing.assert_array_equal(grid, [-1.0, 0.0, 1.0, 2.0, 3.0])

    def test_explicit_grid_above_limit_raises(self):
        params = make_test_params(formal_borrowing_limit=2.0)
        config = make_grid_config(asset_grid=(-1.0, 0.0, 1.0))
        with pytest.raises(ConfigurationError):
            GridBuilder.build_asset_grid(config, params)

    def test_lower_bound_above_upper_raises(self):
        params = make_test_params()
        with pytest.raises(ConfigurationError):
            GridBuilder.build_asset_grid(make_grid_config(asset_max=-2.0), params)


class TestProductivityGrid:

    def test_single_node_without_risk(self):
        params = make_test_params()
        z, P = GridBuilder.build_productivity_grid(make_grid_config(), params)
        np.testing.assert_array_equal(z, [0.0])
        assert P.shape == (2, 1, 1)

    def test_nodes_shared_across_sectors(self):
        params = make_test_params(
            formal_permanent_variance=0.01, informal_permanent_variance=0.04
        )
        config = make_grid_config(n_productivity=7, n_periods=5)
        z, P = GridBuilder.build_productivity_grid(config, params)
        assert z.shape == (7,)
        assert P.shape == (2, 7, 7)
        np.testing.assert_allclose(z, -z[::-1], atol=1e-12)
        # Riskier informal sector leaves the node less often in the formal one
        assert P[0, 3, 3] > P[1, 3, 3]

    def test_riskless_with_many_nodes_raises(self):
        params = make_test_params()
        with pytest.raises(ConfigurationError):
            GridBuilder.build_productivity_grid(make_grid_config(n_productivity=5), params)


class TestStateGrid:

    def test_build_is_read_only(self):
        grid = GridBuilder.build(make_grid_config(), make_test_params())
        assert grid.sector_names == ("formal", "informal")
        assert grid.n_periods == 3
        with pytest.raises(ValueError):
            grid.assets[0] = 99.0

    def test_rejects_bad_transitions(self):
        with pytest.raises(ConfigurationError):
            StateGrid(
                assets=np.array([0.0, 1.0]),
                productivity=np.array([0.0]),
                transitions=np.array([[[0.5]]]),
                sector_names=("formal",),
                n_periods=2,
            )

    def test_contains_knot(self):
        grid = GridBuilder.build(make_grid_config(), make_test_params())
        assert grid.contains_knot(-1.0)
        assert not grid.contains_knot(-0.123456)
