"""Unit tests for the Panel record and the empirical panel CSV reader."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from conftest import make_random_panel
from informality_models.core.errors import ConfigurationError
from informality_models.core.panel import MISSING_SECTOR, Panel
from informality_models.io.panel_io import load_panel_csv, save_panel_csv

SECTORS = ("formal", "informal")


def _records():
    return [
        {"person_id": "a", "period": 3, "sector": "formal", "income": 2.0, "consumption": 1.5},
        {"person_id": "a", "period": 5, "sector": "informal", "income": 1.0, "consumption": 1.2},
        {"person_id": "b", "period": 0, "sector": "informal", "income": 0.9, "consumption": 0.8,
         "assets": 0.4},
    ]


class TestPanelFromRecords:

    def test_periods_rebased_per_person(self):
        panel = Panel.from_records(_records(), SECTORS)
        assert panel.n_agents == 2
        assert panel.n_periods == 3
        # Person a: observed at relative periods 0 and 2, gap at 1
        np.testing.assert_array_equal(panel.sector[0], [0, MISSING_SECTOR, 1])
        assert np.isnan(panel.income[0, 1])
        assert panel.trajectory(1).sectors[0] == "informal"

    def test_observed_mask_and_assets(self):
        panel = Panel.from_records(_records(), SECTORS)
        assert panel.n_observations == 3
        assert panel.has_assets
        assert panel.assets[1, 0] == 0.4
        assert np.isnan(panel.assets[0, 0])

    def test_unknown_sector_raises(self):
        rows = _records() + [
            {"person_id": "c", "period": 0, "sector": "public", "income": 1, "consumption": 1}
        ]
        with pytest.raises(ConfigurationError):
            Panel.from_records(rows, SECTORS)

    def test_duplicate_period_raises(self):
        rows = _records() + [dict(_records()[0])]
        with pytest.raises(ConfigurationError):
            Panel.from_records(rows, SECTORS)

    def test_empty_raises(self):
        with pytest.raises(ConfigurationError):
            Panel.from_records([], SECTORS)


class TestPanelViews:

    def test_subset_repeats_rows(self):
        panel = make_random_panel(n_agents=5, n_periods=3)
        sub = panel.subset([4, 4, 0])
        assert sub.n_agents == 3
        np.testing.assert_array_equal(sub.income[0], panel.income[4])
        np.testing.assert_array_equal(sub.income[1], panel.income[4])

    def test_arrays_are_read_only(self):
        panel = make_random_panel(n_agents=3, n_periods=2)
        with pytest.raises(ValueError):
            panel.consumption[0, 0] = 1.0

    def test_shape_mismatch_raises(self):
        panel = make_random_panel(n_agents=3, n_periods=2)
        with pytest.raises(ConfigurationError):
            Panel(
                sector_names=SECTORS,
                sector=np.zeros((3, 2), dtype=int),
                previous_sector=np.zeros((3, 2), dtype=int),
                assets=np.zeros((3, 3)),
                next_assets=np.zeros((3, 2)),
                productivity=np.zeros((3, 2)),
                income=panel.income.copy(),
                consumption=panel.consumption.copy(),
                floor_binding=np.zeros((3, 2), dtype=bool),
                person_ids=np.arange(3),
            )


class TestPanelCsv:

    def test_csv_round_trip(self, tmp_path):
        panel = make_random_panel(n_agents=8, n_periods=4)
        path = str(tmp_path / "panel.csv")
        save_panel_csv(panel, path)
        loaded = load_panel_csv(path, SECTORS)
        assert loaded.n_agents == 8
        np.testing.assert_array_equal(loaded.sector, panel.sector)
        np.testing.assert_allclose(loaded.income, panel.income)
        np.testing.assert_allclose(loaded.assets, panel.assets)

    def test_missing_column_raises(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("person_id,period,sector,income\n1,0,formal,2.0\n")
        with pytest.raises(ConfigurationError):
            load_panel_csv(str(path), SECTORS)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_panel_csv(str(tmp_path / "nope.csv"), SECTORS)
