"""Unit tests for calibration-target ingestion."""

from __future__ import annotations

import json

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from conftest import make_random_panel
from informality_models.core.errors import ConfigurationError, MissingMomentError
from informality_models.moment_calculator.panel_moments import MomentVector
from informality_models.moment_calculator.targets import (
    SCHEMA_VERSION,
    CalibrationTarget,
    TargetMoments,
    load_target_moments,
    targets_from_panel,
)


def _document(**extra):
    moments = {
        "informality_rate": {"value": 0.3, "std_error": 0.01},
        "wage_ratio": {"value": 1.5, "std_error": None},
    }
    moments.update(extra)
    return {"schema_version": SCHEMA_VERSION, "moments": moments}


class TestTargetMoments:

    def test_parse_document(self):
        targets = TargetMoments.from_dict(_document())
        assert targets.names == ("informality_rate", "wage_ratio")
        np.testing.assert_allclose(targets.values, [0.3, 1.5])
        assert targets.get("wage_ratio").std_error is None
        assert np.isnan(targets.std_errors[1])

    def test_schema_version_mismatch(self):
        doc = _document()
        doc["schema_version"] = 99
        with pytest.raises(ConfigurationError):
            TargetMoments.from_dict(doc)

    def test_unknown_moment_rejected(self):
        with pytest.raises(ConfigurationError):
            TargetMoments.from_dict(_document(median_height={"value": 1.7}))

    def test_required_moment_missing(self):
        doc = _document()
        del doc["moments"]["wage_ratio"]
        with pytest.raises(ConfigurationError):
            TargetMoments.from_dict(doc)

    def test_entry_without_value(self):
        with pytest.raises(ConfigurationError):
            TargetMoments.from_dict(_document(mean_assets={"std_error": 0.1}))

    def test_non_positive_std_error(self):
        with pytest.raises(ConfigurationError):
            CalibrationTarget("wage_ratio", 1.5, std_error=0.0)

    def test_get_unknown_raises(self):
        targets = TargetMoments.from_dict(_document())
        with pytest.raises(MissingMomentError):
            targets.get("mean_assets")

    def test_to_dict_round_trip(self):
        targets = TargetMoments.from_dict(_document(mean_assets={"value": 0.8}))
        assert TargetMoments.from_dict(targets.to_dict()) == targets

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "targets.json"
        path.write_text(json.dumps(_document()))
        assert len(load_target_moments(str(path))) == 2

    def test_with_values_keeps_errors_and_drops_missing(self):
        targets = TargetMoments.from_dict(_document(mean_assets={"value": 0.8}))
        moments = MomentVector({"informality_rate": 0.25, "wage_ratio": 1.7,
                                "mean_assets": float("nan")})
        updated = targets.with_values(moments)
        assert updated.names == ("informality_rate", "wage_ratio")
        assert updated.get("informality_rate").value == 0.25
        assert updated.get("informality_rate").std_error == 0.01


class TestTargetsFromPanel:

    def test_values_match_panel_moments(self):
        panel = make_random_panel()
        targets = targets_from_panel(
            panel, [1.0, 0.0], ["informality_rate", "mean_assets"],
            std_errors={"mean_assets": 0.05},
        )
        informal_share = float(np.mean(panel.sector == 1))
        assert targets.get("informality_rate").value == pytest.approx(informal_share)
        assert targets.get("mean_assets").std_error == 0.05

    def test_undefined_moment_raises(self):
        panel = make_random_panel(n_agents=2, n_periods=2)
        with pytest.raises(MissingMomentError):
            targets_from_panel(panel, [1.0, 0.0], ["smoothing_beta_formal"])
