# src/informality_models/moment_calculator/targets.py
"""
Calibration targets supplied by the empirical-moments provider.

Targets arrive as a versioned JSON document::

    {
      "schema_version": 1,
      "moments": {
        "informality_rate": {"value": 0.31, "std_error": 0.012},
        "wage_ratio":       {"value": 1.45, "std_error": null},
        ...
      }
    }

The document is validated once, at ingestion. ``std_error`` may be null,
in which case the moment receives unit weight in the SMM objective.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from informality_models.config.estimation_config import MomentConfig
from informality_models.core.errors import ConfigurationError, MissingMomentError
from informality_models.core.panel import Panel
from informality_models.config.economic_params import FORMAL, INFORMAL
from .panel_moments import MomentVector, compute_panel_moments, moment_names

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

REQUIRED_TARGETS: Tuple[str, ...] = ("informality_rate", "wage_ratio")
"""Moments every target document must provide."""

KNOWN_TARGETS: Tuple[str, ...] = tuple(moment_names((FORMAL, INFORMAL)))
"""Every moment name a target document may provide."""


@dataclass(frozen=True)
class CalibrationTarget:
    """One empirical moment with its standard error (None if unavailable)."""

    name: str
    value: float
    std_error: Optional[float] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.value):
            raise ConfigurationError(f"Target '{self.name}' has non-finite value {self.value}")
        if self.std_error is not None and not (
            math.isfinite(self.std_error) and self.std_error > 0
        ):
            raise ConfigurationError(
                f"Target '{self.name}' std_error must be positive, got {self.std_error}"
            )


@dataclass(frozen=True)
class TargetMoments:
    """Ordered, immutable collection of calibration targets."""

    targets: Tuple[CalibrationTarget, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "targets", tuple(self.targets))
        names = [t.name for t in self.targets]
        if not names:
            raise ConfigurationError("At least one calibration target is required.")
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate target names in {names}")

    def __len__(self) -> int:
        return len(self.targets)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.targets)

    @property
    def values(self) -> np.ndarray:
        return np.array([t.value for t in self.targets], dtype=float)

    @property
    def std_errors(self) -> np.ndarray:
        """Standard errors, NaN where unavailable."""
        return np.array(
            [np.nan if t.std_error is None else t.std_error for t in self.targets],
            dtype=float,
        )

    def get(self, name: str) -> CalibrationTarget:
        for target in self.targets:
            if target.name == name:
                return target
        raise MissingMomentError(name)

    def with_values(self, moments: MomentVector) -> "TargetMoments":
        """
        Replace target values with those in *moments*, keeping standard errors.

        Targets whose new value is missing are dropped and logged.
        """
        kept = []
        dropped = []
        for target in self.targets:
            if moments.is_missing(target.name):
                dropped.append(target.name)
                continue
            kept.append(
                CalibrationTarget(target.name, moments.get(target.name), target.std_error)
            )
        if dropped:
            logger.warning("Dropping targets undefined in resampled data: %s", dropped)
        return TargetMoments(tuple(kept))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TargetMoments":
        """
        Validate and parse a target document.

        Raises:
            ConfigurationError: On a schema-version mismatch, unknown or
                missing required moments, or malformed entries.
        """
        version = data.get("schema_version")
        if version != SCHEMA_VERSION:
            raise ConfigurationError(
                f"Unsupported target schema_version {version!r}; expected {SCHEMA_VERSION}"
            )
        moments = data.get("moments")
        if not isinstance(moments, Mapping):
            raise ConfigurationError("Target document needs a 'moments' object.")

        unknown = sorted(set(moments) - set(KNOWN_TARGETS))
        if unknown:
            raise ConfigurationError(f"Unknown target moments: {unknown}")
        absent = [n for n in REQUIRED_TARGETS if n not in moments]
        if absent:
            raise ConfigurationError(f"Missing required target moments: {absent}")

        targets = []
        for name in KNOWN_TARGETS:
            if name not in moments:
                continue
            entry = moments[name]
            if not isinstance(entry, Mapping) or "value" not in entry:
                raise ConfigurationError(f"Target '{name}' needs a 'value' field.")
            std_error = entry.get("std_error")
            try:
                targets.append(CalibrationTarget(
                    name,
                    float(entry["value"]),
                    None if std_error is None else float(std_error),
                ))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Malformed target '{name}': {e}") from e
        return cls(tuple(targets))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "moments": {
                t.name: {"value": t.value, "std_error": t.std_error}
                for t in self.targets
            },
        }


def load_target_moments(filename: str) -> TargetMoments:
    """
    Load calibration targets from a versioned JSON document.

    Args:
        filename: Path to the JSON file.

    Returns:
        Validated TargetMoments.

    Raises:
        ConfigurationError: If the file is unreadable or invalid.
    """
    from informality_models.io.file_utils import load_json_file

    targets = TargetMoments.from_dict(load_json_file(filename))
    logger.info("Loaded %d calibration targets from %s", len(targets), filename)
    return targets


def targets_from_panel(
    panel: Panel,
    borrowing_limits: Sequence[float],
    names: Sequence[str],
    config: Optional[MomentConfig] = None,
    std_errors: Optional[Mapping[str, float]] = None,
) -> TargetMoments:
    """
    Build targets by computing moments on a panel.

    Raises:
        MissingMomentError: If a requested moment is undefined on *panel*.
    """
    moments = compute_panel_moments(panel, borrowing_limits, config)
    std_errors = std_errors or {}
    return TargetMoments(tuple(
        CalibrationTarget(name, moments.get(name), std_errors.get(name))
        for name in names
    ))
