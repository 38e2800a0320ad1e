# informality_models/io/panel_io.py
"""
Reading the empirical person-period panel.

The panel is a CSV with one row per person-period and the columns
``person_id, period, sector, income, consumption`` plus an optional
``assets`` column. Sector labels must match the model's sector names.
"""

import csv
import logging
import os
from typing import Sequence

from informality_models.core.errors import ConfigurationError
from informality_models.core.panel import Panel

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("person_id", "period", "sector", "income", "consumption")


def load_panel_csv(filename: str, sector_names: Sequence[str]) -> Panel:
    """
    Load the empirical panel used for bootstrap resampling.

    Args:
        filename: Path to the CSV file.
        sector_names: Model sector labels, in model order.

    Returns:
        Panel with periods re-based per person.

    Raises:
        ConfigurationError: If the file is missing, a required column is
            absent, or a row is malformed.
    """
    if not os.path.exists(filename):
        raise ConfigurationError(f"Panel file '{filename}' not found.")

    with open(filename, "r", newline="") as f:
        reader = csv.DictReader(f)
        columns = reader.fieldnames or []
        absent = [c for c in REQUIRED_COLUMNS if c not in columns]
        if absent:
            raise ConfigurationError(f"Panel file {filename} lacks columns {absent}")
        panel = Panel.from_records(reader, sector_names)

    logger.info(
        "Loaded panel from %s: %d persons, %d periods, %d observations%s",
        filename, panel.n_agents, panel.n_periods, panel.n_observations,
        "" if panel.has_assets else " (no assets column)",
    )
    return panel


def save_panel_csv(panel: Panel, filename: str) -> None:
    """Write the observed person-periods of *panel* in the input format."""
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)
    observed = panel.observed
    with open(filename, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(REQUIRED_COLUMNS) + ["assets"])
        writer.writeheader()
        for i in range(panel.n_agents):
            trajectory = panel.trajectory(i)
            for t in range(panel.n_periods):
                if not observed[i, t]:
                    continue
                writer.writerow({
                    "person_id": trajectory.person_id,
                    "period": t,
                    "sector": trajectory.sectors[t],
                    "income": trajectory.income[t],
                    "consumption": trajectory.consumption[t],
                    "assets": trajectory.assets[t],
                })
    logger.info("Panel CSV saved: %s", filename)
