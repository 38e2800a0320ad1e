"""Simulators for post-solve analysis.

Modules
-------
lifecycle_simulator
    Forward simulation of a cohort under solved lifecycle policies.
"""

from informality_models.vfi.simulation.lifecycle_simulator import (
    LifecycleSimulator,
    SimulationShocks,
    draw_simulation_shocks,
)

__all__ = [
    "LifecycleSimulator",
    "SimulationShocks",
    "draw_simulation_shocks",
]
