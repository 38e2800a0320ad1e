"""Lifecycle solver and simulator for the sector-choice model.

This package provides:

* :class:`LifecycleVFI` — backward-induction solver over
  (assets × productivity × sector) for every age.
* :class:`LifecycleSolution` — read-only value and policy arrays.
* :class:`LifecycleSimulator` — forward simulation of a synthetic cohort.

Sub-packages
------------
kernels
    Tensor primitives of one Bellman step.
simulation
    Post-solve forward simulator and common random numbers.
grids
    Grid construction and interpolation utilities.

Modules
-------
policies
    Policy extraction from discrete maximisers.
lifecycle
    Backward-induction orchestrator.
"""

from informality_models.vfi.lifecycle import LifecycleSolution, LifecycleVFI
from informality_models.vfi.simulation import (
    LifecycleSimulator,
    SimulationShocks,
    draw_simulation_shocks,
)

__all__ = [
    "LifecycleSimulator",
    "LifecycleSolution",
    "LifecycleVFI",
    "SimulationShocks",
    "draw_simulation_shocks",
]
