# informality_models/econ/__init__.py
"""
Core economic logic module.

This package provides the preference and income primitives used by the
solver, the simulator and the counterfactual engine.
"""

from informality_models.econ.utility import CRRAUtility
from informality_models.econ.income import IncomeProcess


__all__ = [
    'CRRAUtility',
    'IncomeProcess',
]
