# informality_models/io/artifacts.py
"""
Utilities for saving and loading numerical artifacts.

This module handles persistence of solved value and policy functions
using NumPy's compressed format.

Example:
    >>> from informality_models.io.artifacts import save_solution, load_solution_arrays
    >>> save_solution(solution, "results/baseline_solution.npz")
    >>> arrays = load_solution_arrays("results/baseline_solution.npz")
"""

import logging
import os
from typing import Dict

import numpy as np

from informality_models.vfi.lifecycle import LifecycleSolution

logger = logging.getLogger(__name__)


def save_solution(solution: LifecycleSolution, filename: str) -> None:
    """
    Save a solved model to a compressed NumPy file.

    Args:
        solution: Output of ``LifecycleVFI.solve()``.
        filename: Target file path (should end with .npz).
    """
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)
    arrays = solution.to_dict()
    arrays["sector_names"] = np.array(solution.grid.sector_names)
    with open(filename, "wb") as f:
        np.savez_compressed(f, **arrays)
    logger.info("Saved lifecycle solution to %s", filename)


def load_solution_arrays(filename: str) -> Dict[str, np.ndarray]:
    """
    Load solution arrays from a compressed NumPy file.

    Args:
        filename: Path to the .npz file.

    Returns:
        Dictionary containing loaded arrays.
    """
    with np.load(filename) as data:
        return {key: data[key] for key in data.files}
