# informality_models/io/file_utils.py
"""
JSON helpers for configuration input and result export.

Read failures surface as ``ConfigurationError`` so that the CLIs can
report a bad file and exit cleanly; NumPy scalars and arrays in exported
dictionaries are converted to plain JSON types.

Example:
    >>> from informality_models.io.file_utils import load_json_file, save_json_file
    >>> cfg = load_json_file("configs/params.json")
    >>> save_json_file({"q_min": 0.01}, "results/summary.json")
"""

import json
import logging
import os
from typing import Any, Dict

import numpy as np

from informality_models.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _to_builtin(obj: Any) -> Any:
    """``json.dump`` fallback for NumPy values."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def load_json_file(filename: str) -> Dict[str, Any]:
    """
    Read a JSON object from ``filename``.

    Raises:
        ConfigurationError: Missing file, unreadable file, malformed JSON,
            or a top-level value that is not an object.
    """
    if not os.path.isfile(filename):
        message = f"File '{filename}' not found."
        logger.error(message)
        raise ConfigurationError(message)

    try:
        with open(filename, 'r') as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        message = f"Could not load {filename}: {exc}"
        logger.error(message)
        raise ConfigurationError(message) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {filename} must be a JSON object.")
    return data


def save_json_file(data: Dict[str, Any], filename: str) -> None:
    """Write ``data`` to ``filename`` as indented JSON, creating parent directories."""
    parent = os.path.dirname(filename)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        with open(filename, 'w') as handle:
            json.dump(data, handle, indent=4, default=_to_builtin)
    except OSError as exc:
        logger.error(f"Failed to save to {filename}: {exc}")
        raise
    logger.info(f"Saved data to {filename}")
