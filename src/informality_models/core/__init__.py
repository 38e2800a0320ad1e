"""Core utilities shared by every model component.

Provide the numerical precision settings, the error taxonomy, and the
panel record used for both simulated and empirical data.
"""

from informality_models.core.types import TENSORFLOW_DTYPE, NUMPY_DTYPE, Tensor, Array
from informality_models.core.errors import (
    ConfigurationError,
    ConvergenceStatus,
    InfeasibleStateError,
    MissingMomentError,
    ModelError,
    WeakIdentificationWarning,
)
