# informality_models/econ/utility.py
"""
Preference primitives: CRRA period utility and welfare-cost metrics.
"""

import tensorflow as tf

from informality_models.core.types import TENSORFLOW_DTYPE, Tensor

LOG_UTILITY_TOL = 1e-12


class CRRAUtility:
    """Static methods for constant-relative-risk-aversion preferences."""

    @staticmethod
    def is_log(risk_aversion: float) -> bool:
        """True when gamma is (numerically) one and log utility applies."""
        return abs(risk_aversion - 1.0) < LOG_UTILITY_TOL

    @staticmethod
    def evaluate(consumption: Tensor, risk_aversion: float) -> Tensor:
        """
        Compute u(c) = c^(1-gamma) / (1-gamma), or ln(c) when gamma = 1.

        Args:
            consumption: Strictly positive consumption levels.
            risk_aversion: CRRA coefficient gamma.

        Returns:
            Period utility with the same shape as *consumption*.
        """
        c = tf.cast(consumption, TENSORFLOW_DTYPE)
        if CRRAUtility.is_log(risk_aversion):
            return tf.math.log(c)
        one_minus_gamma = tf.cast(1.0 - risk_aversion, TENSORFLOW_DTYPE)
        return tf.pow(c, one_minus_gamma) / one_minus_gamma

    @staticmethod
    def welfare_cost(consumption_growth_variance: float, risk_aversion: float) -> float:
        """
        Consumption-equivalent cost of volatility, W = 0.5 * gamma * Var(dlnC).

        Args:
            consumption_growth_variance: Variance of log consumption growth.
            risk_aversion: CRRA coefficient gamma.

        Returns:
            Welfare cost as a share of consumption.
        """
        return 0.5 * risk_aversion * consumption_growth_variance
