# informality_models/core/types.py
"""
Numerical precision shared by the solver, the simulator and the moment code.

The Bellman kernels run in TensorFlow and the simulator in NumPy; both
read their dtype from here so solution arrays pass between them without
casts.
"""

import numpy as np
import tensorflow as tf

# Budget identities (c + a' + switching cost = cash on hand) are checked to
# 1e-10, which float32 cannot resolve on asset grids of realistic width.
TENSORFLOW_DTYPE = tf.float64
NUMPY_DTYPE = np.float64

Tensor = tf.Tensor
Array = np.ndarray
