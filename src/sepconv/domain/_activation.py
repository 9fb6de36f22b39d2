"""
Activation function interface.

Activations are elementwise collaborators of the convolution engine. The
engine only needs two operations: applying the function to a pre-activation
tensor, and mapping an upstream error back through the function's derivative.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class IActivation(Protocol):
    """
    Domain-level interface for elementwise activation functions.

    Notes
    -----
    - `get_activation` must not mutate `z`; the pre-activation may be shared
      with a cache slot.
    - `backprop` returns dL/dz given dL/da, evaluated at `z`.
    """

    @property
    def name(self) -> str:
        """Registry name of the activation (e.g. ``"relu"``)."""
        ...

    def get_activation(self, z: np.ndarray, training: bool) -> np.ndarray:
        """Return ``f(z)`` as a new array."""
        ...

    def backprop(self, z: np.ndarray, epsilon: np.ndarray) -> np.ndarray:
        """Return ``epsilon * f'(z)`` as a new array."""
        ...
