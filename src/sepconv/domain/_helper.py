"""
Capability-checked convolution helper interface.

A helper is an optional accelerated implementation of the separable
convolution forward pass (and, optionally, of activation application). The
engine asks a helper first and falls back to the generic primitive whenever the
helper returns ``None``. Declining is a normal outcome, not an error: helpers
must never raise for unsupported dtypes, layouts or geometries.

Every helper shares the numerical contract of the generic primitive, so the
caller observes the same result whichever path produced it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ._activation import IActivation
from ._geometry import Geometry


class IConvolutionHelper(ABC):
    """
    Abstract base class for separable convolution helpers.

    Subclasses implement `try_pre_output`; `try_activate` defaults to
    declining.
    """

    @abstractmethod
    def accepts_layout(self, x: np.ndarray) -> bool:
        """
        Return True if `x`'s memory layout satisfies the helper's stride
        ordering requirements.
        """
        ...

    @abstractmethod
    def try_pre_output(
        self,
        x: np.ndarray,
        weights: np.ndarray,
        bias: np.ndarray,
        geometry: Geometry,
    ) -> Optional[np.ndarray]:
        """
        Compute the pre-activation, or return None to decline.

        Parameters
        ----------
        x : np.ndarray
            Input of shape (N, C, H, W).
        weights : np.ndarray
            Depthwise weights of shape (M, C, kH, kW).
        bias : np.ndarray
            Bias of shape (1, C * M); an all-zero placeholder for no-bias layers.
        geometry : Geometry
            Resolved geometry for this call.

        Returns
        -------
        Optional[np.ndarray]
            A freshly allocated (N, C * M, out_h, out_w) array, or None.
        """
        ...

    def try_activate(
        self, z: np.ndarray, activation: IActivation, training: bool
    ) -> Optional[np.ndarray]:
        """Apply `activation` to `z`, or return None to decline."""
        return None
