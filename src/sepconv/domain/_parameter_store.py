"""
Parameter store and weight-noise interfaces.

The parameter store owns a layer's trainable arrays and the gradient buffers
the optimizer reads. Layers borrow parameters for the duration of a single
forward or backward call and write gradients into the store's stable views;
they never allocate gradient storage themselves.

Weight noise (e.g. DropConnect) is a per-call side channel on the store: a
perturbed copy of a parameter is produced on first request during training
and reused until the caller clears the transient overrides, so forward and
backward see the same perturbation.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class IWeightNoise(Protocol):
    """
    Perturbation policy applied to parameters during training.
    """

    def get_parameter(
        self,
        key: str,
        param: np.ndarray,
        training: bool,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """
        Return the (possibly perturbed) value of parameter `key`.

        Implementations must return a new array when they perturb, and may
        return `param` unchanged when they do not apply to `key`.
        """
        ...


@runtime_checkable
class IParameterStore(Protocol):
    """
    Domain-level contract for parameter and gradient access by key.

    Attributes
    ----------
    dtype : np.dtype
        Element type of the stored parameters.
    """

    dtype: np.dtype

    def keys(self) -> Iterable[str]:
        """Return parameter keys in layout order."""
        ...

    def num_params(self) -> int:
        """Return the total number of scalar parameters."""
        ...

    def param(self, key: str) -> np.ndarray:
        """Return the stored (unperturbed) parameter view."""
        ...

    def get_param_with_noise(self, key: str, training: bool) -> np.ndarray:
        """Return the parameter, perturbed by weight noise when training."""
        ...

    def gradient_view(self, key: str) -> np.ndarray:
        """
        Return the stable gradient buffer for `key`.

        The same array object is returned on every call; writers must fill it
        in place and must not keep references after their call returns.
        """
        ...

    def clear_transient_overrides(self) -> None:
        """Drop any per-call perturbed parameters."""
        ...
