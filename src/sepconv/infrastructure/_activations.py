"""
Elementwise activation functions for NumPy pre-activation tensors.

Each activation implements the `IActivation` contract: `get_activation`
returns ``f(z)`` without touching `z`, and `backprop` maps an upstream error
through the derivative at `z`.

Activations are registered by name in a class-level registry so layer
configurations can refer to them as plain strings:

    act = Activation.get("relu")
    a = act.get_activation(z, training=True)

Notes
-----
- Registration keys must be unique unless explicitly overwritten.
- `LeakyReLU` is the only parameterized activation; `Activation.get`
  forwards keyword arguments to the constructor.
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, TypeVar

import numpy as np

from ..domain._activation import IActivation

T = TypeVar("T", bound=type)


class Activation:
    """
    Registry of activation classes keyed by name.
    """

    ACTIVATIONS: ClassVar[Dict[str, type]] = {}

    @classmethod
    def register(cls, name: str, *, overwrite: bool = False) -> Callable[[T], T]:
        """
        Decorator to register an activation class under `name`.
        """
        if not isinstance(name, str) or not name:
            raise ValueError("Activation name must be a non-empty string")

        def decorator(klass: T) -> T:
            if not overwrite and name in cls.ACTIVATIONS:
                raise ValueError(f"Activation already registered: {name!r}")
            cls.ACTIVATIONS[name] = klass
            return klass

        return decorator

    @classmethod
    def available(cls) -> tuple[str, ...]:
        """Return registered activation names (sorted)."""
        return tuple(sorted(cls.ACTIVATIONS))

    @classmethod
    def get(cls, name: str, **kwargs: Any) -> IActivation:
        """
        Instantiate a registered activation by name.

        Raises
        ------
        ValueError
            If `name` is not registered.
        """
        try:
            klass = cls.ACTIVATIONS[name.lower()]
        except KeyError as e:
            available = ", ".join(cls.available()) or "<none>"
            raise ValueError(
                f"Unsupported activation name: {name!r}. Available: {available}"
            ) from e
        return klass(**kwargs)


@Activation.register("identity")
class ActivationIdentity:
    """``f(z) = z``."""

    name = "identity"

    def get_activation(self, z: np.ndarray, training: bool) -> np.ndarray:
        return z.copy()

    def backprop(self, z: np.ndarray, epsilon: np.ndarray) -> np.ndarray:
        return epsilon.copy()


@Activation.register("relu")
class ActivationReLU:
    """``f(z) = max(0, z)``."""

    name = "relu"

    def get_activation(self, z: np.ndarray, training: bool) -> np.ndarray:
        return np.maximum(z, 0).astype(z.dtype, copy=False)

    def backprop(self, z: np.ndarray, epsilon: np.ndarray) -> np.ndarray:
        return epsilon * (z > 0).astype(epsilon.dtype)


@Activation.register("leakyrelu")
class ActivationLeakyReLU:
    """
    ``f(z) = z`` for positive z, ``alpha * z`` otherwise.

    Parameters
    ----------
    alpha : float, optional
        Negative slope. Defaults to 0.01.
    """

    name = "leakyrelu"

    def __init__(self, alpha: float = 0.01) -> None:
        self.alpha = float(alpha)

    def get_activation(self, z: np.ndarray, training: bool) -> np.ndarray:
        return np.where(z > 0, z, z * self.alpha).astype(z.dtype, copy=False)

    def backprop(self, z: np.ndarray, epsilon: np.ndarray) -> np.ndarray:
        slope = np.where(z > 0, 1.0, self.alpha).astype(epsilon.dtype)
        return epsilon * slope


@Activation.register("sigmoid")
class ActivationSigmoid:
    """``f(z) = 1 / (1 + exp(-z))``."""

    name = "sigmoid"

    @staticmethod
    def _sigmoid(z: np.ndarray) -> np.ndarray:
        # exp of a non-positive argument only, to stay finite for large |z|
        e = np.exp(-np.abs(z))
        return np.where(z >= 0, 1.0 / (1.0 + e), e / (1.0 + e)).astype(
            z.dtype, copy=False
        )

    def get_activation(self, z: np.ndarray, training: bool) -> np.ndarray:
        return self._sigmoid(z)

    def backprop(self, z: np.ndarray, epsilon: np.ndarray) -> np.ndarray:
        s = self._sigmoid(z)
        return epsilon * s * (1.0 - s)


@Activation.register("tanh")
class ActivationTanh:
    """``f(z) = tanh(z)``."""

    name = "tanh"

    def get_activation(self, z: np.ndarray, training: bool) -> np.ndarray:
        return np.tanh(z)

    def backprop(self, z: np.ndarray, epsilon: np.ndarray) -> np.ndarray:
        t = np.tanh(z)
        return epsilon * (1.0 - t * t)


@Activation.register("softplus")
class ActivationSoftPlus:
    """``f(z) = log(1 + exp(z))``."""

    name = "softplus"

    def get_activation(self, z: np.ndarray, training: bool) -> np.ndarray:
        return np.logaddexp(0, z).astype(z.dtype, copy=False)

    def backprop(self, z: np.ndarray, epsilon: np.ndarray) -> np.ndarray:
        return epsilon * ActivationSigmoid._sigmoid(z)
