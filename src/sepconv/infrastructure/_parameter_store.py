"""
Flat parameter/gradient arena.

`FlatParameterStore` keeps all of a layer's parameters in one contiguous 1-D
buffer and all gradients in a second buffer of the same length. Each key owns
a `ParamHandle` (offset + shape) into both buffers, and the store builds one
view per key at construction time. Those views are the stable addresses
optimizers and layers share: `gradient_view(key)` returns the same array
object for the lifetime of the store, and writers fill it in place.

Weight noise
------------
When a weight-noise policy is configured, `get_param_with_noise(key, True)`
returns a perturbed copy, memoised per key so that a forward pass and the
backward pass that follows it see the same perturbation. The memo is the
transient state cleared by `clear_transient_overrides()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from ..domain._parameter_store import IWeightNoise

WEIGHT_KEY = "W"
BIAS_KEY = "b"


@dataclass(frozen=True)
class ParamHandle:
    """
    Slice handle of one parameter inside the flat arena.

    Attributes
    ----------
    key : str
        Parameter key.
    offset : int
        Start index in the flat buffer.
    shape : tuple[int, ...]
        Parameter shape (C order).
    """

    key: str
    offset: int
    shape: Tuple[int, ...]

    @property
    def size(self) -> int:
        n = 1
        for d in self.shape:
            n *= int(d)
        return n

    def view(self, flat: np.ndarray) -> np.ndarray:
        """Return this parameter's shaped view into `flat` (never a copy)."""
        return flat[self.offset : self.offset + self.size].reshape(self.shape)


class FlatParameterStore:
    """
    Parameter store backed by a single parameter buffer and gradient buffer.

    Parameters
    ----------
    shapes : Mapping[str, tuple[int, ...]]
        Parameter shapes, in layout order.
    dtype : Any, optional
        Buffer dtype. Defaults to float32.
    weight_noise : Optional[IWeightNoise], optional
        Perturbation policy used by `get_param_with_noise` during training.
    seed : Optional[int], optional
        Seed of the generator handed to the weight-noise policy.
    """

    def __init__(
        self,
        shapes: Mapping[str, Tuple[int, ...]],
        *,
        dtype: Any = np.float32,
        weight_noise: Optional[IWeightNoise] = None,
        seed: Optional[int] = None,
    ) -> None:
        self._handles: Dict[str, ParamHandle] = {}
        offset = 0
        for key, shape in shapes.items():
            handle = ParamHandle(key, offset, tuple(int(d) for d in shape))
            self._handles[key] = handle
            offset += handle.size

        self.dtype = np.dtype(dtype)
        self.flat_params = np.zeros(offset, dtype=self.dtype)
        self.flat_gradients = np.zeros(offset, dtype=self.dtype)

        self._param_views = {
            k: h.view(self.flat_params) for k, h in self._handles.items()
        }
        self._grad_views = {
            k: h.view(self.flat_gradients) for k, h in self._handles.items()
        }

        self.weight_noise = weight_noise
        self._rng = np.random.default_rng(seed)
        self._noisy: Dict[str, np.ndarray] = {}

    # ---- layout ----
    def keys(self) -> Iterable[str]:
        return list(self._handles)

    def handle(self, key: str) -> ParamHandle:
        return self._handles[key]

    def num_params(self) -> int:
        return int(self.flat_params.size)

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    # ---- parameters ----
    def param(self, key: str) -> np.ndarray:
        """Return the stored (unperturbed) view of parameter `key`."""
        return self._param_views[key]

    def param_table(self) -> Dict[str, np.ndarray]:
        return dict(self._param_views)

    def set_param(self, key: str, value: np.ndarray) -> None:
        """
        Copy `value` into the arena slot of `key`.

        Raises
        ------
        ValueError
            If the shape of `value` does not match the slot.
        """
        view = self._param_views[key]
        value = np.asarray(value)
        if value.shape != view.shape:
            raise ValueError(
                f"shape mismatch for parameter {key!r}: "
                f"expected {view.shape}, got {value.shape}"
            )
        view[...] = value

    def get_param_with_noise(self, key: str, training: bool) -> np.ndarray:
        """
        Return parameter `key`, perturbed by weight noise when training.

        The perturbed copy is memoised until `clear_transient_overrides()`.
        """
        param = self._param_views[key]
        if self.weight_noise is None or not training:
            return param
        noisy = self._noisy.get(key)
        if noisy is None:
            noisy = self.weight_noise.get_parameter(key, param, training, self._rng)
            self._noisy[key] = noisy
        return noisy

    def transient_override_keys(self) -> List[str]:
        return list(self._noisy)

    def clear_transient_overrides(self) -> None:
        self._noisy.clear()

    # ---- gradients ----
    def gradient_view(self, key: str) -> np.ndarray:
        """Return the stable gradient view of `key` (same object every call)."""
        return self._grad_views[key]

    def zero_gradients(self) -> None:
        self.flat_gradients[...] = 0
