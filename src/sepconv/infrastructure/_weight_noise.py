"""
Weight-noise policies applied to parameters during training.

Both policies implement `IWeightNoise` and leave parameters untouched outside
of training. By default neither applies to bias parameters.
"""

from __future__ import annotations

import numpy as np

from ._parameter_store import BIAS_KEY


class DropConnect:
    """
    Randomly zero individual weights during training.

    Parameters
    ----------
    weight_retain_prob : float
        Probability of keeping each weight, in (0, 1].
    apply_to_bias : bool, optional
        Whether the bias is also subject to DropConnect. Defaults to False.
    """

    def __init__(self, weight_retain_prob: float, *, apply_to_bias: bool = False) -> None:
        p = float(weight_retain_prob)
        if not 0.0 < p <= 1.0:
            raise ValueError(f"weight_retain_prob must be in (0, 1], got {p}")
        self.weight_retain_prob = p
        self.apply_to_bias = bool(apply_to_bias)

    def get_parameter(
        self,
        key: str,
        param: np.ndarray,
        training: bool,
        rng: np.random.Generator,
    ) -> np.ndarray:
        if not training or (key == BIAS_KEY and not self.apply_to_bias):
            return param
        mask = rng.random(param.shape) < self.weight_retain_prob
        return (param * mask).astype(param.dtype, copy=False)


class WeightNoise:
    """
    Gaussian noise on weights during training.

    Parameters
    ----------
    std : float
        Standard deviation of the noise.
    additive : bool, optional
        If True (default) noise is added, ``w + n``; otherwise it is
        multiplicative around one, ``w * (1 + n)``.
    apply_to_bias : bool, optional
        Whether the bias is also perturbed. Defaults to False.
    """

    def __init__(
        self, std: float, *, additive: bool = True, apply_to_bias: bool = False
    ) -> None:
        if std < 0:
            raise ValueError(f"std must be non-negative, got {std}")
        self.std = float(std)
        self.additive = bool(additive)
        self.apply_to_bias = bool(apply_to_bias)

    def get_parameter(
        self,
        key: str,
        param: np.ndarray,
        training: bool,
        rng: np.random.Generator,
    ) -> np.ndarray:
        if not training or (key == BIAS_KEY and not self.apply_to_bias):
            return param
        noise = rng.normal(0.0, self.std, size=param.shape)
        if self.additive:
            out = param + noise
        else:
            out = param * (1.0 + noise)
        return out.astype(param.dtype, copy=False)
