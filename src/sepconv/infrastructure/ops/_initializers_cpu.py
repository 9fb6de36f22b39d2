"""
CPU parameter layout and initialization for separable convolution layers.

This module is the boundary between NumPy RNG/array math and the flat
parameter store: layers describe their parameter shapes here and never touch
random generation themselves.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import numpy as np

from .._parameter_store import BIAS_KEY, WEIGHT_KEY, FlatParameterStore
from ..convolution._config import SeparableConv2dConfig


def separable_conv2d_param_shapes(
    config: SeparableConv2dConfig,
) -> Dict[str, Tuple[int, ...]]:
    """
    Parameter shapes of a separable convolution layer, in layout order.

    - ``"W"``: depthwise weights (depth_multiplier, n_in, kH, kW)
    - ``"b"``: bias (1, n_out), only when ``config.has_bias``
    """
    k_h, k_w = config.kernel_size
    shapes: Dict[str, Tuple[int, ...]] = {
        WEIGHT_KEY: (config.depth_multiplier, config.n_in, k_h, k_w),
    }
    if config.has_bias:
        shapes[BIAS_KEY] = (1, config.n_out)
    return shapes


def init_separable_conv2d_params(
    config: SeparableConv2dConfig,
    *,
    dtype: Any = np.float32,
    seed: Optional[int] = None,
    **store_kwargs: Any,
) -> FlatParameterStore:
    """
    Create a parameter store for `config` with initialized values.

    Depthwise weights use He (Kaiming) normal initialization with
    ``fan_in = kH * kW`` (each output channel sees a single input channel);
    the bias starts at zero.
    """
    store = FlatParameterStore(
        separable_conv2d_param_shapes(config), dtype=dtype, **store_kwargs
    )

    k_h, k_w = config.kernel_size
    fan_in = int(k_h) * int(k_w)
    scale = float(np.sqrt(2.0 / float(fan_in)))

    rng = np.random.default_rng(seed)
    w_shape = store.param(WEIGHT_KEY).shape
    store.set_param(WEIGHT_KEY, (rng.standard_normal(w_shape) * scale).astype(dtype))
    return store
