"""
Configuration of a depthwise-separable 2D convolution layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ...domain._modes import CacheMode, ConvolutionMode
from ._padding import _pair


@dataclass(frozen=True)
class SeparableConv2dConfig:
    """
    Hyperparameters of a `SeparableConvolution2DLayer`.

    Parameters
    ----------
    n_in : int
        Number of input channels.
    depth_multiplier : int, optional
        Output channels per input channel. Defaults to 1.
    kernel_size, stride, padding, dilation : int or tuple[int, int]
        Convolution hyperparameters; integers are expanded to pairs.
        Defaults: kernel (5, 5), stride (1, 1), padding (0, 0), dilation (1, 1).
    convolution_mode : ConvolutionMode, optional
        EXPLICIT (default) or SAME. Padding is ignored in SAME mode.
    has_bias : bool, optional
        Whether the layer owns a bias parameter. Defaults to True.
    activation : str, optional
        Registered activation name. Defaults to ``"identity"``.
    cache_mode : CacheMode, optional
        Pre-activation caching policy. Defaults to NONE.
    layer_name : Optional[str], optional
        Name used in error messages.

    Notes
    -----
    Construction validates sizes eagerly (`ValueError`); whether a kernel fits
    a particular input is only known per call and is checked by the resolver.
    """

    n_in: int
    depth_multiplier: int = 1
    kernel_size: Tuple[int, int] = (5, 5)
    stride: Tuple[int, int] = (1, 1)
    padding: Tuple[int, int] = (0, 0)
    dilation: Tuple[int, int] = (1, 1)
    convolution_mode: ConvolutionMode = ConvolutionMode.EXPLICIT
    has_bias: bool = True
    activation: str = "identity"
    cache_mode: CacheMode = CacheMode.NONE
    layer_name: Optional[str] = field(default=None)

    def __post_init__(self) -> None:
        # frozen: normalise through object.__setattr__
        for name in ("kernel_size", "stride", "padding", "dilation"):
            object.__setattr__(self, name, _pair(getattr(self, name)))
        object.__setattr__(self, "n_in", int(self.n_in))
        object.__setattr__(self, "depth_multiplier", int(self.depth_multiplier))
        object.__setattr__(
            self, "convolution_mode", ConvolutionMode(self.convolution_mode)
        )
        object.__setattr__(self, "cache_mode", CacheMode(self.cache_mode))

        if self.n_in <= 0:
            raise ValueError(f"n_in must be positive, got {self.n_in}")
        if self.depth_multiplier <= 0:
            raise ValueError(
                f"depth_multiplier must be positive, got {self.depth_multiplier}"
            )
        if min(self.kernel_size) <= 0:
            raise ValueError(f"kernel_size must be positive, got {self.kernel_size}")
        if min(self.stride) <= 0:
            raise ValueError(f"stride must be positive, got {self.stride}")
        if min(self.dilation) <= 0:
            raise ValueError(f"dilation must be positive, got {self.dilation}")
        if min(self.padding) < 0:
            raise ValueError(f"padding must be non-negative, got {self.padding}")

    @property
    def n_out(self) -> int:
        return self.n_in * self.depth_multiplier

    def get_config(self) -> Dict[str, Any]:
        """Return a JSON-serializable dict of the hyperparameters."""
        return {
            "n_in": self.n_in,
            "depth_multiplier": self.depth_multiplier,
            "kernel_size": list(self.kernel_size),
            "stride": list(self.stride),
            "padding": list(self.padding),
            "dilation": list(self.dilation),
            "convolution_mode": self.convolution_mode.value,
            "has_bias": self.has_bias,
            "activation": self.activation,
            "cache_mode": self.cache_mode.value,
            "layer_name": self.layer_name,
        }

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "SeparableConv2dConfig":
        """
        Build a config from a dict produced by `get_config`.

        Missing keys take their defaults, except `n_in` which is required.
        """
        kwargs: Dict[str, Any] = {"n_in": int(cfg["n_in"])}
        for key in ("kernel_size", "stride", "padding", "dilation"):
            if key in cfg:
                kwargs[key] = tuple(cfg[key])
        if "depth_multiplier" in cfg:
            kwargs["depth_multiplier"] = int(cfg["depth_multiplier"])
        if "convolution_mode" in cfg:
            kwargs["convolution_mode"] = ConvolutionMode(cfg["convolution_mode"])
        if "cache_mode" in cfg:
            kwargs["cache_mode"] = CacheMode(cfg["cache_mode"])
        if "has_bias" in cfg:
            kwargs["has_bias"] = bool(cfg["has_bias"])
        if "activation" in cfg:
            kwargs["activation"] = str(cfg["activation"])
        if "layer_name" in cfg:
            kwargs["layer_name"] = cfg["layer_name"]
        return cls(**kwargs)
