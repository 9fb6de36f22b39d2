"""
Separable convolution helpers (capability-checked strategies).

Three implementations of `IConvolutionHelper` live here:

- `GenericSeparableConvPath` wraps the reference CPU primitive and never
  declines. The layer uses it as its fallback.
- `StridedSeparableConvHelper` computes the forward pass with a single
  `einsum` over a strided window view of the padded input, and offers ufunc
  fast paths for common activations.
- `NativeSeparableConvHelper` calls the optional native kernel through
  ctypes.

The accelerated helpers return None for anything they do not support
(dtype, layout, unknown activation, missing native library). They never raise
for those cases, so the layer can fall back silently.
"""

from __future__ import annotations

import warnings
from typing import Optional

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ...domain._activation import IActivation
from ...domain._geometry import Geometry
from ...domain._helper import IConvolutionHelper
from ..native.python import sconv2d_ctypes as _native
from ..ops.sconv2d_cpu import sconv2d

_FLOAT_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))


def _output_shape(x: np.ndarray, weights: np.ndarray, g: Geometry) -> tuple:
    return (x.shape[0], x.shape[1] * weights.shape[0], g.out_h, g.out_w)


class GenericSeparableConvPath(IConvolutionHelper):
    """
    Reference path backed by `sconv2d`. Accepts any layout and dtype.
    """

    def accepts_layout(self, x: np.ndarray) -> bool:
        return True

    def try_pre_output(
        self,
        x: np.ndarray,
        weights: np.ndarray,
        bias: np.ndarray,
        geometry: Geometry,
    ) -> Optional[np.ndarray]:
        out = np.empty(
            _output_shape(x, weights, geometry),
            dtype=np.result_type(x.dtype, weights.dtype),
            order="C",
        )
        return sconv2d(x, weights, bias, geometry.to_int_args(), out=out)


class StridedSeparableConvHelper(IConvolutionHelper):
    """
    Vectorized host helper built on `sliding_window_view` and `einsum`.

    Requirements
    ------------
    - float32 or float64 input, weights of the same dtype
    - C-contiguous input
    """

    def accepts_layout(self, x: np.ndarray) -> bool:
        return bool(x.flags["C_CONTIGUOUS"])

    def try_pre_output(
        self,
        x: np.ndarray,
        weights: np.ndarray,
        bias: np.ndarray,
        geometry: Geometry,
    ) -> Optional[np.ndarray]:
        if x.dtype not in _FLOAT_DTYPES or weights.dtype != x.dtype:
            return None
        if not self.accepts_layout(x):
            return None

        g = geometry
        p_b, p_r = g.bottom_right_padding((x.shape[2], x.shape[3]))
        x_pad = np.pad(
            x,
            pad_width=((0, 0), (0, 0), (g.pad_h, p_b), (g.pad_w, p_r)),
            mode="constant",
        )
        ek_h, ek_w = g.effective_kernel

        # (N, C, H_pad - ek_h + 1, W_pad - ek_w + 1, ek_h, ek_w)
        windows = sliding_window_view(x_pad, (ek_h, ek_w), axis=(2, 3))
        windows = windows[
            :, :, :: g.stride_h, :: g.stride_w, :: g.dilation_h, :: g.dilation_w
        ][:, :, : g.out_h, : g.out_w]

        y = np.einsum("nchwij,mcij->ncmhw", windows, weights, optimize=True)
        y = np.ascontiguousarray(y.reshape(_output_shape(x, weights, g)))
        y += bias.reshape(1, -1, 1, 1).astype(x.dtype, copy=False)
        return y

    def try_activate(
        self, z: np.ndarray, activation: IActivation, training: bool
    ) -> Optional[np.ndarray]:
        if z.dtype not in _FLOAT_DTYPES:
            return None

        name = getattr(activation, "name", None)
        out = np.empty_like(z)
        if name == "identity":
            np.copyto(out, z)
        elif name == "relu":
            np.maximum(z, 0, out=out)
        elif name == "tanh":
            np.tanh(z, out=out)
        elif name == "sigmoid":
            with np.errstate(over="ignore"):
                np.negative(z, out=out)
                np.exp(out, out=out)
                out += 1
                np.reciprocal(out, out=out)
        else:
            return None
        return out


class NativeSeparableConvHelper(IConvolutionHelper):
    """
    Helper backed by the native separable convolution kernel.

    The library is loaded lazily on first use. If it cannot be loaded, a
    `RuntimeWarning` is emitted once and the helper declines every call.

    Parameters
    ----------
    lib_path : Optional[str], optional
        Explicit path to the native library.
    """

    def __init__(self, lib_path: Optional[str] = None) -> None:
        self._lib_path = lib_path
        self._unavailable = False

    def accepts_layout(self, x: np.ndarray) -> bool:
        return bool(x.flags["C_CONTIGUOUS"])

    def try_pre_output(
        self,
        x: np.ndarray,
        weights: np.ndarray,
        bias: np.ndarray,
        geometry: Geometry,
    ) -> Optional[np.ndarray]:
        if self._unavailable:
            return None
        if x.dtype not in _FLOAT_DTYPES or weights.dtype != x.dtype:
            return None
        if not self.accepts_layout(x):
            return None

        try:
            lib = _native.load_sepconv_native(self._lib_path)
        except OSError as e:
            self._unavailable = True
            warnings.warn(
                "sepconv native library could not be loaded; "
                "falling back to the NumPy implementation. "
                f"Reason: {e}",
                RuntimeWarning,
                stacklevel=2,
            )
            return None

        y = np.empty(_output_shape(x, weights, geometry), dtype=x.dtype, order="C")
        b = bias.astype(x.dtype, copy=False)

        forward = (
            _native.sconv2d_forward_f32_ctypes
            if x.dtype == np.float32
            else _native.sconv2d_forward_f64_ctypes
        )
        forward(
            lib,
            x=x,
            w=weights,
            b=b,
            y=y,
            out_h=geometry.out_h,
            out_w=geometry.out_w,
            int_args=geometry.to_int_args(),
        )
        return y
