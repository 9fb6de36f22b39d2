"""
ctypes bindings for the native separable convolution forward kernels.

Exposed kernels:

- float32 (C: float)  -> ``sepconv_sconv2d_forward_f32``
- float64 (C: double) -> ``sepconv_sconv2d_forward_f64``

C signature (both dtypes)::

    void sepconv_sconv2d_forward_<t>(
        const T* x, const T* w, const T* b, T* y,
        int N, int C, int H, int W, int M, int out_h, int out_w,
        const int* iargs, int n_iargs);

The native kernels assume:
- NCHW layout for x and y, (M, C, kH, kW) for depthwise weights
- Row-major (C-contiguous) memory
- ``iargs`` is the 9-int geometry list
  ``[kH, kW, sH, sW, pH, pW, dH, dW, sameMode]``

All outputs are written in-place into caller-provided NumPy buffers.
"""

from __future__ import annotations

import ctypes
from ctypes import POINTER, c_double, c_float, c_int
from typing import Optional, Sequence

import numpy as np

from ....domain._geometry import INT_ARGS_COUNT
from ._native_loader import (
    load_sepconv_native,
)  # re-exported so callers and tests can patch the loader here


def _int_args_array(int_args: Sequence[int]) -> ctypes.Array:
    if len(int_args) != INT_ARGS_COUNT:
        raise ValueError(
            f"expected {INT_ARGS_COUNT} integer arguments, got {len(int_args)}"
        )
    return (c_int * INT_ARGS_COUNT)(*(int(a) for a in int_args))


def _sconv2d_forward_ctypes(
    lib: ctypes.CDLL,
    symbol: str,
    c_type: type,
    np_dtype: type,
    *,
    x: np.ndarray,
    w: np.ndarray,
    b: Optional[np.ndarray],
    y: np.ndarray,
    out_h: int,
    out_w: int,
    int_args: Sequence[int],
) -> None:
    dtype_name = np.dtype(np_dtype).name
    if x.dtype != np_dtype:
        raise TypeError(f"x must be {dtype_name}, got {x.dtype}")
    if w.dtype != np_dtype:
        raise TypeError(f"w must be {dtype_name}, got {w.dtype}")
    if y.dtype != np_dtype:
        raise TypeError(f"y must be {dtype_name}, got {y.dtype}")
    if b is not None and b.dtype != np_dtype:
        raise TypeError(f"b must be {dtype_name} if provided, got {b.dtype}")

    if not x.flags["C_CONTIGUOUS"]:
        x = np.ascontiguousarray(x)
    if not w.flags["C_CONTIGUOUS"]:
        w = np.ascontiguousarray(w)
    if b is not None and not b.flags["C_CONTIGUOUS"]:
        b = np.ascontiguousarray(b)

    if not y.flags["C_CONTIGUOUS"]:
        raise ValueError("y must be C-contiguous (allocate it contiguously)")

    iargs = _int_args_array(int_args)
    N, C, H, W = x.shape
    M = w.shape[0]

    fn = getattr(lib, symbol)
    fn.argtypes = [
        POINTER(c_type),  # x
        POINTER(c_type),  # w
        POINTER(c_type),  # b (nullable)
        POINTER(c_type),  # y
        c_int,
        c_int,
        c_int,
        c_int,  # N, C, H, W
        c_int,  # M
        c_int,
        c_int,  # out_h, out_w
        POINTER(c_int),  # iargs
        c_int,  # n_iargs
    ]
    fn.restype = None

    if b is None:
        b_ptr = ctypes.cast(0, POINTER(c_type))
    else:
        b_ptr = b.ctypes.data_as(POINTER(c_type))

    fn(
        x.ctypes.data_as(POINTER(c_type)),
        w.ctypes.data_as(POINTER(c_type)),
        b_ptr,
        y.ctypes.data_as(POINTER(c_type)),
        N,
        C,
        H,
        W,
        M,
        int(out_h),
        int(out_w),
        iargs,
        INT_ARGS_COUNT,
    )


def sconv2d_forward_f32_ctypes(
    lib: ctypes.CDLL,
    *,
    x: np.ndarray,
    w: np.ndarray,
    b: Optional[np.ndarray],
    y: np.ndarray,
    out_h: int,
    out_w: int,
    int_args: Sequence[int],
) -> None:
    """
    Execute the native separable convolution forward kernel (float32).

    Requirements
    ------------
    - x: float32, shape (N, C, H, W), unpadded
    - w: float32, shape (M, C, kH, kW)
    - b: Optional[float32], C * M elements, or None
    - y: float32 contiguous, shape (N, C * M, out_h, out_w)
    """
    _sconv2d_forward_ctypes(
        lib,
        "sepconv_sconv2d_forward_f32",
        c_float,
        np.float32,
        x=x,
        w=w,
        b=b,
        y=y,
        out_h=out_h,
        out_w=out_w,
        int_args=int_args,
    )


def sconv2d_forward_f64_ctypes(
    lib: ctypes.CDLL,
    *,
    x: np.ndarray,
    w: np.ndarray,
    b: Optional[np.ndarray],
    y: np.ndarray,
    out_h: int,
    out_w: int,
    int_args: Sequence[int],
) -> None:
    """
    Execute the native separable convolution forward kernel (float64).
    """
    _sconv2d_forward_ctypes(
        lib,
        "sepconv_sconv2d_forward_f64",
        c_double,
        np.float64,
        x=x,
        w=w,
        b=b,
        y=y,
        out_h=out_h,
        out_w=out_w,
        int_args=int_args,
    )
