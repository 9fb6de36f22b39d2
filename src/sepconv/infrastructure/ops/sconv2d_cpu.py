"""
CPU reference kernels for depthwise-separable 2D convolution.

This module provides the generic host implementation of the fused separable
convolution primitive and its gradient. Both kernels take their geometry as
the 9-int argument list shared with native kernels and write their results
into caller-provided buffers.

Tensor layout
-------------
- x: (N, C, H, W)
- depthwise weights: (M, C, kH, kW), where M is the depth multiplier
- output / upstream error: (N, C * M, out_h, out_w)

Output channel ``c * M + m`` holds input channel ``c`` convolved with
weight slice ``w[m, c]``. The channel count of the input gradient always
equals C, independent of M.

Implementation
--------------
The kernels loop over kernel taps only; every tap is a strided view of the
padded input, so batch, channel and spatial dimensions are vectorized.
Padding is explicit on the top/left (from the argument list) and implicit on
the bottom/right (whatever the output windows need, see
`Geometry.bottom_right_padding`).
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from ...domain._geometry import Geometry
from ..convolution._padding import geometry_from_int_args


def _tap_slices(g: Geometry, i: int, j: int) -> Tuple[slice, slice]:
    """
    Row/column slices of the padded input touched by kernel tap (i, j).
    """
    h0 = i * g.dilation_h
    w0 = j * g.dilation_w
    return (
        slice(h0, h0 + g.stride_h * (g.out_h - 1) + 1, g.stride_h),
        slice(w0, w0 + g.stride_w * (g.out_w - 1) + 1, g.stride_w),
    )


def _pad_input(x: np.ndarray, g: Geometry) -> np.ndarray:
    p_b, p_r = g.bottom_right_padding((x.shape[2], x.shape[3]))
    return np.pad(
        x,
        pad_width=((0, 0), (0, 0), (g.pad_h, p_b), (g.pad_w, p_r)),
        mode="constant",
        constant_values=0.0,
    )


def _check_operands(
    x: np.ndarray, w_depth: np.ndarray, int_args: Sequence[int]
) -> Tuple[Geometry, int, int]:
    if x.ndim != 4:
        raise ValueError(f"x must be rank 4 (N, C, H, W), got shape {x.shape}")
    if w_depth.ndim != 4:
        raise ValueError(
            f"depthwise weights must be rank 4 (M, C, kH, kW), got shape {w_depth.shape}"
        )

    N, C, H, W = x.shape
    M, C_w, k_h, k_w = w_depth.shape
    if C != C_w:
        raise ValueError(f"in_channels mismatch: x has {C}, weight has {C_w}")

    g = geometry_from_int_args(int_args, (H, W))
    if (g.kernel_h, g.kernel_w) != (k_h, k_w):
        raise ValueError(
            f"kernel size mismatch: int args give {(g.kernel_h, g.kernel_w)}, "
            f"weights have {(k_h, k_w)}"
        )
    return g, N, C * M


def sconv2d(
    x: np.ndarray,
    w_depth: np.ndarray,
    bias: Optional[np.ndarray],
    int_args: Sequence[int],
    *,
    out: np.ndarray,
) -> np.ndarray:
    """
    Depthwise-separable convolution forward pass (CPU, NumPy).

    Parameters
    ----------
    x : np.ndarray
        Input tensor of shape (N, C, H, W).
    w_depth : np.ndarray
        Depthwise weights of shape (M, C, kH, kW).
    bias : Optional[np.ndarray]
        Bias of shape (1, C * M) or (C * M,), or None.
    int_args : Sequence[int]
        ``[kH, kW, sH, sW, pH, pW, dH, dW, sameMode]``.
    out : np.ndarray
        Destination of shape (N, C * M, out_h, out_w). Overwritten.

    Returns
    -------
    np.ndarray
        `out`, for convenience.

    Raises
    ------
    ValueError
        On rank, channel, kernel, bias or output-shape mismatches, or a
        malformed argument list.
    """
    g, N, C_out = _check_operands(x, w_depth, int_args)
    M, C = w_depth.shape[0], w_depth.shape[1]

    expected = (N, C_out, g.out_h, g.out_w)
    if tuple(out.shape) != expected:
        raise ValueError(f"out shape mismatch: expected {expected}, got {out.shape}")

    if bias is not None and bias.size != C_out:
        raise ValueError(
            f"bias shape mismatch: expected (1, {C_out}), got {bias.shape}"
        )

    x_pad = _pad_input(x, g)
    acc = np.zeros(
        (N, C, M, g.out_h, g.out_w), dtype=np.result_type(x.dtype, w_depth.dtype)
    )

    for i in range(g.kernel_h):
        for j in range(g.kernel_w):
            hs, ws = _tap_slices(g, i, j)
            patch = x_pad[:, :, hs, ws]
            # w_depth[:, :, i, j] is (M, C); broadcast as (1, C, M, 1, 1)
            tap = w_depth[:, :, i, j].T[None, :, :, None, None]
            acc += patch[:, :, None, :, :] * tap

    y = acc.reshape(expected)
    if bias is not None:
        y += bias.reshape(1, C_out, 1, 1)

    out[...] = y
    return out


def sconv2d_bp(
    x: np.ndarray,
    w_depth: np.ndarray,
    epsilon: np.ndarray,
    int_args: Sequence[int],
    *,
    out_epsilon: np.ndarray,
    out_grad_w: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Depthwise-separable convolution backward pass (CPU, NumPy).

    Computes the gradient with respect to the input and the depthwise weights
    and writes both into the caller's buffers. No bias gradient is produced.

    Parameters
    ----------
    x : np.ndarray
        Forward input of shape (N, C, H, W).
    w_depth : np.ndarray
        Depthwise weights of shape (M, C, kH, kW).
    epsilon : np.ndarray
        Gradient with respect to the pre-activation output,
        shape (N, C * M, out_h, out_w).
    int_args : Sequence[int]
        Same argument list as the forward call.
    out_epsilon : np.ndarray
        Destination for dL/dx, shape (N, C, H, W). Overwritten.
    out_grad_w : np.ndarray
        Destination for dL/dw, shape (M, C, kH, kW). Overwritten in place;
        never rebound.

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        ``(out_epsilon, out_grad_w)``.
    """
    g, N, C_out = _check_operands(x, w_depth, int_args)
    M, C = w_depth.shape[0], w_depth.shape[1]
    H, W = x.shape[2], x.shape[3]

    expected_eps = (N, C_out, g.out_h, g.out_w)
    if tuple(epsilon.shape) != expected_eps:
        raise ValueError(
            f"epsilon shape mismatch: expected {expected_eps}, got {epsilon.shape}"
        )
    if tuple(out_epsilon.shape) != tuple(x.shape):
        raise ValueError(
            f"out_epsilon shape mismatch: expected {x.shape}, got {out_epsilon.shape}"
        )
    if tuple(out_grad_w.shape) != tuple(w_depth.shape):
        raise ValueError(
            f"out_grad_w shape mismatch: expected {w_depth.shape}, got {out_grad_w.shape}"
        )

    x_pad = _pad_input(x, g)
    eps5 = epsilon.reshape(N, C, M, g.out_h, g.out_w)

    dtype = np.result_type(x.dtype, w_depth.dtype, epsilon.dtype)
    grad_x_pad = np.zeros(x_pad.shape, dtype=dtype)
    grad_w = np.zeros(w_depth.shape, dtype=dtype)

    for i in range(g.kernel_h):
        for j in range(g.kernel_w):
            hs, ws = _tap_slices(g, i, j)
            patch = x_pad[:, :, hs, ws]
            grad_w[:, :, i, j] = np.einsum("ncmhw,nchw->mc", eps5, patch)
            grad_x_pad[:, :, hs, ws] += np.einsum(
                "ncmhw,mc->nchw", eps5, w_depth[:, :, i, j]
            )

    out_grad_w[...] = grad_w
    out_epsilon[...] = grad_x_pad[:, :, g.pad_h : g.pad_h + H, g.pad_w : g.pad_w + W]
    return out_epsilon, out_grad_w
