"""
Shape and padding resolution for 2D convolutions.

This module computes output spatial sizes and top/left padding offsets for the
two supported convolution modes:

- EXPLICIT: padding is given by the caller and the output follows

      out = floor((in + 2 * pad - dilation * (kernel - 1) - 1) / stride) + 1

- SAME: the output is ``ceil(in / stride)`` on each axis regardless of kernel
  size, and the total padding needed to produce it is derived and split with
  ``total // 2`` on the top/left. When the total is odd the extra row/column
  is implicit on the bottom/right.

All functions are pure. The forward and backward passes each resolve the
geometry from the input they see rather than sharing a cached result, since
consecutive mini-batches may differ in spatial size.
"""

from __future__ import annotations

from numbers import Integral
from typing import Optional, Sequence, Tuple

from ...domain._errors import InvalidGeometryError
from ...domain._geometry import Geometry
from ...domain._modes import ConvolutionMode


def _pair(v: int | Sequence[int]) -> Tuple[int, int]:
    """
    Normalize an integer or pair into a 2-tuple of ints.

    Parameters
    ----------
    v : int or sequence of two ints
        A scalar value or a (height, width) pair.

    Returns
    -------
    tuple[int, int]
        A normalized (height, width) pair.
    """
    if isinstance(v, Integral):
        return (int(v), int(v))
    h, w = v
    return (int(h), int(w))


def effective_kernel(
    kernel: Tuple[int, int], dilation: Tuple[int, int]
) -> Tuple[int, int]:
    """Kernel extent after dilation: ``d * (k - 1) + 1`` per axis."""
    return (
        dilation[0] * (kernel[0] - 1) + 1,
        dilation[1] * (kernel[1] - 1) + 1,
    )


def same_mode_total_padding(
    out_size: Tuple[int, int],
    in_size: Tuple[int, int],
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    dilation: Tuple[int, int],
) -> Tuple[int, int]:
    """
    Total (top + bottom, left + right) padding required in SAME mode.

    Clamped at zero: with a stride larger than the kernel the output windows
    may already fit without padding.
    """
    ek = effective_kernel(kernel, dilation)
    return (
        max(0, (out_size[0] - 1) * stride[0] + ek[0] - in_size[0]),
        max(0, (out_size[1] - 1) * stride[1] + ek[1] - in_size[1]),
    )


def same_mode_top_left_padding(
    out_size: Tuple[int, int],
    in_size: Tuple[int, int],
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    dilation: Tuple[int, int],
) -> Tuple[int, int]:
    """
    Top/left padding in SAME mode (``total // 2`` per axis).
    """
    total_h, total_w = same_mode_total_padding(
        out_size, in_size, kernel, stride, dilation
    )
    return (total_h // 2, total_w // 2)


def _validate_hyperparameters(
    in_size: Tuple[int, int],
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    dilation: Tuple[int, int],
    padding: Optional[Tuple[int, int]],
) -> None:
    def fail(reason: str) -> None:
        raise InvalidGeometryError(
            reason,
            input_size=in_size,
            kernel=kernel,
            stride=stride,
            dilation=dilation,
            padding=padding,
        )

    if min(in_size) <= 0:
        fail("input height and width must be positive")
    if min(kernel) <= 0:
        fail("kernel height and width must be positive")
    if min(stride) <= 0:
        fail("stride must be positive")
    if min(dilation) <= 0:
        fail("dilation must be positive")
    if padding is not None and min(padding) < 0:
        fail("padding must be non-negative")


def resolve(
    in_size: Tuple[int, int],
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    dilation: Tuple[int, int],
    mode: ConvolutionMode,
    padding: Optional[Tuple[int, int]] = None,
) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """
    Resolve the output spatial size and top/left padding of a convolution.

    Parameters
    ----------
    in_size : tuple[int, int]
        Input (height, width).
    kernel : tuple[int, int]
        Kernel (height, width).
    stride : tuple[int, int]
        Stride (height, width).
    dilation : tuple[int, int]
        Dilation (height, width).
    mode : ConvolutionMode
        EXPLICIT or SAME.
    padding : Optional[tuple[int, int]]
        Caller padding. Required in EXPLICIT mode, ignored in SAME mode.

    Returns
    -------
    tuple[tuple[int, int], tuple[int, int]]
        ``(out_size, padding)`` where padding is the top/left offset.

    Raises
    ------
    InvalidGeometryError
        On non-positive kernel/stride/dilation/input, negative or missing
        explicit padding, or a non-positive output size.
    """
    in_size = _pair(in_size)
    kernel = _pair(kernel)
    stride = _pair(stride)
    dilation = _pair(dilation)

    if mode is ConvolutionMode.SAME:
        _validate_hyperparameters(in_size, kernel, stride, dilation, None)
        out_size = (
            -(-in_size[0] // stride[0]),
            -(-in_size[1] // stride[1]),
        )
        pad = same_mode_top_left_padding(out_size, in_size, kernel, stride, dilation)
        return out_size, pad

    if padding is None:
        raise InvalidGeometryError(
            "explicit convolution mode requires padding",
            input_size=in_size,
            kernel=kernel,
            stride=stride,
            dilation=dilation,
        )
    pad = _pair(padding)
    _validate_hyperparameters(in_size, kernel, stride, dilation, pad)

    ek = effective_kernel(kernel, dilation)
    out_size = (
        (in_size[0] + 2 * pad[0] - ek[0]) // stride[0] + 1,
        (in_size[1] + 2 * pad[1] - ek[1]) // stride[1] + 1,
    )
    if out_size[0] <= 0 or out_size[1] <= 0:
        raise InvalidGeometryError(
            "kernel size (after dilation) must satisfy "
            "0 < kernel <= input + 2 * padding on both axes "
            f"(computed output size {list(out_size)})",
            input_size=in_size,
            kernel=kernel,
            stride=stride,
            dilation=dilation,
            padding=pad,
        )
    return out_size, pad


def resolve_geometry(
    in_size: Tuple[int, int],
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    dilation: Tuple[int, int],
    mode: ConvolutionMode,
    padding: Optional[Tuple[int, int]] = None,
) -> Geometry:
    """
    Resolve a full `Geometry` value from convolution hyperparameters.
    """
    kernel = _pair(kernel)
    stride = _pair(stride)
    dilation = _pair(dilation)
    out_size, pad = resolve(in_size, kernel, stride, dilation, mode, padding)
    return Geometry(
        kernel_h=kernel[0],
        kernel_w=kernel[1],
        stride_h=stride[0],
        stride_w=stride[1],
        pad_h=pad[0],
        pad_w=pad[1],
        dilation_h=dilation[0],
        dilation_w=dilation[1],
        same_mode=mode is ConvolutionMode.SAME,
        out_h=out_size[0],
        out_w=out_size[1],
    )


def geometry_from_int_args(
    args: Sequence[int], in_size: Tuple[int, int]
) -> Geometry:
    """
    Decode a 9-int kernel argument list and re-derive the output size.

    In SAME mode the output size is recomputed from `in_size`; the padding in
    `args` is kept as given so that kernels honour exactly what the caller
    resolved.
    """
    probe = Geometry.from_int_args(args, (0, 0))
    kernel = (probe.kernel_h, probe.kernel_w)
    stride = (probe.stride_h, probe.stride_w)
    dilation = (probe.dilation_h, probe.dilation_w)
    pad = (probe.pad_h, probe.pad_w)

    if probe.same_mode:
        out_size, _ = resolve(in_size, kernel, stride, dilation, ConvolutionMode.SAME)
    else:
        out_size, _ = resolve(
            in_size, kernel, stride, dilation, ConvolutionMode.EXPLICIT, pad
        )
    return Geometry.from_int_args(args, out_size)
