"""
Resolved convolution geometry.

`Geometry` is the immutable value handed from the shape/padding resolver to
the convolution kernels. It is derived once per forward or backward call from
the layer configuration and the current input shape, and must be identical on
both paths for the gradients to match the forward computation.

Kernel boundary
---------------
Native and host kernels receive the geometry as a flat integer list

    [kernel_h, kernel_w, stride_h, stride_w, pad_h, pad_w,
     dilation_h, dilation_w, same_mode]

The order and count of this list is a binary contract and must not change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

INT_ARGS_COUNT = 9


@dataclass(frozen=True)
class Geometry:
    """
    Spatial parameters of one convolution invocation.

    Attributes
    ----------
    kernel_h, kernel_w : int
        Kernel size (taps, before dilation).
    stride_h, stride_w : int
        Convolution stride.
    pad_h, pad_w : int
        Top/left padding. In SAME mode the bottom/right side may receive
        one more row/column; see `bottom_right_padding`.
    dilation_h, dilation_w : int
        Kernel dilation.
    same_mode : bool
        Whether the padding was derived by the SAME policy.
    out_h, out_w : int
        Output spatial size.
    """

    kernel_h: int
    kernel_w: int
    stride_h: int
    stride_w: int
    pad_h: int
    pad_w: int
    dilation_h: int
    dilation_w: int
    same_mode: bool
    out_h: int
    out_w: int

    @property
    def out_size(self) -> Tuple[int, int]:
        return (self.out_h, self.out_w)

    @property
    def effective_kernel(self) -> Tuple[int, int]:
        """Kernel extent once dilation is applied: ``d * (k - 1) + 1``."""
        return (
            self.dilation_h * (self.kernel_h - 1) + 1,
            self.dilation_w * (self.kernel_w - 1) + 1,
        )

    def bottom_right_padding(self, in_size: Tuple[int, int]) -> Tuple[int, int]:
        """
        Return the implicit bottom/right padding for an input of `in_size`.

        This is the smallest padding such that every output window lies inside
        the padded plane. For explicit padding it never exceeds the top/left
        padding; in SAME mode it may be one larger.
        """
        ek_h, ek_w = self.effective_kernel
        need_h = (self.out_h - 1) * self.stride_h + ek_h - in_size[0] - self.pad_h
        need_w = (self.out_w - 1) * self.stride_w + ek_w - in_size[1] - self.pad_w
        return (max(0, need_h), max(0, need_w))

    def to_int_args(self) -> List[int]:
        """Encode as the 9-int kernel argument list."""
        return [
            self.kernel_h,
            self.kernel_w,
            self.stride_h,
            self.stride_w,
            self.pad_h,
            self.pad_w,
            self.dilation_h,
            self.dilation_w,
            1 if self.same_mode else 0,
        ]

    @classmethod
    def from_int_args(
        cls, args: Sequence[int], out_size: Tuple[int, int]
    ) -> "Geometry":
        """
        Decode a 9-int kernel argument list.

        Raises
        ------
        ValueError
            If `args` does not contain exactly nine integers.
        """
        if len(args) != INT_ARGS_COUNT:
            raise ValueError(
                f"expected {INT_ARGS_COUNT} integer arguments "
                f"[kH, kW, sH, sW, pH, pW, dH, dW, sameMode], got {len(args)}"
            )
        k_h, k_w, s_h, s_w, p_h, p_w, d_h, d_w, same = (int(a) for a in args)
        return cls(
            kernel_h=k_h,
            kernel_w=k_w,
            stride_h=s_h,
            stride_w=s_w,
            pad_h=p_h,
            pad_w=p_w,
            dilation_h=d_h,
            dilation_w=d_w,
            same_mode=bool(same),
            out_h=int(out_size[0]),
            out_w=int(out_size[1]),
        )
