"""
Configuration enums for convolution padding and activation caching.
"""

from enum import Enum


class ConvolutionMode(Enum):
    """
    Padding policy for a convolution.

    Attributes
    ----------
    EXPLICIT : ConvolutionMode
        Caller-supplied symmetric padding; the output size follows the
        standard convolution arithmetic.
    SAME : ConvolutionMode
        Output size is ``ceil(input / stride)`` regardless of kernel size;
        the padding is derived, with the smaller half on the top/left.
    """

    EXPLICIT = "explicit"
    SAME = "same"


class CacheMode(Enum):
    """
    Where a layer may keep its pre-activation between forward and backward.

    ``NONE`` disables caching. ``HOST`` and ``DEVICE`` both enable the
    single-slot cache; they differ only in which memory region the caller
    intends to back it with.
    """

    NONE = "none"
    HOST = "host"
    DEVICE = "device"
