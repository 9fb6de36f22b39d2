"""
Memory-layout predicates for NumPy arrays.
"""

from __future__ import annotations

import numpy as np


def ordering(arr: np.ndarray) -> str:
    """
    Return the layout tag of `arr`: ``"c"`` (row-major) or ``"f"``
    (column-major).

    Arrays that are F-contiguous but not C-contiguous are ``"f"``; everything
    else, including non-contiguous views, is treated as ``"c"``.
    """
    if arr.flags["F_CONTIGUOUS"] and not arr.flags["C_CONTIGUOUS"]:
        return "f"
    return "c"


def stride_descending_c_ascending_f(arr: np.ndarray) -> bool:
    """
    True if `arr`'s strides are strictly descending for a ``"c"`` array or
    strictly ascending for an ``"f"`` array.

    Size-1 dimensions are ignored since their stride never affects
    addressing.
    """
    strides = [s for s, d in zip(arr.strides, arr.shape) if d != 1]
    if len(strides) <= 1:
        return True
    if ordering(arr) == "c":
        return all(a > b for a, b in zip(strides, strides[1:]))
    return all(a < b for a, b in zip(strides, strides[1:]))
