"""
Gradient record produced by a layer's backward pass.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Iterator, Mapping, Optional

import numpy as np


class DefaultGradient(Mapping[str, np.ndarray]):
    """
    Ordered mapping from parameter key to gradient array.

    Each entry may carry a flattening order tag (``"c"`` for row-major,
    ``"f"`` for column-major) telling the optimizer how the gradient is laid
    out in its flattened buffer.

    Notes
    -----
    The record stores the arrays it is given; it never copies them. A layer
    that writes into a parameter store's gradient views therefore hands the
    optimizer those very views.
    """

    def __init__(self) -> None:
        self._gradients: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._orders: Dict[str, Optional[str]] = {}

    def set_gradient_for(
        self, key: str, gradient: np.ndarray, order: Optional[str] = None
    ) -> None:
        """
        Store `gradient` under `key`.

        Raises
        ------
        ValueError
            If `order` is not None, ``"c"`` or ``"f"``.
        """
        if order is not None and order not in ("c", "f"):
            raise ValueError(f"order must be 'c', 'f' or None, got {order!r}")
        self._gradients[key] = gradient
        self._orders[key] = order

    def gradient_for_variable(self) -> Dict[str, np.ndarray]:
        """Return a shallow copy of the key -> gradient mapping."""
        return dict(self._gradients)

    def flattening_order_for(self, key: str) -> Optional[str]:
        return self._orders.get(key)

    def __getitem__(self, key: str) -> np.ndarray:
        return self._gradients[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._gradients)

    def __len__(self) -> int:
        return len(self._gradients)

    def __repr__(self) -> str:
        entries = ", ".join(
            f"{k}: {tuple(v.shape)} order={self._orders[k]}"
            for k, v in self._gradients.items()
        )
        return f"DefaultGradient({entries})"
