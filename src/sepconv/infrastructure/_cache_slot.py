"""
Single-slot produce/consume channel for cached pre-activations.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


class CacheSlot:
    """
    Bounded (capacity 1) channel between a forward call and its backward call.

    A training forward pass may `put` a deep copy of its pre-activation; the
    following backward pass `take`s it, which empties the slot. A second `put`
    before any `take` replaces the stored array.
    """

    def __init__(self) -> None:
        self._value: Optional[np.ndarray] = None

    @property
    def is_filled(self) -> bool:
        return self._value is not None

    def put(self, value: np.ndarray) -> None:
        self._value = value

    def take(self) -> Optional[np.ndarray]:
        """Return the stored array (or None) and invalidate the slot."""
        value, self._value = self._value, None
        return value

    def invalidate(self) -> None:
        self._value = None
