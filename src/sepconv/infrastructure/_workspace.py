"""
Scoped memory regions for layer computations.

A `WorkspaceManager` owns named `MemoryWorkspace`s. Layers use them for two
longer-lived allocations:

- the pre-activation cache, duplicated into the named cache workspace
  (`WS_LAYER_CACHE`) only when that workspace exists;
- one-off allocations that must outlive every workspace (the zero-bias
  placeholder), made inside `scope_out_of_workspaces()`.

Per-call temporaries are plain NumPy arrays and are released as soon as the
call returns.

Workspaces account for the bytes they hand out and drop references on
`release(arr)` (one array) or `reset()` (all of them). The layer releases
its cached pre-activation as soon as the slot is consumed or replaced, so
the cache workspace tracks at most one array per layer. Arrays already returned to a caller stay valid; the workspace just
stops tracking them.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple

import numpy as np

WS_LAYER_CACHE = "WS_LAYER_CACHE"


class MemoryWorkspace:
    """
    Named allocation region with byte accounting.

    Parameters
    ----------
    name : str
        Workspace identifier.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._allocations: List[np.ndarray] = []
        self._borrow_depth = 0

    @property
    def bytes_allocated(self) -> int:
        """Total bytes handed out since the last reset."""
        return sum(a.nbytes for a in self._allocations)

    @property
    def num_allocations(self) -> int:
        return len(self._allocations)

    @property
    def is_borrowed(self) -> bool:
        """True while inside a `notify_scope_borrowed()` block."""
        return self._borrow_depth > 0

    @contextmanager
    def notify_scope_borrowed(self) -> Iterator["MemoryWorkspace"]:
        """
        Borrow this workspace for the duration of a `with` block.

        Allocations made through the yielded workspace belong to it, not to
        whatever scope the caller is currently running in.
        """
        self._borrow_depth += 1
        try:
            yield self
        finally:
            self._borrow_depth -= 1

    def _track(self, arr: np.ndarray) -> np.ndarray:
        self._allocations.append(arr)
        return arr

    def empty(
        self, shape: Tuple[int, ...], dtype: Any = np.float32, order: str = "C"
    ) -> np.ndarray:
        return self._track(np.empty(shape, dtype=dtype, order=order))

    def zeros(
        self, shape: Tuple[int, ...], dtype: Any = np.float32, order: str = "C"
    ) -> np.ndarray:
        return self._track(np.zeros(shape, dtype=dtype, order=order))

    def dup(self, arr: np.ndarray) -> np.ndarray:
        """Deep copy `arr` (never a view), preserving its memory order."""
        return self._track(np.array(arr, copy=True, order="K"))

    def release(self, arr: np.ndarray) -> bool:
        """
        Stop tracking `arr` (matched by identity).

        Returns
        -------
        bool
            True if `arr` was tracked by this workspace.
        """
        for i, a in enumerate(self._allocations):
            if a is arr:
                del self._allocations[i]
                return True
        return False

    def reset(self) -> None:
        """Stop tracking every allocation made so far."""
        self._allocations.clear()


class _DetachedAllocator(MemoryWorkspace):
    """Allocator used outside of all workspaces."""

    def __init__(self) -> None:
        super().__init__("(detached)")

    def _track(self, arr: np.ndarray) -> np.ndarray:
        return arr


class WorkspaceManager:
    """
    Registry of named workspaces.

    Notes
    -----
    Workspaces are created explicitly; `workspace_exists` lets layers skip
    optional work (such as caching) when the caller did not set up a region.
    """

    def __init__(self) -> None:
        self._workspaces: Dict[str, MemoryWorkspace] = {}
        self._detached_depth = 0

    def create_workspace(self, name: str) -> MemoryWorkspace:
        """Create (or return the existing) workspace `name`."""
        ws = self._workspaces.get(name)
        if ws is None:
            ws = MemoryWorkspace(name)
            self._workspaces[name] = ws
        return ws

    def workspace_exists(self, name: str) -> bool:
        return name in self._workspaces

    def get_workspace(self, name: str) -> MemoryWorkspace:
        """
        Return workspace `name`.

        Raises
        ------
        KeyError
            If no such workspace has been created.
        """
        try:
            return self._workspaces[name]
        except KeyError as e:
            raise KeyError(f"No workspace named {name!r}") from e

    def destroy_workspace(self, name: str) -> None:
        ws = self._workspaces.pop(name, None)
        if ws is not None:
            ws.reset()

    @property
    def is_scoped_out(self) -> bool:
        return self._detached_depth > 0

    @contextmanager
    def scope_out_of_workspaces(self) -> Iterator[MemoryWorkspace]:
        """
        Yield an allocator whose arrays belong to no workspace.

        Used for allocations with process lifetime that must survive any
        workspace reset.
        """
        self._detached_depth += 1
        try:
            yield _DetachedAllocator()
        finally:
            self._detached_depth -= 1
