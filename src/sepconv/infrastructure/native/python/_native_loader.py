"""
sepconv native shared library loader.

This module resolves and loads the optional native separable-convolution
kernels via `ctypes`, including platform-specific filename conventions,
OpenMP vs non-OpenMP variant selection, and Windows DLL dependency handling.

Resolution policy
-----------------
1. An explicit `lib_path` argument.
2. The `SEPCONV_NATIVE_LIB` environment variable.
3. Libraries located next to this module, in priority order:
   OpenMP variant (`*_omp`), single-threaded variant (`*_noomp`),
   then the plain default name.

Windows-specific considerations
-------------------------------
On Windows (Python 3.8+), dependent DLL discovery is restricted by default.
The directory containing the library and, if defined, the MinGW-w64 runtime
directory (`SEPCONV_MINGW_BIN`) are registered with `os.add_dll_directory`.
The registration handles are kept on the loaded library object so they live
as long as the library does.

This module only loads the library. Deciding whether to call it, and falling
back when it is missing, is the job of the helper layer.
"""

from __future__ import annotations

import ctypes
import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

ENV_LIB_PATH = "SEPCONV_NATIVE_LIB"
ENV_MINGW_BIN = "SEPCONV_MINGW_BIN"


def _variant_lib_name(variant: str) -> str:
    """
    Return the platform-specific filename for a native library variant.

    Parameters
    ----------
    variant : str
        One of ``"omp"``, ``"noomp"`` or ``"default"``.

    Returns
    -------
    str
        The filename (not a full path) for the requested variant.
    """
    v = variant.lower()
    suffixes = {"omp": "_omp", "noomp": "_noomp", "default": ""}
    if v not in suffixes:
        raise ValueError(f"Unknown variant: {variant!r}")
    stem = "sepconv_native" + suffixes[v]

    if sys.platform.startswith("win"):
        return stem + ".dll"
    if sys.platform == "darwin":
        return "lib" + stem + ".dylib"
    return "lib" + stem + ".so"


@lru_cache(maxsize=1)
def load_sepconv_native(lib_path: Optional[str] = None) -> ctypes.CDLL:
    """
    Load the sepconv native shared library via ctypes.

    Parameters
    ----------
    lib_path : Optional[str]
        Path to a specific library file. Overrides the environment variable
        and the variant search.

    Returns
    -------
    ctypes.CDLL
        A loaded handle to the native library.

    Raises
    ------
    FileNotFoundError
        If an explicit path is given but does not exist.
    OSError
        If none of the candidate libraries can be loaded.
    """
    explicit = lib_path or os.environ.get(ENV_LIB_PATH) or None
    if explicit is not None:
        return _load_cdll_with_windows_dirs(Path(explicit).resolve())

    base_dir = Path(__file__).resolve().parent
    candidates = [
        base_dir / _variant_lib_name("omp"),
        base_dir / _variant_lib_name("noomp"),
        base_dir / _variant_lib_name("default"),
    ]

    errors: list[str] = []
    for p in candidates:
        if not p.exists():
            errors.append(f"- {p} (missing)")
            continue
        try:
            return _load_cdll_with_windows_dirs(p)
        except OSError as e:
            errors.append(f"- {p} (failed to load: {e})")

    raise OSError(
        "Failed to load any sepconv native library. Tried:\n" + "\n".join(errors)
    )


def _load_cdll_with_windows_dirs(dll_path: Path) -> ctypes.CDLL:
    if not dll_path.exists():
        raise FileNotFoundError(f"Native library not found: {dll_path}")

    handles = []
    if sys.platform.startswith("win") and hasattr(os, "add_dll_directory"):
        handles.append(os.add_dll_directory(str(dll_path.parent)))

        mingw_bin = os.environ.get(ENV_MINGW_BIN, "")
        if mingw_bin:
            try:
                handles.append(os.add_dll_directory(mingw_bin))
            except OSError as e:
                raise OSError(
                    f"add_dll_directory failed for {ENV_MINGW_BIN}={mingw_bin!r} "
                    f"winerror={getattr(e, 'winerror', None)} "
                    f"strerror={getattr(e, 'strerror', None)!r}"
                ) from e

    dll_str = str(dll_path)
    try:
        lib = ctypes.CDLL(dll_str)
    except OSError as e:
        raise OSError(
            f"ctypes.CDLL failed for dll={dll_str!r} "
            f"errno={getattr(e, 'errno', None)} "
            f"strerror={getattr(e, 'strerror', None)!r}"
        ) from e

    setattr(lib, "_sepconv_dll_dir_handles", handles)
    return lib
