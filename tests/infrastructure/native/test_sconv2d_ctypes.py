import os
import sys
import unittest
import warnings
from unittest import mock

import numpy as np

try:
    from dotenv import load_dotenv
except ImportError as e:
    raise ImportError(
        "python-dotenv is required to load .env for native tests. "
        "Install it with: pip install python-dotenv"
    ) from e

# Load repo_root/.env relative to this test file.
_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
_REPO_ROOT = os.path.abspath(os.path.join(_THIS_DIR, "..", "..", ".."))
load_dotenv(os.path.join(_REPO_ROOT, ".env"))

MINGW_BIN = os.getenv("SEPCONV_MINGW_BIN")
if sys.platform.startswith("win") and MINGW_BIN:
    os.environ["PATH"] = MINGW_BIN + os.pathsep + os.environ.get("PATH", "")

from sepconv.domain._modes import ConvolutionMode
from sepconv.infrastructure.convolution._config import SeparableConv2dConfig
from sepconv.infrastructure.convolution._helpers import NativeSeparableConvHelper
from sepconv.infrastructure.convolution._padding import resolve_geometry
from sepconv.infrastructure.convolution._separable_conv2d_layer import (
    SeparableConvolution2DLayer,
)
from sepconv.infrastructure.native.python import _native_loader, sconv2d_ctypes
from sepconv.infrastructure.ops._initializers_cpu import init_separable_conv2d_params
from sepconv.infrastructure.ops.sconv2d_cpu import sconv2d


def _case(dtype=np.float32, seed=0):
    rng = np.random.default_rng(seed)
    x = rng.standard_normal((2, 3, 6, 5)).astype(dtype)
    w = rng.standard_normal((2, 3, 3, 3)).astype(dtype)
    b = rng.standard_normal((1, 6)).astype(dtype)
    g = resolve_geometry((6, 5), (3, 3), (1, 2), (1, 1), ConvolutionMode.SAME)
    return x, w, b, g


def _reference(x, w, b, g):
    out = np.empty((x.shape[0], x.shape[1] * w.shape[0], g.out_h, g.out_w), x.dtype)
    return sconv2d(x, w, b, g.to_int_args(), out=out)


def _fake_kernel(lib, *, x, w, b, y, out_h, out_w, int_args):
    y[...] = sconv2d(x, w, b, int_args, out=np.empty_like(y))


class TestSconv2dCtypesWrapper(unittest.TestCase):
    def test_rejects_wrong_dtypes(self):
        x, w, b, g = _case(np.float64)
        y = np.empty((2, 6, g.out_h, g.out_w), dtype=np.float64)
        lib = mock.Mock()
        with self.assertRaises(TypeError):
            sconv2d_ctypes.sconv2d_forward_f32_ctypes(
                lib, x=x, w=w, b=b, y=y, out_h=g.out_h, out_w=g.out_w,
                int_args=g.to_int_args(),
            )
        with self.assertRaises(TypeError):
            sconv2d_ctypes.sconv2d_forward_f64_ctypes(
                lib, x=x, w=w.astype(np.float32), b=b, y=y, out_h=g.out_h,
                out_w=g.out_w, int_args=g.to_int_args(),
            )
        lib.sepconv_sconv2d_forward_f32.assert_not_called()

    def test_rejects_non_contiguous_output(self):
        x, w, b, g = _case()
        y = np.empty((2, 6, g.out_w, g.out_h), dtype=np.float32).transpose(0, 1, 3, 2)
        with self.assertRaises(ValueError):
            sconv2d_ctypes.sconv2d_forward_f32_ctypes(
                mock.Mock(), x=x, w=w, b=b, y=y, out_h=g.out_h, out_w=g.out_w,
                int_args=g.to_int_args(),
            )

    def test_rejects_malformed_int_args(self):
        x, w, b, g = _case()
        y = np.empty((2, 6, g.out_h, g.out_w), dtype=np.float32)
        with self.assertRaises(ValueError):
            sconv2d_ctypes.sconv2d_forward_f32_ctypes(
                mock.Mock(), x=x, w=w, b=b, y=y, out_h=g.out_h, out_w=g.out_w,
                int_args=g.to_int_args()[:8],
            )

    def test_passes_dimensions_and_geometry_to_symbol(self):
        x, w, b, g = _case()
        y = np.empty((2, 6, g.out_h, g.out_w), dtype=np.float32)
        lib = mock.Mock()
        sconv2d_ctypes.sconv2d_forward_f32_ctypes(
            lib, x=x, w=w, b=b, y=y, out_h=g.out_h, out_w=g.out_w,
            int_args=g.to_int_args(),
        )
        fn = lib.sepconv_sconv2d_forward_f32
        fn.assert_called_once()
        args = fn.call_args[0]
        self.assertEqual(tuple(args[4:11]), (2, 3, 6, 5, 2, g.out_h, g.out_w))
        self.assertEqual(list(args[11]), g.to_int_args())
        self.assertEqual(args[12], 9)
        self.assertEqual(len(fn.argtypes), 13)


class TestNativeLoader(unittest.TestCase):
    def tearDown(self):
        _native_loader.load_sepconv_native.cache_clear()

    def test_variant_names_per_platform(self):
        with mock.patch.object(_native_loader.sys, "platform", "linux"):
            self.assertEqual(
                _native_loader._variant_lib_name("omp"), "libsepconv_native_omp.so"
            )
        with mock.patch.object(_native_loader.sys, "platform", "darwin"):
            self.assertEqual(
                _native_loader._variant_lib_name("default"), "libsepconv_native.dylib"
            )
        with mock.patch.object(_native_loader.sys, "platform", "win32"):
            self.assertEqual(
                _native_loader._variant_lib_name("noomp"), "sepconv_native_noomp.dll"
            )
        with self.assertRaises(ValueError):
            _native_loader._variant_lib_name("cuda")

    def test_explicit_missing_path_raises(self):
        with self.assertRaises(FileNotFoundError):
            _native_loader.load_sepconv_native("/nonexistent/libsepconv_native.so")

    def test_env_var_overrides_search(self):
        with mock.patch.dict(
            os.environ, {_native_loader.ENV_LIB_PATH: "/nonexistent/custom.so"}
        ):
            with self.assertRaises(FileNotFoundError) as cm:
                _native_loader.load_sepconv_native()
        self.assertIn("custom.so", str(cm.exception))


class TestNativeSeparableConvHelper(unittest.TestCase):
    def test_declines_and_warns_once_when_library_missing(self):
        x, w, b, g = _case()
        helper = NativeSeparableConvHelper()
        loader = mock.Mock(side_effect=OSError("no library"))
        with mock.patch.object(sconv2d_ctypes, "load_sepconv_native", loader):
            with self.assertWarns(RuntimeWarning):
                self.assertIsNone(helper.try_pre_output(x, w, b, g))
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                self.assertIsNone(helper.try_pre_output(x, w, b, g))
        self.assertEqual(caught, [])
        loader.assert_called_once()

    def test_declines_unsupported_dtypes_without_loading(self):
        x, w, b, g = _case()
        helper = NativeSeparableConvHelper()
        loader = mock.Mock()
        with mock.patch.object(sconv2d_ctypes, "load_sepconv_native", loader):
            self.assertIsNone(
                helper.try_pre_output(x.astype(np.float16), w.astype(np.float16), b, g)
            )
            self.assertIsNone(helper.try_pre_output(x, w.astype(np.float64), b, g))
            self.assertIsNone(helper.try_pre_output(np.asfortranarray(x), w, b, g))
        loader.assert_not_called()

    def test_dispatches_by_dtype(self):
        for dtype, name in (
            (np.float32, "sconv2d_forward_f32_ctypes"),
            (np.float64, "sconv2d_forward_f64_ctypes"),
        ):
            with self.subTest(dtype=dtype):
                x, w, b, g = _case(dtype)
                helper = NativeSeparableConvHelper(lib_path="/opt/libsepconv_native.so")
                lib = object()
                with mock.patch.object(
                    sconv2d_ctypes, "load_sepconv_native", return_value=lib
                ) as loader, mock.patch.object(
                    sconv2d_ctypes, name, side_effect=_fake_kernel
                ) as kernel:
                    y = helper.try_pre_output(x, w, b, g)
                loader.assert_called_once_with("/opt/libsepconv_native.so")
                self.assertIs(kernel.call_args[0][0], lib)
                self.assertEqual(kernel.call_args[1]["int_args"], g.to_int_args())
                self.assertEqual(y.dtype, dtype)
                self.assertTrue(np.allclose(y, _reference(x, w, b, g)))

    def test_layer_falls_back_when_library_missing(self):
        cfg = SeparableConv2dConfig(n_in=3, depth_multiplier=2, kernel_size=(3, 3))
        params = init_separable_conv2d_params(cfg, seed=0)
        x = np.random.randn(2, 3, 6, 6).astype(np.float32)

        layer = SeparableConvolution2DLayer(
            cfg, params, helper=NativeSeparableConvHelper()
        )
        ref = SeparableConvolution2DLayer(cfg, params)
        with mock.patch.object(
            sconv2d_ctypes, "load_sepconv_native", side_effect=OSError("missing")
        ):
            with self.assertWarns(RuntimeWarning):
                out = layer.activate(x)
        self.assertTrue(np.array_equal(out, ref.activate(x)))


class TestNativeKernelAgainstReference(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        try:
            cls.lib = sconv2d_ctypes.load_sepconv_native()
        except OSError as e:
            raise unittest.SkipTest(f"native library not available: {e}")

    def test_forward_matches_reference(self):
        for dtype, fn in (
            (np.float32, sconv2d_ctypes.sconv2d_forward_f32_ctypes),
            (np.float64, sconv2d_ctypes.sconv2d_forward_f64_ctypes),
        ):
            with self.subTest(dtype=dtype):
                x, w, b, g = _case(dtype, seed=5)
                y = np.empty((2, 6, g.out_h, g.out_w), dtype=dtype)
                fn(
                    self.lib, x=x, w=w, b=b, y=y, out_h=g.out_h, out_w=g.out_w,
                    int_args=g.to_int_args(),
                )
                atol = 1e-5 if dtype == np.float32 else 1e-12
                self.assertTrue(np.allclose(y, _reference(x, w, b, g), atol=atol))


if __name__ == "__main__":
    unittest.main()
