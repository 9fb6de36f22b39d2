import unittest

import numpy as np

from sepconv.domain._parameter_store import IParameterStore, IWeightNoise
from sepconv.infrastructure._gradient import DefaultGradient
from sepconv.infrastructure._parameter_store import FlatParameterStore, ParamHandle
from sepconv.infrastructure._weight_noise import DropConnect, WeightNoise
from sepconv.infrastructure.convolution._config import SeparableConv2dConfig
from sepconv.infrastructure.ops._initializers_cpu import (
    init_separable_conv2d_params,
    separable_conv2d_param_shapes,
)


class TestFlatParameterStore(unittest.TestCase):
    def setUp(self):
        self.store = FlatParameterStore({"W": (2, 3, 2, 2), "b": (1, 6)})

    def test_layout_is_contiguous_in_declaration_order(self):
        self.assertEqual(self.store.keys(), ["W", "b"])
        self.assertEqual(self.store.handle("W"), ParamHandle("W", 0, (2, 3, 2, 2)))
        self.assertEqual(self.store.handle("b").offset, 24)
        self.assertEqual(self.store.num_params(), 30)
        self.assertIn("W", self.store)
        self.assertNotIn("gamma", self.store)

    def test_views_alias_flat_buffers(self):
        w = self.store.param("W")
        self.assertTrue(np.shares_memory(w, self.store.flat_params))
        self.store.set_param("W", np.ones((2, 3, 2, 2)))
        self.assertTrue(np.all(self.store.flat_params[:24] == 1))
        self.assertTrue(np.all(self.store.flat_params[24:] == 0))
        self.assertIs(self.store.param_table()["W"], w)

    def test_set_param_rejects_shape_mismatch(self):
        with self.assertRaises(ValueError):
            self.store.set_param("b", np.zeros((6,)))

    def test_gradient_view_is_stable(self):
        g1 = self.store.gradient_view("W")
        g2 = self.store.gradient_view("W")
        self.assertIs(g1, g2)
        g1[...] = 3.0
        self.assertTrue(np.all(self.store.flat_gradients[:24] == 3.0))
        self.store.zero_gradients()
        self.assertTrue(np.all(g1 == 0))

    def test_satisfies_protocol(self):
        self.assertIsInstance(self.store, IParameterStore)

    def test_without_noise_returns_stored_view(self):
        self.assertIs(self.store.get_param_with_noise("W", True), self.store.param("W"))
        self.assertEqual(self.store.transient_override_keys(), [])


class TestWeightNoisePolicies(unittest.TestCase):
    def test_policies_satisfy_protocol(self):
        self.assertIsInstance(WeightNoise(0.1), IWeightNoise)
        self.assertIsInstance(DropConnect(0.5), IWeightNoise)

    def test_weight_noise_is_memoised_until_cleared(self):
        store = FlatParameterStore(
            {"W": (4, 4), "b": (1, 4)}, dtype=np.float64, weight_noise=WeightNoise(1.0), seed=0
        )
        a = store.get_param_with_noise("W", True)
        b = store.get_param_with_noise("W", True)
        self.assertIs(a, b)
        self.assertFalse(np.array_equal(a, store.param("W")))
        self.assertEqual(a.dtype, np.float64)

        # bias untouched by default
        self.assertTrue(np.array_equal(store.get_param_with_noise("b", True), store.param("b")))

        store.clear_transient_overrides()
        self.assertEqual(store.transient_override_keys(), [])
        c = store.get_param_with_noise("W", True)
        self.assertFalse(np.array_equal(a, c))

    def test_no_noise_outside_training(self):
        store = FlatParameterStore({"W": (3, 3)}, weight_noise=WeightNoise(1.0))
        self.assertIs(store.get_param_with_noise("W", False), store.param("W"))
        self.assertEqual(store.transient_override_keys(), [])

    def test_multiplicative_noise_keeps_zeros(self):
        rng = np.random.default_rng(1)
        p = np.zeros((5, 5))
        out = WeightNoise(0.3, additive=False).get_parameter("W", p, True, rng)
        self.assertTrue(np.all(out == 0))

    def test_dropconnect_masks_entries(self):
        rng = np.random.default_rng(2)
        p = np.ones((50, 50), dtype=np.float32)
        out = DropConnect(0.5).get_parameter("W", p, True, rng)
        self.assertEqual(out.dtype, np.float32)
        self.assertTrue(set(np.unique(out)).issubset({0.0, 1.0}))
        self.assertTrue(0.3 < out.mean() < 0.7)
        self.assertIs(DropConnect(0.5).get_parameter("b", p, True, rng), p)
        self.assertIsNot(
            DropConnect(0.5, apply_to_bias=True).get_parameter("b", p, True, rng), p
        )

    def test_invalid_policy_arguments(self):
        with self.assertRaises(ValueError):
            WeightNoise(-1.0)
        with self.assertRaises(ValueError):
            DropConnect(1.5)


class TestSeparableParamInit(unittest.TestCase):
    def test_param_shapes(self):
        cfg = SeparableConv2dConfig(n_in=3, depth_multiplier=2, kernel_size=(3, 5))
        self.assertEqual(
            separable_conv2d_param_shapes(cfg), {"W": (2, 3, 3, 5), "b": (1, 6)}
        )
        cfg = SeparableConv2dConfig(n_in=3, has_bias=False)
        self.assertEqual(separable_conv2d_param_shapes(cfg), {"W": (1, 3, 5, 5)})

    def test_init_is_seeded_he_normal_with_zero_bias(self):
        cfg = SeparableConv2dConfig(n_in=16, depth_multiplier=4, kernel_size=(3, 3))
        a = init_separable_conv2d_params(cfg, seed=123)
        b = init_separable_conv2d_params(cfg, seed=123)
        self.assertTrue(np.array_equal(a.flat_params, b.flat_params))
        self.assertEqual(a.dtype, np.float32)
        self.assertTrue(np.all(a.param("b") == 0))
        std = float(np.std(a.param("W")))
        self.assertAlmostEqual(std, np.sqrt(2.0 / 9.0), delta=0.06)


class TestDefaultGradient(unittest.TestCase):
    def test_mapping_and_order_tags(self):
        g = DefaultGradient()
        w = np.zeros((2, 2))
        g.set_gradient_for("W", w, "c")
        self.assertIs(g["W"], w)
        self.assertEqual(len(g), 1)
        self.assertEqual(list(g), ["W"])
        self.assertEqual(g.flattening_order_for("W"), "c")
        self.assertIsNone(g.flattening_order_for("b"))
        self.assertEqual(g.gradient_for_variable(), {"W": w})
        self.assertIn("order=c", repr(g))

    def test_rejects_unknown_order(self):
        with self.assertRaises(ValueError):
            DefaultGradient().set_gradient_for("W", np.zeros(1), "x")


if __name__ == "__main__":
    unittest.main()
