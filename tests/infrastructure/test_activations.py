import unittest

import numpy as np

from sepconv.domain._activation import IActivation
from sepconv.infrastructure._activations import (
    Activation,
    ActivationLeakyReLU,
    ActivationSigmoid,
)


def _numeric_derivative(act, z, eps=1e-6):
    return (
        act.get_activation(z + eps, training=False)
        - act.get_activation(z - eps, training=False)
    ) / (2.0 * eps)


class TestActivationRegistry(unittest.TestCase):
    def test_builtin_names_are_registered(self):
        names = Activation.available()
        for name in ("identity", "relu", "leakyrelu", "sigmoid", "tanh", "softplus"):
            self.assertIn(name, names)
        self.assertEqual(list(names), sorted(names))

    def test_get_returns_protocol_instances(self):
        for name in Activation.available():
            act = Activation.get(name)
            self.assertIsInstance(act, IActivation)
            self.assertEqual(act.name, name)

    def test_lookup_is_case_insensitive(self):
        self.assertIsInstance(Activation.get("TanH"), IActivation)

    def test_unknown_name_lists_available(self):
        with self.assertRaises(ValueError) as cm:
            Activation.get("swishy")
        self.assertIn("identity", str(cm.exception))

    def test_kwargs_are_forwarded(self):
        act = Activation.get("leakyrelu", alpha=0.2)
        self.assertIsInstance(act, ActivationLeakyReLU)
        out = act.get_activation(np.array([-1.0, 2.0]), training=False)
        self.assertTrue(np.allclose(out, [-0.2, 2.0]))

    def test_duplicate_registration_rejected_unless_overwrite(self):
        with self.assertRaises(ValueError):
            Activation.register("sigmoid")(ActivationSigmoid)
        # same class, explicit overwrite leaves registry unchanged in effect
        Activation.register("sigmoid", overwrite=True)(ActivationSigmoid)
        self.assertIsInstance(Activation.get("sigmoid"), ActivationSigmoid)

    def test_empty_name_rejected(self):
        with self.assertRaises(ValueError):
            Activation.register("")


class TestActivationMath(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(0)
        z = rng.standard_normal((2, 3, 4, 4))
        # keep samples away from the relu kinks
        z[np.abs(z) < 1e-3] = 0.5
        self.z = z
        self.eps = rng.standard_normal(z.shape)

    def test_get_activation_does_not_alias_input(self):
        for name in Activation.available():
            with self.subTest(name=name):
                z = self.z.copy()
                out = Activation.get(name).get_activation(z, training=True)
                self.assertFalse(np.shares_memory(out, z))
                self.assertTrue(np.array_equal(z, self.z))

    def test_backprop_matches_numeric_derivative(self):
        for name in Activation.available():
            with self.subTest(name=name):
                act = Activation.get(name)
                got = act.backprop(self.z, self.eps)
                expected = _numeric_derivative(act, self.z) * self.eps
                self.assertTrue(
                    np.allclose(got, expected, atol=1e-5),
                    msg=f"max_abs={np.max(np.abs(got - expected))}",
                )

    def test_sigmoid_is_stable_for_large_inputs(self):
        act = Activation.get("sigmoid")
        with np.errstate(over="raise"):
            out = act.get_activation(np.array([-1000.0, 0.0, 1000.0]), training=False)
        self.assertTrue(np.allclose(out, [0.0, 0.5, 1.0]))

    def test_known_values(self):
        z = np.array([-2.0, 0.0, 3.0])
        self.assertTrue(
            np.allclose(Activation.get("relu").get_activation(z, False), [0, 0, 3])
        )
        self.assertTrue(
            np.allclose(Activation.get("tanh").get_activation(z, False), np.tanh(z))
        )
        self.assertTrue(
            np.allclose(
                Activation.get("softplus").get_activation(z, False), np.log1p(np.exp(z))
            )
        )


if __name__ == "__main__":
    unittest.main()
