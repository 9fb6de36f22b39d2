"""
Depthwise-separable 2D convolution layer.

`SeparableConvolution2DLayer` orchestrates the forward pass (`pre_output`,
`activate`) and the backward pass (`backprop_gradient`) of a depthwise
convolution with an optional depth multiplier, on NCHW NumPy tensors.

Collaborators
-------------
- Parameter store: borrows the depthwise weights ``"W"`` and bias ``"b"``
  (possibly perturbed by weight noise) and receives the weight gradient in
  its stable ``"W"`` gradient view.
- Helper: optional accelerated implementation, asked first and allowed to
  decline; the reference primitive is the fallback.
- Activation: applied to the pre-activation, and used to map the upstream
  error back onto the pre-activation during backpropagation.
- Workspace manager: the named cache region (`WS_LAYER_CACHE`) enables
  pre-activation caching; the workspace-exempt scope holds the zero-bias
  placeholder of no-bias layers.

Call protocol
-------------
A backward call must follow exactly one forward call on the same input. Every
forward pass first drops whatever the `CacheSlot` still holds; when caching is
active it then leaves a deep copy of its pre-activation there. The backward
pass consumes it (or recomputes it when the slot is empty or its shape does
not match the upstream error). A consumed or replaced copy is released from
the cache workspace, so the workspace holds at most one copy per layer. All validation happens before any allocation or write
into the parameter store's gradient buffer.

Known limitation
----------------
No bias gradient is produced: the gradient record holds exactly one entry,
``"W"``. The forward pass still adds the bias.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ...domain._activation import IActivation
from ...domain._errors import (
    ChannelMismatchError,
    InvalidInputShapeError,
    MissingInputError,
)
from ...domain._geometry import Geometry
from ...domain._helper import IConvolutionHelper
from ...domain._modes import CacheMode
from ...domain._parameter_store import IParameterStore
from .._activations import Activation
from .._cache_slot import CacheSlot
from .._gradient import DefaultGradient
from .._parameter_store import BIAS_KEY, WEIGHT_KEY
from .._workspace import WS_LAYER_CACHE, WorkspaceManager
from ..ops._initializers_cpu import init_separable_conv2d_params
from ..ops.sconv2d_cpu import sconv2d_bp
from ..utils._shape import stride_descending_c_ascending_f
from ._config import SeparableConv2dConfig
from ._helpers import GenericSeparableConvPath
from ._padding import resolve_geometry


class SeparableConvolution2DLayer:
    """
    Forward/backward engine of a depthwise-separable 2D convolution layer.

    Parameters
    ----------
    config : SeparableConv2dConfig
        Layer hyperparameters.
    params : Optional[IParameterStore], optional
        Parameter store. A freshly initialized `FlatParameterStore` is
        created if omitted.
    index : Optional[int], optional
        Index of the layer within its network (used in error messages).
    helper : Optional[IConvolutionHelper], optional
        Accelerated helper tried before the reference primitive.
    workspaces : Optional[WorkspaceManager], optional
        Memory-region manager. A private manager (with no cache region) is
        created if omitted.
    activation : Optional[IActivation], optional
        Activation instance; defaults to ``Activation.get(config.activation)``.

    Attributes
    ----------
    cache_slot : CacheSlot
        Single-use storage of the pre-activation between a training forward
        pass and the backward pass that follows it.
    """

    def __init__(
        self,
        config: SeparableConv2dConfig,
        params: Optional[IParameterStore] = None,
        *,
        index: Optional[int] = None,
        helper: Optional[IConvolutionHelper] = None,
        workspaces: Optional[WorkspaceManager] = None,
        activation: Optional[IActivation] = None,
    ) -> None:
        self.config = config
        self.params = (
            params if params is not None else init_separable_conv2d_params(config)
        )
        self.index = index
        self.helper = helper
        self.workspaces = workspaces if workspaces is not None else WorkspaceManager()
        self.activation_fn = (
            activation if activation is not None else Activation.get(config.activation)
        )
        self.cache_slot = CacheSlot()

        self._generic = GenericSeparableConvPath()
        self._input: Optional[np.ndarray] = None
        self._dummy_bias: Optional[np.ndarray] = None

    # ---- input handling ----
    @property
    def input(self) -> Optional[np.ndarray]:
        return self._input

    def set_input(self, x: Optional[np.ndarray]) -> None:
        self._input = None if x is None else np.asarray(x)

    def clear(self) -> None:
        """Drop the retained input and any cached pre-activation."""
        self._input = None
        self._release_cached(self.cache_slot.take())

    def _release_cached(self, z: Optional[np.ndarray]) -> None:
        if z is not None and self.workspaces.workspace_exists(WS_LAYER_CACHE):
            self.workspaces.get_workspace(WS_LAYER_CACHE).release(z)

    def layer_id(self) -> str:
        name = self.config.layer_name
        return (
            f"(layer name: {name if name is not None else '(not named)'}, "
            f"layer index: {self.index if self.index is not None else '(unknown)'})"
        )

    def num_params(self) -> int:
        return self.params.num_params()

    # ---- validation / geometry ----
    def _require_input(self, op: str) -> np.ndarray:
        if self._input is None:
            raise MissingInputError(
                op, layer_name=self.config.layer_name, layer_index=self.index
            )
        return self._input

    def _validate_input(self, x: np.ndarray) -> None:
        if x.ndim != 4:
            raise InvalidInputShapeError(
                x.shape, layer_name=self.config.layer_name, layer_index=self.index
            )
        in_depth = self.params.param(WEIGHT_KEY).shape[1]
        if x.shape[1] != in_depth:
            raise ChannelMismatchError(
                x.shape[1],
                in_depth,
                x.shape,
                layer_name=self.config.layer_name,
                layer_index=self.index,
            )

    def _resolve_geometry(self, x: np.ndarray) -> Geometry:
        cfg = self.config
        kernel = tuple(self.params.param(WEIGHT_KEY).shape[2:])
        return resolve_geometry(
            (x.shape[2], x.shape[3]),
            kernel,
            cfg.stride,
            cfg.dilation,
            cfg.convolution_mode,
            cfg.padding,
        )

    def _bias_or_placeholder(self, training: bool) -> np.ndarray:
        if self.config.has_bias:
            return self.params.get_param_with_noise(BIAS_KEY, training)

        if self._dummy_bias is None:
            with self.workspaces.scope_out_of_workspaces() as alloc:
                dummy = alloc.zeros((1, self.config.n_out), dtype=self.params.dtype)
            dummy.flags.writeable = False
            self._dummy_bias = dummy
        return self._dummy_bias

    # ---- forward ----
    def pre_output(self, training: bool = False) -> np.ndarray:
        """
        Compute the pre-activation of the retained input.

        Returns
        -------
        np.ndarray
            Freshly allocated (N, n_out, out_h, out_w) array.

        Raises
        ------
        MissingInputError
            If no input is set.
        InvalidInputShapeError
            If the input is not rank 4.
        ChannelMismatchError
            If the input depth differs from the weights' input depth.
        InvalidGeometryError
            If the configured kernel does not fit the input.
        """
        x = self._require_input("forward pass")
        self._validate_input(x)
        geometry = self._resolve_geometry(x)

        weights = self.params.get_param_with_noise(WEIGHT_KEY, training)
        bias = self._bias_or_placeholder(training)

        if self.helper is not None and self.helper.accepts_layout(x):
            ret = self.helper.try_pre_output(x, weights, bias, geometry)
            if ret is not None:
                return ret

        return self._generic.try_pre_output(x, weights, bias, geometry)

    def activate(
        self, x: Optional[np.ndarray] = None, training: bool = False
    ) -> np.ndarray:
        """
        Forward pass: convolution followed by the activation function.

        Parameters
        ----------
        x : Optional[np.ndarray]
            Input of shape (N, n_in, H, W). If omitted, the input previously
            set with `set_input` is used.
        training : bool, optional
            Training mode (enables weight noise and caching).

        Returns
        -------
        np.ndarray
            Activations of shape (N, n_out, out_h, out_w).
        """
        if x is not None:
            self.set_input(x)
        self._require_input("forward pass")

        # a stale pre-activation must never reach the next backward pass
        self._release_cached(self.cache_slot.take())

        z = self.pre_output(training)

        # cache only if the cache workspace exists
        if (
            training
            and self.config.cache_mode is not CacheMode.NONE
            and self.workspaces.workspace_exists(WS_LAYER_CACHE)
        ):
            ws = self.workspaces.get_workspace(WS_LAYER_CACHE)
            with ws.notify_scope_borrowed() as borrowed:
                self.cache_slot.put(borrowed.dup(z))

        if self.helper is not None and stride_descending_c_ascending_f(z):
            ret = self.helper.try_activate(z, self.activation_fn, training)
            if ret is not None:
                return ret

        return self.activation_fn.get_activation(z, training)

    # ---- backward ----
    def _pre_activation_delta(self, epsilon: np.ndarray) -> np.ndarray:
        z = self.cache_slot.take()
        self._release_cached(z)
        if self.activation_fn.name == "identity":
            return epsilon
        if z is None or z.shape != epsilon.shape:
            z = self.pre_output(training=True)
        return self.activation_fn.backprop(z, epsilon)

    def backprop_gradient(
        self, epsilon: np.ndarray
    ) -> Tuple[DefaultGradient, np.ndarray]:
        """
        Backward pass.

        Parameters
        ----------
        epsilon : np.ndarray
            Gradient of the loss with respect to this layer's activations,
            shape (N, n_out, out_h, out_w).

        Returns
        -------
        tuple[DefaultGradient, np.ndarray]
            The gradient record (single entry ``"W"``, order ``"c"``, holding
            the parameter store's gradient view) and the gradient with respect
            to the input, shape (N, n_in, H, W).

        Raises
        ------
        MissingInputError
            If no forward input is retained.
        InvalidInputShapeError
            If the retained input is not rank 4, or `epsilon` does not match
            the forward output shape.
        ChannelMismatchError
            If the input depth differs from the weights' input depth.
        InvalidGeometryError
            If the configured kernel does not fit the input.
        """
        x = self._require_input("backpropagation")
        self._validate_input(x)
        geometry = self._resolve_geometry(x)

        epsilon = np.asarray(epsilon)
        expected = (x.shape[0], self.config.n_out, geometry.out_h, geometry.out_w)
        if tuple(epsilon.shape) != expected:
            raise InvalidInputShapeError(
                epsilon.shape,
                layer_name=self.config.layer_name,
                layer_index=self.index,
                what="epsilon",
                expected=str(list(expected)),
            )

        weights = self.params.get_param_with_noise(WEIGHT_KEY, True)
        delta = self._pre_activation_delta(epsilon)

        out_epsilon = np.zeros(
            x.shape,
            dtype=np.result_type(x.dtype, weights.dtype, delta.dtype),
            order="C",
        )
        weight_grad_view = self.params.gradient_view(WEIGHT_KEY)

        sconv2d_bp(
            x,
            weights,
            delta,
            geometry.to_int_args(),
            out_epsilon=out_epsilon,
            out_grad_w=weight_grad_view,
        )

        gradient = DefaultGradient()
        gradient.set_gradient_for(WEIGHT_KEY, weight_grad_view, "c")
        self.params.clear_transient_overrides()

        return gradient, out_epsilon
