"""
Validation and configuration exceptions for separable convolution layers.

This module defines the errors raised by the separable convolution engine and
its shape/padding resolver. Every error is raised synchronously at the point
of validation, before any tensor allocation, kernel dispatch, or write into a
shared gradient buffer, so a failed call never leaves partial state behind.

Each exception stores the fields it was built from as attributes (shapes,
expected vs. actual depth, layer identity) so callers can diagnose the
failure without re-deriving layer state.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple


def _format_layer(layer_name: Optional[str], layer_index: Optional[int]) -> str:
    name = layer_name if layer_name is not None else "(not named)"
    index = "(unknown)" if layer_index is None else str(layer_index)
    return f"layer name = {name}, layer index = {index}"


class InvalidInputShapeError(ValueError):
    """
    Raised when a layer receives an activation tensor of the wrong rank or shape.

    Separable convolution layers consume rank-4 NCHW tensors
    (minibatch, depth, height, width). A rank-2 input usually means the
    network was configured with flattened convolutional input, and the
    message carries a hint in that case.

    Attributes
    ----------
    shape : tuple[int, ...]
        Shape of the offending tensor.
    layer_name : Optional[str]
        Configured layer name, if any.
    layer_index : Optional[int]
        Index of the layer in its network, if known.
    """

    def __init__(
        self,
        shape: Sequence[int],
        *,
        layer_name: Optional[str] = None,
        layer_index: Optional[int] = None,
        what: str = "input",
        expected: str = "[minibatchSize, layerInputDepth, inputHeight, inputWidth]",
    ) -> None:
        self.shape: Tuple[int, ...] = tuple(int(d) for d in shape)
        self.layer_name = layer_name
        self.layer_index = layer_index

        rank = len(self.shape)
        message = (
            f"Got rank {rank} array as {what} to SeparableConvolution2D "
            f"({_format_layer(layer_name, layer_index)}) with shape {list(self.shape)}. "
            f"Expected rank 4 array with shape {expected}."
        )
        if rank == 2:
            message += (
                " (Wrong input type (flattened convolutional input?) "
                "or wrong data type?)"
            )
        super().__init__(message)


class ChannelMismatchError(ValueError):
    """
    Raised when the input depth does not match the layer's weight tensor.

    Attributes
    ----------
    actual : int
        Channel count of the input tensor.
    expected : int
        Input depth expected by the layer's weights.
    shape : tuple[int, ...]
        Full shape of the input tensor.
    """

    def __init__(
        self,
        actual: int,
        expected: int,
        shape: Sequence[int],
        *,
        layer_name: Optional[str] = None,
        layer_index: Optional[int] = None,
    ) -> None:
        self.actual = int(actual)
        self.expected = int(expected)
        self.shape: Tuple[int, ...] = tuple(int(d) for d in shape)
        self.layer_name = layer_name
        self.layer_index = layer_index
        super().__init__(
            "Cannot do forward pass in SeparableConvolution2D layer "
            f"({_format_layer(layer_name, layer_index)}): input array depth does "
            "not match CNN layer configuration "
            f"(data input depth = {self.actual}, "
            f"[minibatch,inputDepth,height,width]={list(self.shape)}; "
            f"expected input depth = {self.expected})"
        )


class InvalidGeometryError(ValueError):
    """
    Raised when convolution hyperparameters produce a degenerate output.

    Covers non-positive kernel/stride/dilation values, negative padding, and
    kernels that do not fit inside the (padded) input.

    Attributes
    ----------
    input_size : tuple[int, int]
    kernel : tuple[int, int]
    stride : tuple[int, int]
    dilation : tuple[int, int]
    padding : Optional[tuple[int, int]]
    reason : str
        Human-readable description of the violated constraint.
    """

    def __init__(
        self,
        reason: str,
        *,
        input_size: Tuple[int, int],
        kernel: Tuple[int, int],
        stride: Tuple[int, int],
        dilation: Tuple[int, int],
        padding: Optional[Tuple[int, int]] = None,
    ) -> None:
        self.reason = reason
        self.input_size = input_size
        self.kernel = kernel
        self.stride = stride
        self.dilation = dilation
        self.padding = padding
        super().__init__(
            f"Invalid input data or configuration: {reason} "
            f"(input={list(input_size)}, kernel={list(kernel)}, "
            f"stride={list(stride)}, dilation={list(dilation)}, "
            f"padding={None if padding is None else list(padding)})"
        )


class MissingInputError(RuntimeError):
    """
    Raised when a forward or backward pass is requested without an input.
    """

    def __init__(
        self,
        op: str,
        *,
        layer_name: Optional[str] = None,
        layer_index: Optional[int] = None,
    ) -> None:
        self.op = op
        self.layer_name = layer_name
        self.layer_index = layer_index
        super().__init__(
            f"Cannot perform {op} with null input "
            f"({_format_layer(layer_name, layer_index)})"
        )
