"""
sepconv: forward/backward engine of a depthwise-separable 2D convolution layer.

Public API
----------
- SeparableConvolution2DLayer, SeparableConv2dConfig
- ConvolutionMode, CacheMode
- FlatParameterStore, DropConnect, WeightNoise
- WorkspaceManager, WS_LAYER_CACHE
- Activation
- StridedSeparableConvHelper, NativeSeparableConvHelper
- resolve, resolve_geometry, Geometry
- error types raised by validation
"""

from .domain._errors import (
    ChannelMismatchError,
    InvalidGeometryError,
    InvalidInputShapeError,
    MissingInputError,
)
from .domain._geometry import Geometry
from .domain._modes import CacheMode, ConvolutionMode
from .infrastructure._activations import Activation
from .infrastructure._parameter_store import FlatParameterStore
from .infrastructure._weight_noise import DropConnect, WeightNoise
from .infrastructure._workspace import WS_LAYER_CACHE, WorkspaceManager
from .infrastructure.convolution._config import SeparableConv2dConfig
from .infrastructure.convolution._helpers import (
    NativeSeparableConvHelper,
    StridedSeparableConvHelper,
)
from .infrastructure.convolution._padding import resolve, resolve_geometry
from .infrastructure.convolution._separable_conv2d_layer import (
    SeparableConvolution2DLayer,
)

__all__ = [
    SeparableConvolution2DLayer.__name__,
    SeparableConv2dConfig.__name__,
    ConvolutionMode.__name__,
    CacheMode.__name__,
    FlatParameterStore.__name__,
    DropConnect.__name__,
    WeightNoise.__name__,
    WorkspaceManager.__name__,
    "WS_LAYER_CACHE",
    Activation.__name__,
    StridedSeparableConvHelper.__name__,
    NativeSeparableConvHelper.__name__,
    resolve.__name__,
    resolve_geometry.__name__,
    Geometry.__name__,
    InvalidInputShapeError.__name__,
    ChannelMismatchError.__name__,
    InvalidGeometryError.__name__,
    MissingInputError.__name__,
]
