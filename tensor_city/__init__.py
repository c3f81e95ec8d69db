"""
Tensor Field City Generator

Procedural street networks, blocks and lots traced from an editable
2D tensor field.
"""

__version__ = "0.1.0"

from .config import GeneratorConfig, NoiseParams, PolygonParams, StreamlineParams
from .field import GridField, RadialField, TensorField
from .generator import CityGenerator
from .streamlines import StreamlineGenerator
from .vector import Vector

__all__ = [
    "CityGenerator",
    "GeneratorConfig",
    "GridField",
    "NoiseParams",
    "PolygonParams",
    "RadialField",
    "StreamlineGenerator",
    "StreamlineParams",
    "TensorField",
    "Vector",
]
