"""
GeometryLib - Color and coordinate utilities

Pure helpers shared by the overlay, paint and crop engines.
"""

from CS_Libs.GeometryLib.color_model import (
    HsvColor,
    hex_to_hsv,
    hsv_to_hex,
    is_valid_hex,
)
from CS_Libs.GeometryLib.coordinate_space import (
    NormalizedRect,
    PixelRect,
    Point,
    Size,
    to_normalized,
    to_pixels,
)

__all__ = [
    "HsvColor",
    "hex_to_hsv",
    "hsv_to_hex",
    "is_valid_hex",
    "NormalizedRect",
    "PixelRect",
    "Point",
    "Size",
    "to_normalized",
    "to_pixels",
]
