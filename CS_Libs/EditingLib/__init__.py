"""
EditingLib - Canvas editing engines

This module provides the overlay, mask paint, crop/rotate and
adjustment engines. The editor session (editor_session) and the
PyQt5 window (studio_window) sit on top of VersionStoreLib and are
imported from their own modules.
"""

from CS_Libs.EditingLib.adjustments import AdjustmentSettings, FilterEffect, render_adjusted
from CS_Libs.EditingLib.crop_rotate_engine import CropRegion, CropRotateEngine
from CS_Libs.EditingLib.image_codec import decode_image, encode_png, validate_mime
from CS_Libs.EditingLib.mask_paint_engine import BrushSample, MaskPaintEngine, MaskStroke, PaintTool
from CS_Libs.EditingLib.overlay_engine import (
    ImageOverlay,
    OverlayEngine,
    OverlayHit,
    TextOverlay,
    flatten,
)

__all__ = [
    "AdjustmentSettings",
    "FilterEffect",
    "render_adjusted",
    "CropRegion",
    "CropRotateEngine",
    "decode_image",
    "encode_png",
    "validate_mime",
    "BrushSample",
    "MaskPaintEngine",
    "MaskStroke",
    "PaintTool",
    "ImageOverlay",
    "OverlayEngine",
    "OverlayHit",
    "TextOverlay",
    "flatten",
]
