"""
Mask Paint Engine for Canvas Studio.

Freehand painting over the viewed version with three tools:

- colorize: opaque solid color
- highlight: translucent color; a stroke never darkens where it crosses itself
- clone-stamp: copies base pixels from an offset source point

The logical canvas is the on-screen box size; the base image is resampled
to it and brush sizes are in screen pixels. In mask mode the painted area is
exported as a single-channel mask for AI region edits instead of being
flattened into the image.

Classes:
    PaintTool: Tool enumeration
    BrushSample: One pointer sample (x, y, pressure)
    MaskStroke: A recorded stroke
    MaskPaintEngine: Paint state for one tool session
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

import numpy as np
from PIL import Image, ImageDraw

from CS_Libs.constants import (
    DEFAULT_BRUSH_SIZE,
    DEFAULT_COLORIZE_COLOR,
    DEFAULT_HIGHLIGHT_COLOR,
    DEFAULT_HIGHLIGHT_OPACITY,
    MASK_ALPHA_THRESHOLD,
    MAX_BRUSH_SIZE,
    MAX_HIGHLIGHT_OPACITY,
    MIN_BRUSH_SIZE,
    MIN_DAB_RADIUS,
    MIN_HIGHLIGHT_OPACITY,
    STROKE_STEP_PX,
)
from CS_Libs.EditingLib.image_codec import decode_image, encode_png
from CS_Libs.errors import InvalidRegion
from CS_Libs.GeometryLib.color_model import hex_to_rgba, is_valid_hex
from CS_Libs.GeometryLib.coordinate_space import Point, Size

logger = logging.getLogger(__name__)


class PaintTool(str, Enum):
    CLONE_STAMP = "clone-stamp"
    COLORIZE = "colorize"
    HIGHLIGHT = "highlight"


@dataclass(frozen=True)
class BrushSample:
    x: float
    y: float
    pressure: float = 1.0


@dataclass
class MaskStroke:
    tool: PaintTool
    brush_size: int
    color: str
    opacity: float
    samples: List[BrushSample] = field(default_factory=list)


def dab_radius(brush_size: float, pressure: float = 1.0) -> int:
    """Dab radius for a brush size in screen pixels."""
    return max(MIN_DAB_RADIUS, int(brush_size * max(0.0, min(1.0, pressure))) // 2)


def interpolate(start: Point, end: Point, step: float = STROKE_STEP_PX) -> List[Point]:
    """Points every ``step`` pixels from start (exclusive) to end (inclusive)."""
    distance = math.hypot(end.x - start.x, end.y - start.y)
    count = max(1, int(distance // step))
    return [
        Point(start.x + (end.x - start.x) * i / count, start.y + (end.y - start.y) * i / count)
        for i in range(1, count + 1)
    ]


class MaskPaintEngine:
    """
    Paint state for one open paint tool.

    Args:
        base: Viewed version (bytes or PIL Image)
        box_size: On-screen canvas size; becomes the logical canvas size
        tool: Initial tool
        brush_size: Brush diameter in screen pixels (4..80)
        color: Paint color; defaults per tool
        opacity: Highlight opacity (0.1..1.0)
        mask_mode: Export a mask instead of flattening (highlight tool only)

    Raises:
        DecodeError: If the base image cannot be decoded
        ValueError: For an empty canvas size or mask mode with a non-highlight tool
    """

    def __init__(
        self,
        base: Any,
        box_size: Size,
        tool: PaintTool = PaintTool.COLORIZE,
        brush_size: int = DEFAULT_BRUSH_SIZE,
        color: Optional[str] = None,
        opacity: float = DEFAULT_HIGHLIGHT_OPACITY,
        mask_mode: bool = False,
    ) -> None:
        canvas_size = (round(box_size[0]), round(box_size[1]))
        if canvas_size[0] <= 0 or canvas_size[1] <= 0:
            raise ValueError(f"Canvas size must be positive, got {box_size}")

        tool = PaintTool(tool)
        if mask_mode and tool != PaintTool.HIGHLIGHT:
            raise ValueError("Mask mode requires the highlight tool")

        self.mask_mode = mask_mode
        self.canvas_size = Size(*canvas_size)
        self._base = decode_image(base, "base image").resize(canvas_size, Image.Resampling.LANCZOS)
        self._layer = Image.new("RGBA", canvas_size, (0, 0, 0, 0))
        self._stroke_mask: Optional[Any] = None

        self.tool = tool
        self.brush_size = DEFAULT_BRUSH_SIZE
        self.opacity = DEFAULT_HIGHLIGHT_OPACITY
        self.color = self._default_color(tool)
        self.set_brush_size(brush_size)
        self.set_opacity(opacity)
        if color is not None:
            self.set_color(color)

        self.strokes: List[MaskStroke] = []
        self._current: Optional[MaskStroke] = None
        self._last_point: Optional[Point] = None
        self._stroke_start: Optional[Point] = None
        self.clone_source: Optional[Point] = None

    @property
    def painting(self) -> bool:
        return self._current is not None

    @property
    def has_paint(self) -> bool:
        return bool(self.strokes) or self.painting

    def select_tool(self, tool: PaintTool) -> None:
        """Switch tools. Strokes made with the previous tool, including one in progress, are discarded."""
        tool = PaintTool(tool)
        if self.mask_mode and tool != PaintTool.HIGHLIGHT:
            raise ValueError("Mask mode requires the highlight tool")
        self.cancel()
        self.tool = tool
        self.color = self._default_color(tool)
        self.clone_source = None
        logger.debug(f"Paint tool set to {tool.value}")

    def set_brush_size(self, size: int) -> None:
        self.brush_size = int(max(MIN_BRUSH_SIZE, min(MAX_BRUSH_SIZE, size)))

    def set_opacity(self, opacity: float) -> None:
        self.opacity = max(MIN_HIGHLIGHT_OPACITY, min(MAX_HIGHLIGHT_OPACITY, float(opacity)))

    def set_color(self, color: str) -> None:
        if not is_valid_hex(color):
            raise ValueError(f"color must be a #rrggbb hex string, got {color!r}")
        self.color = color.lower()

    def set_clone_source(self, point: Point) -> None:
        self.clone_source = self._clamp_point(point)

    def pointer_down(self, point: Point, pressure: float = 1.0) -> None:
        point = self._clamp_point(point)
        opacity = self.opacity if self.tool == PaintTool.HIGHLIGHT else 1.0
        self._current = MaskStroke(self.tool, self.brush_size, self.color, opacity)
        self._stroke_start = point
        self._last_point = point
        if self.tool == PaintTool.HIGHLIGHT:
            self._stroke_mask = Image.new("L", self._layer.size, 0)
        self._dab(point, pressure)

    def pointer_move(self, point: Point, pressure: float = 1.0) -> None:
        if self._current is None:
            return
        point = self._clamp_point(point)
        for dab_point in interpolate(self._last_point, point):
            self._dab(dab_point, pressure)
        self._last_point = point

    def pointer_up(self) -> None:
        if self._current is None:
            return
        if self._stroke_mask is not None:
            self._layer = Image.alpha_composite(self._layer, self._highlight_layer(self._stroke_mask))
            self._stroke_mask = None
        self.strokes.append(self._current)
        logger.debug(f"Committed {self._current.tool.value} stroke ({len(self._current.samples)} dabs)")
        self._current = None
        self._last_point = None
        self._stroke_start = None

    def cancel(self) -> None:
        """Abort the stroke in progress and drop all painting."""
        self._current = None
        self._stroke_mask = None
        self._last_point = None
        self._stroke_start = None
        self.clear()

    def clear(self) -> None:
        self.strokes = []
        self._layer = Image.new("RGBA", self._layer.size, (0, 0, 0, 0))

    def paint_layer(self) -> Any:
        """Committed paint plus the stroke in progress, as RGBA."""
        if self._stroke_mask is None:
            return self._layer.copy()
        return Image.alpha_composite(self._layer, self._highlight_layer(self._stroke_mask))

    def composite(self) -> Any:
        return Image.alpha_composite(self._base, self.paint_layer())

    def export_mask(self) -> bytes:
        """
        Export the painted area as a mask PNG at canvas size.

        Pixels are 255 where the paint alpha exceeds the threshold and 0
        elsewhere.

        Raises:
            ValueError: Outside mask mode
            InvalidRegion: If nothing has been painted
        """
        if not self.mask_mode:
            raise ValueError("export_mask is only available in mask mode")
        alpha = np.asarray(self.paint_layer().getchannel("A"))
        painted = alpha > MASK_ALPHA_THRESHOLD
        if not painted.any():
            raise InvalidRegion("Paint the area you want to edit first")
        mask = Image.fromarray(np.where(painted, 255, 0).astype(np.uint8))
        return encode_png(mask)

    def apply(self) -> bytes:
        """
        Flatten the paint layer onto the base at canvas size.

        Raises:
            InvalidRegion: If nothing has been painted
        """
        if not self.has_paint:
            raise InvalidRegion("Nothing has been painted")
        return encode_png(self.composite())

    def _dab(self, point: Point, pressure: float) -> None:
        self._current.samples.append(BrushSample(point.x, point.y, pressure))
        radius = dab_radius(self._current.brush_size, pressure)
        bounds = (point.x - radius, point.y - radius, point.x + radius, point.y + radius)

        if self.tool == PaintTool.HIGHLIGHT:
            ImageDraw.Draw(self._stroke_mask).ellipse(bounds, fill=255)
        elif self.tool == PaintTool.CLONE_STAMP and self.clone_source is not None:
            self._clone_dab(point, radius)
        else:
            ImageDraw.Draw(self._layer).ellipse(bounds, fill=hex_to_rgba(self._current.color))

    def _clone_dab(self, point: Point, radius: int) -> None:
        source_x = self.clone_source.x + (point.x - self._stroke_start.x)
        source_y = self.clone_source.y + (point.y - self._stroke_start.y)
        size = 2 * radius
        left = round(source_x) - radius
        top = round(source_y) - radius
        patch = self._base.crop((left, top, left + size, top + size))

        dab_mask = Image.new("L", (size, size), 0)
        ImageDraw.Draw(dab_mask).ellipse((0, 0, size - 1, size - 1), fill=255)
        # pixels cropped from outside the base are transparent; keep them out
        dab_mask = Image.fromarray(
            np.minimum(np.asarray(dab_mask), np.asarray(patch.getchannel("A")))
        )
        self._layer.paste(patch, (round(point.x) - radius, round(point.y) - radius), dab_mask)

    def _highlight_layer(self, stroke_mask: Any) -> Any:
        r, g, b, _ = hex_to_rgba(self._current.color if self._current else self.color)
        alpha = stroke_mask.point(lambda v: round(v * self.opacity))
        layer = Image.new("RGBA", stroke_mask.size, (r, g, b, 0))
        layer.putalpha(alpha)
        return layer

    def _clamp_point(self, point: Point) -> Point:
        return Point(
            max(0.0, min(float(self.canvas_size.w), point[0])),
            max(0.0, min(float(self.canvas_size.h), point[1])),
        )

    @staticmethod
    def _default_color(tool: PaintTool) -> str:
        if tool == PaintTool.HIGHLIGHT:
            return DEFAULT_HIGHLIGHT_COLOR
        return DEFAULT_COLORIZE_COLOR
