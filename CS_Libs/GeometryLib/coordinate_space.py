"""
Normalized and pixel coordinate frames for the studio canvas.

Overlays are stored as NormalizedRect values: a center point and size
expressed as fractions of the reference image, plus a rotation in degrees.
The same rect renders identically at any zoom level because every pixel
value is derived from it on demand against whichever frame is current:

- reference frame: the natural pixel size of the base image (used by Apply)
- box frame: the on-screen canvas size (used by pointer gestures)
- rotated frame: the base image after a 90-degree-step rotation (used by crop)

Classes:
    Size: Width/height pair
    Point: x/y pair
    PixelRect: Top-left rect in pixels, with rotation
    NormalizedRect: Center/size rect in fractions of the reference image

Functions:
    to_pixels / to_normalized: Convert between the two rect representations
    scale_pixel_rect: Re-render a pixel rect at another display scale
    drag_position: Move a center by a screen-pixel pointer delta
    resize_symmetric / resize_free: Resize from a screen-pixel pointer delta
    pointer_angle / normalize_angle: Rotation handle math
    to_local / point_in_rect: Hit testing that honors rotation
    screen_to_rotated_pixels: Display point to rotated-image pixel
"""

import math
from dataclasses import dataclass, replace
from typing import NamedTuple, Tuple

from CS_Libs.constants import MAX_OVERLAY_SIZE, MIN_OVERLAY_SIZE


class Size(NamedTuple):
    w: float
    h: float


class Point(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class PixelRect:
    """Rect in pixels with a top-left origin."""
    x: float
    y: float
    w: float
    h: float
    rotation: float = 0.0

    @property
    def center(self) -> Point:
        return Point(self.x + self.w / 2.0, self.y + self.h / 2.0)

    def rounded(self) -> "PixelRect":
        return PixelRect(
            x=round(self.x),
            y=round(self.y),
            w=round(self.w),
            h=round(self.h),
            rotation=self.rotation,
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.w, self.h


@dataclass(frozen=True)
class NormalizedRect:
    """Center position and size as fractions of the reference image.

    Attributes:
        x: Center x (0..1 of reference width)
        y: Center y (0..1 of reference height)
        w: Width (fraction of reference width)
        h: Height (fraction of reference height)
        rotation: Clockwise rotation in degrees about the center
    """
    x: float = 0.5
    y: float = 0.5
    w: float = 0.2
    h: float = 0.2
    rotation: float = 0.0

    def with_center(self, center: Point) -> "NormalizedRect":
        return replace(self, x=center.x, y=center.y)

    def with_size(self, size: Size) -> "NormalizedRect":
        return replace(self, w=size.w, h=size.h)

    def to_dict(self):
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h, "rotation": self.rotation}

    @classmethod
    def from_dict(cls, data) -> "NormalizedRect":
        filtered = {k: float(v) for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)


def to_pixels(rect: NormalizedRect, ref_size: Size) -> PixelRect:
    """Denormalize a rect against a reference size (natural or display)."""
    ref_w, ref_h = ref_size
    w = rect.w * ref_w
    h = rect.h * ref_h
    return PixelRect(
        x=rect.x * ref_w - w / 2.0,
        y=rect.y * ref_h - h / 2.0,
        w=w,
        h=h,
        rotation=rect.rotation,
    )


def to_normalized(pixel_rect: PixelRect, ref_size: Size) -> NormalizedRect:
    ref_w, ref_h = ref_size
    if ref_w <= 0 or ref_h <= 0:
        raise ValueError(f"Reference size must be positive, got {ref_size}")
    center = pixel_rect.center
    return NormalizedRect(
        x=center.x / ref_w,
        y=center.y / ref_h,
        w=pixel_rect.w / ref_w,
        h=pixel_rect.h / ref_h,
        rotation=pixel_rect.rotation,
    )


def scale_pixel_rect(rect: PixelRect, factor: float) -> PixelRect:
    return PixelRect(rect.x * factor, rect.y * factor, rect.w * factor, rect.h * factor, rect.rotation)


def drag_position(start_center: Point, screen_dx: float, screen_dy: float, box: Size) -> Point:
    """
    Move a normalized center by a pointer delta measured in screen pixels.

    Dividing by the on-screen box keeps drag speed constant regardless of
    zoom. The result is clamped so the center stays on the image.
    """
    box_w, box_h = box
    return Point(
        _clamp(start_center.x + screen_dx / box_w, 0.0, 1.0),
        _clamp(start_center.y + screen_dy / box_h, 0.0, 1.0),
    )


def resize_symmetric(
    start_size: Size,
    screen_dx: float,
    screen_dy: float,
    box: Size,
    min_size: float = MIN_OVERLAY_SIZE,
    max_size: float = MAX_OVERLAY_SIZE,
) -> Size:
    """
    Resize both axes by the same amount from a diagonal pointer movement.

    The normalized x and y deltas are averaged into a single scalar that is
    added to width and height alike, each clamped to [min_size, max_size].
    """
    box_w, box_h = box
    delta = (screen_dx / box_w + screen_dy / box_h) / 2.0
    return Size(
        _clamp(start_size.w + delta, min_size, max_size),
        _clamp(start_size.h + delta, min_size, max_size),
    )


def resize_free(
    start_size: Size,
    screen_dx: float,
    screen_dy: float,
    box: Size,
    min_size: float = MIN_OVERLAY_SIZE,
    max_size: float = MAX_OVERLAY_SIZE,
) -> Size:
    """Resize each axis independently (text boxes)."""
    box_w, box_h = box
    return Size(
        _clamp(start_size.w + screen_dx / box_w, min_size, max_size),
        _clamp(start_size.h + screen_dy / box_h, min_size, max_size),
    )


def pointer_angle(center: Point, pointer: Point) -> float:
    """Angle of the pointer around a center, degrees, screen (y-down) space."""
    return math.degrees(math.atan2(pointer.y - center.y, pointer.x - center.x))


def normalize_angle(degrees: float) -> float:
    """Wrap an angle into (-180, 180]."""
    while degrees > 180.0:
        degrees -= 360.0
    while degrees <= -180.0:
        degrees += 360.0
    return degrees


def to_local(point: Point, rect: NormalizedRect, box: Size) -> Point:
    """
    Express a box-pixel point in the rect's own frame.

    The returned point is relative to the rect center with the rect's
    rotation undone, so the rect spans [-w/2, w/2] x [-h/2, h/2] in box pixels.
    Rotation is undone in pixel space because a non-square box would skew a
    rotation performed on normalized coordinates.
    """
    pixel = to_pixels(rect, box)
    center = pixel.center
    dx = point.x - center.x
    dy = point.y - center.y
    theta = math.radians(-rect.rotation)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    return Point(dx * cos_t - dy * sin_t, dx * sin_t + dy * cos_t)


def point_in_rect(point: Point, rect: NormalizedRect, box: Size, margin: float = 0.0) -> bool:
    local = to_local(point, rect, box)
    half_w = rect.w * box.w / 2.0 + margin
    half_h = rect.h * box.h / 2.0 + margin
    return abs(local.x) <= half_w and abs(local.y) <= half_h


def screen_to_rotated_pixels(point: Point, display_size: Size, rotated_size: Size) -> Point:
    """
    Map a point on the displayed (possibly downscaled) canvas to pixels of
    the rotated image, clamped to its bounds.
    """
    if display_size.w <= 0 or display_size.h <= 0:
        raise ValueError(f"Display size must be positive, got {display_size}")
    scale_x = rotated_size.w / display_size.w
    scale_y = rotated_size.h / display_size.h
    return Point(
        _clamp(point.x * scale_x, 0.0, rotated_size.w),
        _clamp(point.y * scale_y, 0.0, rotated_size.h),
    )


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
