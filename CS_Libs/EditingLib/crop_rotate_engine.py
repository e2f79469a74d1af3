"""
Crop and rotate engine for Canvas Studio.

Rotation is limited to quarter turns. The crop rectangle lives in the
pixel space of the *rotated* image, so it always describes what the user
sees in the preview, and is reset to the full rotated bounds whenever the
rotation or the source changes.

Apply works in two stages at the source's natural resolution: rotate the
whole image, then copy the crop region into a round(w) x round(h) surface.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from PIL import Image

from CS_Libs.constants import CROP_PREVIEW_MAX_HEIGHT, CROP_PREVIEW_MAX_WIDTH, VALID_ROTATIONS
from CS_Libs.EditingLib.image_codec import decode_image, encode_png, fit_within
from CS_Libs.errors import InvalidRegion
from CS_Libs.GeometryLib.coordinate_space import Point, Size, screen_to_rotated_pixels

logger = logging.getLogger(__name__)

# PIL transposes counter-clockwise; rotation here is clockwise
ROTATION_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle in rotated-image pixels."""
    x: float
    y: float
    w: float
    h: float

    @property
    def output_size(self):
        return round(self.w), round(self.h)

    def is_integral(self) -> bool:
        return all(float(v).is_integer() for v in (self.x, self.y, self.w, self.h))


def rotate_quarter(image: Any, rotation: int) -> Any:
    """Rotate a PIL image clockwise by a multiple of 90 degrees."""
    if rotation not in VALID_ROTATIONS:
        raise ValueError(f"Rotation must be one of {VALID_ROTATIONS}, got {rotation}")
    if rotation == 0:
        return image.copy()
    return image.transpose(ROTATION_TRANSPOSE[rotation])


class CropRotateEngine:
    """
    Crop/rotate working state for one asset.

    Args:
        natural_size: Natural pixel size of the source image
    """

    def __init__(self, natural_size: Size) -> None:
        self.rotation = 0
        self.natural_size = Size(0, 0)
        self.crop = CropRegion(0, 0, 0, 0)
        self._anchor: Optional[Point] = None
        self.set_source(natural_size)

    @property
    def dragging(self) -> bool:
        return self._anchor is not None

    @property
    def rotated_size(self) -> Size:
        w, h = self.natural_size
        if self.rotation in (90, 270):
            return Size(h, w)
        return Size(w, h)

    def set_source(self, natural_size: Size) -> None:
        """Point the engine at a new source; rotation and crop reset."""
        w, h = natural_size
        if w <= 0 or h <= 0:
            raise ValueError(f"Source size must be positive, got {natural_size}")
        self.natural_size = Size(w, h)
        self.rotation = 0
        self.reset_crop()

    def set_rotation(self, rotation: int) -> None:
        rotation = rotation % 360
        if rotation not in VALID_ROTATIONS:
            raise ValueError(f"Rotation must be one of {VALID_ROTATIONS}, got {rotation}")
        self.rotation = rotation
        self.reset_crop()
        logger.debug(f"Rotation set to {rotation}")

    def rotate_left(self) -> None:
        self.set_rotation(self.rotation - 90)

    def rotate_right(self) -> None:
        self.set_rotation(self.rotation + 90)

    def reset_crop(self) -> None:
        rotated = self.rotated_size
        self.crop = CropRegion(0, 0, rotated.w, rotated.h)
        self._anchor = None

    def set_crop(self, x: float, y: float, w: float, h: float) -> CropRegion:
        """
        Set the crop programmatically, clamped to the rotated bounds.

        Raises:
            InvalidRegion: If the clamped region has no area
        """
        rotated = self.rotated_size
        x = max(0.0, min(float(rotated.w), x))
        y = max(0.0, min(float(rotated.h), y))
        w = min(float(w), rotated.w - x)
        h = min(float(h), rotated.h - y)
        if w <= 0 or h <= 0:
            raise InvalidRegion(f"Crop region {x, y, w, h} has no area")
        self.crop = CropRegion(x, y, w, h)
        return self.crop

    def display_size(self, max_w: int = CROP_PREVIEW_MAX_WIDTH, max_h: int = CROP_PREVIEW_MAX_HEIGHT) -> Size:
        rotated = self.rotated_size
        return Size(*fit_within(rotated.w, rotated.h, max_w, max_h))

    def on_down(self, point: Point, display_size: Size) -> None:
        self._anchor = screen_to_rotated_pixels(point, display_size, self.rotated_size)

    def on_move(self, point: Point, display_size: Size) -> Optional[CropRegion]:
        """
        Stretch the crop from the anchor to the pointer.

        The rectangle is at least 1 px on each side and stays inside the
        rotated bounds.
        """
        if self._anchor is None:
            return None
        rotated = self.rotated_size
        current = screen_to_rotated_pixels(point, display_size, rotated)

        x = min(self._anchor.x, current.x)
        y = min(self._anchor.y, current.y)
        w = max(1.0, abs(current.x - self._anchor.x))
        h = max(1.0, abs(current.y - self._anchor.y))
        x = max(0.0, min(x, rotated.w - w))
        y = max(0.0, min(y, rotated.h - h))
        w = min(w, rotated.w - x)
        h = min(h, rotated.h - y)

        self.crop = CropRegion(x, y, w, h)
        return self.crop

    def on_up(self) -> None:
        self._anchor = None

    def render_preview(self, image: Any, display_size: Optional[Size] = None) -> Any:
        """Rotated preview of the source, reduced to the display size."""
        if display_size is None:
            display_size = self.display_size()
        preview = decode_image(image, "preview source")
        preview = rotate_quarter(preview, self.rotation)
        target = (max(1, round(display_size[0])), max(1, round(display_size[1])))
        return preview.resize(target, Image.Resampling.BILINEAR)

    def apply(self, source: Any) -> bytes:
        """
        Rotate and crop the natural-resolution source.

        Returns:
            PNG bytes of size round(crop.w) x round(crop.h)

        Raises:
            DecodeError: If the source cannot be decoded
            InvalidRegion: If the crop has no area
            ValueError: If the source is not the size the engine was set up for
        """
        out_w, out_h = self.crop.output_size
        if out_w <= 0 or out_h <= 0:
            raise InvalidRegion("Crop region has no area")

        image = decode_image(source, "source image")
        if image.size != (round(self.natural_size.w), round(self.natural_size.h)):
            raise ValueError(
                f"Source is {image.size}, expected {tuple(self.natural_size)}; call set_source first"
            )

        rotated = rotate_quarter(image, self.rotation)
        crop = self.crop
        box = (crop.x, crop.y, crop.x + crop.w, crop.y + crop.h)
        if crop.is_integral():
            result = rotated.crop(tuple(int(v) for v in box))
        else:
            result = rotated.resize((out_w, out_h), Image.Resampling.BICUBIC, box=box)

        logger.debug(f"Cropped to {result.size} at rotation {self.rotation}")
        return encode_png(result)
