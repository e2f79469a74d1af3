"""
Overlay Engine for Canvas Studio.

Manages the logos and text blocks a user places over an asset before
flattening them into a new version. Overlays are anchored in normalized
coordinates (see GeometryLib.coordinate_space) so they keep their place
whatever the preview zoom is, and only become pixels when flattened at the
reference image's natural resolution.

Overlay kinds form a tagged union (ImageOverlay | TextOverlay). Flattening
dispatches on the kind in one place; adding a kind means adding a dataclass
and one branch in _draw_overlay.

Example:
    >>> engine = OverlayEngine()
    >>> logo = engine.add_image_overlay("studio://logos/brand.png", name="Brand")
    >>> engine.update_overlay(logo.overlay_id, x=0.8, y=0.2, rotation=15)
    >>> png_bytes = engine.flatten_all(base_bytes, resolve_asset=storage.fetch_raster)
    >>> engine.commit_applied(engine.overlay_ids())

Classes:
    ImageOverlay: Logo/element overlay referencing an image asset
    TextOverlay: Text block with font, size and color
    OverlayHit: Result of a hit test (which overlay, which handle)
    OverlayEngine: Ordered, mutable collection of overlays for one session

Functions:
    points_to_font_size / font_size_to_points: UI points <-> stored font size
    flatten: Rasterize a base image plus overlays into PNG bytes
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Union

from PIL import Image, ImageDraw, ImageFont

from CS_Libs.constants import (
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_POINTS,
    DEFAULT_IMAGE_OVERLAY_SIZE,
    DEFAULT_OVERLAY_CENTER,
    DEFAULT_TEXT,
    DEFAULT_TEXT_COLOR,
    DEFAULT_TEXT_OVERLAY_SIZE,
    FALLBACK_FONT_FILES,
    FONT_POINTS_SCALE,
    HANDLE_HIT_RADIUS,
    MAX_FONT_POINTS,
    MIN_FONT_POINTS,
)
from CS_Libs.EditingLib.image_codec import decode_image, encode_png
from CS_Libs.errors import ApplyFailed, StudioError
from CS_Libs.GeometryLib.color_model import hex_to_rgba, is_valid_hex
from CS_Libs.GeometryLib.coordinate_space import (
    NormalizedRect,
    Point,
    Size,
    normalize_angle,
    point_in_rect,
    to_local,
    to_pixels,
)

logger = logging.getLogger(__name__)

HandleName = Literal["body", "resize", "rotate", "remove", "apply"]
AssetResolver = Callable[[str], Any]

RECT_FIELDS = {"x", "y", "w", "h", "rotation"}
TEXT_FIELDS = {"text", "font_size", "font_family", "color"}


def points_to_font_size(points: float) -> float:
    """UI points (clamped to 8..72) to font size as a fraction of image height."""
    return max(MIN_FONT_POINTS, min(MAX_FONT_POINTS, points)) / FONT_POINTS_SCALE


def font_size_to_points(font_size: float) -> int:
    return max(MIN_FONT_POINTS, min(MAX_FONT_POINTS, round(font_size * FONT_POINTS_SCALE)))


def _new_overlay_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ImageOverlay:
    """Image (logo / library element) overlay.

    Attributes:
        overlay_id: Unique id within the session
        asset_ref: Storage reference of the overlay image
        name: Display name
        rect: Placement in normalized coordinates
    """
    overlay_id: str
    asset_ref: str
    name: str = ""
    rect: NormalizedRect = field(
        default_factory=lambda: NormalizedRect(
            *DEFAULT_OVERLAY_CENTER, *DEFAULT_IMAGE_OVERLAY_SIZE
        )
    )
    kind: Literal["image"] = "image"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "overlay_id": self.overlay_id,
            "asset_ref": self.asset_ref,
            "name": self.name,
            "rect": self.rect.to_dict(),
        }


@dataclass(frozen=True)
class TextOverlay:
    """Text overlay.

    Attributes:
        overlay_id: Unique id within the session
        text: Text to draw
        font_size: Glyph height as a fraction of the base image height
        font_family: Font family name
        color: ``#rrggbb`` fill color
        rect: Placement in normalized coordinates
    """
    overlay_id: str
    text: str = DEFAULT_TEXT
    font_size: float = DEFAULT_FONT_POINTS / FONT_POINTS_SCALE
    font_family: str = DEFAULT_FONT_FAMILY
    color: str = DEFAULT_TEXT_COLOR
    rect: NormalizedRect = field(
        default_factory=lambda: NormalizedRect(
            *DEFAULT_OVERLAY_CENTER, *DEFAULT_TEXT_OVERLAY_SIZE
        )
    )
    kind: Literal["text"] = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "overlay_id": self.overlay_id,
            "text": self.text,
            "font_size": self.font_size,
            "font_family": self.font_family,
            "color": self.color,
            "rect": self.rect.to_dict(),
        }


OverlayElement = Union[ImageOverlay, TextOverlay]


@dataclass(frozen=True)
class OverlayHit:
    overlay_id: str
    handle: HandleName


class OverlayEngine:
    """
    Ordered collection of overlays being placed on one asset.

    Declaration order is draw order: later overlays draw on top and win hit
    tests. Elements are immutable; every update swaps in a new value.
    """

    def __init__(self) -> None:
        self._overlays: List[OverlayElement] = []

    @property
    def overlays(self) -> List[OverlayElement]:
        return list(self._overlays)

    def overlay_ids(self) -> List[str]:
        return [o.overlay_id for o in self._overlays]

    def __len__(self) -> int:
        return len(self._overlays)

    def get_overlay(self, overlay_id: str) -> OverlayElement:
        return self._overlays[self._index_of(overlay_id)]

    def add_image_overlay(self, asset_ref: str, name: str = "") -> ImageOverlay:
        if not asset_ref:
            raise ValueError("asset_ref cannot be empty")
        overlay = ImageOverlay(overlay_id=_new_overlay_id(), asset_ref=asset_ref, name=name)
        self._overlays.append(overlay)
        logger.debug(f"Added image overlay {overlay.overlay_id} ({asset_ref})")
        return overlay

    def add_text_overlay(
        self,
        text: str = DEFAULT_TEXT,
        font_size: Optional[float] = None,
        font_family: str = DEFAULT_FONT_FAMILY,
        color: str = DEFAULT_TEXT_COLOR,
    ) -> TextOverlay:
        if font_size is None:
            font_size = points_to_font_size(DEFAULT_FONT_POINTS)
        _validate_text_fields({"font_size": font_size, "color": color})
        overlay = TextOverlay(
            overlay_id=_new_overlay_id(),
            text=text,
            font_size=float(font_size),
            font_family=font_family or DEFAULT_FONT_FAMILY,
            color=color.lower(),
        )
        self._overlays.append(overlay)
        logger.debug(f"Added text overlay {overlay.overlay_id}")
        return overlay

    def update_overlay(self, overlay_id: str, **patch: Any) -> OverlayElement:
        """
        Patch one overlay.

        Accepts ``rect`` (a NormalizedRect) or any of x, y, w, h, rotation;
        text overlays also accept text, font_size, font_family and color.

        Raises:
            KeyError: If the overlay does not exist
            ValueError: If a field does not apply to the overlay kind or is invalid
        """
        index = self._index_of(overlay_id)
        current = self._overlays[index]

        allowed = RECT_FIELDS | {"rect"}
        if isinstance(current, TextOverlay):
            allowed = allowed | TEXT_FIELDS
        unknown = set(patch) - allowed
        if unknown:
            raise ValueError(
                f"Cannot update {sorted(unknown)} on a {current.kind} overlay"
            )

        rect = patch.pop("rect", current.rect)
        if not isinstance(rect, NormalizedRect):
            raise TypeError(f"rect must be a NormalizedRect, got {type(rect)}")
        rect_patch = {k: float(patch.pop(k)) for k in list(patch) if k in RECT_FIELDS}
        if "rotation" in rect_patch:
            rect_patch["rotation"] = normalize_angle(rect_patch["rotation"])
        if rect_patch:
            rect = replace(rect, **rect_patch)

        if patch:
            _validate_text_fields(patch)
            if "color" in patch:
                patch["color"] = patch["color"].lower()
            updated = replace(current, rect=rect, **patch)
        else:
            updated = replace(current, rect=rect)

        self._overlays[index] = updated
        return updated

    def remove_overlay(self, overlay_id: str) -> bool:
        for index, overlay in enumerate(self._overlays):
            if overlay.overlay_id == overlay_id:
                del self._overlays[index]
                logger.debug(f"Removed overlay {overlay_id}")
                return True
        return False

    def clear(self) -> None:
        self._overlays.clear()

    def hit_test(self, point: Point, box: Size, handle_radius: float = HANDLE_HIT_RADIUS) -> Optional[OverlayHit]:
        """
        Find the topmost overlay (and handle) under a point in box pixels.

        Handles sit on the overlay's own corners, so they rotate with it:
        rotate at top-left, remove at top-right, apply at top-center and
        resize at bottom-right.
        """
        return hit_test_overlays(self._overlays, point, box, handle_radius)

    def flatten_all(
        self,
        base: Any,
        ref_size: Optional[Size] = None,
        resolve_asset: Optional[AssetResolver] = None,
    ) -> bytes:
        """Flatten every live overlay onto the base image."""
        if not self._overlays:
            raise ApplyFailed("There are no overlays to apply")
        return flatten(base, self._overlays, ref_size, resolve_asset)

    def flatten_element(
        self,
        overlay_id: str,
        base: Any,
        ref_size: Optional[Size] = None,
        resolve_asset: Optional[AssetResolver] = None,
    ) -> bytes:
        """Flatten a single overlay, leaving the others live."""
        return flatten(base, [self.get_overlay(overlay_id)], ref_size, resolve_asset)

    def commit_applied(self, overlay_ids: Iterable[str]) -> None:
        """Drop overlays once their flattened raster is registered as a version."""
        applied = set(overlay_ids)
        self._overlays = [o for o in self._overlays if o.overlay_id not in applied]

    def _index_of(self, overlay_id: str) -> int:
        for index, overlay in enumerate(self._overlays):
            if overlay.overlay_id == overlay_id:
                return index
        raise KeyError(f"No overlay with id '{overlay_id}'")


def flatten(
    base: Any,
    overlays: Iterable[OverlayElement],
    ref_size: Optional[Size] = None,
    resolve_asset: Optional[AssetResolver] = None,
) -> bytes:
    """
    Rasterize a base image and overlays into PNG bytes.

    The output surface is the reference image's natural size, never the
    preview size. All images are decoded before anything is drawn, so a bad
    overlay source fails the whole call with no partial raster.

    Args:
        base: Base image bytes or PIL Image
        overlays: Overlays in draw order
        ref_size: Reference size; defaults to the base image's natural size
        resolve_asset: Callable returning bytes (or a PIL Image) for an
                       ImageOverlay's asset_ref

    Returns:
        PNG bytes

    Raises:
        DecodeError: If the base or any overlay image cannot be decoded
        ApplyFailed: If drawing fails or produces an empty image
        ValueError: If an image overlay is present but no resolver was given
    """
    overlays = list(overlays)
    base_image = decode_image(base, "base image")
    if ref_size is None:
        ref_size = Size(base_image.width, base_image.height)
    surface_size = (round(ref_size.w), round(ref_size.h))
    if surface_size[0] <= 0 or surface_size[1] <= 0:
        raise ApplyFailed(f"Invalid reference size {ref_size}")

    decoded: Dict[str, Any] = {}
    for overlay in overlays:
        if isinstance(overlay, ImageOverlay):
            if resolve_asset is None:
                raise ValueError("resolve_asset is required to flatten image overlays")
            decoded[overlay.overlay_id] = decode_image(
                resolve_asset(overlay.asset_ref), f"overlay '{overlay.name or overlay.asset_ref}'"
            )

    try:
        canvas = Image.new("RGBA", surface_size, (0, 0, 0, 0))
        if base_image.size != surface_size:
            base_image = base_image.resize(surface_size, Image.Resampling.LANCZOS)
        canvas.paste(base_image, (0, 0))

        for overlay in overlays:
            canvas = _draw_overlay(canvas, overlay, ref_size, decoded.get(overlay.overlay_id))
    except StudioError:
        raise
    except (OSError, ValueError, TypeError, MemoryError) as e:
        logger.warning(f"Flatten failed: {e}")
        raise ApplyFailed(f"Could not draw overlays: {e}") from e

    return encode_png(canvas)


def _draw_overlay(canvas: Any, overlay: OverlayElement, ref_size: Size, decoded: Any) -> Any:
    pixel = to_pixels(overlay.rect, ref_size)
    center = pixel.center

    if isinstance(overlay, ImageOverlay):
        target = (max(1, round(pixel.w)), max(1, round(pixel.h)))
        layer = decoded.resize(target, Image.Resampling.LANCZOS)
    elif isinstance(overlay, TextOverlay):
        layer = _render_text(overlay, ref_size)
        if layer is None:
            return canvas
    else:
        raise TypeError(f"Unknown overlay kind: {type(overlay)}")

    if overlay.rect.rotation:
        # PIL rotates counter-clockwise; stored rotation is clockwise on screen
        layer = layer.rotate(
            -overlay.rect.rotation, resample=Image.Resampling.BICUBIC, expand=True
        )

    offset = (round(center.x - layer.width / 2.0), round(center.y - layer.height / 2.0))
    full_layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    full_layer.paste(layer, offset)
    return Image.alpha_composite(canvas, full_layer)


def _render_text(overlay: TextOverlay, ref_size: Size) -> Optional[Any]:
    if not overlay.text:
        return None

    pixel_size = max(1, round(overlay.font_size * ref_size.h))
    font = load_font(overlay.font_family, pixel_size)
    left, top, right, bottom = font.getbbox(overlay.text)
    width = max(1, right - left)
    height = max(1, bottom - top)
    pad = max(1, pixel_size // 8)

    layer = Image.new("RGBA", (width + 2 * pad, height + 2 * pad), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    draw.text((pad - left, pad - top), overlay.text, font=font, fill=hex_to_rgba(overlay.color))
    return layer


def load_font(family: str, pixel_size: int) -> Any:
    """
    Load a bold TrueType font for a family name, falling back to common
    system fonts and finally to Pillow's bundled default font.
    """
    candidates = [f"{family} Bold.ttf", f"{family}.ttf", family] + FALLBACK_FONT_FILES
    for candidate in candidates:
        try:
            return ImageFont.truetype(candidate, pixel_size)
        except OSError:
            continue
    logger.debug(f"Font '{family}' not found, using Pillow default")
    return ImageFont.load_default(size=pixel_size)


def _validate_text_fields(patch: Dict[str, Any]) -> None:
    if "font_size" in patch and not float(patch["font_size"]) > 0:
        raise ValueError(f"font_size must be positive, got {patch['font_size']}")
    if "color" in patch and not is_valid_hex(patch["color"]):
        raise ValueError(f"color must be a #rrggbb hex string, got {patch['color']!r}")
    if "text" in patch and not isinstance(patch["text"], str):
        raise TypeError(f"text must be a string, got {type(patch['text'])}")


def hit_test_overlays(
    overlays: Iterable[OverlayElement],
    point: Point,
    box: Size,
    handle_radius: float = HANDLE_HIT_RADIUS,
) -> Optional[OverlayHit]:
    """Topmost overlay under a box-pixel point; handles win over bodies."""
    for overlay in reversed(list(overlays)):
        handle = _handle_at(point, overlay.rect, box, handle_radius)
        if handle is not None:
            return OverlayHit(overlay.overlay_id, handle)
        if point_in_rect(point, overlay.rect, box):
            return OverlayHit(overlay.overlay_id, "body")
    return None


def _handle_at(point: Point, rect: NormalizedRect, box: Size, radius: float) -> Optional[HandleName]:
    local = to_local(point, rect, box)
    half_w = rect.w * box.w / 2.0
    half_h = rect.h * box.h / 2.0
    handles = (
        ("resize", half_w, half_h),
        ("rotate", -half_w, -half_h),
        ("remove", half_w, -half_h),
        ("apply", 0.0, -half_h),
    )
    for name, hx, hy in handles:
        if abs(local.x - hx) <= radius and abs(local.y - hy) <= radius:
            return name
    return None
