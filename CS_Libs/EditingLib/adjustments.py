"""
Tonal adjustments and filter presets for Canvas Studio.

Two engines share this module:

- AdjustmentSettings: slider values (brightness, contrast, saturation,
  sharpness, highlights, shadows, vibrance in percent with 100 neutral;
  temperature and tint from -100 to 100 with 0 neutral).
- FilterEffect stack: named presets applied in order, each blended with
  the image as it was before that effect by its amount (0..1).

Pixel math runs on float32 numpy arrays of the RGB channels; alpha is
split off first and re-attached unchanged.

Example:
    >>> settings = AdjustmentSettings(brightness=120, temperature=30)
    >>> effects = [FilterEffect("sepia", 0.5), FilterEffect("vignette", 1.0)]
    >>> png_bytes = render_adjusted(source_bytes, settings, effects)

Functions:
    apply_adjustments: Apply slider settings to a PIL Image
    apply_filter: Apply one named preset to a PIL Image
    apply_filter_stack: Apply a list of FilterEffect in order
    render_adjusted: Decode, adjust, filter and encode at natural resolution
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, Optional

import numpy as np
from PIL import Image, ImageEnhance, ImageFilter

from CS_Libs.EditingLib.image_codec import decode_image, encode_png

logger = logging.getLogger(__name__)

LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float32)
SHARPEN_KERNEL = ImageFilter.Kernel((3, 3), [0, -1, 0, -1, 5, -1, 0, -1, 0], scale=1)


@dataclass(frozen=True)
class AdjustmentSettings:
    """Slider values. Defaults are neutral."""
    brightness: float = 100
    contrast: float = 100
    saturation: float = 100
    sharpness: float = 100
    temperature: float = 0
    tint: float = 0
    highlights: float = 100
    shadows: float = 100
    vibrance: float = 100

    def __post_init__(self):
        for name in ("brightness", "contrast", "saturation", "sharpness", "highlights", "shadows", "vibrance"):
            value = getattr(self, name)
            if not 0 <= value <= 200:
                raise ValueError(f"{name} must be 0..200, got {value}")
        for name in ("temperature", "tint"):
            value = getattr(self, name)
            if not -100 <= value <= 100:
                raise ValueError(f"{name} must be -100..100, got {value}")

    @property
    def is_neutral(self) -> bool:
        return self == AdjustmentSettings()

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdjustmentSettings":
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)


@dataclass(frozen=True)
class FilterEffect:
    filter_id: str
    amount: float = 1.0

    def __post_init__(self):
        if self.filter_id not in FILTERS:
            raise ValueError(f"Unknown filter '{self.filter_id}'. Available: {sorted(FILTERS)}")

    def to_dict(self) -> Dict[str, Any]:
        return {"filter_id": self.filter_id, "amount": self.amount}


# ============================================================================
# Adjustments
# ============================================================================

def apply_adjustments(image: Any, settings: AdjustmentSettings) -> Any:
    """
    Apply slider settings to an image.

    Args:
        image: PIL Image (any mode; returned as RGBA)
        settings: Slider values

    Returns:
        Adjusted RGBA PIL Image

    Raises:
        TypeError: If image is not a PIL Image
    """
    if not hasattr(image, "mode"):
        raise TypeError(f"Expected PIL Image, got {type(image)}")
    rgb, alpha = _split_alpha(image)

    if settings.brightness != 100:
        rgb = ImageEnhance.Brightness(rgb).enhance(settings.brightness / 100)
    if settings.contrast != 100:
        rgb = ImageEnhance.Contrast(rgb).enhance(settings.contrast / 100)
    if settings.saturation != 100:
        rgb = ImageEnhance.Color(rgb).enhance(settings.saturation / 100)
    if settings.sharpness > 100:
        rgb = Image.blend(rgb, rgb.filter(SHARPEN_KERNEL), (settings.sharpness - 100) / 100)
    elif settings.sharpness < 100:
        rgb = Image.blend(rgb, rgb.filter(ImageFilter.BoxBlur(1)), (100 - settings.sharpness) / 100)

    pixels = np.asarray(rgb, dtype=np.float32)
    if settings.temperature:
        t = settings.temperature / 100
        pixels = pixels * np.array([1 + t * 0.5, 1.0, 1 - t * 0.5], dtype=np.float32)
    if settings.tint:
        t = settings.tint / 100
        pixels = pixels * np.array([1 + t * 0.3, 1 - t * 0.4, 1 + t * 0.3], dtype=np.float32)
    pixels = np.clip(pixels, 0, 255)
    if settings.highlights != 100:
        pixels = _scale_luminance(pixels, settings.highlights / 100, bright=True)
    if settings.shadows != 100:
        pixels = _scale_luminance(pixels, settings.shadows / 100, bright=False)
    if settings.vibrance != 100:
        saturation = (pixels.max(axis=2) - pixels.min(axis=2)) / 255.0
        boost = 1 + (settings.vibrance / 100 - 1) * np.maximum(0.0, 1 - saturation)
        pixels = _saturate(pixels, boost[..., None])

    return _merge_alpha(pixels, alpha)


def _scale_luminance(pixels: np.ndarray, factor: float, bright: bool) -> np.ndarray:
    luminance = pixels @ LUMA
    weight = luminance / 255.0 if bright else 1 - luminance / 255.0
    target = luminance * (1 + (factor - 1) * weight)
    scale = np.where(luminance > 1e-6, target / np.maximum(luminance, 1e-6), 1.0)
    return np.clip(pixels * scale[..., None], 0, 255)


def _saturate(pixels: np.ndarray, amount: Any) -> np.ndarray:
    mean = pixels.mean(axis=2, keepdims=True)
    return np.clip(mean + (pixels - mean) * amount, 0, 255)


# ============================================================================
# Filter presets
# ============================================================================

def _contrast(pixels: np.ndarray, factor: float) -> np.ndarray:
    return np.clip((pixels - 128) * factor + 128, 0, 255)


def _grayscale(pixels: np.ndarray) -> np.ndarray:
    return np.repeat((pixels @ LUMA)[..., None], 3, axis=2)


def _mix(pixels: np.ndarray, matrix) -> np.ndarray:
    return np.clip(pixels @ np.array(matrix, dtype=np.float32).T, 0, 255)


def _sepia(pixels):
    return _mix(pixels, [[1.07, 0.74, 0.43], [0.97, 0.86, 0.34], [0.82, 0.72, 0.56]])


def _vintage(pixels):
    mixed = _mix(pixels, [[1.1, 0.6, 0.3], [0.85, 0.95, 0.5], [0.6, 0.7, 0.9]])
    fade = 0.92
    return mixed * fade + 255 * (1 - fade) * np.array([0.1, 0.08, 0.06], dtype=np.float32)


def _warm(pixels):
    return np.clip(pixels * np.array([1.15, 1.0, 0.88], dtype=np.float32), 0, 255)


def _cool(pixels):
    return np.clip(pixels * np.array([0.9, 1.0, 1.12], dtype=np.float32), 0, 255)


def _vivid(pixels):
    max_c = pixels.max(axis=2) / 255.0
    min_c = pixels.min(axis=2) / 255.0
    saturation = np.where(max_c > 0, (max_c - min_c) / np.maximum(max_c, 1e-6), 0.0)
    return _saturate(pixels, (1 + 0.35 * saturation)[..., None])


def _radial_falloff(shape, reach: float) -> np.ndarray:
    h, w = shape[:2]
    cy, cx = h / 2.0, w / 2.0
    ys, xs = np.mgrid[0:h, 0:w].astype(np.float32)
    distance = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2)
    return distance / max(np.sqrt(cx * cx + cy * cy) * reach, 1e-6)


def _vignette(pixels):
    factor = 1 - np.minimum(1.0, _radial_falloff(pixels.shape, 1.0) * 1.2)
    return pixels * factor[..., None]


def _fade_to_black(pixels):
    factor = np.maximum(0.0, 1 - _radial_falloff(pixels.shape, 0.85))
    return pixels * factor[..., None]


def _fade(pixels):
    return np.clip((pixels - 128) * 0.88 + 128 + 18, 0, 255)


def _noir(pixels):
    return _contrast(_grayscale(pixels), 1.5)


def _matte(pixels):
    return np.clip(_saturate(pixels, 0.5) + 12, 0, 255)


def _invert(pixels):
    return 255 - pixels


def _blur(pixels):
    image = Image.fromarray(np.round(pixels).astype(np.uint8))
    return np.asarray(image.filter(ImageFilter.BoxBlur(2)), dtype=np.float32)


def _dramatic(pixels):
    return _saturate(_contrast(pixels, 1.25), 1.15)


FILTERS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "grayscale": _grayscale,
    "sepia": _sepia,
    "vintage": _vintage,
    "warm": _warm,
    "cool": _cool,
    "vivid": _vivid,
    "high_contrast": lambda pixels: _contrast(pixels, 1.4),
    "vignette": _vignette,
    "fade": _fade,
    "noir": _noir,
    "matte": _matte,
    "invert": _invert,
    "blur": _blur,
    "fade_to_black": _fade_to_black,
    "dramatic": _dramatic,
}


def apply_filter(image: Any, filter_id: str, amount: float = 1.0) -> Any:
    return apply_filter_stack(image, [FilterEffect(filter_id, amount)])


def apply_filter_stack(image: Any, effects: Iterable[FilterEffect]) -> Any:
    """
    Apply filter presets in order.

    Each effect sees the output of the previous one and is blended with it
    by its amount; effects with amount <= 0 are skipped.
    """
    if not hasattr(image, "mode"):
        raise TypeError(f"Expected PIL Image, got {type(image)}")
    rgb, alpha = _split_alpha(image)
    pixels = np.asarray(rgb, dtype=np.float32)

    for effect in effects:
        amount = max(0.0, min(1.0, effect.amount))
        if amount <= 0:
            continue
        filtered = FILTERS[effect.filter_id](pixels)
        pixels = filtered if amount >= 1 else pixels * (1 - amount) + filtered * amount

    return _merge_alpha(pixels, alpha)


def render_adjusted(
    source: Any,
    settings: Optional[AdjustmentSettings] = None,
    effects: Iterable[FilterEffect] = (),
) -> bytes:
    """
    Render adjustments then filters at the source's natural resolution.

    Raises:
        DecodeError: If the source cannot be decoded
        ApplyFailed: If the result cannot be encoded
    """
    image = decode_image(source, "source image")
    if settings is not None and not settings.is_neutral:
        image = apply_adjustments(image, settings)
    effects = list(effects)
    if effects:
        image = apply_filter_stack(image, effects)
    logger.debug(f"Rendered adjustments with {len(effects)} filter(s) at {image.size}")
    return encode_png(image)


def _split_alpha(image: Any):
    rgba = image.convert("RGBA")
    return rgba.convert("RGB"), rgba.getchannel("A")


def _merge_alpha(pixels: Any, alpha: Any) -> Any:
    if isinstance(pixels, np.ndarray):
        pixels = Image.fromarray(np.clip(np.round(pixels), 0, 255).astype(np.uint8))
    result = pixels.convert("RGBA")
    result.putalpha(alpha)
    return result
