"""
Color conversions shared by every color-picking control.

The hue strip and the saturation/value box both edit a color through
HSV and write it back as a 6-digit hex string. Conversions are pure and
round-trip at byte precision:

    >>> hsv_to_hex(*hex_to_hsv("#3366cc"))
    '#3366cc'

Functions:
    is_valid_hex: Strict ``#rrggbb`` check used before converting user input
    hex_to_rgb: Parse a hex color into an (r, g, b) byte tuple
    hex_to_rgba: Parse a hex color and attach an opacity
    hex_to_hsv: Hex color to (h, s, v)
    hsv_to_hex: (h, s, v) to lowercase hex color
    pick_saturation_value: Color for a click in the saturation/value box
    pick_hue: Color for a click on the hue strip
"""

import re
from colorsys import hsv_to_rgb, rgb_to_hsv
from typing import NamedTuple, Tuple

HEX_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


class HsvColor(NamedTuple):
    h: float
    s: float
    v: float


def is_valid_hex(value: str) -> bool:
    return bool(HEX_PATTERN.match(value or ""))


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    digits = hex_color[1:] if hex_color.startswith("#") else hex_color
    if len(digits) != 6:
        raise ValueError(f"Expected a 6-digit hex color, got {hex_color!r}")
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def hex_to_rgba(hex_color: str, opacity: float = 1.0) -> Tuple[int, int, int, int]:
    r, g, b = hex_to_rgb(hex_color)
    alpha = _to_byte(max(0.0, min(1.0, opacity)))
    return r, g, b, alpha


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return "#" + "".join(f"{max(0, min(255, int(c))):02x}" for c in (r, g, b))


def hex_to_hsv(hex_color: str) -> HsvColor:
    """
    Convert a hex color to HSV.

    Args:
        hex_color: ``#rrggbb`` or ``rrggbb``

    Returns:
        HsvColor with h in [0, 360), s and v in [0, 1]

    Raises:
        ValueError: If the string is not 6 hex digits
    """
    r, g, b = hex_to_rgb(hex_color)
    h, s, v = rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return HsvColor(h * 360.0, s, v)


def hsv_to_hex(h: float, s: float, v: float) -> str:
    """
    Convert HSV to a lowercase ``#rrggbb`` string.

    Hue is taken modulo 360 so the far end of the hue strip (360) maps to
    red like 0 does. Saturation and value are clamped to [0, 1].
    """
    hue = (h % 360.0) / 360.0
    s = max(0.0, min(1.0, s))
    v = max(0.0, min(1.0, v))
    r, g, b = hsv_to_rgb(hue, s, v)
    return rgb_to_hex(_to_byte(r), _to_byte(g), _to_byte(b))


def pick_saturation_value(hue: float, fx: float, fy: float) -> str:
    """Color under a click at fraction (fx, fy) of the saturation/value box."""
    fx = max(0.0, min(1.0, fx))
    fy = max(0.0, min(1.0, fy))
    return hsv_to_hex(hue, fx, 1.0 - fy)


def pick_hue(fx: float, s: float, v: float) -> str:
    """Color under a click at fraction fx of the hue strip."""
    return hsv_to_hex(max(0.0, min(360.0, fx * 360.0)), s, v)


def _to_byte(value: float) -> int:
    return min(255, int(round(value * 255)))
