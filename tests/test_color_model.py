"""
Unit tests for color_model module.

Tests hex/HSV conversion, round-tripping and the picker helpers.
"""

import pytest

from CS_Libs.GeometryLib.color_model import (
    hex_to_hsv,
    hex_to_rgb,
    hex_to_rgba,
    hsv_to_hex,
    is_valid_hex,
    pick_hue,
    pick_saturation_value,
)


class TestHexToHsv:
    """Tests for hex_to_hsv function."""

    def test_pure_red(self):
        """Should map red to hue 0 with full saturation and value."""
        h, s, v = hex_to_hsv("#ff0000")
        assert h == pytest.approx(0.0)
        assert s == pytest.approx(1.0)
        assert v == pytest.approx(1.0)

    def test_pure_blue(self):
        """Should map blue to hue 240."""
        assert hex_to_hsv("#0000ff").h == pytest.approx(240.0)

    def test_accepts_missing_hash(self):
        """Should accept rrggbb without the leading hash."""
        assert hex_to_hsv("00ff00") == hex_to_hsv("#00ff00")

    def test_gray_has_no_saturation(self):
        """Should give zero saturation for grays."""
        assert hex_to_hsv("#808080").s == pytest.approx(0.0)

    def test_rejects_short_hex(self):
        """Should raise ValueError for malformed hex."""
        with pytest.raises(ValueError):
            hex_to_hsv("#fff")


class TestHsvToHex:
    """Tests for hsv_to_hex function."""

    def test_returns_lowercase(self):
        """Should return lowercase #rrggbb."""
        assert hsv_to_hex(60, 1, 1) == "#ffff00"

    def test_hue_360_wraps_to_red(self):
        """Should treat hue 360 like hue 0."""
        assert hsv_to_hex(360, 1, 1) == hsv_to_hex(0, 1, 1) == "#ff0000"

    def test_clamps_saturation_and_value(self):
        """Should clamp s and v into [0, 1]."""
        assert hsv_to_hex(0, 2.0, -1.0) == "#000000"
        assert hsv_to_hex(0, -1.0, 2.0) == "#ffffff"


class TestRoundTrip:
    """Round trip hex -> hsv -> hex."""

    def test_sample_colors_round_trip(self, sample_hex_colors):
        """Should reproduce every sample color exactly."""
        for color in sample_hex_colors:
            assert hsv_to_hex(*hex_to_hsv(color)) == color

    def test_every_channel_value_round_trips(self):
        """Should round-trip every byte value on each channel."""
        for value in range(256):
            for color in (f"#{value:02x}0000", f"#00{value:02x}00", f"#0000{value:02x}", f"#{value:02x}{value:02x}80"):
                assert hsv_to_hex(*hex_to_hsv(color)) == color

    def test_uppercase_round_trips_to_lowercase(self):
        """Should normalize uppercase input to lowercase output."""
        assert hsv_to_hex(*hex_to_hsv("#ABCDEF")) == "#abcdef"


class TestHelpers:
    """Tests for validation and picker helpers."""

    def test_is_valid_hex(self):
        """Should accept only #rrggbb."""
        assert is_valid_hex("#a1B2c3")
        assert not is_valid_hex("a1b2c3")
        assert not is_valid_hex("#12345")
        assert not is_valid_hex("#12345g")
        assert not is_valid_hex("")

    def test_hex_to_rgb(self):
        """Should parse channels as bytes."""
        assert hex_to_rgb("#102030") == (16, 32, 48)

    def test_hex_to_rgba_applies_opacity(self):
        """Should convert opacity to an alpha byte."""
        assert hex_to_rgba("#ffff00", 0.5) == (255, 255, 0, 128)
        assert hex_to_rgba("#ffff00", 3.0)[3] == 255

    def test_pick_saturation_value_corners(self):
        """Should map box corners to white, pure hue and black."""
        assert pick_saturation_value(0, 0.0, 0.0) == "#ffffff"
        assert pick_saturation_value(0, 1.0, 0.0) == "#ff0000"
        assert pick_saturation_value(0, 1.0, 1.0) == "#000000"

    def test_pick_saturation_value_clamps(self):
        """Should clamp clicks outside the box."""
        assert pick_saturation_value(120, 5.0, -3.0) == "#00ff00"

    def test_pick_hue(self):
        """Should map the strip fraction to hue degrees."""
        assert pick_hue(0.5, 1, 1) == "#00ffff"
        assert pick_hue(1.0, 1, 1) == "#ff0000"
