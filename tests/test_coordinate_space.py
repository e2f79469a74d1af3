"""
Unit tests for coordinate_space module.

Tests conversions between normalized and pixel frames, gesture math and
rotation-aware hit testing.
"""

import pytest

from CS_Libs.GeometryLib.coordinate_space import (
    NormalizedRect,
    PixelRect,
    Point,
    Size,
    drag_position,
    normalize_angle,
    point_in_rect,
    pointer_angle,
    resize_free,
    resize_symmetric,
    scale_pixel_rect,
    screen_to_rotated_pixels,
    to_local,
    to_normalized,
    to_pixels,
)


class TestToPixels:
    """Tests for to_pixels / to_normalized."""

    def test_centered_logo_on_800x600(self):
        """Should place a 0.2 x 0.2 logo at (320, 240) sized 160 x 120."""
        rect = NormalizedRect(0.5, 0.5, 0.2, 0.2)
        assert to_pixels(rect, Size(800, 600)).rounded() == PixelRect(320, 240, 160, 120)

    def test_keeps_center(self):
        """Should keep the center at x * W, y * H."""
        pixel = to_pixels(NormalizedRect(0.25, 0.75, 0.1, 0.3), Size(1000, 500))
        assert pixel.center == Point(pytest.approx(250.0), pytest.approx(375.0))

    def test_round_trip(self):
        """Should invert to_pixels up to float rounding."""
        rect = NormalizedRect(0.3, 0.6, 0.25, 0.15, rotation=33.0)
        back = to_normalized(to_pixels(rect, Size(1234, 567)), Size(1234, 567))
        assert back.x == pytest.approx(rect.x)
        assert back.y == pytest.approx(rect.y)
        assert back.w == pytest.approx(rect.w)
        assert back.h == pytest.approx(rect.h)
        assert back.rotation == rect.rotation

    def test_rejects_empty_reference(self):
        """Should raise ValueError for a zero reference size."""
        with pytest.raises(ValueError):
            to_normalized(PixelRect(0, 0, 10, 10), Size(0, 100))

    def test_scale_invariance(self):
        """Should give the same rect at any zoom once rescaled."""
        rect = NormalizedRect(0.4, 0.6, 0.2, 0.1, rotation=10.0)
        natural = to_pixels(rect, Size(2000, 1000))
        preview = to_pixels(rect, Size(500, 250))
        scaled = scale_pixel_rect(preview, 4.0)
        assert scaled.as_tuple() == pytest.approx(natural.as_tuple())
        assert scaled.rotation == natural.rotation


class TestDragAndResize:
    """Tests for pointer-driven position and size math."""

    def test_drag_divides_by_box(self):
        """Should convert screen pixels to fractions of the box."""
        center = drag_position(Point(0.5, 0.5), 40, -30, Size(400, 300))
        assert center == Point(pytest.approx(0.6), pytest.approx(0.4))

    def test_drag_clamps_to_image(self):
        """Should keep the center inside [0, 1]."""
        assert drag_position(Point(0.9, 0.1), 1000, -1000, Size(400, 300)) == Point(1.0, 0.0)

    def test_symmetric_resize_averages_deltas(self):
        """Should apply (dx/W + dy/H) / 2 to both axes."""
        size = resize_symmetric(Size(0.2, 0.2), 40, 0, Size(400, 300))
        assert size == Size(pytest.approx(0.25), pytest.approx(0.25))

    def test_symmetric_resize_clamps(self):
        """Should clamp to [0.05, 0.8]."""
        assert resize_symmetric(Size(0.2, 0.2), 10000, 10000, Size(400, 300)) == Size(0.8, 0.8)
        assert resize_symmetric(Size(0.2, 0.2), -10000, -10000, Size(400, 300)) == Size(0.05, 0.05)

    def test_free_resize_uses_each_axis(self):
        """Should scale each axis from its own delta."""
        size = resize_free(Size(0.4, 0.12), 40, 30, Size(400, 300))
        assert size == Size(pytest.approx(0.5), pytest.approx(0.22))


class TestRotation:
    """Tests for rotation handle math."""

    def test_pointer_angle_screen_space(self):
        """Should measure clockwise-positive angles in y-down space."""
        assert pointer_angle(Point(0, 0), Point(1, 0)) == pytest.approx(0.0)
        assert pointer_angle(Point(0, 0), Point(0, 1)) == pytest.approx(90.0)

    @pytest.mark.parametrize(
        "angle,expected",
        [(0, 0), (180, 180), (-180, 180), (190, -170), (540, 180), (-450, -90)],
    )
    def test_normalize_angle(self, angle, expected):
        """Should wrap into (-180, 180]."""
        assert normalize_angle(angle) == pytest.approx(expected)


class TestHitTesting:
    """Tests for rotation-aware hit testing."""

    def test_point_inside_unrotated(self):
        """Should hit inside and miss outside an unrotated rect."""
        rect = NormalizedRect(0.5, 0.5, 0.2, 0.2)
        box = Size(400, 300)
        assert point_in_rect(Point(200, 150), rect, box)
        assert point_in_rect(Point(239, 179), rect, box)
        assert not point_in_rect(Point(245, 150), rect, box)

    def test_rotation_moves_corners(self):
        """Should miss an unrotated corner once the rect is rotated 45 degrees."""
        box = Size(400, 400)
        corner = Point(238, 238)
        assert point_in_rect(corner, NormalizedRect(0.5, 0.5, 0.2, 0.2), box)
        assert not point_in_rect(corner, NormalizedRect(0.5, 0.5, 0.2, 0.2, rotation=45), box)

    def test_to_local_undoes_rotation(self):
        """Should express points in the rect's own frame."""
        rect = NormalizedRect(0.5, 0.5, 0.2, 0.2, rotation=90)
        local = to_local(Point(200, 240), rect, Size(400, 400))
        assert local.x == pytest.approx(40.0)
        assert local.y == pytest.approx(0.0, abs=1e-9)


class TestScreenToRotatedPixels:
    """Tests for crop display mapping."""

    def test_scales_up_from_display(self):
        """Should scale display points to rotated pixels."""
        point = screen_to_rotated_pixels(Point(400, 250), Size(800, 500), Size(1600, 1000))
        assert point == Point(800, 500)

    def test_clamps_to_bounds(self):
        """Should clamp points outside the display."""
        point = screen_to_rotated_pixels(Point(-10, 900), Size(800, 500), Size(1600, 1000))
        assert point == Point(0, 1000)

    def test_rejects_empty_display(self):
        """Should raise ValueError for an empty display size."""
        with pytest.raises(ValueError):
            screen_to_rotated_pixels(Point(0, 0), Size(0, 0), Size(10, 10))
