"""
Tests for the coordinate mapper.

Tests cover:
- Display/buffer scaling
- Source <-> viewport round trips for every rotation and flip
- Brush scale factor
- Zoom toward a fixed anchor
- Pillow affine coefficients
"""

import itertools

import numpy as np
import pytest

from OC_Libs.GeometryLib.coordinate_mapper import (
    ViewportRect,
    ViewTransform,
    affine_coefficients,
    build_view_matrix,
    buffer_to_display,
    display_to_buffer,
    invert_view_matrix,
    source_pixels_per_display_pixel,
    to_source_space,
    to_viewport_space,
    zoom_about_point,
)


ALL_ORIENTATIONS = list(itertools.product((0, 90, 180, 270), (False, True), (False, True)))


class TestDisplayToBuffer:
    """Test CSS size vs backing buffer scaling."""

    def test_scales_by_buffer_ratio(self):
        rect = ViewportRect(10.0, 20.0, 400.0, 300.0)
        assert display_to_buffer((210.0, 170.0), rect, (800, 600)) == pytest.approx((400.0, 300.0))

    def test_inverse(self):
        rect = ViewportRect(5.0, 7.0, 250.0, 125.0)
        point = (33.0, 91.0)
        buffer_point = display_to_buffer(point, rect, (1000, 500))
        assert buffer_to_display(buffer_point, rect, (1000, 500)) == pytest.approx(point)

    def test_viewport_requires_positive_size(self):
        with pytest.raises(ValueError):
            ViewportRect(0.0, 0.0, 0.0, 10.0)


class TestViewMatrix:
    """Test the composed view transform."""

    def test_identity_transform_is_identity_matrix(self):
        matrix = build_view_matrix(ViewTransform(), (640, 480))
        np.testing.assert_allclose(matrix, np.eye(3), atol=1e-12)

    @pytest.mark.parametrize("rotation,flip_h,flip_v", ALL_ORIENTATIONS)
    def test_inverse_matches_numeric_inverse(self, rotation, flip_h, flip_v):
        transform = ViewTransform(rotation, flip_h, flip_v, zoom=1.7, pan_x=12.0, pan_y=-30.0)
        forward = build_view_matrix(transform, (640, 480))
        inverse = invert_view_matrix(transform, (640, 480))
        np.testing.assert_allclose(forward @ inverse, np.eye(3), atol=1e-9)

    def test_zoom_pivots_on_center(self):
        matrix = build_view_matrix(ViewTransform(zoom=2.0), (200, 100))
        center = matrix @ np.array([100.0, 50.0, 1.0])
        assert center[:2] == pytest.approx((100.0, 50.0))

    def test_rotation_90_maps_top_left_corner(self):
        # A quarter turn about the center of a 200x100 surface
        matrix = build_view_matrix(ViewTransform(rotation=90), (200, 100))
        corner = matrix @ np.array([0.0, 0.0, 1.0])
        assert corner[:2] == pytest.approx((150.0, -50.0))

    def test_pan_applies_after_rotation(self):
        transform = ViewTransform(rotation=90, pan_x=10.0)
        matrix = build_view_matrix(transform, (200, 100))
        center = matrix @ np.array([100.0, 50.0, 1.0])
        assert center[:2] == pytest.approx((110.0, 50.0))

    def test_invalid_rotation_rejected(self):
        with pytest.raises(ValueError):
            ViewTransform(rotation=45)


class TestSourceRoundTrip:
    """Round trip source -> viewport -> source for every orientation."""

    @pytest.mark.parametrize("rotation,flip_h,flip_v", ALL_ORIENTATIONS)
    def test_round_trip_with_zoom_and_pan(self, rotation, flip_h, flip_v):
        rect = ViewportRect(15.0, 25.0, 400.0, 300.0)
        source_size = (1600, 1200)
        buffer_size = (800, 600)
        transform = ViewTransform(rotation, flip_h, flip_v, zoom=2.3, pan_x=-41.5, pan_y=17.25)

        for point in [(0.0, 0.0), (1599.0, 1199.0), (123.4, 987.6), (800.0, 600.0)]:
            display = to_viewport_space(point, rect, source_size, transform, buffer_size)
            back = to_source_space(display, rect, source_size, transform, buffer_size)
            assert back == pytest.approx(point, abs=1e-6)

    @pytest.mark.parametrize("rotation,flip_h,flip_v", ALL_ORIENTATIONS)
    def test_round_trip_from_display(self, rotation, flip_h, flip_v):
        rect = ViewportRect(0.0, 0.0, 300.0, 300.0)
        transform = ViewTransform(rotation, flip_h, flip_v, zoom=0.75, pan_x=5.0, pan_y=5.0)
        display = (37.0, 212.0)
        source = to_source_space(display, rect, (900, 900), transform, (600, 600))
        assert to_viewport_space(source, rect, (900, 900), transform, (600, 600)) == pytest.approx(display)

    def test_without_transform_scales_only(self):
        rect = ViewportRect.of_size(400, 300)
        assert to_source_space((200.0, 150.0), rect, (800, 600)) == pytest.approx((400.0, 300.0))

    def test_horizontal_flip_mirrors_x(self):
        rect = ViewportRect.of_size(100, 100)
        transform = ViewTransform(flip_horizontal=True)
        assert to_source_space((10.0, 40.0), rect, (100, 100), transform) == pytest.approx((90.0, 40.0))


class TestBrushScale:
    """Test source pixels per display pixel."""

    def test_scale_without_zoom(self):
        rect = ViewportRect.of_size(400, 300)
        assert source_pixels_per_display_pixel(rect, (1600, 1200)) == pytest.approx(4.0)

    def test_zoom_shrinks_scale(self):
        rect = ViewportRect.of_size(400, 300)
        transform = ViewTransform(zoom=2.0)
        assert source_pixels_per_display_pixel(rect, (1600, 1200), transform) == pytest.approx(2.0)


class TestZoomAboutPoint:
    """Test wheel zoom toward the cursor."""

    @pytest.mark.parametrize("rotation", [0, 90, 180, 270])
    def test_anchor_content_stays_fixed(self, rotation):
        surface = (640, 480)
        before = ViewTransform(rotation=rotation, zoom=1.2, pan_x=30.0, pan_y=-12.0)
        anchor = (500.0, 100.0)
        content = invert_view_matrix(before, surface) @ np.array([anchor[0], anchor[1], 1.0])

        after = zoom_about_point(before, 2.5, anchor, surface)
        moved = build_view_matrix(after, surface) @ content

        assert after.zoom == 2.5
        assert moved[:2] == pytest.approx(anchor)


class TestAffineCoefficients:
    """Test Pillow affine data."""

    def test_coefficients_are_inverse_rows(self):
        transform = ViewTransform(rotation=180, zoom=2.0, pan_x=3.0)
        matrix = build_view_matrix(transform, (100, 80))
        a, b, c, d, e, f = affine_coefficients(matrix)
        output_pixel = matrix @ np.array([20.0, 30.0, 1.0])
        x, y = output_pixel[0], output_pixel[1]
        assert (a * x + b * y + c, d * x + e * y + f) == pytest.approx((20.0, 30.0))
