"""
GeometryLib - Coordinate mapping, view state and crop geometry

This module converts pointer positions between display, surface buffer and
source image pixels, holds the zoom/pan/rotate/flip state of each editing
surface, and implements the aspect-ratio crop box.
"""

from OC_Libs.GeometryLib.coordinate_mapper import (
    ViewportRect,
    ViewTransform,
    build_view_matrix,
    invert_view_matrix,
    to_source_space,
    to_viewport_space,
    source_pixels_per_display_pixel,
    zoom_about_point,
)
from OC_Libs.GeometryLib.view_state import ViewState, normalize_rotation
from OC_Libs.GeometryLib.crop_geometry import (
    CropBox,
    CropInteraction,
    HandleKind,
    crop_box_to_source_rect,
    hit_test,
    parse_aspect_ratio,
)

__all__ = [
    "ViewportRect",
    "ViewTransform",
    "build_view_matrix",
    "invert_view_matrix",
    "to_source_space",
    "to_viewport_space",
    "source_pixels_per_display_pixel",
    "zoom_about_point",
    "ViewState",
    "normalize_rotation",
    "CropBox",
    "CropInteraction",
    "HandleKind",
    "crop_box_to_source_rect",
    "hit_test",
    "parse_aspect_ratio",
]
