"""
CompositingLib - Layered rendering of the cutout

Modules:
    compositing_pipeline: Preview and export renders, crop overlay
    background_filters: Brightness, contrast, saturation and blur
    layer_ops: Checkerboard, cover fit and mask-to-alpha primitives
"""

from OC_Libs.CompositingLib.background_filters import FilterSettings, apply_background_filters
from OC_Libs.CompositingLib.compositing_pipeline import (
    ExportResult,
    draw_crop_overlay,
    export_composite,
    normalize_export_format,
    render,
    render_original,
)
from OC_Libs.CompositingLib.layer_ops import (
    apply_mask_to_alpha,
    cover_fit,
    flatten_onto,
    make_checkerboard,
)

__all__ = [
    "FilterSettings",
    "apply_background_filters",
    "ExportResult",
    "draw_crop_overlay",
    "export_composite",
    "normalize_export_format",
    "render",
    "render_original",
    "apply_mask_to_alpha",
    "cover_fit",
    "flatten_onto",
    "make_checkerboard",
]
