"""
ImageModelsLib - Data models shared by the editor and the compositor

This module defines the source image, background descriptor and the
segmentation service interface.
"""

from OC_Libs.ImageModelsLib.image_models import (
    BackgroundSpec,
    RgbaColor,
    Size,
    SourceImage,
    parse_color,
    validate_preview_size,
    validate_size,
)
from OC_Libs.ImageModelsLib.segmentation import SegmentationResult, SegmentationService

__all__ = [
    "BackgroundSpec",
    "RgbaColor",
    "Size",
    "SourceImage",
    "parse_color",
    "validate_preview_size",
    "validate_size",
    "SegmentationResult",
    "SegmentationService",
]
