"""
Visual filters applied to the background layer.

Filters follow CSS filter semantics and order: brightness, then contrast,
then saturation, then blur. They apply to the background only; the masked
foreground is always drawn unfiltered.

Example:
    >>> settings = FilterSettings(brightness=120, blur=4)
    >>> filtered = apply_background_filters(background, settings)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from OC_Libs.constants import FILTER_BLUR_RANGE, FILTER_NEUTRAL_PERCENT, FILTER_PERCENT_RANGE
from OC_Libs.pillow_compat import Image, ImageEnhance, ImageFilter

logger = logging.getLogger(__name__)


def _clamp(name: str, value: float, bounds) -> float:
    low, high = bounds
    clamped = min(high, max(low, float(value)))
    if clamped != value:
        logger.debug(f"Filter {name} {value} clamped to {clamped}")
    return clamped


@dataclass
class FilterSettings:
    """Background filter settings.

    Attributes:
        brightness: Percent, 100 is unchanged (0-200)
        contrast: Percent, 100 is unchanged (0-200)
        saturation: Percent, 100 is unchanged (0-200)
        blur: Gaussian blur standard deviation in pixels (0-20)
    """
    brightness: float = FILTER_NEUTRAL_PERCENT
    contrast: float = FILTER_NEUTRAL_PERCENT
    saturation: float = FILTER_NEUTRAL_PERCENT
    blur: float = 0.0

    def __post_init__(self):
        """Clamp every value into its range."""
        self.brightness = _clamp("brightness", self.brightness, FILTER_PERCENT_RANGE)
        self.contrast = _clamp("contrast", self.contrast, FILTER_PERCENT_RANGE)
        self.saturation = _clamp("saturation", self.saturation, FILTER_PERCENT_RANGE)
        self.blur = _clamp("blur", self.blur, FILTER_BLUR_RANGE)

    @property
    def is_identity(self) -> bool:
        return (
            self.brightness == FILTER_NEUTRAL_PERCENT
            and self.contrast == FILTER_NEUTRAL_PERCENT
            and self.saturation == FILTER_NEUTRAL_PERCENT
            and self.blur == 0.0
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "brightness": self.brightness,
            "contrast": self.contrast,
            "saturation": self.saturation,
            "blur": self.blur,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterSettings":
        """Create from dictionary."""
        filtered = {k: v for k, v in data.items()
                   if k in cls.__dataclass_fields__}
        return cls(**filtered)


def _contrast_lut(factor: float):
    # CSS contrast pivots on mid gray, unlike ImageEnhance.Contrast which uses the image mean
    return [min(255, max(0, int(round((v - 128) * factor + 128)))) for v in range(256)]


def apply_background_filters(image: Any, settings: FilterSettings, blur_scale: float = 1.0) -> Any:
    """
    Apply filter settings to a background layer.

    Args:
        image: PIL Image (converted to RGBA)
        settings: Filter values
        blur_scale: Multiplier for the blur radius, used when rendering at a
            higher resolution than the preview the user tuned the blur on

    Returns:
        Filtered RGBA PIL Image (the input is returned unchanged for the
        identity settings)

    Raises:
        TypeError: If image is not a PIL Image
    """
    if not hasattr(image, "mode"):
        raise TypeError(f"Expected PIL Image, got {type(image)}")
    rgba = image.convert("RGBA") if image.mode != "RGBA" else image
    if settings.is_identity:
        return rgba

    alpha = rgba.getchannel("A")
    rgb = rgba.convert("RGB")

    if settings.brightness != FILTER_NEUTRAL_PERCENT:
        rgb = ImageEnhance.Brightness(rgb).enhance(settings.brightness / 100.0)
    if settings.contrast != FILTER_NEUTRAL_PERCENT:
        rgb = rgb.point(_contrast_lut(settings.contrast / 100.0) * 3)
    if settings.saturation != FILTER_NEUTRAL_PERCENT:
        rgb = ImageEnhance.Color(rgb).enhance(settings.saturation / 100.0)

    result = Image.merge("RGBA", (*rgb.split(), alpha))
    radius = settings.blur * blur_scale
    if radius > 0:
        result = result.filter(ImageFilter.GaussianBlur(radius=radius))
    return result
