"""
Image data models for Open Cutout.

This module defines the core data structures shared by the mask editor and
the compositing pipeline.

Classes:
    SourceImage: Immutable RGBA raster of the uploaded photograph
    BackgroundSpec: Tagged background variant (transparent, solid color or image)

Type Aliases:
    RgbaColor: A tuple of 4 integers representing RGBA color values (0-255)
    Size: A (width, height) tuple in pixels
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from OC_Libs.constants import (
    BACKGROUND_COLOR,
    BACKGROUND_IMAGE,
    BACKGROUND_TRANSPARENT,
)
from OC_Libs.errors import InvalidDimensionsError
from OC_Libs.pillow_compat import Image, ImageColor

RgbaColor = Tuple[int, int, int, int]
Size = Tuple[int, int]


def validate_size(width: int, height: int, label: str = "image") -> Size:
    """
    Check that a raster size is usable.

    Args:
        width: Width in pixels
        height: Height in pixels
        label: Name used in the error message

    Returns:
        The (width, height) tuple as ints

    Raises:
        InvalidDimensionsError: If either dimension is zero or negative
    """
    width = int(width)
    height = int(height)
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(f"{label} dimensions must be positive, got {width}x{height}")
    return width, height


def validate_preview_size(preview_size: Size, source_size: Size) -> Size:
    """
    Check that a preview surface shows the source at a single scale.

    The preview height may differ by one pixel from the exact scaled height
    to allow for rounding.

    Raises:
        InvalidDimensionsError: If a size is not positive or the preview's
            aspect ratio differs from the source's
    """
    width, height = validate_size(preview_size[0], preview_size[1], "preview")
    source_w, source_h = validate_size(source_size[0], source_size[1], "source")
    expected_h = width * source_h / float(source_w)
    if abs(height - expected_h) > 1.0:
        raise InvalidDimensionsError(
            f"preview {width}x{height} does not match the {source_w}x{source_h} source aspect ratio "
            f"(expected height {expected_h:.1f})"
        )
    return width, height


def parse_color(color: Union[str, Tuple[int, ...]]) -> RgbaColor:
    """
    Convert a CSS-style color string or RGB(A) tuple to an RGBA tuple.

    Raises:
        ValueError: If the color string cannot be parsed
    """
    if isinstance(color, str):
        rgb = ImageColor.getrgb(color)
    else:
        rgb = tuple(int(c) for c in color)
    if len(rgb) == 3:
        return (rgb[0], rgb[1], rgb[2], 255)
    if len(rgb) == 4:
        return (rgb[0], rgb[1], rgb[2], rgb[3])
    raise ValueError(f"Color must have 3 or 4 components, got {color!r}")


@dataclass(frozen=True)
class SourceImage:
    """Decoded photograph the session edits. Never mutated by the engine.

    Attributes:
        image: PIL Image in RGBA mode
    """
    image: 'Image.Image'

    @classmethod
    def from_image(cls, image: Any) -> "SourceImage":
        """
        Wrap a decoded PIL Image, converting it to RGBA.

        Raises:
            TypeError: If image is not a PIL Image
            InvalidDimensionsError: If the image has a zero dimension
        """
        if not hasattr(image, "mode"):
            raise TypeError(f"Expected PIL Image, got {type(image)}")
        validate_size(image.width, image.height, "source image")
        converted = image.convert("RGBA") if image.mode != "RGBA" else image.copy()
        return cls(image=converted)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> Size:
        return self.image.size


@dataclass(frozen=True)
class BackgroundSpec:
    """Replacement background. Exactly one variant is active.

    Attributes:
        kind: 'transparent', 'color' or 'image'
        color: RGBA fill for the 'color' variant
        image: PIL Image for the 'image' variant
    """
    kind: str = BACKGROUND_TRANSPARENT
    color: Optional[RgbaColor] = None
    image: Optional[Any] = None

    def __post_init__(self):
        """Validate that the variant carries exactly its own payload."""
        if self.kind == BACKGROUND_TRANSPARENT:
            if self.color is not None or self.image is not None:
                raise ValueError("Transparent background takes no color or image")
        elif self.kind == BACKGROUND_COLOR:
            if self.color is None:
                raise ValueError("Color background requires a color")
        elif self.kind == BACKGROUND_IMAGE:
            if self.image is None or not hasattr(self.image, "mode"):
                raise TypeError(f"Image background requires a PIL Image, got {type(self.image)}")
            validate_size(self.image.width, self.image.height, "background image")
        else:
            raise ValueError(
                f"Unknown background kind: {self.kind}. "
                f"Valid kinds: {BACKGROUND_TRANSPARENT}, {BACKGROUND_COLOR}, {BACKGROUND_IMAGE}"
            )

    @classmethod
    def transparent(cls) -> "BackgroundSpec":
        return cls(kind=BACKGROUND_TRANSPARENT)

    @classmethod
    def solid(cls, color: Union[str, Tuple[int, ...]]) -> "BackgroundSpec":
        return cls(kind=BACKGROUND_COLOR, color=parse_color(color))

    @classmethod
    def from_image(cls, image: Any) -> "BackgroundSpec":
        return cls(kind=BACKGROUND_IMAGE, image=image)

    @property
    def is_transparent(self) -> bool:
        return self.kind == BACKGROUND_TRANSPARENT
