"""
Raster layer primitives used by the compositing pipeline.

Functions:
    make_checkerboard: Transparency indicator pattern
    cover_fit: Scale an image to cover a size, centered, cropping the excess
    apply_mask_to_alpha: Multiply an RGBA image's alpha by a grayscale mask
    mask_to_image: Normalize a numpy mask or PIL image to an L image
    flatten_onto: Composite an RGBA image onto an opaque color
"""

from typing import Any, Tuple

import numpy as np

from OC_Libs.constants import CHECKERBOARD_COLORS, CHECKERBOARD_SQUARE_SIZE
from OC_Libs.ImageModelsLib.image_models import RgbaColor, Size, validate_size
from OC_Libs.pillow_compat import Image, ImageChops, ImageOps


def make_checkerboard(
    size: Size,
    square_size: int = CHECKERBOARD_SQUARE_SIZE,
    colors: Tuple[RgbaColor, RgbaColor] = CHECKERBOARD_COLORS,
) -> Any:
    """
    Build the checkerboard shown behind transparent pixels in previews.

    Args:
        size: (width, height) of the pattern
        square_size: Edge length of one square in pixels
        colors: (even, odd) square colors, top-left square is even

    Returns:
        RGBA PIL Image
    """
    width, height = validate_size(size[0], size[1], "checkerboard")
    square_size = max(1, int(square_size))
    cols = np.arange(width)[None, :] // square_size
    rows = np.arange(height)[:, None] // square_size
    odd = ((cols + rows) % 2).astype(bool)

    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[~odd] = colors[0]
    pixels[odd] = colors[1]
    return Image.fromarray(pixels)


def cover_fit(image: Any, size: Size, resample: int = Image.Resampling.BILINEAR) -> Any:
    """
    Scale an image to fully cover `size`, centered, cropping what overflows.

    Args:
        image: PIL Image
        size: (width, height) to cover
        resample: Pillow resampling filter

    Returns:
        RGBA PIL Image of exactly `size`

    Raises:
        TypeError: If image is not a PIL Image
    """
    if not hasattr(image, "mode"):
        raise TypeError(f"Expected PIL Image, got {type(image)}")
    width, height = validate_size(size[0], size[1], "cover target")
    rgba = image.convert("RGBA") if image.mode != "RGBA" else image
    if rgba.size == (width, height):
        return rgba.copy()
    return ImageOps.fit(rgba, (width, height), method=resample, centering=(0.5, 0.5))


def mask_to_image(mask: Any) -> Any:
    """Return `mask` (numpy array or PIL Image) as an L mode PIL Image."""
    if isinstance(mask, np.ndarray):
        if mask.ndim != 2:
            raise ValueError(f"Mask array must be 2D, got shape {mask.shape}")
        return Image.fromarray(np.ascontiguousarray(mask, dtype=np.uint8))
    if not hasattr(mask, "mode"):
        raise TypeError(f"Expected numpy array or PIL Image for mask, got {type(mask)}")
    return mask if mask.mode == "L" else mask.convert("L")


def apply_mask_to_alpha(image: Any, mask: Any) -> Any:
    """
    Apply a grayscale mask to an image's alpha channel.

    new_alpha = alpha * mask / 255, so a mask value of 0 yields an alpha of
    exactly 0 and a mask of 255 leaves the alpha untouched.

    Args:
        image: RGBA PIL Image
        mask: L PIL Image (or 2D uint8 array) of the same size

    Returns:
        New RGBA PIL Image with the mask applied to alpha

    Raises:
        ValueError: If the sizes differ
    """
    mask_image = mask_to_image(mask)
    if mask_image.size != image.size:
        raise ValueError(f"Mask size {mask_image.size} does not match image size {image.size}")
    rgba = image.convert("RGBA") if image.mode != "RGBA" else image
    r, g, b, a = rgba.split()
    return Image.merge("RGBA", (r, g, b, ImageChops.multiply(a, mask_image)))


def flatten_onto(image: Any, color: Tuple[int, int, int]) -> Any:
    """Composite an RGBA image over an opaque color, returning RGB."""
    rgba = image.convert("RGBA") if image.mode != "RGBA" else image
    base = Image.new("RGBA", rgba.size, tuple(color) + (255,))
    return Image.alpha_composite(base, rgba).convert("RGB")
