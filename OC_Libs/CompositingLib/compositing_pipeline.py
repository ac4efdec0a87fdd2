"""
Layered compositing of the cutout against its replacement background.

Layer order of every render:

1. Clear the surface.
2. Checkerboard (preview mode with a transparent background only).
3. Apply the view transform (pan, zoom, rotation, flip about the center).
4. Background filters.
5. Background: solid fill, or image scaled to cover the surface, centered.
6. Filters reset.
7. Source image whose alpha is multiplied by the mask.
8. Transform restored.
9. Crop overlay (preview mode with an active crop box only).

Every layer is built on a scratch surface; the render target is only written
after all layers succeeded, so a failed render leaves it untouched.

Preview renders resample bilinearly; exports render at full source
resolution with Lanczos resampling.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from OC_Libs.constants import (
    CROP_BORDER_COLOR,
    CROP_DIM_COLOR,
    CROP_GRID_COLOR,
    CROP_GRID_DIVISIONS,
    CROP_HANDLE_COLOR,
    CROP_HANDLE_MARKER_SIZE,
    EXPORT_FORMAT_ALIASES,
    EXPORT_FORMAT_PNG,
    FORMATS_WITH_ALPHA,
    JPEG_FLATTEN_COLOR,
    RENDER_MODE_EXPORT,
    RENDER_MODE_PREVIEW,
    SUPPORTED_EXPORT_FORMATS,
)
from OC_Libs.errors import RenderResourceUnavailableError
from OC_Libs.GeometryLib.coordinate_mapper import ViewTransform, affine_coefficients, build_view_matrix
from OC_Libs.GeometryLib.crop_geometry import CropBox, crop_box_to_source_rect
from OC_Libs.ImageModelsLib.image_models import (
    BackgroundSpec,
    Size,
    SourceImage,
    validate_preview_size,
    validate_size,
)
from OC_Libs.CompositingLib.background_filters import FilterSettings, apply_background_filters
from OC_Libs.CompositingLib.layer_ops import (
    apply_mask_to_alpha,
    cover_fit,
    flatten_onto,
    make_checkerboard,
    mask_to_image,
)
from OC_Libs.pillow_compat import Image, ImageDraw

logger = logging.getLogger(__name__)

PREVIEW_RESAMPLE = Image.Resampling.BILINEAR
EXPORT_RESAMPLE = Image.Resampling.LANCZOS


@dataclass(frozen=True)
class ExportResult:
    """Output of a full-resolution export.

    Attributes:
        image: Final composite (RGBA, or RGB flattened for JPEG)
        format: Normalized export format name
        source_rect: (left, top, right, bottom) of the framed region in
            untransformed source pixels, or None
        output_rect: (left, top, right, bottom) the composite was cut from
            on the full-resolution export raster, or None
        cropped_source: Source image cut to source_rect, or None without a crop
        cropped_mask: Mask cut to source_rect, or None without a crop
    """
    image: Any
    format: str = EXPORT_FORMAT_PNG
    source_rect: Optional[Tuple[int, int, int, int]] = None
    output_rect: Optional[Tuple[int, int, int, int]] = None
    cropped_source: Optional[Any] = None
    cropped_mask: Optional[Any] = None

    @property
    def size(self) -> Size:
        return self.image.size


def normalize_export_format(fmt: str) -> str:
    """
    Lower-case and alias an export format name ('jpg' -> 'jpeg').

    Raises:
        ValueError: If the format is not supported
    """
    name = str(fmt).strip().lower().lstrip(".")
    name = EXPORT_FORMAT_ALIASES.get(name, name)
    if name not in SUPPORTED_EXPORT_FORMATS:
        raise ValueError(
            f"Unsupported export format: {fmt}. Valid formats: {', '.join(sorted(SUPPORTED_EXPORT_FORMATS))}"
        )
    return name


def _warp(layer: Any, transform: Optional[ViewTransform], resample: int) -> Any:
    if transform is None or transform.is_identity:
        return layer
    matrix = build_view_matrix(transform, layer.size)
    # Affine warps only support nearest, bilinear and bicubic sampling
    affine_resample = Image.Resampling.BICUBIC if resample == EXPORT_RESAMPLE else resample
    return layer.transform(
        layer.size,
        Image.Transform.AFFINE,
        affine_coefficients(matrix),
        resample=affine_resample,
        fillcolor=(0, 0, 0, 0),
    )


def _background_layer(
    background: BackgroundSpec,
    filters: Optional[FilterSettings],
    size: Size,
    resample: int,
    blur_scale: float,
) -> Optional[Any]:
    if background.is_transparent:
        return None
    if background.image is not None:
        layer = cover_fit(background.image, size, resample)
    else:
        layer = Image.new("RGBA", size, background.color)
    if filters is not None:
        layer = apply_background_filters(layer, filters, blur_scale=blur_scale)
    return layer


def _foreground_layer(source: SourceImage, mask_image: Any, size: Size, resample: int) -> Any:
    if source.size != mask_image.size:
        mask_image = mask_image.resize(source.size, resample)
    foreground = apply_mask_to_alpha(source.image, mask_image)
    if foreground.size != size:
        foreground = foreground.resize(size, resample)
    return foreground


def draw_crop_overlay(surface: Any, box: CropBox) -> Any:
    """
    Draw the crop overlay on top of a rendered preview.

    The exterior of the box is dimmed, the interior gets a rule-of-thirds
    grid, and handle markers are drawn at the corners and edge midpoints.
    The pixels the overlay covers are not part of any export.

    Returns:
        New RGBA PIL Image
    """
    width, height = surface.size
    overlay = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)

    left, top = int(round(box.x)), int(round(box.y))
    right, bottom = int(round(box.right)), int(round(box.bottom))

    # Dimmed exterior, as four bands around the box
    if top > 0:
        draw.rectangle([0, 0, width - 1, top - 1], fill=CROP_DIM_COLOR)
    if bottom < height:
        draw.rectangle([0, bottom, width - 1, height - 1], fill=CROP_DIM_COLOR)
    if left > 0:
        draw.rectangle([0, top, left - 1, bottom - 1], fill=CROP_DIM_COLOR)
    if right < width:
        draw.rectangle([right, top, width - 1, bottom - 1], fill=CROP_DIM_COLOR)

    for i in range(1, CROP_GRID_DIVISIONS):
        gx = left + (right - left) * i // CROP_GRID_DIVISIONS
        gy = top + (bottom - top) * i // CROP_GRID_DIVISIONS
        draw.line([(gx, top), (gx, bottom - 1)], fill=CROP_GRID_COLOR, width=1)
        draw.line([(left, gy), (right - 1, gy)], fill=CROP_GRID_COLOR, width=1)

    draw.rectangle([left, top, right - 1, bottom - 1], outline=CROP_BORDER_COLOR, width=2)

    half = CROP_HANDLE_MARKER_SIZE // 2
    mid_x = (left + right) // 2
    mid_y = (top + bottom) // 2
    for hx, hy in (
        (left, top), (right, top), (left, bottom), (right, bottom),
        (mid_x, top), (mid_x, bottom), (left, mid_y), (right, mid_y),
    ):
        draw.rectangle([hx - half, hy - half, hx + half - 1, hy + half - 1], fill=CROP_HANDLE_COLOR)

    return Image.alpha_composite(surface, overlay)


def render(
    target: Any,
    source: SourceImage,
    mask: Any,
    background: BackgroundSpec,
    filters: Optional[FilterSettings] = None,
    transform: Optional[ViewTransform] = None,
    mode: str = RENDER_MODE_PREVIEW,
    crop_box: Optional[CropBox] = None,
    blur_scale: float = 1.0,
) -> Any:
    """
    Composite the session state onto a render target.

    Args:
        target: RGBA PIL Image to draw into; its size is the surface size
        source: Source image
        mask: Mask as a 2D uint8 array or L image (source dimensions)
        background: Active background variant
        filters: Background filters, or None for none
        transform: View transform with pan in target pixels, or None
        mode: 'preview' or 'export'
        crop_box: Active crop box in target pixels (drawn in preview only)
        blur_scale: Multiplier for the background blur radius

    Returns:
        The target image

    Raises:
        TypeError: If target is not an RGBA PIL Image
        ValueError: If mode is unknown
        RenderResourceUnavailableError: If a layer surface cannot be
            allocated; the target is left untouched
    """
    if not hasattr(target, "mode") or target.mode != "RGBA":
        raise TypeError(f"Render target must be an RGBA PIL Image, got {type(target)}")
    if mode not in (RENDER_MODE_PREVIEW, RENDER_MODE_EXPORT):
        raise ValueError(f"Unknown render mode: {mode}. Valid modes: preview, export")
    size = validate_size(target.width, target.height, "render target")
    resample = PREVIEW_RESAMPLE if mode == RENDER_MODE_PREVIEW else EXPORT_RESAMPLE

    try:
        scratch = Image.new("RGBA", size, (0, 0, 0, 0))
        if mode == RENDER_MODE_PREVIEW and background.is_transparent:
            scratch = make_checkerboard(size)

        content = _background_layer(background, filters, size, resample, blur_scale)
        foreground = _foreground_layer(source, mask_to_image(mask), size, resample)
        content = foreground if content is None else Image.alpha_composite(content, foreground)

        scratch = Image.alpha_composite(scratch, _warp(content, transform, resample))

        if mode == RENDER_MODE_PREVIEW and crop_box is not None:
            scratch = draw_crop_overlay(scratch, crop_box)
    except MemoryError as e:
        logger.warning(f"Render of {size[0]}x{size[1]} {mode} failed: out of memory")
        raise RenderResourceUnavailableError(f"Could not allocate a {size[0]}x{size[1]} layer surface") from e

    target.paste(scratch, (0, 0))
    return target


def render_original(target: Any, source: SourceImage, transform: Optional[ViewTransform] = None) -> Any:
    """
    Draw the untouched source image (no mask, no background) for a
    before/after comparison, using the same view transform as the edit view.

    Raises:
        RenderResourceUnavailableError: If a layer surface cannot be allocated
    """
    if not hasattr(target, "mode") or target.mode != "RGBA":
        raise TypeError(f"Render target must be an RGBA PIL Image, got {type(target)}")
    size = validate_size(target.width, target.height, "render target")
    try:
        scratch = make_checkerboard(size)
        layer = source.image if source.size == size else source.image.resize(size, PREVIEW_RESAMPLE)
        scratch = Image.alpha_composite(scratch, _warp(layer, transform, PREVIEW_RESAMPLE))
    except MemoryError as e:
        raise RenderResourceUnavailableError(f"Could not allocate a {size[0]}x{size[1]} layer surface") from e
    target.paste(scratch, (0, 0))
    return target


def export_composite(
    source: SourceImage,
    mask: Any,
    background: BackgroundSpec,
    filters: Optional[FilterSettings] = None,
    transform: Optional[ViewTransform] = None,
    crop_box: Optional[CropBox] = None,
    preview_size: Optional[Size] = None,
    fmt: str = EXPORT_FORMAT_PNG,
) -> ExportResult:
    """
    Render the final composite at full source resolution.

    The view transform's pan and the crop box are recorded on the preview
    surface; both are rescaled by the source/preview size ratio. With a crop,
    the composite is cut to the box on the export raster, and the source
    image and mask to the part of the photo the box frames through the view
    transform. Without zoom, pan, rotation or flips the two rectangles are
    the same.

    Args:
        source: Source image
        mask: Mask (source dimensions)
        background: Active background variant
        filters: Background filters
        transform: View transform recorded on the preview surface
        crop_box: Active crop box on the preview surface, or None
        preview_size: (width, height) of the preview surface; defaults to
            the source size
        fmt: 'png', 'webp' (RGBA) or 'jpeg'/'jpg' (flattened onto white)

    Returns:
        ExportResult

    Raises:
        ValueError: If the format is unsupported
        InvalidDimensionsError: If preview_size does not have the source's
            aspect ratio
        RenderResourceUnavailableError: If the full-resolution surface
            cannot be allocated
    """
    fmt = normalize_export_format(fmt)
    preview_w, _ = validate_preview_size(preview_size or source.size, source.size)
    factor = source.width / float(preview_w)

    try:
        target = Image.new("RGBA", source.size, (0, 0, 0, 0))
    except MemoryError as e:
        raise RenderResourceUnavailableError(
            f"Could not allocate a {source.width}x{source.height} export surface"
        ) from e

    export_transform = transform.scaled_pan(factor) if transform is not None else None
    render(
        target,
        source,
        mask,
        background,
        filters=filters,
        transform=export_transform,
        mode=RENDER_MODE_EXPORT,
        blur_scale=factor,
    )

    source_rect = None
    output_rect = None
    cropped_source = None
    cropped_mask = None
    composite = target
    if crop_box is not None:
        output_rect = crop_box_to_source_rect(crop_box, source.size)
        # The pair is cut where the box lies on the photo under the view transform
        source_rect = crop_box_to_source_rect(crop_box, source.size, transform)
        composite = target.crop(output_rect)
        cropped_source = source.image.crop(source_rect)
        cropped_mask = mask_to_image(mask).crop(source_rect)

    if fmt not in FORMATS_WITH_ALPHA:
        composite = flatten_onto(composite, JPEG_FLATTEN_COLOR)

    logger.info(f"Exported {composite.size[0]}x{composite.size[1]} {fmt} (crop={source_rect})")
    return ExportResult(
        image=composite,
        format=fmt,
        source_rect=source_rect,
        output_rect=output_rect,
        cropped_source=cropped_source,
        cropped_mask=cropped_mask,
    )
