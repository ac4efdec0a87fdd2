"""
Coordinate mapping between source, buffer and display spaces.

Three coordinate spaces are involved whenever the user touches the mask:

- Display space: pixels of the surface as the UI shows it (CSS size).
- Buffer space: pixels of the surface's backing raster. A zoomed or panned
  surface additionally applies a view transform in this space.
- Source space: pixels of the Source Image (and therefore of the Mask).

The view transform is composed in a fixed order: pan, then zoom, then
rotation, then flip, then a translation that re-centers the content. Zoom,
rotation and flip all pivot around the surface center, never the corner.
Reversing the order gives visibly different results once a rotation is
combined with a pan.

All functions are pure.

Functions:
    display_to_buffer: Display pixels -> buffer pixels
    buffer_to_display: Buffer pixels -> display pixels
    build_view_matrix: Affine matrix of a view transform
    invert_view_matrix: Exact inverse of build_view_matrix
    to_source_space: Display pixels -> source pixels
    to_viewport_space: Source pixels -> display pixels
    source_pixels_per_display_pixel: Scale used to size the brush
    zoom_about_point: Zoom while keeping an anchor point fixed
    affine_coefficients: Pillow AFFINE data for a forward matrix
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from OC_Libs.constants import DEFAULT_ZOOM

Point = Tuple[float, float]
SizeLike = Tuple[float, float]

# Exact (cos, sin) per quarter turn, avoids float drift from math.cos
_QUARTER_TURNS = {
    0: (1.0, 0.0),
    90: (0.0, 1.0),
    180: (-1.0, 0.0),
    270: (0.0, -1.0),
}


@dataclass(frozen=True)
class ViewportRect:
    """Where a surface is displayed, in display pixels.

    Attributes:
        left: X of the surface's top-left corner
        top: Y of the surface's top-left corner
        width: Displayed width
        height: Displayed height
    """
    left: float
    top: float
    width: float
    height: float

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport must have a positive size, got {self.width}x{self.height}")

    @classmethod
    def of_size(cls, width: float, height: float) -> "ViewportRect":
        return cls(0.0, 0.0, float(width), float(height))


@dataclass(frozen=True)
class ViewTransform:
    """Snapshot of a surface's geometric view state.

    Pan is expressed in buffer pixels of the surface it was recorded on.
    """
    rotation: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    zoom: float = DEFAULT_ZOOM
    pan_x: float = 0.0
    pan_y: float = 0.0

    def __post_init__(self):
        if self.rotation not in _QUARTER_TURNS:
            raise ValueError(f"rotation must be one of 0, 90, 180, 270, got {self.rotation}")
        if self.zoom <= 0:
            raise ValueError(f"zoom must be positive, got {self.zoom}")

    @property
    def is_identity(self) -> bool:
        return (
            self.rotation == 0
            and not self.flip_horizontal
            and not self.flip_vertical
            and self.zoom == 1.0
            and self.pan_x == 0.0
            and self.pan_y == 0.0
        )

    def scaled_pan(self, factor: float) -> "ViewTransform":
        """Return a copy whose pan is re-expressed on a surface `factor` times larger."""
        return replace(self, pan_x=self.pan_x * factor, pan_y=self.pan_y * factor)


def _translation(tx: float, ty: float) -> np.ndarray:
    return np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])


def _scaling(sx: float, sy: float) -> np.ndarray:
    return np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]])


def _rotation(degrees: int, inverse: bool = False) -> np.ndarray:
    cos, sin = _QUARTER_TURNS[degrees]
    if inverse:
        sin = -sin
    return np.array([[cos, -sin, 0.0], [sin, cos, 0.0], [0.0, 0.0, 1.0]])


def _flip(transform: ViewTransform) -> np.ndarray:
    return _scaling(
        -1.0 if transform.flip_horizontal else 1.0,
        -1.0 if transform.flip_vertical else 1.0,
    )


def _apply(matrix: np.ndarray, point: Point) -> Point:
    x, y = point
    out = matrix @ np.array([float(x), float(y), 1.0])
    return float(out[0]), float(out[1])


def display_to_buffer(point: Point, viewport_rect: ViewportRect, buffer_size: SizeLike) -> Point:
    """
    Convert a display-space point to the surface's backing-buffer pixels.

    Args:
        point: (x, y) in display pixels (same origin as viewport_rect)
        viewport_rect: Where the surface is displayed
        buffer_size: (width, height) of the surface's backing raster

    Returns:
        (x, y) in buffer pixels
    """
    scale_x = buffer_size[0] / viewport_rect.width
    scale_y = buffer_size[1] / viewport_rect.height
    return (
        (point[0] - viewport_rect.left) * scale_x,
        (point[1] - viewport_rect.top) * scale_y,
    )


def buffer_to_display(point: Point, viewport_rect: ViewportRect, buffer_size: SizeLike) -> Point:
    """Inverse of display_to_buffer."""
    scale_x = viewport_rect.width / buffer_size[0]
    scale_y = viewport_rect.height / buffer_size[1]
    return (
        point[0] * scale_x + viewport_rect.left,
        point[1] * scale_y + viewport_rect.top,
    )


def build_view_matrix(transform: ViewTransform, surface_size: SizeLike) -> np.ndarray:
    """
    Build the affine matrix that maps content pixels to surface pixels.

    The composition is pan -> (to center) -> zoom -> rotation -> flip ->
    (back from center), matching how a 2D drawing context accumulates
    translate/scale/rotate calls.

    Args:
        transform: The surface's view transform
        surface_size: (width, height) of the surface buffer

    Returns:
        3x3 numpy array
    """
    center_x = surface_size[0] / 2.0
    center_y = surface_size[1] / 2.0
    return (
        _translation(transform.pan_x, transform.pan_y)
        @ _translation(center_x, center_y)
        @ _scaling(transform.zoom, transform.zoom)
        @ _rotation(transform.rotation)
        @ _flip(transform)
        @ _translation(-center_x, -center_y)
    )


def invert_view_matrix(transform: ViewTransform, surface_size: SizeLike) -> np.ndarray:
    """Exact inverse of build_view_matrix, composed from the inverted steps."""
    center_x = surface_size[0] / 2.0
    center_y = surface_size[1] / 2.0
    inverse_zoom = 1.0 / transform.zoom
    return (
        _translation(center_x, center_y)
        @ _flip(transform)
        @ _rotation(transform.rotation, inverse=True)
        @ _scaling(inverse_zoom, inverse_zoom)
        @ _translation(-center_x, -center_y)
        @ _translation(-transform.pan_x, -transform.pan_y)
    )


def to_source_space(
    point: Point,
    viewport_rect: ViewportRect,
    source_size: SizeLike,
    transform: Optional[ViewTransform] = None,
    buffer_size: Optional[SizeLike] = None,
) -> Point:
    """
    Map a display-space point to Source Image pixels.

    Args:
        point: (x, y) in display pixels
        viewport_rect: Where the surface is displayed
        source_size: (width, height) of the Source Image
        transform: Optional view transform of the surface (zoom/pan/rotate/flip)
        buffer_size: Surface backing size; defaults to source_size

    Returns:
        (x, y) in source pixels (may lie outside the image)
    """
    if buffer_size is None:
        buffer_size = source_size
    buffer_point = display_to_buffer(point, viewport_rect, buffer_size)
    if transform is not None and not transform.is_identity:
        buffer_point = _apply(invert_view_matrix(transform, buffer_size), buffer_point)
    return (
        buffer_point[0] * source_size[0] / buffer_size[0],
        buffer_point[1] * source_size[1] / buffer_size[1],
    )


def to_viewport_space(
    point: Point,
    viewport_rect: ViewportRect,
    source_size: SizeLike,
    transform: Optional[ViewTransform] = None,
    buffer_size: Optional[SizeLike] = None,
) -> Point:
    """Inverse of to_source_space: Source Image pixels -> display pixels."""
    if buffer_size is None:
        buffer_size = source_size
    buffer_point = (
        point[0] * buffer_size[0] / source_size[0],
        point[1] * buffer_size[1] / source_size[1],
    )
    if transform is not None and not transform.is_identity:
        buffer_point = _apply(build_view_matrix(transform, buffer_size), buffer_point)
    return buffer_to_display(buffer_point, viewport_rect, buffer_size)


def source_pixels_per_display_pixel(
    viewport_rect: ViewportRect,
    source_size: SizeLike,
    transform: Optional[ViewTransform] = None,
) -> float:
    """
    How many source pixels one display pixel covers along the x axis.

    A brush radius given in display pixels is multiplied by this value so the
    brush keeps the same size on screen at every zoom level.
    """
    zoom = transform.zoom if transform is not None else 1.0
    return source_size[0] / viewport_rect.width / zoom


def zoom_about_point(
    transform: ViewTransform,
    new_zoom: float,
    anchor: Point,
    surface_size: SizeLike,
) -> ViewTransform:
    """
    Change zoom while keeping the content under `anchor` in place.

    Args:
        transform: Current view transform
        new_zoom: Target zoom (already clamped by the caller)
        anchor: (x, y) in surface buffer pixels, usually the cursor
        surface_size: (width, height) of the surface buffer

    Returns:
        A new ViewTransform with the zoom and corrected pan
    """
    ratio = new_zoom / transform.zoom
    dx = anchor[0] - surface_size[0] / 2.0 - transform.pan_x
    dy = anchor[1] - surface_size[1] / 2.0 - transform.pan_y
    return replace(
        transform,
        zoom=new_zoom,
        pan_x=transform.pan_x - dx * (ratio - 1.0),
        pan_y=transform.pan_y - dy * (ratio - 1.0),
    )


def affine_coefficients(matrix: np.ndarray) -> Tuple[float, float, float, float, float, float]:
    """
    Convert a forward content->surface matrix into Pillow AFFINE data.

    Pillow samples the input at (a*x + b*y + c, d*x + e*y + f) for every
    output pixel, so the data is taken from the inverse matrix.
    """
    inverse = np.linalg.inv(matrix)
    return (
        float(inverse[0, 0]), float(inverse[0, 1]), float(inverse[0, 2]),
        float(inverse[1, 0]), float(inverse[1, 1]), float(inverse[1, 2]),
    )
