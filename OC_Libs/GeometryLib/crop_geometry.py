"""
Crop box geometry and the crop drag interaction.

The crop box lives in the local pixel space of one rendering surface and
carries the factor that converts that space to Source Image pixels. Every
recomputation runs bounds enforcement so the box always:

- stays fully inside the surface (clamped, shrunk if necessary),
- keeps at least the minimum size,
- keeps the locked aspect ratio exactly when one is selected.

Interaction: Idle -> Dragging(handle) on pointer-down over a recognized zone,
back to Idle on pointer-up. Zones are tested corners first, then edge bands
(corner regions excluded), then the interior (move).

Classes:
    HandleKind: Which part of the box is being dragged
    CropBox: Immutable crop rectangle
    CropInteraction: Drag state machine and aspect ratio selection

Functions:
    parse_aspect_ratio: Selection string -> locked ratio (or None)
    hit_test: Find the handle under a point
    default_crop_box: Centered default box for a ratio
    drag_crop_box: Box produced by dragging a handle by a delta
    enforce_bounds: Containment / min size / ratio enforcement
    crop_box_to_source_rect: Surface box -> integer source rectangle
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from OC_Libs.constants import (
    ASPECT_FREE,
    ASPECT_ORIGINAL,
    ASPECT_RATIOS,
    CROP_DEFAULT_FRACTION,
    CROP_EDGE_BAND,
    CROP_HANDLE_HIT_SIZE,
    CROP_MIN_SIZE,
)
from OC_Libs.GeometryLib.coordinate_mapper import Point, ViewportRect, ViewTransform, to_source_space

logger = logging.getLogger(__name__)

SurfaceSize = Tuple[float, float]


class HandleKind(str, Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    MOVE = "move"


CORNER_HANDLES = (HandleKind.TOP_LEFT, HandleKind.TOP_RIGHT, HandleKind.BOTTOM_LEFT, HandleKind.BOTTOM_RIGHT)
_LEFT_SIDE = {HandleKind.TOP_LEFT, HandleKind.LEFT, HandleKind.BOTTOM_LEFT}
_RIGHT_SIDE = {HandleKind.TOP_RIGHT, HandleKind.RIGHT, HandleKind.BOTTOM_RIGHT}
_TOP_SIDE = {HandleKind.TOP_LEFT, HandleKind.TOP, HandleKind.TOP_RIGHT}
_BOTTOM_SIDE = {HandleKind.BOTTOM_LEFT, HandleKind.BOTTOM, HandleKind.BOTTOM_RIGHT}


class CropState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class CropBox:
    """Axis-aligned crop rectangle in surface pixels.

    Attributes:
        x: Left edge
        y: Top edge
        width: Box width
        height: Box height
        scale: Source pixels per surface pixel
    """
    x: float
    y: float
    width: float
    height: float
    scale: float = 1.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2.0

    @property
    def ratio(self) -> float:
        return self.width / self.height

    def contains(self, point: Point) -> bool:
        return self.x <= point[0] <= self.right and self.y <= point[1] <= self.bottom


def parse_aspect_ratio(selection: str) -> Optional[float]:
    """
    Translate an aspect ratio selection into a locked ratio.

    Returns:
        width/height for fixed ratios, None for 'original' and 'free'

    Raises:
        ValueError: If the selection is unknown
    """
    selection = str(selection).strip().lower()
    if selection in (ASPECT_ORIGINAL, ASPECT_FREE):
        return None
    if selection not in ASPECT_RATIOS:
        valid = ", ".join([ASPECT_ORIGINAL, ASPECT_FREE] + list(ASPECT_RATIOS))
        raise ValueError(f"Unknown aspect ratio: {selection}. Valid options: {valid}")
    return ASPECT_RATIOS[selection]


def hit_test(
    box: CropBox,
    point: Point,
    handle_size: float = CROP_HANDLE_HIT_SIZE,
    edge_band: float = CROP_EDGE_BAND,
) -> Optional[HandleKind]:
    """
    Find which zone of the box is under a point.

    Args:
        box: Current crop box
        point: (x, y) in surface pixels
        handle_size: Side of the square hit box centered on each corner
        edge_band: Thickness of the strip centered on each edge

    Returns:
        The HandleKind hit, or None when the point is outside every zone
    """
    px, py = point
    half = handle_size / 2.0
    corners = (
        (HandleKind.TOP_LEFT, box.x, box.y),
        (HandleKind.TOP_RIGHT, box.right, box.y),
        (HandleKind.BOTTOM_LEFT, box.x, box.bottom),
        (HandleKind.BOTTOM_RIGHT, box.right, box.bottom),
    )
    for kind, corner_x, corner_y in corners:
        if abs(px - corner_x) <= half and abs(py - corner_y) <= half:
            return kind

    band = edge_band / 2.0
    between_corners_x = box.x + half < px < box.right - half
    between_corners_y = box.y + half < py < box.bottom - half
    if between_corners_x and abs(py - box.y) <= band:
        return HandleKind.TOP
    if between_corners_x and abs(py - box.bottom) <= band:
        return HandleKind.BOTTOM
    if between_corners_y and abs(px - box.x) <= band:
        return HandleKind.LEFT
    if between_corners_y and abs(px - box.right) <= band:
        return HandleKind.RIGHT

    if box.contains(point):
        return HandleKind.MOVE
    return None


def default_crop_box(
    surface_size: SurfaceSize,
    aspect_ratio: Optional[float],
    scale: float = 1.0,
    fraction: float = CROP_DEFAULT_FRACTION,
) -> CropBox:
    """
    Centered box occupying `fraction` of the surface, honoring a ratio.

    The box is as large as possible within fraction*width x fraction*height.
    """
    surface_w, surface_h = surface_size
    max_w = surface_w * fraction
    max_h = surface_h * fraction
    if aspect_ratio is None:
        width, height = max_w, max_h
    elif max_w / max_h > aspect_ratio:
        height = max_h
        width = height * aspect_ratio
    else:
        width = max_w
        height = width / aspect_ratio
    return CropBox(
        x=(surface_w - width) / 2.0,
        y=(surface_h - height) / 2.0,
        width=width,
        height=height,
        scale=scale,
    )


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _fit_size(
    width: float,
    height: float,
    max_w: float,
    max_h: float,
    surface_size: SurfaceSize,
    aspect_ratio: Optional[float],
    min_size: float,
) -> Tuple[float, float]:
    """Apply available-space, minimum-size and surface limits to a size."""
    surface_w, surface_h = surface_size
    if aspect_ratio is None:
        width = max(min(width, max_w), min_size)
        height = max(min(height, max_h), min_size)
        return min(width, surface_w), min(height, surface_h)

    if width > max_w:
        width = max_w
        height = width / aspect_ratio
    if height > max_h:
        height = max_h
        width = height * aspect_ratio
    grow = max(min_size / width, min_size / height, 1.0)
    width *= grow
    height *= grow
    # the surface bound wins over the minimum size when both cannot hold
    shrink = min(surface_w / width, surface_h / height, 1.0)
    return width * shrink, height * shrink


def enforce_bounds(
    box: CropBox,
    surface_size: SurfaceSize,
    aspect_ratio: Optional[float] = None,
    min_size: float = CROP_MIN_SIZE,
) -> CropBox:
    """
    Force an arbitrary box back inside the surface.

    When a ratio is locked, the box keeps its center and takes the locked
    ratio by recomputing the height from the width.
    """
    width = max(box.width, 1e-9)
    height = max(box.height, 1e-9)
    if aspect_ratio is not None:
        height = width / aspect_ratio
    width, height = _fit_size(
        width, height, surface_size[0], surface_size[1], surface_size, aspect_ratio, min_size
    )
    x = _clamp(box.center_x - width / 2.0, 0.0, surface_size[0] - width)
    y = _clamp(box.center_y - height / 2.0, 0.0, surface_size[1] - height)
    return replace(box, x=x, y=y, width=width, height=height)


def drag_crop_box(
    start: CropBox,
    handle: HandleKind,
    delta: Point,
    surface_size: SurfaceSize,
    aspect_ratio: Optional[float] = None,
    min_size: float = CROP_MIN_SIZE,
) -> CropBox:
    """
    Compute the box produced by dragging `handle` by a cumulative delta.

    Args:
        start: Box at the moment the drag began
        handle: Handle being dragged
        delta: Cumulative pointer movement since the drag began
        surface_size: (width, height) of the surface
        aspect_ratio: Locked width/height ratio, or None when free
        min_size: Minimum width and height

    Returns:
        A new CropBox satisfying containment, minimum size and ratio
    """
    dx, dy = delta
    surface_w, surface_h = surface_size

    if handle == HandleKind.MOVE:
        x = _clamp(start.x + dx, 0.0, surface_w - start.width)
        y = _clamp(start.y + dy, 0.0, surface_h - start.height)
        return replace(start, x=x, y=y)

    left, top, right, bottom = start.x, start.y, start.right, start.bottom
    if handle in _LEFT_SIDE:
        left += dx
    if handle in _RIGHT_SIDE:
        right += dx
    if handle in _TOP_SIDE:
        top += dy
    if handle in _BOTTOM_SIDE:
        bottom += dy
    width = right - left
    height = bottom - top

    # Room available on each axis without moving the anchored side
    if handle in _LEFT_SIDE:
        max_w = start.right
    elif handle in _RIGHT_SIDE:
        max_w = surface_w - start.x
    else:
        max_w = 2.0 * min(start.center_x, surface_w - start.center_x)
    if handle in _TOP_SIDE:
        max_h = start.bottom
    elif handle in _BOTTOM_SIDE:
        max_h = surface_h - start.y
    else:
        max_h = 2.0 * min(start.center_y, surface_h - start.center_y)

    width = max(width, min_size)
    height = max(height, min_size)
    if aspect_ratio is not None:
        if handle in (HandleKind.LEFT, HandleKind.RIGHT):
            height = width / aspect_ratio
        elif handle in (HandleKind.TOP, HandleKind.BOTTOM):
            width = height * aspect_ratio
        else:
            width_change = abs(width - start.width) / start.width
            height_change = abs(height - start.height) / start.height
            if width_change >= height_change:
                height = width / aspect_ratio
            else:
                width = height * aspect_ratio

    width, height = _fit_size(width, height, max_w, max_h, surface_size, aspect_ratio, min_size)

    if handle in _LEFT_SIDE:
        x = start.right - width
    elif handle in _RIGHT_SIDE:
        x = start.x
    else:
        x = start.center_x - width / 2.0 if aspect_ratio is not None else start.x
    if handle in _TOP_SIDE:
        y = start.bottom - height
    elif handle in _BOTTOM_SIDE:
        y = start.y
    else:
        y = start.center_y - height / 2.0 if aspect_ratio is not None else start.y

    x = _clamp(x, 0.0, surface_w - width)
    y = _clamp(y, 0.0, surface_h - height)
    return replace(start, x=x, y=y, width=width, height=height)


def crop_box_to_source_rect(
    box: CropBox,
    source_size: Tuple[int, int],
    transform: Optional[ViewTransform] = None,
) -> Tuple[int, int, int, int]:
    """
    Convert a surface crop box into an integer (left, top, right, bottom)
    rectangle of Source Image pixels, clipped to the image.

    Args:
        box: Crop box in surface pixels
        source_size: (width, height) of the Source Image
        transform: View transform the box was drawn over (pan in surface
            pixels). With None the box is only rescaled, which gives its
            rectangle on the full-resolution export raster instead.
    """
    surface_size = (source_size[0] / box.scale, source_size[1] / box.scale)
    surface = ViewportRect.of_size(*surface_size)
    corners = [
        to_source_space(corner, surface, source_size, transform, surface_size)
        for corner in ((box.x, box.y), (box.right, box.y), (box.x, box.bottom), (box.right, box.bottom))
    ]
    # Quarter-turn rotations keep the mapped box axis-aligned
    xs = [x for x, _ in corners]
    ys = [y for _, y in corners]
    left = int(_clamp(round(min(xs)), 0, source_size[0] - 1))
    top = int(_clamp(round(min(ys)), 0, source_size[1] - 1))
    right = int(_clamp(round(max(xs)), left + 1, source_size[0]))
    bottom = int(_clamp(round(max(ys)), top + 1, source_size[1]))
    return left, top, right, bottom


class CropInteraction:
    """
    Crop state machine for one surface.

    Example:
        >>> crop = CropInteraction((800, 600), scale=2.0)
        >>> crop.set_aspect_ratio("16:9")
        >>> crop.pointer_down((crop.box.right, crop.box.bottom))
        <HandleKind.BOTTOM_RIGHT: 'bottom_right'>
        >>> box = crop.pointer_move((crop.box.right + 30, crop.box.bottom + 5))
        >>> box = crop.pointer_up()
    """

    def __init__(
        self,
        surface_size: SurfaceSize,
        scale: float = 1.0,
        min_size: float = CROP_MIN_SIZE,
        default_fraction: float = CROP_DEFAULT_FRACTION,
    ):
        self.surface_size = (float(surface_size[0]), float(surface_size[1]))
        self.scale = float(scale)
        self.min_size = float(min_size)
        self.default_fraction = float(default_fraction)
        self.selection = ASPECT_ORIGINAL
        self.box: Optional[CropBox] = None
        self.state = CropState.IDLE
        self.active_handle: Optional[HandleKind] = None
        self._drag_start_box: Optional[CropBox] = None
        self._drag_start_point: Optional[Point] = None

    @property
    def aspect_ratio(self) -> Optional[float]:
        return parse_aspect_ratio(self.selection)

    @property
    def is_active(self) -> bool:
        return self.box is not None

    def set_aspect_ratio(self, selection: str) -> Optional[CropBox]:
        """
        Change the ratio selection.

        Fixed ratios recenter a default box, 'original' clears the crop and
        'free' keeps the current box (or creates a default one) unconstrained.

        Raises:
            ValueError: If the selection is unknown
        """
        ratio = parse_aspect_ratio(selection)
        self.selection = str(selection).strip().lower()
        self._end_drag()
        if self.selection == ASPECT_ORIGINAL:
            self.box = None
        elif ratio is not None:
            self.box = default_crop_box(self.surface_size, ratio, self.scale, self.default_fraction)
        elif self.box is None:
            self.box = default_crop_box(self.surface_size, None, self.scale, self.default_fraction)
        logger.debug(f"Crop aspect ratio set to {self.selection}: {self.box}")
        return self.box

    def set_surface(self, surface_size: SurfaceSize, scale: float) -> None:
        """Rescale an active box when the surface is resized."""
        new_size = (float(surface_size[0]), float(surface_size[1]))
        if self.box is not None:
            factor_x = new_size[0] / self.surface_size[0]
            factor_y = new_size[1] / self.surface_size[1]
            resized = CropBox(
                x=self.box.x * factor_x,
                y=self.box.y * factor_y,
                width=self.box.width * factor_x,
                height=self.box.height * factor_y,
                scale=float(scale),
            )
            self.box = enforce_bounds(resized, new_size, self.aspect_ratio, self.min_size)
        self.surface_size = new_size
        self.scale = float(scale)

    def pointer_down(self, point: Point) -> Optional[HandleKind]:
        if self.box is None:
            return None
        handle = hit_test(self.box, point)
        if handle is None:
            return None
        self.state = CropState.DRAGGING
        self.active_handle = handle
        self._drag_start_box = self.box
        self._drag_start_point = (float(point[0]), float(point[1]))
        return handle

    def pointer_move(self, point: Point) -> Optional[CropBox]:
        if self.state != CropState.DRAGGING:
            return self.box
        delta = (point[0] - self._drag_start_point[0], point[1] - self._drag_start_point[1])
        self.box = drag_crop_box(
            self._drag_start_box,
            self.active_handle,
            delta,
            self.surface_size,
            self.aspect_ratio,
            self.min_size,
        )
        return self.box

    def pointer_up(self) -> Optional[CropBox]:
        self._end_drag()
        return self.box

    def clear(self) -> None:
        self.selection = ASPECT_ORIGINAL
        self.box = None
        self._end_drag()

    def source_rect(
        self, source_size: Tuple[int, int], transform: Optional[ViewTransform] = None
    ) -> Optional[Tuple[int, int, int, int]]:
        if self.box is None:
            return None
        return crop_box_to_source_rect(self.box, source_size, transform)

    def _end_drag(self) -> None:
        self.state = CropState.IDLE
        self.active_handle = None
        self._drag_start_box = None
        self._drag_start_point = None
