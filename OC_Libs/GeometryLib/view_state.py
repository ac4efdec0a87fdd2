"""
Per-surface view state: zoom, pan, rotation and flips.

Each editing surface (main preview, refinement viewport) owns one ViewState.
Values are clamped on every update, including programmatic and gesture
driven ones, so zoom can never leave its surface's range even transiently.
Out-of-range input is never an error.
"""

import logging
from typing import Optional, Tuple

from OC_Libs.constants import (
    DEFAULT_ZOOM,
    MAIN_ZOOM_RANGE,
    REFINE_ZOOM_RANGE,
    WHEEL_ZOOM_IN_FACTOR,
    WHEEL_ZOOM_OUT_FACTOR,
)
from OC_Libs.GeometryLib.coordinate_mapper import Point, ViewTransform, zoom_about_point

logger = logging.getLogger(__name__)


def normalize_rotation(degrees: float) -> int:
    """Snap an angle to the nearest quarter turn in {0, 90, 180, 270}."""
    return int(round(float(degrees) / 90.0)) * 90 % 360


class ViewState:
    """
    Mutable geometric state of one editing surface.

    Example:
        >>> view = ViewState.for_main_editor()
        >>> view.zoom = 5.0
        >>> view.zoom
        3.0
        >>> view.rotate_by(-90)
        270
    """

    def __init__(self, zoom_range: Tuple[float, float] = MAIN_ZOOM_RANGE, name: str = "main"):
        min_zoom, max_zoom = zoom_range
        if min_zoom <= 0 or max_zoom < min_zoom:
            raise ValueError(f"Invalid zoom range: {zoom_range}")
        self.name = name
        self.zoom_range = (float(min_zoom), float(max_zoom))
        self.reset()

    @classmethod
    def for_main_editor(cls, zoom_range: Optional[Tuple[float, float]] = None) -> "ViewState":
        return cls(zoom_range or MAIN_ZOOM_RANGE, name="main")

    @classmethod
    def for_refinement(cls, zoom_range: Optional[Tuple[float, float]] = None) -> "ViewState":
        return cls(zoom_range or REFINE_ZOOM_RANGE, name="refine")

    def reset(self) -> None:
        """Restore defaults, used whenever the surface is (re)opened."""
        self._rotation = 0
        self.flip_horizontal = False
        self.flip_vertical = False
        self._zoom = self.clamp_zoom(DEFAULT_ZOOM)
        self.pan_x = 0.0
        self.pan_y = 0.0

    # ------------------------------------------------------------------
    # Zoom
    # ------------------------------------------------------------------

    def clamp_zoom(self, value: float) -> float:
        min_zoom, max_zoom = self.zoom_range
        clamped = min(max_zoom, max(min_zoom, float(value)))
        if clamped != value:
            logger.debug(f"{self.name} zoom {value} clamped to {clamped}")
        return clamped

    @property
    def zoom(self) -> float:
        return self._zoom

    @zoom.setter
    def zoom(self, value: float) -> None:
        self._zoom = self.clamp_zoom(value)

    def set_zoom(self, value: float) -> float:
        self.zoom = value
        return self._zoom

    def zoom_by(self, factor: float) -> float:
        self.zoom = self._zoom * factor
        return self._zoom

    def zoom_toward(self, anchor: Point, zoom_in: bool, surface_size: Tuple[float, float]) -> float:
        """
        Wheel-style zoom step that keeps the content under `anchor` fixed.

        Args:
            anchor: (x, y) in surface buffer pixels
            zoom_in: True to zoom in one step, False to zoom out
            surface_size: (width, height) of the surface buffer

        Returns:
            The new zoom
        """
        factor = WHEEL_ZOOM_IN_FACTOR if zoom_in else WHEEL_ZOOM_OUT_FACTOR
        new_zoom = self.clamp_zoom(self._zoom * factor)
        moved = zoom_about_point(self.to_transform(), new_zoom, anchor, surface_size)
        self._zoom = new_zoom
        self.pan_x = moved.pan_x
        self.pan_y = moved.pan_y
        return self._zoom

    # ------------------------------------------------------------------
    # Rotation / flip / pan
    # ------------------------------------------------------------------

    @property
    def rotation(self) -> int:
        return self._rotation

    @rotation.setter
    def rotation(self, degrees: float) -> None:
        self._rotation = normalize_rotation(degrees)

    def set_rotation(self, degrees: float) -> int:
        self.rotation = degrees
        return self._rotation

    def rotate_by(self, delta: float) -> int:
        self.rotation = self._rotation + normalize_rotation(delta)
        return self._rotation

    def toggle_flip_horizontal(self) -> bool:
        self.flip_horizontal = not self.flip_horizontal
        return self.flip_horizontal

    def toggle_flip_vertical(self) -> bool:
        self.flip_vertical = not self.flip_vertical
        return self.flip_vertical

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan_x += float(dx)
        self.pan_y += float(dy)

    def set_pan(self, x: float, y: float) -> None:
        self.pan_x = float(x)
        self.pan_y = float(y)

    def to_transform(self) -> ViewTransform:
        """Freeze the current state for the mapper and the compositor."""
        return ViewTransform(
            rotation=self._rotation,
            flip_horizontal=self.flip_horizontal,
            flip_vertical=self.flip_vertical,
            zoom=self._zoom,
            pan_x=self.pan_x,
            pan_y=self.pan_y,
        )

    def __repr__(self) -> str:
        return (
            f"ViewState(name={self.name!r}, zoom={self._zoom}, rotation={self._rotation}, "
            f"flip=({self.flip_horizontal}, {self.flip_vertical}), pan=({self.pan_x}, {self.pan_y}))"
        )
