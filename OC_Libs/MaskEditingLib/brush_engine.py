"""
Brush engine: turns pointer and touch input on one surface into mask strokes.

State machine:

    Idle --pointer_down--> Stroking --pointer_move--> Stroking
    Stroking --pointer_up / pointer_leave--> Idle   (one history push)
    Idle --pointer_down in pan mode--> Panning --pointer_up--> Idle

Every move draws a capsule from the previous point to the current one, so
fast movement leaves a continuous line instead of separate dots. The radius
is set in display pixels and scaled to source pixels at stroke time, which
keeps the on-screen brush size constant at any zoom.

An engine may only stroke while it is the mask store's attached writer.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from OC_Libs.constants import (
    BRUSH_MODE_ERASE,
    BRUSH_MODE_RESTORE,
    DEFAULT_BRUSH_MODE,
    DEFAULT_BRUSH_RADIUS,
    MAX_BRUSH_RADIUS,
    MIN_BRUSH_RADIUS,
)
from OC_Libs.errors import SurfaceBusyError
from OC_Libs.GeometryLib.coordinate_mapper import (
    Point,
    ViewportRect,
    display_to_buffer,
    source_pixels_per_display_pixel,
    to_source_space,
)
from OC_Libs.GeometryLib.view_state import ViewState
from OC_Libs.MaskEditingLib.gesture_classifier import GestureClassifier, GestureKind
from OC_Libs.MaskEditingLib.history_manager import HistoryManager
from OC_Libs.MaskEditingLib.mask_store import MaskSnapshot, MaskStore

logger = logging.getLogger(__name__)


class BrushMode(str, Enum):
    ERASE = BRUSH_MODE_ERASE
    RESTORE = BRUSH_MODE_RESTORE


class BrushState(str, Enum):
    IDLE = "idle"
    STROKING = "stroking"
    PANNING = "panning"


class BrushEngine:
    """
    Pointer-driven mask editing for one surface.

    Args:
        mask_store: Shared mask of the session
        history: Shared history of the session
        view_state: View state of the surface this engine draws on
        viewport_rect: Where the surface is displayed, in display pixels
        buffer_size: Backing size of the surface; defaults to the mask size
        name: Label used in log messages

    Example:
        >>> engine = BrushEngine(store, history, ViewState(), ViewportRect.of_size(400, 300))
        >>> engine.attach()
        >>> engine.pointer_down((10, 10))
        >>> engine.pointer_move((80, 40))
        >>> engine.pointer_up()
    """

    def __init__(
        self,
        mask_store: MaskStore,
        history: HistoryManager,
        view_state: ViewState,
        viewport_rect: ViewportRect,
        buffer_size: Optional[Tuple[float, float]] = None,
        radius: float = DEFAULT_BRUSH_RADIUS,
        mode: str = DEFAULT_BRUSH_MODE,
        name: str = "main",
    ):
        self.mask_store = mask_store
        self.history = history
        self.view_state = view_state
        self.name = name
        self.viewport_rect = viewport_rect
        self.buffer_size = buffer_size
        self.radius = radius
        self.mode = mode
        self.pan_mode = False
        self.state = BrushState.IDLE
        self.gestures = GestureClassifier()
        self._listeners: List[Callable[[], None]] = []
        self._last_point: Optional[Point] = None
        self._pre_stroke: Optional[MaskSnapshot] = None
        self._pinch_start_zoom = view_state.zoom

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def radius(self) -> float:
        return self._radius

    @radius.setter
    def radius(self, value: float) -> None:
        clamped = min(MAX_BRUSH_RADIUS, max(MIN_BRUSH_RADIUS, float(value)))
        if clamped != value:
            logger.debug(f"Brush radius {value} clamped to {clamped}")
        self._radius = clamped

    @property
    def mode(self) -> BrushMode:
        return self._mode

    @mode.setter
    def mode(self, value: str) -> None:
        try:
            self._mode = BrushMode(value)
        except ValueError as e:
            raise ValueError(f"Unknown brush mode: {value}. Valid modes: erase, restore") from e

    @property
    def source_size(self) -> Tuple[int, int]:
        return self.mask_store.size

    @property
    def surface_size(self) -> Tuple[float, float]:
        return self.buffer_size if self.buffer_size is not None else self.source_size

    def set_viewport(self, viewport_rect: ViewportRect, buffer_size: Optional[Tuple[float, float]] = None) -> None:
        """Update where the surface is displayed (after a layout change)."""
        self.viewport_rect = viewport_rect
        if buffer_size is not None:
            self.buffer_size = buffer_size

    def source_radius(self) -> float:
        """Brush radius converted to source pixels for the current zoom."""
        scale = source_pixels_per_display_pixel(
            self.viewport_rect, self.source_size, self.view_state.to_transform()
        )
        return self._radius * scale

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback run after every completed stroke segment."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Writer attachment
    # ------------------------------------------------------------------

    def attach(self) -> None:
        self.mask_store.attach(self)
        logger.debug(f"Brush engine {self.name!r} attached")

    def detach(self) -> None:
        if self.state == BrushState.STROKING:
            self.pointer_leave()
        self.state = BrushState.IDLE
        self.gestures.reset()
        self.mask_store.detach(self)
        logger.debug(f"Brush engine {self.name!r} detached")

    @property
    def is_attached(self) -> bool:
        return self.mask_store.active_writer is self

    # ------------------------------------------------------------------
    # Pointer input (display pixels)
    # ------------------------------------------------------------------

    def to_source(self, point: Point) -> Point:
        return to_source_space(
            point,
            self.viewport_rect,
            self.source_size,
            self.view_state.to_transform(),
            self.surface_size,
        )

    def pointer_down(self, point: Point) -> None:
        """
        Start a stroke (or a pan drag in pan mode).

        Raises:
            SurfaceBusyError: If this engine is not the mask's attached writer
        """
        if self.state != BrushState.IDLE:
            return
        if self.pan_mode:
            self.state = BrushState.PANNING
            self._last_point = (float(point[0]), float(point[1]))
            return
        if not self.is_attached:
            raise SurfaceBusyError(f"Brush engine {self.name!r} is not attached to the mask")

        self._pre_stroke = self.mask_store.snapshot()
        self.state = BrushState.STROKING
        source_point = self.to_source(point)
        self._last_point = source_point
        self.mask_store.apply_stroke(source_point, source_point, self.source_radius(), self._mode.value)
        self._notify()

    def pointer_move(self, point: Point) -> None:
        if self.state == BrushState.PANNING:
            self._pan_to(point)
        elif self.state == BrushState.STROKING:
            source_point = self.to_source(point)
            self.mask_store.apply_stroke(self._last_point, source_point, self.source_radius(), self._mode.value)
            self._last_point = source_point
            self._notify()

    def pointer_up(self) -> bool:
        """
        End the current stroke or pan.

        Returns:
            True if a stroke ended (and one history entry was pushed)
        """
        if self.state == BrushState.STROKING:
            self.history.push(self.mask_store.snapshot())
            self._finish()
            logger.debug(f"Stroke finished on {self.name!r}, history len={len(self.history)}")
            return True
        self._finish()
        return False

    def pointer_leave(self) -> bool:
        """Pointer left the surface; an unfinished stroke is committed."""
        return self.pointer_up()

    def cancel_stroke(self) -> bool:
        """Roll the mask back to its pre-stroke content without a history push."""
        if self.state != BrushState.STROKING:
            return False
        self.mask_store.restore(self._pre_stroke)
        self._finish()
        self._notify()
        logger.debug(f"Stroke cancelled on {self.name!r}")
        return True

    def wheel(self, point: Point, zoom_in: bool) -> float:
        """Zoom one wheel step toward the cursor."""
        anchor = display_to_buffer(point, self.viewport_rect, self.surface_size)
        return self.view_state.zoom_toward(anchor, zoom_in, self.surface_size)

    # ------------------------------------------------------------------
    # Touch input (display pixels)
    # ------------------------------------------------------------------

    def touch_start(self, contacts: Sequence[Point]) -> GestureKind:
        was_idle = not self.gestures.is_active
        kind = self.gestures.touch_start(contacts)
        if not was_idle:
            return kind
        if kind == GestureKind.SINGLE_TOUCH:
            self.pointer_down(contacts[0])
        elif kind == GestureKind.MULTI_TOUCH:
            self._pinch_start_zoom = self.view_state.zoom
        return kind

    def touch_move(self, contacts: Sequence[Point]) -> None:
        if self.gestures.kind == GestureKind.SINGLE_TOUCH and contacts:
            self.pointer_move(contacts[0])
        elif self.gestures.kind == GestureKind.MULTI_TOUCH:
            update = self.gestures.pinch(contacts)
            if update is None:
                return
            self.view_state.set_zoom(self._pinch_start_zoom * update.scale)
            dx, dy = self._display_delta_to_buffer(update.pan_dx, update.pan_dy)
            self.view_state.pan_by(dx, dy)

    def touch_end(self, remaining: Sequence[Point]) -> None:
        ended = self.gestures.touch_end(remaining)
        if ended == GestureKind.SINGLE_TOUCH:
            self.pointer_up()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _display_delta_to_buffer(self, dx: float, dy: float) -> Tuple[float, float]:
        surface_w, surface_h = self.surface_size
        return (
            dx * surface_w / self.viewport_rect.width,
            dy * surface_h / self.viewport_rect.height,
        )

    def _pan_to(self, point: Point) -> None:
        dx, dy = self._display_delta_to_buffer(point[0] - self._last_point[0], point[1] - self._last_point[1])
        self.view_state.pan_by(dx, dy)
        self._last_point = (float(point[0]), float(point[1]))

    def _finish(self) -> None:
        self.state = BrushState.IDLE
        self._last_point = None
        self._pre_stroke = None

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()
