"""
Editing session: all state for one photograph, from segmentation to export.

A session owns the Source Image, the Mask Store, the History Manager, the
View State of each surface, the crop interaction, the background and the
filters. The UI talks to the engine only through this object.

Example:
    >>> session = EditingSession(photo, segmenter.segment(photo), preview_size=(400, 300))
    >>> session.stroke_begin((120, 80))
    >>> session.stroke_move((160, 95))
    >>> session.stroke_end()
    >>> session.set_background_color("#00aaff")
    >>> preview = session.render_preview()
    >>> result = session.export("png")
"""

import logging
from typing import Any, Optional, Sequence, Tuple, Union

from OC_Libs.constants import RENDER_MODE_PREVIEW
from OC_Libs.errors import RenderResourceUnavailableError, SnapshotCorruptError
from OC_Libs.GeometryLib.coordinate_mapper import Point, ViewportRect, display_to_buffer
from OC_Libs.GeometryLib.crop_geometry import CropBox, CropInteraction, HandleKind
from OC_Libs.GeometryLib.view_state import ViewState
from OC_Libs.ImageModelsLib.image_models import BackgroundSpec, Size, SourceImage, validate_preview_size
from OC_Libs.ImageModelsLib.segmentation import SegmentationResult
from OC_Libs.MaskEditingLib.brush_engine import BrushEngine
from OC_Libs.MaskEditingLib.gesture_classifier import GestureKind
from OC_Libs.MaskEditingLib.history_manager import HistoryManager
from OC_Libs.MaskEditingLib.mask_store import MaskSnapshot, MaskStore
from OC_Libs.CompositingLib.background_filters import FilterSettings
from OC_Libs.CompositingLib.compositing_pipeline import (
    ExportResult,
    export_composite,
    render,
    render_original,
)
from OC_Libs.pillow_compat import Image
from OC_Libs.SessionLib.editor_config import EditorConfig
from OC_Libs.SessionLib.refinement_session import RefinementSession

logger = logging.getLogger(__name__)


class EditingSession:
    """
    One image's editing state.

    Args:
        image: Decoded photograph (PIL Image or SourceImage)
        segmentation: Segmentation Service output for the photograph
        preview_size: (width, height) of the main preview surface buffer;
            defaults to the source size
        viewport_rect: Where the main preview is displayed; defaults to a
            rect of preview_size at the origin
        config: Overrides for the editor defaults

    Raises:
        InvalidDimensionsError: If the image, mask or preview has a zero
            dimension, or the preview does not keep the image's aspect ratio
    """

    def __init__(
        self,
        image: Any,
        segmentation: SegmentationResult,
        preview_size: Optional[Size] = None,
        viewport_rect: Optional[ViewportRect] = None,
        config: Optional[EditorConfig] = None,
    ):
        self.config = config or EditorConfig()
        self.source = image if isinstance(image, SourceImage) else SourceImage.from_image(image)
        self.preview_size = validate_preview_size(preview_size or self.source.size, self.source.size)
        self.viewport_rect = viewport_rect or ViewportRect.of_size(*self.preview_size)

        self.mask_store = MaskStore()
        self.mask_store.initialize(
            segmentation.samples, (segmentation.width, segmentation.height), self.source.size
        )
        self._initial_mask = self.mask_store.snapshot()
        self.history = HistoryManager(self.config.history_capacity)
        self.history.push(self._initial_mask)

        self.view_state = ViewState.for_main_editor(self.config.main_zoom_range)
        self.brush = BrushEngine(
            self.mask_store,
            self.history,
            self.view_state,
            self.viewport_rect,
            buffer_size=self.preview_size,
            radius=self.config.brush_radius,
            mode=self.config.brush_mode,
            name="main",
        )
        self.brush.attach()
        self.brush.add_listener(self._mark_edited)

        self.crop = CropInteraction(
            self.preview_size,
            scale=self.source.width / float(self.preview_size[0]),
            min_size=self.config.crop_min_size,
            default_fraction=self.config.crop_default_fraction,
        )
        self.background = BackgroundSpec.transparent()
        self.filters = FilterSettings()
        self.refinement: Optional[RefinementSession] = None
        self.has_unsaved_edits = False
        self._last_preview: Optional[Any] = None
        logger.info(
            f"Editing session started for {self.source.width}x{self.source.height} image "
            f"(preview {self.preview_size[0]}x{self.preview_size[1]})"
        )

    # ------------------------------------------------------------------
    # Surfaces
    # ------------------------------------------------------------------

    @property
    def is_refining(self) -> bool:
        return self.refinement is not None and self.refinement.is_open

    @property
    def active_brush(self) -> BrushEngine:
        """The brush of whichever surface currently owns the mask."""
        return self.refinement.brush if self.is_refining else self.brush

    def set_viewport(self, viewport_rect: ViewportRect, preview_size: Optional[Size] = None) -> None:
        """
        Update the main preview's layout. A new preview size rescales the
        active crop box.

        Raises:
            InvalidDimensionsError: If preview_size does not keep the image's
                aspect ratio; the layout is left unchanged
        """
        if preview_size is not None:
            self.preview_size = validate_preview_size(preview_size, self.source.size)
            self.crop.set_surface(self.preview_size, self.source.width / float(self.preview_size[0]))
        self.viewport_rect = viewport_rect
        self.brush.set_viewport(viewport_rect, self.preview_size)

    # ------------------------------------------------------------------
    # Brush
    # ------------------------------------------------------------------

    def set_brush_radius(self, radius: float) -> float:
        for engine in self._brushes():
            engine.radius = radius
        return self.brush.radius

    def set_brush_mode(self, mode: str) -> None:
        for engine in self._brushes():
            engine.mode = mode

    def set_pan_mode(self, enabled: bool) -> None:
        for engine in self._brushes():
            engine.pan_mode = bool(enabled)

    def stroke_begin(self, point: Point) -> None:
        self.active_brush.pointer_down(point)

    def stroke_move(self, point: Point) -> None:
        self.active_brush.pointer_move(point)

    def stroke_end(self) -> bool:
        return self.active_brush.pointer_up()

    def stroke_leave(self) -> bool:
        return self.active_brush.pointer_leave()

    def cancel_stroke(self) -> bool:
        return self.active_brush.cancel_stroke()

    def touch_start(self, contacts: Sequence[Point]) -> GestureKind:
        return self.active_brush.touch_start(contacts)

    def touch_move(self, contacts: Sequence[Point]) -> None:
        self.active_brush.touch_move(contacts)

    def touch_end(self, remaining: Sequence[Point]) -> None:
        self.active_brush.touch_end(remaining)

    def wheel_zoom(self, point: Point, zoom_in: bool) -> float:
        """Zoom one wheel step toward the cursor on the active surface."""
        return self.active_brush.wheel(point, zoom_in)

    # ------------------------------------------------------------------
    # Main view transform
    # ------------------------------------------------------------------

    def rotate(self, delta: float) -> int:
        return self.view_state.rotate_by(delta)

    def flip_horizontal(self) -> bool:
        return self.view_state.toggle_flip_horizontal()

    def flip_vertical(self) -> bool:
        return self.view_state.toggle_flip_vertical()

    def set_zoom(self, zoom: float) -> float:
        return self.view_state.set_zoom(zoom)

    def pan_by(self, dx: float, dy: float) -> None:
        """Pan the main view by a delta given in display pixels."""
        bx, by = display_to_buffer(
            (self.viewport_rect.left + dx, self.viewport_rect.top + dy),
            self.viewport_rect,
            self.preview_size,
        )
        self.view_state.pan_by(bx, by)

    # ------------------------------------------------------------------
    # Crop (preview surface pixels)
    # ------------------------------------------------------------------

    def set_aspect_ratio(self, selection: str) -> Optional[CropBox]:
        return self.crop.set_aspect_ratio(selection)

    def crop_pointer_down(self, point: Point) -> Optional[HandleKind]:
        return self.crop.pointer_down(point)

    def crop_pointer_move(self, point: Point) -> Optional[CropBox]:
        return self.crop.pointer_move(point)

    def crop_pointer_up(self) -> Optional[CropBox]:
        return self.crop.pointer_up()

    # ------------------------------------------------------------------
    # Background and filters
    # ------------------------------------------------------------------

    def set_background(self, background: BackgroundSpec) -> None:
        if not isinstance(background, BackgroundSpec):
            raise TypeError(f"Expected BackgroundSpec, got {type(background)}")
        self.background = background
        self.has_unsaved_edits = True

    def set_background_color(self, color: Union[str, Tuple[int, ...]]) -> None:
        self.set_background(BackgroundSpec.solid(color))

    def set_filters(self, filters: Optional[FilterSettings] = None, **values: float) -> FilterSettings:
        """
        Replace the filter settings, or update individual values.

        Example:
            >>> session.set_filters(brightness=130, blur=2)
        """
        if filters is None:
            merged = self.filters.to_dict()
            merged.update(values)
            filters = FilterSettings.from_dict(merged)
        self.filters = filters
        self.has_unsaved_edits = True
        return self.filters

    def reset_filters(self) -> None:
        # Still counts as an unsaved change
        self.set_filters(FilterSettings())

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def undo(self) -> bool:
        """
        Restore the previous mask state.

        Returns:
            False when there is nothing to undo

        Raises:
            SnapshotCorruptError: If the snapshot fails to decode; history is
                reset to the live mask before the error propagates
        """
        return self._restore_from_history(self.history.undo())

    def redo(self) -> bool:
        """Re-apply the next mask state; False when there is nothing to redo."""
        return self._restore_from_history(self.history.redo())

    def reset(self) -> None:
        """
        Discard every edit: the mask returns to the segmentation output, the
        history holds only that baseline, and the view, crop, background,
        filters and brush settings return to their defaults.
        """
        if self.is_refining:
            self.refinement.discard()
            self._resume_main()
        self.brush.cancel_stroke()
        self.mask_store.restore(self._initial_mask)
        self.history.reset()
        self.history.push(self._initial_mask)
        self.view_state.reset()
        self.crop.clear()
        self.background = BackgroundSpec.transparent()
        self.filters = FilterSettings()
        self.set_brush_radius(self.config.brush_radius)
        self.set_brush_mode(self.config.brush_mode)
        self.set_pan_mode(False)
        self.has_unsaved_edits = False
        logger.info("Editing session reset")

    def _restore_from_history(self, snapshot: Optional[MaskSnapshot]) -> bool:
        if snapshot is None:
            return False
        try:
            self.mask_store.restore(snapshot)
        except SnapshotCorruptError:
            logger.warning("History snapshot is corrupt, re-baselining history on the live mask")
            self.history.reset()
            self.history.push(self.mask_store.snapshot())
            raise
        self.has_unsaved_edits = True
        return True

    # ------------------------------------------------------------------
    # Refinement viewport
    # ------------------------------------------------------------------

    def open_refinement(
        self,
        viewport_rect: Optional[ViewportRect] = None,
        buffer_size: Optional[Tuple[float, float]] = None,
    ) -> RefinementSession:
        """
        Suspend the main surface and open the refinement viewport.

        Args:
            viewport_rect: Where the refinement surface is displayed;
                defaults to a rect of the source size
            buffer_size: Backing size of the refinement surface; defaults to
                the source size
        """
        if self.is_refining:
            return self.refinement
        self.brush.detach()
        viewport_rect = viewport_rect or ViewportRect.of_size(*self.source.size)
        if self.refinement is None:
            self.refinement = RefinementSession(
                self.source,
                self.mask_store,
                self.history,
                viewport_rect,
                buffer_size=buffer_size,
                config=self.config,
            )
            self.refinement.brush.add_listener(self._mark_edited)
        else:
            self.refinement.brush.set_viewport(viewport_rect, buffer_size)
        self.refinement.brush.radius = self.brush.radius
        self.refinement.brush.mode = self.brush.mode.value
        self.refinement.open()
        return self.refinement

    def finish_refinement(self) -> bool:
        if not self.is_refining:
            return False
        edited = self.refinement.finish()
        self._resume_main()
        return edited

    def discard_refinement(self) -> bool:
        if not self.is_refining:
            return False
        rolled_back = self.refinement.discard()
        self._resume_main()
        return rolled_back

    def reset_refinement_edits(self) -> bool:
        if not self.is_refining:
            return False
        return self.refinement.reset_edits()

    def _resume_main(self) -> None:
        self.brush.attach()

    # ------------------------------------------------------------------
    # Rendering and export
    # ------------------------------------------------------------------

    @property
    def last_preview(self) -> Optional[Any]:
        """The most recent successfully rendered preview."""
        return self._last_preview

    def _new_preview_target(self) -> Any:
        return Image.new("RGBA", self.preview_size, (0, 0, 0, 0))

    def render_preview(self, target: Optional[Any] = None) -> Any:
        """
        Render the main preview with the crop overlay.

        Raises:
            RenderResourceUnavailableError: The previous preview stays
                available as `last_preview`
        """
        target = target if target is not None else self._new_preview_target()
        try:
            render(
                target,
                self.source,
                self.mask_store.read(),
                self.background,
                filters=self.filters,
                transform=self.view_state.to_transform(),
                mode=RENDER_MODE_PREVIEW,
                crop_box=self.crop.box,
            )
        except RenderResourceUnavailableError:
            logger.warning("Preview render failed, keeping the last good preview")
            raise
        self._last_preview = target
        return target

    def render_original(self, target: Optional[Any] = None) -> Any:
        """Render the untouched photograph for a before/after comparison."""
        target = target if target is not None else self._new_preview_target()
        return render_original(target, self.source, self.view_state.to_transform())

    def export(self, fmt: str = "png") -> ExportResult:
        """
        Render the final full-resolution composite.

        Args:
            fmt: 'png', 'webp' or 'jpeg' ('jpg')

        Returns:
            ExportResult; with an active crop it also carries the cropped
            source image and mask

        Raises:
            ValueError: If the format is unsupported
            RenderResourceUnavailableError: If the export surface cannot be
                allocated
        """
        result = export_composite(
            self.source,
            self.mask_store.read(),
            self.background,
            filters=self.filters,
            transform=self.view_state.to_transform(),
            crop_box=self.crop.box,
            preview_size=self.preview_size,
            fmt=fmt,
        )
        self.has_unsaved_edits = False
        return result

    def _brushes(self):
        yield self.brush
        if self.refinement is not None:
            yield self.refinement.brush

    def _mark_edited(self) -> None:
        self.has_unsaved_edits = True
