"""
Refinement viewport: a magnified editing surface over the session's mask.

The refinement viewport has its own View State (zoom range 1.0-4.0) and its
own Brush Engine, but edits the same Mask Store as the main editor. It is
mutually exclusive with the main surface: while it is open, its brush is the
mask's only attached writer.

Lifecycle:
    open   -> resets the view, takes a pre-refinement snapshot
    finish -> keeps the edits
    discard -> rolls the mask back to the pre-refinement snapshot
    reset_edits -> rolls back but stays open
"""

import logging
from typing import Any, Optional, Tuple

from OC_Libs.constants import RENDER_MODE_PREVIEW
from OC_Libs.GeometryLib.coordinate_mapper import ViewportRect
from OC_Libs.GeometryLib.view_state import ViewState
from OC_Libs.ImageModelsLib.image_models import BackgroundSpec, SourceImage
from OC_Libs.MaskEditingLib.brush_engine import BrushEngine
from OC_Libs.MaskEditingLib.history_manager import HistoryManager
from OC_Libs.MaskEditingLib.mask_store import MaskSnapshot, MaskStore
from OC_Libs.CompositingLib.compositing_pipeline import render
from OC_Libs.pillow_compat import Image
from OC_Libs.SessionLib.editor_config import EditorConfig

logger = logging.getLogger(__name__)


class RefinementSession:
    """
    Magnified mask editing surface.

    Args:
        source: Source image shown under the mask
        mask_store: Mask shared with the main editor
        history: History shared with the main editor
        viewport_rect: Where the refinement surface is displayed
        buffer_size: Backing size of the refinement surface; defaults to
            the source size
        config: Editor configuration
    """

    def __init__(
        self,
        source: SourceImage,
        mask_store: MaskStore,
        history: HistoryManager,
        viewport_rect: ViewportRect,
        buffer_size: Optional[Tuple[float, float]] = None,
        config: Optional[EditorConfig] = None,
    ):
        self.config = config or EditorConfig()
        self.source = source
        self.mask_store = mask_store
        self.history = history
        self.view_state = ViewState.for_refinement(self.config.refine_zoom_range)
        self.brush = BrushEngine(
            mask_store,
            history,
            self.view_state,
            viewport_rect,
            buffer_size=buffer_size,
            radius=self.config.brush_radius,
            mode=self.config.brush_mode,
            name="refine",
        )
        self.brush.add_listener(self._on_edit)
        self.is_open = False
        self.has_edits = False
        self._pre_refine: Optional[MaskSnapshot] = None

    @property
    def surface_size(self) -> Tuple[float, float]:
        return self.brush.surface_size

    def open(self) -> None:
        """
        Open the viewport and make its brush the mask's writer.

        Raises:
            SurfaceBusyError: If another brush is still attached
        """
        if self.is_open:
            return
        self.brush.attach()
        self.view_state.reset()
        self._pre_refine = self.mask_store.snapshot()
        self.has_edits = False
        self.is_open = True
        logger.info("Refinement viewport opened")

    def finish(self) -> bool:
        """
        Close the viewport, keeping its edits.

        Returns:
            True if any edit was made while it was open
        """
        if not self.is_open:
            return False
        edited = self.has_edits
        self._close()
        logger.info(f"Refinement finished (edits kept: {edited})")
        return edited

    def discard(self) -> bool:
        """
        Close the viewport and roll the mask back to its state at open.

        Returns:
            True if edits were rolled back
        """
        if not self.is_open:
            return False
        self.brush.cancel_stroke()
        rolled_back = self._roll_back()
        self._close()
        logger.info(f"Refinement discarded (rolled back: {rolled_back})")
        return rolled_back

    def reset_edits(self) -> bool:
        """Roll the mask back to its state at open, keeping the viewport open."""
        if not self.is_open:
            return False
        self.brush.cancel_stroke()
        return self._roll_back()

    def render_preview(self, target: Optional[Any] = None) -> Any:
        """Render the cutout over a checkerboard under the refinement view transform."""
        if target is None:
            width, height = self.surface_size
            target = Image.new("RGBA", (int(round(width)), int(round(height))), (0, 0, 0, 0))
        return render(
            target,
            self.source,
            self.mask_store.read(),
            BackgroundSpec.transparent(),
            transform=self.view_state.to_transform(),
            mode=RENDER_MODE_PREVIEW,
        )

    def _roll_back(self) -> bool:
        if not self.has_edits:
            return False
        self.mask_store.restore(self._pre_refine)
        # Recorded as its own entry so the rollback itself can be undone
        self.history.push(self._pre_refine)
        self.has_edits = False
        return True

    def _close(self) -> None:
        self.brush.detach()
        self.is_open = False
        self._pre_refine = None

    def _on_edit(self) -> None:
        self.has_edits = True
