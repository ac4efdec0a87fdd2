"""
MaskEditingLib - Mask storage, brush editing and undo history

Modules:
    mask_store: The mask raster, lossless snapshots and stroke rasterization
    brush_engine: Pointer/touch driven erase and restore strokes
    gesture_classifier: Single-touch vs multi-touch gesture state machine
    history_manager: Bounded undo/redo of mask snapshots
"""

from OC_Libs.MaskEditingLib.mask_store import MaskSnapshot, MaskStore, stroke_coverage
from OC_Libs.MaskEditingLib.history_manager import HistoryManager
from OC_Libs.MaskEditingLib.gesture_classifier import GestureClassifier, GestureKind, PinchUpdate
from OC_Libs.MaskEditingLib.brush_engine import BrushEngine, BrushMode, BrushState

__all__ = [
    "MaskSnapshot",
    "MaskStore",
    "stroke_coverage",
    "HistoryManager",
    "GestureClassifier",
    "GestureKind",
    "PinchUpdate",
    "BrushEngine",
    "BrushMode",
    "BrushState",
]
