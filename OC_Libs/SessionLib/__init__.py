"""
SessionLib - Per-image editing sessions

This module ties the mask store, history, view states, crop and compositor
together behind the calls a UI makes.
"""

from OC_Libs.SessionLib.editor_config import EditorConfig
from OC_Libs.SessionLib.refinement_session import RefinementSession
from OC_Libs.SessionLib.editing_session import EditingSession

__all__ = [
    "EditorConfig",
    "RefinementSession",
    "EditingSession",
]
