"""
Editor configuration.

Defaults come from `OC_Libs.constants`; an `EditorConfig` passed to an
`EditingSession` overrides them for that session only.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from OC_Libs.constants import (
    CROP_DEFAULT_FRACTION,
    CROP_MIN_SIZE,
    DEFAULT_BRUSH_MODE,
    DEFAULT_BRUSH_RADIUS,
    HISTORY_CAPACITY,
    MAIN_ZOOM_RANGE,
    REFINE_ZOOM_RANGE,
)


@dataclass
class EditorConfig:
    """Configuration for an editing session.

    Attributes:
        history_capacity: Maximum number of undo snapshots (default 20)
        main_zoom_range: (min, max) zoom of the main preview
        refine_zoom_range: (min, max) zoom of the refinement viewport
        brush_radius: Initial brush radius in display pixels (5-100)
        brush_mode: Initial brush mode ('erase' or 'restore')
        crop_min_size: Minimum crop box edge in surface pixels
        crop_default_fraction: Size of a freshly selected crop box relative
            to the surface
    """
    history_capacity: int = HISTORY_CAPACITY
    main_zoom_range: Tuple[float, float] = MAIN_ZOOM_RANGE
    refine_zoom_range: Tuple[float, float] = REFINE_ZOOM_RANGE
    brush_radius: float = DEFAULT_BRUSH_RADIUS
    brush_mode: str = DEFAULT_BRUSH_MODE
    crop_min_size: float = CROP_MIN_SIZE
    crop_default_fraction: float = CROP_DEFAULT_FRACTION

    def __post_init__(self):
        self.main_zoom_range = tuple(self.main_zoom_range)
        self.refine_zoom_range = tuple(self.refine_zoom_range)
        if not (0.0 < self.crop_default_fraction <= 1.0):
            raise ValueError(f"crop_default_fraction must be in (0, 1], got {self.crop_default_fraction}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "history_capacity": self.history_capacity,
            "main_zoom_range": list(self.main_zoom_range),
            "refine_zoom_range": list(self.refine_zoom_range),
            "brush_radius": self.brush_radius,
            "brush_mode": self.brush_mode,
            "crop_min_size": self.crop_min_size,
            "crop_default_fraction": self.crop_default_fraction,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorConfig":
        """Create from dictionary."""
        filtered = {k: v for k, v in data.items()
                   if k in cls.__dataclass_fields__}
        return cls(**filtered)
