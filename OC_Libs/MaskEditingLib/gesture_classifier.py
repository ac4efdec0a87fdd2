"""
Touch gesture classification.

A gesture is classified once, from the number of contacts present when it
starts, and keeps that classification until every contact has lifted:

    Idle -> SingleTouch        (one contact: brush stroke)
    Idle -> MultiTouchGesture  (two or more contacts: pinch zoom / pan)

A finger lifted during a pinch never turns the pinch into a stroke, and a
second finger landing during a stroke is ignored.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


class GestureKind(str, Enum):
    IDLE = "idle"
    SINGLE_TOUCH = "single_touch"
    MULTI_TOUCH = "multi_touch"


@dataclass(frozen=True)
class PinchUpdate:
    """Change of a two-finger gesture since it started.

    Attributes:
        scale: Current finger distance divided by the starting distance
        pan_dx: Midpoint movement along x since the previous update
        pan_dy: Midpoint movement along y since the previous update
    """
    scale: float
    pan_dx: float
    pan_dy: float


def _distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


class GestureClassifier:
    """Tracks one touch gesture at a time."""

    def __init__(self):
        self.kind = GestureKind.IDLE
        self._start_distance = 0.0
        self._last_midpoint: Optional[Point] = None

    @property
    def is_active(self) -> bool:
        return self.kind != GestureKind.IDLE

    def touch_start(self, contacts: Sequence[Point]) -> GestureKind:
        """
        Register contacts landing on the surface.

        Args:
            contacts: Every contact currently touching the surface

        Returns:
            The gesture kind, fixed at the first call of the gesture
        """
        if self.kind != GestureKind.IDLE:
            logger.debug(f"Ignoring {len(contacts)} contacts during {self.kind.value} gesture")
            return self.kind
        if not contacts:
            return self.kind

        if len(contacts) == 1:
            self.kind = GestureKind.SINGLE_TOUCH
        else:
            self.kind = GestureKind.MULTI_TOUCH
            self._start_distance = _distance(contacts[0], contacts[1])
            self._last_midpoint = _midpoint(contacts[0], contacts[1])
        logger.debug(f"Gesture started as {self.kind.value}")
        return self.kind

    def pinch(self, contacts: Sequence[Point]) -> Optional[PinchUpdate]:
        """
        Measure a multi-touch gesture's movement.

        Returns:
            The update, or None when the gesture is not multi-touch or fewer
            than two contacts remain
        """
        if self.kind != GestureKind.MULTI_TOUCH or len(contacts) < 2:
            return None
        distance = _distance(contacts[0], contacts[1])
        midpoint = _midpoint(contacts[0], contacts[1])
        scale = distance / self._start_distance if self._start_distance > 0 else 1.0
        last = self._last_midpoint or midpoint
        self._last_midpoint = midpoint
        return PinchUpdate(scale=scale, pan_dx=midpoint[0] - last[0], pan_dy=midpoint[1] - last[1])

    def touch_end(self, remaining: Sequence[Point]) -> GestureKind:
        """
        Register contacts lifting.

        Args:
            remaining: Contacts still touching the surface

        Returns:
            The kind of the gesture that ended, or IDLE while it continues
        """
        if remaining or self.kind == GestureKind.IDLE:
            if self.kind == GestureKind.MULTI_TOUCH and len(remaining) < 2:
                # Resume pan from wherever the fingers are when two touch again
                self._last_midpoint = None
            return GestureKind.IDLE
        ended = self.kind
        self.reset()
        logger.debug(f"Gesture {ended.value} ended")
        return ended

    def reset(self) -> None:
        self.kind = GestureKind.IDLE
        self._start_distance = 0.0
        self._last_midpoint = None
