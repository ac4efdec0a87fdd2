"""
Segmentation Service interface.

The engine never runs a segmentation model itself. It consumes the output of
any object implementing `SegmentationService`: a single-channel foreground
mask, possibly at a lower resolution than the photograph, which the Mask
Store later resamples to the source size.

Example:
    >>> class ThresholdSegmenter:
    ...     def segment(self, image):
    ...         return SegmentationResult.from_image(image.convert("L"))
    >>> result = ThresholdSegmenter().segment(photo)
    >>> session = EditingSession(photo, result)
"""

from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from OC_Libs.errors import InvalidDimensionsError
from OC_Libs.ImageModelsLib.image_models import validate_size
from OC_Libs.pillow_compat import Image


@dataclass(frozen=True)
class SegmentationResult:
    """Raw single-channel mask returned by a segmentation model.

    Attributes:
        samples: Row-major 8-bit alpha samples (0=background, 255=foreground)
        width: Mask width in pixels
        height: Mask height in pixels
    """
    samples: bytes
    width: int
    height: int

    def __post_init__(self):
        """Validate that the sample buffer matches the declared dimensions."""
        validate_size(self.width, self.height, "segmentation mask")
        expected = self.width * self.height
        if len(self.samples) != expected:
            raise InvalidDimensionsError(
                f"segmentation mask has {len(self.samples)} samples, "
                f"expected {expected} for {self.width}x{self.height}"
            )

    @classmethod
    def from_array(cls, array: Any) -> "SegmentationResult":
        """
        Build a result from a 2D numpy array.

        Float arrays are treated as probabilities in [0, 1]; integer arrays
        as 0-255 alpha values.

        Raises:
            InvalidDimensionsError: If the array is not two-dimensional
        """
        data = np.asarray(array)
        if data.ndim != 2:
            raise InvalidDimensionsError(f"segmentation mask must be 2D, got shape {data.shape}")
        if np.issubdtype(data.dtype, np.floating):
            data = np.rint(np.clip(data, 0.0, 1.0) * 255.0)
        data = np.clip(data, 0, 255).astype(np.uint8)
        height, width = data.shape
        return cls(samples=data.tobytes(), width=width, height=height)

    @classmethod
    def from_image(cls, image: Any) -> "SegmentationResult":
        """Build a result from a PIL Image (converted to 8-bit grayscale)."""
        if not hasattr(image, "mode"):
            raise TypeError(f"Expected PIL Image, got {type(image)}")
        gray = image.convert("L")
        return cls(samples=gray.tobytes(), width=gray.width, height=gray.height)

    def to_image(self) -> Any:
        """Return the samples as a PIL Image in L mode."""
        return Image.frombytes("L", (self.width, self.height), self.samples)


class SegmentationService(Protocol):
    """Anything that turns a photograph into a foreground mask."""

    def segment(self, image: Any) -> SegmentationResult:
        ...
