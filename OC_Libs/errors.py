"""
Exception types raised by the Open Cutout engine.

Geometric and input-range problems (zoom, brush radius, crop values) are never
raised: they are clamped where they are detected. Only dimension, resource and
data-integrity problems surface as exceptions.

Classes:
    CutoutError: Base class for every engine error
    InvalidDimensionsError: Image or mask dimensions are zero or irreconcilable
    RenderResourceUnavailableError: A drawing surface could not be allocated
    SnapshotCorruptError: A history snapshot failed to decode
    SurfaceBusyError: A second writer tried to attach to a mask
"""


class CutoutError(Exception):
    """Base class for Open Cutout engine errors."""


class InvalidDimensionsError(CutoutError, ValueError):
    """Raised when raster dimensions are zero or cannot be reconciled by resampling.

    Fatal to the current image session; the caller must restart the upload.
    """


class RenderResourceUnavailableError(CutoutError, RuntimeError):
    """Raised when a layer surface cannot be acquired during a render.

    The render target is left untouched; the caller may retry or keep
    showing the last successfully rendered raster.
    """


class SnapshotCorruptError(CutoutError, ValueError):
    """Raised when a stored mask snapshot cannot be decoded."""


class SurfaceBusyError(CutoutError, RuntimeError):
    """Raised when a brush engine attaches to a mask that already has a writer."""
