"""
Mask Store: the single-channel foreground alpha raster of an editing session.

The mask always has the Source Image's dimensions. Raw segmentation output at
another resolution is resampled with a smooth filter before it becomes the
active mask. The store is the only writer of the mask array; every mutation
and every read holds the store's lock, so a render running on another thread
sees either the state before a stroke segment or after it, never in between.

Snapshots are lossless: the raw mask bytes, zlib-compressed, with a CRC-32
checksum that restore verifies.

Example:
    >>> store = MaskStore()
    >>> store.initialize(result.samples, (result.width, result.height), photo.size)
    >>> before = store.snapshot()
    >>> store.apply_stroke((10, 10), (120, 40), radius=12, mode="erase")
    >>> store.restore(before)
"""

import logging
import threading
import zlib
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np

from OC_Libs.constants import BRUSH_MODE_ERASE, BRUSH_MODE_RESTORE, MASK_OPAQUE, MASK_TRANSPARENT
from OC_Libs.errors import InvalidDimensionsError, SnapshotCorruptError, SurfaceBusyError
from OC_Libs.ImageModelsLib.image_models import Size, validate_size
from OC_Libs.pillow_compat import Image

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

# Smooth (not nearest-neighbor) upsampling of low-resolution model output
MASK_RESAMPLE_FILTER = Image.Resampling.BILINEAR


@dataclass(frozen=True)
class MaskSnapshot:
    """Immutable lossless encoding of a mask at one point in time.

    Attributes:
        width: Mask width in pixels
        height: Mask height in pixels
        payload: zlib-compressed raw 8-bit samples, row-major
        checksum: CRC-32 of the uncompressed samples
    """
    width: int
    height: int
    payload: bytes
    checksum: int

    @classmethod
    def encode(cls, mask: np.ndarray) -> "MaskSnapshot":
        raw = np.ascontiguousarray(mask, dtype=np.uint8).tobytes()
        height, width = mask.shape
        return cls(width=width, height=height, payload=zlib.compress(raw), checksum=zlib.crc32(raw))

    def decode(self) -> np.ndarray:
        """
        Decode back to a (height, width) uint8 array.

        Raises:
            SnapshotCorruptError: If the payload cannot be decompressed, has
                the wrong length or fails the checksum
        """
        try:
            raw = zlib.decompress(self.payload)
        except zlib.error as e:
            raise SnapshotCorruptError(f"Mask snapshot payload is not decodable: {e}") from e
        if len(raw) != self.width * self.height:
            raise SnapshotCorruptError(
                f"Mask snapshot holds {len(raw)} samples, expected {self.width * self.height}"
            )
        if zlib.crc32(raw) != self.checksum:
            raise SnapshotCorruptError("Mask snapshot checksum mismatch")
        return np.frombuffer(raw, dtype=np.uint8).reshape(self.height, self.width).copy()

    @property
    def size(self) -> Size:
        return self.width, self.height


def stroke_coverage(
    shape: Tuple[int, int],
    from_point: Point,
    to_point: Point,
    radius: float,
) -> Tuple[Optional[Tuple[slice, slice]], Optional[np.ndarray]]:
    """
    Pixels covered by a round-capped line segment (a capsule).

    Pixel (col, row) is covered when its center (col + 0.5, row + 0.5) lies
    within `radius` of the segment. Coverage is hard-edged so that erasing
    and then restoring the same path is an exact inverse on opaque areas.

    Args:
        shape: (height, width) of the mask
        from_point: Segment start (x, y) in mask pixels
        to_point: Segment end (x, y) in mask pixels
        radius: Capsule radius in mask pixels

    Returns:
        (region, covered) where region is the (rows, cols) slice pair of the
        clipped bounding box and covered a boolean array for it, or
        (None, None) when the capsule misses the mask entirely
    """
    height, width = shape
    x0, y0 = float(from_point[0]), float(from_point[1])
    x1, y1 = float(to_point[0]), float(to_point[1])
    reach = radius + 1.0

    col_start = max(0, int(np.floor(min(x0, x1) - reach)))
    col_stop = min(width, int(np.ceil(max(x0, x1) + reach)) + 1)
    row_start = max(0, int(np.floor(min(y0, y1) - reach)))
    row_stop = min(height, int(np.ceil(max(y0, y1) + reach)) + 1)
    if col_start >= col_stop or row_start >= row_stop:
        return None, None

    px = np.arange(col_start, col_stop, dtype=np.float64)[None, :] + 0.5
    py = np.arange(row_start, row_stop, dtype=np.float64)[:, None] + 0.5

    dx = x1 - x0
    dy = y1 - y0
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        dist = np.sqrt((px - x0) ** 2 + (py - y0) ** 2)
    else:
        # Project onto the segment, clamp to its ends
        t = np.clip(((px - x0) * dx + (py - y0) * dy) / length_sq, 0.0, 1.0)
        dist = np.sqrt((px - (x0 + t * dx)) ** 2 + (py - (y0 + t * dy)) ** 2)

    return (slice(row_start, row_stop), slice(col_start, col_stop)), dist <= radius


class MaskStore:
    """
    Owner of the session's mask raster.

    Brush engines attach to the store before writing; at most one engine is
    attached at a time.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._mask: Optional[np.ndarray] = None
        self._writer: Optional[Any] = None

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self, raw_samples: bytes, raw_size: Size, target_size: Size) -> None:
        """
        Load raw segmentation samples, resampling them to the source size.

        Args:
            raw_samples: Row-major 8-bit samples of the model output
            raw_size: (width, height) of the model output
            target_size: (width, height) of the Source Image

        Raises:
            InvalidDimensionsError: If a size is zero or the sample count
                does not match raw_size
        """
        raw_w, raw_h = validate_size(raw_size[0], raw_size[1], "raw mask")
        validate_size(target_size[0], target_size[1], "target")
        if len(raw_samples) != raw_w * raw_h:
            raise InvalidDimensionsError(
                f"raw mask has {len(raw_samples)} samples, expected {raw_w * raw_h} for {raw_w}x{raw_h}"
            )
        self.initialize_from_image(Image.frombytes("L", (raw_w, raw_h), bytes(raw_samples)), target_size)

    def initialize_from_image(self, mask_image: Any, target_size: Size) -> None:
        """
        Load a mask held as a PIL Image, resampling it to target_size.

        Raises:
            TypeError: If mask_image is not a PIL Image
            InvalidDimensionsError: If a size is zero
        """
        if not hasattr(mask_image, "mode"):
            raise TypeError(f"Expected PIL Image for mask, got {type(mask_image)}")
        target_w, target_h = validate_size(target_size[0], target_size[1], "target")
        validate_size(mask_image.width, mask_image.height, "mask")

        gray = mask_image.convert("L")
        if gray.size != (target_w, target_h):
            logger.debug(f"Resampling mask {gray.size} -> {(target_w, target_h)}")
            gray = gray.resize((target_w, target_h), MASK_RESAMPLE_FILTER)

        with self._lock:
            self._mask = np.array(gray, dtype=np.uint8)
        logger.info(f"Mask initialized at {target_w}x{target_h}")

    @property
    def is_initialized(self) -> bool:
        return self._mask is not None

    @property
    def size(self) -> Size:
        mask = self._require_mask()
        return mask.shape[1], mask.shape[0]

    # ------------------------------------------------------------------
    # Writer attachment
    # ------------------------------------------------------------------

    @property
    def active_writer(self) -> Optional[Any]:
        return self._writer

    def attach(self, owner: Any) -> None:
        """
        Make `owner` the only object allowed to stroke the mask.

        Raises:
            SurfaceBusyError: If a different owner is already attached
        """
        with self._lock:
            if self._writer is not None and self._writer is not owner:
                raise SurfaceBusyError(f"Mask already has an attached writer: {self._writer!r}")
            self._writer = owner

    def detach(self, owner: Any) -> None:
        with self._lock:
            if self._writer is owner:
                self._writer = None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply_stroke(self, from_point: Point, to_point: Point, radius: float, mode: str) -> bool:
        """
        Paint one capsule-shaped stroke segment into the mask.

        Erase sets covered pixels to 0 (mask subtraction); restore sets them
        to 255 (mask union), painting opaque rather than over.

        Args:
            from_point: Segment start (x, y) in source pixels
            to_point: Segment end (x, y) in source pixels
            radius: Brush radius in source pixels
            mode: 'erase' or 'restore'

        Returns:
            True if any pixel was covered

        Raises:
            ValueError: If mode is unknown
        """
        mode = str(mode)
        if mode not in (BRUSH_MODE_ERASE, BRUSH_MODE_RESTORE):
            raise ValueError(f"Unknown brush mode: {mode}. Valid modes: erase, restore")
        radius = max(float(radius), 0.0)

        with self._lock:
            mask = self._require_mask()
            region, covered = stroke_coverage(mask.shape, from_point, to_point, radius)
            if region is None or not covered.any():
                return False
            value = MASK_TRANSPARENT if mode == BRUSH_MODE_ERASE else MASK_OPAQUE
            mask[region][covered] = value
        return True

    # ------------------------------------------------------------------
    # Snapshots and reads
    # ------------------------------------------------------------------

    def snapshot(self) -> MaskSnapshot:
        with self._lock:
            return MaskSnapshot.encode(self._require_mask())

    def restore(self, snapshot: MaskSnapshot) -> None:
        """
        Overwrite the whole mask with a snapshot's content.

        Raises:
            SnapshotCorruptError: If the snapshot does not decode or does not
                match the mask dimensions
        """
        decoded = snapshot.decode()
        with self._lock:
            mask = self._require_mask()
            if decoded.shape != mask.shape:
                raise SnapshotCorruptError(
                    f"Snapshot is {snapshot.width}x{snapshot.height}, mask is {mask.shape[1]}x{mask.shape[0]}"
                )
            mask[...] = decoded

    def read(self) -> np.ndarray:
        """Return a read-only copy of the mask taken under the store lock."""
        with self._lock:
            view = self._require_mask().copy()
        view.flags.writeable = False
        return view

    def _require_mask(self) -> np.ndarray:
        if self._mask is None:
            raise RuntimeError("Mask store is not initialized")
        return self._mask
