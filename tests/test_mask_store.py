"""
Tests for the mask store.

Tests cover:
- Initialization and resampling
- Stroke rasterization (erase / restore)
- Lossless snapshots and corruption detection
- Writer attachment
"""

import dataclasses
import unittest

import numpy as np
from PIL import Image

from OC_Libs.errors import InvalidDimensionsError, SnapshotCorruptError, SurfaceBusyError
from OC_Libs.MaskEditingLib.mask_store import MaskSnapshot, MaskStore, stroke_coverage


def make_store(width=80, height=60, value=255):
    store = MaskStore()
    store.initialize(bytes([value]) * (width * height), (width, height), (width, height))
    return store


class TestInitialize(unittest.TestCase):
    """Test mask initialization."""

    def test_same_size(self):
        store = make_store()
        self.assertEqual(store.size, (80, 60))
        self.assertTrue((store.read() == 255).all())

    def test_resamples_to_target(self):
        store = MaskStore()
        raw = np.zeros((30, 40), dtype=np.uint8)
        raw[:, :20] = 255
        store.initialize(raw.tobytes(), (40, 30), (80, 60))
        mask = store.read()
        self.assertEqual(mask.shape, (60, 80))
        self.assertEqual(mask[30, 5], 255)
        self.assertEqual(mask[30, 75], 0)
        # Smooth filter leaves intermediate values at the boundary
        self.assertTrue(((mask[30, 36:44] > 0) & (mask[30, 36:44] < 255)).any())

    def test_zero_dimension_rejected(self):
        store = MaskStore()
        with self.assertRaises(InvalidDimensionsError):
            store.initialize(b"", (0, 10), (10, 10))
        with self.assertRaises(InvalidDimensionsError):
            store.initialize(bytes(100), (10, 10), (10, 0))

    def test_sample_count_mismatch_rejected(self):
        with self.assertRaises(InvalidDimensionsError):
            MaskStore().initialize(bytes(99), (10, 10), (10, 10))

    def test_initialize_from_image(self):
        store = MaskStore()
        store.initialize_from_image(Image.new("RGB", (20, 10), (255, 255, 255)), (20, 10))
        self.assertTrue((store.read() == 255).all())

    def test_initialize_from_non_image(self):
        with self.assertRaises(TypeError):
            MaskStore().initialize_from_image("mask.png", (10, 10))

    def test_uninitialized_store(self):
        with self.assertRaises(RuntimeError):
            MaskStore().read()


class TestStrokes(unittest.TestCase):
    """Test erase and restore strokes."""

    def test_erase_capsule(self):
        store = make_store()
        self.assertTrue(store.apply_stroke((10, 30), (60, 30), 5, "erase"))
        mask = store.read()
        # Along the segment and at the round caps
        self.assertEqual(mask[30, 10], 0)
        self.assertEqual(mask[30, 35], 0)
        self.assertEqual(mask[30, 60], 0)
        self.assertEqual(mask[30, 7], 0)
        # Outside the radius
        self.assertEqual(mask[20, 35], 255)
        self.assertEqual(mask[30, 70], 255)

    def test_stroke_is_continuous(self):
        store = make_store()
        store.apply_stroke((0, 0), (79, 59), 2, "erase")
        mask = store.read()
        for x in range(5, 75, 5):
            y = int(x * 59 / 79)
            self.assertEqual(mask[y, x], 0, f"gap at {x},{y}")

    def test_restore_paints_opaque(self):
        store = make_store(value=0)
        store.apply_stroke((40, 30), (40, 30), 6, "restore")
        mask = store.read()
        self.assertEqual(mask[30, 40], 255)
        self.assertEqual(mask[0, 0], 0)

    def test_erase_then_restore_is_inverse(self):
        store = make_store()
        before = store.read().copy()
        path = [(5, 5), (30, 40), (70, 12), (75, 55)]
        for start, end in zip(path, path[1:]):
            store.apply_stroke(start, end, 7.5, "erase")
        self.assertFalse(np.array_equal(store.read(), before))
        for start, end in zip(path, path[1:]):
            store.apply_stroke(start, end, 7.5, "restore")
        np.testing.assert_array_equal(store.read(), before)

    def test_stroke_outside_mask(self):
        store = make_store()
        self.assertFalse(store.apply_stroke((500, 500), (600, 600), 10, "erase"))
        self.assertTrue((store.read() == 255).all())

    def test_partially_outside_stroke_is_clipped(self):
        store = make_store()
        self.assertTrue(store.apply_stroke((-20, 30), (5, 30), 4, "erase"))
        self.assertEqual(store.read()[30, 0], 0)

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            make_store().apply_stroke((0, 0), (1, 1), 3, "smudge")

    def test_coverage_region(self):
        region, covered = stroke_coverage((60, 80), (10.0, 10.0), (10.0, 10.0), 3.0)
        self.assertEqual(covered.shape, (region[0].stop - region[0].start, region[1].stop - region[1].start))
        self.assertTrue(covered.any())


class TestSnapshots(unittest.TestCase):
    """Snapshots are lossless and verified on restore."""

    def test_round_trip_is_bit_identical(self):
        store = make_store()
        rng = np.random.default_rng(7)
        noisy = rng.integers(0, 256, size=(60, 80), dtype=np.uint8)
        store.initialize(noisy.tobytes(), (80, 60), (80, 60))
        snapshot = store.snapshot()
        store.apply_stroke((0, 0), (80, 60), 20, "erase")
        store.restore(snapshot)
        np.testing.assert_array_equal(store.read(), noisy)

    def test_corrupt_payload(self):
        store = make_store()
        snapshot = store.snapshot()
        broken = dataclasses.replace(snapshot, payload=b"not zlib")
        with self.assertRaises(SnapshotCorruptError):
            store.restore(broken)

    def test_checksum_mismatch(self):
        store = make_store()
        snapshot = store.snapshot()
        with self.assertRaises(SnapshotCorruptError):
            store.restore(dataclasses.replace(snapshot, checksum=snapshot.checksum ^ 1))

    def test_size_mismatch(self):
        store = make_store()
        other = MaskSnapshot.encode(np.zeros((10, 10), dtype=np.uint8))
        with self.assertRaises(SnapshotCorruptError):
            store.restore(other)

    def test_read_is_immutable_copy(self):
        store = make_store()
        view = store.read()
        with self.assertRaises(ValueError):
            view[0, 0] = 0
        store.apply_stroke((0, 0), (0, 0), 5, "erase")
        self.assertEqual(view[0, 0], 255)


class TestWriterAttachment(unittest.TestCase):

    def test_single_writer(self):
        store = make_store()
        first, second = object(), object()
        store.attach(first)
        store.attach(first)
        with self.assertRaises(SurfaceBusyError):
            store.attach(second)
        store.detach(first)
        store.attach(second)
        self.assertIs(store.active_writer, second)

    def test_detach_by_other_owner_is_ignored(self):
        store = make_store()
        owner = object()
        store.attach(owner)
        store.detach(object())
        self.assertIs(store.active_writer, owner)
