"""
Tests for the editing session and the refinement viewport.

Tests cover:
- Session setup and baseline history
- Stroke history (capacity, undo/redo bit-exactness)
- Corrupt snapshot recovery
- Transform, crop, background and filter calls
- Refinement lifecycle and surface exclusivity
- Preview rendering and export
"""

import dataclasses
from unittest import mock

import numpy as np
import pytest
from PIL import Image

from OC_Libs.errors import (
    InvalidDimensionsError,
    RenderResourceUnavailableError,
    SnapshotCorruptError,
    SurfaceBusyError,
)
from OC_Libs.GeometryLib.coordinate_mapper import ViewportRect
from OC_Libs.ImageModelsLib.segmentation import SegmentationResult
from OC_Libs.SessionLib import editing_session
from OC_Libs.SessionLib.editing_session import EditingSession
from OC_Libs.SessionLib.editor_config import EditorConfig


@pytest.fixture
def session(photo, opaque_segmentation):
    return EditingSession(photo, opaque_segmentation)


def stroke(session, points):
    session.stroke_begin(points[0])
    for point in points[1:]:
        session.stroke_move(point)
    session.stroke_end()


class TestSessionSetup:

    def test_mask_resampled_to_source(self, photo, half_segmentation):
        session = EditingSession(photo, half_segmentation)
        mask = session.mask_store.read()
        assert mask.shape == (60, 80)
        assert mask[30, 5] == 255
        assert mask[30, 75] == 0

    def test_session_from_segmentation_service(self, photo):
        class QuarterSizeSegmenter:
            def segment(self, image):
                small = image.convert("L").resize((image.width // 4, image.height // 4))
                return SegmentationResult.from_image(small.point(lambda v: 255))

        session = EditingSession(photo, QuarterSizeSegmenter().segment(photo))
        assert session.mask_store.size == (80, 60)
        assert (session.mask_store.read() == 255).all()

    def test_baseline_in_history(self, session):
        assert len(session.history) == 1
        assert not session.can_undo

    def test_zero_sized_preview_rejected(self, photo, opaque_segmentation):
        with pytest.raises(InvalidDimensionsError):
            EditingSession(photo, opaque_segmentation, preview_size=(0, 10))

    def test_config_overrides(self, photo, opaque_segmentation):
        session = EditingSession(photo, opaque_segmentation, config=EditorConfig(history_capacity=5, brush_radius=9))
        assert session.history.capacity == 5
        assert session.brush.radius == 9


class TestSessionHistory:

    def test_twenty_five_strokes_keep_twenty_entries(self, session):
        for i in range(25):
            stroke(session, [(2 + i * 3, 5), (2 + i * 3, 50)])
        assert len(session.history) == 20
        assert session.history.index == 19

    def test_undo_restores_bit_identical_mask(self, session):
        stroke(session, [(10, 10), (40, 40)])
        after_first = session.mask_store.read().copy()
        stroke(session, [(60, 10), (70, 50)])
        after_second = session.mask_store.read().copy()

        assert session.undo()
        np.testing.assert_array_equal(session.mask_store.read(), after_first)
        assert session.redo()
        np.testing.assert_array_equal(session.mask_store.read(), after_second)

    def test_undo_past_oldest_is_noop(self, session):
        before = session.mask_store.read().copy()
        assert not session.undo()
        assert not session.redo()
        np.testing.assert_array_equal(session.mask_store.read(), before)

    def test_corrupt_snapshot_rebaselines_history(self, session):
        stroke(session, [(10, 10), (40, 40)])
        live = session.mask_store.read().copy()
        broken = dataclasses.replace(session.history._entries[0], payload=b"garbage")
        session.history._entries[0] = broken

        with pytest.raises(SnapshotCorruptError):
            session.undo()
        assert len(session.history) == 1
        assert session.history.index == 0
        np.testing.assert_array_equal(session.mask_store.read(), live)
        np.testing.assert_array_equal(session.history.current().decode(), live)

    def test_reset_discards_everything(self, session):
        stroke(session, [(10, 10), (40, 40)])
        session.set_zoom(2.0)
        session.set_aspect_ratio("1:1")
        session.set_background_color("red")
        session.reset()
        assert (session.mask_store.read() == 255).all()
        assert len(session.history) == 1
        assert session.view_state.zoom == 1.0
        assert session.crop.box is None
        assert session.background.is_transparent
        assert not session.has_unsaved_edits


class TestSessionControls:

    def test_transform_calls(self, session):
        assert session.rotate(-90) == 270
        assert session.flip_horizontal()
        assert session.set_zoom(5.0) == 3.0
        session.pan_by(4, -2)
        assert (session.view_state.pan_x, session.view_state.pan_y) == (4.0, -2.0)

    def test_brush_settings(self, session):
        assert session.set_brush_radius(500) == 100.0
        session.set_brush_mode("restore")
        assert session.brush.mode.value == "restore"
        with pytest.raises(ValueError):
            session.set_brush_mode("smudge")

    def test_filters_update_partially(self, session):
        session.set_filters(brightness=150)
        session.set_filters(blur=3)
        assert session.filters.brightness == 150
        assert session.filters.blur == 3
        session.reset_filters()
        assert session.filters.is_identity
        assert session.has_unsaved_edits

    def test_crop_drag(self, session):
        box = session.set_aspect_ratio("1:1")
        assert session.crop_pointer_down((box.right, box.bottom)) is not None
        moved = session.crop_pointer_move((box.right + 100, box.bottom + 100))
        session.crop_pointer_up()
        assert moved.width == pytest.approx(moved.height)
        assert moved.right <= 80 and moved.bottom <= 60


class TestRefinement:

    def test_main_surface_suspended_while_refining(self, session):
        session.open_refinement()
        assert session.is_refining
        assert not session.brush.is_attached
        with pytest.raises(SurfaceBusyError):
            session.brush.pointer_down((10, 10))
        session.finish_refinement()
        assert session.brush.is_attached

    def test_refinement_view_resets_on_open(self, session):
        refinement = session.open_refinement()
        refinement.view_state.set_zoom(3.5)
        session.finish_refinement()
        refinement = session.open_refinement()
        assert refinement.view_state.zoom == 1.0
        assert refinement.view_state.zoom_range == (1.0, 4.0)

    def test_finish_keeps_edits(self, session):
        session.open_refinement()
        stroke(session, [(40, 30), (41, 30)])
        assert session.finish_refinement()
        assert session.mask_store.read()[30, 40] == 0

    def test_discard_rolls_back(self, session):
        before = session.mask_store.read().copy()
        session.open_refinement()
        stroke(session, [(40, 30), (60, 30)])
        assert session.discard_refinement()
        np.testing.assert_array_equal(session.mask_store.read(), before)
        np.testing.assert_array_equal(session.history.current().decode(), before)
        assert not session.is_refining

    def test_reset_edits_stays_open(self, session):
        before = session.mask_store.read().copy()
        session.open_refinement()
        stroke(session, [(40, 30), (60, 30)])
        assert session.reset_refinement_edits()
        assert session.is_refining
        np.testing.assert_array_equal(session.mask_store.read(), before)

    def test_refinement_preview(self, session):
        refinement = session.open_refinement()
        preview = refinement.render_preview()
        assert preview.size == (80, 60)


class TestRenderAndExport:

    def test_preview_size(self, photo, opaque_segmentation):
        session = EditingSession(photo, opaque_segmentation, preview_size=(40, 30))
        preview = session.render_preview()
        assert preview.size == (40, 30)
        assert session.last_preview is preview

    def test_failed_render_keeps_last_preview(self, session):
        good = session.render_preview()
        with mock.patch.object(editing_session, "render", side_effect=RenderResourceUnavailableError("oom")):
            with pytest.raises(RenderResourceUnavailableError):
                session.render_preview()
        assert session.last_preview is good

    def test_export_full_resolution_from_small_preview(self, photo, opaque_segmentation):
        session = EditingSession(
            photo, opaque_segmentation, preview_size=(40, 30), viewport_rect=ViewportRect.of_size(40, 30)
        )
        session.set_background_color("#ffffff")
        result = session.export("png")
        assert result.size == (80, 60)
        np.testing.assert_array_equal(np.asarray(result.image), np.asarray(session.source.image))
        assert not session.has_unsaved_edits

    def test_export_crop_pair(self, photo, opaque_segmentation):
        session = EditingSession(photo, opaque_segmentation, preview_size=(40, 30))
        session.set_aspect_ratio("1:1")
        result = session.export("webp")
        left, top, right, bottom = result.source_rect
        assert right - left == bottom - top
        assert result.cropped_source.size == result.image.size
        assert result.cropped_mask.size == result.image.size

    def test_render_original(self, session):
        stroke(session, [(10, 10), (70, 50)])
        original = session.render_original()
        assert original.getpixel((40, 30)) == session.source.image.getpixel((40, 30))

    def test_export_rejects_unknown_format(self, session):
        with pytest.raises(ValueError):
            session.export("bmp")


def make_square_photo(size=200):
    ramp = np.linspace(0, 255, size).astype(np.uint8)
    pixels = np.zeros((size, size, 3), dtype=np.uint8)
    pixels[..., 0] = ramp[None, :]
    pixels[..., 1] = ramp[:, None]
    return Image.fromarray(pixels)


class TestCropExportUnderView:

    @pytest.fixture
    def square_session(self):
        photo = make_square_photo()
        segmentation = SegmentationResult(samples=bytes([255]) * (200 * 200), width=200, height=200)
        return EditingSession(photo, segmentation)

    def test_zoomed_crop_cuts_framed_region(self, square_session):
        square_session.set_zoom(2.0)
        square_session.set_aspect_ratio("1:1")
        result = square_session.export("png")

        assert result.output_rect == (20, 20, 180, 180)
        assert result.source_rect == (60, 60, 140, 140)
        source = square_session.source.image
        assert result.cropped_source.getpixel((0, 0)) == source.getpixel((60, 60))
        assert result.cropped_mask.size == (80, 80)
        # The composite's corner shows the same part of the photo
        composite_corner = result.image.getpixel((0, 0))
        source_corner = source.getpixel((60, 60))
        for channel in range(3):
            assert abs(composite_corner[channel] - source_corner[channel]) <= 3

    def test_untransformed_crop_rects_agree(self, square_session):
        square_session.set_aspect_ratio("1:1")
        result = square_session.export("png")
        assert result.source_rect == result.output_rect == (20, 20, 180, 180)


class TestPreviewAspectRatio:

    def test_mismatched_preview_rejected(self, large_photo, opaque_segmentation):
        with pytest.raises(InvalidDimensionsError):
            EditingSession(large_photo, opaque_segmentation, preview_size=(400, 400))

    def test_mismatched_viewport_resize_leaves_layout(self, session):
        with pytest.raises(InvalidDimensionsError):
            session.set_viewport(ViewportRect.of_size(40, 40), preview_size=(40, 40))
        assert session.preview_size == (80, 60)
        assert session.viewport_rect == ViewportRect.of_size(80, 60)

    def test_crop_rows_scale_with_preview(self, large_photo, opaque_segmentation):
        session = EditingSession(large_photo, opaque_segmentation, preview_size=(400, 300))
        box = session.set_aspect_ratio("1:1")
        assert (box.y, box.bottom) == (pytest.approx(30.0), pytest.approx(270.0))
        result = session.export("png")
        assert result.source_rect == (160, 60, 640, 540)
