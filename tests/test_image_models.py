"""
Tests for image data models, segmentation results and editor configuration.
"""

import numpy as np
import pytest
from PIL import Image

from OC_Libs.errors import CutoutError, InvalidDimensionsError
from OC_Libs.ImageModelsLib.image_models import (
    BackgroundSpec,
    SourceImage,
    parse_color,
    validate_preview_size,
    validate_size,
)
from OC_Libs.ImageModelsLib.segmentation import SegmentationResult
from OC_Libs.SessionLib.editor_config import EditorConfig


class TestSourceImage:

    def test_converts_to_rgba(self):
        source = SourceImage.from_image(Image.new("RGB", (12, 8), (1, 2, 3)))
        assert source.image.mode == "RGBA"
        assert source.size == (12, 8)
        assert source.image.getpixel((0, 0)) == (1, 2, 3, 255)

    def test_rejects_non_image(self):
        with pytest.raises(TypeError):
            SourceImage.from_image(b"\x89PNG")

    def test_zero_dimension_is_invalid(self):
        with pytest.raises(InvalidDimensionsError):
            validate_size(0, 10)

    def test_preview_size_keeps_aspect_ratio(self):
        assert validate_preview_size((400, 300), (800, 600)) == (400, 300)
        # One pixel of rounding is allowed
        assert validate_preview_size((400, 300), (801, 601)) == (400, 300)
        with pytest.raises(InvalidDimensionsError):
            validate_preview_size((400, 400), (800, 600))

    def test_invalid_dimensions_is_cutout_and_value_error(self):
        assert issubclass(InvalidDimensionsError, CutoutError)
        assert issubclass(InvalidDimensionsError, ValueError)


class TestBackgroundSpec:

    def test_default_is_transparent(self):
        assert BackgroundSpec().is_transparent

    def test_solid_parses_color(self):
        assert BackgroundSpec.solid("#ff8000").color == (255, 128, 0, 255)

    def test_image_variant(self):
        spec = BackgroundSpec.from_image(Image.new("RGB", (4, 4)))
        assert spec.kind == "image"
        assert not spec.is_transparent

    def test_variant_payloads_are_exclusive(self):
        with pytest.raises(ValueError):
            BackgroundSpec(kind="transparent", color=(0, 0, 0, 255))
        with pytest.raises(ValueError):
            BackgroundSpec(kind="color")
        with pytest.raises(TypeError):
            BackgroundSpec(kind="image", image="sky.png")
        with pytest.raises(ValueError):
            BackgroundSpec(kind="gradient")

    def test_parse_color_tuples(self):
        assert parse_color((10, 20, 30)) == (10, 20, 30, 255)
        assert parse_color((10, 20, 30, 40)) == (10, 20, 30, 40)
        with pytest.raises(ValueError):
            parse_color("not-a-color")


class TestSegmentationResult:

    def test_sample_count_checked(self):
        with pytest.raises(InvalidDimensionsError):
            SegmentationResult(samples=bytes(10), width=4, height=4)

    def test_from_probability_array(self):
        result = SegmentationResult.from_array(np.array([[0.0, 0.5], [1.0, 2.0]]))
        assert list(result.samples) == [0, 128, 255, 255]

    def test_from_array_requires_2d(self):
        with pytest.raises(InvalidDimensionsError):
            SegmentationResult.from_array(np.zeros((2, 2, 3), dtype=np.uint8))

    def test_image_round_trip(self):
        result = SegmentationResult.from_image(Image.new("L", (3, 2), 77))
        assert result.to_image().getpixel((2, 1)) == 77


class TestEditorConfig:

    def test_defaults(self):
        config = EditorConfig()
        assert config.history_capacity == 20
        assert config.main_zoom_range == (0.5, 3.0)
        assert config.refine_zoom_range == (1.0, 4.0)

    def test_dict_round_trip_ignores_unknown_keys(self):
        data = EditorConfig(brush_radius=30).to_dict()
        data["theme"] = "dark"
        config = EditorConfig.from_dict(data)
        assert config.brush_radius == 30
        assert config.main_zoom_range == (0.5, 3.0)

    def test_invalid_crop_fraction(self):
        with pytest.raises(ValueError):
            EditorConfig(crop_default_fraction=1.5)
