"""
Pytest configuration and shared fixtures for Open Cutout tests.

This module provides shared test fixtures and configuration
used across multiple test modules.
"""

import numpy as np
import pytest
from PIL import Image

from OC_Libs.ImageModelsLib.segmentation import SegmentationResult
from OC_Libs.MaskEditingLib.history_manager import HistoryManager
from OC_Libs.MaskEditingLib.mask_store import MaskStore


def make_gradient_image(width, height):
    """Opaque RGBA image whose pixels are all distinct enough to catch misplacement."""
    xs = np.linspace(0, 255, width, dtype=np.float64)[None, :]
    ys = np.linspace(0, 255, height, dtype=np.float64)[:, None]
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., 0] = np.broadcast_to(xs, (height, width)).astype(np.uint8)
    pixels[..., 1] = np.broadcast_to(ys, (height, width)).astype(np.uint8)
    pixels[..., 2] = 96
    pixels[..., 3] = 255
    return Image.fromarray(pixels)


@pytest.fixture
def photo():
    """
    Provide an 80x60 opaque gradient photograph.

    Returns:
        RGBA PIL Image
    """
    return make_gradient_image(80, 60)


@pytest.fixture
def large_photo():
    """Provide an 800x600 opaque gradient photograph."""
    return make_gradient_image(800, 600)


@pytest.fixture
def opaque_segmentation():
    """Segmentation result that keeps every pixel of an 80x60 photo."""
    return SegmentationResult(samples=bytes([255]) * (80 * 60), width=80, height=60)


@pytest.fixture
def half_segmentation():
    """
    Segmentation result at half resolution (40x30) keeping the left half.

    Returns:
        SegmentationResult
    """
    data = np.zeros((30, 40), dtype=np.uint8)
    data[:, :20] = 255
    return SegmentationResult.from_array(data)


@pytest.fixture
def opaque_store():
    """Provide an initialized 80x60 mask store with every value at 255."""
    store = MaskStore()
    store.initialize(bytes([255]) * (80 * 60), (80, 60), (80, 60))
    return store


@pytest.fixture
def history():
    return HistoryManager()
