"""
Constants and configuration values for Open Cutout.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the engine.
"""

# History constants
HISTORY_CAPACITY = 20

# Mask value range
MASK_TRANSPARENT = 0
MASK_OPAQUE = 255

# Zoom ranges per editing surface (min, max)
MAIN_ZOOM_RANGE = (0.5, 3.0)
REFINE_ZOOM_RANGE = (1.0, 4.0)
DEFAULT_ZOOM = 1.0
WHEEL_ZOOM_IN_FACTOR = 1.1
WHEEL_ZOOM_OUT_FACTOR = 0.9
VALID_ROTATIONS = (0, 90, 180, 270)

# Brush constants (UI pixels)
MIN_BRUSH_RADIUS = 5.0
MAX_BRUSH_RADIUS = 100.0
DEFAULT_BRUSH_RADIUS = 20.0
BRUSH_MODE_ERASE = "erase"
BRUSH_MODE_RESTORE = "restore"
DEFAULT_BRUSH_MODE = BRUSH_MODE_ERASE

# Crop constants (surface pixels)
CROP_MIN_SIZE = 20.0
CROP_HANDLE_HIT_SIZE = 16.0
CROP_EDGE_BAND = 8.0
CROP_DEFAULT_FRACTION = 0.8
CROP_HANDLE_MARKER_SIZE = 8

# Aspect ratio selections
ASPECT_ORIGINAL = "original"
ASPECT_FREE = "free"
ASPECT_RATIOS = {
    "1:1": 1.0,
    "4:3": 4.0 / 3.0,
    "16:9": 16.0 / 9.0,
    "9:16": 9.0 / 16.0,
}

# Background types
BACKGROUND_TRANSPARENT = "transparent"
BACKGROUND_COLOR = "color"
BACKGROUND_IMAGE = "image"
DEFAULT_BACKGROUND_COLOR = "#ffffff"

# Filter ranges
FILTER_PERCENT_RANGE = (0.0, 200.0)
FILTER_BLUR_RANGE = (0.0, 20.0)
FILTER_NEUTRAL_PERCENT = 100.0

# Checkerboard (transparency indicator)
CHECKERBOARD_SQUARE_SIZE = 16
CHECKERBOARD_COLORS = ((255, 255, 255, 255), (240, 240, 240, 255))

# Crop overlay colors (RGBA)
CROP_DIM_COLOR = (0, 0, 0, 128)
CROP_GRID_COLOR = (255, 255, 255, 110)
CROP_BORDER_COLOR = (255, 255, 255, 230)
CROP_HANDLE_COLOR = (255, 255, 255, 255)
CROP_GRID_DIVISIONS = 3

# Render modes
RENDER_MODE_PREVIEW = "preview"
RENDER_MODE_EXPORT = "export"

# Export formats
EXPORT_FORMAT_PNG = "png"
EXPORT_FORMAT_JPEG = "jpeg"
EXPORT_FORMAT_WEBP = "webp"
SUPPORTED_EXPORT_FORMATS = {EXPORT_FORMAT_PNG, EXPORT_FORMAT_JPEG, EXPORT_FORMAT_WEBP}
EXPORT_FORMAT_ALIASES = {"jpg": EXPORT_FORMAT_JPEG}
FORMATS_WITH_ALPHA = {EXPORT_FORMAT_PNG, EXPORT_FORMAT_WEBP}
JPEG_FLATTEN_COLOR = (255, 255, 255)
