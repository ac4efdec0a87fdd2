"""
Single import point for Pillow (the `PIL` distribution).

Engine modules take their Pillow modules from here rather than importing
`PIL` directly, so the minimum Pillow feature set is checked in one place:
the `Image.Resampling` and `Image.Transform` enums (Pillow 9.1+).
"""
from importlib import import_module

Image = import_module("PIL.Image")

if not hasattr(Image, "Resampling") or not hasattr(Image, "Transform"):
    raise ImportError(
        f"Pillow {getattr(Image, '__version__', '?')} is too old: install with 'pip install \"Pillow>=9.1\"'"
    )

ImageChops = import_module("PIL.ImageChops")
ImageColor = import_module("PIL.ImageColor")
ImageDraw = import_module("PIL.ImageDraw")
ImageEnhance = import_module("PIL.ImageEnhance")
ImageFilter = import_module("PIL.ImageFilter")
ImageOps = import_module("PIL.ImageOps")
