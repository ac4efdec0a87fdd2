"""
OC_Libs - Open Cutout Library Modules

This package contains the mask editing and compositing engine for the
Open Cutout project, organized into specialized sub-packages:

- ImageModelsLib: Source image, background and segmentation data models
- GeometryLib: Coordinate mapping, view state and crop geometry
- MaskEditingLib: Mask store, brush engine, touch gestures and undo history
- CompositingLib: Layered preview/export compositing and background filters
- SessionLib: Editing session that ties the engine together for a UI
"""

__version__ = "0.1.0"
