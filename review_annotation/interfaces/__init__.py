"""
Interfaces module - adapters for the annotation core.

Provides adapters that project unit-space annotations onto concrete
surfaces (raster images for previews, exports and the command line).
"""

from .raster_adapter import RasterAnnotationAdapter, hex_to_bgr, render_annotations

__all__ = ["RasterAnnotationAdapter", "hex_to_bgr", "render_annotations"]
