"""
Pure utility functions for annotation geometry.

These functions have no side effects and can be tested in isolation.
Distances are measured in pixels of the given viewport so that tolerances
such as the eraser radius feel the same on every screen.
"""

import dataclasses
from typing import Dict, Optional, Tuple

import numpy as np

from .geometry import (
    Viewport,
    array_to_points,
    points_to_array,
    to_pixel_array,
)
from .shapes import Annotation, Arrow, Freehand, Rectangle


def distance_to_segments(
    polyline: np.ndarray, target: Tuple[float, float]
) -> float:
    """
    Shortest distance from ``target`` to a polyline.

    Args:
        polyline: (N, 2) array of vertices, N >= 1
        target: Point to measure from

    Returns:
        Euclidean distance
    """
    polyline = np.asarray(polyline, dtype=np.float64).reshape(-1, 2)
    target = np.asarray(target, dtype=np.float64)
    if len(polyline) == 1:
        return float(np.linalg.norm(polyline[0] - target))

    starts = polyline[:-1]
    ends = polyline[1:]
    segments = ends - starts
    lengths_sq = np.einsum("ij,ij->i", segments, segments)
    safe = np.where(lengths_sq > 0, lengths_sq, 1.0)
    t = np.einsum("ij,ij->i", target - starts, segments) / safe
    t = np.clip(np.where(lengths_sq > 0, t, 0.0), 0.0, 1.0)
    closest = starts + segments * t[:, None]
    return float(np.min(np.linalg.norm(closest - target, axis=1)))


def outline_pixels(annotation: Annotation, viewport: Viewport) -> np.ndarray:
    """Vertices of the drawn outline of an annotation, in pixels."""
    if isinstance(annotation, Freehand):
        vertices = points_to_array(annotation.points)
    elif isinstance(annotation, Rectangle):
        rect = annotation.normalized()
        x, y, w, h = rect.origin.x, rect.origin.y, rect.width, rect.height
        vertices = np.array(
            [[x, y], [x + w, y], [x + w, y + h], [x, y + h], [x, y]],
            dtype=np.float64,
        )
    elif isinstance(annotation, Arrow):
        vertices = points_to_array((annotation.start, annotation.end))
    else:
        raise TypeError(f"Not an annotation: {type(annotation).__name__}")
    return to_pixel_array(vertices, viewport.width, viewport.height)


def hit_test(
    annotation: Annotation,
    target: Tuple[float, float],
    viewport: Viewport,
    tolerance: float,
) -> bool:
    """True when ``target`` (pixels) lies within ``tolerance`` of the outline."""
    return distance_to_segments(outline_pixels(annotation, viewport), target) <= tolerance


def erase_freehand_points(
    stroke: Freehand,
    target: Tuple[float, float],
    viewport: Viewport,
    radius: float,
) -> Optional[Freehand]:
    """
    Remove the points of a stroke lying within ``radius`` pixels of ``target``.

    Returns:
        The trimmed stroke (same id), the unchanged stroke when no point was
        close enough, or None when fewer than two points would remain
    """
    unit = points_to_array(stroke.points)
    pixels = to_pixel_array(unit, viewport.width, viewport.height)
    distances = np.linalg.norm(pixels - np.asarray(target, dtype=np.float64), axis=1)
    keep = distances > radius
    if keep.all():
        return stroke
    if np.count_nonzero(keep) < 2:
        return None
    return dataclasses.replace(stroke, points=array_to_points(unit[keep]))


def bounding_box(annotation: Annotation) -> Tuple[float, float, float, float]:
    """Unit-space ``(x_min, y_min, x_max, y_max)`` of an annotation."""
    vertices = outline_pixels(annotation, Viewport(1.0, 1.0))
    mins = vertices.min(axis=0)
    maxs = vertices.max(axis=0)
    return (float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1]))


def compute_annotation_statistics(annotations) -> Dict[str, int]:
    """
    Count annotations per variant.

    Args:
        annotations: Iterable of annotations

    Returns:
        Dictionary with per-type counts and the total
    """
    stats = {Freehand.TAG: 0, Rectangle.TAG: 0, Arrow.TAG: 0, "total": 0}
    for annotation in annotations:
        stats[annotation.TAG] += 1
        stats["total"] += 1
    return stats
