"""
Conversion between rendered pixel space and resolution-independent unit space.

Annotations are always stored in unit space, where (0, 0) is the top-left
corner of the media render area and (1, 1) its bottom-right corner. Pixel
coordinates only exist while a pointer is moving or a shape is being drawn.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class Point:
    """A point in unit space."""

    x: float
    y: float

    def to_dict(self):
        """Convert to dictionary for serialization."""
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict):
        """Create from dictionary."""
        return cls(x=float(data["x"]), y=float(data["y"]))


@dataclass(frozen=True)
class Viewport:
    """Size of the area the media is currently rendered into, in pixels."""

    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_unit(self, pixel_point: Tuple[float, float]) -> Point:
        return to_unit(pixel_point, self.width, self.height)

    def to_pixel(self, point: Point) -> Tuple[float, float]:
        return to_pixel(point, self.width, self.height)

    def clamp(self, pixel_point: Tuple[float, float]) -> Tuple[float, float]:
        return clamp_to_viewport(pixel_point, self.width, self.height)


def _ratio(value: float, dimension: float) -> float:
    if dimension <= 0:
        return 0.0
    return value / dimension


def _scale(value: float, dimension: float) -> float:
    if dimension <= 0:
        return 0.0
    return value * dimension


def to_unit(
    pixel_point: Tuple[float, float], container_width: float, container_height: float
) -> Point:
    """
    Normalize a pixel position against the container size.

    A non-positive dimension yields 0 on that axis instead of raising.
    """
    px, py = pixel_point
    return Point(_ratio(px, container_width), _ratio(py, container_height))


def to_pixel(
    point: Point, container_width: float, container_height: float
) -> Tuple[float, float]:
    """Project a unit-space point onto a container of the given size."""
    return (_scale(point.x, container_width), _scale(point.y, container_height))


def clamp_to_viewport(
    pixel_point: Tuple[float, float], container_width: float, container_height: float
) -> Tuple[float, float]:
    """Keep a pointer position inside the render area."""
    px, py = pixel_point
    return (
        min(max(px, 0.0), max(container_width, 0.0)),
        min(max(py, 0.0), max(container_height, 0.0)),
    )


def to_unit_array(
    pixels: np.ndarray, container_width: float, container_height: float
) -> np.ndarray:
    """Vectorized ``to_unit`` over an (N, 2) array of pixel positions."""
    pixels = np.asarray(pixels, dtype=np.float64).reshape(-1, 2)
    scale = np.array(
        [
            1.0 / container_width if container_width > 0 else 0.0,
            1.0 / container_height if container_height > 0 else 0.0,
        ]
    )
    return pixels * scale


def to_pixel_array(
    points: np.ndarray, container_width: float, container_height: float
) -> np.ndarray:
    """Vectorized ``to_pixel`` over an (N, 2) array of unit positions."""
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    scale = np.array([max(container_width, 0.0), max(container_height, 0.0)])
    return points * scale


def points_to_array(points: Sequence[Point]) -> np.ndarray:
    return np.array([(p.x, p.y) for p in points], dtype=np.float64).reshape(-1, 2)


def array_to_points(array: np.ndarray):
    return tuple(Point(float(x), float(y)) for x, y in np.asarray(array).reshape(-1, 2))
