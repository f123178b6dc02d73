"""
Annotation shapes.

An annotation is one of three immutable variants, each tagged on the wire
by its ``type`` field. All coordinates are in unit space.
"""

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from ..errors import Malformed
from .geometry import Point

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#ffff00"
DEFAULT_STROKE_WIDTH = 2


class ToolType(Enum):
    """Drawing tools, valued by the wire tag of the shape they produce."""

    FREE = "pen"
    RECTANGLE = "rect"
    ARROW = "arrow"


@dataclass(frozen=True)
class Freehand:
    """Freehand stroke through an ordered sequence of points."""

    TAG: ClassVar[str] = ToolType.FREE.value

    id: str
    points: Tuple[Point, ...]
    color: str = DEFAULT_COLOR
    stroke_width: float = DEFAULT_STROKE_WIDTH

    def to_dict(self):
        flat = []
        for p in self.points:
            flat.extend((p.x, p.y))
        return {
            "id": self.id,
            "type": self.TAG,
            "color": self.color,
            "strokeWidth": self.stroke_width,
            "points": flat,
        }

    @classmethod
    def from_dict(cls, data: dict):
        flat = [float(v) for v in data["points"]]
        if len(flat) % 2:
            raise ValueError("odd number of point coordinates")
        points = tuple(Point(flat[i], flat[i + 1]) for i in range(0, len(flat), 2))
        if len(points) < 2:
            raise ValueError("a freehand stroke needs at least two points")
        return cls(
            id=str(data["id"]),
            points=points,
            color=data.get("color") or DEFAULT_COLOR,
            stroke_width=data.get("strokeWidth") or DEFAULT_STROKE_WIDTH,
        )


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned rectangle; width and height are fractions of the container."""

    TAG: ClassVar[str] = ToolType.RECTANGLE.value

    id: str
    origin: Point
    width: float
    height: float
    color: str = DEFAULT_COLOR
    stroke_width: float = DEFAULT_STROKE_WIDTH

    def normalized(self) -> "Rectangle":
        """Same rectangle with a top-left origin and non-negative extent."""
        x, w = self.origin.x, self.width
        y, h = self.origin.y, self.height
        if w < 0:
            x, w = x + w, -w
        if h < 0:
            y, h = y + h, -h
        return dataclasses.replace(self, origin=Point(x, y), width=w, height=h)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.TAG,
            "color": self.color,
            "strokeWidth": self.stroke_width,
            "x": self.origin.x,
            "y": self.origin.y,
            "w": self.width,
            "h": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=str(data["id"]),
            origin=Point(float(data["x"]), float(data["y"])),
            width=float(data["w"]),
            height=float(data["h"]),
            color=data.get("color") or DEFAULT_COLOR,
            stroke_width=data.get("strokeWidth") or DEFAULT_STROKE_WIDTH,
        )


@dataclass(frozen=True)
class Arrow:
    """Straight arrow pointing from ``start`` to ``end``."""

    TAG: ClassVar[str] = ToolType.ARROW.value

    id: str
    start: Point
    end: Point
    color: str = DEFAULT_COLOR
    stroke_width: float = DEFAULT_STROKE_WIDTH

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.TAG,
            "color": self.color,
            "strokeWidth": self.stroke_width,
            "startPoint": self.start.to_dict(),
            "endPoint": self.end.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=str(data["id"]),
            start=Point.from_dict(data["startPoint"]),
            end=Point.from_dict(data["endPoint"]),
            color=data.get("color") or DEFAULT_COLOR,
            stroke_width=data.get("strokeWidth") or DEFAULT_STROKE_WIDTH,
        )


Annotation = Union[Freehand, Rectangle, Arrow]

VARIANTS = {cls.TAG: cls for cls in (Freehand, Rectangle, Arrow)}


def annotation_to_dict(annotation: Annotation) -> Dict[str, Any]:
    if isinstance(annotation, (Freehand, Rectangle, Arrow)):
        return annotation.to_dict()
    raise TypeError(f"Not an annotation: {type(annotation).__name__}")


def annotation_from_dict(data: Dict[str, Any]) -> Optional[Annotation]:
    """
    Decode one wire item.

    Returns:
        The annotation, or None when the variant tag is unknown

    Raises:
        Malformed: If the tag is not a string, or is known but the fields
            cannot be decoded
    """
    if not isinstance(data, dict):
        raise Malformed(f"Annotation item must be an object, got {type(data).__name__}")
    tag = data.get("type")
    if not isinstance(tag, str):
        raise Malformed(f"Annotation type must be a string, got {type(tag).__name__}")
    variant = VARIANTS.get(tag)
    if variant is None:
        return None
    try:
        return variant.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise Malformed(f"Undecodable {data.get('type')!r} annotation: {e}") from e


def with_id(annotation: Annotation, annotation_id: str) -> Annotation:
    """Copy of ``annotation`` under another identifier."""
    return dataclasses.replace(annotation, id=annotation_id)
