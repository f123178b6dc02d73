"""
Core annotation module - UI-agnostic drawing logic.

This module provides the unit-space annotation model, the draw-time state
machine and the undoable annotation set, usable with any UI framework.
"""

from .annotation_set import AnnotationSet, HistoryEntry
from .builder import BuilderState, ShapeBuilder, validate_shape
from .events import AnnotationEvent, EventEmitter, EventType
from .geometry import Point, Viewport, to_pixel, to_unit
from .session import DrawingSession
from .shapes import Annotation, Arrow, Freehand, Rectangle, ToolType

__all__ = [
    "Annotation",
    "AnnotationEvent",
    "AnnotationSet",
    "Arrow",
    "BuilderState",
    "DrawingSession",
    "EventEmitter",
    "EventType",
    "Freehand",
    "HistoryEntry",
    "Point",
    "Rectangle",
    "ShapeBuilder",
    "ToolType",
    "Viewport",
    "to_pixel",
    "to_unit",
    "validate_shape",
]
