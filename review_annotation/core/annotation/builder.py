"""
Draw-time state machine.

Turns pointer events in pixel space into finalized unit-space annotations:

    IDLE --pointer_down--> DRAWING --pointer_up--> IDLE  (finalized)
                                   --cancel-----> IDLE  (discarded)
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from ..errors import InvalidGeometry
from .annotation_set import AnnotationSet
from .events import AnnotationEvent, EventEmitter, EventType
from .geometry import Point, Viewport
from .shapes import (
    DEFAULT_COLOR,
    DEFAULT_STROKE_WIDTH,
    Annotation,
    Arrow,
    Freehand,
    Rectangle,
    ToolType,
    with_id,
)

logger = logging.getLogger(__name__)

DRAFT_ID = "draft"

# Extents below this are treated as a dead click
MIN_EXTENT = 1e-9


class BuilderState(Enum):
    IDLE = "idle"
    DRAWING = "drawing"


@dataclass
class DraftShape:
    """The shape under construction between pointer-down and pointer-up."""

    tool: ToolType
    anchor: Point
    color: str
    stroke_width: float
    points: List[Point] = field(default_factory=list)
    terminal: Optional[Point] = None
    last_sample_at: Optional[float] = None

    def build(self, annotation_id: str) -> Annotation:
        if self.tool is ToolType.FREE:
            return Freehand(
                id=annotation_id,
                points=tuple(self.points),
                color=self.color,
                stroke_width=self.stroke_width,
            )
        terminal = self.terminal or self.anchor
        if self.tool is ToolType.RECTANGLE:
            return Rectangle(
                id=annotation_id,
                origin=self.anchor,
                width=terminal.x - self.anchor.x,
                height=terminal.y - self.anchor.y,
                color=self.color,
                stroke_width=self.stroke_width,
            )
        if self.tool is ToolType.ARROW:
            return Arrow(
                id=annotation_id,
                start=self.anchor,
                end=terminal,
                color=self.color,
                stroke_width=self.stroke_width,
            )
        raise ValueError(f"Unsupported tool {self.tool}")


def validate_shape(annotation: Annotation):
    """
    Reject degenerate shapes.

    Raises:
        InvalidGeometry: Freehand with fewer than two points, rectangle of
            zero area, or arrow of zero length
    """
    if isinstance(annotation, Freehand):
        if len(annotation.points) < 2:
            raise InvalidGeometry("freehand stroke has fewer than two points")
    elif isinstance(annotation, Rectangle):
        if abs(annotation.width) < MIN_EXTENT or abs(annotation.height) < MIN_EXTENT:
            raise InvalidGeometry("rectangle has zero area")
    elif isinstance(annotation, Arrow):
        dx = annotation.end.x - annotation.start.x
        dy = annotation.end.y - annotation.start.y
        if abs(dx) < MIN_EXTENT and abs(dy) < MIN_EXTENT:
            raise InvalidGeometry("arrow has zero length")
    else:
        raise TypeError(f"Not an annotation: {type(annotation).__name__}")


class ShapeBuilder:
    """
    Builds one shape at a time from pointer events.

    Pointer positions are pixels relative to the top-left corner of the
    current viewport. Finalized shapes are appended to ``annotation_set``
    and reported through ``on_change`` with the full annotation sequence.
    """

    def __init__(
        self,
        annotation_set: Optional[AnnotationSet] = None,
        viewport: Optional[Viewport] = None,
        tool: ToolType = ToolType.FREE,
        color: str = DEFAULT_COLOR,
        stroke_width: float = DEFAULT_STROKE_WIDTH,
        frame_interval: float = 1.0 / 60.0,
        on_change: Optional[Callable[[Sequence[Annotation]], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        events: Optional[EventEmitter] = None,
    ):
        """
        Initialize shape builder.

        Args:
            annotation_set: Set receiving finalized shapes
            viewport: Current render area size in pixels
            tool: Tool applied to the next pointer-down
            color: Line color of new shapes
            stroke_width: Stroke width of new shapes
            frame_interval: Minimum seconds between two freehand samples
            on_change: Called with all annotations after each finalize
            clock: Time source used when events carry no timestamp
            events: Emitter to publish on, a private one by default
        """
        if annotation_set is None:
            annotation_set = AnnotationSet()
        self.annotation_set = annotation_set
        self.viewport = viewport or Viewport(0, 0)
        self.tool = tool
        self.color = color
        self.stroke_width = stroke_width
        self.frame_interval = frame_interval
        self.on_change = on_change
        self.clock = clock
        self.events = events or EventEmitter()

        self._draft: Optional[DraftShape] = None

    @property
    def state(self) -> BuilderState:
        return BuilderState.IDLE if self._draft is None else BuilderState.DRAWING

    @property
    def is_drawing(self) -> bool:
        return self._draft is not None

    def set_tool(self, tool: ToolType):
        """Select the tool for the next shape; a shape in progress keeps its own."""
        self.tool = ToolType(tool)

    def set_viewport(self, width: float, height: float):
        self.viewport = Viewport(width, height)

    # ==================== Pointer events ====================

    def pointer_down(self, x: float, y: float, timestamp: Optional[float] = None) -> bool:
        """
        Start a shape at the pointer position.

        Returns:
            False when a shape is already in progress (the event is ignored)
        """
        if self._draft is not None:
            logger.debug("Ignoring pointer-down while drawing")
            return False

        now = self._now(timestamp)
        anchor = self._normalize(x, y)
        self._draft = DraftShape(
            tool=self.tool,
            anchor=anchor,
            color=self.color,
            stroke_width=self.stroke_width,
            points=[anchor] if self.tool is ToolType.FREE else [],
            last_sample_at=now,
        )
        self.events.emit(
            AnnotationEvent(
                EventType.DRAWING_STARTED,
                {"tool": self.tool.value, "anchor": anchor.to_dict()},
            )
        )
        return True

    def pointer_move(self, x: float, y: float, timestamp: Optional[float] = None) -> bool:
        """
        Update the shape in progress.

        Returns:
            True when the draft changed
        """
        draft = self._draft
        if draft is None:
            return False

        point = self._normalize(x, y)
        if draft.tool is ToolType.FREE:
            now = self._now(timestamp)
            if (
                draft.last_sample_at is not None
                and now - draft.last_sample_at < self.frame_interval
            ):
                return False
            if not self._append_sample(draft, point):
                return False
            draft.last_sample_at = now
            return True

        draft.terminal = point
        return True

    def pointer_up(
        self,
        x: Optional[float] = None,
        y: Optional[float] = None,
        timestamp: Optional[float] = None,
    ) -> Optional[Annotation]:
        """
        Finalize the shape in progress.

        The release position, when given, is always taken into account,
        even if it falls inside the sampling interval.

        Returns:
            The appended annotation, or None when nothing was drawn or the
            shape was degenerate
        """
        draft = self._draft
        if draft is None:
            return None
        self._draft = None

        if x is not None and y is not None:
            point = self._normalize(x, y)
            if draft.tool is ToolType.FREE:
                self._append_sample(draft, point)
            else:
                draft.terminal = point

        try:
            annotation = self._finalize(draft)
        except InvalidGeometry as e:
            logger.debug(f"Discarding {draft.tool.value} shape: {e}")
            self.events.emit(
                AnnotationEvent(
                    EventType.SHAPE_DISCARDED,
                    {"tool": draft.tool.value, "reason": str(e)},
                )
            )
            return None

        self.annotation_set.append(annotation)
        annotations = self.annotation_set.annotations
        self.events.emit(
            AnnotationEvent(
                EventType.SHAPE_FINALIZED,
                {"annotation": annotation, "num_annotations": len(annotations)},
            )
        )
        if self.on_change is not None:
            self.on_change(annotations)
        return annotation

    def pointer_leave(self):
        """The pointer left the drawing surface."""
        return self.cancel()

    def cancel(self) -> bool:
        """
        Drop the shape in progress without touching the annotation set.

        Returns:
            True if a shape was in progress
        """
        draft = self._draft
        if draft is None:
            return False
        self._draft = None
        self.events.emit(
            AnnotationEvent(EventType.DRAWING_CANCELLED, {"tool": draft.tool.value})
        )
        return True

    def preview(self) -> Optional[Annotation]:
        """The shape in progress, for live rendering; never validated."""
        if self._draft is None:
            return None
        return self._draft.build(DRAFT_ID)

    # ==================== Internals ====================

    def _finalize(self, draft: DraftShape) -> Annotation:
        annotation = draft.build(DRAFT_ID)
        validate_shape(annotation)
        if isinstance(annotation, Rectangle):
            annotation = annotation.normalized()
        return with_id(annotation, self.annotation_set.next_id())

    @staticmethod
    def _append_sample(draft: DraftShape, point: Point) -> bool:
        if draft.points and draft.points[-1] == point:
            return False
        draft.points.append(point)
        return True

    def _normalize(self, x: float, y: float) -> Point:
        return self.viewport.to_unit(self.viewport.clamp((x, y)))

    def _now(self, timestamp: Optional[float]) -> float:
        return self.clock() if timestamp is None else timestamp
