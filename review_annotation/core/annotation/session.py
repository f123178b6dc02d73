"""
Drawing session management.

Core logic for one participant drawing annotations over one media view.
UI-agnostic - can be used with any interface (GUI, Web, CLI).
"""

import logging
from typing import Optional

from ...utils.config import load_config
from ..errors import Malformed
from .annotation_set import AnnotationSet
from .builder import ShapeBuilder
from .events import AnnotationEvent, EventEmitter, EventType
from .geometry import Viewport
from .shapes import Freehand, ToolType
from .utils import erase_freehand_points, hit_test

logger = logging.getLogger(__name__)


class DrawingSession:
    """
    Manages the state and logic of a drawing session.

    This class handles:
    - Pointer events through a ShapeBuilder
    - The session-owned AnnotationSet and its undo/redo history
    - Erasing whole shapes or parts of freehand strokes
    - Viewport changes (all state stays in unit space)
    - Event emission for UI updates

    The annotation set belongs to this session alone; ``submit`` turns it
    into a payload and starts over with an empty set.
    """

    def __init__(self, viewport: Optional[Viewport] = None, cfg=None, clock=None):
        """
        Initialize drawing session.

        Args:
            viewport: Initial render area size in pixels
            cfg: Configuration tree (see ``review_annotation.utils.config``)
            clock: Optional time source for freehand sampling
        """
        if cfg is None:
            cfg = load_config()

        self.cfg = cfg
        self.eraser_radius = float(cfg.eraser.radius)

        # Event emitter for UI notifications
        self.events = EventEmitter()

        builder_kwargs = {}
        if clock is not None:
            builder_kwargs["clock"] = clock
        self.builder = ShapeBuilder(
            annotation_set=AnnotationSet(),
            viewport=viewport,
            color=cfg.drawing.color,
            stroke_width=cfg.drawing.stroke_width,
            frame_interval=float(cfg.drawing.frame_interval),
            on_change=lambda annotations: self._changed("draw"),
            events=self.events,
            **builder_kwargs,
        )

    @property
    def annotation_set(self) -> AnnotationSet:
        return self.builder.annotation_set

    @property
    def viewport(self) -> Viewport:
        return self.builder.viewport

    @property
    def annotations(self):
        return self.annotation_set.annotations

    # ==================== Tool settings ====================

    def set_tool(self, tool: ToolType):
        self.builder.set_tool(tool)

    def set_color(self, color: str):
        self.builder.color = color

    def set_stroke_width(self, stroke_width: float):
        self.builder.stroke_width = stroke_width

    def resize(self, width: float, height: float):
        """The render area changed size; stored annotations are unaffected."""
        self.builder.set_viewport(width, height)
        self.events.emit(
            AnnotationEvent(
                EventType.VIEWPORT_CHANGED, {"width": width, "height": height}
            )
        )

    # ==================== Pointer events ====================

    def pointer_down(self, x: float, y: float, timestamp: Optional[float] = None):
        return self.builder.pointer_down(x, y, timestamp)

    def pointer_move(self, x: float, y: float, timestamp: Optional[float] = None):
        return self.builder.pointer_move(x, y, timestamp)

    def pointer_up(self, x=None, y=None, timestamp: Optional[float] = None):
        return self.builder.pointer_up(x, y, timestamp)

    def pointer_leave(self):
        return self.builder.pointer_leave()

    def cancel(self):
        return self.builder.cancel()

    # ==================== History ====================

    def undo(self) -> bool:
        """
        Undo the last edit.

        Returns:
            True if undo was successful, False if no history
        """
        if self.annotation_set.undo() is None:
            return False
        self._changed("undo")
        return True

    def redo(self) -> bool:
        if self.annotation_set.redo() is None:
            return False
        self._changed("redo")
        return True

    def clear(self) -> bool:
        """Remove every annotation (undoable)."""
        self.builder.cancel()
        if not self.annotation_set.clear():
            return False
        self._changed("clear")
        return True

    def erase_at(self, x: float, y: float, radius: Optional[float] = None) -> bool:
        """
        Erase under the pointer.

        The topmost shape near the pointer is affected: rectangles and
        arrows are removed whole, freehand strokes lose the points inside
        the eraser radius and are removed once fewer than two points remain.

        Returns:
            True if an annotation was changed
        """
        radius = self.eraser_radius if radius is None else radius
        target = self.viewport.clamp((x, y))

        for annotation in reversed(self.annotation_set.annotations):
            if isinstance(annotation, Freehand):
                trimmed = erase_freehand_points(annotation, target, self.viewport, radius)
                if trimmed is annotation:
                    continue
                if trimmed is None:
                    self.annotation_set.retract(annotation.id)
                else:
                    self.annotation_set.replace(annotation.id, trimmed)
            elif hit_test(annotation, target, self.viewport, radius):
                self.annotation_set.retract(annotation.id)
            else:
                continue
            self._changed("erase")
            return True
        return False

    # ==================== Payload ====================

    def load(self, payload: Optional[str]) -> int:
        """
        Start from the annotations of an existing payload.

        Returns:
            Number of annotations loaded
        """
        self.builder.cancel()
        try:
            annotation_set = AnnotationSet.deserialize(payload)
        except Malformed as e:
            logger.warning(f"Ignoring undecodable annotation payload: {e}")
            annotation_set = AnnotationSet()
        self.builder.annotation_set = annotation_set
        self.events.emit(
            AnnotationEvent(EventType.SESSION_LOADED, {"num_annotations": len(annotation_set)})
        )
        return len(annotation_set)

    def submit(self) -> Optional[str]:
        """
        Serialize the annotations and discard the in-memory set.

        Returns:
            The payload, or None when nothing was drawn
        """
        self.builder.cancel()
        annotation_set = self.annotation_set
        payload = annotation_set.serialize() if annotation_set else None
        self.builder.annotation_set = AnnotationSet()
        self.events.emit(
            AnnotationEvent(
                EventType.SESSION_SUBMITTED,
                {"num_annotations": len(annotation_set), "payload": payload},
            )
        )
        return payload

    def _changed(self, reason: str):
        self.events.emit(
            AnnotationEvent(
                EventType.ANNOTATIONS_CHANGED,
                {
                    "reason": reason,
                    "annotations": self.annotation_set.annotations,
                    "can_undo": self.annotation_set.can_undo,
                    "can_redo": self.annotation_set.can_redo,
                },
            )
        )
