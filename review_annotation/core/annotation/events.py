"""
Event system for the drawing workflow.

Provides a decoupled way for the drawing core to notify rendering code
about state changes without depending on a specific UI framework.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events that can occur while drawing."""

    # Shape builder events
    DRAWING_STARTED = "drawing_started"
    SHAPE_FINALIZED = "shape_finalized"
    SHAPE_DISCARDED = "shape_discarded"
    DRAWING_CANCELLED = "drawing_cancelled"

    # Annotation set events
    ANNOTATIONS_CHANGED = "annotations_changed"

    # Session events
    VIEWPORT_CHANGED = "viewport_changed"
    SESSION_LOADED = "session_loaded"
    SESSION_SUBMITTED = "session_submitted"


@dataclass
class AnnotationEvent:
    """Event that occurs while drawing."""

    event_type: EventType
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.data is None:
            self.data = {}


class EventEmitter:
    """
    Simple event emitter for pub/sub pattern.

    Allows components to subscribe to events without tight coupling.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Callable]] = {}

    def on(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Subscribe to an event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(callback)

    def off(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Unsubscribe from an event type."""
        if event_type in self._listeners:
            self._listeners[event_type].remove(callback)

    def emit(self, event: AnnotationEvent):
        """Emit an event to all subscribers."""
        for callback in list(self._listeners.get(event.event_type, ())):
            try:
                callback(event)
            except Exception:
                # Log but don't crash on listener errors
                logger.exception(f"Error in {event.event_type.value} listener")

    def clear(self):
        """Clear all event listeners."""
        self._listeners.clear()
