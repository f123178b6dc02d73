"""
Test fixtures and utilities for review annotation tests.

Provides reusable fixtures for viewports, drawing sessions and comment stores.
"""

from unittest.mock import Mock

import numpy as np
import pytest

from review_annotation.core.annotation import (
    AnnotationSet,
    Arrow,
    DrawingSession,
    Freehand,
    Point,
    Rectangle,
    ShapeBuilder,
    ToolType,
    Viewport,
)
from review_annotation.core.comments import (
    CommentStore,
    InMemoryCommentBackend,
    Scope,
)
from review_annotation.utils.config import load_config


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds: float = 1.0):
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def viewport():
    """A 16:9 render area."""
    return Viewport(640, 360)


@pytest.fixture
def cfg():
    """Defaults only, unaffected by the environment of the test run."""
    return load_config(env={})


@pytest.fixture
def builder(viewport, clock):
    return ShapeBuilder(viewport=viewport, clock=clock)


@pytest.fixture
def session(viewport, cfg, clock):
    return DrawingSession(viewport=viewport, cfg=cfg, clock=clock)


@pytest.fixture
def listener():
    return Mock()


@pytest.fixture
def sample_shapes():
    """One annotation of each variant."""
    return [
        Freehand(
            id="a_1",
            points=(Point(0.1, 0.1), Point(0.2, 0.25), Point(0.3, 0.2)),
            color="#ff0000",
            stroke_width=3,
        ),
        Rectangle(id="a_2", origin=Point(0.25, 0.5), width=0.5, height=0.25),
        Arrow(id="a_3", start=Point(0.9, 0.1), end=Point(0.6, 0.4), color="#00ff00"),
    ]


@pytest.fixture
def sample_set(sample_shapes):
    return AnnotationSet(sample_shapes)


@pytest.fixture
def test_image():
    """Create a black BGR test image."""
    return np.zeros((90, 160, 3), dtype=np.uint8)


@pytest.fixture
def scope():
    return Scope("project-1", "file-1", 1)


@pytest.fixture
def backend(clock):
    return InMemoryCommentBackend(clock=clock)


@pytest.fixture
def store(backend, clock):
    store = CommentStore(backend, clock=clock)
    yield store
    store.close()


def _draw(target, tool, *positions):
    """Run one pointer-down/move.../up sequence through a builder or session."""
    target.set_tool(ToolType(tool))
    first, *rest = positions
    target.pointer_down(*first, timestamp=0.0)
    for step, position in enumerate(rest[:-1], start=1):
        target.pointer_move(*position, timestamp=step * 0.1)
    if rest:
        return target.pointer_up(*rest[-1], timestamp=len(rest) * 0.1)
    return target.pointer_up(timestamp=0.1)


@pytest.fixture
def draw():
    """Helper drawing one shape: ``draw(target, "rect", (x0, y0), (x1, y1))``."""
    return _draw
