"""
Raster adapter for drawing sessions.

Renders annotations onto OpenCV images. Annotations are stored in unit
space, so the same set renders at any image resolution.
"""

import logging
from typing import Callable, Iterable, Optional, Tuple

import cv2
import numpy as np

from ..core.annotation import (
    AnnotationEvent,
    Arrow,
    DrawingSession,
    EventType,
    Freehand,
    Rectangle,
    Viewport,
)
from ..core.annotation.shapes import DEFAULT_COLOR, Annotation
from ..core.annotation.utils import outline_pixels
from ..utils.config import load_config

logger = logging.getLogger(__name__)


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    """
    Convert ``#rgb`` or ``#rrggbb`` into an OpenCV BGR tuple.

    Raises:
        ValueError: If ``color`` is not a hex color
    """
    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Not a hex color: {color!r}")
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return b, g, r


def _color_of(annotation: Annotation) -> Tuple[int, int, int]:
    try:
        return hex_to_bgr(annotation.color)
    except ValueError:
        logger.warning(
            f"Annotation {annotation.id} has color {annotation.color!r}, "
            f"drawing it with {DEFAULT_COLOR}"
        )
        return hex_to_bgr(DEFAULT_COLOR)


def render_annotations(
    image: np.ndarray,
    annotations: Iterable[Annotation],
    thickness_scale: float = 1.0,
    arrow_tip_length: float = 0.15,
) -> np.ndarray:
    """
    Draw annotations over a copy of ``image``.

    Args:
        image: HxW or HxWx3 uint8 image; its size is the viewport
        annotations: Unit-space annotations, drawn in order
        thickness_scale: Multiplier applied to every stroke width
        arrow_tip_length: Arrow head length relative to the arrow length

    Returns:
        The rendered image
    """
    vis = image.copy()
    height, width = vis.shape[:2]
    viewport = Viewport(width, height)

    for annotation in annotations:
        color = _color_of(annotation)
        thickness = max(1, int(round(annotation.stroke_width * thickness_scale)))
        pixels = np.round(outline_pixels(annotation, viewport)).astype(np.int32)

        if isinstance(annotation, Freehand):
            cv2.polylines(
                vis, [pixels.reshape(-1, 1, 2)], False, color, thickness, cv2.LINE_AA
            )
        elif isinstance(annotation, Rectangle):
            cv2.rectangle(
                vis, tuple(pixels[0]), tuple(pixels[2]), color, thickness, cv2.LINE_AA
            )
        elif isinstance(annotation, Arrow):
            cv2.arrowedLine(
                vis,
                tuple(pixels[0]),
                tuple(pixels[1]),
                color,
                thickness,
                cv2.LINE_AA,
                tipLength=arrow_tip_length,
            )
    return vis


class RasterAnnotationAdapter:
    """
    Adapter connecting a DrawingSession to a raster surface.

    Provides a compatibility layer that:
    - Keeps the session viewport in sync with the background image
    - Translates session events to a redraw callback
    - Renders the committed annotations plus the shape being drawn
    """

    def __init__(
        self,
        session: DrawingSession,
        update_image_callback: Optional[Callable] = None,
        cfg=None,
    ):
        """
        Initialize adapter.

        Args:
            session: Core drawing session
            update_image_callback: Called whenever the picture changes
            cfg: Configuration tree; the ``render`` section is used
        """
        if cfg is None:
            cfg = session.cfg if session.cfg is not None else load_config()

        self.session = session
        self.update_image_callback = update_image_callback
        self.thickness_scale = float(cfg.render.thickness_scale)
        self.arrow_tip_length = float(cfg.render.arrow_tip_length)
        self.image: Optional[np.ndarray] = None

        for event_type in (
            EventType.DRAWING_STARTED,
            EventType.ANNOTATIONS_CHANGED,
            EventType.DRAWING_CANCELLED,
            EventType.SESSION_LOADED,
            EventType.SESSION_SUBMITTED,
        ):
            self.session.events.on(event_type, self._on_change)

    def _on_change(self, event: AnnotationEvent):
        if self.update_image_callback:
            self.update_image_callback()

    def set_image(self, image: np.ndarray):
        """Use ``image`` as background; the viewport follows its size."""
        self.image = image
        height, width = image.shape[:2]
        self.session.resize(width, height)

    def get_visualization(self, include_preview: bool = True) -> Optional[np.ndarray]:
        """
        Background image with every annotation drawn over it.

        Returns:
            BGR image, or None before ``set_image``
        """
        if self.image is None:
            return None

        annotations = list(self.session.annotations)
        if include_preview:
            preview = self.session.builder.preview()
            if preview is not None:
                annotations.append(preview)

        return render_annotations(
            self.image,
            annotations,
            thickness_scale=self.thickness_scale,
            arrow_tip_length=self.arrow_tip_length,
        )
