"""
Replays a recorded drawing.

The events file holds a JSON list. The first entry may set the view size,
the rest are pointer and tool events::

    [
        {"type": "resize", "width": 640, "height": 360},
        {"type": "tool", "tool": "rect", "color": "#ff0000"},
        {"type": "down", "x": 10, "y": 10, "t": 0.0},
        {"type": "move", "x": 80, "y": 60, "t": 0.1},
        {"type": "up", "x": 120, "y": 90, "t": 0.2},
        {"type": "undo"}
    ]
"""

import json
import logging
from gettext import gettext as _
from typing import Dict, Iterable

from review_annotation.core.annotation import DrawingSession, ToolType
from review_annotation.utils.config import load_config
from review_annotation.utils.misc import try_tqdm

logger = logging.getLogger(__name__)


def apply_event(session: DrawingSession, event: Dict):
    kind = event.get("type")
    if kind == "resize":
        session.resize(event["width"], event["height"])
    elif kind == "tool":
        if "tool" in event:
            session.set_tool(ToolType(event["tool"]))
        if "color" in event:
            session.set_color(event["color"])
        if "stroke_width" in event:
            session.set_stroke_width(event["stroke_width"])
    elif kind == "down":
        session.pointer_down(event["x"], event["y"], event.get("t"))
    elif kind == "move":
        session.pointer_move(event["x"], event["y"], event.get("t"))
    elif kind == "up":
        session.pointer_up(event.get("x"), event.get("y"), event.get("t"))
    elif kind == "leave":
        session.pointer_leave()
    elif kind == "erase":
        session.erase_at(event["x"], event["y"], event.get("radius"))
    elif kind == "undo":
        session.undo()
    elif kind == "redo":
        session.redo()
    elif kind == "clear":
        session.clear()
    else:
        raise ValueError(f"Unknown event type {kind!r}")


def replay(events: Iterable[Dict], cfg=None) -> DrawingSession:
    session = DrawingSession(cfg=cfg)
    for event in events:
        apply_event(session, event)
    return session


def handle(args):
    cfg = load_config(args.config)
    events = json.loads(args.events.read_text(encoding="utf-8"))
    if not isinstance(events, list):
        raise SystemExit(_("{path} must hold a JSON list").format(path=args.events))

    session = replay(try_tqdm(events, desc=_("Events")), cfg=cfg)
    num_annotations = len(session.annotation_set)
    payload = session.submit()

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(payload or "[]", encoding="utf-8")
    logger.info(
        _("Wrote {count} annotations to {path}").format(
            count=num_annotations, path=args.output
        )
    )
