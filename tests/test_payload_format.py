"""
Payloads written by existing review clients must keep decoding.
"""

import json

import pytest

from review_annotation.core.annotation import (
    AnnotationSet,
    Arrow,
    Freehand,
    Point,
    Rectangle,
)
from review_annotation.core.comments import Comment

STORED_PAYLOAD = json.dumps(
    [
        {
            "id": "1712345678901",
            "type": "pen",
            "color": "#ff0000",
            "strokeWidth": 4,
            "points": [0.1, 0.2, 0.15, 0.25, 0.2, 0.3],
        },
        {
            "id": "1712345678902",
            "type": "rect",
            "color": "#00ff00",
            "x": 0.4,
            "y": 0.4,
            "w": 0.2,
            "h": 0.1,
            "rotation": 0,
        },
        {
            "id": "1712345678903",
            "type": "text",
            "color": "#ffffff",
            "x": 0.5,
            "y": 0.5,
            "text": "look here",
            "fontSize": 18,
        },
        {
            "id": 1712345678904,
            "type": "arrow",
            "color": "#ffff00",
            "strokeWidth": 3,
            "startPoint": {"x": 0.9, "y": 0.9},
            "endPoint": {"x": 0.7, "y": 0.6},
        },
    ]
)


def test_stored_payload_decodes():
    pen, rect, arrow = AnnotationSet.deserialize(STORED_PAYLOAD)

    assert pen == Freehand(
        id="1712345678901",
        points=(Point(0.1, 0.2), Point(0.15, 0.25), Point(0.2, 0.3)),
        color="#ff0000",
        stroke_width=4,
    )
    assert rect == Rectangle(
        id="1712345678902", origin=Point(0.4, 0.4), width=0.2, height=0.1, color="#00ff00"
    )
    assert arrow == Arrow(
        id="1712345678904",
        start=Point(0.9, 0.9),
        end=Point(0.7, 0.6),
        color="#ffff00",
        stroke_width=3,
    )


def test_reencoded_payload_keeps_wire_keys():
    items = json.loads(AnnotationSet.deserialize(STORED_PAYLOAD).serialize())
    assert [item["type"] for item in items] == ["pen", "rect", "arrow"]
    for item in items:
        assert {"id", "type", "color", "strokeWidth"} <= set(item)
    assert set(items[1]) >= {"x", "y", "w", "h"}
    assert set(items[2]) >= {"startPoint", "endPoint"}


@pytest.mark.parametrize(
    "document",
    [
        {"projectId": "p", "fileId": "f", "version": 2, "content": "hi"},
        {
            "projectId": "p",
            "fileId": "f",
            "version": 2,
            "userName": "Reviewer",
            "content": "frame 12",
            "timestamp": 0.5,
            "parentCommentId": None,
            "isResolved": True,
            "isPinned": False,
            "reactions": {"u1": "👍"},
            "annotationData": STORED_PAYLOAD,
            "createdAt": 1700000000.0,
        },
    ],
)
def test_stored_comment_documents_decode(document):
    comment = Comment.from_dict("c1", document)
    assert comment.version == 2
    assert comment.scope.file_id == "f"
    if comment.has_annotations:
        assert len(comment.annotations()) == 3
