"""
Comment entities.

A comment lives in the feed of one file version and is addressed by
(project, file, id). Reactions map each participant to a single emoji.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..annotation.annotation_set import EMPTY_PAYLOADS, AnnotationSet
from ..errors import Malformed

logger = logging.getLogger(__name__)

REACTION_TYPES = {
    "like": "👍",
    "love": "❤️",
    "haha": "😄",
    "wow": "😮",
    "sad": "😢",
    "angry": "😠",
    "check": "✅",
}


def reaction_symbol(reaction: str) -> str:
    """Glyph for a reaction key; raw emoji pass through unchanged."""
    return REACTION_TYPES.get(reaction, reaction)


@dataclass(frozen=True)
class Scope:
    """The (project, file, version) key of one comment feed."""

    project_id: str
    file_id: str
    version: int

    def __str__(self):
        return f"{self.project_id}/{self.file_id}@v{self.version}"


@dataclass
class Comment:
    """A top-level comment or a reply in a file version's feed."""

    id: str
    project_id: str
    file_id: str
    version: int
    author: str
    body: str
    created_at: float
    timestamp: Optional[float] = None
    parent_id: Optional[str] = None
    is_resolved: bool = False
    is_pinned: bool = False
    reactions: Dict[str, str] = field(default_factory=dict)
    annotation_data: Optional[str] = None
    is_edited: bool = False
    updated_at: Optional[float] = None
    is_pending: bool = False

    @property
    def scope(self) -> Scope:
        return Scope(self.project_id, self.file_id, self.version)

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def has_annotations(self) -> bool:
        return (
            self.annotation_data is not None
            and self.annotation_data.strip() not in EMPTY_PAYLOADS
        )

    def annotations(self) -> AnnotationSet:
        """
        Decode the embedded annotation payload.

        An undecodable payload yields an empty set; it never breaks the feed.
        """
        try:
            return AnnotationSet.deserialize(self.annotation_data)
        except Malformed as e:
            logger.warning(f"Comment {self.id} carries a malformed payload: {e}")
            return AnnotationSet()

    def reaction_counts(self) -> Dict[str, int]:
        """Number of participants per reaction, in first-seen order."""
        counts: Dict[str, int] = {}
        for reaction in self.reactions.values():
            counts[reaction] = counts.get(reaction, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored document shape (without the id)."""
        return {
            "projectId": self.project_id,
            "fileId": self.file_id,
            "version": self.version,
            "userName": self.author,
            "content": self.body,
            "timestamp": self.timestamp,
            "parentCommentId": self.parent_id,
            "isResolved": self.is_resolved,
            "isPinned": self.is_pinned,
            "reactions": dict(self.reactions),
            "annotationData": self.annotation_data,
            "isEdited": self.is_edited,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, comment_id: str, data: Dict[str, Any]):
        """Create from a stored document; missing flags default to False."""
        reactions = data.get("reactions") or {}
        if not isinstance(reactions, dict):
            raise ValueError(f"reactions must be a mapping, got {type(reactions).__name__}")
        return cls(
            id=comment_id,
            project_id=data["projectId"],
            file_id=data["fileId"],
            version=int(data.get("version") or 0),
            author=data.get("userName") or "",
            body=data.get("content") or "",
            created_at=float(data.get("createdAt") or 0.0),
            timestamp=data.get("timestamp"),
            parent_id=data.get("parentCommentId"),
            is_resolved=bool(data.get("isResolved")),
            is_pinned=bool(data.get("isPinned")),
            reactions={str(k): str(v) for k, v in reactions.items()},
            annotation_data=data.get("annotationData"),
            is_edited=bool(data.get("isEdited")),
            updated_at=data.get("updatedAt"),
        )
