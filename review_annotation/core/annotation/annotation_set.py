"""
Ordered, undoable collection of finalized annotations.

History is linear: every mutation is recorded as one edit on the undo
stack, and any new mutation after an undo discards the redo stack.
"""

import json
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from ...utils.misc import incrf
from ..errors import Malformed
from .shapes import Annotation, annotation_from_dict, annotation_to_dict, with_id

logger = logging.getLogger(__name__)

EMPTY_PAYLOADS = ("", "null", "[]")


@dataclass(frozen=True)
class HistoryEntry:
    """One history entry: annotations taken out (with their index) and appended."""

    removed: Tuple[Tuple[int, Annotation], ...] = ()
    added: Tuple[Annotation, ...] = ()


class AnnotationSet:
    """
    Annotations of one comment or one live drawing session.

    Identifiers are unique within the set. Annotations themselves are
    immutable; ``replace`` retracts one and appends its successor under a
    fresh identifier.
    """

    def __init__(self, annotations=None):
        self._annotations: List[Annotation] = []
        self._undo_stack: List[HistoryEntry] = []
        self._redo_stack: List[HistoryEntry] = []
        self._ids = incrf()
        for annotation in annotations or ():
            self._check_unique(annotation.id)
            self._annotations.append(annotation)

    # ==================== Read access ====================

    @property
    def annotations(self) -> Tuple[Annotation, ...]:
        return tuple(self._annotations)

    def __len__(self):
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(tuple(self._annotations))

    def __bool__(self):
        return bool(self._annotations)

    def get(self, annotation_id: str) -> Optional[Annotation]:
        for annotation in self._annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def next_id(self) -> str:
        """Fresh identifier, unused by the set and by its history."""
        taken = self._known_ids()
        while True:
            candidate = f"a_{next(self._ids)}"
            if candidate not in taken:
                return candidate

    # ==================== Mutations ====================

    def append(self, annotation: Annotation):
        """Append a finalized annotation; clears the redo stack."""
        self._check_unique(annotation.id)
        self._record(HistoryEntry(added=(annotation,)))

    def retract(self, annotation_id: str) -> Annotation:
        """Remove one annotation as an undoable edit."""
        index = self._index_of(annotation_id)
        annotation = self._annotations[index]
        self._record(HistoryEntry(removed=((index, annotation),)))
        return annotation

    def replace(self, annotation_id: str, annotation: Annotation) -> Annotation:
        """
        Retract ``annotation_id`` and append ``annotation`` in a single edit.

        The successor always gets a new identifier.

        Returns:
            The appended annotation
        """
        index = self._index_of(annotation_id)
        successor = with_id(annotation, self.next_id())
        self._record(
            HistoryEntry(removed=((index, self._annotations[index]),), added=(successor,))
        )
        return successor

    def clear(self) -> bool:
        """Remove everything as one undoable edit; False when already empty."""
        if not self._annotations:
            return False
        self._record(HistoryEntry(removed=tuple(enumerate(self._annotations))))
        return True

    def undo(self) -> Optional[HistoryEntry]:
        """
        Revert the most recent edit.

        Returns:
            The reverted edit, or None at the bottom of history
        """
        if not self._undo_stack:
            return None
        edit = self._undo_stack.pop()
        self._revert(edit)
        self._redo_stack.append(edit)
        return edit

    def redo(self) -> Optional[HistoryEntry]:
        """Re-apply the most recently undone edit, None when nothing to redo."""
        if not self._redo_stack:
            return None
        edit = self._redo_stack.pop()
        self._apply(edit)
        self._undo_stack.append(edit)
        return edit

    # ==================== Serialization ====================

    def serialize(self) -> str:
        """Encode the annotations as the persisted JSON payload."""
        return json.dumps(
            [annotation_to_dict(a) for a in self._annotations],
            ensure_ascii=False,
            separators=(",", ":"),
        )

    @classmethod
    def deserialize(cls, payload: Optional[str]) -> "AnnotationSet":
        """
        Decode a persisted payload into a set with empty history.

        Unknown variant tags and undecodable items are skipped.

        Raises:
            Malformed: If the payload itself is not a JSON array
        """
        if payload is None or payload.strip() in EMPTY_PAYLOADS:
            return cls()
        try:
            items = json.loads(payload)
        except ValueError as e:
            raise Malformed(f"Annotation payload is not valid JSON: {e}") from e
        if items is None:
            return cls()
        if not isinstance(items, list):
            raise Malformed(
                f"Annotation payload must be an array, got {type(items).__name__}"
            )

        result = cls()
        for position, item in enumerate(items):
            try:
                annotation = annotation_from_dict(item)
            except Malformed as e:
                logger.warning(f"Skipping annotation #{position}: {e}")
                continue
            if annotation is None:
                logger.debug(
                    f"Skipping annotation #{position} with unknown type {item.get('type')!r}"
                )
                continue
            if result.get(annotation.id) is not None:
                annotation = with_id(annotation, result.next_id())
            result._annotations.append(annotation)
        return result

    # ==================== Internals ====================

    def _record(self, edit: HistoryEntry):
        self._apply(edit)
        self._undo_stack.append(edit)
        self._redo_stack.clear()

    def _apply(self, edit: HistoryEntry):
        removed_ids = {a.id for _, a in edit.removed}
        self._annotations = [a for a in self._annotations if a.id not in removed_ids]
        self._annotations.extend(edit.added)

    def _revert(self, edit: HistoryEntry):
        added_ids = {a.id for a in edit.added}
        self._annotations = [a for a in self._annotations if a.id not in added_ids]
        for index, annotation in sorted(edit.removed, key=lambda item: item[0]):
            self._annotations.insert(index, annotation)

    def _index_of(self, annotation_id: str) -> int:
        for index, annotation in enumerate(self._annotations):
            if annotation.id == annotation_id:
                return index
        raise KeyError(annotation_id)

    def _known_ids(self):
        ids = {a.id for a in self._annotations}
        for edit in self._undo_stack + self._redo_stack:
            ids.update(a.id for _, a in edit.removed)
            ids.update(a.id for a in edit.added)
        return ids

    def _check_unique(self, annotation_id: str):
        if annotation_id in self._known_ids():
            raise ValueError(f"Duplicate annotation id {annotation_id!r}")
