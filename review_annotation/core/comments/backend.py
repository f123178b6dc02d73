"""
Boundary to the external real-time document store.

The comment store only needs four capabilities from the backend: add a
document, read one, apply targeted field updates, and watch the documents
of one scope. ``InMemoryCommentBackend`` provides them in-process for a
single deployment, for tests and for the command line tools.
"""

import asyncio
import copy
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import NotFound, Unavailable
from .models import Scope

logger = logging.getLogger(__name__)

Document = Tuple[str, Dict[str, Any]]
SnapshotListener = Callable[[List[Document]], None]


class _DeleteField:
    def __repr__(self):
        return "DELETE_FIELD"


# Update value removing the targeted key instead of setting it
DELETE_FIELD = _DeleteField()


class CommentBackend(ABC):
    """Asynchronous, last-writer-wins document store holding comments."""

    @abstractmethod
    async def add(
        self, scope: Scope, fields: Dict[str, Any], op_id: Optional[str] = None
    ) -> Document:
        """
        Store a new comment document.

        The backend assigns the id and ``createdAt``. Replaying an already
        applied ``op_id`` returns the document created the first time.
        """

    @abstractmethod
    async def get(self, project_id: str, comment_id: str) -> Optional[Dict[str, Any]]:
        """Current document, or None."""

    @abstractmethod
    async def update(
        self,
        scope: Scope,
        comment_id: str,
        fields: Dict[str, Any],
        op_id: Optional[str] = None,
    ) -> bool:
        """
        Apply targeted updates.

        Keys are dotted field paths (``"reactions.alice"``); ``DELETE_FIELD``
        removes the key. Replaying an already applied ``op_id`` is a no-op.
        Only a comment of ``scope`` (project, file and version) is updated.

        Returns:
            False when the operation had already been applied

        Raises:
            NotFound: If the document does not exist in ``scope``
        """

    @abstractmethod
    def watch(self, scope: Scope, listener: SnapshotListener) -> Callable[[], None]:
        """
        Call ``listener`` with every document of ``scope`` on each change.

        Returns:
            A function that stops the watch
        """


def in_scope(document: Dict[str, Any], scope: Scope) -> bool:
    """True when a stored document belongs to the feed of ``scope``."""
    return (
        document.get("projectId") == scope.project_id
        and document.get("fileId") == scope.file_id
        and document.get("version") == scope.version
    )


def apply_field_updates(document: Dict[str, Any], fields: Dict[str, Any]):
    """Apply dotted-path updates to a nested dictionary in place."""
    for path, value in fields.items():
        *parents, leaf = path.split(".")
        target = document
        for part in parents:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        if value is DELETE_FIELD:
            target.pop(leaf, None)
        else:
            target[leaf] = copy.deepcopy(value)


class InMemoryCommentBackend(CommentBackend):
    """
    In-process backend.

    Features:
    - Server-assigned ids and creation times
    - Availability switch to simulate a lost connection
    - Applied operation ids, so replays of ``add``/``update`` are safe
    - Snapshot fan-out to watchers after every write
    """

    def __init__(self, clock: Callable[[], float] = time.time, latency: float = 0.0):
        """
        Initialize in-memory backend.

        Args:
            clock: Source of server timestamps
            latency: Seconds each round trip is delayed by
        """
        self.clock = clock
        self.latency = latency
        self.available = True

        self._documents: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._applied_ops: Dict[str, Any] = {}
        self._watchers: Dict[Scope, List[SnapshotListener]] = defaultdict(list)

    def set_available(self, available: bool):
        self.available = available
        logger.info(f"Comment backend is now {'online' if available else 'offline'}")

    # ==================== Writes ====================

    async def add(self, scope, fields, op_id=None):
        await self._round_trip()
        if op_id is not None and op_id in self._applied_ops:
            project_id, comment_id = self._applied_ops[op_id]
            logger.debug(f"Operation {op_id} already applied, returning {comment_id}")
            return comment_id, copy.deepcopy(self._documents[project_id][comment_id])

        comment_id = uuid.uuid4().hex
        document = copy.deepcopy(fields)
        document.update(
            projectId=scope.project_id,
            fileId=scope.file_id,
            version=scope.version,
            createdAt=self.clock(),
        )
        self._documents[scope.project_id][comment_id] = document
        if op_id is not None:
            self._applied_ops[op_id] = (scope.project_id, comment_id)
        self._notify(scope)
        return comment_id, copy.deepcopy(document)

    async def get(self, project_id, comment_id):
        await self._round_trip()
        document = self._documents.get(project_id, {}).get(comment_id)
        return copy.deepcopy(document) if document is not None else None

    async def update(self, scope, comment_id, fields, op_id=None):
        await self._round_trip()
        if op_id is not None and op_id in self._applied_ops:
            logger.debug(f"Operation {op_id} already applied, skipping")
            return False
        document = self._documents.get(scope.project_id, {}).get(comment_id)
        if document is None or not in_scope(document, scope):
            raise NotFound(f"Comment {comment_id} not found in {scope}", op_id)

        apply_field_updates(document, fields)
        if op_id is not None:
            self._applied_ops[op_id] = (scope.project_id, comment_id)
        self._notify(scope)
        return True

    # ==================== Watches ====================

    def watch(self, scope, listener):
        self._watchers[scope].append(listener)
        listener(self._snapshot(scope))

        def stop():
            listeners = self._watchers.get(scope)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._watchers[scope]

        return stop

    def _snapshot(self, scope: Scope) -> List[Document]:
        return [
            (comment_id, copy.deepcopy(document))
            for comment_id, document in self._documents.get(scope.project_id, {}).items()
            if in_scope(document, scope)
        ]

    def _notify(self, scope: Scope):
        listeners = list(self._watchers.get(scope, ()))
        if not listeners:
            return
        snapshot = self._snapshot(scope)
        for listener in listeners:
            try:
                listener(copy.deepcopy(snapshot))
            except Exception:
                logger.exception(f"Error in snapshot listener for {scope}")

    # ==================== Internals ====================

    async def _round_trip(self):
        await asyncio.sleep(self.latency)
        if not self.available:
            raise Unavailable("Comment backend is unreachable")
