"""
Real-time comment store.

Layers pinning, reactions, resolution, edits and ordering on top of a
``CommentBackend``. Writes are coroutines; while a write is in flight its
target state is shown through a local pending overlay, which is dropped
once the backend confirms it. A failed write keeps its overlay, marked as
pending, until the caller retries it with the same ``op_id`` or reverts it.
"""

import asyncio
import dataclasses
import logging
import time
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..annotation.annotation_set import EMPTY_PAYLOADS, AnnotationSet
from ..errors import NotFound, StoreError
from .backend import DELETE_FIELD, CommentBackend, in_scope
from .models import Comment, Scope
from .ordering import group_threads, sort_comments
from .registry import FeedCallback, Subscription, SubscriptionRegistry

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"

# Outcomes of confirmed reaction toggles kept for answering retries
SETTLED_REACTIONS_KEPT = 256


@dataclass
class PendingWrite:
    """A local, not yet confirmed write shown on top of the confirmed feed."""

    op_id: str
    scope: Scope
    comment_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    reaction: Optional[Tuple[str, Optional[str]]] = None
    comment: Optional[Comment] = None
    error: Optional[StoreError] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def apply(self, comment: Comment) -> Comment:
        if comment.id != self.comment_id:
            return comment
        changes = dict(self.fields)
        if self.reaction is not None:
            participant_id, emoji = self.reaction
            reactions = dict(comment.reactions)
            if emoji is None:
                reactions.pop(participant_id, None)
            else:
                reactions[participant_id] = emoji
            changes["reactions"] = reactions
        return dataclasses.replace(comment, is_pending=True, **changes)


class CommentStore:
    """
    Comment feeds of file versions, kept live through backend watches.

    Subscribers receive the whole ordered feed (never a diff) after every
    change, including changes of the pending overlay.
    """

    def __init__(self, backend: CommentBackend, clock: Callable[[], float] = time.time):
        """
        Initialize comment store.

        Args:
            backend: Real-time document store
            clock: Local time source for optimistic entries and edit times
        """
        self.backend = backend
        self.clock = clock
        self.registry = SubscriptionRegistry(
            on_first=self._start_watch, on_last=self._stop_watch
        )

        self._confirmed: Dict[Scope, List[Comment]] = {}
        self._watches: Dict[Scope, Callable[[], None]] = {}
        self._pending: "OrderedDict[str, PendingWrite]" = OrderedDict()
        self._reaction_locks: Dict[Tuple[str, str, str], asyncio.Lock] = {}
        self._reaction_users: Dict[Tuple[str, str, str], int] = {}
        self._settled_reactions: "OrderedDict[str, Optional[str]]" = OrderedDict()

    # ==================== Reading ====================

    def subscribe(self, scope: Scope, callback: FeedCallback) -> Subscription:
        """
        Observe the ordered feed of ``scope`` until the subscription is cancelled.

        The current feed is delivered right away.
        """
        already_watched = scope in self._watches
        subscription = self.registry.subscribe(scope, callback)
        if already_watched:
            subscription.deliver(self.comments(scope))
        return subscription

    def comments(self, scope: Scope) -> List[Comment]:
        """Confirmed comments merged with the pending overlay, ordered."""
        comments = list(self._confirmed.get(scope, ()))
        for pending in self._pending.values():
            if pending.scope != scope:
                continue
            if pending.comment is not None:
                comments.append(pending.comment)
            else:
                comments = [pending.apply(c) for c in comments]
        return sort_comments(comments)

    def threads(self, scope: Scope) -> List[Tuple[Comment, List[Comment]]]:
        return group_threads(self.comments(scope))

    def pending_writes(self, scope: Optional[Scope] = None) -> List[PendingWrite]:
        return [p for p in self._pending.values() if scope is None or p.scope == scope]

    # ==================== Writing ====================

    async def create(
        self,
        scope: Scope,
        author: str,
        body: str,
        timestamp: Optional[float] = None,
        parent_id: Optional[str] = None,
        annotations: Union[AnnotationSet, str, None] = None,
        op_id: Optional[str] = None,
    ) -> Comment:
        """
        Post a top-level comment or a reply.

        Args:
            scope: Feed the comment belongs to
            author: Display name of the participant
            body: Comment text
            timestamp: Media time in seconds, for time-based media
            parent_id: Comment replied to; replies to a reply are attached
                to its top-level comment
            annotations: Annotation set or serialized payload
            op_id: Client operation id; reuse it to retry safely

        Returns:
            The confirmed comment

        Raises:
            ValueError: If there is neither text nor annotations
            NotFound: If ``parent_id`` does not exist
            Unavailable: If the backend cannot be reached
        """
        body = (body or "").strip()
        annotation_data = _payload_of(annotations)
        if not body and annotation_data is None:
            raise ValueError("A comment needs text or annotations")
        author = (author or "").strip() or ANONYMOUS
        op_id = op_id or uuid.uuid4().hex

        optimistic = Comment(
            id=f"pending-{op_id}",
            project_id=scope.project_id,
            file_id=scope.file_id,
            version=scope.version,
            author=author,
            body=body,
            created_at=self.clock(),
            timestamp=timestamp,
            parent_id=parent_id,
            annotation_data=annotation_data,
            is_pending=True,
        )
        self._track(PendingWrite(op_id=op_id, scope=scope, comment=optimistic))

        try:
            if parent_id is not None:
                parent_id = await self._resolve_parent(scope, parent_id, op_id)
            fields = {
                "userName": author,
                "content": body,
                "timestamp": timestamp,
                "parentCommentId": parent_id,
                "isResolved": False,
                "isPinned": False,
                "reactions": {},
                "annotationData": annotation_data,
                "isEdited": False,
                "updatedAt": None,
            }
            comment_id, document = await self.backend.add(scope, fields, op_id=op_id)
        except NotFound as e:
            self._abandon(op_id, scope, e)
            raise
        except StoreError as e:
            self._fail(op_id, e)
            raise

        self._settle(op_id)
        logger.debug(f"Comment {comment_id} created in {scope}")
        return Comment.from_dict(comment_id, document)

    async def set_resolved(
        self, scope: Scope, comment_id: str, resolved: bool, op_id: Optional[str] = None
    ):
        await self._mutate(
            scope,
            comment_id,
            {"is_resolved": bool(resolved)},
            {"isResolved": bool(resolved)},
            op_id,
        )

    async def set_pinned(
        self, scope: Scope, comment_id: str, pinned: bool, op_id: Optional[str] = None
    ):
        await self._mutate(
            scope,
            comment_id,
            {"is_pinned": bool(pinned)},
            {"isPinned": bool(pinned)},
            op_id,
        )

    async def toggle_pin(self, scope: Scope, comment_id: str) -> bool:
        """Flip the pin flag from its current stored value; returns the new value."""
        document = await self._fetch(scope, comment_id, op_id=None)
        pinned = not bool(document.get("isPinned"))
        await self.set_pinned(scope, comment_id, pinned)
        return pinned

    async def edit(
        self,
        scope: Scope,
        comment_id: str,
        body: Optional[str] = None,
        author: Optional[str] = None,
        op_id: Optional[str] = None,
    ):
        """
        Change the text and/or the display name of a comment.

        A text change marks the comment as edited.
        """
        local: Dict[str, Any] = {}
        remote: Dict[str, Any] = {}
        if body is not None:
            body = body.strip()
            if not body:
                raise ValueError("Comment text cannot be empty")
            updated_at = self.clock()
            local.update(body=body, is_edited=True, updated_at=updated_at)
            remote.update(content=body, isEdited=True, updatedAt=updated_at)
        if author is not None:
            author = author.strip()
            if not author:
                raise ValueError("Display name cannot be empty")
            local["author"] = author
            remote["userName"] = author
        if not remote:
            raise ValueError("Nothing to edit")
        await self._mutate(scope, comment_id, local, remote, op_id)

    async def toggle_reaction(
        self,
        scope: Scope,
        comment_id: str,
        participant_id: str,
        emoji: str,
        op_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Toggle ``emoji`` for one participant.

        Reacting with the emoji the participant already holds removes it;
        any other emoji replaces it. Only the participant's own key is
        written. Toggles of the same participant on the same comment run
        one after the other.

        Returns:
            The participant's reaction afterwards, None when removed
        """
        if not participant_id or "." in participant_id:
            raise ValueError(f"Invalid participant id {participant_id!r}")
        if not emoji:
            raise ValueError("Reaction cannot be empty")
        op_id = op_id or uuid.uuid4().hex

        if op_id in self._settled_reactions:
            logger.debug(f"Reaction {op_id} already confirmed")
            return self._settled_reactions[op_id]

        key = (scope.project_id, comment_id, participant_id)
        async with self._reaction_lock(key):
            reaction = await self._reaction_target(
                scope, comment_id, participant_id, emoji, op_id
            )
            self._track(
                PendingWrite(
                    op_id=op_id,
                    scope=scope,
                    comment_id=comment_id,
                    reaction=(participant_id, reaction),
                )
            )
            value = DELETE_FIELD if reaction is None else reaction
            applied = await self._write(
                scope, comment_id, {f"reactions.{participant_id}": value}, op_id
            )
            if not applied:
                # A replayed operation; report what the first attempt stored
                document = await self._fetch(scope, comment_id, op_id)
                reaction = (document.get("reactions") or {}).get(participant_id)
        self._settled_reactions[op_id] = reaction
        while len(self._settled_reactions) > SETTLED_REACTIONS_KEPT:
            self._settled_reactions.popitem(last=False)
        return reaction

    def revert(self, op_id: str) -> bool:
        """
        Drop the optimistic state of a write.

        Returns:
            False if no such pending write exists
        """
        pending = self._pending.pop(op_id, None)
        if pending is None:
            return False
        logger.debug(f"Reverted pending write {op_id}")
        self._publish(pending.scope)
        return True

    def close(self):
        """Cancel every subscription and stop every backend watch."""
        self.registry.cancel_all()

    # ==================== Internals ====================

    async def _mutate(self, scope, comment_id, local, remote, op_id):
        op_id = op_id or uuid.uuid4().hex
        self._track(
            PendingWrite(op_id=op_id, scope=scope, comment_id=comment_id, fields=local)
        )
        await self._write(scope, comment_id, remote, op_id)

    async def _write(self, scope, comment_id, remote, op_id) -> bool:
        try:
            applied = await self.backend.update(scope, comment_id, remote, op_id=op_id)
        except NotFound as e:
            self._abandon(op_id, scope, e)
            raise
        except StoreError as e:
            self._fail(op_id, e)
            raise
        self._settle(op_id)
        return applied

    async def _fetch(self, scope, comment_id, op_id) -> Dict[str, Any]:
        try:
            document = await self.backend.get(scope.project_id, comment_id)
        except StoreError as e:
            _attach_op_id(e, op_id)
            raise
        if document is None or not in_scope(document, scope):
            raise NotFound(f"Comment {comment_id} not found in {scope}", op_id)
        return document

    async def _reaction_target(
        self, scope, comment_id, participant_id, emoji, op_id
    ) -> Optional[str]:
        pending = self._pending.get(op_id)
        if pending is not None and pending.reaction is not None:
            # Retry of a failed attempt keeps the target it was going for
            return pending.reaction[1]
        document = await self._fetch(scope, comment_id, op_id)
        current = (document.get("reactions") or {}).get(participant_id)
        return None if current == emoji else emoji

    @asynccontextmanager
    async def _reaction_lock(self, key):
        lock = self._reaction_locks.get(key)
        if lock is None:
            lock = self._reaction_locks[key] = asyncio.Lock()
        self._reaction_users[key] = self._reaction_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._reaction_users[key] -= 1
            if not self._reaction_users[key]:
                del self._reaction_users[key]
                del self._reaction_locks[key]

    async def _resolve_parent(self, scope, parent_id, op_id) -> str:
        document = await self._fetch(scope, parent_id, op_id)
        return document.get("parentCommentId") or parent_id

    def _track(self, pending: PendingWrite):
        self._pending.pop(pending.op_id, None)
        self._pending[pending.op_id] = pending
        self._publish(pending.scope)

    def _settle(self, op_id: str):
        pending = self._pending.pop(op_id, None)
        if pending is not None:
            self._publish(pending.scope)

    def _abandon(self, op_id: str, scope: Scope, error: StoreError):
        # Nothing left to show the change on
        _attach_op_id(error, op_id)
        self._pending.pop(op_id, None)
        self._publish(scope)
        logger.warning(f"Abandoned write {op_id}: {error}")

    def _fail(self, op_id: str, error: StoreError):
        _attach_op_id(error, op_id)
        pending = self._pending.get(op_id)
        if pending is not None:
            pending.error = error
            self._publish(pending.scope)
        logger.warning(f"Write {op_id} failed: {error}")

    def _publish(self, scope: Scope):
        if self.registry.subscribers(scope):
            self.registry.publish(scope, self.comments(scope))

    def _start_watch(self, scope: Scope):
        logger.debug(f"Watching comments of {scope}")
        self._watches[scope] = self.backend.watch(
            scope, lambda documents: self._on_snapshot(scope, documents)
        )

    def _stop_watch(self, scope: Scope):
        stop = self._watches.pop(scope, None)
        if stop is not None:
            stop()
        self._confirmed.pop(scope, None)
        logger.debug(f"Stopped watching comments of {scope}")

    def _on_snapshot(self, scope: Scope, documents):
        comments = []
        for comment_id, document in documents:
            try:
                comments.append(Comment.from_dict(comment_id, document))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping undecodable comment {comment_id}: {e}")
        self._confirmed[scope] = comments
        self._publish(scope)


def _payload_of(annotations: Union[AnnotationSet, str, None]) -> Optional[str]:
    if annotations is None:
        return None
    if isinstance(annotations, AnnotationSet):
        return annotations.serialize() if annotations else None
    if annotations.strip() in EMPTY_PAYLOADS:
        return None
    return annotations


def _attach_op_id(error: StoreError, op_id: Optional[str]):
    if error.op_id is None:
        error.op_id = op_id
