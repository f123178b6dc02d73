"""
Tests for CommentStore.

Every scenario runs against the in-memory backend; coroutines are driven
with ``asyncio.run``.
"""

import asyncio

import pytest

from review_annotation.core.annotation import AnnotationSet, Arrow, Point
from review_annotation.core.comments import CommentStore, Scope
from review_annotation.core.errors import NotFound, Unavailable


class Feed:
    """Subscriber recording every snapshot it receives."""

    def __init__(self):
        self.snapshots = []

    def __call__(self, comments):
        self.snapshots.append(comments)

    @property
    def latest(self):
        return self.snapshots[-1]

    def ids(self):
        return [c.id for c in self.latest]


@pytest.fixture
def feed():
    return Feed()


class TestCreate:
    def test_subscribe_delivers_current_feed(self, store, scope, feed):
        store.subscribe(scope, feed)
        assert feed.snapshots == [[]]

    def test_create_is_confirmed(self, store, scope, feed):
        store.subscribe(scope, feed)
        comment = asyncio.run(store.create(scope, "Alice", "  Looks good  ", timestamp=12.5))

        assert comment.body == "Looks good"
        assert comment.author == "Alice"
        assert comment.timestamp == 12.5
        assert not comment.is_pending
        assert feed.ids() == [comment.id]
        assert store.pending_writes() == []

    def test_pending_entry_is_shown_before_confirmation(self, store, scope, feed):
        store.subscribe(scope, feed)
        comment = asyncio.run(store.create(scope, "Alice", "hi", op_id="op-1"))

        pending_snapshots = [s for s in feed.snapshots if any(c.is_pending for c in s)]
        assert pending_snapshots
        (optimistic,) = pending_snapshots[0]
        assert optimistic.id == "pending-op-1"
        assert optimistic.body == "hi"
        assert feed.latest[0].id == comment.id
        assert not feed.latest[0].is_pending

    def test_empty_comment_is_rejected(self, store, scope):
        with pytest.raises(ValueError):
            asyncio.run(store.create(scope, "Alice", "   "))

    def test_annotation_only_comment(self, store, scope):
        annotations = AnnotationSet(
            [Arrow(id="a_1", start=Point(0.1, 0.1), end=Point(0.5, 0.5))]
        )
        comment = asyncio.run(store.create(scope, "Alice", "", annotations=annotations))
        assert comment.has_annotations
        assert comment.annotations().annotations == annotations.annotations

    def test_empty_annotation_set_is_not_stored(self, store, scope):
        comment = asyncio.run(
            store.create(scope, "Alice", "text", annotations=AnnotationSet())
        )
        assert comment.annotation_data is None

    def test_blank_author_is_anonymous(self, store, scope):
        comment = asyncio.run(store.create(scope, " ", "text"))
        assert comment.author == "Anonymous"

    def test_scopes_are_isolated(self, store, scope, feed):
        other = Scope(scope.project_id, scope.file_id, scope.version + 1)
        other_feed = Feed()
        store.subscribe(scope, feed)
        store.subscribe(other, other_feed)

        asyncio.run(store.create(other, "Bob", "on v2"))
        assert feed.latest == []
        assert len(other_feed.latest) == 1


class TestOrdering:
    def test_pinned_first_then_newest(self, store, scope, feed, clock):
        async def scenario():
            old = await store.create(scope, "Alice", "older")
            clock.advance()
            new = await store.create(scope, "Bob", "newer")
            assert feed.ids() == [new.id, old.id]

            await store.set_pinned(scope, old.id, True)
            assert feed.ids() == [old.id, new.id]
            return old, new

        store.subscribe(scope, feed)
        old, new = asyncio.run(scenario())
        assert feed.latest[0].is_pinned

    def test_toggle_pin(self, store, scope, feed):
        async def scenario():
            comment = await store.create(scope, "Alice", "pin me")
            assert await store.toggle_pin(scope, comment.id) is True
            assert feed.latest[0].is_pinned
            assert await store.toggle_pin(scope, comment.id) is False
            assert not feed.latest[0].is_pinned

        store.subscribe(scope, feed)
        asyncio.run(scenario())

    def test_threads(self, store, scope, clock):
        async def scenario():
            top = await store.create(scope, "Alice", "question")
            clock.advance()
            first = await store.create(scope, "Bob", "answer", parent_id=top.id)
            clock.advance()
            second = await store.create(scope, "Alice", "thanks", parent_id=first.id)
            return top, first, second

        store.subscribe(scope, lambda comments: None)
        top, first, second = asyncio.run(scenario())

        # A reply to a reply hangs off the top-level comment
        assert second.parent_id == top.id
        assert store.threads(scope) == [(top, [first, second])]


class TestMutations:
    def test_resolve(self, store, scope, feed):
        async def scenario():
            comment = await store.create(scope, "Alice", "fix this")
            await store.set_resolved(scope, comment.id, True)

        store.subscribe(scope, feed)
        asyncio.run(scenario())
        assert feed.latest[0].is_resolved

    def test_edit(self, store, scope, feed, clock):
        async def scenario():
            comment = await store.create(scope, "Alice", "typo")
            clock.advance(5)
            await store.edit(scope, comment.id, body="fixed", author="Alice B.")

        store.subscribe(scope, feed)
        asyncio.run(scenario())
        (comment,) = feed.latest
        assert comment.body == "fixed"
        assert comment.author == "Alice B."
        assert comment.is_edited
        assert comment.updated_at == clock()

    def test_edit_requires_content(self, store, scope):
        with pytest.raises(ValueError):
            asyncio.run(store.edit(scope, "any", body=" "))
        with pytest.raises(ValueError):
            asyncio.run(store.edit(scope, "any"))

    def test_missing_comment(self, store, scope, feed):
        store.subscribe(scope, feed)
        with pytest.raises(NotFound) as excinfo:
            asyncio.run(store.set_resolved(scope, "missing", True, op_id="op-9"))
        assert excinfo.value.op_id == "op-9"
        assert store.pending_writes() == []

    @pytest.mark.parametrize(
        "other", [Scope("project-1", "other-file", 1), Scope("project-1", "file-1", 2)]
    )
    def test_comment_of_another_feed_is_not_changed(self, store, backend, scope, other):
        async def scenario():
            comment = await store.create(other, "Alice", "elsewhere")
            with pytest.raises(NotFound):
                await store.set_pinned(scope, comment.id, True)
            with pytest.raises(NotFound):
                await store.edit(scope, comment.id, body="hijacked")
            with pytest.raises(NotFound):
                await store.toggle_reaction(scope, comment.id, "u1", "👍")
            return await backend.get(other.project_id, comment.id)

        document = asyncio.run(scenario())
        assert document["isPinned"] is False
        assert document["content"] == "elsewhere"
        assert document["reactions"] == {}
        assert store.pending_writes() == []

    def test_reply_to_missing_parent(self, store, scope, feed):
        store.subscribe(scope, feed)
        with pytest.raises(NotFound):
            asyncio.run(store.create(scope, "Alice", "hello?", parent_id="missing"))
        assert feed.latest == []
        assert store.pending_writes() == []


class TestReactions:
    def test_same_emoji_twice_is_a_no_op(self, store, scope, feed):
        async def scenario():
            comment = await store.create(scope, "Alice", "nice")
            assert await store.toggle_reaction(scope, comment.id, "u1", "👍") == "👍"
            assert await store.toggle_reaction(scope, comment.id, "u1", "👍") is None

        store.subscribe(scope, feed)
        asyncio.run(scenario())
        assert "u1" not in feed.latest[0].reactions

    def test_other_emoji_replaces(self, store, scope, feed):
        async def scenario():
            comment = await store.create(scope, "Alice", "nice")
            await store.toggle_reaction(scope, comment.id, "u1", "👍")
            await store.toggle_reaction(scope, comment.id, "u1", "😀")
            await store.toggle_reaction(scope, comment.id, "u2", "👍")

        store.subscribe(scope, feed)
        asyncio.run(scenario())
        assert feed.latest[0].reactions == {"u1": "😀", "u2": "👍"}
        assert feed.latest[0].reaction_counts() == {"😀": 1, "👍": 1}

    def test_concurrent_toggles_are_serialized(self, store, scope, feed):
        async def scenario():
            comment = await store.create(scope, "Alice", "nice")
            results = await asyncio.gather(
                store.toggle_reaction(scope, comment.id, "u1", "👍"),
                store.toggle_reaction(scope, comment.id, "u1", "👍"),
            )
            return results

        store.subscribe(scope, feed)
        results = asyncio.run(scenario())
        assert results == ["👍", None]
        assert feed.latest[0].reactions == {}

    def test_retry_with_same_op_id_is_applied_once(self, store, scope, feed):
        async def scenario():
            comment = await store.create(scope, "Alice", "nice")
            first = await store.toggle_reaction(
                scope, comment.id, "u1", "👍", op_id="react-1"
            )
            seen = len(feed.snapshots)
            retried = await store.toggle_reaction(
                scope, comment.id, "u1", "👍", op_id="react-1"
            )
            return first, retried, feed.snapshots[seen:]

        store.subscribe(scope, feed)
        first, retried, during_retry = asyncio.run(scenario())
        assert (first, retried) == ("👍", "👍")
        assert all(s[0].reactions == {"u1": "👍"} for s in during_retry)
        assert feed.latest[0].reactions == {"u1": "👍"}

    def test_retry_after_lost_confirmation_keeps_target(
        self, store, backend, scope, feed, monkeypatch
    ):
        update = backend.update

        async def lose_confirmation(*args, **kwargs):
            await update(*args, **kwargs)
            raise Unavailable("connection dropped")

        async def scenario():
            comment = await store.create(scope, "Alice", "nice")
            monkeypatch.setattr(backend, "update", lose_confirmation)
            with pytest.raises(Unavailable):
                await store.toggle_reaction(
                    scope, comment.id, "u1", "👍", op_id="react-1"
                )
            monkeypatch.setattr(backend, "update", update)

            seen = len(feed.snapshots)
            retried = await store.toggle_reaction(
                scope, comment.id, "u1", "👍", op_id="react-1"
            )
            return retried, feed.snapshots[seen:]

        store.subscribe(scope, feed)
        retried, during_retry = asyncio.run(scenario())
        assert retried == "👍"
        assert all(s[0].reactions == {"u1": "👍"} for s in during_retry)
        assert not feed.latest[0].is_pending
        assert store.pending_writes() == []

    def test_locks_are_released_after_toggles(self, store, scope):
        async def scenario():
            comment = await store.create(scope, "Alice", "nice")
            await asyncio.gather(
                *(
                    store.toggle_reaction(scope, comment.id, f"u{i}", "👍")
                    for i in range(5)
                ),
                store.toggle_reaction(scope, comment.id, "u0", "😀"),
            )

        asyncio.run(scenario())
        assert store._reaction_locks == {}
        assert store._reaction_users == {}

    @pytest.mark.parametrize("participant", ["", "a.b"])
    def test_invalid_participant(self, store, scope, participant):
        with pytest.raises(ValueError):
            asyncio.run(store.toggle_reaction(scope, "c", participant, "👍"))


class TestFailures:
    def test_failed_create_stays_pending_until_retry(self, store, backend, scope, feed):
        async def scenario():
            backend.set_available(False)
            with pytest.raises(Unavailable) as excinfo:
                await store.create(scope, "Alice", "offline", op_id="op-1")
            assert excinfo.value.op_id == "op-1"

            (pending,) = store.pending_writes(scope)
            assert pending.failed
            assert feed.ids() == ["pending-op-1"]
            assert feed.latest[0].is_pending

            backend.set_available(True)
            return await store.create(scope, "Alice", "offline", op_id="op-1")

        store.subscribe(scope, feed)
        comment = asyncio.run(scenario())
        assert feed.ids() == [comment.id]
        assert store.pending_writes() == []

    def test_create_replay_returns_first_comment(self, store, scope, feed):
        async def scenario():
            first = await store.create(scope, "Alice", "once", op_id="op-1")
            again = await store.create(scope, "Alice", "once", op_id="op-1")
            return first, again

        store.subscribe(scope, feed)
        first, again = asyncio.run(scenario())
        assert first.id == again.id
        assert len(feed.latest) == 1

    def test_failed_mutation_is_reverted(self, store, backend, scope, feed):
        async def scenario():
            comment = await store.create(scope, "Alice", "pin me")
            backend.set_available(False)
            with pytest.raises(Unavailable) as excinfo:
                await store.set_pinned(scope, comment.id, True)
            return excinfo.value.op_id

        store.subscribe(scope, feed)
        op_id = asyncio.run(scenario())
        assert feed.latest[0].is_pinned
        assert feed.latest[0].is_pending

        assert store.revert(op_id)
        assert not feed.latest[0].is_pinned
        assert not feed.latest[0].is_pending
        assert not store.revert(op_id)

    def test_reaction_while_offline(self, store, backend, scope):
        async def scenario():
            comment = await store.create(scope, "Alice", "nice")
            backend.set_available(False)
            with pytest.raises(Unavailable) as excinfo:
                await store.toggle_reaction(scope, comment.id, "u1", "👍", op_id="r")
            return excinfo.value

        error = asyncio.run(scenario())
        assert error.op_id == "r"


class TestSubscriptions:
    def test_cancelled_subscription_gets_no_callback(self, store, scope, feed):
        subscription = store.subscribe(scope, feed)
        subscription.cancel()
        asyncio.run(store.create(scope, "Alice", "hi"))
        assert feed.snapshots == [[]]

    def test_backend_watch_follows_subscribers(self, store, backend, scope, feed):
        first = store.subscribe(scope, feed)
        second = store.subscribe(scope, Feed())
        assert len(backend._watchers[scope]) == 1

        first.cancel()
        assert scope in backend._watchers
        second.cancel()
        assert scope not in backend._watchers

    def test_late_subscriber_gets_current_feed(self, store, scope, feed):
        store.subscribe(scope, feed)
        comment = asyncio.run(store.create(scope, "Alice", "hi"))

        late = Feed()
        store.subscribe(scope, late)
        assert [c.id for c in late.latest] == [comment.id]

    def test_close_cancels_everything(self, backend, scope, feed):
        store = CommentStore(backend)
        subscription = store.subscribe(scope, feed)
        store.close()
        assert not subscription.active
        assert scope not in backend._watchers

    def test_subscription_as_context_manager(self, store, scope, feed):
        with store.subscribe(scope, feed) as subscription:
            assert subscription.active
        assert not subscription.active
