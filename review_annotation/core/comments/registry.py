"""
Publish/subscribe registry for comment feeds, keyed by scope.

Each ``subscribe`` call returns a ``Subscription`` that doubles as the
cancellation token. A cancelled subscription is never called again, even
by a publish that is already iterating over the subscribers.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence

from .models import Comment, Scope

logger = logging.getLogger(__name__)

FeedCallback = Callable[[List[Comment]], None]


class Subscription:
    """Live view of one scope's ordered comment feed."""

    def __init__(
        self, registry: "SubscriptionRegistry", scope: Scope, callback: FeedCallback
    ):
        self.scope = scope
        self.callback = callback
        self._registry = registry
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self):
        """Stop receiving updates; safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._registry._remove(self)

    def deliver(self, comments: Sequence[Comment]):
        if self._active:
            self.callback(list(comments))

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.cancel()


class SubscriptionRegistry:
    """Tracks subscriptions per scope and fans snapshots out to them."""

    def __init__(
        self,
        on_first: Optional[Callable[[Scope], None]] = None,
        on_last: Optional[Callable[[Scope], None]] = None,
    ):
        """
        Initialize registry.

        Args:
            on_first: Called when a scope gets its first subscriber
            on_last: Called when the last subscriber of a scope cancels
        """
        self._subscriptions: Dict[Scope, List[Subscription]] = defaultdict(list)
        self._on_first = on_first
        self._on_last = on_last

    def subscribe(self, scope: Scope, callback: FeedCallback) -> Subscription:
        subscription = Subscription(self, scope, callback)
        is_first = not self._subscriptions.get(scope)
        self._subscriptions[scope].append(subscription)
        if is_first and self._on_first is not None:
            self._on_first(scope)
        return subscription

    def publish(self, scope: Scope, comments: Sequence[Comment]):
        """Deliver a full snapshot to every active subscriber of ``scope``."""
        for subscription in list(self._subscriptions.get(scope, ())):
            try:
                subscription.deliver(comments)
            except Exception:
                logger.exception(f"Error in comment feed subscriber for {scope}")

    def subscribers(self, scope: Scope) -> List[Subscription]:
        return list(self._subscriptions.get(scope, ()))

    def scopes(self) -> List[Scope]:
        return [scope for scope, subs in self._subscriptions.items() if subs]

    def cancel_all(self):
        for scope in self.scopes():
            for subscription in self.subscribers(scope):
                subscription.cancel()

    def _remove(self, subscription: Subscription):
        subscriptions = self._subscriptions.get(subscription.scope)
        if not subscriptions or subscription not in subscriptions:
            return
        subscriptions.remove(subscription)
        if not subscriptions:
            del self._subscriptions[subscription.scope]
            if self._on_last is not None:
                self._on_last(subscription.scope)
