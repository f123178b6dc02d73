from .backend import DELETE_FIELD, CommentBackend, InMemoryCommentBackend
from .models import REACTION_TYPES, Comment, Scope, reaction_symbol
from .ordering import group_threads, sort_comments
from .registry import Subscription, SubscriptionRegistry
from .store import CommentStore, PendingWrite

__all__ = [
    "DELETE_FIELD",
    "CommentBackend",
    "InMemoryCommentBackend",
    "REACTION_TYPES",
    "Comment",
    "Scope",
    "reaction_symbol",
    "group_threads",
    "sort_comments",
    "Subscription",
    "SubscriptionRegistry",
    "CommentStore",
    "PendingWrite",
]
