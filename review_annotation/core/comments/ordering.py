"""
Feed ordering.

Pinned comments come first; within each partition the newest comment comes
first, and equal creation times fall back to the comment id so that the
order is identical on every re-render.
"""

from typing import Dict, Iterable, List, Tuple

from .models import Comment


def sort_key(comment: Comment):
    return (not comment.is_pinned, -comment.created_at, comment.id)


def sort_comments(comments: Iterable[Comment]) -> List[Comment]:
    return sorted(comments, key=sort_key)


def group_threads(comments: Iterable[Comment]) -> List[Tuple[Comment, List[Comment]]]:
    """
    Pair each top-level comment with its replies.

    Top-level comments keep the order of ``comments``; replies are listed
    oldest first under their parent. Replies whose parent is not in the
    feed are dropped.
    """
    comments = list(comments)
    replies: Dict[str, List[Comment]] = {}
    for comment in comments:
        if comment.is_reply:
            replies.setdefault(comment.parent_id, []).append(comment)

    threads = []
    for comment in comments:
        if not comment.is_reply:
            children = sorted(
                replies.get(comment.id, ()), key=lambda c: (c.created_at, c.id)
            )
            threads.append((comment, children))
    return threads
