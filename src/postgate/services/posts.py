"""In-memory record store for posts."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from postgate.domain.posts import Post


class PostStore(Protocol):
    """Storage interface for posts."""

    def list(self) -> list[Post]:
        """Return every post in creation order."""

    def find(self, post_id: str) -> Post | None:
        """Return the post with the given id, if present."""

    def filter_by_author(self, author: str) -> list[Post]:
        """Return posts whose author contains the substring, ignoring case."""

    def create(self, title: str, content: str, author: str) -> Post:
        """Append a new post and return it."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemoryPostStore(PostStore):
    """Process-wide post store with serialized writes.

    Ids come from a counter advanced under the write lock, so concurrent
    creators never observe the same next id.
    """

    clock: Callable[[], datetime] = _utcnow
    _posts: list[Post] = field(default_factory=list)
    _by_id: dict[str, Post] = field(default_factory=dict)
    _last_id: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @classmethod
    def with_posts(cls, posts: list[Post]) -> "InMemoryPostStore":
        """Create a store pre-populated with existing posts."""
        store = cls()
        for post in posts:
            store._append(post)
        return store

    def list(self) -> list[Post]:
        """Return a snapshot of all posts in creation order."""
        return list(self._posts)

    def find(self, post_id: str) -> Post | None:
        """Return the post with the given id, if present."""
        return self._by_id.get(post_id)

    def filter_by_author(self, author: str) -> list[Post]:
        """Case-insensitive substring match against each post's author."""
        needle = author.lower()
        return [post for post in self.list() if needle in post.author.lower()]

    def create(self, title: str, content: str, author: str) -> Post:
        """Assign the next id, stamp the creation time and append."""
        with self._lock:
            post = Post(
                id=str(self._last_id + 1),
                title=title,
                content=content,
                author=author,
                created_at=self.clock(),
            )
            self._append(post)
        return post

    def _append(self, post: Post) -> None:
        self._posts = [*self._posts, post]
        self._by_id[post.id] = post
        if post.id.isdigit():
            self._last_id = max(self._last_id, int(post.id))


def seed_posts() -> list[Post]:
    """Return the demo posts the application starts with."""
    return [
        Post(
            id="1",
            title="Getting Started with Server-Rendered Procedures",
            content="This post demonstrates server-side rendering with typed procedures",
            author="John Doe",
            created_at=datetime(2024, 1, 15, 10, 0, tzinfo=UTC),
        ),
        Post(
            id="2",
            title="Advanced Procedure Patterns",
            content="Learn about advanced patterns and best practices",
            author="Jane Smith",
            created_at=datetime(2024, 1, 20, 14, 30, tzinfo=UTC),
        ),
        Post(
            id="3",
            title="Building Pages on Top of a Procedure Router",
            content="How to render pages from the same procedures remote callers use",
            author="Mike Johnson",
            created_at=datetime(2024, 1, 25, 9, 15, tzinfo=UTC),
        ),
    ]
