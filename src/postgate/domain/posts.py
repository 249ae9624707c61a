"""Domain models for posts."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Post:
    """Represents a post held by the record store."""

    id: str
    title: str
    content: str
    author: str
    created_at: datetime

    def to_wire(self) -> dict[str, object]:
        """Return the post in the field layout callers expect."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "author": self.author,
            "createdAt": self.created_at,
        }
