"""
EduConnect data models - chat turns and posts.

Plain dataclasses shared by the stores, the orchestrator and the routes.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

VISIBILITIES = ("public", "private", "followers")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ChatTurn:
    """One message in a user's conversation.

    Attributes:
        user_id: Owner of the conversation
        role: "user" or "assistant"
        content: Message text (attribution suffix included for assistant turns)
        id: Store-assigned id, monotonic by creation
        created_at: Stamped by the store when the turn is appended
        source_provider: Provider that produced an assistant turn, if any
    """

    user_id: str
    role: str
    content: str
    id: str = ""
    created_at: Optional[datetime] = None
    source_provider: Optional[str] = None

    @classmethod
    def user(cls, user_id: str, content: str) -> "ChatTurn":
        return cls(user_id=user_id, role=ROLE_USER, content=content)

    @classmethod
    def assistant(cls, user_id: str, content: str, source_provider: Optional[str] = None) -> "ChatTurn":
        return cls(user_id=user_id, role=ROLE_ASSISTANT, content=content, source_provider=source_provider)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "role": self.role,
            "content": self.content,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "sourceProvider": self.source_provider,
        }

    @classmethod
    def from_row(cls, row: Any) -> "ChatTurn":
        """Build a turn from an asyncpg Record or sqlite3.Row."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            role=row["role"],
            content=row["content"],
            created_at=_parse_dt(row["created_at"]),
            source_provider=row["source_provider"],
        )


@dataclass
class Post:
    """A published post and its interaction counters."""

    id: int
    author_id: str
    content: str = ""
    title: str = ""
    subject: str = ""
    visibility: str = "public"
    views: int = 0
    likes: int = 0
    saves: int = 0
    comments: int = 0
    created_at: Optional[datetime] = None

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "authorId": self.author_id,
            "title": self.title,
            "subject": self.subject,
            "content": self.content,
            "visibility": self.visibility,
            "views": self.views,
            "likes": self.likes,
            "saves": self.saves,
            "comments": self.comments,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row: Any) -> "Post":
        return cls(
            id=int(row["id"]),
            author_id=row["author_id"],
            title=row["title"] or "",
            subject=row["subject"] or "",
            content=row["content"] or "",
            visibility=row["visibility"],
            views=int(row["views"]),
            likes=int(row["likes"]),
            saves=int(row["saves"]),
            comments=int(row["comments"]),
            created_at=_parse_dt(row["created_at"]),
        )
