"""Conversation, message, and settings records shared by stores and sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

Role = Literal["user", "assistant"]

DEFAULT_TITLE = "New Chat"
THINKING_CONTENT = "..."
TEMP_ID_PREFIX = "tmp-"


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_temp_id() -> str:
    """Return a client-side identifier that never collides with store ids."""
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


class Mode(str, Enum):
    """Which completion provider the session talks to."""

    ONLINE = "online"
    OFFLINE = "offline"

    @property
    def other(self) -> Mode:
        return Mode.OFFLINE if self is Mode.ONLINE else Mode.ONLINE


@dataclass
class Conversation:
    """A titled, soft-deletable collection of messages."""

    id: str
    title: str = DEFAULT_TITLE
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Conversation:
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title", DEFAULT_TITLE)),
            created_at=datetime.fromisoformat(payload["created_at"]),
            updated_at=datetime.fromisoformat(payload["updated_at"]),
            is_active=bool(payload.get("is_active", True)),
        )


@dataclass(frozen=True)
class Message:
    """One persisted turn, or a locally synthesized placeholder.

    Persisted records carry the store's ``id``. Placeholders have ``id=None``
    and a ``temp_id`` generated on the client, which is the key used to
    replace or remove them later.
    """

    conversation_id: str
    role: Role
    content: str
    created_at: datetime = field(default_factory=utc_now)
    model: str | None = None
    id: str | None = None
    temp_id: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.id is None

    @property
    def key(self) -> str:
        """Identity used by the in-memory message list."""
        return self.id if self.id is not None else str(self.temp_id)

    @classmethod
    def placeholder(
        cls,
        conversation_id: str,
        role: Role,
        content: str,
        model: str | None = None,
    ) -> Message:
        return cls(
            conversation_id=conversation_id,
            role=role,
            content=content,
            model=model,
            temp_id=new_temp_id(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Message:
        role = str(payload.get("role", "")).strip().lower()
        if role not in ("user", "assistant"):
            raise ValueError(f"Unsupported message role {role!r}.")
        model = payload.get("model")
        return cls(
            id=str(payload["id"]),
            conversation_id=str(payload["conversation_id"]),
            role=role,  # type: ignore[arg-type]
            content=str(payload.get("content", "")),
            created_at=datetime.fromisoformat(payload["created_at"]),
            model=model if isinstance(model, str) else None,
        )


@dataclass
class UserSettings:
    """Per-user preferences persisted next to conversations."""

    preferred_mode: Mode = Mode.ONLINE
    preferred_model: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferred_mode": self.preferred_mode.value,
            "preferred_model": self.preferred_model,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> UserSettings:
        try:
            mode = Mode(str(payload.get("preferred_mode", Mode.ONLINE.value)))
        except ValueError:
            mode = Mode.ONLINE
        settings = cls(
            preferred_mode=mode,
            preferred_model=str(payload.get("preferred_model") or ""),
        )
        for key in ("created_at", "updated_at"):
            raw = payload.get(key)
            if isinstance(raw, str):
                setattr(settings, key, datetime.fromisoformat(raw))
        return settings
