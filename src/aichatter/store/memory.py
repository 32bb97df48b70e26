"""In-memory conversation store with an asynchronous insert feed."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
import logging
from typing import Any
from uuid import uuid4

from ..events import MESSAGE_INSERTED, EventBus
from ..exceptions import PersistenceError
from ..models import (
    DEFAULT_TITLE,
    Conversation,
    Message,
    Mode,
    Role,
    UserSettings,
    utc_now,
)
from .base import ConversationStore, InsertCallback, Subscription

LOGGER = logging.getLogger(__name__)


class InMemoryConversationStore(ConversationStore):
    """Keeps everything in process memory.

    Inserts are announced on the event bus from a separate task, after the
    write has returned, the way a realtime feed delivers them.
    """

    def __init__(
        self,
        default_mode: Mode = Mode.ONLINE,
        default_model: str = "",
    ) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}
        self._settings: UserSettings | None = None
        self._default_mode = default_mode
        self._default_model = default_model
        self._bus = EventBus()
        self._pending: set[asyncio.Task[Any]] = set()
        self._last_timestamp: datetime | None = None

    def _timestamp(self) -> datetime:
        """Return a strictly increasing timestamp so creation order is total."""
        now = utc_now()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise PersistenceError(f"Conversation {conversation_id!r} does not exist.")
        return conversation

    def _persist_conversation(self, conversation_id: str) -> None:
        """Hook for durable subclasses; called after every conversation mutation.

        Raising ``PersistenceError`` makes the caller undo its in-memory change.
        """

    def _persist_settings(self) -> None:
        """Hook for durable subclasses; called after settings change."""

    async def create_conversation(self, title: str = DEFAULT_TITLE) -> Conversation:
        now = self._timestamp()
        conversation = Conversation(
            id=str(uuid4()), title=title, created_at=now, updated_at=now
        )
        self._conversations[conversation.id] = conversation
        self._messages[conversation.id] = []
        try:
            self._persist_conversation(conversation.id)
        except PersistenceError:
            del self._conversations[conversation.id]
            del self._messages[conversation.id]
            raise
        LOGGER.info(
            "store.conversation.created",
            extra={"event": "store.conversation.created", "conversation_id": conversation.id},
        )
        return replace(conversation)

    async def list_conversations(self, active_only: bool = True) -> list[Conversation]:
        rows = [
            replace(c)
            for c in self._conversations.values()
            if c.is_active or not active_only
        ]
        return sorted(rows, key=lambda item: item.updated_at, reverse=True)

    async def get_conversation(self, conversation_id: str) -> Conversation:
        return replace(self._require(conversation_id))

    async def update_conversation(
        self,
        conversation_id: str,
        *,
        title: str | None = None,
        is_active: bool | None = None,
    ) -> Conversation:
        previous = self._require(conversation_id)
        conversation = replace(
            previous,
            title=previous.title if title is None else title,
            is_active=previous.is_active if is_active is None else is_active,
            updated_at=self._timestamp(),
        )
        self._conversations[conversation_id] = conversation
        try:
            self._persist_conversation(conversation_id)
        except PersistenceError:
            self._conversations[conversation_id] = previous
            raise
        return replace(conversation)

    async def create_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        model: str | None = None,
    ) -> Message:
        self._require(conversation_id)
        if role not in ("user", "assistant"):
            raise PersistenceError(f"Unsupported message role {role!r}.")
        record = Message(
            id=str(uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            model=model,
            created_at=self._timestamp(),
        )
        self._messages[conversation_id].append(record)
        try:
            self._persist_conversation(conversation_id)
        except PersistenceError:
            self._messages[conversation_id].remove(record)
            raise
        self._announce(record)
        return record

    async def list_messages(self, conversation_id: str) -> list[Message]:
        self._require(conversation_id)
        return sorted(self._messages[conversation_id], key=lambda m: m.created_at)

    async def delete_messages(self, conversation_id: str) -> None:
        self._require(conversation_id)
        previous = self._messages[conversation_id]
        self._messages[conversation_id] = []
        try:
            self._persist_conversation(conversation_id)
        except PersistenceError:
            self._messages[conversation_id] = previous
            raise
        deleted = len(previous)
        LOGGER.info(
            "store.messages.deleted",
            extra={
                "event": "store.messages.deleted",
                "conversation_id": conversation_id,
                "count": deleted,
            },
        )

    def subscribe_inserts(
        self, conversation_id: str, callback: InsertCallback
    ) -> Subscription:
        return Subscription(self._bus, conversation_id, callback)

    async def get_settings(self) -> UserSettings:
        if self._settings is None:
            self._settings = UserSettings(
                preferred_mode=self._default_mode,
                preferred_model=self._default_model,
            )
            try:
                self._persist_settings()
            except PersistenceError:
                self._settings = None
                raise
        return replace(self._settings)

    async def save_settings(self, settings: UserSettings) -> UserSettings:
        previous = self._settings
        stored = replace(settings, updated_at=utc_now())
        self._settings = stored
        try:
            self._persist_settings()
        except PersistenceError:
            self._settings = previous
            raise
        return replace(stored)

    def _announce(self, record: Message) -> None:
        task = asyncio.create_task(
            self._bus.publish(MESSAGE_INSERTED, {"record": record}, source="store")
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
