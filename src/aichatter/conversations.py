"""Conversation directory: listing, creation, renaming, and soft deletion.

Conversations are never hard-deleted from here; deleting flips ``is_active``.
"""

from __future__ import annotations

import logging

from .models import DEFAULT_TITLE, Conversation
from .store.base import ConversationStore

LOGGER = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 30
TITLE_ELLIPSIS = "..."


def derive_title(text: str) -> str:
    """Build a conversation title from the first user message."""
    normalized = text.strip()
    if len(normalized) > TITLE_MAX_LENGTH:
        return normalized[:TITLE_MAX_LENGTH] + TITLE_ELLIPSIS
    return normalized


class ConversationManager:
    """Manages the user's set of conversations through the store."""

    def __init__(self, store: ConversationStore) -> None:
        self.store = store

    async def list_active(self) -> list[Conversation]:
        """Active conversations, most recently updated first."""
        return await self.store.list_conversations(active_only=True)

    async def create(self, title: str = DEFAULT_TITLE) -> Conversation:
        conversation = await self.store.create_conversation(title=title)
        LOGGER.info(
            "conversation.created",
            extra={"event": "conversation.created", "conversation_id": conversation.id},
        )
        return conversation

    async def ensure_active(self) -> Conversation:
        """Return the newest active conversation, creating one when none exist."""
        conversations = await self.list_active()
        if conversations:
            return conversations[0]
        return await self.create()

    async def rename(self, conversation_id: str, title: str) -> Conversation:
        normalized = title.strip()
        if not normalized:
            raise ValueError("Conversation title must not be empty.")
        return await self.store.update_conversation(conversation_id, title=normalized)

    async def soft_delete(self, conversation_id: str) -> Conversation:
        """Deactivate a conversation and return the one to show next.

        A fresh conversation is created when nothing active remains.
        """
        await self.store.update_conversation(conversation_id, is_active=False)
        LOGGER.info(
            "conversation.deactivated",
            extra={"event": "conversation.deactivated", "conversation_id": conversation_id},
        )
        return await self.ensure_active()

    async def retitle_if_default(self, conversation_id: str, first_text: str) -> bool:
        """Derive a title from ``first_text`` while the default title is still set.

        Returns True when the conversation was renamed.
        """
        title = derive_title(first_text)
        if not title:
            return False
        conversation = await self.store.get_conversation(conversation_id)
        if conversation.title != DEFAULT_TITLE:
            return False
        await self.store.update_conversation(conversation_id, title=title)
        return True
