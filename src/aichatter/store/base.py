"""Contract for the conversation/message store collaborator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
import logging

from ..events import MESSAGE_INSERTED, Event, EventBus
from ..models import DEFAULT_TITLE, Conversation, Message, Role, UserSettings

LOGGER = logging.getLogger(__name__)

InsertCallback = Callable[[Message], Awaitable[None] | None]


class Subscription:
    """Cancelable handle for a conversation-scoped insert feed."""

    def __init__(self, bus: EventBus, conversation_id: str, callback: InsertCallback) -> None:
        self.conversation_id = conversation_id
        self._bus = bus
        self._callback = callback
        self._active = True
        bus.subscribe(MESSAGE_INSERTED, self._handle)

    @property
    def active(self) -> bool:
        return self._active

    async def _handle(self, event: Event) -> None:
        record = event.data.get("record")
        if not self._active or not isinstance(record, Message):
            return
        if record.conversation_id != self.conversation_id:
            return
        result = self._callback(record)
        if result is not None:
            await result

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus.unsubscribe(MESSAGE_INSERTED, self._handle)
        LOGGER.debug(
            "store.subscription.closed",
            extra={
                "event": "store.subscription.closed",
                "conversation_id": self.conversation_id,
            },
        )


class ConversationStore(ABC):
    """Authoritative store for conversations, messages, and user settings.

    Every method raises ``PersistenceError`` when the backing store rejects
    the operation. Access control is the store's concern.
    """

    @abstractmethod
    async def create_conversation(self, title: str = DEFAULT_TITLE) -> Conversation:
        """Create and return an active conversation."""

    @abstractmethod
    async def list_conversations(self, active_only: bool = True) -> list[Conversation]:
        """Return conversations, most recently updated first."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Return one conversation or raise ``PersistenceError``."""

    @abstractmethod
    async def update_conversation(
        self,
        conversation_id: str,
        *,
        title: str | None = None,
        is_active: bool | None = None,
    ) -> Conversation:
        """Apply the given changes and bump ``updated_at``."""

    @abstractmethod
    async def create_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        model: str | None = None,
    ) -> Message:
        """Insert a message and return the authoritative record."""

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> list[Message]:
        """Return every message of a conversation ordered by creation time."""

    @abstractmethod
    async def delete_messages(self, conversation_id: str) -> None:
        """Delete every message of a conversation, keeping the conversation."""

    @abstractmethod
    def subscribe_inserts(
        self, conversation_id: str, callback: InsertCallback
    ) -> Subscription:
        """Deliver every future insert for ``conversation_id`` to ``callback``."""

    @abstractmethod
    async def get_settings(self) -> UserSettings:
        """Return user settings, creating defaults on first access."""

    @abstractmethod
    async def save_settings(self, settings: UserSettings) -> UserSettings:
        """Persist user settings and return the stored copy."""

    async def drain(self) -> None:
        """Wait for pending change-event deliveries."""
