"""In-memory ordered message sequence with keyed placeholder replacement."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import Message


class MessageList:
    """Locally rendered view of a conversation.

    Persisted records are keyed by their store id, placeholders by their
    client-generated ``temp_id``. Every mutation is keyed, never positional or
    by content, so a self-originated write and the change-event for the same
    row can land in either order.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @property
    def messages(self) -> list[Message]:
        """Return a shallow copy of the current sequence."""
        return list(self._messages)

    @property
    def placeholders(self) -> list[Message]:
        return [m for m in self._messages if m.is_placeholder]

    def _index_of(self, key: str) -> int | None:
        for index, message in enumerate(self._messages):
            if message.key == key:
                return index
        return None

    def contains_id(self, message_id: str) -> bool:
        return any(m.id == message_id for m in self._messages)

    def replace_all(self, messages: Iterable[Message]) -> None:
        """Swap in an authoritative history wholesale."""
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def _insert_ordered(self, record: Message) -> None:
        """Insert after the last persisted entry created no later than ``record``.

        Placeholders carry client clocks, so they never anchor the position.
        """
        index = len(self._messages)
        while index > 0:
            previous = self._messages[index - 1]
            if not previous.is_placeholder and previous.created_at <= record.created_at:
                break
            index -= 1
        self._messages.insert(index, record)

    def merge(self, record: Message) -> bool:
        """Insert a persisted record by creation time unless its id is present.

        Returns True when the sequence changed.
        """
        if record.id is None or self.contains_id(record.id):
            return False
        self._insert_ordered(record)
        return True

    def replace_placeholder(self, temp_id: str, record: Message) -> bool:
        """Swap the placeholder ``temp_id`` for its persisted ``record``.

        The record lands at its creation-time position, so rows another writer
        created first stay ahead of it. When the record already arrived through
        the change feed the placeholder is dropped instead, keeping one entry
        per id.
        """
        index = self._index_of(temp_id)
        if record.id is not None and self.contains_id(record.id):
            if index is not None:
                del self._messages[index]
            return False
        if index is None:
            return self.merge(record)
        del self._messages[index]
        self._insert_ordered(record)
        return True

    def remove(self, key: str) -> bool:
        index = self._index_of(key)
        if index is None:
            return False
        del self._messages[index]
        return True
