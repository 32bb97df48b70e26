"""Tests for the in-memory conversation store."""

from __future__ import annotations

import unittest

from aichatter.exceptions import PersistenceError
from aichatter.models import DEFAULT_TITLE, Message, Mode
from aichatter.store import InMemoryConversationStore


class InMemoryStoreTests(unittest.IsolatedAsyncioTestCase):
    """Validate the store contract and its insert feed."""

    async def test_conversations_default_to_new_chat_and_sort_by_update(self) -> None:
        store = InMemoryConversationStore()
        first = await store.create_conversation()
        second = await store.create_conversation(title="Second")

        self.assertEqual(first.title, DEFAULT_TITLE)
        listed = await store.list_conversations()
        self.assertEqual([c.id for c in listed], [second.id, first.id])

        await store.update_conversation(first.id, title="Renamed")
        listed = await store.list_conversations()
        self.assertEqual(listed[0].title, "Renamed")

    async def test_inactive_conversations_are_hidden_by_default(self) -> None:
        store = InMemoryConversationStore()
        conversation = await store.create_conversation()
        await store.update_conversation(conversation.id, is_active=False)

        self.assertEqual(await store.list_conversations(), [])
        self.assertEqual(len(await store.list_conversations(active_only=False)), 1)

    async def test_messages_are_ordered_and_ids_are_assigned(self) -> None:
        store = InMemoryConversationStore()
        conversation = await store.create_conversation()
        first = await store.create_message(conversation.id, "user", "one")
        second = await store.create_message(conversation.id, "assistant", "two", model="groq-x")

        listed = await store.list_messages(conversation.id)
        self.assertEqual([m.id for m in listed], [first.id, second.id])
        self.assertLess(first.created_at, second.created_at)
        self.assertEqual(second.model, "groq-x")
        await store.drain()

    async def test_unknown_conversation_raises_persistence_error(self) -> None:
        store = InMemoryConversationStore()
        with self.assertRaises(PersistenceError):
            await store.create_message("missing", "user", "hi")
        with self.assertRaises(PersistenceError):
            await store.get_conversation("missing")

    async def test_invalid_role_is_rejected(self) -> None:
        store = InMemoryConversationStore()
        conversation = await store.create_conversation()
        with self.assertRaises(PersistenceError):
            await store.create_message(conversation.id, "system", "hi")  # type: ignore[arg-type]

    async def test_delete_messages_keeps_conversation(self) -> None:
        store = InMemoryConversationStore()
        conversation = await store.create_conversation()
        await store.create_message(conversation.id, "user", "hi")

        await store.delete_messages(conversation.id)

        self.assertEqual(await store.list_messages(conversation.id), [])
        self.assertEqual((await store.get_conversation(conversation.id)).id, conversation.id)
        await store.drain()

    async def test_insert_feed_is_scoped_and_cancelable(self) -> None:
        store = InMemoryConversationStore()
        watched = await store.create_conversation()
        other = await store.create_conversation()
        received: list[Message] = []

        subscription = store.subscribe_inserts(watched.id, received.append)
        await store.create_message(watched.id, "user", "seen")
        await store.create_message(other.id, "user", "ignored")
        self.assertEqual(received, [])
        await store.drain()
        self.assertEqual([m.content for m in received], ["seen"])

        subscription.unsubscribe()
        subscription.unsubscribe()
        self.assertFalse(subscription.active)
        await store.create_message(watched.id, "user", "after")
        await store.drain()
        self.assertEqual(len(received), 1)

    async def test_settings_defaults_are_created_on_first_access(self) -> None:
        store = InMemoryConversationStore(default_mode=Mode.OFFLINE, default_model="llava")
        settings = await store.get_settings()
        self.assertEqual(settings.preferred_mode, Mode.OFFLINE)
        self.assertEqual(settings.preferred_model, "llava")

        settings.preferred_mode = Mode.ONLINE
        await store.save_settings(settings)
        self.assertEqual((await store.get_settings()).preferred_mode, Mode.ONLINE)


if __name__ == "__main__":
    unittest.main()
