"""Tests for the on-disk JSON conversation store."""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from aichatter.exceptions import PersistenceError
from aichatter.models import Mode
from aichatter.store import JsonFileConversationStore


class JsonStoreTests(unittest.IsolatedAsyncioTestCase):
    """Validate that every mutation survives a reopen."""

    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmp.name) / "conversations"

    async def asyncTearDown(self) -> None:
        self._tmp.cleanup()

    async def test_conversation_and_messages_survive_reopen(self) -> None:
        store = JsonFileConversationStore(str(self.directory))
        conversation = await store.create_conversation()
        user = await store.create_message(conversation.id, "user", "Hello")
        await store.create_message(conversation.id, "assistant", "Hi", model="groq-x")
        await store.update_conversation(conversation.id, title="Hello")
        await store.drain()

        reopened = JsonFileConversationStore(str(self.directory))
        loaded = await reopened.get_conversation(conversation.id)
        messages = await reopened.list_messages(conversation.id)

        self.assertEqual(loaded.title, "Hello")
        self.assertEqual([m.content for m in messages], ["Hello", "Hi"])
        self.assertEqual(messages[0].id, user.id)
        self.assertEqual(messages[1].model, "groq-x")

    async def test_new_messages_after_reopen_sort_after_old_ones(self) -> None:
        store = JsonFileConversationStore(str(self.directory))
        conversation = await store.create_conversation()
        await store.create_message(conversation.id, "user", "first")
        await store.drain()

        reopened = JsonFileConversationStore(str(self.directory))
        await reopened.create_message(conversation.id, "user", "second")
        await reopened.drain()

        messages = await reopened.list_messages(conversation.id)
        self.assertEqual([m.content for m in messages], ["first", "second"])

    async def test_settings_survive_reopen(self) -> None:
        store = JsonFileConversationStore(str(self.directory))
        settings = await store.get_settings()
        settings.preferred_mode = Mode.OFFLINE
        settings.preferred_model = "llava"
        await store.save_settings(settings)

        reopened = JsonFileConversationStore(str(self.directory))
        loaded = await reopened.get_settings()
        self.assertEqual(loaded.preferred_mode, Mode.OFFLINE)
        self.assertEqual(loaded.preferred_model, "llava")

    async def test_corrupt_snapshot_is_skipped(self) -> None:
        store = JsonFileConversationStore(str(self.directory))
        good = await store.create_conversation()
        bad = await store.create_conversation()
        (self.directory / f"{bad.id}.json").write_text("{not json", encoding="utf-8")

        with self.assertLogs("aichatter.store.json_file", level="WARNING"):
            reopened = JsonFileConversationStore(str(self.directory))

        ids = [c.id for c in await reopened.list_conversations()]
        self.assertEqual(ids, [good.id])

    async def test_index_entries_outside_directory_are_ignored(self) -> None:
        store = JsonFileConversationStore(str(self.directory))
        await store.create_conversation()
        outside = Path(self._tmp.name) / "outside.json"
        outside.write_text("{}", encoding="utf-8")
        index = json.loads((self.directory / "index.json").read_text(encoding="utf-8"))
        index.append({"id": "evil", "path": "../outside.json"})
        (self.directory / "index.json").write_text(json.dumps(index), encoding="utf-8")

        reopened = JsonFileConversationStore(str(self.directory))

        self.assertEqual(len(await reopened.list_conversations(active_only=False)), 1)

    @unittest.skipUnless(os.name == "posix", "POSIX permissions only")
    async def test_files_are_private(self) -> None:
        store = JsonFileConversationStore(str(self.directory))
        conversation = await store.create_conversation()
        snapshot = self.directory / f"{conversation.id}.json"
        self.assertEqual(snapshot.stat().st_mode & 0o777, 0o600)
        self.assertEqual(self.directory.stat().st_mode & 0o777, 0o700)


class JsonStoreWriteFailureTests(unittest.IsolatedAsyncioTestCase):
    """A failed disk write leaves memory matching what is on disk."""

    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = JsonFileConversationStore(str(Path(self._tmp.name) / "conversations"))
        self.conversation = await self.store.create_conversation()
        await self.store.create_message(self.conversation.id, "user", "kept")
        await self.store.drain()

    async def asyncTearDown(self) -> None:
        self._tmp.cleanup()

    def _disk_full(self):  # type: ignore[no-untyped-def]
        return patch.object(self.store, "_write_json", side_effect=OSError("disk full"))

    async def test_failed_message_write_is_not_kept_or_announced(self) -> None:
        seen: list[str] = []
        subscription = self.store.subscribe_inserts(
            self.conversation.id, lambda message: seen.append(message.content)
        )
        with self._disk_full():
            with self.assertRaises(PersistenceError):
                await self.store.create_message(self.conversation.id, "user", "lost")
        await self.store.drain()
        subscription.unsubscribe()

        messages = await self.store.list_messages(self.conversation.id)
        self.assertEqual([m.content for m in messages], ["kept"])
        self.assertEqual(seen, [])

    async def test_failed_delete_keeps_messages(self) -> None:
        with self._disk_full():
            with self.assertRaises(PersistenceError):
                await self.store.delete_messages(self.conversation.id)

        messages = await self.store.list_messages(self.conversation.id)
        self.assertEqual([m.content for m in messages], ["kept"])

    async def test_failed_update_keeps_previous_fields(self) -> None:
        with self._disk_full():
            with self.assertRaises(PersistenceError):
                await self.store.update_conversation(
                    self.conversation.id, title="Renamed", is_active=False
                )

        loaded = await self.store.get_conversation(self.conversation.id)
        self.assertEqual(loaded.title, self.conversation.title)
        self.assertTrue(loaded.is_active)

    async def test_failed_create_leaves_no_conversation(self) -> None:
        with self._disk_full():
            with self.assertRaises(PersistenceError):
                await self.store.create_conversation(title="Ghost")

        rows = await self.store.list_conversations(active_only=False)
        self.assertEqual([c.id for c in rows], [self.conversation.id])

    async def test_failed_settings_write_keeps_previous_settings(self) -> None:
        settings = await self.store.get_settings()
        changed = await self.store.get_settings()
        changed.preferred_mode = Mode.OFFLINE
        with self._disk_full():
            with self.assertRaises(PersistenceError):
                await self.store.save_settings(changed)

        loaded = await self.store.get_settings()
        self.assertEqual(loaded.preferred_mode, settings.preferred_mode)


if __name__ == "__main__":
    unittest.main()
