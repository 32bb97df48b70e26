"""On-disk JSON conversation store.

Layout under ``directory``::

    index.json            [{"id": ..., "path": ..., "created_at": ...}, ...]
    <conversation-id>.json {"conversation": {...}, "messages": [...]}
    settings.json         {"preferred_mode": ..., "preferred_model": ...}
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from ..exceptions import PersistenceError, PersistenceFormatError
from ..models import Conversation, Message, Mode, UserSettings
from .memory import InMemoryConversationStore

LOGGER = logging.getLogger(__name__)


class JsonFileConversationStore(InMemoryConversationStore):
    """Keeps the in-memory model and mirrors every mutation to disk."""

    def __init__(
        self,
        directory: str,
        default_mode: Mode = Mode.ONLINE,
        default_model: str = "",
    ) -> None:
        super().__init__(default_mode=default_mode, default_model=default_model)
        self.directory = Path(directory).expanduser()
        self.index_path = self.directory / "index.json"
        self.settings_path = self.directory / "settings.json"
        self._load()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _ensure_paths(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.directory, 0o700)
        if not self.index_path.exists():
            self.index_path.write_text("[]", encoding="utf-8")
        self._enforce_permissions(self.index_path)

    def _resolve_snapshot_path(self, raw_path: str) -> Path | None:
        candidate = Path(raw_path).expanduser()
        if not candidate.is_absolute():
            candidate = self.directory / candidate
        try:
            base = self.directory.resolve(strict=False)
            resolved = candidate.resolve(strict=False)
        except OSError:
            return None

        # Ensure resolved is inside base.
        try:
            resolved.relative_to(base)
        except ValueError:
            return None
        return resolved

    def _write_json(self, path: Path, payload: Any) -> None:
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        self._enforce_permissions(path)

    def _read_index(self) -> list[dict[str, str]]:
        try:
            payload = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "store.index.unreadable",
                extra={"event": "store.index.unreadable", "error": str(exc)},
            )
            return []
        rows: list[dict[str, str]] = []
        if isinstance(payload, list):
            for item in payload:
                if isinstance(item, dict) and isinstance(item.get("path"), str):
                    rows.append({k: str(v) for k, v in item.items()})
        return rows

    def _load_snapshot(self, path: Path) -> tuple[Conversation, list[Message]]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise PersistenceFormatError(f"Conversation payload at {path} is invalid.")
            conversation = Conversation.from_dict(payload["conversation"])
            messages = [Message.from_dict(item) for item in payload.get("messages", [])]
        except PersistenceFormatError:
            raise
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise PersistenceFormatError(
                f"Conversation payload at {path} is invalid: {exc}"
            ) from exc
        return conversation, messages

    def _load(self) -> None:
        try:
            self._ensure_paths()
        except OSError as exc:
            raise PersistenceError(f"Unable to prepare store at {self.directory}: {exc}") from exc

        for row in self._read_index():
            target = self._resolve_snapshot_path(row["path"])
            if target is None or not target.exists():
                continue
            try:
                conversation, messages = self._load_snapshot(target)
            except PersistenceFormatError as exc:
                LOGGER.warning(
                    "store.snapshot.skipped",
                    extra={"event": "store.snapshot.skipped", "path": str(target), "error": str(exc)},
                )
                continue
            self._conversations[conversation.id] = conversation
            self._messages[conversation.id] = messages
            for stamp in [conversation.updated_at] + [m.created_at for m in messages]:
                if self._last_timestamp is None or stamp > self._last_timestamp:
                    self._last_timestamp = stamp

        if self.settings_path.exists():
            try:
                raw = json.loads(self.settings_path.read_text(encoding="utf-8"))
                if isinstance(raw, dict):
                    self._settings = UserSettings.from_dict(raw)
            except (OSError, ValueError) as exc:
                LOGGER.warning(
                    "store.settings.unreadable",
                    extra={"event": "store.settings.unreadable", "error": str(exc)},
                )

    def _persist_conversation(self, conversation_id: str) -> None:
        conversation = self._conversations[conversation_id]
        target = self.directory / f"{conversation_id}.json"
        payload = {
            "conversation": conversation.to_dict(),
            "messages": [m.to_dict() for m in self._messages[conversation_id]],
        }
        try:
            self._ensure_paths()
            self._write_json(target, payload)
            rows = self._read_index()
            if not any(row.get("id") == conversation_id for row in rows):
                rows.append(
                    {
                        "id": conversation_id,
                        "path": target.name,
                        "created_at": conversation.created_at.isoformat(),
                    }
                )
                self._write_json(self.index_path, rows)
        except OSError as exc:
            raise PersistenceError(f"Unable to write conversation {conversation_id}: {exc}") from exc

    def _persist_settings(self) -> None:
        if self._settings is None:
            return
        try:
            self._ensure_paths()
            self._write_json(self.settings_path, self._settings.to_dict())
        except OSError as exc:
            raise PersistenceError(f"Unable to write settings: {exc}") from exc
