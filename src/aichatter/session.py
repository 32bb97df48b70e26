"""Session pipeline: history loading, optimistic sends, and realtime reconciliation.

A session serves one open conversation at a time. All pipeline steps run
sequentially on the event loop; only the availability monitor runs on its own
task. The in-memory ``MessageList`` is shared between the send path and the
store's insert feed, and both mutate it through id-keyed operations only.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
import logging
from typing import TypeVar

from .capabilities import ProviderDescriptor, image_input_allowed
from .content import content_text, encode_content
from .conversations import ConversationManager
from .exceptions import (
    ModeSwitchError,
    PersistenceError,
    ProviderUnavailableError,
    SendInProgressError,
    SessionNotReadyError,
)
from .message_list import MessageList
from .models import THINKING_CONTENT, Conversation, Message, Mode
from .monitor import Availability, AvailabilityMonitor
from .providers import LocalProvider, RemoteProvider, Turn, select_provider
from .state import SendPhase, SessionState, StateManager
from .store.base import ConversationStore, Subscription

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

# A first exchange is recognised while the re-fetched history is this short.
FIRST_EXCHANGE_HISTORY_LENGTH = 2


@dataclass(frozen=True)
class SendOutcome:
    """What a single send produced.

    ``error`` is the user-visible failure text, if any. ``assistant_message``
    holds either the reply or the synthetic error reply.
    """

    user_message: Message | None
    assistant_message: Message | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChatSession:
    """Orchestrates one user's conversation against the store and providers."""

    def __init__(
        self,
        store: ConversationStore,
        remote: RemoteProvider,
        local: LocalProvider,
        monitor: AvailabilityMonitor | None = None,
        *,
        default_mode: Mode = Mode.ONLINE,
        rollback_failed_sends: bool = True,
        owns_providers: bool = False,
    ) -> None:
        self.store = store
        self.remote = remote
        self.local = local
        self.monitor = monitor or AvailabilityMonitor(local)
        self.monitor.on_change(self._on_availability_change)
        self.conversations = ConversationManager(store)
        self.messages = MessageList()
        self.mode = default_mode
        self.rollback_failed_sends = rollback_failed_sends
        self.owns_providers = owns_providers
        self.conversation_id: str | None = None
        self.last_error: str | None = None
        self._state = StateManager()
        self._subscription: Subscription | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._mode_sync_pending = False

    @property
    def state(self) -> SessionState:
        return self._state.state

    @property
    def send_phase(self) -> SendPhase | None:
        return self._state.send_phase

    @property
    def sending(self) -> bool:
        return self._state.state is SessionState.SENDING

    @property
    def local_available(self) -> bool:
        return self.monitor.available

    @property
    def mode_sync_pending(self) -> bool:
        """True while the last mode change has not reached the store."""
        return self._mode_sync_pending

    @property
    def active_provider(self) -> ProviderDescriptor:
        provider = self.remote if self.mode is Mode.ONLINE else self.local
        return provider.descriptor

    @property
    def image_input_enabled(self) -> bool:
        return image_input_allowed(self.mode, self.remote.model)

    @property
    def monitor_running(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    async def _store_call(self, what: str, awaitable: Awaitable[T]) -> T:
        """Await a store operation, normalising failures to ``PersistenceError``."""
        try:
            return await awaitable
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"{what} failed: {exc}") from exc

    def _fail(self, message: str) -> str:
        self.last_error = message
        return message

    # Lifecycle -----------------------------------------------------------

    async def open(self, conversation_id: str | None = None) -> Conversation:
        """Load settings and history, subscribe to inserts, and start probing."""
        if not await self._state.transition_if(SessionState.IDLE, SessionState.LOADING):
            raise SessionNotReadyError(f"Cannot open a session in state {self.state.value}.")

        try:
            await self._apply_settings()
            if conversation_id is None:
                conversation = await self._store_call(
                    "Loading conversations", self.conversations.ensure_active()
                )
            else:
                conversation = await self._store_call(
                    "Loading conversation", self.store.get_conversation(conversation_id)
                )
            await self._load(conversation.id)
        except BaseException:
            self._unsubscribe()
            self.conversation_id = None
            self.messages.clear()
            await self._state.transition_if(SessionState.LOADING, SessionState.IDLE)
            raise

        await self.monitor.probe()
        self._start_monitor()
        await self._state.transition_if(SessionState.LOADING, SessionState.READY)
        LOGGER.info(
            "session.opened",
            extra={
                "event": "session.opened",
                "conversation_id": conversation.id,
                "mode": self.mode.value,
            },
        )
        return conversation

    async def select_conversation(self, conversation_id: str) -> None:
        """Switch the session to another conversation."""
        if not await self._state.transition_if(SessionState.READY, SessionState.LOADING):
            raise SessionNotReadyError(
                f"Cannot switch conversations in state {self.state.value}."
            )
        try:
            await self._load(conversation_id)
        finally:
            await self._state.transition_if(SessionState.LOADING, SessionState.READY)

    async def close(self) -> None:
        """Tear down the subscription and monitor task; in-flight sends still finish."""
        if self.state is SessionState.CLOSED:
            return
        await self._state.transition_to(SessionState.CLOSED)
        self._unsubscribe()
        await self._stop_monitor()
        if self._mode_sync_pending:
            await self._sync_mode_preference()
        if self.owns_providers:
            await self.remote.aclose()
            await self.local.aclose()
        LOGGER.info("session.closed", extra={"event": "session.closed"})

    async def _apply_settings(self) -> None:
        try:
            settings = await self.store.get_settings()
        except Exception as exc:
            LOGGER.warning(
                "session.settings.unavailable",
                extra={"event": "session.settings.unavailable", "error": str(exc)},
            )
            return
        self.mode = settings.preferred_mode
        if settings.preferred_model:
            self.local.set_model(settings.preferred_model)

    async def _load(self, conversation_id: str) -> None:
        """Fetch history, then point the view and insert feed at it.

        A failed fetch leaves the current conversation untouched.
        """
        history = await self._store_call(
            "Loading messages", self.store.list_messages(conversation_id)
        )
        self._unsubscribe()
        self._subscription = self.store.subscribe_inserts(conversation_id, self.handle_insert)
        self.conversation_id = conversation_id
        self.messages.replace_all(history)
        LOGGER.info(
            "session.history.loaded",
            extra={
                "event": "session.history.loaded",
                "conversation_id": conversation_id,
                "count": len(history),
            },
        )

    def _unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _start_monitor(self) -> None:
        if self.monitor_running:
            return
        self._monitor_task = asyncio.create_task(self.monitor.run(probe_first=False))

    async def _stop_monitor(self) -> None:
        task = self._monitor_task
        self._monitor_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _on_availability_change(self, snapshot: Availability) -> None:
        if self.mode is Mode.OFFLINE and not snapshot.available:
            LOGGER.warning(
                "session.local.unavailable",
                extra={"event": "session.local.unavailable"},
            )

    # Realtime reconciliation ---------------------------------------------

    def handle_insert(self, record: Message) -> None:
        """Merge a store-pushed insert; duplicates are ignored."""
        if self.state is SessionState.CLOSED or record.conversation_id != self.conversation_id:
            return
        if self.messages.merge(record):
            LOGGER.debug(
                "session.insert.merged",
                extra={"event": "session.insert.merged", "message_id": record.id},
            )

    # Send ----------------------------------------------------------------

    async def send(self, text: str, images: Sequence[str] | None = None) -> SendOutcome | None:
        """Send user input and wait for the assistant turn.

        Returns None for empty input. Raises ``SendInProgressError`` when a send
        is already running; every other failure is reported in the outcome.
        """
        attached = list(images or [])
        if not text.strip() and not attached:
            return None
        if not await self._state.transition_if(SessionState.READY, SessionState.SENDING):
            if self.sending:
                raise SendInProgressError("A message is already being sent.")
            raise SessionNotReadyError(f"Cannot send in state {self.state.value}.")

        self.last_error = None
        self._state.send_phase = SendPhase.PENDING
        try:
            return await self._send(text, attached)
        finally:
            await self._state.transition_if(SessionState.SENDING, SessionState.READY)

    async def _send(self, text: str, images: list[str]) -> SendOutcome:
        conversation_id = str(self.conversation_id)
        try:
            provider = select_provider(self.mode, self.monitor.available, self.remote, self.local)
        except ProviderUnavailableError as exc:
            return SendOutcome(None, None, self._fail(str(exc)))

        encoded = encode_content(text, images)
        placeholder = Message.placeholder(conversation_id, "user", encoded)
        self.messages.append(placeholder)

        try:
            user_record = await self._store_call(
                "Saving message",
                self.store.create_message(conversation_id, "user", encoded),
            )
        except PersistenceError as exc:
            if self.rollback_failed_sends:
                self.messages.remove(str(placeholder.temp_id))
            LOGGER.error(
                "session.send.persist_failed",
                extra={"event": "session.send.persist_failed", "error": str(exc)},
            )
            return SendOutcome(None, None, self._fail(f"Error sending message: {exc}"))

        self.messages.replace_placeholder(str(placeholder.temp_id), user_record)
        self._state.send_phase = SendPhase.USER_PERSISTED

        thinking: Message | None = None
        try:
            history = await self._store_call(
                "Loading messages", self.store.list_messages(conversation_id)
            )
            turns = [Turn(role=m.role, text=content_text(m.content)) for m in history]

            thinking = Message.placeholder(
                conversation_id, "assistant", THINKING_CONTENT, model=provider.thinking_label
            )
            self.messages.append(thinking)
            self._state.send_phase = SendPhase.AWAITING_COMPLETION

            reply = await provider.complete(turns, images)

            self.messages.remove(str(thinking.temp_id))
            thinking = None
            assistant_record = await self._store_call(
                "Saving reply",
                self.store.create_message(
                    conversation_id, "assistant", encode_content(reply), model=provider.label
                ),
            )
            self.messages.merge(assistant_record)
        except Exception as exc:
            if thinking is not None:
                self.messages.remove(str(thinking.temp_id))
            LOGGER.warning(
                "session.send.reply_failed",
                extra={
                    "event": "session.send.reply_failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            error = self._fail(f"AI response error: {exc}")
            return SendOutcome(user_record, await self._persist_error_reply(conversation_id, exc), error)

        if len(history) <= FIRST_EXCHANGE_HISTORY_LENGTH:
            await self._retitle(conversation_id, text)

        LOGGER.info(
            "session.send.complete",
            extra={
                "event": "session.send.complete",
                "conversation_id": conversation_id,
                "model": provider.label,
            },
        )
        return SendOutcome(user_record, assistant_record)

    async def _persist_error_reply(self, conversation_id: str, exc: Exception) -> Message | None:
        content = (
            "Sorry, I encountered an error while processing your request: "
            f"{exc}. Please try again."
        )
        try:
            record = await self.store.create_message(conversation_id, "assistant", content)
        except Exception as persist_exc:
            LOGGER.error(
                "session.send.error_reply_failed",
                extra={"event": "session.send.error_reply_failed", "error": str(persist_exc)},
            )
            return None
        self.messages.merge(record)
        return record

    async def _retitle(self, conversation_id: str, text: str) -> None:
        try:
            await self.conversations.retitle_if_default(conversation_id, text)
        except Exception as exc:
            LOGGER.warning(
                "session.retitle.failed",
                extra={"event": "session.retitle.failed", "error": str(exc)},
            )

    # Reset and mode ------------------------------------------------------

    async def reset(self) -> None:
        """Delete every message of the open conversation and clear the view."""
        if not await self._state.transition_if(SessionState.READY, SessionState.RESETTING):
            if self.sending:
                raise SendInProgressError("Cannot reset while a message is being sent.")
            raise SessionNotReadyError(f"Cannot reset in state {self.state.value}.")
        self.last_error = None
        try:
            await self._store_call(
                "Resetting chat", self.store.delete_messages(str(self.conversation_id))
            )
            self.messages.clear()
        except PersistenceError:
            self._fail("Failed to reset chat")
            raise
        finally:
            await self._state.transition_if(SessionState.RESETTING, SessionState.READY)

    async def switch_mode(self, target: Mode | None = None) -> Mode:
        """Toggle (or set) online/offline mode and persist the preference.

        A failed preference write keeps the new in-memory mode and is retried
        on the next switch or on close.
        """
        if self.state is SessionState.CLOSED:
            raise SessionNotReadyError("Session is closed.")
        new_mode = target or self.mode.other
        if new_mode is Mode.OFFLINE and not self.monitor.available:
            message = self._fail(
                "Local provider is not running. Please start Ollama before switching to offline mode."
            )
            raise ModeSwitchError(message)

        changed = new_mode is not self.mode
        self.mode = new_mode
        if changed or self._mode_sync_pending:
            await self._sync_mode_preference()
        return self.mode

    async def _sync_mode_preference(self) -> None:
        try:
            settings = await self.store.get_settings()
            settings.preferred_mode = self.mode
            await self.store.save_settings(settings)
        except Exception as exc:
            self._mode_sync_pending = True
            LOGGER.warning(
                "session.mode.persist_failed",
                extra={"event": "session.mode.persist_failed", "error": str(exc)},
            )
            return
        self._mode_sync_pending = False

    async def test_connection(self) -> str:
        """Check the active provider and return a human-readable status line."""
        if self.mode is Mode.ONLINE:
            if not self.remote.api_key:
                return self._fail("Remote API key is not set.")
            try:
                models = await self.remote.list_models()
            except Exception as exc:
                return self._fail(f"Failed to connect to remote provider: {exc}")
            return f"Remote API connection successful ({len(models)} models available)."

        snapshot = await self.monitor.probe()
        if not snapshot.available:
            return self._fail("Local provider is not running. Please start Ollama and try again.")
        if not snapshot.models:
            return self._fail(
                "Connected to local provider, but no models were found. "
                "Please install at least one model."
            )
        return (
            "Local provider connection successful. "
            f"Available models: {', '.join(snapshot.models)}"
        )
