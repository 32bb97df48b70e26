"""Session state machine and lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum
import logging

LOGGER = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of an open chat session."""

    IDLE = "IDLE"
    LOADING = "LOADING"
    READY = "READY"
    SENDING = "SENDING"
    RESETTING = "RESETTING"
    CLOSED = "CLOSED"


class SendPhase(str, Enum):
    """Sub-states of ``SENDING``."""

    PENDING = "PENDING"
    USER_PERSISTED = "USER_PERSISTED"
    AWAITING_COMPLETION = "AWAITING_COMPLETION"


class StateManager:
    """Manage state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = SessionState.IDLE
        self.send_phase: SendPhase | None = None

    @property
    def state(self) -> SessionState:
        """Current state, read without taking the lock."""
        return self._state

    async def transition_to(self, new_state: SessionState) -> SessionState:
        """Transition to a new state and return it."""
        async with self._lock:
            self._set(new_state)
            return self._state

    async def transition_if(
        self,
        expected_state: SessionState,
        new_state: SessionState,
    ) -> bool:
        """Transition only when current state matches expected state."""
        async with self._lock:
            if self._state != expected_state:
                return False
            self._set(new_state)
            return True

    def _set(self, new_state: SessionState) -> None:
        old_state = self._state
        self._state = new_state
        if new_state != SessionState.SENDING:
            self.send_phase = None
        LOGGER.debug(
            "session.state.transition",
            extra={
                "event": "session.state.transition",
                "from_state": old_state.value,
                "to_state": new_state.value,
            },
        )
