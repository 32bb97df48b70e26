"""Assemble stores, providers, and a session from a validated config mapping."""

from __future__ import annotations

import logging
from typing import Any

from .config import resolve_api_key
from .models import Mode
from .monitor import AvailabilityMonitor
from .providers import LocalProvider, RemoteProvider
from .session import ChatSession
from .store import ConversationStore, InMemoryConversationStore, JsonFileConversationStore

LOGGER = logging.getLogger(__name__)


def build_store(config: dict[str, Any]) -> ConversationStore:
    """Create the store named by ``config["store"]["backend"]``."""
    store_config = config.get("store", {})
    session_config = config.get("session", {})
    default_mode = Mode(session_config.get("default_mode", Mode.ONLINE.value))
    default_model = str(config.get("local", {}).get("model", ""))

    backend = str(store_config.get("backend", "memory"))
    if backend == "json":
        return JsonFileConversationStore(
            directory=str(store_config["directory"]),
            default_mode=default_mode,
            default_model=default_model,
        )
    return InMemoryConversationStore(default_mode=default_mode, default_model=default_model)


def build_providers(
    config: dict[str, Any], environ: dict[str, str] | None = None
) -> tuple[RemoteProvider, LocalProvider]:
    remote_config = config["remote"]
    local_config = config["local"]
    api_key = resolve_api_key(remote_config, environ)
    if not api_key:
        LOGGER.warning(
            "bootstrap.remote.no_api_key",
            extra={"event": "bootstrap.remote.no_api_key", "env": remote_config.get("api_key_env")},
        )
    remote = RemoteProvider(
        api_key=api_key,
        model=remote_config["model"],
        base_url=remote_config["base_url"],
        label=remote_config["label"],
        temperature=float(remote_config["temperature"]),
        max_tokens=int(remote_config["max_tokens"]),
        timeout=float(remote_config["timeout"]),
    )
    local = LocalProvider(
        host=local_config["host"],
        model=local_config["model"],
        label=local_config["label"],
        timeout=float(local_config["timeout"]),
    )
    return remote, local


def build_session(
    config: dict[str, Any],
    store: ConversationStore | None = None,
    environ: dict[str, str] | None = None,
) -> ChatSession:
    """Return an unopened session that owns its providers."""
    remote, local = build_providers(config, environ)
    monitor = AvailabilityMonitor(
        local,
        interval_seconds=float(config["app"]["availability_check_interval_seconds"]),
    )
    session_config = config["session"]
    return ChatSession(
        store or build_store(config),
        remote,
        local,
        monitor,
        default_mode=Mode(session_config["default_mode"]),
        rollback_failed_sends=bool(session_config["rollback_failed_sends"]),
        owns_providers=True,
    )
