"""Top-level package for ai-chatter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .bootstrap import build_session, build_store
    from .config import ensure_config_dir, load_config
    from .content import RichContent, decode_content, encode_content
    from .exceptions import (
        ChatterError,
        ConfigValidationError,
        PersistenceError,
        ProviderError,
        SessionError,
    )
    from .models import Conversation, Message, Mode, UserSettings
    from .session import ChatSession, SendOutcome

__all__ = [
    "ChatSession",
    "ChatterError",
    "ConfigValidationError",
    "Conversation",
    "Message",
    "Mode",
    "PersistenceError",
    "ProviderError",
    "RichContent",
    "SendOutcome",
    "SessionError",
    "UserSettings",
    "build_session",
    "build_store",
    "decode_content",
    "encode_content",
    "ensure_config_dir",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols so importing the package stays cheap."""
    if name in {"ChatSession", "SendOutcome"}:
        from .session import ChatSession, SendOutcome

        return {"ChatSession": ChatSession, "SendOutcome": SendOutcome}[name]
    if name in {"build_session", "build_store"}:
        from .bootstrap import build_session, build_store

        return {"build_session": build_session, "build_store": build_store}[name]
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in {"RichContent", "decode_content", "encode_content"}:
        from . import content

        return getattr(content, name)
    if name in {
        "ChatterError",
        "ConfigValidationError",
        "PersistenceError",
        "ProviderError",
        "SessionError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"Conversation", "Message", "Mode", "UserSettings"}:
        from . import models

        return getattr(models, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
