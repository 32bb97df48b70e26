"""Completion providers and the mode-based selection rule."""

from __future__ import annotations

from ..exceptions import ProviderUnavailableError
from ..models import Mode
from .base import CONTEXT_WINDOW, CompletionProvider, Turn
from .local import LocalProvider
from .remote import RemoteProvider


def select_provider(
    mode: Mode,
    local_available: bool,
    remote: CompletionProvider,
    local: CompletionProvider,
) -> CompletionProvider:
    """Pick the provider for ``mode``; offline requires a reachable local provider."""
    if mode is Mode.ONLINE:
        return remote
    if not local_available:
        raise ProviderUnavailableError(
            "Local provider is not running. Please start Ollama and try again."
        )
    return local


__all__ = [
    "CONTEXT_WINDOW",
    "CompletionProvider",
    "LocalProvider",
    "RemoteProvider",
    "Turn",
    "select_provider",
]
