"""Uniform completion contract shared by remote and local providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..capabilities import ProviderDescriptor, ProviderKind

# Fixed request policy: only the most recent turns are sent upstream.
CONTEXT_WINDOW = 10

DEFAULT_IMAGE_PROMPT = "What's in this image?"


@dataclass(frozen=True)
class Turn:
    """Text-only view of one conversation message."""

    role: str
    text: str


def window(history: Sequence[Turn]) -> list[Turn]:
    """Return the trailing ``CONTEXT_WINDOW`` turns."""
    return list(history[-CONTEXT_WINDOW:])


def multimodal_content(text: str, images: Sequence[str]) -> list[dict[str, Any]]:
    """Build an OpenAI-style content array: one text part then one part per image."""
    parts: list[dict[str, Any]] = [{"type": "text", "text": text or DEFAULT_IMAGE_PROMPT}]
    for image in images:
        parts.append({"type": "image_url", "image_url": {"url": image}})
    return parts


class CompletionProvider(ABC):
    """A completion backend behind ``complete(history, images) -> text``."""

    kind: ProviderKind
    label_prefix: str

    def __init__(self, model: str) -> None:
        self.model = model.strip()

    @property
    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor.describe(self.kind, self.model)

    @property
    def label(self) -> str:
        """Model label recorded on assistant messages, e.g. ``groq-llama-4-scout``."""
        short_name = self.model.split("/")[-1] or self.model
        return f"{self.label_prefix}-{short_name}"

    @property
    def thinking_label(self) -> str:
        return f"{self.label_prefix}-thinking"

    def set_model(self, model_name: str) -> None:
        normalized = model_name.strip()
        if normalized:
            self.model = normalized

    @abstractmethod
    async def complete(
        self,
        history: Sequence[Turn],
        images: Sequence[str] | None = None,
    ) -> str:
        """Return the assistant reply for ``history``.

        Raises:
            ProviderError: on any non-success outcome.
        """

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return model identifiers known to the backend."""

    async def aclose(self) -> None:
        """Release transport resources owned by the provider."""
