"""Local Ollama provider with fresh model validation on every call."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Any

import httpx
from ollama import AsyncClient, ResponseError

from ..attachments import split_data_url
from ..capabilities import ProviderKind, supports_vision
from ..exceptions import (
    InvalidResponseFormatError,
    NoModelsAvailableError,
    ProviderError,
    TransportError,
)
from .base import DEFAULT_IMAGE_PROMPT, CompletionProvider, Turn, window

LOGGER = logging.getLogger(__name__)

DEFAULT_LOCAL_HOST = "http://localhost:11434"
DEFAULT_LOCAL_MODEL = "gemma3:4b-it-q4_K_M"


def _model_names(response: Any) -> list[str]:
    """Pull model names out of an SDK object or a raw ``{"models": [...]}`` dict."""
    models: Any = None
    if hasattr(response, "models"):
        models = response.models
    elif isinstance(response, dict):
        models = response.get("models")

    names: list[str] = []
    if not isinstance(models, list):
        return names
    for model in models:
        candidate: str | None = None
        for key in ("name", "model"):
            value = model.get(key) if isinstance(model, dict) else getattr(model, key, None)
            if isinstance(value, str) and value.strip():
                candidate = value.strip()
                break
        if candidate:
            names.append(candidate)
    return names


def _reply_content(response: Any) -> Any:
    """Return ``message.content`` from an SDK object or a raw dict, else None."""
    message_obj = getattr(response, "message", None)
    if message_obj is not None and not isinstance(response, dict):
        return getattr(message_obj, "content", None)
    if isinstance(response, dict):
        message = response.get("message")
        if isinstance(message, dict):
            return message.get("content")
    return None


class LocalProvider(CompletionProvider):
    """Talks to a locally running Ollama server."""

    kind = ProviderKind.LOCAL

    def __init__(
        self,
        host: str = DEFAULT_LOCAL_HOST,
        model: str = DEFAULT_LOCAL_MODEL,
        label: str = "ollama",
        timeout: float = 120,
        client: Any | None = None,
    ) -> None:
        super().__init__(model)
        self.host = host
        self.label_prefix = label
        self.timeout = timeout
        self._client = client if client is not None else AsyncClient(host=host, timeout=timeout)
        self._owns_client = client is None
        self.last_model: str | None = None

    @property
    def label(self) -> str:
        return f"{self.label_prefix}-{self.last_model or self.model}"

    async def list_models(self) -> list[str]:
        """Return installed model names; transport failures propagate."""
        response = await self._client.list()
        return _model_names(response)

    async def resolve_model(self) -> str:
        """Validate the requested model against a fresh listing.

        Falls back to the first installed model when the requested one is absent.
        """
        try:
            available = await self.list_models()
        except Exception as exc:
            raise TransportError(
                f"Local provider not available or not running at {self.host}. "
                "Please make sure Ollama is installed and running."
            ) from exc

        if not available:
            raise NoModelsAvailableError(f"No models available on {self.host}.")
        if self.model in available:
            return self.model

        substitute = available[0]
        LOGGER.warning(
            "local.model.substituted",
            extra={
                "event": "local.model.substituted",
                "requested": self.model,
                "using": substitute,
            },
        )
        return substitute

    def build_messages(
        self,
        history: Sequence[Turn],
        images: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Shape request messages; images ride on the final turn only.

        Ollama's chat API takes raw base64 payloads in a per-message ``images``
        list rather than a content array, so data-URL headers are stripped. This
        shape intentionally differs from the hosted provider's content parts.
        """
        messages: list[dict[str, Any]] = [
            {
                "role": "assistant" if turn.role == "assistant" else "user",
                "content": turn.text,
            }
            for turn in window(history)
        ]
        if images and messages:
            last = messages[-1]
            last["content"] = last["content"] or DEFAULT_IMAGE_PROMPT
            last["images"] = [split_data_url(image)[1] for image in images]
        return messages

    def _map_exception(self, exc: Exception, model: str) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc
        if isinstance(exc, ResponseError):
            return TransportError(
                exc.error or f"Local provider error: {exc.status_code}",
                status_code=exc.status_code,
            )
        if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError)):
            return TransportError(f"Unable to connect to local provider at {self.host}.")
        return TransportError(f"Local completion with {model!r} failed: {exc}")

    async def complete(
        self,
        history: Sequence[Turn],
        images: Sequence[str] | None = None,
    ) -> str:
        model = await self.resolve_model()
        self.last_model = model

        attached = list(images or []) if supports_vision(self.kind, model) else []
        if images and not attached:
            LOGGER.info(
                "local.images.omitted",
                extra={"event": "local.images.omitted", "model": model},
            )
        messages = self.build_messages(history, attached)
        LOGGER.info(
            "local.request",
            extra={
                "event": "local.request",
                "model": model,
                "message_count": len(messages),
                "image_count": len(attached),
            },
        )

        try:
            response = await self._client.chat(model=model, messages=messages, stream=False)
        except Exception as exc:
            raise self._map_exception(exc, model) from exc

        content = _reply_content(response)
        if not isinstance(content, str):
            raise InvalidResponseFormatError("Invalid response format from local provider.")
        return content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()
