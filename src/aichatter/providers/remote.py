"""Hosted OpenAI-compatible chat completions provider."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Any

import httpx

from ..capabilities import ProviderKind, supports_vision
from ..exceptions import ConfigurationError, InvalidResponseFormatError, TransportError
from .base import CompletionProvider, Turn, multimodal_content, window

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_REMOTE_MODEL = "meta-llama/llama-4-scout-17b-16e-instruct"


def _error_message(response: httpx.Response) -> str:
    """Prefer the upstream ``error.message`` field over a generic status message."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        elif isinstance(error, str) and error.strip():
            return error.strip()
    return f"Error calling remote completion API: {response.status_code}"


class RemoteProvider(CompletionProvider):
    """Sends the trailing conversation window to a hosted completion endpoint."""

    kind = ProviderKind.REMOTE

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_REMOTE_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        label: str = "groq",
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(model)
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.label_prefix = label
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("Remote completion API key is missing.")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def build_messages(
        self, history: Sequence[Turn], images: Sequence[str] | None = None
    ) -> list[dict[str, Any]]:
        """Shape the request messages; only the final turn carries images."""
        recent = window(history)
        messages: list[dict[str, Any]] = [
            {"role": turn.role, "content": turn.text} for turn in recent
        ]
        if images and messages:
            messages[-1]["content"] = multimodal_content(recent[-1].text, images)
        return messages

    async def complete(
        self,
        history: Sequence[Turn],
        images: Sequence[str] | None = None,
    ) -> str:
        headers = self._headers()
        attached = list(images or [])
        if attached and not supports_vision(self.kind, self.model):
            LOGGER.info(
                "remote.images.dropped",
                extra={
                    "event": "remote.images.dropped",
                    "model": self.model,
                    "count": len(attached),
                },
            )
            attached = []

        payload = {
            "model": self.model,
            "messages": self.build_messages(history, attached),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        LOGGER.info(
            "remote.request",
            extra={
                "event": "remote.request",
                "model": self.model,
                "message_count": len(payload["messages"]),
                "image_count": len(attached),
            },
        )

        try:
            response = await self._http().post(
                f"{self.base_url}/chat/completions", json=payload, headers=headers
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Remote completion request failed: {exc}") from exc

        if not response.is_success:
            message = _error_message(response)
            LOGGER.warning(
                "remote.request.failed",
                extra={
                    "event": "remote.request.failed",
                    "status_code": response.status_code,
                    "error": message,
                },
            )
            raise TransportError(message, status_code=response.status_code)

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise InvalidResponseFormatError(
                "Invalid response format from remote completion API."
            ) from exc
        if not isinstance(content, str):
            raise InvalidResponseFormatError(
                "Invalid response format from remote completion API."
            )
        return content

    async def list_models(self) -> list[str]:
        """Return model ids from the ``/models`` endpoint."""
        headers = self._headers()
        try:
            response = await self._http().get(f"{self.base_url}/models", headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Remote model listing failed: {exc}") from exc
        if not response.is_success:
            raise TransportError(_error_message(response), status_code=response.status_code)
        try:
            data = response.json().get("data")
        except (ValueError, AttributeError) as exc:
            raise InvalidResponseFormatError("Invalid model list from remote API.") from exc
        if not isinstance(data, list):
            raise InvalidResponseFormatError("Invalid model list from remote API.")
        return [
            str(item["id"])
            for item in data
            if isinstance(item, dict) and isinstance(item.get("id"), str)
        ]

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
