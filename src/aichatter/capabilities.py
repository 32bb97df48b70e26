"""Static vision-capability lists for remote and local models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import Mode


class ProviderKind(str, Enum):
    """Transport family of a completion provider."""

    REMOTE = "remote"
    LOCAL = "local"


# Hosted multimodal models. Matching is substring based so versioned or
# namespaced identifiers ("meta-llama/llama-4-scout-17b-16e-instruct") still hit.
REMOTE_VISION_MODELS: tuple[str, ...] = (
    "meta-llama/llama-4-scout-17b-16e-instruct",
    "meta-llama/llama-4-maverick-17b-128e-instruct",
    "llama-4-scout",
    "llama-4-maverick",
)

# Locally hostable multimodal families.
LOCAL_VISION_MODELS: tuple[str, ...] = (
    "llava",
    "llama3.2-vision",
    "moondream",
    "minicpm-v",
    "gemma3",
)


def supports_vision(kind: ProviderKind, model_id: str) -> bool:
    """Return whether ``model_id`` accepts image input on ``kind``."""
    normalized = model_id.strip().lower()
    if not normalized:
        return False
    families = REMOTE_VISION_MODELS if kind is ProviderKind.REMOTE else LOCAL_VISION_MODELS
    return any(family in normalized for family in families)


def image_input_allowed(mode: Mode, remote_model: str) -> bool:
    """Whether the input surface should offer image attachments at all.

    Offline mode never offers images, regardless of the local model.
    """
    if mode is Mode.OFFLINE:
        return False
    return supports_vision(ProviderKind.REMOTE, remote_model)


@dataclass(frozen=True)
class ProviderDescriptor:
    """Snapshot of which provider/model a session is talking to."""

    kind: ProviderKind
    model_id: str
    supports_vision: bool

    @classmethod
    def describe(cls, kind: ProviderKind, model_id: str) -> ProviderDescriptor:
        return cls(
            kind=kind,
            model_id=model_id,
            supports_vision=supports_vision(kind, model_id),
        )
