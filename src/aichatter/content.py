"""Encoding of mixed text and image message content into one stored string.

Plain messages are stored verbatim. Messages carrying images are stored as a
compact JSON object ``{"text": ..., "images": [...]}``. Decoding accepts both
forms and treats anything that does not parse as the structured form as plain
text, so legacy rows stay readable.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import json
from typing import Any


@dataclass(frozen=True)
class RichContent:
    """Transient text plus ordered encoded images."""

    text: str
    images: tuple[str, ...] = ()

    @property
    def has_images(self) -> bool:
        return bool(self.images)


def _looks_structured(content: str) -> bool:
    return content.startswith("{") and content.endswith("}")


def _parse_structured(content: str) -> RichContent | None:
    if not _looks_structured(content):
        return None
    try:
        parsed: Any = json.loads(content)
    except ValueError:
        return None
    if not isinstance(parsed, dict) or "text" not in parsed:
        return None

    text = parsed["text"]
    if text is None:
        text = ""
    if not isinstance(text, str):
        return None

    raw_images = parsed.get("images")
    images: tuple[str, ...] = ()
    if isinstance(raw_images, list):
        images = tuple(item for item in raw_images if isinstance(item, str))
    return RichContent(text=text, images=images)


def _serialize(text: str, images: Sequence[str]) -> str:
    return json.dumps(
        {"text": text, "images": list(images)},
        ensure_ascii=False,
        separators=(",", ":"),
    )


def encode_content(text: str, images: Sequence[str] = ()) -> str:
    """Return the stored form of ``text`` and ``images``.

    Without images the text is returned unchanged, except for text that would
    itself decode as the structured form; that text is wrapped with an empty
    image list so it reads back exactly.
    """
    if images:
        return _serialize(text, images)
    if _parse_structured(text) is not None:
        return _serialize(text, ())
    return text


def decode_content(content: str) -> RichContent:
    """Split a stored content string back into text and images."""
    parsed = _parse_structured(content)
    if parsed is None:
        return RichContent(text=content)
    return parsed


def content_text(content: str) -> str:
    """Return only the text part of a stored content string."""
    return decode_content(content).text
