"""Image attachment validation and data-URL encoding."""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
from pathlib import Path

LOGGER = logging.getLogger(__name__)

# Upper bound for a single encoded image payload (hosted vision endpoints cap at 4 MB).
MAX_IMAGE_BYTES = 4 * 1024 * 1024

IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"}
)

_DATA_URL_PREFIX = "data:"
_BASE64_MARKER = ";base64,"


def is_image_mime(mime_type: str | None) -> bool:
    return bool(mime_type) and str(mime_type).lower().startswith("image/")


def encode_image_bytes(data: bytes, mime_type: str) -> str:
    """Return a self-contained ``data:`` URL for raw image bytes."""
    if not is_image_mime(mime_type):
        raise ValueError(f"Not an image type: {mime_type!r}")
    if len(data) > MAX_IMAGE_BYTES:
        max_mb = MAX_IMAGE_BYTES / (1024 * 1024)
        raise ValueError(f"Image too large (max {max_mb:.1f}MB)")
    payload = base64.b64encode(data).decode("ascii")
    return f"{_DATA_URL_PREFIX}{mime_type.lower()}{_BASE64_MARKER}{payload}"


def split_data_url(image: str) -> tuple[str, str]:
    """Return ``(mime_type, base64_payload)`` for an encoded image.

    Bare base64 strings (no ``data:`` header) are returned with an empty mime type.
    """
    if image.startswith(_DATA_URL_PREFIX) and _BASE64_MARKER in image:
        header, payload = image.split(_BASE64_MARKER, 1)
        return header[len(_DATA_URL_PREFIX) :], payload
    return "", image


def is_data_url(image: str) -> bool:
    mime_type, payload = split_data_url(image)
    if not is_image_mime(mime_type) or not payload:
        return False
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def validate_image_file(path: str) -> tuple[bool, str, str | None]:
    """Validate an image on disk and encode it.

    Returns:
        Tuple of (success, error_message, data_url)
    """
    try:
        resolved = Path(path).expanduser().resolve()

        if not resolved.exists():
            return False, f"Image not found: {path}", None

        if not resolved.is_file():
            return False, f"Not a file: {path}", None

        if resolved.suffix.lower() not in IMAGE_EXTENSIONS:
            exts = ", ".join(sorted(IMAGE_EXTENSIONS))
            return False, f"Invalid image type. Allowed: {exts}", None

        mime_type, _ = mimetypes.guess_type(resolved.name)
        if not is_image_mime(mime_type):
            return False, f"Unrecognized image type: {resolved.name}", None

        size = resolved.stat().st_size
        if size > MAX_IMAGE_BYTES:
            max_mb = MAX_IMAGE_BYTES / (1024 * 1024)
            return False, f"Image too large (max {max_mb:.1f}MB)", None

        return True, "", encode_image_bytes(resolved.read_bytes(), str(mime_type))

    except (OSError, ValueError) as exc:
        return False, f"Error validating image: {exc}", None


def load_images(paths: list[str]) -> tuple[list[str], list[str]]:
    """Validate several image paths at once.

    Returns:
        Tuple of (data_urls, error_messages)
    """
    images: list[str] = []
    errors: list[str] = []
    for raw_path in paths:
        ok, message, data_url = validate_image_file(raw_path)
        if ok and data_url is not None:
            images.append(data_url)
        else:
            errors.append(message)
            LOGGER.warning(
                "attachments.image.rejected",
                extra={"event": "attachments.image.rejected", "reason": message},
            )
    return images, errors
