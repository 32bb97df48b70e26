"""Tests for image attachment validation."""

from __future__ import annotations

import base64
from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from aichatter import attachments
from aichatter.attachments import (
    encode_image_bytes,
    is_data_url,
    load_images,
    split_data_url,
    validate_image_file,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


class EncodingTests(unittest.TestCase):
    def test_encode_image_bytes_builds_data_url(self) -> None:
        url = encode_image_bytes(PNG_BYTES, "image/PNG")
        self.assertTrue(url.startswith("data:image/png;base64,"))
        self.assertTrue(is_data_url(url))
        mime, payload = split_data_url(url)
        self.assertEqual(mime, "image/png")
        self.assertEqual(base64.b64decode(payload), PNG_BYTES)

    def test_encode_rejects_non_images(self) -> None:
        with self.assertRaises(ValueError):
            encode_image_bytes(b"text", "text/plain")

    def test_encode_rejects_oversized_payloads(self) -> None:
        with patch.object(attachments, "MAX_IMAGE_BYTES", 4):
            with self.assertRaisesRegex(ValueError, "too large"):
                encode_image_bytes(PNG_BYTES, "image/png")

    def test_split_data_url_passes_bare_base64_through(self) -> None:
        self.assertEqual(split_data_url("QUJD"), ("", "QUJD"))
        self.assertFalse(is_data_url("QUJD"))
        self.assertFalse(is_data_url("data:image/png;base64,***"))


class ValidateImageFileTests(unittest.TestCase):
    def test_valid_png_is_encoded(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "shot.png"
            path.write_bytes(PNG_BYTES)
            ok, message, data_url = validate_image_file(str(path))
        self.assertTrue(ok)
        self.assertEqual(message, "")
        self.assertIsNotNone(data_url)

    def test_missing_and_wrong_extension_are_reported(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            text_file = Path(tmp) / "notes.txt"
            text_file.write_text("hi", encoding="utf-8")
            ok_missing, missing_message, _ = validate_image_file(str(Path(tmp) / "nope.png"))
            ok_text, text_message, _ = validate_image_file(str(text_file))
        self.assertFalse(ok_missing)
        self.assertIn("not found", missing_message)
        self.assertFalse(ok_text)
        self.assertIn("Invalid image type", text_message)

    def test_load_images_splits_successes_and_errors(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            good = Path(tmp) / "a.png"
            good.write_bytes(PNG_BYTES)
            with self.assertLogs("aichatter.attachments", level="WARNING"):
                images, errors = load_images([str(good), str(Path(tmp) / "b.png")])
        self.assertEqual(len(images), 1)
        self.assertEqual(len(errors), 1)


if __name__ == "__main__":
    unittest.main()
