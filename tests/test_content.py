"""Tests for the stored-content codec."""

from __future__ import annotations

import json
import unittest

from aichatter.content import RichContent, content_text, decode_content, encode_content

PNG = "data:image/png;base64,iVBORw0KGgo="
JPEG = "data:image/jpeg;base64,/9j/4AAQSkZJRg=="


class EncodeContentTests(unittest.TestCase):
    """Validate the stored form of text and images."""

    def test_plain_text_is_stored_verbatim(self) -> None:
        self.assertEqual(encode_content("Hello"), "Hello")
        self.assertEqual(encode_content("", ()), "")

    def test_images_produce_compact_json(self) -> None:
        stored = encode_content("look", [PNG, JPEG])
        self.assertNotIn(" ", stored)
        self.assertEqual(json.loads(stored), {"text": "look", "images": [PNG, JPEG]})

    def test_non_ascii_text_is_not_escaped(self) -> None:
        stored = encode_content("héllo 👋", [PNG])
        self.assertIn("héllo 👋", stored)

    def test_text_resembling_structured_form_is_wrapped(self) -> None:
        tricky = '{"text":"hi","images":[]}'
        stored = encode_content(tricky)
        self.assertNotEqual(stored, tricky)
        self.assertEqual(decode_content(stored), RichContent(text=tricky))

    def test_braced_text_that_is_not_structured_stays_plain(self) -> None:
        self.assertEqual(encode_content("{not json}"), "{not json}")
        self.assertEqual(encode_content('{"other": 1}'), '{"other": 1}')


class DecodeContentTests(unittest.TestCase):
    """Validate decoding and legacy fallbacks."""

    def test_text_round_trips_without_images(self) -> None:
        for text in ("", "Hello", "  spaced  ", "{", "}", "{}", '{"text": 3}', "line\nbreak"):
            with self.subTest(text=text):
                self.assertEqual(decode_content(encode_content(text)), RichContent(text=text))

    def test_images_round_trip_in_order(self) -> None:
        decoded = decode_content(encode_content("two", [JPEG, PNG, JPEG]))
        self.assertEqual(decoded.text, "two")
        self.assertEqual(decoded.images, (JPEG, PNG, JPEG))
        self.assertTrue(decoded.has_images)

    def test_malformed_strings_decode_as_plain_text(self) -> None:
        for raw in ('{"text": "unterminated"', "{broken}", "[1, 2]", '{"images": []}', '{"text": ["a"]}'):
            with self.subTest(raw=raw):
                self.assertEqual(decode_content(raw), RichContent(text=raw))

    def test_null_text_decodes_to_empty_string(self) -> None:
        self.assertEqual(decode_content('{"text":null,"images":[]}'), RichContent(text=""))

    def test_non_string_images_are_ignored(self) -> None:
        decoded = decode_content(json.dumps({"text": "x", "images": [PNG, 5, None]}))
        self.assertEqual(decoded.images, (PNG,))

    def test_missing_images_key_yields_empty_sequence(self) -> None:
        self.assertEqual(decode_content('{"text":"only"}'), RichContent(text="only"))

    def test_content_text_drops_images(self) -> None:
        self.assertEqual(content_text(encode_content("caption", [PNG])), "caption")
        self.assertEqual(content_text("plain"), "plain")


if __name__ == "__main__":
    unittest.main()
