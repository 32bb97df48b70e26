"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import aichatter


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        for name in aichatter.__all__:
            with self.subTest(name=name):
                self.assertIsNotNone(getattr(aichatter, name))
        self.assertTrue(callable(aichatter.load_config))
        self.assertTrue(callable(aichatter.encode_content))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(aichatter, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
