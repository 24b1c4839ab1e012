"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import deep_probe


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        self.assertTrue(callable(deep_probe.load_config))
        self.assertTrue(callable(deep_probe.ensure_config_dir))
        self.assertTrue(callable(deep_probe.build_default_registry))
        self.assertIsNotNone(deep_probe.SessionController)
        self.assertIsNotNone(deep_probe.ResearchApiClient)
        self.assertIsNotNone(deep_probe.DeepProbeError)
        self.assertIsNotNone(deep_probe.ConversationBusyError)
        self.assertIsNotNone(deep_probe.MentionTransformer)
        self.assertIsNotNone(deep_probe.Composer)
        self.assertIsNotNone(deep_probe.StateManager)
        self.assertIsNotNone(deep_probe.MessageStore)
        self.assertTrue(deep_probe.ERROR_REPLY_TEXT.startswith("Sorry"))

    def test_all_lists_every_export(self) -> None:
        for name in deep_probe.__all__:
            with self.subTest(name=name):
                self.assertIsNotNone(getattr(deep_probe, name))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(deep_probe, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
