"""
Unit tests for settings module.

Tests loading, saving and recovery of the studio settings file.
"""

import json
import unittest
import tempfile
from pathlib import Path

from CS_Libs.settings import StudioSettings, load_settings, save_settings, settings_path


class TestStudioSettings(unittest.TestCase):
    """Test StudioSettings conversion."""

    def test_from_dict_ignores_unknown_keys(self):
        settings = StudioSettings.from_dict({"log_level": "DEBUG", "theme": "dark"})
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertFalse(hasattr(settings, "theme"))

    def test_from_dict_coerces_types(self):
        settings = StudioSettings.from_dict({"max_apply_workers": "4", "ai_poll_interval": 1})
        self.assertEqual(settings.max_apply_workers, 4)
        self.assertIsInstance(settings.ai_poll_interval, float)

    def test_invalid_value_keeps_default(self):
        settings = StudioSettings.from_dict({"window_width": "wide"})
        self.assertEqual(settings.window_width, StudioSettings().window_width)

    def test_round_trip(self):
        settings = StudioSettings(storage_dir="/tmp/studio", default_brush_size=40)
        self.assertEqual(StudioSettings.from_dict(settings.to_dict()), settings)


class TestLoadSettings(unittest.TestCase):
    """Test reading the settings file."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = settings_path(Path(self.tmpdir.name))

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_missing_file_is_created(self):
        settings = load_settings(self.path)
        self.assertEqual(settings, StudioSettings())
        self.assertTrue(self.path.exists())

    def test_saved_values_are_loaded(self):
        save_settings(StudioSettings(log_level="WARNING", window_height=600), self.path)
        settings = load_settings(self.path)
        self.assertEqual(settings.log_level, "WARNING")
        self.assertEqual(settings.window_height, 600)

    def test_partial_file_merges_defaults(self):
        self.path.write_text(json.dumps({"default_brush_size": 12}))
        settings = load_settings(self.path)
        self.assertEqual(settings.default_brush_size, 12)
        self.assertEqual(settings.max_apply_workers, 2)

    def test_corrupted_file_is_recreated(self):
        self.path.write_text("{ broken")
        with self.assertLogs("CS_Libs.settings", level="WARNING"):
            settings = load_settings(self.path)
        self.assertEqual(settings, StudioSettings())
        self.assertEqual(json.loads(self.path.read_text()), StudioSettings().to_dict())

    def test_non_object_file_is_recreated(self):
        self.path.write_text("[1, 2, 3]")
        self.assertEqual(load_settings(self.path), StudioSettings())


if __name__ == "__main__":
    unittest.main()
