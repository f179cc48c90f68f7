"""
tests/test_settings.py - Unit tests for ghostlens.utils.settings

Covers:
  - Defaults when nothing is configured
  - VITE_ fallbacks
  - env.local / .env.local loading without overriding the environment
  - Bad numeric values
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from ghostlens.utils.settings import DEFAULT_API_URL, DEFAULT_MODEL_NAME, Settings

GHOSTLENS_VARS = (
    "OPEN_ROUTER_API_KEY",
    "MODEL_NAME",
    "OPEN_ROUTER_API_URL",
    "VITE_OPEN_ROUTER_API_KEY",
    "VITE_MODEL_NAME",
    "VITE_OPEN_ROUTER_API_URL",
    "GHOSTLENS_CAPTURE_TIMEOUT",
    "GHOSTLENS_REQUEST_TIMEOUT",
    "GHOSTLENS_SPEECH_LANGUAGE",
    "GHOSTLENS_LOG_LEVEL",
)


class TestSettings(unittest.TestCase):

    def setUp(self):
        self.env = patch.dict(os.environ, {}, clear=False)
        self.env.start()
        for name in GHOSTLENS_VARS:
            os.environ.pop(name, None)
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name

    def tearDown(self):
        self.env.stop()
        self.tmp.cleanup()

    def test_defaults(self):
        settings = Settings.from_env(self.dir)
        self.assertEqual(settings.api_key, "")
        self.assertFalse(settings.has_api_key)
        self.assertEqual(settings.model_name, DEFAULT_MODEL_NAME)
        self.assertEqual(settings.api_url, DEFAULT_API_URL)
        self.assertEqual(settings.capture_timeout, 5.0)
        self.assertEqual(settings.request_timeout, 60.0)
        self.assertEqual(settings.speech_language, "en-US")
        self.assertEqual(settings.log_level, "INFO")

    def test_plain_and_vite_names(self):
        os.environ["OPEN_ROUTER_API_KEY"] = "sk-plain"
        os.environ["VITE_OPEN_ROUTER_API_KEY"] = "sk-vite"
        os.environ["VITE_MODEL_NAME"] = "anthropic/some-model"
        settings = Settings.from_env(self.dir)
        self.assertEqual(settings.api_key, "sk-plain")
        self.assertEqual(settings.model_name, "anthropic/some-model")
        self.assertTrue(settings.has_api_key)

    def test_env_local_file(self):
        Path(self.dir, "env.local").write_text(
            "VITE_OPEN_ROUTER_API_KEY=sk-file\nGHOSTLENS_CAPTURE_TIMEOUT=2.5\n"
        )
        settings = Settings.from_env(self.dir)
        self.assertEqual(settings.api_key, "sk-file")
        self.assertEqual(settings.capture_timeout, 2.5)

    def test_environment_wins_over_file(self):
        Path(self.dir, ".env.local").write_text("OPEN_ROUTER_API_KEY=sk-file\n")
        os.environ["OPEN_ROUTER_API_KEY"] = "sk-env"
        self.assertEqual(Settings.from_env(self.dir).api_key, "sk-env")

    def test_bad_number_uses_default(self):
        os.environ["GHOSTLENS_REQUEST_TIMEOUT"] = "soon"
        with self.assertLogs("ghostlens.utils.settings", level="WARNING"):
            settings = Settings.from_env(self.dir)
        self.assertEqual(settings.request_timeout, 60.0)

    def test_log_level_is_uppercased(self):
        os.environ["GHOSTLENS_LOG_LEVEL"] = "debug"
        self.assertEqual(Settings.from_env(self.dir).log_level, "DEBUG")


if __name__ == "__main__":
    unittest.main()
