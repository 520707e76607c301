"""Unit tests for environment-driven configuration."""
from __future__ import annotations

import os
import unittest
from pathlib import Path
from unittest.mock import patch

from voicescribe.config import AppConfig


class TestAppConfig(unittest.TestCase):
    """Test cases for AppConfig.from_env."""

    def test_defaults(self):
        """Test defaults when nothing is set."""
        with patch.dict(os.environ, {}, clear=True):
            config = AppConfig.from_env()

        self.assertEqual(config.audio.sample_rate, 16_000)
        self.assertEqual(config.audio.channels, 1)
        self.assertIsNone(config.audio.device)
        self.assertFalse(config.audio.keep_recordings)
        self.assertEqual(config.model.name, "tiny")
        self.assertEqual(config.model.models_dir, Path("models"))
        self.assertEqual(config.ffmpeg_binary, "ffmpeg")

    def test_overrides(self):
        """Test that each variable maps onto its field."""
        env = {
            "VOICESCRIBE_MODEL": "base.en",
            "VOICESCRIBE_MODELS_DIR": "/opt/models",
            "VOICESCRIBE_LANGUAGE": "en",
            "VOICESCRIBE_BEAM_SIZE": "2",
            "VOICESCRIBE_INPUT_DEVICE": "3",
            "VOICESCRIBE_KEEP_RECORDINGS": "yes",
            "VOICESCRIBE_SETTLE_SECONDS": "0.25",
        }
        with patch.dict(os.environ, env, clear=True):
            config = AppConfig.from_env()

        self.assertEqual(config.model.name, "base.en")
        self.assertEqual(config.model.models_dir, Path("/opt/models"))
        self.assertEqual(config.model.language, "en")
        self.assertEqual(config.model.beam_size, 2)
        self.assertEqual(config.audio.device, 3)
        self.assertTrue(config.audio.keep_recordings)
        self.assertEqual(config.audio.settle_delay_seconds, 0.25)

    def test_named_device_stays_a_string(self):
        with patch.dict(os.environ, {"VOICESCRIBE_INPUT_DEVICE": "USB Mic"}, clear=True):
            config = AppConfig.from_env()

        self.assertEqual(config.audio.device, "USB Mic")

    def test_invalid_values_raise(self):
        """Test that malformed values name the offending variable."""
        for name, value in [
            ("VOICESCRIBE_BLOCKSIZE", "abc"),
            ("VOICESCRIBE_BLOCKSIZE", "0"),
            ("VOICESCRIBE_KEEP_RECORDINGS", "maybe"),
            ("VOICESCRIBE_ACTIVATION_ATTEMPTS", "0"),
        ]:
            with self.subTest(name=name, value=value):
                with patch.dict(os.environ, {name: value}, clear=True):
                    with self.assertRaises(ValueError) as ctx:
                        AppConfig.from_env()
                self.assertIn(name, str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
