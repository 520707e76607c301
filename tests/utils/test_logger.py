"""Unit tests for Logger."""
from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from voicescribe.utils.logger import Logger


class TestLogger(unittest.TestCase):
    """Test cases for Logger."""

    def test_backlog_is_replayed_to_first_subscriber(self):
        logger = Logger(timestamps=False)
        logger.log("one")
        logger.log("")
        subscriber = MagicMock()

        logger.on_emit = subscriber
        logger.log("two")

        self.assertEqual([c.args[0] for c in subscriber.call_args_list], ["one", "two"])

    def test_save_writes_lines(self):
        with tempfile.TemporaryDirectory() as tmp:
            logger = Logger(log_dir=Path(tmp), timestamps=False)
            logger.log("first")
            logger.log("second")

            path = logger.save()

            self.assertEqual(path.read_text(encoding="utf-8"), "first\nsecond")


if __name__ == "__main__":
    unittest.main()
