"""
Unit tests for logging utilities.
"""

import logging
import os
import tempfile
import unittest

from log_utils import setup_logging


class TestLogUtils(unittest.TestCase):
    """Test logging utilities."""

    def test_setup_logging_default(self):
        """Test default logging setup."""
        logger = setup_logging()
        self.assertIsInstance(logger, logging.Logger)

    def test_setup_logging_verbose(self):
        """Test verbose logging setup."""
        logger = setup_logging(verbose=True)
        self.assertIsInstance(logger, logging.Logger)

    def test_setup_logging_quiets_urllib3(self):
        """Test urllib3 connection logging is raised to WARNING."""
        setup_logging(verbose=True)
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)

    def test_setup_logging_with_file(self):
        """Test a log file can be requested."""
        with tempfile.TemporaryDirectory() as tmp:
            logger = setup_logging(log_file=os.path.join(tmp, "cloudsql.log"))
            self.assertIsInstance(logger, logging.Logger)


if __name__ == "__main__":
    unittest.main()
