"""
Unit tests for configuration.
"""

import unittest
from argparse import Namespace
from unittest.mock import MagicMock, patch

from config import ConnectionConfig
from templates import API_BASE


class TestConnectionConfig(unittest.TestCase):
    """Test ConnectionConfig data model."""

    def test_config_defaults(self):
        """Test default configuration values."""
        config = ConnectionConfig(project_id="my-project", instance_name="my-db")
        self.assertEqual(config.project_id, "my-project")
        self.assertEqual(config.instance_name, "my-db")
        self.assertEqual(config.api_base, API_BASE)
        self.assertEqual(config.timeout_s, 60)
        self.assertEqual(config.poll_interval, 1.0)
        self.assertIsNone(config.poll_timeout)
        self.assertEqual(config.token_source, "google-auth")
        self.assertTrue(config.show_progress)
        self.assertTrue(config.allow_duplicate_networks)
        self.assertFalse(config.verbose)
        self.assertIsNone(config.log_file)

    def test_config_from_args(self):
        """Test creating config from command-line arguments."""
        args = Namespace(
            project="test-project",
            instance="test-db",
            api_base="https://example.com/sql/v1beta4",
            timeout=30,
            poll_interval=2.0,
            poll_timeout=600.0,
            token_source="gcloud",
            no_progress=True,
            no_duplicates=True,
            verbose=True,
            log_file="cloudsql.log",
        )
        config = ConnectionConfig.from_args(args)

        self.assertEqual(config.project_id, "test-project")
        self.assertEqual(config.instance_name, "test-db")
        self.assertEqual(config.api_base, "https://example.com/sql/v1beta4")
        self.assertEqual(config.timeout_s, 30)
        self.assertEqual(config.poll_interval, 2.0)
        self.assertEqual(config.poll_timeout, 600.0)
        self.assertEqual(config.token_source, "gcloud")
        self.assertFalse(config.show_progress)
        self.assertFalse(config.allow_duplicate_networks)
        self.assertTrue(config.verbose)
        self.assertEqual(config.log_file, "cloudsql.log")

    def test_invalid_token_source(self):
        """Test an unknown token source is rejected."""
        with self.assertRaises(ValueError):
            ConnectionConfig(project_id="p", instance_name="i", token_source="vault")

    @patch("credentials.subprocess.run")
    def test_gcloud_credential_provider(self, mock_run):
        """Test the gcloud token source shells out to gcloud."""
        mock_run.return_value = MagicMock(stdout="tok\n")
        config = ConnectionConfig(
            project_id="p", instance_name="i", token_source="gcloud"
        )

        self.assertEqual(config.credential_provider()(), "tok")
        mock_run.assert_called_once()

    @patch("credentials.GoogleAuthRequest")
    @patch("google.auth.default")
    def test_google_auth_credential_provider(self, mock_default, mock_request):
        """Test the default token source uses Application Default Credentials."""
        creds = MagicMock()
        creds.token = "adc"
        mock_default.return_value = (creds, None)
        config = ConnectionConfig(project_id="p", instance_name="i")

        self.assertEqual(config.credential_provider()(), "adc")


if __name__ == "__main__":
    unittest.main()
