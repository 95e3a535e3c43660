"""
Unit tests for credential acquisition and expiry.
"""

import subprocess
import unittest
from unittest.mock import MagicMock, patch

from credentials import (
    Credential,
    TokenInfo,
    acquire_credential,
    fetch_token,
    gcloud_token_provider,
    google_auth_token_provider,
)
from errors import CredentialError
from templates import RequestRenderer
from transport import HttpExecutor

TOKEN_INFO_PAYLOAD = {
    "issued_to": "32555940559.apps.googleusercontent.com",
    "audience": "32555940559.apps.googleusercontent.com",
    "user_id": "1234567890",
    "scope": "https://www.googleapis.com/auth/cloud-platform",
    "expires_in": 3600,
    "email": "ops@example.com",
    "verified_email": True,
    "access_type": "offline",
}


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_response(status_code, payload):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


class TestCredential(unittest.TestCase):
    """Test Credential expiry bookkeeping."""

    def test_empty_token_rejected(self):
        """Test a credential cannot hold an empty token."""
        with self.assertRaises(CredentialError):
            Credential("", 2000.0)

    def test_is_expired_follows_clock(self):
        """Test expiry flips once the clock reaches expires_at."""
        clock = FakeClock(1000.0)
        cred = Credential("tok", 4600.0, clock=clock)

        self.assertFalse(cred.is_expired())
        clock.now = 4599.9
        self.assertFalse(cred.is_expired())
        clock.now = 4600.0
        self.assertTrue(cred.is_expired())

    def test_refresh_replaces_token_and_expiry(self):
        """Test refresh swaps the token and recomputes expiry."""
        clock = FakeClock(1000.0)
        cred = Credential("old", 1500.0, clock=clock)
        clock.now = 2000.0
        self.assertTrue(cred.is_expired())

        cred.refresh("new", TokenInfo(expires_in=3600))

        self.assertEqual(cred.token, "new")
        self.assertEqual(cred.expires_at, 5600.0)
        self.assertFalse(cred.is_expired())
        self.assertEqual(cred.authorization_header(), {"Authorization": "Bearer new"})

    def test_repr_hides_token(self):
        """Test the token never appears in repr."""
        cred = Credential("super-secret", 1.0, info=TokenInfo(expires_in=1, email="a@b"))
        self.assertNotIn("super-secret", repr(cred))
        self.assertIn("a@b", repr(cred))


class TestAcquireCredential(unittest.TestCase):
    """Test acquire_credential against a mocked tokeninfo endpoint."""

    def setUp(self):
        """Set up test fixtures."""
        self.session = MagicMock()
        self.executor = HttpExecutor(session=self.session)
        self.renderer = RequestRenderer()
        self.clock = FakeClock(1000.0)

    def test_acquire_computes_expiry(self):
        """Test expiry is issue time plus expires_in."""
        self.session.send.return_value = make_response(200, TOKEN_INFO_PAYLOAD)

        cred = acquire_credential(
            lambda: "tok", self.executor, self.renderer, clock=self.clock
        )

        self.assertEqual(cred.token, "tok")
        self.assertEqual(cred.expires_at, 4600.0)
        self.assertEqual(cred.info.email, "ops@example.com")
        self.assertTrue(cred.info.verified_email)
        self.assertFalse(cred.is_expired())

        self.clock.now = 4601.0
        self.assertTrue(cred.is_expired())

        request = self.session.send.call_args[0][0]
        self.assertIn("tokeninfo?access_token=tok", request.url)

    def test_provider_failure(self):
        """Test a failing provider raises CredentialError."""

        def provider():
            raise RuntimeError("gcloud not logged in")

        with self.assertRaises(CredentialError):
            acquire_credential(provider, self.executor, self.renderer)
        self.session.send.assert_not_called()

    def test_provider_empty_token(self):
        """Test an empty token raises CredentialError."""
        with self.assertRaises(CredentialError):
            acquire_credential(lambda: "", self.executor, self.renderer)

    def test_introspection_failure(self):
        """Test a rejected tokeninfo call raises CredentialError."""
        self.session.send.return_value = make_response(
            400, {"error": "invalid_token", "error_description": "Invalid Value"}
        )

        with self.assertRaises(CredentialError) as ctx:
            acquire_credential(lambda: "tok", self.executor, self.renderer)

        self.assertIn("Invalid Value", str(ctx.exception))

    def test_introspection_missing_expiry(self):
        """Test a tokeninfo body without expires_in raises CredentialError."""
        self.session.send.return_value = make_response(200, {"email": "x@y"})

        with self.assertRaises(CredentialError):
            acquire_credential(lambda: "tok", self.executor, self.renderer)


class TestProviders(unittest.TestCase):
    """Test the built-in credential providers."""

    @patch("credentials.subprocess.run")
    def test_gcloud_provider_strips_output(self, mock_run):
        """Test the gcloud provider returns the trimmed token."""
        mock_run.return_value = MagicMock(stdout="ya29.token\n")

        token = gcloud_token_provider()()

        self.assertEqual(token, "ya29.token")
        self.assertEqual(
            mock_run.call_args[0][0],
            ["gcloud", "auth", "application-default", "print-access-token"],
        )

    @patch("credentials.subprocess.run")
    def test_gcloud_provider_failure(self, mock_run):
        """Test a failing gcloud command raises CredentialError."""
        mock_run.side_effect = subprocess.CalledProcessError(
            1, ["gcloud"], stderr="ERROR: not logged in"
        )

        with self.assertRaises(CredentialError) as ctx:
            fetch_token(gcloud_token_provider())

        self.assertIn("not logged in", str(ctx.exception))

    @patch("credentials.subprocess.run")
    def test_gcloud_missing_binary(self, mock_run):
        """Test a missing gcloud binary raises CredentialError."""
        mock_run.side_effect = FileNotFoundError("gcloud")

        with self.assertRaises(CredentialError):
            fetch_token(gcloud_token_provider())

    @patch("credentials.GoogleAuthRequest")
    @patch("google.auth.default")
    def test_google_auth_provider(self, mock_default, mock_request):
        """Test the ADC provider refreshes and returns the token."""
        creds = MagicMock()
        creds.token = "adc-token"
        mock_default.return_value = (creds, "proj")

        token = google_auth_token_provider()()

        self.assertEqual(token, "adc-token")
        creds.refresh.assert_called_once()
        self.assertEqual(
            mock_default.call_args[1]["scopes"],
            ["https://www.googleapis.com/auth/cloud-platform"],
        )


if __name__ == "__main__":
    unittest.main()
