"""
Unit tests for Google credential loading and the consent flow.
"""
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

import httpx

from quizbot.sheets_auth import (
    DEFAULT_AUTH_URI,
    SCOPES,
    GoogleCredentialsProvider,
    SheetsAuthError,
    authorize_interactively,
    build_consent_url,
    exchange_code,
    load_credentials,
)

CLIENT_SECRETS = {
    "installed": {
        "client_id": "client-123.apps.googleusercontent.com",
        "client_secret": "shh",
        "redirect_uris": ["http://localhost"],
        "token_uri": "https://oauth2.googleapis.com/token",
    }
}


class SheetsAuthTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared temporary credential files."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.credentials_path = str(Path(self.temp_dir.name) / "credentials.json")
        self.token_path = str(Path(self.temp_dir.name) / "token.json")

    def tearDown(self):
        self.temp_dir.cleanup()

    def write_json(self, path: str, data: dict):
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f)


class TestLoadCredentials(SheetsAuthTestCase):
    """Test cases for load_credentials."""

    def test_missing_files(self):
        with self.assertRaises(SheetsAuthError):
            load_credentials(self.credentials_path, self.token_path)

    def test_client_secrets_without_token_requires_authorize(self):
        self.write_json(self.credentials_path, CLIENT_SECRETS)

        with self.assertRaises(SheetsAuthError) as context:
            load_credentials(self.credentials_path, self.token_path)
        self.assertIn("authorize", str(context.exception))

    def test_stored_token(self):
        self.write_json(self.token_path, {
            "token": "access",
            "refresh_token": "refresh",
            "client_id": "client-123",
            "client_secret": "shh",
            "token_uri": "https://oauth2.googleapis.com/token",
        })

        provider = load_credentials(self.credentials_path, self.token_path)
        self.assertIsInstance(provider, GoogleCredentialsProvider)

    def test_incomplete_token_file(self):
        self.write_json(self.token_path, {"token": "access"})

        with self.assertRaises(SheetsAuthError):
            load_credentials(self.credentials_path, self.token_path)

    def test_unreadable_token_file(self):
        with open(self.token_path, 'w', encoding='utf-8') as f:
            f.write("not json")

        with self.assertRaises(SheetsAuthError):
            load_credentials(self.credentials_path, self.token_path)


class TestGoogleCredentialsProvider(unittest.IsolatedAsyncioTestCase):
    """Test cases for GoogleCredentialsProvider."""

    @patch('quizbot.sheets_auth.GoogleAuthRequest')
    async def test_refreshes_expired_token(self, mock_request):
        credentials = Mock()
        credentials.valid = False
        credentials.token = "old"

        def refresh(request):
            credentials.valid = True
            credentials.token = "new"

        credentials.refresh.side_effect = refresh
        provider = GoogleCredentialsProvider(credentials)

        self.assertEqual(await provider.get_access_token(), "new")
        self.assertEqual(await provider.get_access_token(), "new")
        credentials.refresh.assert_called_once()

    async def test_valid_token_is_not_refreshed(self):
        credentials = Mock()
        credentials.valid = True
        credentials.token = "current"
        provider = GoogleCredentialsProvider(credentials)

        self.assertEqual(await provider.get_access_token(), "current")
        credentials.refresh.assert_not_called()

    @patch('quizbot.sheets_auth.GoogleAuthRequest')
    async def test_refresh_failure(self, mock_request):
        credentials = Mock()
        credentials.valid = False
        credentials.refresh.side_effect = RuntimeError("invalid_grant")
        provider = GoogleCredentialsProvider(credentials)

        with self.assertLogs('quizbot.sheets_auth', level='ERROR'):
            with self.assertRaises(SheetsAuthError):
                await provider.get_access_token()


class TestConsentFlow(SheetsAuthTestCase):
    """Test cases for the one-time authorization flow."""

    def setUp(self):
        super().setUp()
        self.write_json(self.credentials_path, CLIENT_SECRETS)
        self.token_requests = []

    def token_handler(self, request: httpx.Request) -> httpx.Response:
        self.token_requests.append(request)
        return httpx.Response(200, json={
            "access_token": "access",
            "refresh_token": "refresh",
            "expires_in": 3599,
        })

    def test_build_consent_url(self):
        url = build_consent_url(self.credentials_path)

        self.assertTrue(url.startswith(DEFAULT_AUTH_URI))
        query = parse_qs(urlparse(url).query)
        self.assertEqual(query["client_id"], ["client-123.apps.googleusercontent.com"])
        self.assertEqual(query["scope"], [" ".join(SCOPES)])
        self.assertEqual(query["access_type"], ["offline"])
        self.assertEqual(query["response_type"], ["code"])

    def test_consent_url_needs_client_secrets(self):
        self.write_json(self.credentials_path, {"type": "service_account"})
        with self.assertRaises(SheetsAuthError):
            build_consent_url(self.credentials_path)

    async def test_exchange_code_stores_token(self):
        token_data = await exchange_code(
            self.credentials_path, self.token_path, "the-code",
            transport=httpx.MockTransport(self.token_handler)
        )

        form = parse_qs(self.token_requests[0].content.decode())
        self.assertEqual(form["code"], ["the-code"])
        self.assertEqual(form["grant_type"], ["authorization_code"])

        with open(self.token_path, 'r', encoding='utf-8') as f:
            stored = json.load(f)
        self.assertEqual(stored, token_data)
        self.assertEqual(stored["refresh_token"], "refresh")
        self.assertEqual(stored["client_id"], "client-123.apps.googleusercontent.com")

    async def test_exchange_code_without_refresh_token(self):
        def handler(request):
            return httpx.Response(200, json={"access_token": "access"})

        with self.assertRaises(SheetsAuthError):
            await exchange_code(self.credentials_path, self.token_path, "the-code",
                                transport=httpx.MockTransport(handler))
        self.assertFalse(Path(self.token_path).exists())

    async def test_exchange_code_rejected(self):
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant"})

        with self.assertRaises(SheetsAuthError):
            await exchange_code(self.credentials_path, self.token_path, "bad-code",
                                transport=httpx.MockTransport(handler))

    async def test_authorize_interactively(self):
        prompts = []

        def read_code(prompt):
            prompts.append(prompt)
            return "  the-code \n"

        with patch('quizbot.sheets_auth.exchange_code') as mock_exchange, patch('builtins.print'):
            mock_exchange.return_value = {"refresh_token": "refresh"}
            result = await authorize_interactively(self.credentials_path, self.token_path, read_code=read_code)

        self.assertEqual(result, {"refresh_token": "refresh"})
        self.assertEqual(len(prompts), 1)
        mock_exchange.assert_awaited_once_with(self.credentials_path, self.token_path, "the-code")


if __name__ == '__main__':
    unittest.main()
