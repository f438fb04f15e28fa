"""
Google OAuth credential handling for the Sheets question source.
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials as UserCredentials

logger = logging.getLogger(__name__)

SCOPES = ("https://www.googleapis.com/auth/spreadsheets.readonly",)
DEFAULT_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


class SheetsAuthError(RuntimeError):
    """Raised when Google credentials are missing or unusable."""


class GoogleCredentialsProvider:
    """Hands out a valid access token, refreshing it when it expires."""

    def __init__(self, credentials):
        self._credentials = credentials
        self._lock = asyncio.Lock()

    async def get_access_token(self) -> str:
        async with self._lock:
            if not self._credentials.valid:
                await asyncio.to_thread(self._refresh)
            return self._credentials.token

    def _refresh(self) -> None:
        try:
            self._credentials.refresh(GoogleAuthRequest())
        except Exception as exc:
            logger.exception("Failed to refresh Google OAuth token")
            raise SheetsAuthError(f"Failed to refresh Google OAuth token: {exc}") from exc
        logger.info("Refreshed Google OAuth token")


def _read_json(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as fp:
            return json.load(fp)
    except (OSError, json.JSONDecodeError) as exc:
        raise SheetsAuthError(f"Cannot read {path}: {exc}") from exc


def load_credentials(credentials_path: str, token_path: str) -> GoogleCredentialsProvider:
    """
    Build a credentials provider from files on disk.

    A stored user token wins; otherwise the credentials file must be a
    service-account key. An OAuth client file without a token needs
    ``python main.py authorize`` first.

    Args:
        credentials_path: Service-account key or OAuth client secrets file
        token_path: Authorized-user token written by ``authorize``

    Returns:
        GoogleCredentialsProvider ready for the Sheets source

    Raises:
        SheetsAuthError: If no usable credentials are found
    """
    token_file = Path(token_path)
    if token_file.exists():
        info = _read_json(token_file)
        try:
            credentials = UserCredentials.from_authorized_user_info(info, scopes=list(SCOPES))
        except ValueError as exc:
            raise SheetsAuthError(f"Invalid token file {token_file}: {exc}") from exc
        logger.info(f"Using stored user token from {token_file}")
        return GoogleCredentialsProvider(credentials)

    credentials_file = Path(credentials_path)
    if not credentials_file.exists():
        raise SheetsAuthError(f"Google credentials file not found: {credentials_file}")

    info = _read_json(credentials_file)
    if info.get("type") == "service_account":
        credentials = service_account.Credentials.from_service_account_info(info, scopes=list(SCOPES))
        logger.info(f"Using service account {info.get('client_email', '')}")
        return GoogleCredentialsProvider(credentials)

    raise SheetsAuthError(
        f"No token found at {token_file}. Run 'python main.py authorize' to create one."
    )


def _client_config(credentials_path: str) -> dict:
    info = _read_json(Path(credentials_path))
    config = info.get("installed") or info.get("web")
    if not config or "client_id" not in config or "client_secret" not in config:
        raise SheetsAuthError(f"{credentials_path} is not an OAuth client secrets file")
    return config


def build_consent_url(credentials_path: str) -> str:
    """Build the URL the operator visits to grant read access to the sheets."""
    config = _client_config(credentials_path)
    redirect_uris = config.get("redirect_uris") or ["http://localhost"]
    query = urlencode({
        "client_id": config["client_id"],
        "redirect_uri": redirect_uris[0],
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
    })
    return f"{config.get('auth_uri', DEFAULT_AUTH_URI)}?{query}"


async def exchange_code(
    credentials_path: str,
    token_path: str,
    code: str,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> dict:
    """
    Exchange an authorization code for tokens and store them.

    Returns:
        The stored authorized-user token data
    """
    config = _client_config(credentials_path)
    redirect_uris = config.get("redirect_uris") or ["http://localhost"]
    token_uri = config.get("token_uri", DEFAULT_TOKEN_URI)

    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        try:
            response = await client.post(token_uri, data={
                "code": code,
                "client_id": config["client_id"],
                "client_secret": config["client_secret"],
                "redirect_uri": redirect_uris[0],
                "grant_type": "authorization_code",
            })
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SheetsAuthError(f"Token exchange failed: {exc}") from exc

    tokens = response.json()
    if "refresh_token" not in tokens:
        raise SheetsAuthError("Token response did not include a refresh token")

    token_data = {
        "token": tokens.get("access_token"),
        "refresh_token": tokens["refresh_token"],
        "client_id": config["client_id"],
        "client_secret": config["client_secret"],
        "token_uri": token_uri,
        "scopes": list(SCOPES),
    }
    with open(token_path, "w", encoding="utf-8") as fp:
        json.dump(token_data, fp)
    logger.info(f"Token stored to {token_path}")
    return token_data


async def authorize_interactively(
    credentials_path: str,
    token_path: str,
    read_code: Callable[[str], str] = input
) -> dict:
    """Run the one-time consent flow on the console."""
    url = build_consent_url(credentials_path)
    print(f"Authorize this app by visiting this url: {url}")
    code = read_code("Enter the code from that page here: ").strip()
    return await exchange_code(credentials_path, token_path, code)
