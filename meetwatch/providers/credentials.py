"""
Tool: OAuth Credential Provider
Purpose: Keep a Google OAuth access token valid for the providers

Loads tokens from a JSON token file (access_token, refresh_token,
expiry_date in epoch milliseconds, client_id, client_secret, token_uri,
user_email) and refreshes proactively when the token expires within
five minutes. Token storage beyond reading that file is out of scope.

Usage:
    from meetwatch.providers.credentials import OAuthCredentialProvider

    credentials = OAuthCredentialProvider.from_token_file("data/google_token.json")
    await credentials.init()
    token = await credentials.get_valid()

Dependencies:
    - aiohttp (pip install aiohttp)
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import aiohttp

from meetwatch.errors import TransientExternalFailure
from meetwatch.logging_config import get_logger
from meetwatch.providers.base import CredentialProvider

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
EXPIRY_THRESHOLD = timedelta(minutes=5)


async def refresh_access_token(
    refresh_token: str,
    client_id: str,
    client_secret: str,
    token_url: str = GOOGLE_TOKEN_URL,
    timeout_seconds: float = 20.0,
) -> dict[str, Any]:
    """
    Refresh an expired access token.

    Args:
        refresh_token: Refresh token
        client_id: OAuth client id
        client_secret: OAuth client secret
        token_url: Token endpoint

    Returns:
        dict with new access token
    """
    token_data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }

    try:
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(token_url, data=token_data) as resp:
                if resp.status != 200:
                    error = await resp.text()
                    return {"success": False, "error": f"Token refresh failed: {error}"}
                tokens = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return {"success": False, "error": f"Token refresh error: {e!s}"}

    return {
        "success": True,
        "access_token": tokens.get("access_token"),
        "refresh_token": tokens.get("refresh_token"),  # rotation is optional
        "expires_in": tokens.get("expires_in", 3600),
    }


class OAuthCredentialProvider(CredentialProvider):
    """OAuth2 refresh-token backed credentials for Google APIs."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str | None,
        access_token: str | None = None,
        expiry: datetime | None = None,
        token_url: str = GOOGLE_TOKEN_URL,
        user_email: str | None = None,
        token_file: Path | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.access_token = access_token
        self.expiry = expiry
        self.token_url = token_url
        self.user_email = user_email
        self.token_file = token_file
        self._lock = asyncio.Lock()

    @classmethod
    def from_token_file(cls, path: Path | str) -> "OAuthCredentialProvider":
        """Build a provider that reads its tokens from a JSON file on init()."""
        return cls(
            client_id=os.environ.get("GOOGLE_CLIENT_ID", ""),
            client_secret=os.environ.get("GOOGLE_CLIENT_SECRET", ""),
            refresh_token=None,
            token_file=Path(path),
        )

    @property
    def account_email(self) -> str | None:
        return self.user_email

    async def init(self) -> None:
        if self.token_file is None:
            return
        if not self.token_file.exists():
            raise TransientExternalFailure(f"Token file not found: {self.token_file}", service="oauth")

        with open(self.token_file) as f:
            data = json.load(f)

        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token")
        self.client_id = data.get("client_id") or self.client_id
        self.client_secret = data.get("client_secret") or self.client_secret
        self.token_url = data.get("token_uri") or self.token_url
        self.user_email = data.get("user_email") or self.user_email

        expiry_ms = data.get("expiry_date")
        self.expiry = (
            datetime.fromtimestamp(int(expiry_ms) / 1000, tz=timezone.utc) if expiry_ms else None
        )
        logger.info(f"Loaded OAuth tokens for {self.user_email or 'unknown account'}")

    def is_expiring_soon(self, now: datetime | None = None) -> bool:
        """True if the token expires within the threshold or has no recorded expiry."""
        if not self.access_token or self.expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        return (self.expiry - now) < EXPIRY_THRESHOLD

    async def refresh_if_needed(self) -> bool:
        async with self._lock:
            if not self.is_expiring_soon():
                return False

            if not self.refresh_token:
                if self.access_token:
                    # Caller will see a 401 if it has really expired
                    logger.warning("Access token expiring but no refresh token available")
                    return False
                raise TransientExternalFailure("No access or refresh token available", service="oauth")

            logger.info("Refreshing OAuth access token")
            result = await refresh_access_token(
                self.refresh_token, self.client_id, self.client_secret, self.token_url
            )
            if not result.get("success"):
                raise TransientExternalFailure(result.get("error", "Token refresh failed"), service="oauth")

            self.access_token = result["access_token"]
            if result.get("refresh_token"):
                self.refresh_token = result["refresh_token"]
            self.expiry = datetime.now(timezone.utc) + timedelta(seconds=int(result.get("expires_in", 3600)))
            return True

    async def get_valid(self) -> str:
        await self.refresh_if_needed()
        if not self.access_token:
            raise TransientExternalFailure("No valid access token", service="oauth")
        return self.access_token
