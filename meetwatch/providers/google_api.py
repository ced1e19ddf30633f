"""
Shared request layer for Google REST APIs (Gmail, Calendar).

Requests return the dict-result shape {"success": bool, "data"/"error",
"status", "retryable"}; `unwrap` turns a failed result into the matching
TransientExternalFailure or PermanentExternalFailure at the public
method boundary.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from meetwatch.errors import (
    ExternalCallFailure,
    PermanentExternalFailure,
    TransientExternalFailure,
)
from meetwatch.providers.base import CredentialProvider

# 401 is transient: the credential provider refreshes on the next call
RETRYABLE_STATUSES = {401, 403, 408, 429, 500, 502, 503, 504}


class GoogleApiClient:
    """Authenticated JSON requests against Google APIs."""

    service = "google"

    def __init__(self, credentials: CredentialProvider, request_timeout_seconds: float = 20.0):
        self.credentials = credentials
        self.request_timeout_seconds = request_timeout_seconds

    async def _get_headers(self) -> dict[str, str]:
        """Get authorization headers for API requests."""
        token = await self.credentials.get_valid()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        url: str,
        data: dict | None = None,
        params: dict | None = None,
    ) -> dict[str, Any]:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method
            url: Full API URL
            data: Request body (for POST/PUT/PATCH)
            params: Query parameters

        Returns:
            dict with response data or error
        """
        try:
            headers = await self._get_headers()
        except ExternalCallFailure as e:
            return {"success": False, "error": str(e), "retryable": True}

        timeout = aiohttp.ClientTimeout(total=self.request_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, headers=headers, json=data, params=params) as resp:
                    return await self._handle_response(resp)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return {"success": False, "error": f"Request failed: {e!s}", "retryable": True}

    async def _handle_response(self, resp) -> dict[str, Any]:
        """Handle API response."""
        if resp.status == 204:
            return {"success": True, "data": {}, "status": 204}

        try:
            data = await resp.json()
        except (aiohttp.ContentTypeError, ValueError):
            data = {}

        if 200 <= resp.status < 300:
            return {"success": True, "data": data, "status": resp.status}

        if resp.status == 401:
            error_msg = "Authentication failed - token may be expired"
        elif resp.status == 403:
            error_msg = "Permission denied or rate limited"
        elif resp.status == 404:
            error_msg = "Resource not found"
        else:
            error = data.get("error", {}) if isinstance(data, dict) else {}
            error_msg = error.get("message", f"HTTP {resp.status}") if isinstance(error, dict) else str(error)

        return {
            "success": False,
            "error": error_msg,
            "status": resp.status,
            "retryable": resp.status in RETRYABLE_STATUSES,
        }

    def unwrap(self, result: dict[str, Any]) -> dict[str, Any]:
        """Return the response data, or raise the typed failure for a failed result."""
        if result.get("success"):
            return result.get("data") or {}
        error_cls = TransientExternalFailure if result.get("retryable") else PermanentExternalFailure
        raise error_cls(result.get("error", "Unknown error"), service=self.service, status=result.get("status"))
