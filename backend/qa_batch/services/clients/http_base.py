"""Shared aiohttp plumbing for the JSON-over-HTTP clients.

Supports async context manager for connection pooling across many calls
(recommended for batch jobs). Falls back to a per-call session if used
without ``async with``.
"""
import asyncio
import logging
from typing import Any, Optional

import aiohttp

from qa_batch.services.batch.errors import ExternalCallFailure

logger = logging.getLogger(__name__)


class JSONHTTPClient:
    """POSTs JSON bodies and decodes JSON responses."""

    def __init__(self, base_url: str, auth_token: str = "", timeout: float = 0):
        self.base_url = (base_url or "").rstrip("/")
        self.auth_token = auth_token
        self._session: Optional[aiohttp.ClientSession] = None
        # timeout <= 0 means wait indefinitely
        self._timeout = aiohttp.ClientTimeout(total=timeout if timeout and timeout > 0 else None)

    async def open(self) -> None:
        """Open a persistent session for connection pooling."""
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self) -> None:
        """Close the persistent session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _post_json(self, path: str, payload: Any, params: Optional[dict] = None) -> Any:
        if not self.base_url:
            raise ExternalCallFailure(f"{type(self).__name__} has no base URL configured")
        url = f"{self.base_url}{path}"
        if self._session:
            return await self._request(self._session, url, payload, params)
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            return await self._request(session, url, payload, params)

    async def _request(
        self, session: aiohttp.ClientSession, url: str,
        payload: Any, params: Optional[dict],
    ) -> Any:
        try:
            async with session.post(url, json=payload, params=params, headers=self._headers()) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise ExternalCallFailure(
                        body[:500] or resp.reason or "No response body",
                        status=resp.status,
                        url=url,
                    )
                if resp.content_length == 0:
                    return None
                return await resp.json(content_type=None)
        except ExternalCallFailure:
            raise
        except asyncio.TimeoutError as e:
            raise ExternalCallFailure("Request timed out", url=url) from e
        except aiohttp.ClientError as e:
            raise ExternalCallFailure(str(e) or type(e).__name__, url=url) from e
        except ValueError as e:
            raise ExternalCallFailure(f"Invalid JSON body: {e}", status=0, url=url) from e
