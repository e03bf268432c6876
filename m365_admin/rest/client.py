"""
Async REST client for Microsoft Graph and SharePoint Online.
Attaches per-resource bearer tokens and routes every request through the safety guardian.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlsplit

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    REQUEST_TIMEOUT_SECONDS,
    CONNECT_TIMEOUT_SECONDS,
)
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_admin.rest")

TokenProvider = Callable[[str], Awaitable[str]]


class ApiRequestError(Exception):
    """Raised when Graph or SharePoint answers with a non-success status."""
    def __init__(self, status_code: int, url: str, body: Any = None):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"Request to {url} failed with status {status_code}")


def resource_for(url: str) -> str:
    """Return the token audience (scheme + host) for an absolute URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


class RestClient:
    """
    Async client used by every command.
    Features:
      - Bearer token per resource (Graph or the SharePoint host)
      - Destructive requests gated by the safety guardian
      - Relative URLs resolved against Graph v1.0
      - JSON, text, or empty responses unwrapped for the caller
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        guardian: SafetyGuardian,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_provider = token_provider
        self.guardian = guardian
        self._transport = transport
        self._request_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS, connect=CONNECT_TIMEOUT_SECONDS),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        """Build full URL; relative endpoints go to Graph v1.0."""
        if endpoint.startswith("http"):
            return endpoint
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/{endpoint}"

    async def get(self, url: str, headers: Optional[dict] = None) -> Any:
        return await self.request("GET", url, headers=headers)

    async def post(
        self,
        url: str,
        headers: Optional[dict] = None,
        json: Any = None,
        content: Optional[bytes] = None,
    ) -> Any:
        return await self.request("POST", url, headers=headers, json=json, content=content)

    async def put(
        self,
        url: str,
        headers: Optional[dict] = None,
        json: Any = None,
        content: Optional[bytes] = None,
    ) -> Any:
        return await self.request("PUT", url, headers=headers, json=json, content=content)

    async def patch(self, url: str, headers: Optional[dict] = None, json: Any = None) -> Any:
        return await self.request("PATCH", url, headers=headers, json=json)

    async def delete(self, url: str, headers: Optional[dict] = None) -> Any:
        return await self.request("DELETE", url, headers=headers)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict] = None,
        json: Any = None,
        content: Optional[bytes] = None,
    ) -> Any:
        """
        Execute a single request and unwrap the response.

        Raises ApiRequestError for non-2xx answers. Transport errors from
        httpx propagate unchanged.
        """
        if not self._client:
            raise RuntimeError("RestClient not initialized. Use 'async with' context.")

        full_url = self._build_url(url)
        self.guardian.validate_request(method, full_url)

        token = await self.token_provider(resource_for(full_url))
        request_headers = {"Authorization": f"Bearer {token}"}
        if headers:
            request_headers.update(headers)

        logger.debug(f"{method} {full_url}")
        response = await self._client.request(
            method,
            full_url,
            headers=request_headers,
            json=json,
            content=content,
        )
        self._request_count += 1

        if response.is_success:
            return self._parse_body(response)

        body = self._parse_body(response)
        logger.debug(f"{response.status_code} from {full_url}: {body}")
        raise ApiRequestError(response.status_code, full_url, body)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content or not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {"total_requests": self._request_count}
