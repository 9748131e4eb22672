"""HTTP transport over ``httpx.AsyncClient``.

Builds endpoint URLs, attaches auth headers and turns non-success
responses into typed errors.  One attempt per call: retry and
rate-limit policy are the caller's business.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from openai_api.config import (
    DEFAULT_API_VERSION,
    DEFAULT_TIMEOUT,
    DEFAULT_URL_FORMAT,
    APIAuthentication,
)
from openai_api.errors import APIConnectionError, APIError, AuthenticationError

_logger = logging.getLogger(__name__)

USER_AGENT = "openai-api-client/0.1"

_MISSING_KEY = (
    "You must provide API authentication: set OPENAI_API_KEY, "
    "write a .openai file, or pass APIAuthentication explicitly."
)
_REJECTED_KEY = (
    "The API rejected your authorization, most likely due to an invalid API key."
)


class HttpTransport:
    """Thin async HTTP layer shared by every endpoint.

    Parameters
    ----------
    auth:
        Credentials; checked before every request.
    url_format:
        ``str.format`` template taking ``(api_version, endpoint)``.
    timeout:
        Seconds, applied to the whole client.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one with
        an ``httpx.MockTransport``).  Not closed by :meth:`aclose` when
        supplied by the caller.
    """

    def __init__(
        self,
        auth: APIAuthentication | None = None,
        url_format: str = DEFAULT_URL_FORMAT,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.auth = auth or APIAuthentication()
        self.url_format = url_format
        self.api_version = api_version
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def url_for(self, endpoint: str) -> str:
        return self.url_format.format(self.api_version, endpoint)

    def _headers(self) -> dict[str, str]:
        if not self.auth.is_set:
            raise AuthenticationError(_MISSING_KEY)
        headers = {
            "Authorization": f"Bearer {self.auth.api_key}",
            "api-key": self.auth.api_key or "",
            "User-Agent": USER_AGENT,
        }
        if self.auth.organization:
            headers["OpenAI-Organization"] = self.auth.organization
        return headers

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request and return the fully read response."""
        url = self.url_for(endpoint)
        headers = self._headers()
        _logger.debug("%s %s", method, url)
        try:
            resp = await self._client.request(method, url, json=json, headers=headers)
        except httpx.TransportError as e:
            raise APIConnectionError(f"Request to {endpoint} failed: {e}") from e
        if not resp.is_success:
            _raise_for_status(resp.status_code, _safe_text(resp), endpoint, url)
        return resp

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming response; the body is read lazily by the caller.

        The response is closed when the context exits, including when the
        consumer stops early.
        """
        url = self.url_for(endpoint)
        headers = self._headers()
        _logger.debug("%s %s (stream)", method, url)
        try:
            async with self._client.stream(
                method, url, json=json, headers=headers,
            ) as resp:
                if not resp.is_success:
                    try:
                        body = (await resp.aread()).decode(errors="replace")
                    except httpx.HTTPError as e:
                        body = f"<failed to read response body: {e}>"
                    _raise_for_status(resp.status_code, body, endpoint, url)
                yield resp
        except httpx.TransportError as e:
            raise APIConnectionError(f"Stream from {endpoint} failed: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _safe_text(resp: httpx.Response) -> str:
    try:
        return resp.text
    except (UnicodeDecodeError, httpx.HTTPError) as e:
        return f"<failed to read response body: {e}>"


def _raise_for_status(status: int, body: str, endpoint: str, url: str) -> None:
    _logger.debug("HTTP %d from %s: %s", status, url, body[:200])
    if status == 401:
        raise AuthenticationError(
            f"{_REJECTED_KEY} Full API response follows: {body}",
            status_code=status,
            body=body,
        )
    detail = f"Error at {endpoint} ({url}) with HTTP status code: {status}. Content: {body or '<no content>'}"
    if status == 500:
        detail = (
            "The API had an internal server error, which can happen "
            "occasionally. Please retry your request. " + detail
        )
    raise APIError(detail, status_code=status, body=body)
