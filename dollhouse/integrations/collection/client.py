"""
Collection Index Integration - HTTP Client

SRP: Only HTTP communication with the collection index endpoint.
No caching, no retries. One request per call.

Responsibilities:
- HTTP GET of collection-index.json
- Timeout handling (milliseconds, default 5000)
- Conditional headers (If-None-Match / If-Modified-Since)
- Error translation to custom exceptions
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from dollhouse.core.config import DEFAULT_FETCH_TIMEOUT_MS, DEFAULT_INDEX_URL
from .errors import FetchTimeout, UpstreamHTTPError, UpstreamUnavailable, IndexValidationError
from .types import validate_index

logger = logging.getLogger(__name__)

USER_AGENT = "DollhouseMCP/1.0"


@dataclass
class FetchResponse:
    """Outcome of a single fetch. `data` is None for 304 Not Modified."""
    status_code: int
    data: Optional[Dict[str, Any]] = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None


class CollectionIndexClient:
    """
    HTTP client for the published collection index.

    SRP: Only HTTP, no cache logic.
    """

    def __init__(
        self,
        index_url: str = DEFAULT_INDEX_URL,
        timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.index_url = index_url
        self.timeout_ms = timeout_ms
        self._transport = transport

    def _build_headers(self, etag: Optional[str], last_modified: Optional[str]) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "Cache-Control": "no-cache",
        }
        if etag:
            # ETag must be sent exactly as received (with quotes if present)
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    async def fetch_index(
        self,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> FetchResponse:
        """
        GET collection-index.json, conditionally when validators are given.

        Returns:
            - 200: FetchResponse(200, {...}, "etag", "last-modified")
            - 304: FetchResponse(304) - cached copy is still valid

        Raises:
            FetchTimeout: request exceeded timeout_ms
            UpstreamHTTPError: any other non-2xx status
            UpstreamUnavailable: connection-level failure
            IndexValidationError: body is not a valid index document
        """
        headers = self._build_headers(etag, last_modified)
        logger.debug(
            "Fetching collection index url=%s timeout=%sms has_etag=%s",
            self.index_url,
            self.timeout_ms,
            bool(etag),
        )

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_ms / 1000,
                transport=self._transport,
            ) as client:
                # httpx timeouts are per phase; this bounds the whole request
                r = await asyncio.wait_for(
                    client.get(self.index_url, headers=headers),
                    self.timeout_ms / 1000,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise FetchTimeout(self.timeout_ms)
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"Cannot reach collection index: {e}")

        # Handle 304 Not Modified
        if r.status_code == 304:
            return FetchResponse(304)

        if not r.is_success:
            raise UpstreamHTTPError(r.status_code, r.reason_phrase)

        try:
            payload = r.json()
        except ValueError as e:
            raise IndexValidationError(f"Invalid index: malformed JSON ({e})")

        data = validate_index(payload)
        logger.debug(
            "Collection index fetched total_elements=%s version=%s has_etag=%s",
            data.get("total_elements"),
            data.get("version"),
            bool(r.headers.get("ETag")),
        )
        return FetchResponse(
            status_code=r.status_code,
            data=data,
            etag=r.headers.get("ETag"),
            last_modified=r.headers.get("Last-Modified"),
        )
