"""
Collection Index Manager - Orchestration Layer

SRP: Only cache policy orchestration.
Combines client (HTTP) + store (persistence) to serve the collection index.

Responsibilities:
- Stale-while-revalidate: serve cached data, refresh in the background
- Synchronous fetch on cold start
- Retries with exponential backoff and jitter
- Circuit breaker around background refreshes
- 304 handling via ETag / Last-Modified validators
- Fallback to any cached data when the upstream is down
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from dollhouse.core.config import CollectionIndexConfig, resolve_fetch_timeout
from dollhouse.core.services.collection.backoff import JITTER_FACTOR, compute_retry_delay
from dollhouse.core.services.collection.circuit_breaker import CircuitBreaker
from dollhouse.integrations.collection.cache.index_cache import CacheEntry, IndexCacheStore
from dollhouse.integrations.collection.client import CollectionIndexClient, FetchResponse
from dollhouse.integrations.collection.errors import (
    CollectionIndexError,
    CollectionIndexUnavailable,
    UpstreamHTTPError,
)

logger = logging.getLogger(__name__)

CIRCUIT_BREAKER_THRESHOLD = 5
CIRCUIT_BREAKER_COOLDOWN_MS = 5 * 60 * 1000
REFRESH_THRESHOLD = 0.8  # refresh once 80% of the TTL has passed


def _epoch_ms() -> float:
    return time.time() * 1000


class CollectionIndexManager:
    """
    Serves the collection index from memory/disk and keeps it fresh.

    Only `get_index` schedules background refreshes, and at most one runs
    at a time. `force_refresh` ignores that guard and may overlap a
    background refresh; both write through `_apply_fetch_result`, so the
    last one to finish wins.
    """

    def __init__(
        self,
        config: Optional[CollectionIndexConfig] = None,
        *,
        client: Optional[CollectionIndexClient] = None,
        store: Optional[IndexCacheStore] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or CollectionIndexConfig()
        self.fetch_timeout_ms = resolve_fetch_timeout(self.config.fetch_timeout_ms)
        self.client = client or CollectionIndexClient(
            index_url=self.config.index_url,
            timeout_ms=self.fetch_timeout_ms,
        )
        self.store = store or IndexCacheStore(self.config.cache_file)

        self._clock = clock or _epoch_ms
        self._sleep = sleep or asyncio.sleep
        self._rng = rng
        self._breaker = CircuitBreaker(
            failures_threshold=CIRCUIT_BREAKER_THRESHOLD,
            cooldown_ms=CIRCUIT_BREAKER_COOLDOWN_MS,
            time_fn=self._clock,
        )

        self._cached: Optional[CacheEntry] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._is_refreshing = False

        logger.debug(
            "CollectionIndexManager initialized ttl_ms=%s fetch_timeout_ms=%s cache_file=%s max_retries=%s",
            self.config.ttl_ms,
            self.fetch_timeout_ms,
            self.store.path,
            self.config.max_retries,
        )

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    # --- Public API ---

    async def get_index(self) -> Dict[str, Any]:
        """
        Return the collection index, preferring cached data.

        - Fresh cache: returned at once; a background refresh starts once
          80% of the TTL has elapsed.
        - Expired cache: returned at once (stale-while-revalidate) while a
          background refresh runs.
        - No cache: fetched synchronously.

        Raises:
            CollectionIndexUnavailable: fetch failed and nothing is cached.
        """
        try:
            if self._cached is None:
                self._load_from_disk()

            if self._cached is not None:
                if not self._is_cache_expired():
                    logger.debug("Returning valid cached collection index")
                    if self._should_refresh_cache() and not self._is_refreshing:
                        self._start_background_refresh()
                else:
                    logger.debug("Returning stale cache while refreshing in background")
                    if not self._is_refreshing:
                        self._start_background_refresh()
                return self._cached.data

            logger.debug("No cache available, fetching collection index synchronously")
            result = await self._fetch_with_retry()
            self._apply_fetch_result(result)
            return result.data

        except Exception as e:
            logger.error("Failed to get collection index: %s", e)
            if self._cached is not None:
                logger.warning("Returning expired cache as last resort")
                return self._cached.data
            raise CollectionIndexUnavailable(e) from e

    async def force_refresh(self) -> Dict[str, Any]:
        """
        Fetch synchronously, bypassing freshness checks.

        Falls back to cached data on failure; re-raises only when there is
        nothing cached at all.
        """
        logger.debug("Force refreshing collection index")
        if self._cached is None:
            self._load_from_disk()

        try:
            result = await self._fetch_with_retry()
            self._apply_fetch_result(result)
            return result.data
        except Exception as e:
            logger.error("Force refresh failed: %s", e)
            if self._cached is not None:
                logger.warning("Force refresh failed, returning cached data")
                return self._cached.data
            raise

    async def wait_for_background_refresh(self) -> None:
        """
        Await the in-flight background refresh, if any.

        Best effort: a refresh started after this call begins is not awaited.
        """
        task = self._refresh_task
        if task is not None and not task.done():
            try:
                await task
            except asyncio.CancelledError:
                pass

    def get_cache_stats(self) -> Dict[str, Any]:
        """Read-only snapshot for monitoring. `age` is in seconds."""
        if self._cached is None:
            return {
                "is_valid": False,
                "age": 0,
                "has_cache": False,
                "is_refreshing": self._is_refreshing,
                "circuit_breaker_failures": self._breaker.failure_count,
                "circuit_breaker_open": self._breaker.is_open(),
            }

        return {
            "is_valid": not self._is_cache_expired(),
            "age": round(self._cache_age_ms(self._cached) / 1000),
            "has_cache": True,
            "version": self._cached.version,
            "total_elements": self._cached.total_elements,
            "is_refreshing": self._is_refreshing,
            "circuit_breaker_failures": self._breaker.failure_count,
            "circuit_breaker_open": self._breaker.is_open(),
        }

    async def clear_cache(self) -> None:
        """Drop the memory and disk cache and reset the circuit breaker."""
        self._cached = None
        self._breaker.reset()
        self.store.delete()

    async def shutdown(self) -> None:
        """Cancel an in-flight background refresh."""
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._is_refreshing = False
        self._refresh_task = None

    # --- Freshness ---

    def _cache_age_ms(self, entry: CacheEntry) -> float:
        return self._clock() - entry.timestamp

    def _is_cache_expired(self) -> bool:
        if self._cached is None:
            return True
        return self._cache_age_ms(self._cached) > self.config.ttl_ms

    def _should_refresh_cache(self) -> bool:
        if self._cached is None:
            return True
        return self._cache_age_ms(self._cached) > self.config.ttl_ms * REFRESH_THRESHOLD

    # --- Background refresh ---

    def _start_background_refresh(self) -> None:
        if self._is_refreshing:
            logger.debug("Background refresh already in progress")
            return

        if self._breaker.is_open():
            logger.debug("Circuit breaker open, skipping background refresh")
            return

        # Set before the task is scheduled so a concurrent get_index sees it.
        self._is_refreshing = True
        self._refresh_task = asyncio.create_task(self._background_refresh())

    async def _background_refresh(self) -> None:
        logger.debug("Starting background refresh of collection index")
        try:
            result = await self._fetch_with_retry()
            self._apply_fetch_result(result)
            self._breaker.reset()
            logger.debug("Background refresh completed successfully")
        except Exception as e:
            logger.debug("Background refresh failed: %s", e)
            self._breaker.record_failure()
        finally:
            self._is_refreshing = False
            self._refresh_task = None

    # --- Fetching ---

    async def _fetch_with_retry(self) -> FetchResponse:
        """Try up to max_retries + 1 times, sleeping with backoff between tries."""
        last_error: Optional[Exception] = None
        attempts = self.config.max_retries + 1

        for attempt in range(attempts):
            try:
                if attempt > 0:
                    delay_ms = compute_retry_delay(
                        attempt,
                        base_delay_ms=self.config.base_retry_delay_ms,
                        max_delay_ms=self.config.max_retry_delay_ms,
                        jitter_factor=JITTER_FACTOR,
                        rng=self._rng,
                    )
                    logger.debug("Retrying fetch in %dms (attempt %d/%d)", delay_ms, attempt + 1, attempts)
                    await self._sleep(delay_ms / 1000)

                return await self._fetch_once()
            except Exception as e:
                last_error = e
                logger.debug(
                    "Fetch attempt %d failed: %s (will_retry=%s)",
                    attempt + 1,
                    e,
                    attempt < self.config.max_retries,
                )

        raise last_error or CollectionIndexError("All fetch attempts failed")

    async def _fetch_once(self) -> FetchResponse:
        cached = self._cached
        response = await self.client.fetch_index(
            etag=cached.etag if cached else None,
            last_modified=cached.last_modified if cached else None,
        )

        if response.status_code != 304:
            return response

        if self._cached is None:
            raise UpstreamHTTPError(304, "Not Modified")

        # 304 is the one in-place mutation of the shared entry: only the
        # timestamp changes, with no await between this write and the save.
        logger.debug("Collection index not modified (304), updating cache timestamp")
        self._cached.timestamp = self._clock()
        self.store.save(self._cached)
        return FetchResponse(
            status_code=304,
            data=self._cached.data,
            etag=self._cached.etag,
            last_modified=self._cached.last_modified,
        )

    def _apply_fetch_result(self, result: FetchResponse) -> None:
        if result.status_code == 304:
            return

        entry = CacheEntry.create(
            result.data,
            timestamp=self._clock(),
            etag=result.etag,
            last_modified=result.last_modified,
        )
        self._cached = entry
        self.store.save(entry)
        logger.debug(
            "Collection index cache updated version=%s total_elements=%s checksum=%s",
            entry.version,
            entry.total_elements,
            entry.checksum,
        )

    # --- Disk ---

    def _load_from_disk(self) -> None:
        entry = self.store.load()
        if entry is None:
            return

        self._cached = entry
        age_ms = self._cache_age_ms(entry)
        logger.debug(
            "Loaded collection index from disk cache version=%s age_s=%d expired=%s total_elements=%s",
            entry.version,
            round(age_ms / 1000),
            age_ms > self.config.ttl_ms,
            entry.total_elements,
        )
