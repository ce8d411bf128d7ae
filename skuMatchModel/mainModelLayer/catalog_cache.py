# skuMatchModel/mainModelLayer/catalog_cache.py
"""
Catalog cache: keeps the last good snapshot of active Services in memory and
shields the matchers from store latency and outages.

- Fresh snapshot (inside TTL) is served with no store round-trip.
- Expired/absent snapshot is reloaded: 1 attempt + LOAD_RETRIES retries with
  exponential backoff (1s, 2s, 4s). On exhaustion callers get an empty list.
- refresh() forces a reload; if it fails a snapshot still inside TTL is kept.
"""

from __future__ import annotations
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple
import asyncio
import logging
import time

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from skuMatchModel.pathsAndImports import BM_CATALOG_TTL_SECONDS
from skuMatchModel.mainModelLayer.skuModels import Service

# =============================
# Tunables
# =============================

LOAD_RETRIES = 3
BACKOFF_BASE_SECONDS = 1.0


class CatalogStore(Protocol):
    async def fetch_active(self) -> List[Service]: ...

    async def nearest(self, vector: List[float], k: int, min_similarity: float) -> List[Tuple[Service, float]]: ...


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logging.warning(f"[catalog] Load attempt {retry_state.attempt_number} failed ({exc}); retrying in {wait:.0f}s")


class CatalogCache:
    def __init__(
        self,
        store: CatalogStore,
        ttl_seconds: float = BM_CATALOG_TTL_SECONDS,
        retries: int = LOAD_RETRIES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self._ttl = ttl_seconds
        self._retries = retries
        self._clock = clock
        self._sleep = sleep
        self._snapshot: Optional[List[Service]] = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._snapshot is not None and (self._clock() - self._loaded_at) < self._ttl

    def _install(self, services: List[Service]) -> None:
        self._snapshot = [s for s in services if s.is_active]
        self._loaded_at = self._clock()
        logging.info(f"[catalog] Loaded {len(self._snapshot)} active SKUs")

    async def _load_with_retry(self) -> List[Service]:
        max_wait = BACKOFF_BASE_SECONDS * (2 ** max(self._retries - 1, 0))
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retries + 1),
            wait=wait_exponential(multiplier=BACKOFF_BASE_SECONDS, max=max_wait),
            sleep=self._sleep,
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                return await self.store.fetch_active()
        return []

    async def get_active_services(self) -> List[Service]:
        if self._is_fresh():
            return list(self._snapshot)

        async with self._lock:
            # another caller may have reloaded while we waited on the lock
            if self._is_fresh():
                return list(self._snapshot)
            try:
                services = await self._load_with_retry()
            except Exception as e:
                logging.error(f"[catalog] Giving up after {self._retries + 1} attempts: {e}")
                return []
            self._install(services)
            return list(self._snapshot)

    async def refresh(self) -> bool:
        async with self._lock:
            try:
                services = await self._load_with_retry()
            except Exception as e:
                kept = "keeping current snapshot" if self._is_fresh() else "no usable snapshot"
                logging.error(f"[catalog] Refresh failed: {e} ({kept})")
                return False
            self._install(services)
            return True
