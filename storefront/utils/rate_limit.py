# storefront/utils/rate_limit.py
"""Sliding-window admission control.

The window is approximated with two fixed-window counters: the count of the
current window plus the count of the previous window weighted by how much of
it still overlaps the trailing interval. The shared store runs the Upstash
ratelimit SDK script; the in-process store uses the sliding window counter
from `limits`, which weights the previous window the same way.

Limiters fail open: when the store is missing, unreachable, slow or returns
garbage the request is admitted.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Optional, Tuple

import httpx
from fastapi import Depends, Request
from limits import RateLimitItem, parse
from limits.aio.storage import MemoryStorage
from limits.aio.strategies import SlidingWindowCounterRateLimiter

from storefront.utils.client_ip import get_client_ip
from storefront.utils.errors import RateLimitedError

logger = logging.getLogger(__name__)

# bucket -> (max requests, window seconds)
BUCKETS: Dict[str, Tuple[int, int]] = {
    "payment": (5, 60),
    "shipping": (20, 60),
    "coupon": (10, 60),
    "general-api": (100, 60),
    "ai": (10, 60),
}

# Returns remaining tokens after the hit, or -1 when the request is rejected.
SLIDING_WINDOW_SCRIPT = """
local currentKey  = KEYS[1]
local previousKey = KEYS[2]
local tokens      = tonumber(ARGV[1])
local now         = tonumber(ARGV[2])
local window      = tonumber(ARGV[3])
local incrementBy = tonumber(ARGV[4])

local requestsInCurrentWindow = redis.call("GET", currentKey)
if requestsInCurrentWindow == false then
  requestsInCurrentWindow = 0
end
local requestsInPreviousWindow = redis.call("GET", previousKey)
if requestsInPreviousWindow == false then
  requestsInPreviousWindow = 0
end

local percentageInCurrent = (now % window) / window
requestsInPreviousWindow = math.floor((1 - percentageInCurrent) * requestsInPreviousWindow)
if requestsInPreviousWindow + requestsInCurrentWindow >= tokens then
  return -1
end

local newValue = redis.call("INCRBY", currentKey, incrementBy)
if newValue == incrementBy then
  redis.call("PEXPIRE", currentKey, window * 2 + 1000)
end
return tokens - (newValue + requestsInPreviousWindow)
"""


class RateLimitStoreError(Exception):
    pass


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset: int  # epoch milliseconds

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }

    def retry_after(self, now_ms: Optional[int] = None) -> int:
        now_ms = now_ms if now_ms is not None else _now_ms()
        return max(0, math.ceil((self.reset - now_ms) / 1000))


def _now_ms() -> int:
    return int(time.time() * 1000)


@lru_cache(maxsize=None)
def _limit_item(tokens: int, window_seconds: int) -> RateLimitItem:
    return parse(f"{tokens}/{window_seconds} seconds")


class MemoryRateLimitStore:
    """In-process counters on the `limits` sliding window counter.

    Counts live only in this process: they are lost on restart and are not
    shared between instances. Use the Upstash store when several instances
    serve the same traffic. `limits` keeps its own clock, so `now_ms` is
    ignored here.
    """

    def __init__(self):
        self.storage = MemoryStorage()
        self.strategy = SlidingWindowCounterRateLimiter(self.storage)

    async def hit(self, key: str, tokens: int, now_ms: int, window_ms: int) -> int:
        item = _limit_item(tokens, window_ms // 1000)
        if not await self.strategy.hit(item, key):
            return -1
        stats = await self.strategy.get_window_stats(item, key)
        return stats.remaining


class UpstashRateLimitStore:
    """Counters kept in Upstash Redis, reached through its REST API.

    Each hit is a single EVAL, so increment-and-read is atomic on the server.
    """

    def __init__(self, url: str, token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url.rstrip("/")
        self.token = token
        self.transport = transport

    async def hit(self, key: str, tokens: int, now_ms: int, window_ms: int) -> int:
        current_window = now_ms // window_ms
        command = [
            "EVAL", SLIDING_WINDOW_SCRIPT, "2", f"{key}:{current_window}", f"{key}:{current_window - 1}",
            str(tokens), str(now_ms), str(window_ms), "1",
        ]
        headers = {"Authorization": f"Bearer {self.token}"}
        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(self.url, json=command, headers=headers)
                response.raise_for_status()
                body = response.json()
            except (httpx.RequestError, httpx.HTTPStatusError, ValueError) as e:
                raise RateLimitStoreError(f"Upstash request failed: {e}") from e

        if not isinstance(body, dict):
            raise RateLimitStoreError(f"Unexpected Upstash response: {body!r}")
        if "error" in body:
            raise RateLimitStoreError(f"Upstash error: {body['error']}")
        try:
            return int(body["result"])
        except (KeyError, TypeError, ValueError) as e:
            raise RateLimitStoreError(f"Unexpected Upstash response: {body!r}") from e


class RateLimiter:
    def __init__(
        self,
        bucket: str,
        max_requests: int,
        window_seconds: int,
        store=None,
        timeout: float = 2.0,
        clock: Callable[[], int] = _now_ms,
    ):
        self.bucket = bucket
        self.max_requests = max_requests
        self.window_ms = window_seconds * 1000
        self.store = store
        self.timeout = timeout
        self.clock = clock

    def _fail_open(self, now_ms: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - 1,
            reset=now_ms + self.window_ms,
        )

    async def limit(self, identifier: str) -> RateLimitResult:
        """Count one request for `identifier`. Never raises."""
        now_ms = self.clock()
        if self.store is None:
            return self._fail_open(now_ms)

        try:
            remaining = await asyncio.wait_for(
                self.store.hit(f"ratelimit:{self.bucket}:{identifier}", self.max_requests, now_ms, self.window_ms),
                timeout=self.timeout,
            )
        except (RateLimitStoreError, asyncio.TimeoutError) as e:
            logger.warning("Rate limit store unavailable for bucket %s, allowing request: %s", self.bucket, e)
            return self._fail_open(now_ms)
        except Exception:
            logger.exception("Rate limit store failed for bucket %s, allowing request", self.bucket)
            return self._fail_open(now_ms)

        reset = (now_ms // self.window_ms + 1) * self.window_ms
        if remaining < 0:
            return RateLimitResult(allowed=False, limit=self.max_requests, remaining=0, reset=reset)
        return RateLimitResult(allowed=True, limit=self.max_requests, remaining=max(0, remaining), reset=reset)


def build_rate_limit_store(settings):
    backend = (settings.RATE_LIMIT_BACKEND or "").strip().lower()

    if backend == "memory":
        logger.info("Rate limiting uses in-process counters (not shared between instances)")
        return MemoryRateLimitStore()

    if backend not in ("", "upstash"):
        raise ValueError(f"Unknown RATE_LIMIT_BACKEND: {settings.RATE_LIMIT_BACKEND}")

    if settings.UPSTASH_REDIS_REST_URL and settings.UPSTASH_REDIS_REST_TOKEN:
        return UpstashRateLimitStore(settings.UPSTASH_REDIS_REST_URL, settings.UPSTASH_REDIS_REST_TOKEN)

    logger.warning("Upstash credentials not found. Rate limiting is disabled (all requests allowed).")
    return None


def build_rate_limiters(settings, store=None) -> Dict[str, RateLimiter]:
    return {
        bucket: RateLimiter(bucket, max_requests, window, store=store, timeout=settings.RATE_LIMIT_TIMEOUT_SECONDS)
        for bucket, (max_requests, window) in BUCKETS.items()
    }


def get_rate_limiters(request: Request) -> Dict[str, RateLimiter]:
    return request.app.state.rate_limiters


def rate_limited(bucket: str):
    """Route dependency admitting the caller through `bucket` or raising 429."""

    async def _checker(
        request: Request,
        limiters: Dict[str, RateLimiter] = Depends(get_rate_limiters),
    ) -> RateLimitResult:
        limiter = limiters[bucket]
        result = await limiter.limit(get_client_ip(request.headers))
        request.state.rate_limit = result
        if not result.allowed:
            logger.info("Rate limited %s on bucket %s", get_client_ip(request.headers), bucket)
            raise RateLimitedError(result.retry_after(limiter.clock()))
        return result

    return _checker
