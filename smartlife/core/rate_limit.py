"""
Fixed-window rate limiting.

Each policy counts requests per client inside windows of ``window_seconds``.
The window index is ``floor(now / window_seconds)`` and the counter resets at
every window boundary. Counters live in Redis when ``REDIS_URL`` is set and
reachable, otherwise in process memory.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import redis.asyncio as redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from smartlife.core.config import settings
from smartlife.core.errors import error_envelope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixedWindowPolicy:
    name: str
    window_seconds: int
    max_requests: int
    code: str
    message: str
    matcher: Callable[[str], bool]
    skip_successful: bool = False

    def window_index(self, now: float) -> int:
        return int(now // self.window_seconds)

    def reset_at(self, now: float) -> float:
        return (self.window_index(now) + 1) * self.window_seconds


@dataclass
class WindowState:
    policy: FixedWindowPolicy
    key: str
    count: int
    reset_at: float

    @property
    def exceeded(self) -> bool:
        return self.count > self.policy.max_requests

    @property
    def remaining(self) -> int:
        return max(0, self.policy.max_requests - self.count)

    def retry_after(self, now: float) -> int:
        return max(1, math.ceil(self.reset_at - now))


class MemoryCounterStore:
    """In-process counters; each key expires at the end of its window."""

    def __init__(self):
        self._counters: dict[str, tuple[int, float]] = {}

    async def increment(self, key: str, ttl: int, now: float) -> int:
        self._purge(now)
        count, expires_at = self._counters.get(key, (0, now + ttl))
        count += 1
        self._counters[key] = (count, expires_at)
        return count

    async def decrement(self, key: str, now: float) -> None:
        entry = self._counters.get(key)
        if entry and entry[1] > now:
            self._counters[key] = (max(0, entry[0] - 1), entry[1])

    async def reset(self) -> None:
        self._counters.clear()

    async def close(self) -> None:
        self._counters.clear()

    def _purge(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._counters.items() if expires_at <= now]
        for k in expired:
            del self._counters[k]


# DECR only while the window key is alive, so an expired counter is not
# recreated at -1 without a TTL
DECREMENT_IF_EXISTS = """
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("DECR", KEYS[1])
end
return 0
"""


class RedisCounterStore:
    """
    Counters in Redis (INCR + EXPIRE).

    The first Redis error switches the store to its in-memory fallback for
    the rest of the process lifetime.
    """

    def __init__(self, client: redis.Redis):
        self.client = client
        self.fallback = MemoryCounterStore()
        self.degraded = False

    async def increment(self, key: str, ttl: int, now: float) -> int:
        if not self.degraded:
            try:
                async with self.client.pipeline(transaction=True) as pipe:
                    pipe.incr(key)
                    pipe.expire(key, ttl)
                    count, _ = await pipe.execute()
                return int(count)
            except redis.RedisError as e:
                self._degrade(e)
        return await self.fallback.increment(key, ttl, now)

    async def decrement(self, key: str, now: float) -> None:
        if not self.degraded:
            try:
                await self.client.eval(DECREMENT_IF_EXISTS, 1, key)
                return
            except redis.RedisError as e:
                self._degrade(e)
        await self.fallback.decrement(key, now)

    async def reset(self) -> None:
        await self.fallback.reset()

    async def close(self) -> None:
        await self.client.aclose()

    def _degrade(self, error: Exception) -> None:
        logger.warning(f"Redis connection failed, using in-memory rate limiting: {error}")
        self.degraded = True


async def build_counter_store(redis_url: Optional[str] = None):
    """Connect to Redis if configured, otherwise (or on failure) use memory."""
    redis_url = redis_url if redis_url is not None else settings.REDIS_URL
    if not redis_url:
        return MemoryCounterStore()
    try:
        client = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        await client.ping()
        logger.info("Rate limiting backed by Redis")
        return RedisCounterStore(client)
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Redis not available, using in-memory rate limiting: {e}")
        return MemoryCounterStore()


def _prefix(prefix: str) -> Callable[[str], bool]:
    return lambda path: path == prefix or path.startswith(prefix + "/")


def default_policies() -> List[FixedWindowPolicy]:
    api = settings.API_V1_STR
    reset_paths = {f"{api}/auth/forgot-password", f"{api}/auth/reset-password"}
    return [
        FixedWindowPolicy(
            name="password-reset",
            window_seconds=60 * 60,
            max_requests=settings.PASSWORD_RESET_RATE_LIMIT_MAX_REQUESTS,
            code="PASSWORD_RESET_RATE_LIMIT_EXCEEDED",
            message="Too many password reset attempts, please try again later",
            matcher=lambda path: path in reset_paths,
            skip_successful=True,
        ),
        FixedWindowPolicy(
            name="auth",
            window_seconds=15 * 60,
            max_requests=settings.AUTH_RATE_LIMIT_MAX_REQUESTS,
            code="AUTH_RATE_LIMIT_EXCEEDED",
            message="Too many authentication attempts, please try again later",
            matcher=_prefix(f"{api}/auth"),
            skip_successful=True,
        ),
        FixedWindowPolicy(
            name="search",
            window_seconds=60,
            max_requests=settings.SEARCH_RATE_LIMIT_MAX_REQUESTS,
            code="SEARCH_RATE_LIMIT_EXCEEDED",
            message="Too many search requests, please try again later",
            matcher=lambda path: path.startswith(api + "/") and path.endswith("/search"),
        ),
        FixedWindowPolicy(
            name="general",
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            code="RATE_LIMIT_EXCEEDED",
            message="Too many requests from this IP, please try again later",
            matcher=_prefix(api),
        ),
    ]


def client_key(request: Request, trust_proxy: bool = True) -> str:
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies every matching policy to a request.

    The store is read from ``app.state.rate_limit_store`` (set up during
    lifespan startup) unless one is passed in explicitly.
    """

    def __init__(
        self,
        app,
        policies: Optional[List[FixedWindowPolicy]] = None,
        store=None,
        clock: Callable[[], float] = time.time,
        trust_proxy: Optional[bool] = None,
    ):
        super().__init__(app)
        self.policies = policies if policies is not None else default_policies()
        self.store = store
        self.clock = clock
        self.trust_proxy = settings.TRUST_PROXY if trust_proxy is None else trust_proxy

    def _store(self, request: Request):
        if self.store is not None:
            return self.store
        store = getattr(request.app.state, "rate_limit_store", None)
        if store is None:
            # first request before lifespan ran (e.g. mounted sub-app)
            store = request.app.state.rate_limit_store = MemoryCounterStore()
        return store

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        matched = [p for p in self.policies if p.matcher(path)]
        if not matched or request.method == "OPTIONS":
            return await call_next(request)

        store = self._store(request)
        now = self.clock()
        client = client_key(request, self.trust_proxy)

        states: List[WindowState] = []
        for policy in matched:
            key = f"ratelimit:{policy.name}:{client}:{policy.window_index(now)}"
            count = await store.increment(key, policy.window_seconds, now)
            state = WindowState(policy, key, count, policy.reset_at(now))
            states.append(state)
            if state.exceeded:
                logger.warning(f"Rate limit '{policy.name}' exceeded by {client} on {request.method} {path}")
                retry_after = state.retry_after(now)
                return JSONResponse(
                    status_code=429,
                    content=error_envelope(request, policy.message, policy.code, retryAfter=retry_after),
                    headers={"Retry-After": str(retry_after), **self._headers(state, now)},
                )

        response = await call_next(request)

        if response.status_code < 400:
            for state in states:
                if state.policy.skip_successful:
                    await store.decrement(state.key, now)
                    state.count -= 1

        tightest = min(states, key=lambda s: s.remaining)
        response.headers.update(self._headers(tightest, now))
        return response

    @staticmethod
    def _headers(state: WindowState, now: float) -> dict:
        return {
            "RateLimit-Limit": str(state.policy.max_requests),
            "RateLimit-Remaining": str(state.remaining),
            "RateLimit-Reset": str(state.retry_after(now)),
        }
