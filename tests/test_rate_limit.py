"""
Tests for fixed-window rate limiting
"""
import asyncio

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from smartlife.core.rate_limit import (
    DECREMENT_IF_EXISTS,
    FixedWindowPolicy,
    MemoryCounterStore,
    RateLimitMiddleware,
    RedisCounterStore,
    build_counter_store,
    default_policies,
)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenRedis:
    """Redis client whose every call fails"""

    def pipeline(self, transaction=True):
        raise redis.ConnectionError("connection refused")

    async def eval(self, script, numkeys, *keys):
        raise redis.ConnectionError("connection refused")


class RecordingRedis:
    """Redis client that records scripted calls against an in-memory dict"""

    def __init__(self):
        self.values = {}
        self.scripts = []

    async def eval(self, script, numkeys, *keys):
        self.scripts.append((script, numkeys, keys))
        key = keys[0]
        if key in self.values:
            self.values[key] -= 1
            return self.values[key]
        return 0


def _policy(name="general", max_requests=3, window=60, skip_successful=False, prefix="/api"):
    return FixedWindowPolicy(
        name=name,
        window_seconds=window,
        max_requests=max_requests,
        code=f"{name.upper()}_LIMIT",
        message="Too many requests",
        matcher=lambda path: path.startswith(prefix),
        skip_successful=skip_successful,
    )


def _app(policies, clock) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, policies=policies, store=MemoryCounterStore(), clock=clock,
                       trust_proxy=True)

    @app.get("/api/ping")
    def ping():
        return {"ok": True}

    @app.post("/api/login")
    def login(ok: bool = False):
        if ok:
            return {"ok": True}
        return JSONResponse(status_code=401, content={"ok": False})

    @app.get("/public")
    def public():
        return {"ok": True}

    return app


def test_window_boundaries():
    """Window index is floor(now / window); reset is the next boundary"""
    policy = _policy(window=900)

    assert policy.window_index(1799.9) == 1
    assert policy.window_index(1800) == 2
    assert policy.reset_at(1000) == 1800


def test_memory_store_expires_keys():
    """Counters vanish once their window has passed"""
    store = MemoryCounterStore()

    async def run():
        first = await store.increment("k", 60, now=0)
        second = await store.increment("k", 60, now=30)
        after = await store.increment("k", 60, now=61)
        return first, second, after

    assert asyncio.run(run()) == (1, 2, 1)


def test_blocks_request_after_limit():
    """The N+1st request inside a window gets 429"""
    clock = FakeClock()
    client = TestClient(_app([_policy(max_requests=3)], clock))

    responses = [client.get("/api/ping") for _ in range(4)]

    assert [r.status_code for r in responses] == [200, 200, 200, 429]
    assert responses[0].headers["RateLimit-Limit"] == "3"
    assert responses[0].headers["RateLimit-Remaining"] == "2"
    assert responses[2].headers["RateLimit-Remaining"] == "0"
    blocked = responses[3]
    body = blocked.json()
    assert body["success"] is False
    assert body["code"] == "GENERAL_LIMIT"
    assert body["retryAfter"] >= 1
    assert blocked.headers["Retry-After"] == str(body["retryAfter"])


def test_new_window_resets_counter():
    """Counting restarts at the next window boundary"""
    clock = FakeClock(now=600.0)
    client = TestClient(_app([_policy(max_requests=1, window=60)], clock))

    assert client.get("/api/ping").status_code == 200
    assert client.get("/api/ping").status_code == 429

    clock.now = 660.0
    assert client.get("/api/ping").status_code == 200


def test_unmatched_paths_are_not_limited():
    """Paths outside the policy matchers pass through without headers"""
    client = TestClient(_app([_policy(max_requests=1)], FakeClock()))

    responses = [client.get("/public") for _ in range(3)]

    assert all(r.status_code == 200 for r in responses)
    assert "RateLimit-Limit" not in responses[0].headers


def test_clients_are_counted_separately():
    """Each forwarded client address has its own counter"""
    client = TestClient(_app([_policy(max_requests=1)], FakeClock()))

    a = client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.1"})
    b = client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.2, 172.16.0.1"})
    a_again = client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.1"})

    assert (a.status_code, b.status_code, a_again.status_code) == (200, 200, 429)


def test_successful_requests_are_not_counted():
    """skip_successful policies only count failures"""
    policy = _policy(name="auth", max_requests=2, skip_successful=True)
    client = TestClient(_app([policy], FakeClock()))

    for _ in range(5):
        assert client.post("/api/login?ok=true").status_code == 200

    failures = [client.post("/api/login").status_code for _ in range(3)]

    assert failures == [401, 401, 429]


def test_strictest_policy_wins():
    """Every matching policy is checked"""
    general = _policy(name="general", max_requests=10)
    strict = _policy(name="auth", max_requests=1, prefix="/api/login")
    client = TestClient(_app([strict, general], FakeClock()))

    first = client.post("/api/login")
    second = client.post("/api/login")
    ping = client.get("/api/ping")

    assert first.status_code == 401
    assert second.status_code == 429
    assert second.json()["code"] == "AUTH_LIMIT"
    assert ping.status_code == 200


def test_redis_failure_falls_back_to_memory():
    """A broken Redis degrades to in-process counting"""
    store = RedisCounterStore(BrokenRedis())

    async def run():
        first = await store.increment("k", 60, now=0)
        second = await store.increment("k", 60, now=1)
        await store.decrement("k", now=2)
        third = await store.increment("k", 60, now=3)
        return first, second, third

    assert asyncio.run(run()) == (1, 2, 2)
    assert store.degraded is True


def test_build_counter_store_without_redis():
    """No Redis URL means an in-memory store"""
    store = asyncio.run(build_counter_store(""))

    assert isinstance(store, MemoryCounterStore)


def test_default_policies_cover_endpoints():
    """Auth, password reset, search and general policies match their paths"""
    policies = {p.name: p for p in default_policies()}

    assert policies["password-reset"].matcher("/api/auth/forgot-password")
    assert policies["auth"].matcher("/api/auth/login")
    assert not policies["auth"].matcher("/api/tasks")
    assert policies["search"].matcher("/api/tasks/search")
    assert policies["general"].matcher("/api/notes")
    assert not policies["general"].matcher("/health")
    assert policies["password-reset"].window_seconds == 3600
    assert policies["password-reset"].skip_successful


def test_redis_decrement_skips_expired_key():
    """Giving back a successful request never recreates an expired counter"""
    client = RecordingRedis()
    client.values["live"] = 3
    store = RedisCounterStore(client)

    async def run():
        await store.decrement("live", now=0)
        await store.decrement("expired", now=0)

    asyncio.run(run())

    assert client.values == {"live": 2}
    assert client.scripts[0] == (DECREMENT_IF_EXISTS, 1, ("live",))
    assert 'redis.call("EXISTS", KEYS[1])' in DECREMENT_IF_EXISTS
    assert store.degraded is False
