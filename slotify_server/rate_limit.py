# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Rate limiting for admin login and the public token-issuing endpoints.

Counters live in a ``CounterStore``. The in-process store suits a single
instance; a shared store (e.g. Redis) can be swapped in for several.
"""

import time
from collections import defaultdict
from collections.abc import Callable

from fastapi import HTTPException, Request

from slotify_server.config import settings

# Max requests per window per client for each path
LIMITS: dict[str, int] = {
    "/api/v1/admin/login": 5,
    "/api/v1/my-reservations/magic-link": 5,
    "/api/v1/pending-reservations": 5,
}


class InMemoryCounterStore:
    """(client_key, path) -> request timestamps inside the window."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._buckets: defaultdict[tuple[str, str], list[float]] = defaultdict(list)

    def hit(self, key: tuple[str, str], window: float) -> int:
        """Record a request and return how many fall in the window, this one included."""
        now = self.clock()
        bucket = self._buckets[key]
        cutoff = now - window
        while bucket and bucket[0] <= cutoff:
            bucket.pop(0)
        bucket.append(now)
        return len(bucket)

    def sweep(self, window: float) -> int:
        """Drop buckets with no request inside the window. Returns how many were dropped."""
        cutoff = self.clock() - window
        stale = [key for key, bucket in self._buckets.items() if not bucket or bucket[-1] <= cutoff]
        for key in stale:
            del self._buckets[key]
        return len(stale)

    def reset(self) -> None:
        self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)


class RateLimiter:
    def __init__(self, store: InMemoryCounterStore | None = None, window: float | None = None):
        self.store = store or InMemoryCounterStore()
        self.window = window if window is not None else settings.rate_limit_window_seconds

    def check(self, client_key: str, path: str) -> None:
        """Raise 429 if the client has exceeded the limit for this path."""
        limit = LIMITS.get(path)
        if limit is None:
            return
        if self.store.hit((client_key, path), self.window) > limit:
            raise HTTPException(
                status_code=429,
                detail="Too many requests. Please try again later.",
            )

    def sweep(self) -> int:
        return self.store.sweep(self.window)


limiter = RateLimiter()


def _client_key(request: Request) -> str:
    """Prefer X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host or "unknown"
    return "unknown"


async def rate_limit_dep(request: Request) -> None:
    """FastAPI dependency: rate limit the paths in LIMITS."""
    path = request.url.path.rstrip("/")
    if path in LIMITS:
        limiter.check(_client_key(request), path)
