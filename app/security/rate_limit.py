"""
Fixed-window rate limiting behind an injectable capability.

The limiter lives on `app.state.rate_limiter`. The in-memory implementation
only counts requests seen by this process; a multi-instance deployment plugs
in a shared-store implementation of the same `RateLimiter` protocol.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass
import math
import threading
import time
from typing import Protocol

from fastapi import Request


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after: int | None = None


class RateLimiter(Protocol):
    def hit(self, key: str, limit: int, window_seconds: float) -> RateLimitResult:
        """Count one request for `key` and say whether it is within the limit."""
        ...


@dataclass
class _Window:
    count: int
    started_at: float
    window_seconds: float

    def expired(self, now: float) -> bool:
        return now - self.started_at > self.window_seconds


class InMemoryRateLimiter:
    """
    Per-process fixed-window counter.

    A window opens on the first request for a key and lasts `window_seconds`;
    up to `limit` requests are allowed inside it. Expired windows are swept at
    most once every `sweep_interval` seconds, so idle keys do not pile up.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0) -> None:
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._windows: dict[str, _Window] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def hit(self, key: str, limit: int, window_seconds: float) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)

            window = self._windows.get(key)
            if window is None or window.expired(now):
                self._windows[key] = _Window(count=1, started_at=now, window_seconds=window_seconds)
                return RateLimitResult(allowed=True)

            if window.count < limit:
                window.count += 1
                return RateLimitResult(allowed=True)

            elapsed = now - window.started_at
            return RateLimitResult(allowed=False, retry_after=max(1, math.ceil(window_seconds - elapsed)))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _sweep(self, now: float) -> None:
        # Caller holds the lock.
        for key in [k for k, w in self._windows.items() if w.expired(now)]:
            del self._windows[key]
        self._last_sweep = now


def client_address(request: Request, trusted_proxies: Collection[str] = ()) -> str:
    """
    Address the rate limit is keyed on.

    Forwarding headers are client-controlled, so they are only read when the
    direct peer is a configured trusted proxy. The X-Forwarded-For chain is
    then walked from the right and the first hop that is not itself a trusted
    proxy is used.
    """

    peer = request.client.host if request.client is not None and request.client.host else None
    if peer is None:
        return "unknown"
    if peer not in trusted_proxies:
        return peer

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        for hop in reversed(hops):
            if hop not in trusted_proxies:
                return hop

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    return real_ip or peer
