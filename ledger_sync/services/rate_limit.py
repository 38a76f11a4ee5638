from __future__ import annotations

import hashlib
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from fastapi import HTTPException, Request, Response, status

from ledger_sync.config.sync_config import RateLimitClass, load_sync_config
from ledger_sync.util.logging import get_logger, log_event

logger = get_logger("rate_limit")

EVICT_FRACTION = 0.1


@dataclass
class _Entry:
    count: int
    reset_at: float
    last_touch: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    # unix epoch milliseconds
    reset_at: int
    retry_after: Optional[int] = None


class RateLimiter:
    """
    Fixed-window request counter per "{class}:{client}".

    Entries expire lazily on the next access after their window. When the map
    is full, the least recently touched 10% are dropped.
    """

    def __init__(
        self,
        classes: Mapping[str, RateLimitClass],
        capacity: int = 10000,
        clock: Callable[[], float] = time.time,
    ):
        self._classes = dict(classes)
        self._capacity = max(1, int(capacity))
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def config_for(self, limiter_class: str) -> RateLimitClass:
        cfg = self._classes.get(limiter_class)
        if cfg is None:
            raise KeyError(f"unknown rate limit class {limiter_class!r}")
        return cfg

    def _evict_if_full(self) -> None:
        if len(self._entries) < self._capacity:
            return
        n = max(1, int(self._capacity * EVICT_FRACTION))
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1].last_touch)[:n]
        for key, _ in oldest:
            del self._entries[key]
        log_event(
            logger,
            level="INFO",
            event="rate_limit_evicted",
            msg="rate limit cache full; evicted least recently touched entries",
            evicted=len(oldest),
            capacity=self._capacity,
        )

    def check(self, client_id: str, limiter_class: str) -> RateLimitResult:
        cfg = self.config_for(limiter_class)
        key = f"{limiter_class}:{client_id}"

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and now > entry.reset_at:
                del self._entries[key]
                entry = None

            if entry is None:
                self._evict_if_full()
                entry = _Entry(count=1, reset_at=now + cfg.window_seconds, last_touch=now)
                self._entries[key] = entry
                return RateLimitResult(
                    allowed=True,
                    limit=cfg.limit,
                    remaining=cfg.limit - 1,
                    reset_at=int(entry.reset_at * 1000),
                )

            if entry.count >= cfg.limit:
                retry_after = math.ceil(entry.reset_at - now)
                return RateLimitResult(
                    allowed=False,
                    limit=cfg.limit,
                    remaining=0,
                    reset_at=int(entry.reset_at * 1000),
                    retry_after=retry_after if retry_after > 0 else 1,
                )

            entry.count += 1
            entry.last_touch = now
            return RateLimitResult(
                allowed=True,
                limit=cfg.limit,
                remaining=cfg.limit - entry.count,
                reset_at=int(entry.reset_at * 1000),
            )

    def stats(self) -> dict:
        with self._lock:
            return {"cache_size": len(self._entries), "max_cache_size": self._capacity}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def build_rate_limiter(clock: Callable[[], float] = time.time) -> RateLimiter:
    cfg = load_sync_config()
    return RateLimiter(cfg.rate_limit_classes(), capacity=cfg.rate_limit_cache_capacity(), clock=clock)


def resolve_client_id(headers: Mapping[str, str], direct_host: str | None = None) -> str:
    """
    First hop of x-forwarded-for, then x-real-ip, then the peer address.
    Unidentifiable clients share one bucket derived from their headers.
    """
    forwarded = (headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    if direct_host:
        return direct_host

    material = "|".join(f"{k.lower()}={v}" for k, v in sorted(headers.items()))
    return "unknown-" + hashlib.sha256(material.encode("utf-8")).hexdigest()[:12]


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def rate_limited(limiter_class: str):
    """Route dependency: counts the request and raises 429 once the window is spent."""

    def _dependency(request: Request, response: Response) -> RateLimitResult:
        limiter = get_rate_limiter(request)
        client_id = resolve_client_id(request.headers, request.client.host if request.client else None)
        result = limiter.check(client_id, limiter_class)
        if not result.allowed:
            log_event(
                logger,
                level="WARN",
                event="rate_limited",
                msg="request rejected by rate limiter",
                limiter_class=limiter_class,
                client_id=client_id,
                retry_after=result.retry_after,
            )
            headers = rate_limit_headers(result)
            headers["Retry-After"] = str(result.retry_after)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"error": "Too many requests", "retryAfter": result.retry_after},
                headers=headers,
            )
        for k, v in rate_limit_headers(result).items():
            response.headers[k] = v
        return result

    return _dependency
